"""Table rules configuration (config.json under the data directory).

get_config() returns defaults merged with stored values; update_config()
applies partial updates, validates them and persists the full config.
"""

import json
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field

DEFAULT_MENTAL_ALIASES = ["Vontade", "Ocultista", "Acadêmico", "Sobrevivente"]


class TableConfig(BaseModel):
    min_scene_aspects: int = Field(default=0, ge=0)
    default_gm_fate_pool: int = 3
    mental_aliases: list[str] = Field(default_factory=lambda: list(DEFAULT_MENTAL_ALIASES))
    transaction_attempts: int = Field(default=5, ge=1)


def _config_path(data_dir: Path) -> Path:
    return data_dir / "config.json"


def get_config(data_dir: Path | None = None) -> TableConfig:
    """Read config, returning defaults merged with stored values."""
    if data_dir is None:
        return TableConfig()
    path = _config_path(data_dir)
    if not path.is_file():
        return TableConfig()
    stored = json.loads(path.read_text())
    known = {k: v for k, v in stored.items() if k in TableConfig.model_fields}
    return TableConfig.model_validate({**TableConfig().model_dump(), **known})


def update_config(data_dir: Path, fields: dict[str, Any]) -> TableConfig:
    """Merge fields into config and persist. Returns the full config."""
    current = get_config(data_dir).model_dump()
    current.update({k: v for k, v in fields.items() if k in TableConfig.model_fields})
    config = TableConfig.model_validate(current)
    data_dir.mkdir(parents=True, exist_ok=True)
    _config_path(data_dir).write_text(json.dumps(config.model_dump(), indent=2))
    return config
