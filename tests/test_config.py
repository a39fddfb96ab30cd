import json

import pytest
from pydantic import ValidationError

from ihunt_vtt.config import DEFAULT_MENTAL_ALIASES, TableConfig, get_config, update_config


def test_defaults_without_file(tmp_path):
    config = get_config(tmp_path)
    assert config == TableConfig()
    assert config.mental_aliases == DEFAULT_MENTAL_ALIASES
    assert get_config(None).min_scene_aspects == 0


def test_update_merges_and_persists(tmp_path):
    config = update_config(tmp_path, {"min_scene_aspects": 2, "unknown": True})
    assert config.min_scene_aspects == 2
    assert config.default_gm_fate_pool == 3
    stored = json.loads((tmp_path / "config.json").read_text())
    assert stored["min_scene_aspects"] == 2
    assert "unknown" not in stored

    update_config(tmp_path, {"default_gm_fate_pool": 5})
    reloaded = get_config(tmp_path)
    assert (reloaded.min_scene_aspects, reloaded.default_gm_fate_pool) == (2, 5)


def test_stored_unknown_keys_ignored(tmp_path):
    (tmp_path / "config.json").write_text(json.dumps({"transaction_attempts": 9, "legacy": 1}))
    assert get_config(tmp_path).transaction_attempts == 9


def test_invalid_update_rejected(tmp_path):
    with pytest.raises(ValidationError):
        update_config(tmp_path, {"min_scene_aspects": -1})
    assert not (tmp_path / "config.json").exists()
