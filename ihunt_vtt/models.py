"""Core domain models.

Every document that goes in or out of the store passes through one of these
types. Documents are stored without their id (the id is the last segment of
the document path); `to_doc()` and `from_doc()` do the conversion.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Any, Literal, TypeVar, Union

from pydantic import BaseModel, ConfigDict, Field

DriveId = Literal["malina", "cavalo", "fui", "os66"]
Severity = Literal["mild", "moderate", "severe"]
RollMode = Literal["normal", "advantage"]
Outcome = Literal["failure", "tie", "success", "style"]
ActionType = Literal["overcome", "create_advantage", "attack", "defend"]
LogType = Literal["roll", "aspect", "fate", "system", "chat"]
AspectSource = Literal["theme", "character", "consequence", "situational", "location"]
OwnerType = Literal["campaign", "character", "npc", "scene"]
SceneStatus = Literal["draft", "active", "archived"]
EpisodeStatus = Literal["open", "closed"]
ClosedAs = Literal["episode", "story_climax", "season_finale"]
SlotType = Literal["mood", "auge", "mudanca"]
SafetyLevel = Literal["ok", "stage", "not_with_me", "veil", "line"]

SEVERITIES: tuple[Severity, ...] = ("mild", "moderate", "severe")


def new_id() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class NPCKind(str, Enum):
    MONSTRO = "monstro"
    PESSOA = "pessoa"


# ---------------------------------------------------------------------------
# Characters
# ---------------------------------------------------------------------------

class CharacterAspects(BaseModel):
    high_concept: str = ""
    drama: str = ""
    job: str = ""
    dream_board: str = ""
    free: list[str] = Field(default_factory=list)


class StressTracks(BaseModel):
    physical: list[bool] = Field(default_factory=list)
    mental: list[bool] = Field(default_factory=list)


class Consequences(BaseModel):
    mild: str | None = None
    moderate: str | None = None
    severe: str | None = None


class SituationalAspect(BaseModel):
    """A temporary aspect with its own pool of free invokes.

    Also used for scene aspects; the two share one shape.
    """

    id: str = Field(default_factory=new_id)
    name: str
    free_invokes: int = Field(default=0, ge=0)
    created_by: str = "system"
    is_temporary: bool = True
    created_at: datetime = Field(default_factory=utcnow)


SceneAspect = SituationalAspect


class AdvancementSlot(BaseModel):
    """One advancement earned when an episode closes; spent once."""

    id: str = Field(default_factory=new_id)
    type: SlotType
    granted_by: str  # episode id
    used: bool = False
    created_at: datetime = Field(default_factory=utcnow)


class Character(BaseModel):
    id: str = Field(default_factory=new_id)
    campaign_id: str = ""
    created_by: str = ""
    name: str
    drive: DriveId | None = None
    aspects: CharacterAspects = Field(default_factory=CharacterAspects)
    skills: dict[str, int] = Field(default_factory=dict)
    maneuvers: list[str] = Field(default_factory=list)
    stress: StressTracks = Field(default_factory=StressTracks)
    consequences: Consequences = Field(default_factory=Consequences)
    fate_points: int = 0
    refresh: int = 0
    situational_aspects: list[SituationalAspect] = Field(default_factory=list)
    advancement_slots: list[AdvancementSlot] = Field(default_factory=list)
    is_archived: bool = False


# ---------------------------------------------------------------------------
# NPCs
# ---------------------------------------------------------------------------

class Archetype(BaseModel):
    """A reusable NPC template."""

    id: str = Field(default_factory=new_id)
    name: str
    kind: NPCKind
    description: str = ""
    aspects: list[str] = Field(default_factory=list)
    skills: dict[str, int] = Field(default_factory=dict)
    stress: int = 2  # box count
    consequences: Consequences = Field(default_factory=Consequences)
    stunts: list[str] = Field(default_factory=list)
    is_global: bool = False
    is_archived: bool = False
    archived_from_name: str | None = None


class ActiveNPC(BaseModel):
    """A live NPC spawned from an archetype; editable independently of it."""

    id: str = Field(default_factory=new_id)
    campaign_id: str = ""
    name: str
    archetype_id: str = ""
    archetype_name: str = ""
    kind: NPCKind
    aspects: list[str] = Field(default_factory=list)
    skills: dict[str, int] = Field(default_factory=dict)
    stress: int = 2
    current_stress: int = 0
    consequences: Consequences = Field(default_factory=Consequences)
    stunts: list[str] = Field(default_factory=list)
    scene_id: str | None = None  # None = stored, not placed
    has_token: bool = False
    notes: str = ""
    scene_tags: list[str] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Campaign, episode, scenes
# ---------------------------------------------------------------------------

class Campaign(BaseModel):
    id: str = Field(default_factory=new_id)
    name: str = "Campanha"
    theme_aspects: list[str] = Field(default_factory=list)


class Scene(BaseModel):
    id: str = Field(default_factory=new_id)
    name: str
    background: str | None = None
    aspects: list[SceneAspect] = Field(default_factory=list)
    is_active: bool = False
    is_archived: bool = False
    order: int = 0

    @property
    def status(self) -> SceneStatus:
        if self.is_archived:
            return "archived"
        return "active" if self.is_active else "draft"


class GameSession(BaseModel):
    """The shared episode document: GM, party roster and the GM fate pool."""

    id: str = Field(default_factory=new_id)
    campaign_id: str = ""
    name: str = "Sessão Principal"
    gm_id: str | None = None
    character_ids: list[str] = Field(default_factory=list)
    gm_fate_pool: int = 3
    current_scene_id: str | None = None
    status: EpisodeStatus = "open"
    closed_as: ClosedAs | None = None
    closed_at: datetime | None = None


class Seat(BaseModel):
    """Binding of one character slot to the player occupying it."""

    id: str  # == character_id
    owner_id: str
    owner_name: str = ""


class SafetyState(BaseModel):
    """Episode-wide pause and X-card flag (`episodes/{id}/safety/state`)."""

    is_paused: bool = False
    x_card_triggered_by: str | None = None
    x_card_reason: str | None = None
    updated_at: datetime = Field(default_factory=utcnow)


class SafetySettings(BaseModel):
    """One player's comfort level per topic, kept per campaign."""

    id: str  # == user uid
    levels: dict[str, SafetyLevel] = Field(default_factory=dict)
    updated_at: datetime = Field(default_factory=utcnow)


# ---------------------------------------------------------------------------
# Dice and log
# ---------------------------------------------------------------------------

class DiceResult(BaseModel):
    """One immutable roll resolution."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=new_id)
    fate_dice: tuple[int, ...]
    d6: int | None = None
    modifier: int = 0
    dice_total: int
    total: int
    opposition: int | None = None
    shifts: int | None = None
    outcome: Outcome | None = None
    mode: RollMode = "normal"
    character: str = ""
    skill: str | None = None
    action: ActionType | None = None
    invocations: int = 0
    timestamp: datetime = Field(default_factory=utcnow)


class LogEntry(BaseModel):
    id: str = Field(default_factory=new_id)
    message: str
    type: LogType = "system"
    character: str = "Sistema"
    details: dict[str, Any] | None = None
    timestamp: datetime = Field(default_factory=utcnow)


# ---------------------------------------------------------------------------
# Unified aspects (ephemeral, never persisted)
# ---------------------------------------------------------------------------

class ThemeRef(BaseModel):
    kind: Literal["theme"] = "theme"
    campaign_id: str


class CharacterRef(BaseModel):
    kind: Literal["character"] = "character"
    character_id: str


class ConsequenceRef(BaseModel):
    kind: Literal["consequence"] = "consequence"
    owner_type: Literal["character", "npc"]
    owner_id: str
    severity: Severity


class SituationalRef(BaseModel):
    kind: Literal["situational"] = "situational"
    character_id: str
    aspect_id: str


class NPCRef(BaseModel):
    kind: Literal["npc"] = "npc"
    npc_id: str


class SceneRef(BaseModel):
    kind: Literal["scene"] = "scene"
    scene_id: str
    aspect_id: str


AspectRef = Annotated[
    Union[ThemeRef, CharacterRef, ConsequenceRef, SituationalRef, NPCRef, SceneRef],
    Field(discriminator="kind"),
]


class UnifiedAspect(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    source: AspectSource
    owner_type: OwnerType
    owner_id: str | None = None
    owner_name: str = ""
    free_invokes: int = 0
    is_temporary: bool = False
    created_by: str = ""
    severity: Severity | None = None
    ref: AspectRef


# ---------------------------------------------------------------------------
# Results and notices
# ---------------------------------------------------------------------------

class Validation(BaseModel):
    """Structured result of a validator. Never raised."""

    valid: bool
    error: str | None = None
    level: int | None = None

    @classmethod
    def ok(cls) -> "Validation":
        return cls(valid=True)

    @classmethod
    def fail(cls, error: str, level: int | None = None) -> "Validation":
        return cls(valid=False, error=error, level=level)


class Notice(BaseModel):
    """A human-readable message for the UI."""

    title: str
    description: str = ""
    level: Literal["info", "warning", "error"] = "info"


class Identity(BaseModel):
    """Opaque user identity supplied by the external identity provider."""

    uid: str
    display_name: str = ""


# ---------------------------------------------------------------------------
# Document conversion
# ---------------------------------------------------------------------------

M = TypeVar("M", bound=BaseModel)


def to_doc(model: BaseModel) -> dict[str, Any]:
    """Dump a model to a store document (id lives in the path, not the body)."""
    return model.model_dump(mode="json", exclude={"id"})


def from_doc(model: type[M], doc_id: str, data: dict[str, Any]) -> M:
    return model.model_validate({**data, "id": doc_id})
