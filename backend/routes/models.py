"""Pydantic request models for API endpoints."""

from pydantic import BaseModel, Field

from ihunt_vtt.models import ActionType, ClosedAs, NPCKind, RollMode, SafetyLevel


class RollBody(BaseModel):
    modifier: int = 0
    mode: RollMode = "normal"
    opposition: int | None = None
    character: str = ""
    skill: str | None = None
    action: ActionType | None = None
    invocations: int = 0


class SkillsBody(BaseModel):
    skills: dict[str, int]


class IncrementBody(SkillsBody):
    skill: str


class CreateEpisode(BaseModel):
    episode_id: str
    campaign_id: str


class InvokeBody(BaseModel):
    use_free: bool = False
    actor_id: str | None = None


class CompelBody(BaseModel):
    target_character_id: str


class BoostBody(BaseModel):
    name: str
    target_id: str = ""


class FateBody(BaseModel):
    target_id: str = ""
    delta: int
    is_character: bool = True


class CreateScene(BaseModel):
    name: str
    background: str | None = None
    aspects: list[str] = Field(default_factory=list)


class UpdateScene(BaseModel):
    name: str | None = None
    background: str | None = None
    order: int | None = None


class SceneAspectBody(BaseModel):
    name: str
    free_invokes: int = Field(default=0, ge=0)
    is_temporary: bool = False


class AdvanceSkill(BaseModel):
    skill: str


class StressBody(BaseModel):
    track: str = Field(pattern="^(physical|mental)$")
    index: int = Field(ge=0, lt=4)
    marked: bool = True


class ConsequenceBody(BaseModel):
    text: str | None = None


class SituationalBody(BaseModel):
    name: str
    free_invokes: int = Field(default=0, ge=0)


class CreateArchetype(BaseModel):
    name: str
    kind: NPCKind
    description: str = ""
    aspects: list[str] = Field(default_factory=list)
    skills: dict[str, int] = Field(default_factory=dict)
    stress: int = 2
    stunts: list[str] = Field(default_factory=list)


class SpawnNPC(BaseModel):
    archetype_id: str
    name: str = ""


class MoveNPC(BaseModel):
    scene_id: str | None = None


class TokenBody(BaseModel):
    has_token: bool


class ChatBody(BaseModel):
    message: str



class CloseEpisode(BaseModel):
    closed_as: ClosedAs = "episode"


class XCardBody(BaseModel):
    reason: str | None = None


class SafetyLevelBody(BaseModel):
    level: SafetyLevel
