"""Character endpoints for the episode's campaign."""

from fastapi import APIRouter

from ihunt_vtt.advancement import Advancement
from ihunt_vtt.characters import CharacterRoster
from ihunt_vtt.models import Character, Severity

from .deps import Context, require, require_valid
from .models import AdvanceSkill, ConsequenceBody, SituationalBody, StressBody

router = APIRouter()


def _with_tracks(roster: CharacterRoster, character: Character) -> dict:
    """Character plus its derived stress tracks (what the sheet shows)."""
    return {**character.model_dump(mode="json"), "tracks": roster.tracks(character).model_dump()}


@router.get("/episodes/{episode_id}/characters")
async def list_characters(ctx: Context, include_archived: bool = False):
    """Characters of the episode's campaign."""
    roster = CharacterRoster(ctx)
    return [_with_tracks(roster, c) for c in await roster.list(include_archived)]


@router.post("/episodes/{episode_id}/characters", status_code=201)
async def create_character(body: Character, ctx: Context):
    """Create a character owned by the caller. 422 when the build is invalid."""
    roster = CharacterRoster(ctx)
    require_valid(await roster.create(body))
    return _with_tracks(roster, await roster.get(body.id))


@router.get("/episodes/{episode_id}/characters/{character_id}")
async def get_character(character_id: str, ctx: Context):
    roster = CharacterRoster(ctx)
    return _with_tracks(roster, await roster.get(character_id))


@router.patch("/episodes/{episode_id}/characters/{character_id}")
async def update_character(character_id: str, body: dict, ctx: Context):
    """Edit free-text fields (name, aspects, notes...). Owner or GM only."""
    roster = CharacterRoster(ctx)
    require(ctx, await roster.update_fields(character_id, body))
    return _with_tracks(roster, await roster.get(character_id))


@router.post("/episodes/{episode_id}/characters/{character_id}/advance")
async def advance_skill(character_id: str, body: AdvanceSkill, ctx: Context):
    """Raise one skill by a point. 422 when the pyramid would overflow."""
    roster = CharacterRoster(ctx)
    require_valid(await roster.advance_skill(character_id, body.skill))
    return _with_tracks(roster, await roster.get(character_id))


@router.post("/episodes/{episode_id}/characters/{character_id}/archive")
async def archive_character(character_id: str, ctx: Context):
    require(ctx, await CharacterRoster(ctx).archive(character_id))
    return {"ok": True}


@router.post("/episodes/{episode_id}/characters/{character_id}/unarchive")
async def unarchive_character(character_id: str, ctx: Context):
    require(ctx, await CharacterRoster(ctx).unarchive(character_id))
    return {"ok": True}


@router.post("/episodes/{episode_id}/characters/{character_id}/stress")
async def mark_stress(character_id: str, body: StressBody, ctx: Context):
    roster = CharacterRoster(ctx)
    require(ctx, await roster.mark_stress(character_id, body.track, body.index, body.marked))
    return _with_tracks(roster, await roster.get(character_id))


@router.put("/episodes/{episode_id}/characters/{character_id}/consequences/{severity}")
async def set_consequence(character_id: str, severity: Severity, body: ConsequenceBody, ctx: Context):
    """Fill or clear (null text) one consequence slot."""
    roster = CharacterRoster(ctx)
    require(ctx, await roster.set_consequence(character_id, severity, body.text))
    return _with_tracks(roster, await roster.get(character_id))


@router.post("/episodes/{episode_id}/characters/{character_id}/situational", status_code=201)
async def add_situational(character_id: str, body: SituationalBody, ctx: Context):
    aspect = await CharacterRoster(ctx).add_situational_aspect(character_id, body.name, body.free_invokes)
    require(ctx, aspect)
    return aspect


@router.delete("/episodes/{episode_id}/characters/{character_id}/situational/{aspect_id}")
async def remove_situational(character_id: str, aspect_id: str, ctx: Context):
    require(ctx, await CharacterRoster(ctx).remove_situational_aspect(character_id, aspect_id))
    return {"ok": True}


@router.post("/episodes/{episode_id}/characters/{character_id}/slots/{slot_id}/use")
async def use_slot(character_id: str, slot_id: str, ctx: Context):
    """Spend an unused advancement slot."""
    slot = await Advancement(ctx).use_slot(character_id, slot_id)
    require(ctx, slot)
    return slot
