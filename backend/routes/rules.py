"""Stateless rules endpoints: dice, skill validation, catalog, table config."""

from fastapi import APIRouter, HTTPException, Request
from pydantic import ValidationError

from ihunt_vtt import catalog, dice
from ihunt_vtt.config import update_config
from ihunt_vtt.gamelog import GameLog
from ihunt_vtt.rules import check_increment, validate_pyramid

from .deps import Context
from .models import IncrementBody, RollBody, SkillsBody

router = APIRouter()


@router.get("/health")
async def health():
    """Health check."""
    return {"status": "ok"}


@router.post("/roll")
async def roll(body: RollBody):
    """Roll without logging (previews, GM secret rolls)."""
    return dice.roll(
        body.modifier,
        body.mode,
        body.opposition,
        character=body.character,
        skill=body.skill,
        action=body.action,
        invocations=body.invocations,
    )


@router.post("/episodes/{episode_id}/rolls", status_code=201)
async def roll_and_log(body: RollBody, ctx: Context):
    """Roll and append the result to the episode's game log."""
    result = dice.roll(
        body.modifier,
        body.mode,
        body.opposition,
        character=body.character or ctx.user.display_name,
        skill=body.skill,
        action=body.action,
        invocations=body.invocations,
    )
    await GameLog(ctx).record_roll(result)
    return result


@router.post("/skills/validate")
async def validate_skills(body: SkillsBody):
    """Check a full skill set against the pyramid."""
    return validate_pyramid(body.skills)


@router.post("/skills/check-increment")
async def check_skill_increment(body: IncrementBody):
    """Would raising one skill by a point keep the pyramid caps?"""
    return check_increment(body.skills, body.skill)


@router.get("/catalog")
async def get_catalog():
    """Skills, drives, maneuvers, NPC kinds, built-in archetypes and the ladder."""
    return {
        "skills": catalog.SKILLS,
        "drives": list(catalog.DRIVES.values()),
        "general_maneuvers": catalog.GENERAL_MANEUVERS,
        "npc_kinds": catalog.NPC_KINDS,
        "archetypes": catalog.BUILTIN_ARCHETYPES,
        "safety_topics": catalog.SAFETY_TOPICS,
        "safety_levels": {k: {"label": label, "severity": s} for k, (label, s) in catalog.SAFETY_LEVELS.items()},
        "ladder": dice.FATE_LADDER,
        "opposition_presets": [{"value": v, "label": label} for v, label in dice.OPPOSITION_PRESETS],
    }


@router.get("/config")
async def get_config(request: Request):
    """Current table rules config."""
    return request.app.state.config


@router.patch("/config")
async def patch_config(request: Request, body: dict):
    """Update table rules config (partial merge). 422 on out-of-range values."""
    try:
        request.app.state.config = update_config(request.app.state.data_dir, body)
    except ValidationError as e:
        raise HTTPException(422, str(e))
    return request.app.state.config
