"""Safety tool endpoints: X-card, pause and comfort levels."""

from fastapi import APIRouter

from ihunt_vtt.safety import SafetyTools

from .deps import Context, require
from .models import SafetyLevelBody, XCardBody

router = APIRouter()


@router.get("/episodes/{episode_id}/safety")
async def get_safety(ctx: Context):
    """Pause / X-card state, the table's worst level per topic and your own levels."""
    tools = SafetyTools(ctx)
    settings = await tools.settings()
    mine = next((s.levels for s in settings if s.id == ctx.user.uid), {})
    return {
        "state": await tools.state(),
        "levels": await tools.aggregated_levels(),
        "my_levels": mine,
    }


@router.post("/episodes/{episode_id}/safety/x-card")
async def raise_x_card(body: XCardBody, ctx: Context):
    require(ctx, await SafetyTools(ctx).trigger_x_card(body.reason))
    return await SafetyTools(ctx).state()


@router.delete("/episodes/{episode_id}/safety/x-card")
async def lower_x_card(ctx: Context):
    """The player who raised it or the GM."""
    require(ctx, await SafetyTools(ctx).resolve_x_card())
    return await SafetyTools(ctx).state()


@router.post("/episodes/{episode_id}/safety/pause")
async def toggle_pause(ctx: Context):
    """GM only. 400 while the X-card is up."""
    paused = await SafetyTools(ctx).toggle_pause()
    require(ctx, paused is not None)
    return {"is_paused": paused}


@router.put("/episodes/{episode_id}/safety/levels/{topic_id}")
async def set_level(topic_id: str, body: SafetyLevelBody, ctx: Context):
    require(ctx, await SafetyTools(ctx).set_my_level(topic_id, body.level))
    return {"ok": True}
