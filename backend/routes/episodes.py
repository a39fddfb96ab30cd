"""Episode endpoints: open an episode, read its table state, claim roles."""

from typing import Annotated

from fastapi import APIRouter, Depends, Request

from ihunt_vtt.advancement import Advancement
from ihunt_vtt.fate import FateLedger
from ihunt_vtt.gamelog import GameLog
from ihunt_vtt.models import Identity
from ihunt_vtt.roles import RoleClaims
from ihunt_vtt.session import SessionContext

from .deps import Context, identity, require
from .models import ChatBody, CloseEpisode, CreateEpisode, FateBody

router = APIRouter()


@router.post("/episodes", status_code=201)
async def open_episode(
    body: CreateEpisode, request: Request, user: Annotated[Identity, Depends(identity)]
):
    """Create the episode (and its campaign) if missing; return the session."""
    async with await SessionContext.open(
        request.app.state.store, user, body.episode_id, body.campaign_id,
        config=request.app.state.config,
    ) as ctx:
        return await ctx.session()


@router.get("/episodes/{episode_id}")
async def get_episode(ctx: Context):
    """Session document, campaign, active scene, party and seats in one read."""
    state = ctx.state
    mine = state.character_of(ctx.user.uid)
    return {
        "session": state.game_session,
        "campaign": state.campaign.first,
        "active_scene": state.active_scene,
        "party": state.party,
        "seats": state.seats.items,
        "is_gm": await ctx.is_gm(),
        "my_character_id": mine.id if mine else None,
    }


@router.post("/episodes/{episode_id}/claim-gm")
async def claim_gm(ctx: Context):
    """Become GM. 409 when someone else already is."""
    require(ctx, await RoleClaims(ctx).claim_gm())
    return await ctx.session()


@router.post("/episodes/{episode_id}/seats/{character_id}")
async def join_seat(character_id: str, ctx: Context, force: bool = False):
    """Occupy a character. 409 when another user holds it, unless the GM forces it."""
    require(ctx, await RoleClaims(ctx).join_as_player(character_id, force=force))
    return await ctx.session()


@router.delete("/episodes/{episode_id}/seats/{character_id}")
async def leave_seat(character_id: str, ctx: Context):
    """Give up your seat on a character."""
    return {"ok": await RoleClaims(ctx).leave(character_id)}


@router.post("/episodes/{episode_id}/fate")
async def update_fate(body: FateBody, ctx: Context):
    """Add delta to a character's fate points or (GM only) the GM pool."""
    require(ctx, await FateLedger(ctx).adjust(body.target_id, body.delta, body.is_character))
    return {"ok": True}


@router.get("/episodes/{episode_id}/logs")
async def list_logs(ctx: Context):
    """Game log, oldest first."""
    return await GameLog(ctx).entries()


@router.post("/episodes/{episode_id}/logs", status_code=201)
async def post_chat(body: ChatBody, ctx: Context):
    """Append a chat line to the game log."""
    entry = await GameLog(ctx).add(body.message, "chat")
    require(ctx, entry)
    return entry


@router.post("/episodes/{episode_id}/close")
async def close_episode(body: CloseEpisode, ctx: Context):
    """GM only: close the episode and grant every character an advancement slot."""
    granted = await Advancement(ctx).close_episode(body.closed_as)
    require(ctx, granted is not None)
    return {"granted": granted, "session": await ctx.session()}
