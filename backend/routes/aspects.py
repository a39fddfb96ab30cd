"""Aspect endpoints: the unified list plus invoke, compel, reject and boost."""

from fastapi import APIRouter, HTTPException

from ihunt_vtt.aspects import AspectLedger, label
from ihunt_vtt.models import UnifiedAspect

from .deps import Context, require
from .models import BoostBody, CompelBody, InvokeBody

router = APIRouter()


def _find(ledger: AspectLedger, aspect_id: str) -> UnifiedAspect:
    aspect = ledger.find(aspect_id)
    if aspect is None:
        raise HTTPException(404, "Aspect not found")
    return aspect


@router.get("/episodes/{episode_id}/aspects")
async def list_aspects(ctx: Context):
    """Every aspect in play, in aggregation order, with its display label."""
    ledger = AspectLedger(ctx)
    return [{**a.model_dump(mode="json"), "label": label(a)} for a in ledger.aspects]


@router.post("/episodes/{episode_id}/aspects/{aspect_id}/invoke")
async def invoke(aspect_id: str, body: InvokeBody, ctx: Context):
    """Invoke for free (consuming a free invoke) or for 1 fate point."""
    ledger = AspectLedger(ctx)
    require(ctx, await ledger.invoke(_find(ledger, aspect_id), body.use_free, body.actor_id))
    return {"ok": True}


@router.post("/episodes/{episode_id}/aspects/{aspect_id}/compel")
async def compel(aspect_id: str, body: CompelBody, ctx: Context):
    """GM compel: the target gains 1 fate point."""
    ledger = AspectLedger(ctx)
    require(ctx, await ledger.compel(_find(ledger, aspect_id), body.target_character_id))
    return {"ok": True}


@router.post("/episodes/{episode_id}/compels/reject")
async def reject_compel(body: CompelBody, ctx: Context):
    """The target pays 1 fate point to refuse a compel."""
    require(ctx, await AspectLedger(ctx).reject_compel(body.target_character_id))
    return {"ok": True}


@router.post("/episodes/{episode_id}/aspects/{aspect_id}/free-invokes")
async def grant_free_invoke(aspect_id: str, ctx: Context):
    """GM only: +1 free invoke on a scene or situational aspect."""
    ledger = AspectLedger(ctx)
    require(ctx, await ledger.grant_free_invoke(_find(ledger, aspect_id)))
    return {"ok": True}


@router.post("/episodes/{episode_id}/boosts", status_code=201)
async def create_boost(body: BoostBody, ctx: Context):
    """Boost on the target character, or on the active scene."""
    boost = await AspectLedger(ctx).create_boost(body.name, body.target_id)
    require(ctx, boost)
    return boost
