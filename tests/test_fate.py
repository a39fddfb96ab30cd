import asyncio

import pytest

from ihunt_vtt.errors import DocumentNotFound
from ihunt_vtt.fate import FateLedger
from ihunt_vtt.models import Character, Seat, to_doc
from ihunt_vtt.session import SessionContext

from conftest import EPISODE_ID


async def _fate(store, ctx, character_id="marina"):
    return (await store.get(ctx.character_path(character_id)))["fate_points"]


@pytest.mark.asyncio
async def test_concurrent_spends_lose_nothing(ctx, store):
    """Two clients each spend 1 from 3 at the same time: 1 is left."""
    await store.set(ctx.character_path("marina"), to_doc(Character(name="Marina", fate_points=3)))
    a, b = FateLedger(ctx), FateLedger(ctx)
    results = await asyncio.gather(a.spend("marina"), b.spend("marina"))
    assert results == [True, True]
    assert await _fate(store, ctx) == 1


@pytest.mark.asyncio
async def test_fate_can_go_negative(ctx, store):
    await store.set(ctx.character_path("marina"), to_doc(Character(name="Marina", fate_points=0)))
    ledger = FateLedger(ctx)
    await ledger.spend("marina")
    await ledger.spend("marina")
    assert await _fate(store, ctx) == -2
    await ledger.gain("marina")
    assert await _fate(store, ctx) == -1


@pytest.mark.asyncio
async def test_missing_character_raises(ctx):
    with pytest.raises(DocumentNotFound):
        await FateLedger(ctx).spend("ghost")


@pytest.mark.asyncio
async def test_gm_pool_refused_for_players(ctx, store):
    before = (await store.get(ctx.episode_path))["gm_fate_pool"]
    assert not await FateLedger(ctx).adjust_gm_pool(-1)
    assert (await store.get(ctx.episode_path))["gm_fate_pool"] == before
    assert ctx.notices.pending[-1].title == "GM only"


@pytest.mark.asyncio
async def test_gm_pool_adjusted_by_gm(gm_ctx, store):
    before = (await store.get(gm_ctx.episode_path))["gm_fate_pool"]
    ledger = FateLedger(gm_ctx)
    assert await ledger.adjust_gm_pool(-1)
    assert await ledger.update_fate("ignored", 2, is_character=False)
    assert (await store.get(gm_ctx.episode_path))["gm_fate_pool"] == before + 1


@pytest.mark.asyncio
async def test_store_failure_reported(ctx, store):
    await store.set(ctx.character_path("marina"), to_doc(Character(name="Marina", fate_points=3)))
    store.revoke("characters")
    assert not await FateLedger(ctx).spend("marina")
    assert ctx.notices.pending[-1].title == "Could not update fate points"
    store.grant("characters")
    assert await _fate(store, ctx) == 3


@pytest.mark.asyncio
async def test_adjust_needs_owner_seat_or_gm(ctx, gm_ctx, store, other_player):
    await store.set(ctx.character_path("marina"), to_doc(
        Character(name="Marina", created_by=ctx.user.uid, fate_points=3)
    ))
    assert await FateLedger(ctx).adjust("marina", -1)
    assert await FateLedger(gm_ctx).adjust("marina", 2)
    assert await _fate(store, ctx) == 4

    other = await SessionContext.open(store, other_player, EPISODE_ID)
    assert not await FateLedger(other).adjust("marina", 10)
    assert other.notices.pending[-1].title == "Not your character"
    assert await _fate(store, ctx) == 4

    await store.set(ctx.seat_path("marina"), to_doc(Seat(id="marina", owner_id=other_player.uid)))
    assert await FateLedger(other).adjust("marina", -1)
    assert await _fate(store, ctx) == 3
    await other.close()
