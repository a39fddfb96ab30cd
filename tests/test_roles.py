import asyncio

import pytest

from ihunt_vtt.errors import CharacterInUse, DocumentNotFound, GMAlreadyAssigned
from ihunt_vtt.models import to_doc
from ihunt_vtt.roles import RoleClaims
from ihunt_vtt.session import SessionContext

from conftest import EPISODE_ID


@pytest.fixture
async def other_ctx(store, other_player, ctx):
    context = await SessionContext.open(store, other_player, EPISODE_ID)
    yield context
    await context.close()


@pytest.fixture
async def marina_sheet(store, ctx, make_hunter):
    character = make_hunter(id="marina", campaign_id=ctx.campaign_id)
    await store.set(ctx.character_path("marina"), to_doc(character))
    return character


# ── GM claim ────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_simultaneous_gm_claims_one_wins(ctx, other_ctx, store):
    results = await asyncio.gather(
        RoleClaims(ctx).claim_gm(),
        RoleClaims(other_ctx).claim_gm(),
        return_exceptions=True,
    )
    wins = [r for r in results if r is True]
    losses = [r for r in results if isinstance(r, GMAlreadyAssigned)]
    assert len(wins) == 1
    assert len(losses) == 1
    gm_id = (await store.get(ctx.episode_path))["gm_id"]
    assert gm_id in (ctx.user.uid, other_ctx.user.uid)


@pytest.mark.asyncio
async def test_loser_gets_notice(ctx, other_ctx):
    assert await RoleClaims(ctx).claim_gm()
    with pytest.raises(GMAlreadyAssigned):
        await RoleClaims(other_ctx).claim_gm()
    assert other_ctx.notices.pending[-1].title == "GM already assigned"
    assert await ctx.is_gm()
    assert not await other_ctx.is_gm()


@pytest.mark.asyncio
async def test_reclaim_by_current_gm_is_noop(ctx, store):
    claims = RoleClaims(ctx)
    assert await claims.claim_gm()
    assert await claims.claim_gm()
    assert (await store.get(ctx.episode_path))["gm_id"] == ctx.user.uid


# ── Seats ───────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_join_binds_seat_and_party(ctx, store, marina_sheet):
    assert await RoleClaims(ctx).join_as_player("marina")
    seat = await store.get(ctx.seat_path("marina"))
    assert seat["owner_id"] == ctx.user.uid
    assert (await ctx.session()).character_ids == ["marina"]
    assert await ctx.seated_character_id() == "marina"


@pytest.mark.asyncio
async def test_seat_held_by_other_raises(ctx, other_ctx, store, marina_sheet):
    await RoleClaims(ctx).join_as_player("marina")
    with pytest.raises(CharacterInUse):
        await RoleClaims(other_ctx).join_as_player("marina")
    assert (await store.get(ctx.seat_path("marina")))["owner_id"] == ctx.user.uid


@pytest.mark.asyncio
async def test_gm_force_takes_over_seat(ctx, other_ctx, store, marina_sheet):
    await RoleClaims(ctx).join_as_player("marina")
    await RoleClaims(other_ctx).claim_gm()
    assert await RoleClaims(other_ctx).join_as_player("marina", force=True)
    assert (await store.get(ctx.seat_path("marina")))["owner_id"] == other_ctx.user.uid
    assert (await ctx.session()).character_ids == ["marina"]


@pytest.mark.asyncio
async def test_force_by_player_still_conflicts(ctx, other_ctx, store, marina_sheet):
    await RoleClaims(ctx).join_as_player("marina")
    with pytest.raises(CharacterInUse):
        await RoleClaims(other_ctx).join_as_player("marina", force=True)
    assert (await store.get(ctx.seat_path("marina")))["owner_id"] == ctx.user.uid
    assert other_ctx.notices.pending[-1].title == "Character in use"


@pytest.mark.asyncio
async def test_simultaneous_joins_one_seat(ctx, other_ctx, store, marina_sheet):
    results = await asyncio.gather(
        RoleClaims(ctx).join_as_player("marina"),
        RoleClaims(other_ctx).join_as_player("marina"),
        return_exceptions=True,
    )
    assert sum(r is True for r in results) == 1
    assert sum(isinstance(r, CharacterInUse) for r in results) == 1
    assert (await ctx.session()).character_ids == ["marina"]


@pytest.mark.asyncio
async def test_rejoin_is_idempotent(ctx, marina_sheet):
    claims = RoleClaims(ctx)
    assert await claims.join_as_player("marina")
    assert await claims.join_as_player("marina")
    assert (await ctx.session()).character_ids == ["marina"]


@pytest.mark.asyncio
async def test_join_missing_character(ctx):
    with pytest.raises(DocumentNotFound):
        await RoleClaims(ctx).join_as_player("ghost")


@pytest.mark.asyncio
async def test_leave_only_own_seat(ctx, other_ctx, store, marina_sheet):
    await RoleClaims(ctx).join_as_player("marina")
    assert not await RoleClaims(other_ctx).leave("marina")
    assert await store.get(ctx.seat_path("marina")) is not None

    assert await RoleClaims(ctx).leave("marina")
    assert await store.get(ctx.seat_path("marina")) is None
    # the character stays in the party
    assert (await ctx.session()).character_ids == ["marina"]
