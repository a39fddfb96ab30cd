"""Tests for the X-card, pause and comfort-level aggregation."""

import pytest

from ihunt_vtt.models import SafetySettings
from ihunt_vtt.safety import SafetyTools, aggregate_levels
from ihunt_vtt.session import SessionContext

from conftest import EPISODE_ID


@pytest.fixture
async def other_ctx(store, other_player, ctx):
    context = await SessionContext.open(store, other_player, EPISODE_ID)
    yield context
    await context.close()


# ── aggregate_levels ────────────────────────────────────────


def test_worst_level_wins():
    levels = aggregate_levels([
        SafetySettings(id="a", levels={"sangue": "stage", "insetos": "line"}),
        SafetySettings(id="b", levels={"sangue": "veil", "insetos": "ok"}),
    ])
    assert levels["sangue"] == "veil"
    assert levels["insetos"] == "line"
    assert levels["tortura"] == "ok"


def test_custom_topics_kept():
    levels = aggregate_levels([SafetySettings(id="a", levels={"palhacos": "not_with_me"})])
    assert levels["palhacos"] == "not_with_me"


def test_no_players_all_ok():
    assert set(aggregate_levels([]).values()) == {"ok"}


# ── X-card and pause ────────────────────────────────────────


@pytest.mark.asyncio
async def test_x_card_pauses_until_resolved(ctx, other_ctx):
    tools = SafetyTools(ctx)
    assert await tools.trigger_x_card("Cena pesada")
    state = await tools.state()
    assert state.is_paused
    assert state.x_card_triggered_by == ctx.user.uid
    assert state.x_card_reason == "Cena pesada"

    assert not await SafetyTools(other_ctx).trigger_x_card()
    assert not await SafetyTools(other_ctx).resolve_x_card()
    assert other_ctx.notices.pending[-1].title == "X-card"
    assert (await tools.state()).is_paused

    assert await tools.resolve_x_card()
    state = await tools.state()
    assert not state.is_paused
    assert state.x_card_triggered_by is None


@pytest.mark.asyncio
async def test_gm_resolves_x_card(ctx, gm_ctx):
    await SafetyTools(ctx).trigger_x_card()
    assert await SafetyTools(gm_ctx).resolve_x_card()
    assert not (await SafetyTools(ctx).state()).is_paused


@pytest.mark.asyncio
async def test_resolve_without_x_card(ctx):
    assert not await SafetyTools(ctx).resolve_x_card()


@pytest.mark.asyncio
async def test_pause_toggle_gm_only(ctx, gm_ctx):
    assert await SafetyTools(ctx).toggle_pause() is None
    assert ctx.notices.pending[-1].title == "GM only"

    tools = SafetyTools(gm_ctx)
    assert await tools.toggle_pause() is True
    assert await tools.toggle_pause() is False


@pytest.mark.asyncio
async def test_pause_blocked_while_x_card_up(ctx, gm_ctx):
    await SafetyTools(ctx).trigger_x_card()
    assert await SafetyTools(gm_ctx).toggle_pause() is None
    assert gm_ctx.notices.pending[-1].title == "X-card active"
    assert (await SafetyTools(ctx).state()).is_paused


# ── comfort levels ──────────────────────────────────────────


@pytest.mark.asyncio
async def test_levels_merge_per_player(ctx, other_ctx):
    mine = SafetyTools(ctx)
    assert await mine.set_my_level("sangue", "stage")
    assert await mine.set_my_level("insetos", "line")
    assert await SafetyTools(other_ctx).set_my_level("sangue", "veil")

    settings = {s.id: s.levels for s in await mine.settings()}
    assert settings[ctx.user.uid] == {"sangue": "stage", "insetos": "line"}
    levels = await mine.aggregated_levels()
    assert (levels["sangue"], levels["insetos"]) == ("veil", "line")


@pytest.mark.asyncio
async def test_table_state_follows_safety(ctx):
    state = ctx.state
    assert not state.safety_state.is_paused
    await SafetyTools(ctx).trigger_x_card()
    assert state.safety_state.x_card_triggered_by == ctx.user.uid
    await SafetyTools(ctx).set_my_level("fome", "line")
    assert state.safety_levels["fome"] == "line"
