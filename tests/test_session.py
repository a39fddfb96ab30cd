import pytest

from ihunt_vtt.config import TableConfig
from ihunt_vtt.errors import DocumentNotFound
from ihunt_vtt.models import Identity
from ihunt_vtt.session import SessionContext


@pytest.mark.asyncio
async def test_open_creates_episode_and_campaign(store):
    user = Identity(uid="u1", display_name="Ana")
    ctx = await SessionContext.open(store, user, "ep-9", "camp-9", config=TableConfig(default_gm_fate_pool=4))
    episode = await store.get("episodes/ep-9")
    assert episode["campaign_id"] == "camp-9"
    assert episode["gm_fate_pool"] == 4
    assert episode["gm_id"] is None
    assert await store.get("campaigns/camp-9") is not None
    await ctx.close()


@pytest.mark.asyncio
async def test_existing_episode_decides_campaign(ctx, store, other_player):
    other = await SessionContext.open(store, other_player, ctx.episode_id, "some-other-campaign")
    assert other.campaign_id == ctx.campaign_id
    await other.close()


@pytest.mark.asyncio
async def test_open_missing_episode_without_campaign(store, player):
    with pytest.raises(DocumentNotFound):
        await SessionContext.open(store, player, "nowhere")


@pytest.mark.asyncio
async def test_open_keeps_existing_campaign(store, player):
    await store.set("campaigns/c", {"name": "Noites de São Paulo", "theme_aspects": ["Chuva ácida"]})
    await SessionContext.open(store, player, "e", "c")
    assert (await store.get("campaigns/c"))["theme_aspects"] == ["Chuva ácida"]


@pytest.mark.asyncio
async def test_close_tears_down_state(ctx, store):
    state = ctx.state
    assert state.session.running
    await ctx.close()
    assert ctx.closed
    assert not state.session.running


@pytest.mark.asyncio
async def test_context_manager(store, player):
    async with await SessionContext.open(store, player, "e", "c") as ctx:
        assert not await ctx.is_gm()
        assert await ctx.seated_character_id() is None
    assert ctx.closed
