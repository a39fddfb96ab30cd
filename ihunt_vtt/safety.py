"""Table safety tools: X-card, pause and per-player comfort levels.

The episode keeps one safety document (`episodes/{id}/safety/state`).
Anyone at the table can raise the X-card; it pauses the game until the
player who raised it or the GM resolves it. While the X-card is up the GM
cannot unpause.

Comfort levels are set per player and per topic in the campaign
(`campaigns/{id}/safety_settings/{uid}`). The table sees, for each topic,
the most severe level any player set.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Iterable

from ihunt_vtt.catalog import SAFETY_LEVELS, SAFETY_TOPICS
from ihunt_vtt.models import SafetyLevel, SafetySettings, SafetyState, from_doc, to_doc, utcnow
from ihunt_vtt.store import Transaction, join

if TYPE_CHECKING:
    from ihunt_vtt.session import SessionContext

logger = logging.getLogger(__name__)


def aggregate_levels(settings: Iterable[SafetySettings]) -> dict[str, SafetyLevel]:
    """Worst level per topic across players. Unset topics are "ok"."""
    levels: dict[str, SafetyLevel] = {topic: "ok" for topic in SAFETY_TOPICS}
    for player in settings:
        for topic, level in player.levels.items():
            if topic not in levels or SAFETY_LEVELS[level][1] > SAFETY_LEVELS[levels[topic]][1]:
                levels[topic] = level
    return levels


class SafetyTools:
    def __init__(self, ctx: SessionContext) -> None:
        self._ctx = ctx

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def state(self) -> SafetyState:
        data = await self._ctx.store.get(self._ctx.safety_state_path)
        return SafetyState.model_validate(data) if data else SafetyState()

    async def settings(self) -> list[SafetySettings]:
        docs = await self._ctx.store.list(self._ctx.safety_settings_path)
        return [from_doc(SafetySettings, d.id, d.data) for d in docs]

    async def aggregated_levels(self) -> dict[str, SafetyLevel]:
        return aggregate_levels(await self.settings())

    # ------------------------------------------------------------------
    # X-card and pause
    # ------------------------------------------------------------------

    async def trigger_x_card(self, reason: str | None = None) -> bool:
        """Pause the game under the X-card. Raising it again changes nothing."""
        ctx = self._ctx
        uid = ctx.user.uid

        def edit(state: SafetyState) -> SafetyState | None:
            if state.x_card_triggered_by:
                return None
            return state.model_copy(update={"is_paused": True, "x_card_triggered_by": uid, "x_card_reason": reason})

        if await self._edit("raise the X-card", edit) is None:
            ctx.notices.post("X-card", "The X-card is already up.", level="info")
            return False
        logger.info(f"X-card raised in {ctx.episode_id}")
        return True

    async def resolve_x_card(self) -> bool:
        """Lower the X-card and resume. The player who raised it or the GM."""
        ctx = self._ctx
        is_gm = await ctx.is_gm()
        refused = False

        def edit(state: SafetyState) -> SafetyState | None:
            nonlocal refused
            if not state.x_card_triggered_by:
                return None
            refused = state.x_card_triggered_by != ctx.user.uid and not is_gm
            if refused:
                return None
            return state.model_copy(update={"is_paused": False, "x_card_triggered_by": None, "x_card_reason": None})

        if await self._edit("lower the X-card", edit) is not None:
            return True
        if refused:
            ctx.notices.post("X-card", "Only the player who raised it or the GM can lower it.", level="warning")
        return False

    async def toggle_pause(self) -> bool | None:
        """GM only. Returns the new paused flag, or None when refused."""
        ctx = self._ctx
        if not await ctx.is_gm():
            ctx.notices.post("GM only", "Only the GM can pause the game.", level="warning")
            return None
        blocked = False

        def edit(state: SafetyState) -> SafetyState | None:
            nonlocal blocked
            blocked = bool(state.x_card_triggered_by)
            return None if blocked else state.model_copy(update={"is_paused": not state.is_paused})

        result = await self._edit("toggle the pause", edit)
        if blocked:
            ctx.notices.post("X-card active", "Resolve the X-card before resuming.", level="warning")
        return result.is_paused if result is not None else None

    # ------------------------------------------------------------------
    # Comfort levels
    # ------------------------------------------------------------------

    async def set_my_level(self, topic_id: str, level: SafetyLevel) -> bool:
        """Set the acting player's level for one topic, keeping the others."""
        ctx = self._ctx
        path = join(ctx.safety_settings_path, ctx.user.uid)

        async def merge(txn: Transaction) -> None:
            data = await txn.get(path) or {}
            levels = {**(data.get("levels") or {}), topic_id: level}
            txn.set(path, to_doc(SafetySettings(id=ctx.user.uid, levels=levels)))

        ok, _ = await ctx.attempt("save your safety level", ctx.store.run_transaction(merge))
        return ok

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _edit(self, action: str, edit) -> SafetyState | None:
        """Apply `edit(current) -> new state` in a transaction; None writes nothing."""
        ctx = self._ctx
        path = ctx.safety_state_path

        async def apply(txn: Transaction) -> SafetyState | None:
            data = await txn.get(path)
            updated = edit(SafetyState.model_validate(data) if data else SafetyState())
            if updated is None:
                return None
            updated = updated.model_copy(update={"updated_at": utcnow()})
            txn.set(path, to_doc(updated))
            return updated

        ok, state = await ctx.attempt(action, ctx.store.run_transaction(apply))
        return state if ok else None
