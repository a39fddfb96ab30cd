"""Fate point ledger.

Every change is a field-level atomic increment at the store, never a
read-modify-write, so concurrent spends cannot lose updates. No floor or
ceiling is enforced: a character can be driven below zero.

update_fate() is the bare ledger write. Requests made on behalf of a user
go through adjust(), which first checks that the user plays the character
or is the GM.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from ihunt_vtt.errors import DocumentNotFound

if TYPE_CHECKING:
    from ihunt_vtt.session import SessionContext

logger = logging.getLogger(__name__)


class FateLedger:
    def __init__(self, ctx: SessionContext) -> None:
        self._ctx = ctx

    async def update_fate(self, target_id: str, delta: int, is_character: bool = True) -> bool:
        """Add `delta` to a character's fate points or to the GM pool.

        Only the GM may touch the GM pool (`target_id` is ignored for it).
        Returns False, with a notice posted, when nothing was written.
        """
        ctx = self._ctx
        if is_character:
            path, field = ctx.character_path(target_id), "fate_points"
        else:
            if not await ctx.is_gm():
                ctx.notices.post(
                    "GM only", "Only the GM can change the GM fate pool.", level="warning"
                )
                return False
            path, field = ctx.episode_path, "gm_fate_pool"

        ok, _ = await ctx.attempt("update fate points", ctx.store.increment(path, field, delta))
        if ok:
            logger.debug("fate %+d on %s.%s", delta, path, field)
        return ok

    async def may_change(self, character_id: str) -> bool:
        """Owner, seated player or GM. Anyone else gets a notice."""
        ctx = self._ctx
        path = ctx.character_path(character_id)
        data = await ctx.store.get(path)
        if data is None:
            raise DocumentNotFound(path)
        if data.get("created_by") == ctx.user.uid or await ctx.seated_character_id() == character_id:
            return True
        if await ctx.is_gm():
            return True
        ctx.notices.post(
            "Not your character", "Only its player or the GM can change these fate points.",
            level="warning",
        )
        return False

    async def adjust(self, target_id: str, delta: int, is_character: bool = True) -> bool:
        """update_fate() on behalf of the acting user, with permissions checked."""
        if is_character and not await self.may_change(target_id):
            return False
        return await self.update_fate(target_id, delta, is_character)

    async def spend(self, character_id: str) -> bool:
        return await self.update_fate(character_id, -1)

    async def gain(self, character_id: str) -> bool:
        return await self.update_fate(character_id, 1)

    async def adjust_gm_pool(self, delta: int) -> bool:
        return await self.update_fate(self._ctx.episode_id, delta, is_character=False)
