"""GM claim and character seats, first writer wins.

Each claim reads the current holder inside a transaction and either aborts
with a typed conflict or binds atomically. Two users racing for the same
slot can never both succeed: the loser's transaction re-runs, sees the
winner and raises.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from ihunt_vtt.errors import CharacterInUse, DocumentNotFound, GMAlreadyAssigned
from ihunt_vtt.gamelog import GameLog
from ihunt_vtt.models import Seat, to_doc
from ihunt_vtt.store import Transaction

if TYPE_CHECKING:
    from ihunt_vtt.session import SessionContext

logger = logging.getLogger(__name__)


class RoleClaims:
    def __init__(self, ctx: SessionContext) -> None:
        self._ctx = ctx
        self._log = GameLog(ctx)

    async def claim_gm(self) -> bool:
        """Become the episode's GM. Claiming a seat you already hold is a no-op."""
        ctx = self._ctx
        uid = ctx.user.uid

        async def claim(txn: Transaction) -> bool:
            session = await txn.get(ctx.episode_path)
            if session is None:
                raise DocumentNotFound(ctx.episode_path)
            holder = session.get("gm_id")
            if holder == uid:
                return False
            if holder:
                raise GMAlreadyAssigned("Another user is already the GM of this episode.")
            txn.update(ctx.episode_path, {"gm_id": uid})
            return True

        ok, claimed = await ctx.transact("claim the GM seat", claim)
        if claimed:
            logger.info(f"{uid} claimed GM of {ctx.episode_id}")
            await self._log.add(f"{ctx.user.display_name or uid} is now the GM", "system")
        return ok

    async def join_as_player(self, character_id: str, force: bool = False) -> bool:
        """Occupy a character's seat and add it to the party.

        A seat held by someone else raises CharacterInUse. `force` lets the
        GM take over a held seat; it is ignored for everyone else.
        """
        ctx = self._ctx
        uid = ctx.user.uid
        character_path = ctx.character_path(character_id)
        seat_path = ctx.seat_path(character_id)

        async def sit(txn: Transaction) -> str:
            character = await txn.get(character_path)
            seat = await txn.get(seat_path)
            session = await txn.get(ctx.episode_path)
            if character is None:
                raise DocumentNotFound(character_path)
            if session is None:
                raise DocumentNotFound(ctx.episode_path)
            may_force = force and session.get("gm_id") == uid
            if seat and seat.get("owner_id") not in (None, uid) and not may_force:
                raise CharacterInUse(
                    f"{character.get('name')} is already played by {seat.get('owner_name') or 'another user'}."
                )
            txn.set(seat_path, to_doc(Seat(id=character_id, owner_id=uid, owner_name=ctx.user.display_name)))
            ids = session.get("character_ids") or []
            if character_id not in ids:
                txn.update(ctx.episode_path, {"character_ids": [*ids, character_id]})
            return character.get("name") or character_id

        ok, name = await ctx.transact("take the seat", sit)
        if ok:
            await self._log.add(f"{ctx.user.display_name or uid} joined as {name}", "system")
        return ok

    async def leave(self, character_id: str) -> bool:
        """Give up your own seat. The character stays in the party."""
        ctx = self._ctx
        seat_path = ctx.seat_path(character_id)

        async def stand(txn: Transaction) -> bool:
            seat = await txn.get(seat_path)
            if seat is None or seat.get("owner_id") != ctx.user.uid:
                return False
            txn.delete(seat_path)
            return True

        ok, left = await ctx.transact("leave the seat", stand)
        return ok and bool(left)
