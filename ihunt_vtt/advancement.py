"""Closing an episode and the advancement slots it grants.

Closing is one transaction over the episode document and every
non-archived character of the campaign: the episode is marked closed and
each character gets one slot whose type follows how the episode ended
(see catalog.SLOT_FOR_CLOSE). Closing twice raises EpisodeClosed, so no
character is ever granted twice for the same episode.

A slot is spent once, by the character's owner or the GM, when the player
takes the advancement it pays for (skill increase, aspect rename...).
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from ihunt_vtt.catalog import SLOT_FOR_CLOSE
from ihunt_vtt.characters import CharacterRoster
from ihunt_vtt.errors import DocumentNotFound, EpisodeClosed
from ihunt_vtt.gamelog import GameLog
from ihunt_vtt.models import AdvancementSlot, ClosedAs, to_doc, utcnow
from ihunt_vtt.store import Query, Transaction

if TYPE_CHECKING:
    from ihunt_vtt.session import SessionContext

logger = logging.getLogger(__name__)


class Advancement:
    def __init__(self, ctx: SessionContext) -> None:
        self._ctx = ctx
        self._log = GameLog(ctx)

    async def close_episode(self, closed_as: ClosedAs = "episode") -> int | None:
        """GM only. Returns how many characters were granted a slot."""
        ctx = self._ctx
        if not await ctx.is_gm():
            ctx.notices.post("GM only", "Only the GM can close the episode.", level="warning")
            return None
        slot_type = SLOT_FOR_CLOSE[closed_as]
        query = Query(collection="characters", filters={"campaign_id": ctx.campaign_id})

        async def close(txn: Transaction) -> int:
            session = await txn.get(ctx.episode_path)
            if session is None:
                raise DocumentNotFound(ctx.episode_path)
            if session.get("status") == "closed":
                raise EpisodeClosed("This episode is already closed.")
            characters = [d for d in await txn.list(query) if not d.data.get("is_archived")]
            txn.update(ctx.episode_path, {
                "status": "closed",
                "closed_as": closed_as,
                "closed_at": utcnow().isoformat(),
            })
            for doc in characters:
                slot = AdvancementSlot(type=slot_type, granted_by=ctx.episode_id)
                slots = doc.data.get("advancement_slots") or []
                txn.update(doc.path, {"advancement_slots": [*slots, to_doc(slot) | {"id": slot.id}]})
            return len(characters)

        ok, granted = await ctx.transact("close the episode", close)
        if not ok:
            return None
        logger.info(f"Closed {ctx.episode_id} as {closed_as}: {granted} {slot_type} slots")
        await self._log.add(f"Episode closed ({closed_as}): {granted} advancement slots granted", "system")
        return granted

    async def use_slot(self, character_id: str, slot_id: str) -> AdvancementSlot | None:
        """Mark an unused slot as spent. Returns it, or None with a notice."""
        ctx = self._ctx
        if not await CharacterRoster(ctx).may_edit(character_id):
            return None
        path = ctx.character_path(character_id)

        async def spend(txn: Transaction) -> AdvancementSlot | None:
            data = await txn.get(path)
            if data is None:
                raise DocumentNotFound(path)
            slots = data.get("advancement_slots") or []
            for entry in slots:
                if entry.get("id") == slot_id and not entry.get("used"):
                    entry["used"] = True
                    txn.update(path, {"advancement_slots": slots})
                    return AdvancementSlot.model_validate(entry)
            return None

        ok, slot = await ctx.transact("use the advancement slot", spend)
        if ok and slot is None:
            ctx.notices.post("No such slot", "That slot does not exist or was already used.", level="warning")
        return slot if ok else None
