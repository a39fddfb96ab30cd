"""Per-episode game log (append-only).

Entries are written with a client timestamp and read back sorted by it; the
store gives no cross-document ordering, so arrival order means nothing.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from ihunt_vtt.dice import OUTCOME_LABELS, ladder_label
from ihunt_vtt.errors import StoreError
from ihunt_vtt.models import DiceResult, LogEntry, LogType, to_doc

if TYPE_CHECKING:
    from ihunt_vtt.session import SessionContext

logger = logging.getLogger(__name__)


class GameLog:
    def __init__(self, ctx: SessionContext) -> None:
        self._ctx = ctx

    async def add(
        self,
        message: str,
        type: LogType = "system",
        *,
        character: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> LogEntry | None:
        """Append one entry. Store failures are logged and swallowed."""
        entry = LogEntry(
            message=message,
            type=type,
            character=character or self._ctx.user.display_name or "Sistema",
            details=details,
        )
        try:
            await self._ctx.store.set(
                f"{self._ctx.logs_path}/{entry.id}", to_doc(entry)
            )
        except StoreError as e:
            logger.warning(f"Could not write log entry '{message}': {e}")
            return None
        return entry

    async def record_roll(self, result: DiceResult) -> LogEntry | None:
        details = result.model_dump(mode="json")
        details["kind"] = "roll"
        details["ladder_label"] = ladder_label(result.total)
        if result.outcome:
            details["outcome_label"] = OUTCOME_LABELS[result.outcome]
        what = result.skill or "the dice"
        entry = await self.add(
            f"{result.character or 'Someone'} rolled {what}: {result.total:+d} ({ladder_label(result.total)})",
            "roll",
            character=result.character or None,
            details=details,
        )
        if entry is None:
            self._ctx.notices.post(
                "Roll not saved",
                "The roll happened but could not be written to the game log.",
                level="error",
            )
        return entry

    async def entries(self) -> list[LogEntry]:
        """One-shot read of the whole log, oldest first."""
        docs = await self._ctx.store.list(self._ctx.logs_path)
        entries = [LogEntry.model_validate({**d.data, "id": d.id}) for d in docs]
        return sorted(entries, key=lambda e: (e.timestamp, e.id))
