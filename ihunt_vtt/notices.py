"""User-facing notices.

Mutators post a Notice whenever an action is refused or fails; the UI drains
or listens to the board and shows them. Nothing here renders anything.
"""

import logging
from typing import Callable

from ihunt_vtt.models import Notice

logger = logging.getLogger(__name__)

NoticeListener = Callable[[Notice], None]


class NoticeBoard:
    def __init__(self) -> None:
        self._notices: list[Notice] = []
        self._listeners: list[NoticeListener] = []

    def post(self, title: str, description: str = "", level: str = "info") -> Notice:
        notice = Notice(title=title, description=description, level=level)
        self._notices.append(notice)
        for listener in list(self._listeners):
            try:
                listener(notice)
            except Exception:
                logger.exception("Notice listener failed")
        return notice

    def listen(self, listener: NoticeListener) -> Callable[[], None]:
        self._listeners.append(listener)
        return lambda: self._listeners.remove(listener) if listener in self._listeners else None

    def drain(self) -> list[Notice]:
        """Return and forget every pending notice."""
        notices, self._notices = self._notices, []
        return notices

    @property
    def pending(self) -> list[Notice]:
        return list(self._notices)
