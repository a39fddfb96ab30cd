"""Realtime subscription cache.

A Mirror owns the local snapshot of one store target (a document, a
collection or a Query). The store pushes a fresh snapshot after every commit
touching the target; the mirror parses it into models, replaces its items and
tells its listeners. Readers only ever see whole snapshots.

Mirrors never write. Mutators go through the store (increments and
transactions), and the change comes back here through the subscription.

On a subscription failure (revoked access, lost connection) the mirror
clears to empty, keeps the error, posts one notice and stops. There is no
retry loop; call start() again to resubscribe.

TableState bundles the mirrors one table view needs and derives the common
read-only views (active scene, party, my character).
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Callable, Generic, TypeVar

from pydantic import BaseModel, ValidationError

from ihunt_vtt.errors import StoreError
from ihunt_vtt.models import (
    ActiveNPC,
    Archetype,
    Campaign,
    Character,
    GameSession,
    LogEntry,
    Scene,
    SafetySettings,
    SafetyState,
    Seat,
    from_doc,
)
from ihunt_vtt.notices import NoticeBoard
from ihunt_vtt.safety import aggregate_levels
from ihunt_vtt.store import Document, DocumentStore, Query, Target

if TYPE_CHECKING:
    from ihunt_vtt.session import SessionContext

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)
Listener = Callable[[], None]


class Mirror(Generic[M]):
    def __init__(
        self,
        store: DocumentStore,
        target: Target,
        model: type[M],
        *,
        sort_key: Callable[[M], Any] | None = None,
        notices: NoticeBoard | None = None,
        label: str = "",
        on_lost: Callable[[str, StoreError], None] | None = None,
    ) -> None:
        self._store = store
        self._target = target
        self._model = model
        self._sort_key = sort_key
        self._notices = notices
        self._label = label or model.__name__
        self._on_lost = on_lost
        self._items: tuple[M, ...] = ()
        self._listeners: list[Listener] = []
        self._unsubscribe: Callable[[], None] | None = None
        self.error: StoreError | None = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> "Mirror[M]":
        if self._unsubscribe is None:
            self.error = None
            unsubscribe = self._store.subscribe(
                self._target, self._on_change, self._on_error
            )
            # a subscription refused up front has already failed
            self._unsubscribe = unsubscribe if self.error is None else None
        return self

    def stop(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    @property
    def running(self) -> bool:
        return self._unsubscribe is not None

    def __enter__(self) -> "Mirror[M]":
        return self.start()

    def __exit__(self, *exc: object) -> None:
        self.stop()

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @property
    def items(self) -> tuple[M, ...]:
        return self._items

    @property
    def first(self) -> M | None:
        return self._items[0] if self._items else None

    def get(self, item_id: str) -> M | None:
        for item in self._items:
            if getattr(item, "id", None) == item_id:
                return item
        return None

    def __len__(self) -> int:
        return len(self._items)

    def add_listener(self, listener: Listener) -> Callable[[], None]:
        self._listeners.append(listener)

        def remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    # ------------------------------------------------------------------
    # Push handlers
    # ------------------------------------------------------------------

    def _on_change(self, docs: list[Document]) -> None:
        items: list[M] = []
        for doc in docs:
            try:
                items.append(from_doc(self._model, doc.id, doc.data))
            except ValidationError as e:
                logger.warning(f"Skipping malformed {self._label} {doc.path}: {e}")
        if self._sort_key is not None:
            items.sort(key=self._sort_key)
        self._items = tuple(items)
        self._emit()

    def _on_error(self, error: StoreError) -> None:
        logger.warning(f"{self._label} subscription lost: {error}")
        self._items = ()
        self._unsubscribe = None
        first_failure = self.error is None
        self.error = error
        if first_failure and self._on_lost is not None:
            self._on_lost(self._label, error)
        elif first_failure and self._notices is not None:
            self._notices.post(
                "Connection lost",
                f"Lost access to {self._label}. Rejoin to keep playing.",
                level="error",
            )
        self._emit()

    def _emit(self) -> None:
        for listener in list(self._listeners):
            try:
                listener()
            except Exception:
                logger.exception("%s listener failed", self._label)


class TableState:
    """Every mirror a table view reads, scoped to one session context.

    Losing access usually fails several mirrors at once; the table posts a
    single notice for the first one and records which mirrors went down.
    """

    def __init__(self, ctx: SessionContext) -> None:
        store = ctx.store
        self._notices = ctx.notices
        self.error: StoreError | None = None
        self.lost: list[str] = []

        def mirror(target: Target, model: type[M], label: str, sort_key=None) -> Mirror[M]:
            return Mirror(store, target, model, sort_key=sort_key, label=label, on_lost=self._lost)

        self.session = mirror(ctx.episode_path, GameSession, "session")
        self.campaign = mirror(ctx.campaign_path, Campaign, "campaign")
        self.characters = mirror(
            Query(collection="characters", filters={"campaign_id": ctx.campaign_id}),
            Character, "characters", sort_key=lambda c: c.name,
        )
        self.npcs = mirror(
            Query(collection="activeNpcs", filters={"campaign_id": ctx.campaign_id}),
            ActiveNPC, "NPCs", sort_key=lambda n: n.name,
        )
        self.scenes = mirror(ctx.scenes_path, Scene, "scenes", sort_key=lambda s: (s.order, s.name))
        self.seats = mirror(ctx.seats_path, Seat, "seats")
        self.logs = mirror(ctx.logs_path, LogEntry, "game log", sort_key=lambda e: (e.timestamp, e.id))
        self.archetypes = mirror(ctx.archetypes_path, Archetype, "archetypes", sort_key=lambda a: a.name)
        self.safety = mirror(ctx.safety_state_path, SafetyState, "safety")
        self.safety_settings = mirror(ctx.safety_settings_path, SafetySettings, "safety settings")
        self._mirrors: list[Mirror[Any]] = [
            self.session, self.campaign, self.characters, self.npcs,
            self.scenes, self.seats, self.logs, self.archetypes,
            self.safety, self.safety_settings,
        ]

    def open(self) -> "TableState":
        for m in self._mirrors:
            m.start()
        return self

    def _lost(self, label: str, error: StoreError) -> None:
        self.lost.append(label)
        if self.error is not None:
            return
        self.error = error
        self._notices.post(
            "Connection lost",
            f"Lost access to the table ({label}). Rejoin to keep playing.",
            level="error",
        )

    def close(self) -> None:
        for m in self._mirrors:
            m.stop()

    def __enter__(self) -> "TableState":
        return self.open()

    def __exit__(self, *exc: object) -> None:
        self.close()

    def add_listener(self, listener: Listener) -> Callable[[], None]:
        removers = [m.add_listener(listener) for m in self._mirrors]

        def remove() -> None:
            for r in removers:
                r()

        return remove

    # ── Derived views ───────────────────────────────────────

    @property
    def game_session(self) -> GameSession | None:
        return self.session.first

    @property
    def active_scene(self) -> Scene | None:
        for scene in self.scenes.items:
            if scene.is_active and not scene.is_archived:
                return scene
        return None

    @property
    def party(self) -> list[Character]:
        """Non-archived characters bound to this session."""
        session = self.game_session
        ids = set(session.character_ids) if session else set()
        return [c for c in self.characters.items if c.id in ids and not c.is_archived]

    @property
    def safety_state(self) -> SafetyState:
        return self.safety.first or SafetyState()

    @property
    def safety_levels(self) -> dict[str, str]:
        return aggregate_levels(self.safety_settings.items)

    def character_of(self, uid: str) -> Character | None:
        """The character the given user currently occupies, if any."""
        for seat in self.seats.items:
            if seat.owner_id == uid:
                return self.characters.get(seat.id)
        return None
