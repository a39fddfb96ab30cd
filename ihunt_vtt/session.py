"""Session context: the explicit handle every mutator is bound to.

A SessionContext carries who is acting (Identity), where (campaign and
episode ids), against which store, with which table config, and where
user-facing notices go. There is no module-level session: callers open a
context, pass it around, and close it on logout.

    async with await SessionContext.open(store, user, "ep-1", campaign_id="c-1") as ctx:
        ledger = FateLedger(ctx)
        ...

open() creates the episode and campaign documents on first access (inside a
transaction, so two clients opening at once cannot clobber each other).
The TableState cache is created lazily the first time `ctx.state` is read
and torn down by close().
"""

from __future__ import annotations

import logging
from typing import Awaitable, Callable, TypeVar

from ihunt_vtt.cache import TableState
from ihunt_vtt.config import TableConfig
from ihunt_vtt.errors import ConflictError, DocumentNotFound, StoreError
from ihunt_vtt.models import Campaign, GameSession, Identity, to_doc
from ihunt_vtt.notices import NoticeBoard
from ihunt_vtt.store import DocumentStore, Transaction, join

logger = logging.getLogger(__name__)

T = TypeVar("T")


class SessionContext:
    def __init__(
        self,
        store: DocumentStore,
        user: Identity,
        campaign_id: str,
        episode_id: str,
        *,
        config: TableConfig | None = None,
        notices: NoticeBoard | None = None,
    ) -> None:
        self.store = store
        self.user = user
        self.campaign_id = campaign_id
        self.episode_id = episode_id
        self.config = config or TableConfig()
        self.notices = notices or NoticeBoard()
        self._state: TableState | None = None
        self.closed = False

    @classmethod
    async def open(
        cls,
        store: DocumentStore,
        user: Identity,
        episode_id: str,
        campaign_id: str | None = None,
        *,
        config: TableConfig | None = None,
        notices: NoticeBoard | None = None,
    ) -> "SessionContext":
        """Bind to an episode, creating it (and its campaign) if missing.

        An existing episode decides the campaign; `campaign_id` is only
        needed to create a new one.
        """
        config = config or TableConfig()
        episode_path = join("episodes", episode_id)

        async def ensure(txn: Transaction) -> str:
            existing = await txn.get(episode_path)
            if existing is not None:
                return existing.get("campaign_id") or campaign_id or ""
            if not campaign_id:
                raise DocumentNotFound(episode_path)
            campaign_path = join("campaigns", campaign_id)
            if await txn.get(campaign_path) is None:
                txn.set(campaign_path, to_doc(Campaign(id=campaign_id)))
            session = GameSession(
                id=episode_id,
                campaign_id=campaign_id,
                gm_fate_pool=config.default_gm_fate_pool,
            )
            txn.set(episode_path, to_doc(session))
            logger.info(f"Created episode {episode_id} in campaign {campaign_id}")
            return campaign_id

        resolved = await store.run_transaction(ensure)
        return cls(store, user, resolved, episode_id, config=config, notices=notices)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def state(self) -> TableState:
        if self._state is None:
            self._state = TableState(self).open()
        return self._state

    async def close(self) -> None:
        if self._state is not None:
            self._state.close()
            self._state = None
        self.closed = True

    async def __aenter__(self) -> "SessionContext":
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()

    # ------------------------------------------------------------------
    # Paths
    # ------------------------------------------------------------------

    @property
    def campaign_path(self) -> str:
        return join("campaigns", self.campaign_id)

    @property
    def archetypes_path(self) -> str:
        return join(self.campaign_path, "archetypes")

    @property
    def episode_path(self) -> str:
        return join("episodes", self.episode_id)

    @property
    def scenes_path(self) -> str:
        return join(self.episode_path, "scenes")

    @property
    def seats_path(self) -> str:
        return join(self.episode_path, "seats")

    @property
    def logs_path(self) -> str:
        return join(self.episode_path, "logs")

    @property
    def safety_state_path(self) -> str:
        return join(self.episode_path, "safety", "state")

    @property
    def safety_settings_path(self) -> str:
        return join(self.campaign_path, "safety_settings")

    def scene_path(self, scene_id: str) -> str:
        return join(self.scenes_path, scene_id)

    def seat_path(self, character_id: str) -> str:
        return join(self.seats_path, character_id)

    @staticmethod
    def character_path(character_id: str) -> str:
        return join("characters", character_id)

    @staticmethod
    def npc_path(npc_id: str) -> str:
        return join("activeNpcs", npc_id)

    # ------------------------------------------------------------------
    # Reads shared by mutators
    # ------------------------------------------------------------------

    async def session(self) -> GameSession | None:
        data = await self.store.get(self.episode_path)
        return GameSession.model_validate({**data, "id": self.episode_id}) if data else None

    async def is_gm(self) -> bool:
        session = await self.session()
        return session is not None and session.gm_id == self.user.uid

    async def seated_character_id(self) -> str | None:
        """Id of the character this user occupies in the episode, if any."""
        for doc in await self.store.list(self.seats_path):
            if doc.data.get("owner_id") == self.user.uid:
                return doc.id
        return None

    # ------------------------------------------------------------------
    # Failure reporting at the mutator boundary
    # ------------------------------------------------------------------

    def conflict(self, error: ConflictError) -> None:
        logger.info(f"{self.user.uid}: {error.title}: {error}")
        self.notices.post(error.title, str(error), level="warning")

    def failure(self, action: str, error: StoreError) -> None:
        logger.exception(f"Failed to {action}: {error}")
        self.notices.post(f"Could not {action}", str(error), level="error")

    async def attempt(self, action: str, op: Awaitable[T]) -> tuple[bool, T | None]:
        """Await a store write. Missing documents propagate; other store
        errors are reported and swallowed. Returns (succeeded, result).
        """
        try:
            return True, await op
        except DocumentNotFound:
            raise
        except StoreError as e:
            self.failure(action, e)
            return False, None

    async def transact(
        self, action: str, fn: Callable[[Transaction], Awaitable[T]]
    ) -> tuple[bool, T | None]:
        """run_transaction() with conflicts reported (then re-raised)."""
        try:
            return await self.attempt(action, self.store.run_transaction(fn))
        except ConflictError as e:
            self.conflict(e)
            raise
