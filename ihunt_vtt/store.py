"""Document store: the single source of truth shared by every client.

Paths are slash-separated. An even number of segments names a document
("characters/abc", "episodes/ep1/scenes/s1"); an odd number names a
collection ("characters", "episodes/ep1/scenes").

The store offers exactly two concurrency-safe write patterns:

    increment()        field-level atomic add, no read-modify-write
    run_transaction()  optimistic all-or-nothing multi-document commit

Everything else (set/update/delete) is last-writer-wins on the fields it
touches.

Subscriptions push a full snapshot of their target (one document, a
collection, or an equality-filtered Query) to `on_change` after every commit
that touches it, and once immediately on subscribe. A failed subscription
calls `on_error` once and is dropped.

Two implementations:

    MemoryStore    in-process; used by tests and as the base class.
    JsonFileStore  MemoryStore that writes each committed document to
                     {base}/{path}.json and loads them back at start-up.
"""

from __future__ import annotations

import asyncio
import copy
import json
import logging
from pathlib import Path
from typing import Any, Awaitable, Callable, Protocol, TypeVar

from pydantic import BaseModel, ConfigDict, Field

from ihunt_vtt.errors import (
    DocumentNotFound,
    PermissionDenied,
    StoreError,
    TransactionAborted,
)
from ihunt_vtt.models import new_id

logger = logging.getLogger(__name__)

T = TypeVar("T")


# ---------------------------------------------------------------------------
# Paths, documents and queries
# ---------------------------------------------------------------------------

def join(*parts: str) -> str:
    return "/".join(p.strip("/") for p in parts)


def parent(path: str) -> str:
    return path.rsplit("/", 1)[0] if "/" in path else ""


def is_document_path(path: str) -> bool:
    segments = [s for s in path.split("/") if s]
    return bool(segments) and len(segments) % 2 == 0


class Document(BaseModel):
    path: str
    data: dict[str, Any]

    @property
    def id(self) -> str:
        return self.path.rsplit("/", 1)[-1]


class Query(BaseModel):
    """Equality-filtered view of one collection."""

    model_config = ConfigDict(frozen=True)

    collection: str
    filters: dict[str, Any] = Field(default_factory=dict)

    def matches(self, path: str, data: dict[str, Any]) -> bool:
        if parent(path) != self.collection:
            return False
        return all(data.get(k) == v for k, v in self.filters.items())


Target = str | Query
OnChange = Callable[[list[Document]], None]
OnError = Callable[[StoreError], None]
Unsubscribe = Callable[[], None]


def _target_root(target: Target) -> str:
    return target.collection if isinstance(target, Query) else target


# ---------------------------------------------------------------------------
# Protocols: every store implementation must match these signatures
# ---------------------------------------------------------------------------

class Transaction(Protocol):
    async def get(self, path: str) -> dict[str, Any] | None: ...
    async def list(self, target: Target) -> list[Document]: ...
    def set(self, path: str, data: dict[str, Any]) -> None: ...
    def update(self, path: str, fields: dict[str, Any]) -> None: ...
    def delete(self, path: str) -> None: ...


class DocumentStore(Protocol):
    async def get(self, path: str) -> dict[str, Any] | None: ...
    async def list(self, target: Target) -> list[Document]: ...
    async def set(self, path: str, data: dict[str, Any]) -> None: ...
    async def update(self, path: str, fields: dict[str, Any]) -> None: ...
    async def delete(self, path: str) -> None: ...
    async def add(self, collection: str, data: dict[str, Any]) -> str: ...
    async def increment(self, path: str, field: str, delta: int) -> None: ...
    async def run_transaction(self, fn: Callable[[Transaction], Awaitable[T]]) -> T: ...
    def subscribe(
        self, target: Target, on_change: OnChange, on_error: OnError | None = None
    ) -> Unsubscribe: ...


# ---------------------------------------------------------------------------
# MemoryStore
# ---------------------------------------------------------------------------

# (op, path, payload); op is "set" | "update" | "delete" | "increment"
Write = tuple[str, str, dict[str, Any] | None]


class _Subscription:
    def __init__(self, target: Target, on_change: OnChange, on_error: OnError | None) -> None:
        self.target = target
        self.on_change = on_change
        self.on_error = on_error
        self.active = True

    def watches(self, path: str) -> bool:
        if isinstance(self.target, Query):
            return parent(path) == self.target.collection
        if is_document_path(self.target):
            return path == self.target
        return parent(path) == self.target


class MemoryTransaction:
    """Buffers writes and remembers the version of everything it read.

    Reads must come before writes, as with the remote backend.
    """

    def __init__(self, store: MemoryStore) -> None:
        self._store = store
        self._doc_versions: dict[str, int] = {}
        self._collection_versions: dict[str, int] = {}
        self._writes: list[Write] = []

    async def get(self, path: str) -> dict[str, Any] | None:
        self._check_read_phase()
        await asyncio.sleep(0)
        self._store._check_access(path)
        self._doc_versions[path] = self._store._versions.get(path, 0)
        data = self._store._docs.get(path)
        return copy.deepcopy(data) if data is not None else None

    async def list(self, target: Target) -> list[Document]:
        self._check_read_phase()
        await asyncio.sleep(0)
        root = _target_root(target)
        self._store._check_access(root)
        self._collection_versions[root] = self._store._collection_versions.get(root, 0)
        docs = self._store._snapshot(target)
        for doc in docs:
            self._doc_versions[doc.path] = self._store._versions.get(doc.path, 0)
        return docs

    def set(self, path: str, data: dict[str, Any]) -> None:
        self._writes.append(("set", path, copy.deepcopy(data)))

    def update(self, path: str, fields: dict[str, Any]) -> None:
        self._writes.append(("update", path, copy.deepcopy(fields)))

    def delete(self, path: str) -> None:
        self._writes.append(("delete", path, None))

    def _check_read_phase(self) -> None:
        if self._writes:
            raise StoreError("Transaction reads must happen before writes")

    def is_current(self) -> bool:
        store = self._store
        for path, version in self._doc_versions.items():
            if store._versions.get(path, 0) != version:
                return False
        for root, version in self._collection_versions.items():
            if store._collection_versions.get(root, 0) != version:
                return False
        return True


class MemoryStore:
    def __init__(self, max_attempts: int = 5) -> None:
        self._docs: dict[str, dict[str, Any]] = {}
        self._versions: dict[str, int] = {}
        self._collection_versions: dict[str, int] = {}
        self._subs: list[_Subscription] = []
        self._denied: set[str] = set()
        self._max_attempts = max_attempts

    # ------------------------------------------------------------------
    # Plain reads and writes
    # ------------------------------------------------------------------

    async def get(self, path: str) -> dict[str, Any] | None:
        await asyncio.sleep(0)
        self._check_access(path)
        data = self._docs.get(path)
        return copy.deepcopy(data) if data is not None else None

    async def list(self, target: Target) -> list[Document]:
        await asyncio.sleep(0)
        self._check_access(_target_root(target))
        return self._snapshot(target)

    async def set(self, path: str, data: dict[str, Any]) -> None:
        await self._write([("set", path, copy.deepcopy(data))])

    async def update(self, path: str, fields: dict[str, Any]) -> None:
        await self._write([("update", path, copy.deepcopy(fields))])

    async def delete(self, path: str) -> None:
        await self._write([("delete", path, None)])

    async def add(self, collection: str, data: dict[str, Any]) -> str:
        doc_id = new_id()
        await self.set(join(collection, doc_id), data)
        return doc_id

    async def increment(self, path: str, field: str, delta: int) -> None:
        await self._write([("increment", path, {field: delta})])

    async def _write(self, writes: list[Write]) -> None:
        await asyncio.sleep(0)
        for _, path, _ in writes:
            self._check_access(path)
        self._apply(writes)

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    async def run_transaction(self, fn: Callable[[Transaction], Awaitable[T]]) -> T:
        """Run `fn` until it commits against an unchanged read set.

        Exceptions raised by `fn` abort the transaction with no writes.
        """
        for attempt in range(1, self._max_attempts + 1):
            txn = MemoryTransaction(self)
            result = await fn(txn)
            if txn.is_current():
                for _, path, _ in txn._writes:
                    self._check_access(path)
                self._apply(txn._writes)
                return result
            logger.debug("transaction contention, retrying (attempt %d)", attempt)
        raise TransactionAborted(
            f"Transaction did not commit after {self._max_attempts} attempts"
        )

    # ------------------------------------------------------------------
    # Subscriptions
    # ------------------------------------------------------------------

    def subscribe(
        self, target: Target, on_change: OnChange, on_error: OnError | None = None
    ) -> Unsubscribe:
        sub = _Subscription(target, on_change, on_error)
        try:
            self._check_access(_target_root(target))
        except PermissionDenied as e:
            self._fail(sub, e)
            return lambda: None
        self._subs.append(sub)
        self._deliver(sub)

        def unsubscribe() -> None:
            sub.active = False
            if sub in self._subs:
                self._subs.remove(sub)

        return unsubscribe

    def revoke(self, prefix: str) -> None:
        """Deny access to everything under `prefix` and fail its subscribers."""
        self._denied.add(prefix)
        for sub in list(self._subs):
            if _target_root(sub.target).startswith(prefix):
                self._subs.remove(sub)
                self._fail(sub, PermissionDenied(_target_root(sub.target)))

    def grant(self, prefix: str) -> None:
        self._denied.discard(prefix)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _check_access(self, path: str) -> None:
        for prefix in self._denied:
            if path.startswith(prefix):
                raise PermissionDenied(path)

    def _snapshot(self, target: Target) -> list[Document]:
        if isinstance(target, Query):
            items = [
                (p, d) for p, d in self._docs.items() if target.matches(p, d)
            ]
        elif is_document_path(target):
            data = self._docs.get(target)
            items = [(target, data)] if data is not None else []
        else:
            items = [(p, d) for p, d in self._docs.items() if parent(p) == target]
        return [
            Document(path=p, data=copy.deepcopy(d)) for p, d in sorted(items)
        ]

    def _apply(self, writes: list[Write]) -> None:
        """Validate every write against staged state, then apply all of them."""
        staged: dict[str, dict[str, Any] | None] = {}

        def current(path: str) -> dict[str, Any] | None:
            return staged[path] if path in staged else self._docs.get(path)

        for op, path, payload in writes:
            if not is_document_path(path):
                raise StoreError(f"Not a document path: {path}")
            if op == "set":
                staged[path] = dict(payload or {})
            elif op == "delete":
                staged[path] = None
            else:
                existing = current(path)
                if existing is None:
                    raise DocumentNotFound(path)
                merged = dict(existing)
                for key, value in (payload or {}).items():
                    if op == "increment":
                        merged[key] = (merged.get(key) or 0) + value
                    else:
                        merged[key] = value
                staged[path] = merged

        for path, data in staged.items():
            existed = path in self._docs
            if data is None:
                self._docs.pop(path, None)
            else:
                self._docs[path] = data
            if existed != (data is not None):
                root = parent(path)
                self._collection_versions[root] = self._collection_versions.get(root, 0) + 1
            self._versions[path] = self._versions.get(path, 0) + 1
            logger.debug("commit %s %s", "delete" if data is None else "write", path)

        self._persist(staged)
        self._notify(list(staged))

    def _persist(self, staged: dict[str, dict[str, Any] | None]) -> None:
        """Hook for durable subclasses."""

    def _notify(self, paths: list[str]) -> None:
        for sub in list(self._subs):
            if sub.active and any(sub.watches(p) for p in paths):
                self._deliver(sub)

    def _deliver(self, sub: _Subscription) -> None:
        try:
            sub.on_change(self._snapshot(sub.target))
        except Exception:
            logger.exception("Subscriber for %s failed", _target_root(sub.target))

    def _fail(self, sub: _Subscription, error: StoreError) -> None:
        sub.active = False
        if sub.on_error is None:
            logger.warning(f"Subscription to {_target_root(sub.target)} failed: {error}")
            return
        try:
            sub.on_error(error)
        except Exception:
            logger.exception("Error handler for %s failed", _target_root(sub.target))


# ---------------------------------------------------------------------------
# JsonFileStore
# ---------------------------------------------------------------------------

class JsonFileStore(MemoryStore):
    """MemoryStore persisted as a tree of JSON files.

    Layout mirrors the paths:

        {base}/
          campaigns/{id}.json
          characters/{id}.json
          episodes/{id}.json
          episodes/{id}/scenes/{scene_id}.json
          ...
    """

    def __init__(self, base_path: Path, max_attempts: int = 5) -> None:
        super().__init__(max_attempts=max_attempts)
        self._base = base_path
        self._base.mkdir(parents=True, exist_ok=True)
        for file in sorted(self._base.rglob("*.json")):
            path = file.relative_to(self._base).with_suffix("").as_posix()
            if not is_document_path(path):
                continue
            self._docs[path] = json.loads(file.read_text())
            self._versions[path] = 1
        logger.debug("loaded %d documents from %s", len(self._docs), self._base)

    def _file(self, path: str) -> Path:
        return self._base / f"{path}.json"

    def _persist(self, staged: dict[str, dict[str, Any] | None]) -> None:
        for path, data in staged.items():
            file = self._file(path)
            if data is None:
                file.unlink(missing_ok=True)
                continue
            file.parent.mkdir(parents=True, exist_ok=True)
            file.write_text(json.dumps(data, indent=2))
