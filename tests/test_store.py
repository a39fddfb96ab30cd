"""Tests for the document store: writes, increments, transactions, subscriptions."""

import asyncio
import json

import pytest

from ihunt_vtt.errors import DocumentNotFound, PermissionDenied, StoreError, TransactionAborted
from ihunt_vtt.store import JsonFileStore, MemoryStore, Query, is_document_path, join


# ── Paths ───────────────────────────────────────────────────


def test_document_paths():
    assert is_document_path("characters/abc")
    assert is_document_path("episodes/e/scenes/s")
    assert not is_document_path("characters")
    assert not is_document_path("episodes/e/scenes")
    assert join("episodes", "e", "logs") == "episodes/e/logs"


# ── Plain operations ────────────────────────────────────────


@pytest.mark.asyncio
async def test_set_get_update_delete(store):
    await store.set("characters/a", {"name": "A", "fate_points": 1})
    await store.update("characters/a", {"fate_points": 2})
    assert await store.get("characters/a") == {"name": "A", "fate_points": 2}
    await store.delete("characters/a")
    assert await store.get("characters/a") is None


@pytest.mark.asyncio
async def test_get_returns_copy(store):
    await store.set("characters/a", {"skills": {"Hacker": 1}})
    data = await store.get("characters/a")
    data["skills"]["Hacker"] = 4
    assert (await store.get("characters/a"))["skills"]["Hacker"] == 1


@pytest.mark.asyncio
async def test_update_missing_raises(store):
    with pytest.raises(DocumentNotFound):
        await store.update("characters/nope", {"name": "x"})


@pytest.mark.asyncio
async def test_collection_path_rejected(store):
    with pytest.raises(StoreError):
        await store.set("characters", {"name": "x"})


@pytest.mark.asyncio
async def test_add_generates_id(store):
    doc_id = await store.add("episodes/e/logs", {"message": "hi"})
    assert await store.get(f"episodes/e/logs/{doc_id}") == {"message": "hi"}


@pytest.mark.asyncio
async def test_list_and_query(store):
    await store.set("characters/a", {"campaign_id": "c1"})
    await store.set("characters/b", {"campaign_id": "c2"})
    await store.set("characters/a/notes/n", {"campaign_id": "c1"})
    assert [d.id for d in await store.list("characters")] == ["a", "b"]
    assert [d.id for d in await store.list(Query(collection="characters", filters={"campaign_id": "c2"}))] == ["b"]


# ── Increment ───────────────────────────────────────────────


@pytest.mark.asyncio
async def test_increment_concurrent_no_lost_updates(store):
    await store.set("characters/a", {"fate_points": 3})
    await asyncio.gather(*(store.increment("characters/a", "fate_points", -1) for _ in range(5)))
    assert (await store.get("characters/a"))["fate_points"] == -2


@pytest.mark.asyncio
async def test_increment_missing_field_starts_at_zero(store):
    await store.set("episodes/e", {})
    await store.increment("episodes/e", "gm_fate_pool", 2)
    assert (await store.get("episodes/e"))["gm_fate_pool"] == 2


@pytest.mark.asyncio
async def test_increment_missing_document(store):
    with pytest.raises(DocumentNotFound):
        await store.increment("characters/nope", "fate_points", 1)


# ── Transactions ────────────────────────────────────────────


@pytest.mark.asyncio
async def test_transaction_commits_all(store):
    await store.set("a/1", {"v": 1})

    async def fn(txn):
        data = await txn.get("a/1")
        txn.update("a/1", {"v": data["v"] + 1})
        txn.set("a/2", {"v": 0})
        return "done"

    assert await store.run_transaction(fn) == "done"
    assert (await store.get("a/1"))["v"] == 2
    assert (await store.get("a/2"))["v"] == 0


@pytest.mark.asyncio
async def test_transaction_exception_writes_nothing(store):
    await store.set("a/1", {"v": 1})

    async def fn(txn):
        await txn.get("a/1")
        txn.update("a/1", {"v": 99})
        raise ValueError("abort")

    with pytest.raises(ValueError):
        await store.run_transaction(fn)
    assert (await store.get("a/1"))["v"] == 1


@pytest.mark.asyncio
async def test_transaction_failed_write_is_all_or_nothing(store):
    await store.set("a/1", {"v": 1})

    async def fn(txn):
        await txn.get("a/1")
        txn.update("a/1", {"v": 2})
        txn.update("a/missing", {"v": 2})

    with pytest.raises(DocumentNotFound):
        await store.run_transaction(fn)
    assert (await store.get("a/1"))["v"] == 1


@pytest.mark.asyncio
async def test_transaction_read_after_write_rejected(store):
    async def fn(txn):
        txn.set("a/1", {})
        await txn.get("a/1")

    with pytest.raises(StoreError):
        await store.run_transaction(fn)


@pytest.mark.asyncio
async def test_concurrent_read_modify_write_serializes():
    """Counter bumped by read-then-write transactions loses nothing."""
    async def bump(txn):
        data = await txn.get("a/1")
        txn.update("a/1", {"v": data["v"] + 1})

    big = MemoryStore(max_attempts=20)
    await big.set("a/1", {"v": 0})
    await asyncio.gather(*(big.run_transaction(bump) for _ in range(4)))
    assert (await big.get("a/1"))["v"] == 4


@pytest.mark.asyncio
async def test_transaction_retries_then_aborts():
    store = MemoryStore(max_attempts=3)
    await store.set("a/1", {"v": 0})
    attempts = []

    async def contended(txn):
        attempts.append(1)
        await txn.get("a/1")
        # someone else writes between our read and our commit, every time
        await store.increment("a/1", "v", 1)

    with pytest.raises(TransactionAborted):
        await store.run_transaction(contended)
    assert len(attempts) == 3


@pytest.mark.asyncio
async def test_collection_membership_tracked(store):
    """A document added to a listed collection invalidates the read."""
    runs = []

    async def fn(txn):
        docs = await txn.list("scenes")
        runs.append(len(docs))
        if len(runs) == 1:
            await store.set("scenes/new", {"name": "late"})
        txn.set("summary/s", {"count": len(docs)})

    await store.run_transaction(fn)
    assert runs == [0, 1]
    assert (await store.get("summary/s"))["count"] == 1


# ── Subscriptions ───────────────────────────────────────────


@pytest.mark.asyncio
async def test_subscribe_delivers_snapshot_immediately_and_on_commit(store):
    await store.set("characters/a", {"campaign_id": "c1", "name": "A"})
    seen = []
    unsubscribe = store.subscribe(
        Query(collection="characters", filters={"campaign_id": "c1"}),
        lambda docs: seen.append([d.id for d in docs]),
    )
    await store.set("characters/b", {"campaign_id": "c1", "name": "B"})
    await store.set("characters/z", {"campaign_id": "other"})
    unsubscribe()
    await store.set("characters/c", {"campaign_id": "c1"})
    assert seen[0] == ["a"]
    assert seen[1] == ["a", "b"]
    assert seen[-1] == ["a", "b"]
    assert all("c" not in ids for ids in seen)


@pytest.mark.asyncio
async def test_document_subscription_sees_delete(store):
    await store.set("episodes/e", {"gm_id": None})
    seen = []
    store.subscribe("episodes/e", lambda docs: seen.append(len(docs)))
    await store.delete("episodes/e")
    assert seen == [1, 0]


@pytest.mark.asyncio
async def test_transaction_notifies_once_with_final_state(store):
    await store.set("s/a", {"is_active": True})
    await store.set("s/b", {"is_active": False})
    snapshots = []
    store.subscribe("s", lambda docs: snapshots.append(sorted(d.id for d in docs if d.data["is_active"])))

    async def switch(txn):
        await txn.list("s")
        txn.update("s/a", {"is_active": False})
        txn.update("s/b", {"is_active": True})

    await store.run_transaction(switch)
    assert snapshots == [["a"], ["b"]]


@pytest.mark.asyncio
async def test_revoke_fails_subscribers_and_denies_access(store):
    errors = []
    store.subscribe("episodes/e/logs", lambda docs: None, errors.append)
    store.revoke("episodes/e")
    assert len(errors) == 1
    assert isinstance(errors[0], PermissionDenied)
    with pytest.raises(PermissionDenied):
        await store.list("episodes/e/logs")
    store.grant("episodes/e")
    assert await store.list("episodes/e/logs") == []


@pytest.mark.asyncio
async def test_subscribe_to_denied_target_fails_at_once(store):
    store.revoke("characters")
    errors = []
    store.subscribe("characters", lambda docs: None, errors.append)
    assert len(errors) == 1


@pytest.mark.asyncio
async def test_broken_subscriber_does_not_break_writes(store):
    def boom(docs):
        raise RuntimeError("render failed")

    store.subscribe("characters", boom)
    await store.set("characters/a", {"name": "A"})
    assert await store.get("characters/a") == {"name": "A"}


# ── JsonFileStore ───────────────────────────────────────────


@pytest.mark.asyncio
async def test_json_store_persists_and_reloads(tmp_path):
    store = JsonFileStore(tmp_path)
    await store.set("episodes/e/scenes/s1", {"name": "Beco"})
    await store.increment("episodes/e/scenes/s1", "order", 2)
    file = tmp_path / "episodes" / "e" / "scenes" / "s1.json"
    assert json.loads(file.read_text()) == {"name": "Beco", "order": 2}

    reloaded = JsonFileStore(tmp_path)
    assert await reloaded.get("episodes/e/scenes/s1") == {"name": "Beco", "order": 2}


@pytest.mark.asyncio
async def test_json_store_delete_removes_file(tmp_path):
    store = JsonFileStore(tmp_path)
    await store.set("characters/a", {"name": "A"})
    await store.delete("characters/a")
    assert not (tmp_path / "characters" / "a.json").exists()
