import asyncio

import pytest

from realtyshare.core.errors import DuplicateDocument, NotFoundError
from realtyshare.core.store import SERVER_TIMESTAMP, ArrayRemove, ArrayUnion, Increment


async def test_insert_rejects_existing_id(store):
    await store.insert("items", "a", {"n": 1})

    with pytest.raises(DuplicateDocument):
        await store.insert("items", "a", {"n": 2})

    assert (await store.get("items", "a"))["n"] == 1


async def test_update_is_compare_and_set(store):
    await store.insert("items", "a", {"status": "pending"})

    assert await store.update("items", "a", {"status": "done"}, expect={"status": "other"}) is None
    assert (await store.get("items", "a"))["status"] == "pending"

    updated = await store.update("items", "a", {"status": "done"}, expect={"status": "pending"})
    assert updated["status"] == "done"


async def test_update_and_delete_of_missing_document(store):
    assert await store.update("items", "missing", {"n": 1}) is None
    assert await store.delete("items", "missing") is False


async def test_delete_with_expectation(store):
    await store.insert("items", "a", {"status": "friends"})

    assert await store.delete("items", "a", expect={"status": "pending"}) is False
    assert await store.delete("items", "a", expect={"status": "friends"}) is True
    assert await store.get("items", "a") is None


async def test_field_transforms(store):
    await store.insert("items", "a", {"tags": ["x"], "count": 1})

    await store.update("items", "a", {"tags": ArrayUnion("x", "y"), "count": Increment(2)})
    doc = await store.get("items", "a")
    assert doc["tags"] == ["x", "y"]
    assert doc["count"] == 3

    await store.update("items", "a", {"tags": ArrayRemove("x"), "count": Increment(-1)})
    doc = await store.get("items", "a")
    assert doc["tags"] == ["y"]
    assert doc["count"] == 2


async def test_server_timestamps_increase(store):
    for doc_id in ("a", "b", "c"):
        await store.insert("items", doc_id, {"at": SERVER_TIMESTAMP})

    stamps = [doc["at"] for doc in await store.query("items", order_by="at")]
    assert stamps == sorted(stamps)
    assert len(set(stamps)) == 3


async def test_set_overwrites_unless_merge(store):
    await store.set("items", "a", {"x": 1, "y": 2})
    await store.set("items", "a", {"x": 3}, merge=True)
    assert await store.get("items", "a") == {"id": "a", "x": 3, "y": 2}

    await store.set("items", "a", {"x": 4})
    assert await store.get("items", "a") == {"id": "a", "x": 4}


async def test_batch_applies_nothing_when_a_precondition_fails(store):
    batch = store.batch().insert("items", "a", {"n": 1}).update("items", "missing", {"n": 2})

    with pytest.raises(NotFoundError):
        await batch.commit()

    assert await store.get("items", "a") is None


async def test_batch_shares_one_timestamp(store):
    await store.insert("rooms", "r", {"last": None})

    message, room = await (
        store.batch()
        .insert("messages", "m", {"at": SERVER_TIMESTAMP})
        .update("rooms", "r", {"last": SERVER_TIMESTAMP})
        .commit()
    )

    assert message["at"] == room["last"]


async def test_query_filters_and_ordering(store):
    await store.insert("edges", "1", {"participants": ["a", "b"], "n": 3})
    await store.insert("edges", "2", {"participants": ["a", "c"], "n": 1})
    await store.insert("edges", "3", {"participants": ["b", "c"], "n": 2})

    docs = await store.query("edges", contains={"participants": "a"}, order_by="n")
    assert [doc["id"] for doc in docs] == ["2", "1"]

    docs = await store.query("edges", order_by="n", descending=True, limit=2)
    assert [doc["id"] for doc in docs] == ["1", "3"]

    docs = await store.query("edges", where={"n": 2})
    assert [doc["id"] for doc in docs] == ["3"]


async def test_returned_documents_are_copies(store):
    await store.insert("items", "a", {"tags": ["x"]})

    doc = await store.get("items", "a")
    doc["tags"].append("y")

    assert (await store.get("items", "a"))["tags"] == ["x"]


async def test_watch_emits_snapshot_then_changes(store):
    live = store.watch("items", where={"kind": "keep"}, order_by="n")

    assert await asyncio.wait_for(live.__anext__(), 1) == []

    await store.insert("items", "skip", {"kind": "drop", "n": 0})
    await store.insert("items", "a", {"kind": "keep", "n": 1})

    snapshot = await asyncio.wait_for(live.__anext__(), 1)
    assert [doc["id"] for doc in snapshot] == ["a"]

    live.cancel()
    assert store.hub.listener_count == 0


async def test_watch_document_reports_deletion(store):
    await store.insert("items", "a", {"n": 1})
    live = store.watch_document("items", "a")

    assert (await asyncio.wait_for(live.__anext__(), 1))["n"] == 1

    await store.delete("items", "a")
    assert await asyncio.wait_for(live.__anext__(), 1) is None

    live.cancel()
