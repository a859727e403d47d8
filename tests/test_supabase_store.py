import asyncio

import pytest

from realtyshare.chat.rooms import ChatRoomDirectory, room_id_for
from realtyshare.core.errors import BackendError, DuplicateDocument, NotFoundError
from realtyshare.core.store import SERVER_TIMESTAMP, ArrayRemove, ArrayUnion, Increment
from realtyshare.core.supabase_store import SupabaseDocumentStore, pg_array_literal
from realtyshare.friendship.service import RelationshipEngine
from realtyshare.profiles.service import ProfileStore

from supabase_fakes import PROFILE_CASCADES, FakeSupabase, api_error


@pytest.fixture
def database():
    return FakeSupabase(cascades=PROFILE_CASCADES)


@pytest.fixture
def pg_store(database, hub):
    return SupabaseDocumentStore(database, hub)


@pytest.fixture
def pg_profiles(pg_store):
    return ProfileStore(pg_store)


async def _users(profiles, *uids):
    for uid in uids:
        await profiles.ensure_profile(uid, f"{uid}@example.com", uid.title())


def test_array_literal_quotes_elements():
    assert pg_array_literal([]) == "{}"
    assert pg_array_literal(["a_b", 'say "hi"', "x,y"]) == '{"a_b","say \\"hi\\"","x,y"}'


async def test_unique_violation_maps_to_duplicate_document(pg_store):
    await pg_store.insert("items", "a", {"n": 1})

    with pytest.raises(DuplicateDocument):
        await pg_store.insert("items", "a", {"n": 2})

    assert (await pg_store.get("items", "a"))["n"] == 1


async def test_other_postgrest_errors_map_to_backend_error(pg_store, database):
    database.failures["items"] = api_error("permission denied for table items", "42501")

    with pytest.raises(BackendError):
        await pg_store.get("items", "a")


async def test_guarded_update_with_stale_expectation_writes_nothing(pg_store):
    await pg_store.insert("items", "a", {"status": "pending"})

    assert await pg_store.update("items", "a", {"status": "done"}, expect={"status": "friends"}) is None
    assert (await pg_store.get("items", "a"))["status"] == "pending"


async def test_guarded_update_loses_to_a_concurrent_writer(pg_store, database):
    await pg_store.insert("items", "a", {"status": "pending"})
    database.before_update.append(lambda tables: tables["items"]["a"].update(status="friends"))

    result = await pg_store.update("items", "a", {"status": "done"}, expect={"status": "pending"})

    assert result is None
    assert (await pg_store.get("items", "a"))["status"] == "friends"


async def test_guarded_delete_of_changed_row_is_refused(pg_store):
    await pg_store.insert("items", "a", {"status": "friends"})

    assert await pg_store.delete("items", "a", expect={"status": "pending"}) is False
    assert await pg_store.delete("items", "a", expect={"status": "friends"}) is True
    assert await pg_store.get("items", "a") is None


async def test_array_union_keeps_a_concurrent_writers_element(pg_store, database):
    await pg_store.insert("items", "a", {"tags": ["x"]})
    database.before_update.append(lambda tables: tables["items"]["a"]["tags"].append("y"))

    updated = await pg_store.update("items", "a", {"tags": ArrayUnion("z")})

    assert updated["tags"] == ["x", "y", "z"]
    assert (await pg_store.get("items", "a"))["tags"] == ["x", "y", "z"]


async def test_array_remove_and_increment_retry_on_concurrent_change(pg_store, database):
    await pg_store.insert("items", "a", {"tags": ["x", "y"], "count": 1})

    def concurrent_writer(tables):
        tables["items"]["a"]["tags"].append("w")
        tables["items"]["a"]["count"] = 5

    database.before_update.append(concurrent_writer)
    updated = await pg_store.update("items", "a", {"tags": ArrayRemove("x"), "count": Increment(1)})

    assert updated["tags"] == ["y", "w"]
    assert updated["count"] == 6


async def test_transform_on_empty_array_column(pg_store):
    await pg_store.insert("items", "a", {"tags": None})

    updated = await pg_store.update("items", "a", {"tags": ArrayUnion("x")})
    assert updated["tags"] == ["x"]


async def test_strict_batch_stops_at_first_failing_write(pg_store):
    await pg_store.insert("items", "a", {"n": 1})

    batch = (
        pg_store.batch()
        .update("items", "a", {"n": 2})
        .update("items", "missing", {"n": 3})
        .insert("items", "b", {"n": 4})
    )
    with pytest.raises(NotFoundError):
        await batch.commit()

    # Writes before the failure stay applied on this backend.
    assert (await pg_store.get("items", "a"))["n"] == 2
    assert await pg_store.get("items", "b") is None


async def test_server_timestamps_come_from_the_database_clock(pg_store, database):
    await (
        pg_store.batch()
        .insert("items", "a", {"at": SERVER_TIMESTAMP})
        .insert("items", "b", {"at": SERVER_TIMESTAMP})
        .commit()
    )

    assert database.rpc_calls == ["server_now"]
    assert (await pg_store.get("items", "a"))["at"] == "2024-01-01T00:00:01+00:00"
    assert (await pg_store.get("items", "b"))["at"] == "2024-01-01T00:00:01+00:00"


async def test_writes_without_timestamps_skip_the_clock(pg_store, database):
    await pg_store.insert("items", "a", {"n": 1})
    await pg_store.update("items", "a", {"n": Increment(1)})

    assert database.rpc_calls == []


async def test_query_filters_order_and_limit(pg_store):
    await pg_store.insert("items", "a", {"owner": "u1", "tags": ["x"], "rank": 2})
    await pg_store.insert("items", "b", {"owner": "u1", "tags": ["x", "y"], "rank": 1})
    await pg_store.insert("items", "c", {"owner": "u2", "tags": ["x"], "rank": 3})

    docs = await pg_store.query("items", where={"owner": "u1"}, order_by="rank")
    assert [doc["id"] for doc in docs] == ["b", "a"]

    docs = await pg_store.query("items", contains={"tags": "y"})
    assert [doc["id"] for doc in docs] == ["b"]

    docs = await pg_store.query("items", order_by="rank", descending=True, limit=1)
    assert [doc["id"] for doc in docs] == ["c"]


async def test_writes_reach_the_local_hub_without_a_realtime_feed(pg_store, hub):
    subscription = hub.listen("items")

    await pg_store.insert("items", "a", {"n": 1})

    change = await asyncio.wait_for(subscription.__anext__(), 1)
    assert (change.kind, change.doc_id, change.after["n"]) == ("insert", "a", 1)
    subscription.cancel()


async def test_delete_profile_with_relationships_on_cascading_tables(pg_store, pg_profiles):
    await _users(pg_profiles, "alice", "bob", "carol")
    engine = RelationshipEngine(pg_store, pg_profiles)
    await engine.send_request("alice", "bob")
    await engine.accept_request("bob", "alice")
    await engine.send_request("carol", "alice")

    await pg_profiles.delete_profile("alice")

    assert await pg_store.get("profiles", "alice") is None
    assert await pg_store.query("relationships") == []
    assert (await engine.relationships_for("bob")).friends == []
    assert (await engine.relationships_for("carol")).sent_requests == []


async def test_concurrent_room_creation_keeps_every_membership(pg_store, pg_profiles):
    await _users(pg_profiles, "alice", "bob", "carol", "dave")
    rooms = ChatRoomDirectory(pg_store, pg_profiles)

    await asyncio.gather(
        *(rooms.get_or_create_room("alice", other) for other in ("bob", "carol", "dave"))
    )

    alice = await pg_profiles.get_profile("alice")
    assert sorted(alice.chat_rooms) == sorted(
        room_id_for("alice", other) for other in ("bob", "carol", "dave")
    )
