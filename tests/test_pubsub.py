import asyncio

from realtyshare.core.pubsub import Change, LiveQuery


def _change(collection="items", doc_id="a", after=None):
    return Change(collection=collection, doc_id=doc_id, kind="insert", after=after or {})


async def test_listener_receives_only_its_collections(hub):
    subscription = hub.listen("items")

    hub.publish(_change(collection="other"))
    hub.publish(_change(doc_id="b"))

    change = await asyncio.wait_for(subscription.__anext__(), 1)
    assert change.doc_id == "b"

    subscription.cancel()


async def test_cancel_releases_listener_and_ends_iteration(hub):
    subscription = hub.listen("items")
    assert hub.listener_count == 1

    subscription.cancel()
    assert hub.listener_count == 0

    received = [change async for change in subscription]
    assert received == []


async def test_subscription_context_manager_cancels(hub):
    async with hub.listen("items") as subscription:
        assert hub.listener_count == 1
    assert subscription.cancelled
    assert hub.listener_count == 0


async def test_change_touches_before_or_after():
    change = Change(
        collection="rooms",
        doc_id="r",
        kind="delete",
        before={"participants": ["a", "b"]},
        after=None,
    )

    assert change.touches(contains={"participants": "a"})
    assert not change.touches(contains={"participants": "c"})


async def test_live_queries_are_independent(hub):
    fetches = []

    async def fetch():
        fetches.append(1)
        return len(fetches)

    first = LiveQuery(hub, ("items",), fetch, lambda change: True)
    second = LiveQuery(hub, ("items",), fetch, lambda change: True)

    await first.__anext__()
    first.cancel()

    await second.__anext__()
    hub.publish(_change())
    assert await asyncio.wait_for(second.__anext__(), 1) == 3

    second.cancel()
    assert hub.listener_count == 0


async def test_mapped_live_query_accepts_async_transform(hub):
    async def fetch():
        return [1, 2]

    async def total(values):
        return sum(values)

    live = LiveQuery(hub, ("items",), fetch, lambda change: True).map(total)

    assert await live.__anext__() == 3
    live.cancel()
    assert live.cancelled
