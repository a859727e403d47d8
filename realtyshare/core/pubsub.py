import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, FrozenSet, Optional


logger = logging.getLogger(__name__)

_CLOSED = object()


@dataclass(frozen=True)
class Change:
    """A single committed write, as seen by listeners."""

    collection: str
    doc_id: str
    kind: str  # "insert" | "update" | "delete"
    before: Optional[dict] = None
    after: Optional[dict] = None

    def touches(self, where: Optional[dict] = None, contains: Optional[dict] = None) -> bool:
        """True if the document matched the filters before or after the write."""
        return any(
            doc is not None and matches(doc, where, contains)
            for doc in (self.before, self.after)
        )


def matches(doc: dict, where: Optional[dict] = None, contains: Optional[dict] = None) -> bool:
    for field, value in (where or {}).items():
        if doc.get(field) != value:
            return False
    for field, value in (contains or {}).items():
        if value not in (doc.get(field) or []):
            return False
    return True


class ChangeHub:
    """
    In-process fan-out of committed writes.

    Listeners get their own unbounded queue so a slow consumer never blocks a
    writer. A listener stays registered until its subscription is cancelled.
    """

    def __init__(self):
        self._listeners: Dict[asyncio.Queue, FrozenSet[str]] = {}

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def listen(self, *collections: str) -> "Subscription":
        queue: asyncio.Queue = asyncio.Queue()
        self._listeners[queue] = frozenset(collections)
        return Subscription(self, queue)

    def publish(self, change: Change):
        for queue, collections in list(self._listeners.items()):
            if not collections or change.collection in collections:
                queue.put_nowait(change)

    def _release(self, queue: asyncio.Queue):
        self._listeners.pop(queue, None)


class Subscription:
    """Cancellable async iterator over the changes a listener receives."""

    def __init__(self, hub: ChangeHub, queue: asyncio.Queue):
        self._hub = hub
        self._queue = queue
        self.cancelled = False

    def __aiter__(self):
        return self

    async def __anext__(self) -> Change:
        if self.cancelled and self._queue.empty():
            raise StopAsyncIteration
        item = await self._queue.get()
        if item is _CLOSED:
            raise StopAsyncIteration
        return item

    def cancel(self):
        if self.cancelled:
            return
        self.cancelled = True
        self._hub._release(self._queue)
        self._queue.put_nowait(_CLOSED)

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        self.cancel()


class LiveQuery:
    """
    A perpetual query: the current snapshot first, then a fresh full snapshot
    after every change that touches the query's filters.

    The hub listener is registered before the first fetch so no write that
    lands between the two is lost. Each ``watch`` call builds its own
    LiveQuery; cancelling one never affects another.
    """

    def __init__(
        self,
        hub: ChangeHub,
        collections: tuple,
        fetch: Callable[[], Awaitable[Any]],
        relevant: Callable[[Change], bool],
    ):
        self._changes = hub.listen(*collections)
        self._fetch = fetch
        self._relevant = relevant
        self._primed = False

    @property
    def cancelled(self) -> bool:
        return self._changes.cancelled

    def __aiter__(self):
        return self

    async def __anext__(self):
        if not self._primed:
            self._primed = True
            return await self._fetch()

        while True:
            change = await self._changes.__anext__()
            if self._relevant(change):
                return await self._fetch()

    def cancel(self):
        self._changes.cancel()

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        self.cancel()

    def map(self, transform: Callable[[Any], Any]) -> "MappedLiveQuery":
        return MappedLiveQuery(self, transform)


class MappedLiveQuery:
    """A LiveQuery whose snapshots pass through ``transform`` (sync or async)."""

    def __init__(self, source: LiveQuery, transform: Callable[[Any], Any]):
        self._source = source
        self._transform = transform

    @property
    def cancelled(self) -> bool:
        return self._source.cancelled

    def __aiter__(self):
        return self

    async def __anext__(self):
        snapshot = await self._source.__anext__()
        result = self._transform(snapshot)
        if asyncio.iscoroutine(result):
            result = await result
        return result

    def cancel(self):
        self._source.cancel()

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        self.cancel()

    def map(self, transform: Callable[[Any], Any]) -> "MappedLiveQuery":
        return MappedLiveQuery(self, transform)
