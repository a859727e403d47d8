"""
Document store used by every service.

The surface is the handful of primitives the client app relied on from its
hosted backend: per-document CRUD, single-document compare-and-set, array
union/remove and increment field transforms, server timestamps, write
batches and live queries. ``InMemoryDocumentStore`` backs development and
tests; ``SupabaseDocumentStore`` (``core/supabase_store.py``) maps the same
calls onto Postgres tables.
"""
import asyncio
import copy
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from realtyshare.core.errors import ConflictError, DuplicateDocument, NotFoundError
from realtyshare.core.pubsub import Change, ChangeHub, LiveQuery, matches


logger = logging.getLogger(__name__)


class _ServerTimestamp:
    def __repr__(self):
        return "SERVER_TIMESTAMP"


SERVER_TIMESTAMP = _ServerTimestamp()


class FieldTransform:
    def apply(self, current: Any) -> Any:
        raise NotImplementedError


class ArrayUnion(FieldTransform):
    def __init__(self, *values):
        self.values = list(values)

    def apply(self, current):
        items = list(current or [])
        for value in self.values:
            if value not in items:
                items.append(value)
        return items


class ArrayRemove(FieldTransform):
    def __init__(self, *values):
        self.values = list(values)

    def apply(self, current):
        return [item for item in (current or []) if item not in self.values]


class Increment(FieldTransform):
    def __init__(self, amount: int = 1):
        self.amount = amount

    def apply(self, current):
        return (current or 0) + self.amount


def new_id() -> str:
    return uuid.uuid4().hex


def resolve_changes(current: Optional[dict], changes: dict, now: datetime) -> dict:
    """Replace sentinels and transforms with concrete values."""
    resolved = {}
    for name, value in changes.items():
        if value is SERVER_TIMESTAMP:
            resolved[name] = now
        elif isinstance(value, FieldTransform):
            resolved[name] = value.apply((current or {}).get(name))
        else:
            resolved[name] = value
    return resolved


def expectation_met(doc: Optional[dict], expect: Optional[dict]) -> bool:
    if doc is None:
        return False
    return all(doc.get(name) == value for name, value in (expect or {}).items())


@dataclass
class WriteOp:
    kind: str  # insert | set | update | delete
    collection: str
    doc_id: str
    data: dict = field(default_factory=dict)
    expect: Optional[dict] = None
    merge: bool = False


class WriteBatch:
    """
    Writes that commit together. Every precondition is checked before
    anything is applied; a failed precondition raises and the batch is
    dropped.
    """

    def __init__(self, store: "DocumentStore"):
        self._store = store
        self._ops: List[WriteOp] = []

    def insert(self, collection: str, doc_id: str, data: dict) -> "WriteBatch":
        self._ops.append(WriteOp("insert", collection, doc_id, data))
        return self

    def set(self, collection: str, doc_id: str, data: dict, merge: bool = False) -> "WriteBatch":
        self._ops.append(WriteOp("set", collection, doc_id, data, merge=merge))
        return self

    def update(
        self, collection: str, doc_id: str, changes: dict, expect: Optional[dict] = None
    ) -> "WriteBatch":
        self._ops.append(WriteOp("update", collection, doc_id, changes, expect=expect))
        return self

    def delete(self, collection: str, doc_id: str, expect: Optional[dict] = None) -> "WriteBatch":
        self._ops.append(WriteOp("delete", collection, doc_id, expect=expect))
        return self

    async def commit(self) -> list:
        if not self._ops:
            return []
        return await self._store._commit(self._ops, strict=True)


class DocumentStore:
    """Backend-neutral part of the store; subclasses provide get/query/_commit."""

    def __init__(self, hub: ChangeHub):
        self.hub = hub
        self._last_timestamp: Optional[datetime] = None

    def _server_time(self) -> datetime:
        now = datetime.now(timezone.utc)
        if self._last_timestamp is not None and now <= self._last_timestamp:
            now = self._last_timestamp + timedelta(microseconds=1)
        self._last_timestamp = now
        return now

    async def get(self, collection: str, doc_id: str) -> Optional[dict]:
        raise NotImplementedError

    async def query(
        self,
        collection: str,
        where: Optional[dict] = None,
        contains: Optional[dict] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> List[dict]:
        raise NotImplementedError

    async def _commit(self, ops: List[WriteOp], strict: bool) -> list:
        raise NotImplementedError

    async def insert(self, collection: str, doc_id: str, data: dict) -> dict:
        """Create a document; ``DuplicateDocument`` if the id is taken."""
        return (await self._commit([WriteOp("insert", collection, doc_id, data)], strict=False))[0]

    async def set(self, collection: str, doc_id: str, data: dict, merge: bool = False) -> dict:
        return (
            await self._commit([WriteOp("set", collection, doc_id, data, merge=merge)], strict=False)
        )[0]

    async def update(
        self, collection: str, doc_id: str, changes: dict, expect: Optional[dict] = None
    ) -> Optional[dict]:
        """
        Compare-and-set on one document. Returns the updated document, or
        None if it is missing or a field in ``expect`` has another value.
        """
        return (
            await self._commit(
                [WriteOp("update", collection, doc_id, changes, expect=expect)], strict=False
            )
        )[0]

    async def delete(self, collection: str, doc_id: str, expect: Optional[dict] = None) -> bool:
        return (
            await self._commit([WriteOp("delete", collection, doc_id, expect=expect)], strict=False)
        )[0]

    def batch(self) -> WriteBatch:
        return WriteBatch(self)

    def watch(
        self,
        collection: str,
        where: Optional[dict] = None,
        contains: Optional[dict] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> LiveQuery:
        async def fetch():
            return await self.query(collection, where, contains, order_by, descending, limit)

        return LiveQuery(
            self.hub,
            (collection,),
            fetch,
            lambda change: change.touches(where, contains),
        )

    def watch_document(self, collection: str, doc_id: str) -> LiveQuery:
        async def fetch():
            return await self.get(collection, doc_id)

        return LiveQuery(self.hub, (collection,), fetch, lambda change: change.doc_id == doc_id)

    async def start(self):
        pass

    async def close(self):
        pass


def _sort_key(value):
    return (value is None, value)


class InMemoryDocumentStore(DocumentStore):
    """
    Process-local store. All commits run under one lock, so a batch is
    atomic and server timestamps are strictly increasing.
    """

    def __init__(self, hub: ChangeHub):
        super().__init__(hub)
        self._collections: Dict[str, Dict[str, dict]] = {}
        self._lock = asyncio.Lock()

    def _docs(self, collection: str) -> Dict[str, dict]:
        return self._collections.setdefault(collection, {})

    async def get(self, collection, doc_id):
        doc = self._docs(collection).get(doc_id)
        return copy.deepcopy(doc) if doc is not None else None

    async def query(
        self,
        collection,
        where=None,
        contains=None,
        order_by=None,
        descending=False,
        limit=None,
    ):
        docs = [
            copy.deepcopy(doc)
            for doc in self._docs(collection).values()
            if matches(doc, where, contains)
        ]
        if order_by:
            docs.sort(key=lambda doc: _sort_key(doc.get(order_by)), reverse=descending)
        if limit is not None:
            docs = docs[:limit]
        return docs

    async def _commit(self, ops, strict):
        async with self._lock:
            results, changes = self._stage_and_apply(ops, strict)

        for change in changes:
            self.hub.publish(change)
        return results

    def _stage_and_apply(self, ops: List[WriteOp], strict: bool):
        now = self._server_time()
        staged: Dict[tuple, Optional[dict]] = {}
        results = []
        changes = []

        for op in ops:
            key = (op.collection, op.doc_id)
            current = staged[key] if key in staged else self._docs(op.collection).get(op.doc_id)

            if op.kind == "insert":
                if current is not None:
                    raise DuplicateDocument(f"{op.collection}/{op.doc_id} already exists.")
                new = {**resolve_changes(None, op.data, now), "id": op.doc_id}
                kind = "insert"

            elif op.kind == "set":
                base = dict(current) if (op.merge and current is not None) else {}
                new = {**base, **resolve_changes(current, op.data, now), "id": op.doc_id}
                kind = "insert" if current is None else "update"

            elif op.kind in ("update", "delete"):
                if current is None:
                    if strict:
                        raise NotFoundError(f"{op.collection}/{op.doc_id} not found.")
                    results.append(None if op.kind == "update" else False)
                    continue
                if not expectation_met(current, op.expect):
                    if strict:
                        raise ConflictError(f"{op.collection}/{op.doc_id} changed concurrently.")
                    results.append(None if op.kind == "update" else False)
                    continue
                if op.kind == "update":
                    new = {**current, **resolve_changes(current, op.data, now)}
                else:
                    new = None
                kind = op.kind

            else:
                raise ValueError(f"Unknown write kind {op.kind!r}")

            staged[key] = new
            changes.append(
                Change(
                    collection=op.collection,
                    doc_id=op.doc_id,
                    kind=kind,
                    before=copy.deepcopy(current),
                    after=copy.deepcopy(new),
                )
            )
            results.append(copy.deepcopy(new) if new is not None else True)

        for (collection, doc_id), doc in staged.items():
            if doc is None:
                self._docs(collection).pop(doc_id, None)
            else:
                self._docs(collection)[doc_id] = doc

        return results, changes
