"""
Supabase (PostgREST) backend for ``DocumentStore``.

Each collection is a table whose primary key column is ``id`` (DDL lives in
the feature ``models.py`` modules, see ``core/schema.py``). Compare-and-set is
an ``UPDATE ... WHERE id = ? AND <expect>``; an empty result means the
expectation failed. Field transforms are resolved from the row as read and
that read value joins the guard, so a concurrent writer forces a re-read
instead of being overwritten. Server timestamps come from the database clock
(``server_now()``), one per commit. Batches are applied in order and are not
atomic across rows.

Live queries are fed by a ``RealtimeFeed`` when one is attached; without one
(scripts, tests) writes are published to the local hub directly.
"""
import logging
from datetime import datetime
from typing import List, Optional

import httpx
from fastapi.concurrency import run_in_threadpool
from postgrest.exceptions import APIError
from supabase import Client

from realtyshare.core.errors import BackendError, ConflictError, DuplicateDocument, NotFoundError
from realtyshare.core.pubsub import Change, ChangeHub
from realtyshare.core.store import (
    SERVER_TIMESTAMP,
    DocumentStore,
    FieldTransform,
    WriteOp,
    expectation_met,
    resolve_changes,
)


logger = logging.getLogger(__name__)

UNIQUE_VIOLATION = "23505"
SERVER_NOW_RPC = "server_now"
MAX_TRANSFORM_ATTEMPTS = 5


def _to_row(doc: dict) -> dict:
    return {
        key: value.isoformat() if isinstance(value, datetime) else value
        for key, value in doc.items()
    }


def pg_array_literal(values: list) -> str:
    """Postgres array literal for an ``eq`` filter on an array column."""
    items = []
    for value in values:
        text = str(value).replace("\\", "\\\\").replace('"', '\\"')
        items.append(f'"{text}"')
    return "{" + ",".join(items) + "}"


def _guarded(builder, doc_id: str, guard: dict):
    builder = builder.eq("id", doc_id)
    for name, value in guard.items():
        if value is None:
            builder = builder.is_(name, "null")
        elif isinstance(value, list):
            builder = builder.eq(name, pg_array_literal(value))
        else:
            builder = builder.eq(name, value)
    return builder


def _uses_server_time(op: WriteOp) -> bool:
    return any(value is SERVER_TIMESTAMP for value in op.data.values())


class SupabaseDocumentStore(DocumentStore):
    def __init__(self, client: Client, hub: ChangeHub, feed=None):
        super().__init__(hub)
        self.client = client
        self.feed = feed

    async def start(self):
        if self.feed is not None:
            await self.feed.start()

    async def close(self):
        if self.feed is not None:
            await self.feed.stop()

    def _publish(self, change: Optional[Change]):
        # With a feed attached, the database announces every write itself.
        if change is not None and self.feed is None:
            self.hub.publish(change)

    async def _execute(self, build):
        try:
            return await run_in_threadpool(lambda: build().execute())
        except APIError as error:
            if error.code == UNIQUE_VIOLATION:
                raise DuplicateDocument(error.message or "Duplicate document.")
            logger.error(f"supabase_error code={error.code} message={error.message}")
            raise BackendError(error.message or str(error))
        except httpx.HTTPError as error:
            logger.error(f"supabase_unreachable error={error}")
            raise BackendError(f"Database unreachable: {error}")

    async def _database_now(self) -> str:
        response = await self._execute(lambda: self.client.rpc(SERVER_NOW_RPC, {}))
        return response.data

    async def get(self, collection, doc_id):
        response = await self._execute(
            lambda: self.client.table(collection).select("*").eq("id", doc_id).limit(1)
        )
        return response.data[0] if response.data else None

    async def query(
        self,
        collection,
        where=None,
        contains=None,
        order_by=None,
        descending=False,
        limit=None,
    ):
        def build():
            builder = self.client.table(collection).select("*")
            for name, value in (where or {}).items():
                builder = builder.eq(name, value)
            for name, value in (contains or {}).items():
                builder = builder.contains(name, [value])
            if order_by:
                builder = builder.order(order_by, desc=descending)
            if limit is not None:
                builder = builder.limit(limit)
            return builder

        response = await self._execute(build)
        return response.data or []

    async def _commit(self, ops: List[WriteOp], strict: bool) -> list:
        now = await self._database_now() if any(_uses_server_time(op) for op in ops) else None
        results = []
        for op in ops:
            result, change = await self._apply(op, strict, now)
            results.append(result)
            self._publish(change)
        return results

    async def _apply(self, op: WriteOp, strict: bool, now):
        table = op.collection

        if op.kind == "insert":
            row = _to_row({**resolve_changes(None, op.data, now), "id": op.doc_id})
            response = await self._execute(lambda: self.client.table(table).insert(row))
            new = response.data[0]
            return new, Change(table, op.doc_id, "insert", None, new)

        if op.kind == "set":
            current = await self.get(table, op.doc_id)
            base = dict(current) if (op.merge and current is not None) else {}
            row = _to_row({**base, **resolve_changes(current, op.data, now), "id": op.doc_id})
            response = await self._execute(lambda: self.client.table(table).upsert(row))
            new = response.data[0]
            kind = "insert" if current is None else "update"
            return new, Change(table, op.doc_id, kind, current, new)

        if op.kind not in ("update", "delete"):
            raise ValueError(f"Unknown write kind {op.kind!r}")

        failed = None if op.kind == "update" else False
        transformed = [
            name for name, value in op.data.items() if isinstance(value, FieldTransform)
        ]

        for _ in range(MAX_TRANSFORM_ATTEMPTS):
            current = await self.get(table, op.doc_id)
            if current is None:
                if strict:
                    raise NotFoundError(f"{table}/{op.doc_id} not found.")
                return failed, None
            if not expectation_met(current, op.expect):
                if strict:
                    raise ConflictError(f"{table}/{op.doc_id} changed concurrently.")
                return failed, None

            guard = {**(op.expect or {}), **{name: current.get(name) for name in transformed}}

            if op.kind == "update":
                row = _to_row(resolve_changes(current, op.data, now))
                response = await self._execute(
                    lambda: _guarded(self.client.table(table).update(row), op.doc_id, guard)
                )
            else:
                response = await self._execute(
                    lambda: _guarded(self.client.table(table).delete(), op.doc_id, guard)
                )

            if response.data:
                if op.kind == "update":
                    new = response.data[0]
                    return new, Change(table, op.doc_id, "update", current, new)
                return True, Change(table, op.doc_id, "delete", current, None)

            if not transformed:
                break
            logger.info(f"supabase_transform_retry table={table} id={op.doc_id}")

        # Row changed between the read and the guarded write.
        if strict:
            raise ConflictError(f"{table}/{op.doc_id} changed concurrently.")
        return failed, None
