"""
Supabase Realtime change feed.

Subscribes to ``postgres_changes`` on every collection table and republishes
each row event on the local ``ChangeHub``, so live queries in this process see
writes made by any instance. Tables need ``REPLICA IDENTITY FULL`` for the old
row to arrive on updates and deletes (see ``core/schema.py``).
"""
import logging
from typing import Awaitable, Callable, Iterable, Optional

from realtyshare.core.pubsub import Change, ChangeHub


logger = logging.getLogger(__name__)

CHANNEL_NAME = "realtyshare-changes"
EVENT_KINDS = {"INSERT": "insert", "UPDATE": "update", "DELETE": "delete"}


def change_from_payload(payload: dict) -> Optional[Change]:
    """Turn a ``postgres_changes`` payload into a hub ``Change``; None if unusable."""
    data = payload.get("data", payload)
    kind = EVENT_KINDS.get(data.get("type") or data.get("eventType"))
    table = data.get("table")
    if kind is None or not table:
        return None

    after = (data.get("record") or data.get("new") or None) if kind != "delete" else None
    before = (data.get("old_record") or data.get("old") or None) if kind != "insert" else None

    doc_id = (after or before or {}).get("id")
    if doc_id is None:
        return None
    return Change(table, str(doc_id), kind, before, after)


class RealtimeFeed:
    def __init__(
        self,
        hub: ChangeHub,
        tables: Iterable[str],
        client_factory: Callable[[], Awaitable],
    ):
        self.hub = hub
        self.tables = tuple(tables)
        self._client_factory = client_factory
        self._client = None
        self._channel = None

    async def start(self):
        self._client = await self._client_factory()
        channel = self._client.channel(CHANNEL_NAME)
        for table in self.tables:
            channel.on_postgres_changes(
                event="*", schema="public", table=table, callback=self._on_change
            )
        await channel.subscribe()
        self._channel = channel
        logger.info(f"realtime_feed_started tables={','.join(self.tables)}")

    def _on_change(self, payload: dict):
        change = change_from_payload(payload)
        if change is None:
            logger.warning(f"realtime_payload_ignored payload={payload!r}")
            return
        self.hub.publish(change)

    async def stop(self):
        if self._channel is None:
            return
        await self._client.remove_channel(self._channel)
        self._channel = None
        logger.info("realtime_feed_stopped")
