import logging
from contextlib import asynccontextmanager
from typing import Optional

import anyio

from realtyshare.core.errors import ValidationError
from realtyshare.core.pubsub import MappedLiveQuery
from realtyshare.core.store import SERVER_TIMESTAMP, DocumentStore

from .schemas import PresenceRecord


logger = logging.getLogger(__name__)

PRESENCE = "presence"
STATES = ("online", "away", "offline")


def _record(uid: str, doc: Optional[dict]) -> PresenceRecord:
    if doc is None:
        return PresenceRecord(uid=uid)
    return PresenceRecord(uid=uid, state=doc["state"], timestamp=doc["timestamp"])


class PresenceConnection:
    """Handle for one live client connection."""

    def __init__(self, tracker: "PresenceTracker", uid: str):
        self.tracker = tracker
        self.uid = uid

    async def heartbeat(self, state: str = "online") -> PresenceRecord:
        return await self.tracker.set_presence(self.uid, state)


class PresenceTracker:
    """Coarse online/away/offline state per user. Last write wins, no history."""

    def __init__(self, store: DocumentStore):
        self.store = store

    async def set_presence(self, uid: str, state: str) -> PresenceRecord:
        if state not in STATES:
            raise ValidationError(f"Unknown presence state {state!r}.")

        doc = await self.store.set(PRESENCE, uid, {"state": state, "timestamp": SERVER_TIMESTAMP})
        logger.debug(f"presence_set uid={uid} state={state}")
        return _record(uid, doc)

    async def get_presence(self, uid: str) -> PresenceRecord:
        return _record(uid, await self.store.get(PRESENCE, uid))

    def observe(self, uid: str) -> MappedLiveQuery:
        return self.store.watch_document(PRESENCE, uid).map(lambda doc: _record(uid, doc))

    @asynccontextmanager
    async def connection(self, uid: str):
        """
        Marks the user online for the lifetime of the block. Leaving the
        block marks them offline whether the client went away cleanly or the
        connection dropped.
        """
        await self.set_presence(uid, "online")
        logger.info(f"presence_connected uid={uid}")
        try:
            yield PresenceConnection(self, uid)
        finally:
            with anyio.CancelScope(shield=True):
                await self.set_presence(uid, "offline")
            logger.info(f"presence_disconnected uid={uid}")
