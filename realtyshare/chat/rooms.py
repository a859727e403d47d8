import logging
from typing import List, Tuple

from realtyshare.core.errors import DuplicateDocument, ForbiddenError, InvalidOperation, NotFoundError
from realtyshare.core.pubsub import MappedLiveQuery
from realtyshare.core.store import SERVER_TIMESTAMP, ArrayUnion, DocumentStore
from realtyshare.profiles.service import PROFILES, ProfileStore
from realtyshare.utils.pairs import pair_key, sorted_pair

from .schemas import ChatRoom


logger = logging.getLogger(__name__)

CHAT_ROOMS = "chat_rooms"


def room_id_for(user_a: str, user_b: str) -> str:
    return pair_key(user_a, user_b)


def _rooms(docs: List[dict]) -> List[ChatRoom]:
    return [ChatRoom.model_validate(doc) for doc in docs]


class ChatRoomDirectory:
    """
    One room per unordered pair of users. The room id is derived from the
    pair, so concurrent get-or-create calls from both sides converge on the
    same document: the first insert wins and everyone else reads it.
    """

    def __init__(self, store: DocumentStore, profiles: ProfileStore):
        self.store = store
        self.profiles = profiles

    async def get_or_create_room(self, user_a: str, user_b: str) -> Tuple[str, bool]:
        if user_a == user_b:
            raise InvalidOperation("Cannot start a conversation with yourself.")

        await self.profiles.require(user_a, user_b)

        room_id = room_id_for(user_a, user_b)

        if await self.store.get(CHAT_ROOMS, room_id) is None:
            try:
                await (
                    self.store.batch()
                    .insert(
                        CHAT_ROOMS,
                        room_id,
                        {
                            "participants": sorted_pair(user_a, user_b),
                            "created_at": SERVER_TIMESTAMP,
                            "last_message_at": SERVER_TIMESTAMP,
                            "last_message_text": "",
                        },
                    )
                    .update(PROFILES, user_a, {"chat_rooms": ArrayUnion(room_id)})
                    .update(PROFILES, user_b, {"chat_rooms": ArrayUnion(room_id)})
                    .commit()
                )
                logger.info(f"chat_room_created room={room_id}")
                return room_id, True
            except DuplicateDocument:
                logger.info(f"chat_room_create_raced room={room_id}")

        await self._register_membership(room_id, user_a, user_b)
        return room_id, False

    async def _register_membership(self, room_id: str, *uids: str):
        # Repairs a room whose creation was interrupted before both profiles
        # were updated (possible on the supabase backend).
        for uid in uids:
            doc = await self.store.get(PROFILES, uid)
            if doc is not None and room_id not in (doc.get("chat_rooms") or []):
                await self.profiles.add_chat_room(uid, room_id)

    async def get_room(self, room_id: str) -> ChatRoom:
        doc = await self.store.get(CHAT_ROOMS, room_id)
        if doc is None:
            raise NotFoundError("Conversation not found.")
        return ChatRoom.model_validate(doc)

    async def require_participant(self, room_id: str, uid: str) -> ChatRoom:
        room = await self.get_room(room_id)
        if uid not in room.participants:
            raise ForbiddenError("You are not a member of this conversation.")
        return room

    async def list_rooms(self, uid: str) -> List[ChatRoom]:
        """Rooms the user takes part in, most recent activity first."""
        docs = await self.store.query(
            CHAT_ROOMS,
            contains={"participants": uid},
            order_by="last_message_at",
            descending=True,
        )
        return _rooms(docs)

    def watch_rooms(self, uid: str) -> MappedLiveQuery:
        return self.store.watch(
            CHAT_ROOMS,
            contains={"participants": uid},
            order_by="last_message_at",
            descending=True,
        ).map(_rooms)
