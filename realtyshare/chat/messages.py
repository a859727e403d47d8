import re
import logging
from typing import List

from realtyshare.core.errors import ForbiddenError, InvalidContent, ValidationError
from realtyshare.core.pubsub import MappedLiveQuery
from realtyshare.core.store import SERVER_TIMESTAMP, DocumentStore, new_id

from .rooms import CHAT_ROOMS, ChatRoomDirectory
from .schemas import ChatMessage


logger = logging.getLogger(__name__)

MESSAGES = "messages"
MAX_MESSAGE_LENGTH = 500

# Scheme, "www." or a bare domain with a common TLD.
URL_PATTERN = re.compile(
    r"(https?://|ftp://|www\.)\S+"
    r"|\b[a-z0-9-]+(\.[a-z0-9-]+)*\.(com|net|org|io|co|info|biz|app|dev|me|us|uk|ru|xyz|ly|gg)\b(/\S*)?",
    re.IGNORECASE,
)


def validate_message_text(text: str, max_length: int = MAX_MESSAGE_LENGTH) -> str:
    cleaned = (text or "").strip()

    if not cleaned:
        raise ValidationError("Cannot send an empty message.")

    if len(cleaned) > max_length:
        raise ValidationError(
            f"Message must be at most {max_length} characters long (got {len(cleaned)})."
        )

    if URL_PATTERN.search(cleaned):
        raise InvalidContent("Links are not allowed in messages.")

    return cleaned


def _messages(docs: List[dict]) -> List[ChatMessage]:
    return [ChatMessage.model_validate(doc) for doc in docs]


class MessageLog:
    """Append-only, per-room message history ordered by server timestamp."""

    def __init__(
        self,
        store: DocumentStore,
        rooms: ChatRoomDirectory,
        max_length: int = MAX_MESSAGE_LENGTH,
    ):
        self.store = store
        self.rooms = rooms
        self.max_length = max_length

    async def send_message(
        self, room_id: str, sender_id: str, receiver_id: str, text: str
    ) -> ChatMessage:
        cleaned = validate_message_text(text, self.max_length)

        room = await self.rooms.get_room(room_id)

        if sender_id not in room.participants:
            raise ForbiddenError("You are not a participant in this conversation.")

        if receiver_id == sender_id or receiver_id not in room.participants:
            raise ValidationError("Receiver must be the other participant of this conversation.")

        message_id = new_id()
        message, _ = await (
            self.store.batch()
            .insert(
                MESSAGES,
                message_id,
                {
                    "room_id": room_id,
                    "sender_id": sender_id,
                    "receiver_id": receiver_id,
                    "text": cleaned,
                    "timestamp": SERVER_TIMESTAMP,
                },
            )
            .update(
                CHAT_ROOMS,
                room_id,
                {"last_message_at": SERVER_TIMESTAMP, "last_message_text": cleaned},
            )
            .commit()
        )

        logger.info(f"message_sent room={room_id} sender={sender_id} id={message_id}")
        return ChatMessage.model_validate(message)

    async def get_messages(self, room_id: str) -> List[ChatMessage]:
        docs = await self.store.query(MESSAGES, where={"room_id": room_id}, order_by="timestamp")
        return _messages(docs)

    def watch(self, room_id: str) -> MappedLiveQuery:
        """Full ordered snapshot now and after every change to the room's log."""
        return self.store.watch(MESSAGES, where={"room_id": room_id}, order_by="timestamp").map(
            _messages
        )
