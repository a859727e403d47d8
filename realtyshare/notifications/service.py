import logging
from typing import Optional, Set

from realtyshare.chat.messages import MESSAGES
from realtyshare.chat.schemas import ChatMessage
from realtyshare.core.pubsub import ChangeHub, Subscription
from realtyshare.profiles.service import ProfileStore
from realtyshare.utils.display_names import get_display_name

from .schemas import NewMessageNotification


logger = logging.getLogger(__name__)


class NotificationRouter:
    """
    Decides, for one signed-in user, which new messages deserve a toast.

    The only state is the room currently open in that user's chat view:
    messages for it are already on screen, so they are suppressed.
    """

    def __init__(self, user_id: str, hub: ChangeHub, profiles: ProfileStore):
        self.user_id = user_id
        self.hub = hub
        self.profiles = profiles
        self.open_room_id: Optional[str] = None
        self._subscriptions: Set[Subscription] = set()

    def set_open_room(self, room_id: Optional[str]):
        self.open_room_id = room_id
        logger.debug(f"open_room_set user={self.user_id} room={room_id}")

    def clear_open_room(self, room_id: Optional[str] = None):
        """Clear suppression; with ``room_id`` only if that room is the open one."""
        if room_id is None or self.open_room_id == room_id:
            self.open_room_id = None

    def should_notify(self, message: ChatMessage) -> bool:
        return (
            message.receiver_id == self.user_id
            and message.sender_id != self.user_id
            and message.room_id != self.open_room_id
        )

    async def route(self, message: ChatMessage) -> Optional[NewMessageNotification]:
        if not self.should_notify(message):
            return None

        return NewMessageNotification(
            room_id=message.room_id,
            sender_id=message.sender_id,
            sender_name=await get_display_name(self.profiles, message.sender_id),
            text=message.text,
        )

    def stream(self) -> "NotificationStream":
        """Listening starts here, not on first iteration."""
        subscription = self.hub.listen(MESSAGES)
        self._subscriptions.add(subscription)
        return NotificationStream(self, subscription)

    def close(self):
        for subscription in list(self._subscriptions):
            subscription.cancel()
        self._subscriptions.clear()
        self.open_room_id = None


class NotificationStream:
    """Notifications routed from message inserts, until cancelled or the session closes."""

    def __init__(self, router: NotificationRouter, subscription: Subscription):
        self._router = router
        self._subscription = subscription

    def __aiter__(self):
        return self

    async def __anext__(self) -> NewMessageNotification:
        while True:
            change = await self._subscription.__anext__()
            if change.kind != "insert":
                continue

            notification = await self._router.route(ChatMessage.model_validate(change.after))
            if notification is not None:
                logger.info(
                    f"notification_emitted user={self._router.user_id} room={notification.room_id}"
                )
                return notification

    def cancel(self):
        self._subscription.cancel()
        self._router._subscriptions.discard(self._subscription)
