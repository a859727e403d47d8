import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, Optional

from realtyshare.core.pubsub import ChangeHub
from realtyshare.notifications.service import NotificationRouter
from realtyshare.profiles.service import ProfileStore


logger = logging.getLogger(__name__)


@dataclass
class Session:
    """Per-user state that lives from login to logout."""

    user_id: str
    is_admin: bool
    notifications: NotificationRouter
    opened_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class SessionRegistry:
    """
    Sessions keyed by user id; all of a user's devices share one. A valid
    token without a session (e.g. after a restart) opens one lazily.
    """

    def __init__(self, hub: ChangeHub, profiles: ProfileStore):
        self.hub = hub
        self.profiles = profiles
        self._sessions: Dict[str, Session] = {}

    def __len__(self):
        return len(self._sessions)

    def open(self, user_id: str, is_admin: bool = False) -> Session:
        session = self._sessions.get(user_id)
        if session is not None:
            session.is_admin = is_admin
            return session

        session = Session(
            user_id=user_id,
            is_admin=is_admin,
            notifications=NotificationRouter(user_id, self.hub, self.profiles),
        )
        self._sessions[user_id] = session
        logger.info(f"session_opened user={user_id} admin={is_admin}")
        return session

    def get(self, user_id: str) -> Optional[Session]:
        return self._sessions.get(user_id)

    def close(self, user_id: str) -> bool:
        session = self._sessions.pop(user_id, None)
        if session is None:
            return False
        session.notifications.close()
        logger.info(f"session_closed user={user_id}")
        return True

    def close_all(self):
        for user_id in list(self._sessions):
            self.close(user_id)
