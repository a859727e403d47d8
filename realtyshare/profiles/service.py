import logging
from typing import List, Optional

from realtyshare.core.errors import DuplicateDocument, NotFoundError, ValidationError
from realtyshare.core.pubsub import LiveQuery
from realtyshare.core.store import SERVER_TIMESTAMP, ArrayUnion, DocumentStore
from realtyshare.friendship.edges import RELATIONSHIPS, load_relationships

from .schemas import ProfileSummary, UserProfile


logger = logging.getLogger(__name__)

PROFILES = "profiles"

EDITABLE_FIELDS = {"display_name", "bio", "is_private", "profile_picture_url"}
ROLES = {"user", "admin"}


def default_display_name(uid: str) -> str:
    return f"User_{uid[:6]}"


def profile_defaults(uid: str) -> dict:
    return {
        "display_name": default_display_name(uid),
        "bio": "New user, exploring!",
        "is_private": False,
        "profile_picture_url": None,
        "role": "user",
        "chat_rooms": [],
    }


def _with_defaults(doc: dict) -> dict:
    uid = doc["id"]
    present = {key: value for key, value in doc.items() if value is not None}
    return {**profile_defaults(uid), **present, "uid": uid}


class ProfileStore:
    """
    One profile document per user. Records written by older clients may
    miss fields; defaults are filled in here, once, at read time.
    """

    def __init__(self, store: DocumentStore):
        self.store = store

    async def ensure_profile(
        self, uid: str, email: str, display_name: Optional[str] = None
    ) -> UserProfile:
        if await self.store.get(PROFILES, uid) is None:
            try:
                await self.store.insert(
                    PROFILES,
                    uid,
                    {
                        **profile_defaults(uid),
                        "email": email,
                        "display_name": display_name or default_display_name(uid),
                        "created_at": SERVER_TIMESTAMP,
                    },
                )
                logger.info(f"profile_created uid={uid} email={email}")
            except DuplicateDocument:
                # Created by a concurrent login.
                pass
        return await self.get_profile(uid)

    async def find_profile(self, uid: str) -> Optional[UserProfile]:
        doc = await self.store.get(PROFILES, uid)
        if doc is None:
            return None
        relationships = await load_relationships(self.store, uid)
        return UserProfile.model_validate({**_with_defaults(doc), **relationships.as_dict()})

    async def get_profile(self, uid: str) -> UserProfile:
        profile = await self.find_profile(uid)
        if profile is None:
            raise NotFoundError(f"User {uid} not found.")
        return profile

    async def exists(self, uid: str) -> bool:
        return await self.store.get(PROFILES, uid) is not None

    async def require(self, *uids: str):
        for uid in uids:
            if not await self.exists(uid):
                raise NotFoundError(f"User {uid} not found.")

    async def display_name(self, uid: str) -> Optional[str]:
        doc = await self.store.get(PROFILES, uid)
        if doc is None:
            return None
        return _with_defaults(doc)["display_name"]

    async def list_profiles(self, search: Optional[str] = None) -> List[ProfileSummary]:
        docs = await self.store.query(PROFILES, order_by="display_name")
        profiles = [ProfileSummary.model_validate(_with_defaults(doc)) for doc in docs]

        if search:
            needle = search.lower()
            profiles = [p for p in profiles if needle in p.display_name.lower()]
        return profiles

    async def update_profile(self, uid: str, changes: dict) -> UserProfile:
        unknown = set(changes) - EDITABLE_FIELDS
        if unknown:
            raise ValidationError(f"Fields cannot be edited: {', '.join(sorted(unknown))}.")

        if changes:
            updated = await self.store.update(PROFILES, uid, changes)
            if updated is None:
                raise NotFoundError(f"User {uid} not found.")
            logger.info(f"profile_updated uid={uid} fields={','.join(sorted(changes))}")

        return await self.get_profile(uid)

    async def add_chat_room(self, uid: str, room_id: str) -> bool:
        """Idempotent. Returns False if the profile does not exist."""
        return await self.store.update(PROFILES, uid, {"chat_rooms": ArrayUnion(room_id)}) is not None

    async def set_role(self, uid: str, role: str) -> UserProfile:
        if role not in ROLES:
            raise ValidationError(f"Unknown role {role!r}.")

        updated = await self.store.update(PROFILES, uid, {"role": role})
        if updated is None:
            raise NotFoundError(f"User {uid} not found.")

        logger.info(f"profile_role_changed uid={uid} role={role}")
        return await self.get_profile(uid)

    async def delete_profile(self, uid: str):
        """
        Removes the profile and every relationship edge touching it so no
        other profile keeps a dangling friend or request entry. Chat rooms and
        messages are left as they are.
        """
        await self.require(uid)

        edges = await self.store.query(RELATIONSHIPS, contains={"participants": uid})
        # Edges first: on postgres the profile delete cascades to them.
        batch = self.store.batch()
        for edge in edges:
            batch.delete(RELATIONSHIPS, edge["id"])
        batch.delete(PROFILES, uid)
        await batch.commit()

        logger.info(f"profile_deleted uid={uid} edges_removed={len(edges)}")

    def watch_profile(self, uid: str) -> LiveQuery:
        """Live profile, re-read whenever the document or one of its edges changes."""

        def relevant(change):
            if change.collection == PROFILES:
                return change.doc_id == uid
            return change.touches(contains={"participants": uid})

        return LiveQuery(
            self.store.hub,
            (PROFILES, RELATIONSHIPS),
            lambda: self.find_profile(uid),
            relevant,
        )
