import logging

from realtyshare.core.errors import (
    AlreadyFriends,
    AlreadyRequested,
    DuplicateDocument,
    InvalidOperation,
    NoSuchRequest,
    ReciprocalPending,
)
from realtyshare.core.store import SERVER_TIMESTAMP, DocumentStore
from realtyshare.profiles.service import ProfileStore
from realtyshare.utils.pairs import pair_key, sorted_pair

from .edges import FRIENDS, PENDING, RELATIONSHIPS, Relationships, load_relationships


logger = logging.getLogger(__name__)


class RelationshipEngine:
    """
    Friend-request state machine.

    A pair of users shares exactly one edge document keyed by the sorted
    pair, holding either a pending request (with its direction) or a
    friendship. Every transition is a single-document insert, guarded update
    or guarded delete, so both sides always see the same state:

    - friends are symmetric,
    - a pending request appears as sent on one side and received on the other,
    - a pair is never friends and pending at the same time.

    Crossing requests (A -> B while B -> A) race on the insert: the first
    write wins and the second caller gets ``ReciprocalPending``.
    """

    def __init__(self, store: DocumentStore, profiles: ProfileStore):
        self.store = store
        self.profiles = profiles

    def _raise_for_existing(self, edge: dict, sender_id: str):
        if edge["status"] == FRIENDS:
            raise AlreadyFriends("Already friends with this user.")
        if edge["requester"] == sender_id:
            raise AlreadyRequested("Friend request already sent.")
        raise ReciprocalPending("User has already sent you a request. Accept instead.")

    async def send_request(self, sender_id: str, receiver_id: str) -> dict:
        if sender_id == receiver_id:
            raise InvalidOperation("Cannot send friend request to yourself.")

        await self.profiles.require(sender_id, receiver_id)

        key = pair_key(sender_id, receiver_id)
        existing = await self.store.get(RELATIONSHIPS, key)
        if existing is not None:
            self._raise_for_existing(existing, sender_id)

        try:
            edge = await self.store.insert(
                RELATIONSHIPS,
                key,
                {
                    "participants": sorted_pair(sender_id, receiver_id),
                    "requester": sender_id,
                    "addressee": receiver_id,
                    "status": PENDING,
                    "created_at": SERVER_TIMESTAMP,
                    "updated_at": SERVER_TIMESTAMP,
                },
            )
        except DuplicateDocument:
            # Lost the race to a concurrent write on the same pair.
            winner = await self.store.get(RELATIONSHIPS, key)
            if winner is None:
                raise
            self._raise_for_existing(winner, sender_id)

        logger.info(f"friend_request_sent sender={sender_id} receiver={receiver_id}")
        return edge

    async def accept_request(self, accepter_id: str, sender_id: str) -> dict:
        edge = await self.store.update(
            RELATIONSHIPS,
            pair_key(accepter_id, sender_id),
            {"status": FRIENDS, "updated_at": SERVER_TIMESTAMP},
            expect={"status": PENDING, "requester": sender_id, "addressee": accepter_id},
        )
        if edge is None:
            raise NoSuchRequest("No pending request from this user.")

        logger.info(f"friend_request_accepted accepter={accepter_id} sender={sender_id}")
        return edge

    async def reject_request(self, rejecter_id: str, sender_id: str):
        deleted = await self.store.delete(
            RELATIONSHIPS,
            pair_key(rejecter_id, sender_id),
            expect={"status": PENDING, "requester": sender_id, "addressee": rejecter_id},
        )
        if not deleted:
            raise NoSuchRequest("No pending request from this user.")

        logger.info(f"friend_request_rejected rejecter={rejecter_id} sender={sender_id}")

    async def cancel_request(self, sender_id: str, receiver_id: str):
        deleted = await self.store.delete(
            RELATIONSHIPS,
            pair_key(sender_id, receiver_id),
            expect={"status": PENDING, "requester": sender_id, "addressee": receiver_id},
        )
        if not deleted:
            raise NoSuchRequest("No pending friend request to cancel.")

        logger.info(f"friend_request_cancelled sender={sender_id} receiver={receiver_id}")

    async def remove_friend(self, user_id: str, other_id: str) -> bool:
        """
        Idempotent: removing someone who is not a friend, or whose account is
        gone, succeeds. Returns whether an edge was removed.
        """
        removed = await self.store.delete(
            RELATIONSHIPS, pair_key(user_id, other_id), expect={"status": FRIENDS}
        )
        logger.info(f"friend_removed user={user_id} other={other_id} removed={removed}")
        return removed

    async def relationships_for(self, uid: str) -> Relationships:
        await self.profiles.require(uid)
        return await load_relationships(self.store, uid)

    async def are_friends(self, user_a: str, user_b: str) -> bool:
        edge = await self.store.get(RELATIONSHIPS, pair_key(user_a, user_b))
        return edge is not None and edge["status"] == FRIENDS
