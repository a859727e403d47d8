import logging
from typing import List

from fastapi import APIRouter, Depends

from realtyshare.core.dependencies import CurrentUser, get_services, verify_token

from .schemas import (
    FriendItem,
    FriendRequestModel,
    FriendRequestResponseModel,
    AcceptFriendRequestModel,
    AcceptFriendRequestResponseModel,
    DeclineFriendshipRequestResponseModel,
    CancelFriendshipRequestResponseModel,
    RemoveFriendResponseModel,
    RelationshipsResponseModel,
)


logger = logging.getLogger(__name__)
router = APIRouter()


async def _friend_items(services, uids: List[str]) -> List[FriendItem]:
    items = []
    for uid in uids:
        profile = await services.profiles.find_profile(uid)
        if profile is None:
            continue
        items.append(
            FriendItem(
                uid=uid,
                display_name=profile.display_name,
                profile_picture_url=profile.profile_picture_url,
            )
        )
    return items


@router.get("", response_model=RelationshipsResponseModel, status_code=200)
async def list_relationships(
    user: CurrentUser = Depends(verify_token), services=Depends(get_services)
):
    """
    Friends, outgoing requests and incoming requests of the authenticated
    user, each with display name and avatar.
    """
    relationships = await services.relationships.relationships_for(user.id)
    return {
        "friends": await _friend_items(services, relationships.friends),
        "sent_requests": await _friend_items(services, relationships.sent_requests),
        "received_requests": await _friend_items(services, relationships.received_requests),
    }


@router.post("/request", response_model=FriendRequestResponseModel, status_code=201)
async def create_friend_request(
    data: FriendRequestModel,
    user: CurrentUser = Depends(verify_token),
    services=Depends(get_services),
):
    """
    Send a friend request to another user.

    **Process**
    1. Prevent self friend requests.
    2. Validate that both users exist.
    3. Prevent requests to users who are already friends.
    4. Prevent duplicate pending requests.
    5. Refuse if the other user already sent a request (accept it instead).

    **Errors**
    - `400`: Attempt to send a friend request to yourself.
    - `404`: No user with that id.
    - `409`: Already friends, already requested, or reciprocal request pending.
    """
    edge = await services.relationships.send_request(user.id, data.receiver_id)

    return {
        "message": "Friend request sent.",
        "request": edge,
    }


@router.post(
    "/request/accept", response_model=AcceptFriendRequestResponseModel, status_code=201
)
async def accept_friend_request(
    data: AcceptFriendRequestModel,
    user: CurrentUser = Depends(verify_token),
    services=Depends(get_services),
):
    """
    Accept a pending friend request sent by `sender_id`.

    Only the receiver of the request can accept it. The request disappears
    from both users' pending lists and each becomes the other's friend.

    **Errors**
    - `409`: No pending request from this user.
    """
    edge = await services.relationships.accept_request(user.id, data.sender_id)
    user1_id, user2_id = edge["participants"]

    return {
        "friendship_accept": True,
        "details": {
            "friendship_id": edge["id"],
            "user1_id": user1_id,
            "user2_id": user2_id,
            "updated_at": edge["updated_at"],
        },
    }


# Only the receiver can decline
@router.delete(
    "/request/decline/{sender_id}",
    response_model=DeclineFriendshipRequestResponseModel,
    status_code=200,
)
async def decline_friend_request(
    sender_id: str,
    user: CurrentUser = Depends(verify_token),
    services=Depends(get_services),
):
    """
    Decline a pending friendship request sent by `sender_id`.

    Both pending entries are cleared, so the sender may ask again later.

    Raises:
        409: If no pending friend request exists from the sender.
    """
    await services.relationships.reject_request(user.id, sender_id)
    return {"request_declined": True}


# Only the sender can cancel
@router.delete(
    "/request/cancel/{receiver_id}",
    response_model=CancelFriendshipRequestResponseModel,
    status_code=200,
)
async def cancel_friend_request(
    receiver_id: str,
    user: CurrentUser = Depends(verify_token),
    services=Depends(get_services),
):
    """
    Cancel a pending friendship request previously sent by the authenticated user.

    Raises:
        409: If there is no pending request to `receiver_id`.
    """
    await services.relationships.cancel_request(user.id, receiver_id)
    return {"request_canceled": True}


@router.delete(
    "/remove/{other_user_id}",
    response_model=RemoveFriendResponseModel,
    status_code=200,
)
async def remove_friend(
    other_user_id: str,
    user: CurrentUser = Depends(verify_token),
    services=Depends(get_services),
):
    """
    Remove a friendship between the authenticated user and another user.

    Idempotent: removing someone who is not a friend, or a deleted account,
    also succeeds.
    """
    await services.relationships.remove_friend(user.id, other_user_id)
    return {"friend_removed": True}
