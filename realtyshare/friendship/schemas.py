from pydantic import BaseModel
from typing import List, Optional
from datetime import datetime


# friend request
class FriendRequestModel(BaseModel):
    receiver_id: str


class FriendRequestDetail(BaseModel):
    id: str
    requester: str
    addressee: str
    status: str
    created_at: datetime


class FriendRequestResponseModel(BaseModel):
    message: str
    request: FriendRequestDetail


# accept_friend_request
class AcceptFriendRequestModel(BaseModel):
    sender_id: str


class FriendshipDetails(BaseModel):
    friendship_id: str
    user1_id: str
    user2_id: str
    updated_at: datetime


class AcceptFriendRequestResponseModel(BaseModel):
    friendship_accept: bool
    details: FriendshipDetails


# Decline friendship request
class DeclineFriendshipRequestResponseModel(BaseModel):
    request_declined: bool


# cancel sent friend request
class CancelFriendshipRequestResponseModel(BaseModel):
    request_canceled: bool


# remove friend
class RemoveFriendResponseModel(BaseModel):
    friend_removed: bool


# list
class FriendItem(BaseModel):
    uid: str
    display_name: str
    profile_picture_url: Optional[str] = None


class RelationshipsResponseModel(BaseModel):
    friends: List[FriendItem]
    sent_requests: List[FriendItem]
    received_requests: List[FriendItem]
