from pydantic import BaseModel
from datetime import datetime
from typing import List, Optional


class ChatRoom(BaseModel):
    id: str
    participants: List[str]
    created_at: Optional[datetime] = None
    last_message_at: Optional[datetime] = None
    last_message_text: str = ""

    def other_participant(self, uid: str) -> Optional[str]:
        return next((p for p in self.participants if p != uid), None)


class ChatMessage(BaseModel):
    id: str
    room_id: str
    sender_id: str
    receiver_id: str
    text: str
    timestamp: datetime


# Direct conversations
class CreateDirectConversationModel(BaseModel):
    receiver_id: str


class CreateDirectConversationResponseModel(BaseModel):
    conversation_id: str
    is_new: bool


# Get Conversations
class ConversationData(BaseModel):
    id: str
    participants: List[str]
    other_participant_id: str
    other_participant_name: str
    other_participant_pic: Optional[str] = None
    last_message_at: Optional[datetime] = None
    last_message_text: str = ""


class GetConversationsResponseModel(BaseModel):
    conversations: List[ConversationData]


# Send Messages
class SendMessageModel(BaseModel):
    conversation_id: str
    content: str


class SendMessageResponseModel(BaseModel):
    message: ChatMessage


# Get messages
class MessagesData(BaseModel):
    id: str
    sender_id: str
    sender_name: str
    receiver_id: str
    text: str
    timestamp: datetime
    is_current_user: bool


class GetMessagesResponseModel(BaseModel):
    messages: List[MessagesData]
