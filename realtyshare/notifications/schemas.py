from pydantic import BaseModel
from typing import Optional


class NewMessageNotification(BaseModel):
    room_id: str
    sender_id: str
    sender_name: str
    text: str


class OpenRoomModel(BaseModel):
    room_id: str


class OpenRoomResponseModel(BaseModel):
    open_room_id: Optional[str] = None
