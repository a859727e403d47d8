import logging

from fastapi import APIRouter, Depends, WebSocket

from realtyshare.core.dependencies import get_services, get_session, websocket_session
from realtyshare.core.session import Session
from realtyshare.core.streaming import stream_until_disconnect

from .schemas import OpenRoomModel, OpenRoomResponseModel


logger = logging.getLogger(__name__)
router = APIRouter()


@router.put("/open-room", response_model=OpenRoomResponseModel, status_code=200)
async def set_open_room(
    data: OpenRoomModel,
    session: Session = Depends(get_session),
    services=Depends(get_services),
):
    """
    Mark a conversation as open on screen. New messages for it stop raising
    notifications until it is cleared.

    **Errors**
    - 403: User is not a member of the conversation
    - 404: Conversation not found
    """
    await services.rooms.require_participant(data.room_id, session.user_id)
    session.notifications.set_open_room(data.room_id)
    return {"open_room_id": session.notifications.open_room_id}


@router.delete("/open-room", response_model=OpenRoomResponseModel, status_code=200)
async def clear_open_room(session: Session = Depends(get_session)):
    session.notifications.clear_open_room()
    return {"open_room_id": None}


@router.websocket("/ws")
async def notifications(websocket: WebSocket, session: Session = Depends(websocket_session)):
    """New-message notifications for the signed-in user. Ends at logout."""
    notifications = session.notifications.stream()
    await websocket.accept()
    await stream_until_disconnect(websocket, notifications)
