import json
import logging

from fastapi import APIRouter, Depends, WebSocket

from realtyshare.core.dependencies import (
    CurrentUser,
    get_services,
    verify_token,
    websocket_user,
)
from realtyshare.core.errors import ValidationError
from realtyshare.core.streaming import stream_until_disconnect

from .schemas import PresenceRecord, SetPresenceModel


logger = logging.getLogger(__name__)
router = APIRouter()


@router.put("", response_model=PresenceRecord, status_code=200)
async def set_presence(
    data: SetPresenceModel,
    user: CurrentUser = Depends(verify_token),
    services=Depends(get_services),
):
    """Heartbeat for clients that cannot hold a socket open."""
    return await services.presence.set_presence(user.id, data.state)


@router.websocket("/connect")
async def connect(websocket: WebSocket, user: CurrentUser = Depends(websocket_user)):
    """
    Holds the user online while the socket is open and marks them offline
    when it closes, cleanly or not. Clients may send `{"state": "away"}`
    style frames to change state; the server echoes the user's own record.
    """
    services = websocket.app.state.services
    await websocket.accept()

    async with services.presence.connection(user.id) as connection:

        async def on_message(text: str):
            try:
                state = json.loads(text).get("state", "online")
            except (ValueError, AttributeError):
                logger.warning(f"presence_frame_ignored user={user.id}")
                return
            try:
                await connection.heartbeat(state)
            except ValidationError as error:
                logger.warning(f"presence_frame_ignored user={user.id} error={error.message}")

        await stream_until_disconnect(
            websocket, services.presence.observe(user.id), on_message=on_message
        )


@router.get("/{uid}", response_model=PresenceRecord, status_code=200)
async def get_presence(
    uid: str,
    user: CurrentUser = Depends(verify_token),
    services=Depends(get_services),
):
    """Users that never connected read as offline."""
    return await services.presence.get_presence(uid)


@router.websocket("/ws/{uid}")
async def observe_presence(
    websocket: WebSocket, uid: str, user: CurrentUser = Depends(websocket_user)
):
    """Current record on connect, then every change."""
    services = websocket.app.state.services
    await websocket.accept()
    await stream_until_disconnect(websocket, services.presence.observe(uid))
