import logging

from fastapi import APIRouter, Depends, WebSocket

from realtyshare.core.dependencies import (
    CurrentUser,
    get_services,
    get_session,
    verify_token,
    websocket_user,
)
from realtyshare.core.session import Session
from realtyshare.core.streaming import stream_until_disconnect

from .schemas import AddMediaModel, DeleteMediaResponseModel, MediaItem, MediaListResponseModel


logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("", response_model=MediaListResponseModel, status_code=200)
async def list_media(user: CurrentUser = Depends(verify_token), services=Depends(get_services)):
    """Gallery, newest first."""
    return {"media": await services.media.list_media()}


@router.post("", response_model=MediaItem, status_code=201)
async def add_media(
    data: AddMediaModel,
    user: CurrentUser = Depends(verify_token),
    services=Depends(get_services),
):
    """
    Register a file that the client already uploaded to the blob store.

    **Input**
    - `media_url`: Download URL returned by the upload
    - `media_type`: image | video | other
    - `file_name`: Original file name
    """
    return await services.media.add_media(user.id, data.media_url, data.media_type, data.file_name)


@router.post("/{media_id}/like", response_model=MediaItem, status_code=200)
async def toggle_like(
    media_id: str,
    user: CurrentUser = Depends(verify_token),
    services=Depends(get_services),
):
    """
    Like the item, or remove the like if the user already liked it.

    **Errors**
    - 404: Media item not found
    - 409: Concurrent like; retry
    """
    return await services.media.toggle_like(media_id, user.id)


@router.delete("/{media_id}", response_model=DeleteMediaResponseModel, status_code=200)
async def delete_media(
    media_id: str,
    session: Session = Depends(get_session),
    services=Depends(get_services),
):
    """
    **Errors**
    - 403: Caller is neither the owner nor an admin
    - 404: Media item not found
    """
    await services.media.delete_media(media_id, session.user_id, is_admin=session.is_admin)
    return {"media_deleted": True}


@router.websocket("/ws")
async def watch_media(websocket: WebSocket, user: CurrentUser = Depends(websocket_user)):
    services = websocket.app.state.services
    await websocket.accept()
    await stream_until_disconnect(
        websocket, services.media.watch_media(), render=lambda items: {"media": items}
    )
