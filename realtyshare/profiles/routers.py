import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, WebSocket

from realtyshare.core.dependencies import (
    CurrentUser,
    get_services,
    require_admin,
    verify_token,
    websocket_user,
)
from realtyshare.core.streaming import stream_until_disconnect

from .schemas import (
    ProfilesResponseModel,
    SetRoleModel,
    SetRoleResponseModel,
    UpdateProfileModel,
    UserProfile,
)


logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("", response_model=ProfilesResponseModel, status_code=200)
async def list_profiles(
    search: Optional[str] = Query(None, min_length=1),
    user: CurrentUser = Depends(verify_token),
    services=Depends(get_services),
):
    """
    User directory, ordered by display name.

    **Input**
    - `search`: optional case-insensitive substring of the display name.
    """
    return {"profiles": await services.profiles.list_profiles(search)}


@router.get("/me", response_model=UserProfile, status_code=200)
async def get_my_profile(user: CurrentUser = Depends(verify_token), services=Depends(get_services)):
    return await services.profiles.get_profile(user.id)


@router.patch("/me", response_model=UserProfile, status_code=200)
async def update_my_profile(
    data: UpdateProfileModel,
    user: CurrentUser = Depends(verify_token),
    services=Depends(get_services),
):
    """Edit display name, bio, privacy flag or avatar URL. Omitted fields are left alone."""
    changes = data.model_dump(exclude_unset=True)
    return await services.profiles.update_profile(user.id, changes)


@router.websocket("/ws/me")
async def watch_my_profile(websocket: WebSocket, user: CurrentUser = Depends(websocket_user)):
    """Live profile: pushed again whenever the profile or one of its relationships changes."""
    services = websocket.app.state.services
    await websocket.accept()
    await stream_until_disconnect(websocket, services.profiles.watch_profile(user.id))


@router.get("/{uid}", response_model=UserProfile, status_code=200)
async def get_profile(
    uid: str,
    user: CurrentUser = Depends(verify_token),
    services=Depends(get_services),
):
    """
    A single user's profile.

    **Errors**
    - 404: Profile not found
    """
    return await services.profiles.get_profile(uid)


@router.put("/{uid}/role", response_model=SetRoleResponseModel, status_code=200)
async def set_role(
    uid: str,
    data: SetRoleModel,
    admin: CurrentUser = Depends(require_admin),
    services=Depends(get_services),
):
    """
    Promote or demote a user (admin only).

    The target's open session, if any, picks up the new role immediately.

    **Errors**
    - 403: Caller is not an admin
    - 404: Profile not found
    """
    profile = await services.profiles.set_role(uid, data.role)

    session = services.sessions.get(uid)
    if session is not None:
        session.is_admin = profile.is_admin

    logger.info(f"role_set_by_admin admin={admin.id} target={uid} role={data.role}")
    return {"uid": uid, "role": profile.role}
