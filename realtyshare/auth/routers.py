import logging

from fastapi import APIRouter, status, HTTPException, Request, Response, Depends
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse

from realtyshare.core.dependencies import CurrentUser, get_services, verify_token
from realtyshare.core.errors import AuthenticationError
from realtyshare.profiles.schemas import UserProfile
from .schemas import (
    UserRegistrationModel,
    UserRegistrationResponseModel,
    UserLoginModel,
    UserLoginResponseModel,
    AccessTokenResponseModel,
    DeleteAccountModel,
    DeleteAccountResponseModel,
)


logger = logging.getLogger(__name__)
router = APIRouter()

COOKIE_NAME = "refresh_token"
COOKIE_PATH = "/auth/access"


def _set_refresh_cookie(response: Response, refresh_token: str, settings):
    response.set_cookie(
        key=COOKIE_NAME,
        value=refresh_token,
        httponly=settings.cookie_httponly,
        secure=settings.cookie_secure,
        samesite=settings.cookie_samesite,
        domain=settings.cookie_domain,
        max_age=settings.refresh_token_ttl_seconds,
        path=COOKIE_PATH,
    )


def _delete_refresh_cookie(response: Response, settings):
    response.delete_cookie(
        key=COOKIE_NAME,
        path=COOKIE_PATH,  # must match set_cookie()
        domain=settings.cookie_domain,
    )


@router.post("/register", response_model=UserRegistrationResponseModel, status_code=201)
async def register_user(
    data: UserRegistrationModel, response: Response, services=Depends(get_services)
):
    """
    Register a new user.

    Creates an identity-provider account and the matching profile record.

    **Input Fields**
    - **email**: A valid user email. Must not already be registered.
    - **password**: Minimum 8 characters with lower, upper, digit and special character.
    - **display_name**: Optional, 1-50 characters. Defaults to `User_<id prefix>`.

    **Returns**
    - User ID, email and display name
    - An access token when the provider signs the user in immediately

    **Errors**
    - 409: Email already registered
    - 422: Invalid input
    - 502: Identity provider failure
    """
    result = await run_in_threadpool(
        services.identity.sign_up, data.email, data.password.get_secret_value()
    )

    profile = await services.profiles.ensure_profile(
        result.user_id, result.email, data.display_name
    )

    if result.access_token:
        services.sessions.open(result.user_id, is_admin=profile.is_admin)
    if result.refresh_token:
        _set_refresh_cookie(response, result.refresh_token, services.settings)

    logger.info(f"user_registered email={result.email} uid={result.user_id}")

    return {
        "id": result.user_id,
        "email": result.email,
        "display_name": profile.display_name,
        "access_token": result.access_token,
        "expires_in": result.expires_in,
    }


@router.post("/login", response_model=UserLoginResponseModel, status_code=200)
async def login_user(
    user_data: UserLoginModel, response: Response, services=Depends(get_services)
):
    """
    Authenticate a user with email and password.

    Creates the profile on first successful login if it is missing and
    opens the user's session. A refresh token is set in an HttpOnly cookie.

    **Returns**
    - `access_token`, `expires_in`, `user_id`, `email`, `is_admin`

    **Errors**
    - 401: Invalid email or password
    - 502: Identity provider failure
    """
    result = await run_in_threadpool(
        services.identity.login, user_data.email, user_data.password.get_secret_value()
    )

    profile = await services.profiles.ensure_profile(result.user_id, result.email)
    services.sessions.open(result.user_id, is_admin=profile.is_admin)

    if result.refresh_token:
        _set_refresh_cookie(response, result.refresh_token, services.settings)

    logger.info(f"user_login_success email={result.email}")

    return {
        "access_token": result.access_token,
        "expires_in": result.expires_in,
        "user_id": result.user_id,
        "email": result.email,
        "is_admin": profile.is_admin,
    }


@router.get("/access", response_model=AccessTokenResponseModel, status_code=200)
async def get_new_access(request: Request, response: Response, services=Depends(get_services)):
    """
    Issue a new access token using the refresh token stored in an HttpOnly cookie.

    The refresh token is rotated and the cookie updated.

    **Errors**
    - 401: Missing, expired, revoked, or invalid refresh token
    """
    refresh_token = request.cookies.get(COOKIE_NAME)

    if not refresh_token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="No refresh token provided.",
        )

    try:
        result = await run_in_threadpool(services.identity.refresh, refresh_token)
    except AuthenticationError:
        expired = JSONResponse(
            status_code=status.HTTP_401_UNAUTHORIZED,
            content={"detail": "Refresh token invalid or expired. Please log in again."},
        )
        _delete_refresh_cookie(expired, services.settings)
        return expired

    if result.refresh_token:
        _set_refresh_cookie(response, result.refresh_token, services.settings)
    return {"access_token": result.access_token}


@router.get("/me", response_model=UserProfile, status_code=200)
async def get_me(user: CurrentUser = Depends(verify_token), services=Depends(get_services)):
    """
    Full profile of the authenticated user, including friends, pending
    requests in both directions and chat room ids.

    **Errors**
    - 401: Invalid or expired token
    - 404: Profile not found
    """
    return await services.profiles.get_profile(user.id)


@router.post("/logout")
async def logout(user: CurrentUser = Depends(verify_token), services=Depends(get_services)):
    """
    Logs the user out: marks them offline, closes their session (which
    ends their notification streams) and clears the refresh token cookie.
    Issued access tokens stay valid until they expire.
    """
    await services.presence.set_presence(user.id, "offline")
    services.sessions.close(user.id)
    await run_in_threadpool(services.identity.logout, user.id)

    response = JSONResponse({"logged_out": True})
    _delete_refresh_cookie(response, services.settings)

    logger.info(f"user_logout uid={user.id}")
    return response


@router.delete("/account", response_model=DeleteAccountResponseModel, status_code=200)
async def delete_account(
    data: DeleteAccountModel,
    user: CurrentUser = Depends(verify_token),
    services=Depends(get_services),
):
    """
    Permanently delete the authenticated account.

    Requires the account's email and password again. Removes the identity,
    the profile and its relationships; chat history is kept.

    **Errors**
    - 401: Credentials invalid or not the signed-in user
    - 404: Profile not found
    """
    await run_in_threadpool(
        services.identity.delete_account,
        user.id,
        data.email,
        data.password.get_secret_value(),
    )

    await services.presence.set_presence(user.id, "offline")
    await services.profiles.delete_profile(user.id)
    services.sessions.close(user.id)

    logger.info(f"account_deleted uid={user.id}")
    return {"account_deleted": True}
