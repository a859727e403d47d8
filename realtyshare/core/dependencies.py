import logging
from dataclasses import dataclass

import jwt
from fastapi import Depends, Query, WebSocket, WebSocketException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from starlette.requests import HTTPConnection

from realtyshare.core.config import Settings
from realtyshare.core.errors import AuthenticationError, ForbiddenError
from realtyshare.core.session import Session


logger = logging.getLogger(__name__)

security = HTTPBearer()


@dataclass
class CurrentUser:
    id: str
    email: str
    token: str


def get_services(connection: HTTPConnection):
    return connection.app.state.services


def decode_token(token: str, settings: Settings) -> CurrentUser:
    try:
        payload = jwt.decode(
            token,
            settings.jwt_secret,
            algorithms=["HS256"],
            issuer=settings.token_issuer,
            options={"verify_aud": False},
            leeway=60,
        )
    except jwt.ExpiredSignatureError:
        raise AuthenticationError("Token expired")
    except jwt.InvalidTokenError as e:
        logger.warning(f"jwt_verification_failed error={e}")
        raise AuthenticationError("Invalid token")

    if not payload.get("sub"):
        raise AuthenticationError("Invalid token")

    return CurrentUser(id=str(payload["sub"]), email=payload.get("email", ""), token=token)


def verify_token(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    services=Depends(get_services),
) -> CurrentUser:
    return decode_token(credentials.credentials, services.settings)


async def get_session(
    user: CurrentUser = Depends(verify_token),
    services=Depends(get_services),
) -> Session:
    session = services.sessions.get(user.id)
    if session is None:
        profile = await services.profiles.get_profile(user.id)
        session = services.sessions.open(user.id, is_admin=profile.is_admin)
    return session


async def require_admin(
    user: CurrentUser = Depends(verify_token),
    services=Depends(get_services),
) -> CurrentUser:
    # Role is read fresh so a demotion takes effect immediately.
    profile = await services.profiles.get_profile(user.id)
    if not profile.is_admin:
        raise ForbiddenError("Admin access required.")
    return user


def websocket_user(
    websocket: WebSocket,
    token: str = Query(...),
) -> CurrentUser:
    """WebSocket clients cannot set headers from browsers, so the token comes as ?token=."""
    try:
        return decode_token(token, websocket.app.state.services.settings)
    except AuthenticationError as error:
        raise WebSocketException(code=status.WS_1008_POLICY_VIOLATION, reason=error.message)


async def websocket_session(
    websocket: WebSocket,
    user: CurrentUser = Depends(websocket_user),
) -> Session:
    services = websocket.app.state.services
    session = services.sessions.get(user.id)
    if session is None:
        profile = await services.profiles.find_profile(user.id)
        if profile is None:
            raise WebSocketException(code=status.WS_1008_POLICY_VIOLATION, reason="Profile not found")
        session = services.sessions.open(user.id, is_admin=profile.is_admin)
    return session
