"""
Identity providers.

``SupabaseIdentityProvider`` talks to Supabase Auth. ``LocalIdentityProvider``
keeps accounts in memory and signs its own HS256 tokens with the same secret
and issuer that ``verify_token`` checks, so the rest of the service cannot
tell the two apart. Both are synchronous; routers call them through
``run_in_threadpool``.
"""
import logging
import secrets
import threading
import time
import uuid
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

import jwt
from argon2 import PasswordHasher, Type
from argon2.exceptions import VerifyMismatchError
from supabase import AuthApiError, Client

from realtyshare.core.config import Settings
from realtyshare.core.errors import AuthenticationError, BackendError, ConflictError


logger = logging.getLogger(__name__)


@dataclass
class AuthResult:
    user_id: str
    email: str
    access_token: Optional[str] = None
    expires_in: Optional[int] = None
    refresh_token: Optional[str] = None


class IdentityProvider:
    def sign_up(self, email: str, password: str) -> AuthResult:
        raise NotImplementedError

    def login(self, email: str, password: str) -> AuthResult:
        raise NotImplementedError

    def refresh(self, refresh_token: str) -> AuthResult:
        raise NotImplementedError

    def logout(self, user_id: str):
        raise NotImplementedError

    def delete_account(self, user_id: str, email: str, password: str):
        """Re-authenticates with ``email``/``password`` before deleting ``user_id``."""
        raise NotImplementedError


class LocalIdentityProvider(IdentityProvider):
    def __init__(self, settings: Settings):
        self.settings = settings
        self._accounts: Dict[str, dict] = {}
        self._refresh_tokens: Dict[str, Tuple[str, float]] = {}
        self._lock = threading.Lock()
        self._hasher = PasswordHasher(type=Type.ID)  # argon2id

    def issue_access_token(self, user_id: str, email: str) -> str:
        now = int(time.time())
        payload = {
            "sub": user_id,
            "email": email,
            "role": "authenticated",
            "iss": self.settings.token_issuer,
            "iat": now,
            "exp": now + self.settings.access_token_ttl_seconds,
        }
        return jwt.encode(payload, self.settings.jwt_secret, algorithm="HS256")

    def _session_for(self, account: dict) -> AuthResult:
        refresh_token = secrets.token_urlsafe(32)
        self._refresh_tokens[refresh_token] = (
            account["id"],
            time.time() + self.settings.refresh_token_ttl_seconds,
        )
        return AuthResult(
            user_id=account["id"],
            email=account["email"],
            access_token=self.issue_access_token(account["id"], account["email"]),
            expires_in=self.settings.access_token_ttl_seconds,
            refresh_token=refresh_token,
        )

    def _check_credentials(self, email: str, password: str) -> dict:
        account = self._accounts.get(email.lower())
        if account is None:
            raise AuthenticationError("Invalid email or password.")
        try:
            self._hasher.verify(account["password_hash"], password)
        except VerifyMismatchError:
            raise AuthenticationError("Invalid email or password.")
        return account

    def sign_up(self, email, password):
        email = email.lower()
        with self._lock:
            if email in self._accounts:
                raise ConflictError("Email already registered.")

            account = {
                "id": str(uuid.uuid4()),
                "email": email,
                "password_hash": self._hasher.hash(password),
            }
            self._accounts[email] = account
            return self._session_for(account)

    def login(self, email, password):
        with self._lock:
            return self._session_for(self._check_credentials(email, password))

    def refresh(self, refresh_token):
        with self._lock:
            entry = self._refresh_tokens.pop(refresh_token, None)
            if entry is None or entry[1] < time.time():
                raise AuthenticationError("Refresh token invalid or expired. Please log in again.")

            user_id = entry[0]
            account = next((a for a in self._accounts.values() if a["id"] == user_id), None)
            if account is None:
                raise AuthenticationError("Account no longer exists.")
            return self._session_for(account)

    def logout(self, user_id):
        with self._lock:
            for token, (owner, _) in list(self._refresh_tokens.items()):
                if owner == user_id:
                    del self._refresh_tokens[token]

    def delete_account(self, user_id, email, password):
        with self._lock:
            account = self._check_credentials(email, password)
            if account["id"] != user_id:
                raise AuthenticationError("Credentials do not belong to the signed-in user.")
            del self._accounts[account["email"]]
        self.logout(user_id)


class SupabaseIdentityProvider(IdentityProvider):
    def __init__(self, client: Client):
        self.client = client

    @staticmethod
    def _result(res) -> AuthResult:
        session = res.session
        return AuthResult(
            user_id=str(res.user.id),
            email=res.user.email,
            access_token=session.access_token if session else None,
            expires_in=session.expires_in if session else None,
            refresh_token=session.refresh_token if session else None,
        )

    def sign_up(self, email, password):
        try:
            res = self.client.auth.sign_up({"email": email, "password": password})
        except AuthApiError as error:
            logger.error(f"supabase_error={error}")
            raise ConflictError(str(error))

        if not res.user:
            raise BackendError("Failed to create user")
        return self._result(res)

    def login(self, email, password):
        try:
            res = self.client.auth.sign_in_with_password({"email": email, "password": password})
        except AuthApiError as error:
            raise AuthenticationError(error.message)

        if not res.session:
            raise BackendError("Supabase authentication returned an unexpected response.")
        return self._result(res)

    def refresh(self, refresh_token):
        try:
            res = self.client.auth.refresh_session(refresh_token)
        except AuthApiError:
            raise AuthenticationError("Refresh token invalid or expired. Please log in again.")
        return self._result(res)

    def logout(self, user_id):
        # Supabase cannot revoke issued JWTs; this only ends the client session.
        try:
            self.client.auth.sign_out()
        except AuthApiError as error:
            logger.warning(f"supabase_sign_out_failed user={user_id} error={error}")

    def delete_account(self, user_id, email, password):
        res = self.login(email, password)
        if res.user_id != user_id:
            raise AuthenticationError("Credentials do not belong to the signed-in user.")

        try:
            self.client.auth.admin.delete_user(user_id)
        except AuthApiError as error:
            raise BackendError(error.message)
