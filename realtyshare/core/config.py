import os
import logging
from typing import List, Literal, Optional

from pydantic import BaseModel, field_validator

from realtyshare.utils.env_helper import env_bool, env_int, env_list, env_none_or_str


logger = logging.getLogger(__name__)

DEV_JWT_SECRET = "realtyshare-dev-secret-change-me"
DEFAULT_ORIGINS = ["http://localhost:4200", "http://localhost:5173"]


class Settings(BaseModel):
    store_backend: Literal["memory", "supabase"] = "memory"
    identity_backend: Literal["local", "supabase"] = "local"

    supabase_url: Optional[str] = None
    supabase_key: Optional[str] = None

    jwt_secret: str = DEV_JWT_SECRET
    jwt_issuer: Optional[str] = None
    access_token_ttl_seconds: int = 60 * 60
    refresh_token_ttl_seconds: int = 60 * 60 * 24 * 7

    max_message_length: int = 500

    cors_origins: List[str] = DEFAULT_ORIGINS

    cookie_httponly: bool = True
    cookie_secure: bool = False
    cookie_samesite: str = "Lax"
    cookie_domain: Optional[str] = None

    log_level: str = "INFO"
    log_format: str = "default"

    @field_validator("max_message_length")
    @classmethod
    def validate_max_message_length(cls, value: int) -> int:
        if value < 1:
            raise ValueError("MAX_MESSAGE_LENGTH must be positive.")
        return value

    @property
    def token_issuer(self) -> str:
        if self.jwt_issuer:
            return self.jwt_issuer
        if self.supabase_url:
            return f"{self.supabase_url}/auth/v1"
        return "realtyshare-local"

    @classmethod
    def from_env(cls) -> "Settings":
        settings = cls(
            store_backend=os.getenv("STORE_BACKEND", "memory"),
            identity_backend=os.getenv("IDENTITY_BACKEND", "local"),
            supabase_url=env_none_or_str("PUBLIC_SUPABASE_URL"),
            supabase_key=env_none_or_str("SECRET_API_KEY"),
            jwt_secret=os.getenv("SUPABASE_JWT_SECRET", DEV_JWT_SECRET),
            jwt_issuer=env_none_or_str("JWT_ISSUER"),
            access_token_ttl_seconds=env_int("ACCESS_TOKEN_TTL_SECONDS", 60 * 60),
            refresh_token_ttl_seconds=env_int(
                "REFRESH_TOKEN_TTL_SECONDS", 60 * 60 * 24 * 7
            ),
            max_message_length=env_int("MAX_MESSAGE_LENGTH", 500),
            cors_origins=env_list("CORS_ORIGINS", DEFAULT_ORIGINS),
            cookie_httponly=env_bool("HTTPONLY", default=True),
            cookie_secure=env_bool("SECURE", default=False),
            cookie_samesite=os.getenv("SAMESITE", "Lax"),
            cookie_domain=env_none_or_str("COOKIE_DOMAIN", None),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            log_format=os.getenv("LOG_FORMAT", "default"),
        )

        if settings.jwt_secret == DEV_JWT_SECRET:
            logger.warning("jwt_secret_unset using development secret")

        return settings
