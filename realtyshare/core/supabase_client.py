import logging
from functools import lru_cache

from supabase import AsyncClient, Client, acreate_client, create_client

from realtyshare.core.config import Settings
from realtyshare.core.errors import BackendError


logger = logging.getLogger(__name__)


def _require_credentials(settings: Settings):
    if not settings.supabase_url or not settings.supabase_key:
        raise BackendError(
            "PUBLIC_SUPABASE_URL and SECRET_API_KEY must be set for the supabase backend."
        )


@lru_cache(maxsize=4)
def _client(supabase_url: str, supabase_key: str) -> Client:
    logger.info(f"supabase_client_created url={supabase_url}")
    return create_client(supabase_url, supabase_key)


def get_supabase(settings: Settings) -> Client:
    _require_credentials(settings)
    return _client(settings.supabase_url, settings.supabase_key)


async def get_async_supabase(settings: Settings) -> AsyncClient:
    """Async client; only Realtime subscriptions need one."""
    _require_credentials(settings)
    logger.info(f"supabase_async_client_created url={settings.supabase_url}")
    return await acreate_client(settings.supabase_url, settings.supabase_key)
