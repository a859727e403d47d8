import logging
from dataclasses import dataclass

from realtyshare.auth.identity import IdentityProvider, LocalIdentityProvider, SupabaseIdentityProvider
from realtyshare.chat.messages import MessageLog
from realtyshare.chat.rooms import ChatRoomDirectory
from realtyshare.core.config import Settings
from realtyshare.core.pubsub import ChangeHub
from realtyshare.core.realtime import RealtimeFeed
from realtyshare.core.schema import TABLES
from realtyshare.core.session import SessionRegistry
from realtyshare.core.store import DocumentStore, InMemoryDocumentStore
from realtyshare.core.supabase_client import get_async_supabase, get_supabase
from realtyshare.core.supabase_store import SupabaseDocumentStore
from realtyshare.friendship.service import RelationshipEngine
from realtyshare.media.service import MediaLibrary
from realtyshare.presence.service import PresenceTracker
from realtyshare.profiles.service import ProfileStore


logger = logging.getLogger(__name__)


@dataclass
class Services:
    settings: Settings
    hub: ChangeHub
    store: DocumentStore
    identity: IdentityProvider
    profiles: ProfileStore
    relationships: RelationshipEngine
    rooms: ChatRoomDirectory
    messages: MessageLog
    presence: PresenceTracker
    media: MediaLibrary
    sessions: SessionRegistry

    async def start(self):
        await self.store.start()

    async def close(self):
        self.sessions.close_all()
        await self.store.close()


def build_store(settings: Settings, hub: ChangeHub) -> DocumentStore:
    if settings.store_backend == "supabase":
        feed = RealtimeFeed(hub, TABLES, lambda: get_async_supabase(settings))
        return SupabaseDocumentStore(get_supabase(settings), hub, feed=feed)
    return InMemoryDocumentStore(hub)


def build_identity(settings: Settings) -> IdentityProvider:
    if settings.identity_backend == "supabase":
        return SupabaseIdentityProvider(get_supabase(settings))
    return LocalIdentityProvider(settings)


def build_services(settings: Settings) -> Services:
    hub = ChangeHub()
    store = build_store(settings, hub)
    profiles = ProfileStore(store)
    rooms = ChatRoomDirectory(store, profiles)

    logger.info(
        f"services_built store={settings.store_backend} identity={settings.identity_backend}"
    )

    return Services(
        settings=settings,
        hub=hub,
        store=store,
        identity=build_identity(settings),
        profiles=profiles,
        relationships=RelationshipEngine(store, profiles),
        rooms=rooms,
        messages=MessageLog(store, rooms, max_length=settings.max_message_length),
        presence=PresenceTracker(store),
        media=MediaLibrary(store),
        sessions=SessionRegistry(hub, profiles),
    )
