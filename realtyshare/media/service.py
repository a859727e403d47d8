import logging
from typing import List

from realtyshare.core.errors import ConflictError, ForbiddenError, NotFoundError
from realtyshare.core.pubsub import MappedLiveQuery
from realtyshare.core.store import SERVER_TIMESTAMP, ArrayRemove, ArrayUnion, DocumentStore, Increment, new_id

from .schemas import MediaItem


logger = logging.getLogger(__name__)

MEDIA = "media"


def _items(docs: List[dict]) -> List[MediaItem]:
    return [MediaItem.model_validate(doc) for doc in docs]


class MediaLibrary:
    """Metadata for uploaded listing photos and videos; the files live in the blob store."""

    def __init__(self, store: DocumentStore):
        self.store = store

    async def add_media(
        self, owner_id: str, media_url: str, media_type: str, file_name: str
    ) -> MediaItem:
        doc = await self.store.insert(
            MEDIA,
            new_id(),
            {
                "owner_id": owner_id,
                "media_url": media_url,
                "media_type": media_type,
                "file_name": file_name,
                "timestamp": SERVER_TIMESTAMP,
                "likes": [],
                "likes_count": 0,
            },
        )
        logger.info(f"media_added id={doc['id']} owner={owner_id} type={media_type}")
        return MediaItem.model_validate(doc)

    async def get_media(self, media_id: str) -> MediaItem:
        doc = await self.store.get(MEDIA, media_id)
        if doc is None:
            raise NotFoundError("Media item not found.")
        return MediaItem.model_validate(doc)

    async def list_media(self) -> List[MediaItem]:
        return _items(await self.store.query(MEDIA, order_by="timestamp", descending=True))

    def watch_media(self) -> MappedLiveQuery:
        return self.store.watch(MEDIA, order_by="timestamp", descending=True).map(_items)

    async def toggle_like(self, media_id: str, uid: str) -> MediaItem:
        item = await self.get_media(media_id)

        if uid in item.likes:
            changes = {"likes": ArrayRemove(uid), "likes_count": Increment(-1)}
        else:
            changes = {"likes": ArrayUnion(uid), "likes_count": Increment(1)}

        # likes_count acts as the version of the likes list.
        doc = await self.store.update(
            MEDIA, media_id, changes, expect={"likes_count": item.likes_count}
        )
        if doc is None:
            raise ConflictError("Media item changed while liking; try again.")

        logger.info(f"media_like_toggled id={media_id} user={uid} likes={doc['likes_count']}")
        return MediaItem.model_validate(doc)

    async def delete_media(self, media_id: str, requester_id: str, is_admin: bool = False):
        item = await self.get_media(media_id)

        if item.owner_id != requester_id and not is_admin:
            raise ForbiddenError("Only the owner or an admin can delete this media.")

        if not await self.store.delete(MEDIA, media_id):
            raise NotFoundError("Media item not found.")

        logger.info(f"media_deleted id={media_id} by={requester_id} file={item.file_name}")
