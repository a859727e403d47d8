from pydantic import BaseModel, field_validator
from datetime import datetime
from typing import List, Literal


MediaType = Literal["image", "video", "other"]


class MediaItem(BaseModel):
    id: str
    owner_id: str
    media_url: str
    media_type: MediaType
    file_name: str
    timestamp: datetime
    likes: List[str] = []
    likes_count: int = 0


class MediaListResponseModel(BaseModel):
    media: List[MediaItem]


class AddMediaModel(BaseModel):
    media_url: str
    media_type: MediaType = "image"
    file_name: str

    @field_validator("media_url")
    @classmethod
    def validate_media_url(cls, media_url: str) -> str:
        if not media_url.startswith(("https://", "http://")):
            raise ValueError("media_url must be an http(s) URL returned by the upload.")
        return media_url

    @field_validator("file_name")
    @classmethod
    def validate_file_name(cls, file_name: str) -> str:
        file_name = file_name.strip()
        if not (1 <= len(file_name) <= 255):
            raise ValueError("file_name must be between 1 and 255 characters long.")
        return file_name


class DeleteMediaResponseModel(BaseModel):
    media_deleted: bool
