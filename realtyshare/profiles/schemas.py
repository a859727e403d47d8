from pydantic import BaseModel, field_validator
from typing import List, Literal, Optional
from datetime import datetime


Role = Literal["user", "admin"]


class UserProfile(BaseModel):
    uid: str
    email: str
    display_name: str
    bio: str = ""
    is_private: bool = False
    profile_picture_url: Optional[str] = None
    role: Role = "user"
    created_at: Optional[datetime] = None

    # derived from relationship edges on every read
    friends: List[str] = []
    sent_requests: List[str] = []
    received_requests: List[str] = []

    chat_rooms: List[str] = []

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


class ProfileSummary(BaseModel):
    uid: str
    display_name: str
    bio: str = ""
    is_private: bool = False
    profile_picture_url: Optional[str] = None
    role: Role = "user"


class ProfilesResponseModel(BaseModel):
    profiles: List[ProfileSummary]


"""
profiles/me (PATCH)
"""


class UpdateProfileModel(BaseModel):
    display_name: Optional[str] = None
    bio: Optional[str] = None
    is_private: Optional[bool] = None
    profile_picture_url: Optional[str] = None

    @field_validator("display_name")
    @classmethod
    def validate_display_name(cls, display_name: Optional[str]) -> Optional[str]:
        if display_name is None:
            return display_name
        display_name = display_name.strip()
        if not (1 <= len(display_name) <= 50):
            raise ValueError(
                f"Display name must be between 1 and 50 characters long (got {len(display_name)})."
            )
        return display_name

    @field_validator("bio")
    @classmethod
    def validate_bio(cls, bio: Optional[str]) -> Optional[str]:
        if bio is not None and len(bio) > 300:
            raise ValueError("Bio must be at most 300 characters long.")
        return bio


"""
profiles/{uid}/role (admin)
"""


class SetRoleModel(BaseModel):
    role: Role


class SetRoleResponseModel(BaseModel):
    uid: str
    role: Role
