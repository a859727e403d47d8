from realtyshare.profiles.service import ProfileStore


UNKNOWN_USER = "Unknown User"


async def get_display_name(profiles: ProfileStore, uid: str) -> str:
    """Get a user's display name using their id"""
    return await profiles.display_name(uid) or UNKNOWN_USER
