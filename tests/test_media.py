import pytest

from realtyshare.core.errors import ForbiddenError, NotFoundError


@pytest.fixture
async def photo(services, make_user):
    await make_user("alice")
    return await services.media.add_media(
        "alice", "https://cdn.example.com/house.jpg", "image", "house.jpg"
    )


async def test_like_toggles(services, photo):
    liked = await services.media.toggle_like(photo.id, "bob")
    assert liked.likes == ["bob"]
    assert liked.likes_count == 1

    unliked = await services.media.toggle_like(photo.id, "bob")
    assert unliked.likes == []
    assert unliked.likes_count == 0


async def test_media_is_listed_newest_first(services, photo):
    newer = await services.media.add_media(
        "alice", "https://cdn.example.com/garden.mp4", "video", "garden.mp4"
    )

    assert [item.id for item in await services.media.list_media()] == [newer.id, photo.id]


async def test_only_owner_or_admin_can_delete(services, photo):
    with pytest.raises(ForbiddenError):
        await services.media.delete_media(photo.id, "mallory")

    await services.media.delete_media(photo.id, "moderator", is_admin=True)

    with pytest.raises(NotFoundError):
        await services.media.get_media(photo.id)


async def test_owner_can_delete(services, photo):
    await services.media.delete_media(photo.id, "alice")
    assert await services.media.list_media() == []
