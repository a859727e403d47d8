import pytest

from realtyshare.core.errors import NotFoundError, ValidationError
from realtyshare.core.schema import SCHEMA_SQL
from realtyshare.profiles.service import PROFILES


async def test_ensure_profile_applies_defaults_once(services):
    created = await services.profiles.ensure_profile("abcdef123", "a@example.com")

    assert created.display_name == "User_abcdef"
    assert created.bio == "New user, exploring!"
    assert created.role == "user"
    assert not created.is_admin

    await services.profiles.update_profile("abcdef123", {"display_name": "Ada"})
    again = await services.profiles.ensure_profile("abcdef123", "a@example.com", "Other")
    assert again.display_name == "Ada"


async def test_missing_fields_are_defaulted_at_read_time(services):
    await services.store.insert(PROFILES, "legacy01", {"email": "old@example.com"})

    profile = await services.profiles.get_profile("legacy01")

    assert profile.display_name == "User_legacy"
    assert profile.chat_rooms == []
    assert profile.is_private is False


async def test_update_rejects_protected_fields(services, make_user):
    await make_user("alice")

    with pytest.raises(ValidationError):
        await services.profiles.update_profile("alice", {"role": "admin"})


async def test_set_role_and_unknown_profile(services, make_user):
    await make_user("alice")

    assert (await services.profiles.set_role("alice", "admin")).is_admin

    with pytest.raises(NotFoundError):
        await services.profiles.set_role("ghost", "admin")


async def test_directory_search(services, make_user):
    await make_user("u1", "Maria Lopez")
    await make_user("u2", "Mark Chen")
    await make_user("u3", "Zoe Park")

    names = [p.display_name for p in await services.profiles.list_profiles("mar")]
    assert names == ["Maria Lopez", "Mark Chen"]


def test_schema_covers_every_collection():
    for table in ("profiles", "relationships", "chat_rooms", "messages", "presence", "media"):
        assert f"CREATE TABLE {table} (" in SCHEMA_SQL
