import pytest
from fastapi.testclient import TestClient

from realtyshare.core.config import Settings
from realtyshare.core.container import build_services
from realtyshare.core.pubsub import ChangeHub
from realtyshare.core.store import InMemoryDocumentStore
from realtyshare.main import create_app


PASSWORD = "Sup3r$ecret"


@pytest.fixture
def settings():
    return Settings(log_level="WARNING")


@pytest.fixture
def hub():
    return ChangeHub()


@pytest.fixture
def store(hub):
    return InMemoryDocumentStore(hub)


@pytest.fixture
def services(settings):
    return build_services(settings)


@pytest.fixture
def make_user(services):
    async def _make_user(uid, display_name=None):
        return await services.profiles.ensure_profile(uid, f"{uid}@example.com", display_name)

    return _make_user


@pytest.fixture
def client(settings):
    with TestClient(create_app(settings)) as client:
        yield client


@pytest.fixture
def register(client):
    """Registers an account through the API; returns (user_id, auth headers, token)."""

    def _register(name):
        response = client.post(
            "/auth/register",
            json={"email": f"{name}@example.com", "password": PASSWORD, "display_name": name},
        )
        assert response.status_code == 201, response.text
        body = response.json()
        return body["id"], {"Authorization": f"Bearer {body['access_token']}"}, body["access_token"]

    return _register
