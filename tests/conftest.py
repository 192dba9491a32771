# tests/conftest.py
import pytest
from fastapi.testclient import TestClient

from lpg_api import database
from lpg_api.auth_provider import InMemoryAuthProvider, get_auth_provider
from lpg_api.config import get_settings
from lpg_api.database import MemoryKVStore, get_store
from lpg_api.main import app

PREFIX = get_settings().route_prefix


def url(path: str) -> str:
    return f"{PREFIX}{path}"


def bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def store():
    return MemoryKVStore()


@pytest.fixture
def auth():
    return InMemoryAuthProvider()


@pytest.fixture
def client(store, auth):
    # fresh store/provider per test; locks are bound to whichever loop used them last
    database._LOCKS.clear()
    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_auth_provider] = lambda: auth
    yield TestClient(app)
    app.dependency_overrides.clear()
    database._LOCKS.clear()


def signup_and_signin(client, username: str, password: str, role: str) -> dict:
    r = client.post(url("/auth/signup"), json={"username": username, "password": password, "role": role})
    assert r.status_code == 200, r.text
    r = client.post(url("/auth/signin"), json={"username": username, "password": password})
    assert r.status_code == 200, r.text
    return r.json()


@pytest.fixture
def admin(client):
    return signup_and_signin(client, "boss", "boss-pass", "admin")


@pytest.fixture
def staff(client):
    return signup_and_signin(client, "clerk", "clerk-pass", "staff")
