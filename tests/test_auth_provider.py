# tests/test_auth_provider.py
import asyncio
import json

import httpx
import pytest

from lpg_api.auth_provider import InMemoryAuthProvider, SupabaseAuthProvider, build_auth_provider
from lpg_api.config import Settings
from lpg_api.errors import AuthProviderError

BASE = "https://proj.supabase.co/auth/v1"


def _provider(handler):
    client = httpx.AsyncClient(base_url=BASE, transport=httpx.MockTransport(handler))
    return SupabaseAuthProvider("https://proj.supabase.co", "service-key", client=client)


def test_supabase_happy_path():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        path = request.url.path
        if path.endswith("/admin/users") and request.method == "POST":
            return httpx.Response(200, json={"id": "u-1", "email": "maria@k4jlpg.local"})
        if path.endswith("/token"):
            return httpx.Response(200, json={"access_token": "jwt-1", "user": {"id": "u-1"}})
        if path.endswith("/user"):
            return httpx.Response(200, json={"id": "u-1"})
        return httpx.Response(204)

    async def scenario():
        p = _provider(handler)
        uid = await p.create_user("maria@k4jlpg.local", "secret1")
        session = await p.sign_in("maria@k4jlpg.local", "secret1")
        resolved = await p.get_user(session.access_token)
        await p.sign_out(session.access_token)
        await p.delete_user(uid)
        await p.close()
        return uid, session, resolved

    uid, session, resolved = asyncio.run(scenario())
    assert uid == "u-1"
    assert session.access_token == "jwt-1" and session.user_id == "u-1"
    assert resolved == "u-1"

    create, token, user, logout, delete = seen
    assert json.loads(create.content) == {"email": "maria@k4jlpg.local", "password": "secret1", "email_confirm": True}
    assert create.headers["Authorization"] == "Bearer service-key"
    assert create.headers["apikey"] == "service-key"
    assert token.url.params["grant_type"] == "password"
    assert user.headers["Authorization"] == "Bearer jwt-1"
    assert logout.url.params["scope"] == "global"
    assert logout.headers["Authorization"] == "Bearer jwt-1"
    assert delete.method == "DELETE" and delete.url.path == "/auth/v1/admin/users/u-1"


@pytest.mark.parametrize("body,expected", [
    ({"msg": "A user with this email address has already been registered"},
     "A user with this email address has already been registered"),
    ({"error": "invalid_grant", "error_description": "Invalid login credentials"}, "Invalid login credentials"),
    ({"message": "User not found"}, "User not found"),
])
def test_supabase_error_mapping(body, expected):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(422, json=body)

    async def scenario():
        p = _provider(handler)
        try:
            await p.create_user("x@k4jlpg.local", "secret1")
        finally:
            await p.close()

    with pytest.raises(AuthProviderError) as info:
        asyncio.run(scenario())
    assert info.value.message == expected
    assert info.value.provider_status == 422


def test_already_registered_detection():
    assert AuthProviderError("A user with this email address has already been registered").already_registered
    assert not AuthProviderError("rate limited").already_registered


def test_in_memory_provider():
    async def scenario():
        p = InMemoryAuthProvider()
        uid = await p.create_user("Maria@k4jlpg.local", "secret1")
        with pytest.raises(AuthProviderError) as dup:
            await p.create_user("maria@k4jlpg.local", "secret2")
        assert dup.value.already_registered

        with pytest.raises(AuthProviderError):
            await p.sign_in("maria@k4jlpg.local", "wrong-pass")

        first = await p.sign_in("maria@k4jlpg.local", "secret1")
        second = await p.sign_in("maria@k4jlpg.local", "secret1")
        assert await p.get_user(first.access_token) == uid

        # global sign out revokes every session of the user
        await p.sign_out(first.access_token)
        for s in (first, second):
            with pytest.raises(AuthProviderError):
                await p.get_user(s.access_token)

        await p.delete_user(uid)
        with pytest.raises(AuthProviderError) as gone:
            await p.delete_user(uid)
        assert gone.value.provider_status == 404

    asyncio.run(scenario())


def test_build_auth_provider():
    assert isinstance(build_auth_provider(Settings(auth_backend="memory")), InMemoryAuthProvider)
    with pytest.raises(RuntimeError):
        build_auth_provider(Settings(auth_backend="supabase", supabase_url=None, supabase_service_role_key=None))
