# tests/test_users.py
import asyncio

from conftest import bearer, url
from lpg_api.errors import AuthProviderError


def test_list_users_admin_only(client, admin, staff):
    r = client.get(url("/users"), headers=bearer(admin["accessToken"]))
    assert r.status_code == 200
    assert sorted(u["username"] for u in r.json()["users"]) == ["boss", "clerk"]

    assert client.get(url("/users"), headers=bearer(staff["accessToken"])).status_code == 403
    assert client.get(url("/users")).status_code == 401


def test_update_user(client, admin, staff):
    uid = staff["user"]["id"]
    r = client.put(url(f"/users/{uid}"), json={"role": "admin", "id": "other"}, headers=bearer(admin["accessToken"]))
    assert r.status_code == 200
    user = r.json()["user"]
    assert user["id"] == uid
    assert user["role"] == "admin"
    assert user["username"] == "clerk"
    assert user["updatedAt"]

    # promoted staff can now list users
    assert client.get(url("/users"), headers=bearer(staff["accessToken"])).status_code == 200


def test_update_user_errors(client, admin, staff):
    r = client.put(url("/users/nobody"), json={"role": "staff"}, headers=bearer(admin["accessToken"]))
    assert r.status_code == 404
    assert r.json() == {"error": "User not found"}

    r = client.put(url(f"/users/{admin['user']['id']}"), json={"role": "staff"},
                   headers=bearer(staff["accessToken"]))
    assert r.status_code == 403


def test_delete_user(client, admin, staff, store):
    uid = staff["user"]["id"]
    assert client.delete(url(f"/users/{uid}"), headers=bearer(staff["accessToken"])).status_code == 403

    r = client.delete(url(f"/users/{uid}"), headers=bearer(admin["accessToken"]))
    assert r.status_code == 200
    assert r.json() == {"success": True, "message": "User deleted successfully"}
    assert asyncio.run(store.get(f"user:{uid}")) is None

    # account is gone at the provider too
    r = client.post(url("/auth/signin"), json={"username": "clerk", "password": "clerk-pass"})
    assert r.status_code == 401


def test_admin_cannot_delete_self(client, admin, store):
    uid = admin["user"]["id"]
    r = client.delete(url(f"/users/{uid}"), headers=bearer(admin["accessToken"]))
    assert r.status_code == 400
    assert r.json() == {"error": "Cannot delete your own account"}
    assert asyncio.run(store.get(f"user:{uid}")) is not None


def test_delete_profile_without_account(client, admin, store):
    # provider "not found" counts as already deleted
    asyncio.run(store.set("user:stale", {"id": "stale", "username": "old", "role": "staff",
                                         "createdAt": "2024-01-01T00:00:00.000Z"}))
    r = client.delete(url("/users/stale"), headers=bearer(admin["accessToken"]))
    assert r.status_code == 200
    assert asyncio.run(store.get("user:stale")) is None


def test_delete_aborts_on_provider_outage(client, admin, staff, auth, store, monkeypatch):
    async def outage(user_id):
        raise AuthProviderError("upstream unavailable", provider_status=503)

    monkeypatch.setattr(auth, "delete_user", outage)
    uid = staff["user"]["id"]
    r = client.delete(url(f"/users/{uid}"), headers=bearer(admin["accessToken"]))
    assert r.status_code == 500
    assert r.json() == {"error": "Failed to delete user: upstream unavailable"}
    assert asyncio.run(store.get(f"user:{uid}")) is not None


def test_update_user_rejects_empty_fields(client, admin, staff, store):
    uid = staff["user"]["id"]
    for bad in ({"username": ""}, {"role": ""}):
        r = client.put(url(f"/users/{uid}"), json=bad, headers=bearer(admin["accessToken"]))
        assert r.status_code == 400
    stored = asyncio.run(store.get(f"user:{uid}"))
    assert stored["username"] == "clerk"
    assert stored["role"] == "staff"


def test_admin_check_reads_role_only(client, admin, staff, store):
    # caller profiles missing other fields still resolve by role
    admin_id = admin["user"]["id"]
    asyncio.run(store.set(f"user:{admin_id}", {"id": admin_id, "role": "admin"}))
    assert client.get(url("/users"), headers=bearer(admin["accessToken"])).status_code == 200

    staff_id = staff["user"]["id"]
    asyncio.run(store.set(f"user:{staff_id}", {"id": staff_id, "username": "clerk"}))
    r = client.get(url("/users"), headers=bearer(staff["accessToken"]))
    assert r.status_code == 403
    assert r.json() == {"error": "Admin access required"}
