# tests/test_products.py
import asyncio

from conftest import bearer, url

HOSE = {"name": "LPG Hose", "category": "Accessories", "quantity": 50, "price": 150}


def _create(client, token, payload=HOSE):
    r = client.post(url("/products"), json=payload, headers=bearer(token))
    assert r.status_code == 200, r.text
    return r.json()["product"]


def test_list_products_is_public(client):
    r = client.get(url("/products"))
    assert r.status_code == 200
    assert r.json() == {"success": True, "products": []}


def test_admin_creates_product(client, admin):
    p = _create(client, admin["accessToken"], {**HOSE, "lowStockThreshold": 10})
    assert p["id"]
    assert p["name"] == "LPG Hose"
    assert p["quantity"] == 50
    assert p["price"] == 150
    assert p["lowStockThreshold"] == 10
    assert p["createdAt"] == p["updatedAt"]

    listed = client.get(url("/products")).json()["products"]
    assert [x["id"] for x in listed] == [p["id"]]


def test_create_requires_admin(client, staff):
    r = client.post(url("/products"), json=HOSE, headers=bearer(staff["accessToken"]))
    assert r.status_code == 403
    assert r.json() == {"error": "Admin access required"}

    r = client.post(url("/products"), json=HOSE)
    assert r.status_code == 401
    assert r.json() == {"error": "Unauthorized"}


def test_create_validates_body(client, admin):
    token = admin["accessToken"]
    for bad in ({"category": "Stove"}, {**HOSE, "quantity": -1}, {**HOSE, "price": "free"}):
        r = client.post(url("/products"), json=bad, headers=bearer(token))
        assert r.status_code == 400
        assert r.json()["error"].startswith("Invalid ")


def test_staff_can_update_and_id_never_changes(client, admin, staff):
    p = _create(client, admin["accessToken"])
    r = client.put(
        url(f"/products/{p['id']}"),
        json={"quantity": 7, "id": "hijack", "price": 175.5},
        headers=bearer(staff["accessToken"]),
    )
    assert r.status_code == 200
    updated = r.json()["product"]
    assert updated["id"] == p["id"]
    assert updated["quantity"] == 7
    assert updated["price"] == 175.5
    assert updated["name"] == p["name"]
    assert updated["createdAt"] == p["createdAt"]

    listed = client.get(url("/products")).json()["products"]
    assert len(listed) == 1 and listed[0]["quantity"] == 7


def test_update_errors(client, admin):
    r = client.put(url("/products/missing"), json={"quantity": 1}, headers=bearer(admin["accessToken"]))
    assert r.status_code == 404
    assert r.json() == {"error": "Product not found"}

    r = client.put(url("/products/missing"), json={"quantity": 1})
    assert r.status_code == 401


def test_delete_is_admin_only_and_idempotent(client, admin, staff):
    p = _create(client, admin["accessToken"])

    r = client.delete(url(f"/products/{p['id']}"), headers=bearer(staff["accessToken"]))
    assert r.status_code == 403

    for _ in range(2):
        r = client.delete(url(f"/products/{p['id']}"), headers=bearer(admin["accessToken"]))
        assert r.status_code == 200
        assert r.json() == {"success": True, "message": "Product deleted successfully"}

    assert client.get(url("/products")).json()["products"] == []


def test_creates_minus_deletes(client, admin, store):
    token = admin["accessToken"]
    created = [_create(client, token, {**HOSE, "name": f"Item {i}", "quantity": i}) for i in range(6)]
    for p in created[:2]:
        client.delete(url(f"/products/{p['id']}"), headers=bearer(token))

    remaining = asyncio.run(store.get_by_prefix("product:"))
    assert sorted(p["name"] for p in remaining) == [f"Item {i}" for i in range(2, 6)]
    by_id = {p["id"]: p for p in created}
    for p in remaining:
        assert p == by_id[p["id"]]


def test_store_failure_is_reported_as_500(client, store, monkeypatch):
    async def boom(prefix):
        raise RuntimeError("disk on fire")

    monkeypatch.setattr(store, "get_by_prefix", boom)
    r = client.get(url("/products"))
    assert r.status_code == 500
    assert r.json() == {"error": "Failed to get products: disk on fire"}


def test_update_keeps_create_time_bounds(client, admin, staff):
    p = _create(client, admin["accessToken"])
    for bad in ({"quantity": -5}, {"price": -3}, {"name": ""}, {"lowStockThreshold": -1}):
        r = client.put(url(f"/products/{p['id']}"), json=bad, headers=bearer(staff["accessToken"]))
        assert r.status_code == 400
        assert r.json()["error"].startswith("Invalid ")

    stored = client.get(url("/products")).json()["products"][0]
    assert stored["quantity"] == 50
    assert stored["price"] == 150
    assert stored["name"] == "LPG Hose"
