# tests/test_concurrency.py
import asyncio

import httpx

from conftest import url
from lpg_api.main import app


async def _signup_task(ac, password):
    return await ac.post(url("/auth/signup"), json={"username": "rush", "password": password, "role": "staff"})


async def _race(n):
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
        return await asyncio.gather(*(_signup_task(ac, f"secret-{i}") for i in range(n)))


def test_concurrent_same_username_signups(client, store):
    # client fixture installs the fresh store/provider overrides
    results = asyncio.run(_race(5))
    statuses = [r.status_code for r in results]
    assert statuses.count(200) == 1
    assert statuses.count(400) == 4
    for r in results:
        if r.status_code == 400:
            assert r.json() == {"error": "Username already exists"}

    users = asyncio.run(store.get_by_prefix("user:"))
    assert [u["username"] for u in users] == ["rush"]


def test_concurrent_init_seeds_once(client, store):
    async def race():
        transport = httpx.ASGITransport(app=app)
        async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
            return await asyncio.gather(*(ac.post(url("/init")) for _ in range(3)))

    results = asyncio.run(race())
    assert all(r.status_code == 200 for r in results)
    assert len(asyncio.run(store.get_by_prefix("product:"))) == 10
    assert len(asyncio.run(store.get_by_prefix("user:"))) == 2
