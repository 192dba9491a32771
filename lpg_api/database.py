# lpg_api/database.py
"""
Key-value persistence for users and products.

Every record lives under an opaque string key; ``user:<id>`` and
``product:<id>`` are a convention of the callers, the store knows nothing
about them. Listing a "table" is a prefix scan over all keys.

Backends (``KV_BACKEND``):
    memory    process-local dict, the default
    sqlite    single table file database
    supabase  the ``kv_store_*`` table behind Supabase's PostgREST
"""
import asyncio
import copy
import json
import sqlite3
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, List, Optional

import httpx

from .config import Settings, get_settings
from .log import get_logger

log = get_logger(__name__)


class KVStore(ABC):
    """Async key-value store with prefix enumeration."""

    @abstractmethod
    async def get(self, key: str) -> Optional[Any]:
        """Return the value stored at key, or None when absent."""

    @abstractmethod
    async def set(self, key: str, value: Any) -> None:
        """Upsert value at key."""

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Remove key if present. No error when absent."""

    @abstractmethod
    async def get_by_prefix(self, prefix: str) -> List[Any]:
        """All values whose key starts with prefix, in no particular order."""

    async def close(self) -> None:
        pass


class MemoryKVStore(KVStore):
    def __init__(self) -> None:
        self._data: Dict[str, Any] = {}

    async def get(self, key: str) -> Optional[Any]:
        value = self._data.get(key)
        return copy.deepcopy(value) if value is not None else None

    async def set(self, key: str, value: Any) -> None:
        self._data[key] = copy.deepcopy(value)

    async def delete(self, key: str) -> None:
        self._data.pop(key, None)

    async def get_by_prefix(self, prefix: str) -> List[Any]:
        return [copy.deepcopy(v) for k, v in self._data.items() if k.startswith(prefix)]

    def clear(self) -> None:
        self._data.clear()


class SQLiteKVStore(KVStore):
    """
    One table, ``kv_store(key TEXT PRIMARY KEY, value TEXT)``, values as JSON.
    Calls are pushed to a worker thread; a single connection is shared under a lock.
    """

    def __init__(self, path: Path | str = ":memory:") -> None:
        if str(path) != ":memory:":
            Path(path).parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()
        self._conn = sqlite3.connect(str(path), check_same_thread=False, isolation_level=None)
        self._conn.execute("PRAGMA journal_mode=WAL;")
        self._conn.execute("PRAGMA busy_timeout=5000;")
        self._conn.execute("CREATE TABLE IF NOT EXISTS kv_store (key TEXT PRIMARY KEY, value TEXT NOT NULL)")

    def _get(self, key: str) -> Optional[Any]:
        with self._lock:
            row = self._conn.execute("SELECT value FROM kv_store WHERE key = ?", (key,)).fetchone()
        return json.loads(row[0]) if row else None

    def _set(self, key: str, value: Any) -> None:
        payload = json.dumps(value)
        with self._lock:
            self._conn.execute(
                "INSERT INTO kv_store (key, value) VALUES (?, ?) "
                "ON CONFLICT(key) DO UPDATE SET value = excluded.value",
                (key, payload),
            )

    def _delete(self, key: str) -> None:
        with self._lock:
            self._conn.execute("DELETE FROM kv_store WHERE key = ?", (key,))

    def _get_by_prefix(self, prefix: str) -> List[Any]:
        # substr() rather than LIKE so '%' and '_' in a prefix match literally
        with self._lock:
            rows = self._conn.execute(
                "SELECT value FROM kv_store WHERE substr(key, 1, ?) = ?", (len(prefix), prefix)
            ).fetchall()
        return [json.loads(r[0]) for r in rows]

    async def get(self, key: str) -> Optional[Any]:
        return await asyncio.to_thread(self._get, key)

    async def set(self, key: str, value: Any) -> None:
        await asyncio.to_thread(self._set, key, value)

    async def delete(self, key: str) -> None:
        await asyncio.to_thread(self._delete, key)

    async def get_by_prefix(self, prefix: str) -> List[Any]:
        return await asyncio.to_thread(self._get_by_prefix, prefix)

    async def close(self) -> None:
        with self._lock:
            self._conn.close()


class SupabaseKVStore(KVStore):
    """
    ``key``/``value`` table exposed by PostgREST (``/rest/v1/<table>``),
    the layout the hosted deployment uses. ``value`` is a jsonb column.
    """

    def __init__(self, url: str, service_key: str, table: str, timeout: float = 10.0,
                 client: Optional[httpx.AsyncClient] = None) -> None:
        self.table = table
        self._client = client or httpx.AsyncClient(
            base_url=f"{url.rstrip('/')}/rest/v1",
            headers={"apikey": service_key, "Authorization": f"Bearer {service_key}"},
            timeout=timeout,
        )

    async def get(self, key: str) -> Optional[Any]:
        r = await self._client.get(f"/{self.table}", params={"select": "value", "key": f"eq.{key}"})
        r.raise_for_status()
        rows = r.json()
        return rows[0]["value"] if rows else None

    async def set(self, key: str, value: Any) -> None:
        r = await self._client.post(
            f"/{self.table}",
            json={"key": key, "value": value},
            headers={"Prefer": "resolution=merge-duplicates,return=minimal"},
        )
        r.raise_for_status()

    async def delete(self, key: str) -> None:
        r = await self._client.delete(f"/{self.table}", params={"key": f"eq.{key}"})
        r.raise_for_status()

    async def get_by_prefix(self, prefix: str) -> List[Any]:
        r = await self._client.get(f"/{self.table}", params={"select": "key,value", "key": f"like.{prefix}*"})
        r.raise_for_status()
        # LIKE treats '_' as a wildcard; keep only true prefix matches
        return [row["value"] for row in r.json() if row["key"].startswith(prefix)]

    async def close(self) -> None:
        await self._client.aclose()


def build_store(settings: Settings) -> KVStore:
    backend = settings.kv_backend
    if backend == "memory":
        return MemoryKVStore()
    if backend == "sqlite":
        return SQLiteKVStore(settings.sqlite_path)
    if backend == "supabase":
        settings.require_supabase()
        return SupabaseKVStore(
            settings.supabase_url,
            settings.supabase_service_role_key,
            settings.kv_table,
            timeout=settings.http_timeout,
        )
    raise RuntimeError(f"unknown KV_BACKEND: {backend!r}")


_STORE: Optional[KVStore] = None


def get_store() -> KVStore:
    """FastAPI dependency; the store is built on first use."""
    global _STORE
    if _STORE is None:
        settings = get_settings()
        _STORE = build_store(settings)
        log.info("kv_store_ready", backend=settings.kv_backend)
    return _STORE


async def close_store() -> None:
    global _STORE
    if _STORE is not None:
        await _STORE.close()
        _STORE = None


# ---------------------------
# Named locks for the check-then-write paths (signup, init).
# They only serialize requests inside this process.
# ---------------------------
_LOCKS: Dict[str, asyncio.Lock] = {}


def _get_lock(key: str) -> asyncio.Lock:
    if key not in _LOCKS:
        _LOCKS[key] = asyncio.Lock()
    return _LOCKS[key]
