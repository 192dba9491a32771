# lpg_api/auth_provider.py
"""
Narrow contract over the managed auth provider.

The provider owns credentials and session tokens; this service only ever
asks it to create/verify/revoke/delete. Two implementations:

- SupabaseAuthProvider: Supabase GoTrue over HTTP (service role key).
- InMemoryAuthProvider: process-local stand-in for development and tests.

Every failure surfaces as ``AuthProviderError`` carrying the provider's
message verbatim and, where there is one, its HTTP status.
"""
import hmac
import secrets
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx

from .config import Settings, get_settings
from .errors import AuthProviderError
from .log import get_logger

log = get_logger(__name__)

ALREADY_REGISTERED_MSG = "A user with this email address has already been registered"


@dataclass
class AuthSession:
    access_token: str
    user_id: str


class AuthProvider(ABC):
    @abstractmethod
    async def create_user(self, email: str, password: str) -> str:
        """Create a confirmed account and return the provider-issued id."""

    @abstractmethod
    async def sign_in(self, email: str, password: str) -> AuthSession:
        ...

    @abstractmethod
    async def get_user(self, token: str) -> str:
        """Resolve a bearer token to the provider user id."""

    @abstractmethod
    async def sign_out(self, token: str) -> None:
        ...

    @abstractmethod
    async def delete_user(self, user_id: str) -> None:
        ...

    async def close(self) -> None:
        pass


class InMemoryAuthProvider(AuthProvider):
    """
    Keeps accounts and issued tokens in dicts. Passwords are held as given;
    this backend never leaves a developer machine or a test run.
    """

    def __init__(self) -> None:
        self._accounts: Dict[str, Dict[str, str]] = {}
        self._by_email: Dict[str, str] = {}
        self._tokens: Dict[str, str] = {}

    async def create_user(self, email: str, password: str) -> str:
        email = email.lower()
        if email in self._by_email:
            raise AuthProviderError(ALREADY_REGISTERED_MSG, provider_status=422)
        if len(password) < 6:
            raise AuthProviderError("Password should be at least 6 characters.", provider_status=422)
        user_id = str(uuid.uuid4())
        self._accounts[user_id] = {"email": email, "password": password}
        self._by_email[email] = user_id
        return user_id

    async def sign_in(self, email: str, password: str) -> AuthSession:
        user_id = self._by_email.get(email.lower())
        account = self._accounts.get(user_id) if user_id else None
        if account is None or not hmac.compare_digest(account["password"].encode(), password.encode()):
            raise AuthProviderError("Invalid login credentials", provider_status=400)
        token = secrets.token_urlsafe(32)
        self._tokens[token] = user_id
        return AuthSession(access_token=token, user_id=user_id)

    async def get_user(self, token: str) -> str:
        user_id = self._tokens.get(token or "")
        if user_id is None or user_id not in self._accounts:
            raise AuthProviderError("invalid JWT: unable to parse or verify signature", provider_status=401)
        return user_id

    async def sign_out(self, token: str) -> None:
        user_id = self._tokens.get(token)
        if user_id is None:
            raise AuthProviderError("invalid JWT: unable to parse or verify signature", provider_status=401)
        # scope=global: every session of that user goes
        for t in [t for t, uid in self._tokens.items() if uid == user_id]:
            del self._tokens[t]

    async def delete_user(self, user_id: str) -> None:
        account = self._accounts.pop(user_id, None)
        if account is None:
            raise AuthProviderError("User not found", provider_status=404)
        self._by_email.pop(account["email"], None)
        for t in [t for t, uid in self._tokens.items() if uid == user_id]:
            del self._tokens[t]


def _error_message(resp: httpx.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        return resp.text or f"HTTP {resp.status_code}"
    if isinstance(body, dict):
        for field in ("msg", "message", "error_description", "error"):
            if body.get(field):
                return str(body[field])
    return f"HTTP {resp.status_code}"


class SupabaseAuthProvider(AuthProvider):
    """GoTrue endpoints under ``<SUPABASE_URL>/auth/v1``."""

    def __init__(self, url: str, service_key: str, timeout: float = 10.0,
                 client: Optional[httpx.AsyncClient] = None) -> None:
        self.service_key = service_key
        self._client = client or httpx.AsyncClient(base_url=f"{url.rstrip('/')}/auth/v1", timeout=timeout)

    def _headers(self, bearer: Optional[str] = None) -> Dict[str, str]:
        return {"apikey": self.service_key, "Authorization": f"Bearer {bearer or self.service_key}"}

    async def _call(self, method: str, path: str, *, bearer: Optional[str] = None, **kwargs: Any) -> Any:
        r = await self._client.request(method, path, headers=self._headers(bearer), **kwargs)
        if r.is_error:
            message = _error_message(r)
            log.warning("auth_provider_error", path=path, status=r.status_code, message=message)
            raise AuthProviderError(message, provider_status=r.status_code)
        if not r.content:
            return None
        return r.json()

    async def create_user(self, email: str, password: str) -> str:
        data = await self._call(
            "POST", "/admin/users", json={"email": email, "password": password, "email_confirm": True}
        )
        user = data.get("user", data)
        return user["id"]

    async def sign_in(self, email: str, password: str) -> AuthSession:
        data = await self._call(
            "POST", "/token", params={"grant_type": "password"}, json={"email": email, "password": password}
        )
        return AuthSession(access_token=data["access_token"], user_id=data["user"]["id"])

    async def get_user(self, token: str) -> str:
        data = await self._call("GET", "/user", bearer=token)
        return data["id"]

    async def sign_out(self, token: str) -> None:
        await self._call("POST", "/logout", bearer=token, params={"scope": "global"})

    async def delete_user(self, user_id: str) -> None:
        await self._call("DELETE", f"/admin/users/{user_id}")

    async def close(self) -> None:
        await self._client.aclose()


def build_auth_provider(settings: Settings) -> AuthProvider:
    backend = settings.auth_backend
    if backend == "memory":
        return InMemoryAuthProvider()
    if backend == "supabase":
        settings.require_supabase()
        return SupabaseAuthProvider(
            settings.supabase_url, settings.supabase_service_role_key, timeout=settings.http_timeout
        )
    raise RuntimeError(f"unknown AUTH_BACKEND: {backend!r}")


_AUTH: Optional[AuthProvider] = None


def get_auth_provider() -> AuthProvider:
    """FastAPI dependency; the provider is built on first use."""
    global _AUTH
    if _AUTH is None:
        settings = get_settings()
        _AUTH = build_auth_provider(settings)
        log.info("auth_provider_ready", backend=settings.auth_backend)
    return _AUTH


async def close_auth_provider() -> None:
    global _AUTH
    if _AUTH is not None:
        await _AUTH.close()
        _AUTH = None
