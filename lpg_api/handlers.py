from contextlib import contextmanager
from typing import Any, Dict, Optional, Type, TypeVar

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from .auth_provider import AuthProvider
from .config import get_settings
from .core import (
    PRODUCT_PREFIX, USER_PREFIX, ProductIn, ProductUpdate, SignInIn, SignUpIn,
    UserUpdate, _make_product_dict, _make_user_dict, new_product_id,
    product_key, synthetic_email, user_key, utc_now_iso,
)
from .database import KVStore, _get_lock
from .errors import (
    ApiError, AuthProviderError, ConflictError, Forbidden, InternalError,
    InvalidCredentials, NotFound, SelfDeleteError, Unauthorized, ValidationError,
)
from .log import get_logger
from .models import Product, User
from .seed import SEED_ACCOUNTS, SEED_PRODUCTS

# This file contains the core logic for all API endpoints.

log = get_logger(__name__)

M = TypeVar("M", bound=BaseModel)


@contextmanager
def _failing_as(action: str):
    """Anything that isn't already an ApiError becomes a 500 '<action>: <reason>'."""
    try:
        yield
    except ApiError:
        raise
    except Exception as exc:
        log.exception("handler_failed", action=action)
        raise InternalError(f"{action}: {exc}") from exc


def _parse(model: Type[M], payload: Optional[Dict[str, Any]]) -> M:
    try:
        return model.model_validate(payload or {})
    except PydanticValidationError as exc:
        err = exc.errors()[0]
        field = ".".join(str(p) for p in err["loc"]) or "body"
        raise ValidationError(f"Invalid {field}: {err['msg']}")


def _email_for(username: str) -> str:
    return synthetic_email(username, get_settings().auth_email_domain)


async def _authenticate(auth: AuthProvider, token: Optional[str]) -> str:
    if not token:
        raise Unauthorized()
    try:
        return await auth.get_user(token)
    except AuthProviderError:
        raise Unauthorized()


async def _require_admin(store: KVStore, auth: AuthProvider, token: Optional[str]) -> str:
    user_id = await _authenticate(auth, token)
    profile = await store.get(user_key(user_id))
    # only the role matters here; the rest of the record may be stale
    if profile is None or profile.get("role") != "admin":
        raise Forbidden()
    return user_id


# Auth endpoints
async def signup_logic(store: KVStore, auth: AuthProvider, payload: SignUpIn):
    with _failing_as("Signup failed"):
        if not payload.username or not payload.password or not payload.role:
            raise ValidationError("Username, password, and role are required")

        # scan + create + write must not interleave with another signup
        async with _get_lock("signup"):
            existing = await store.get_by_prefix(USER_PREFIX)
            if any(u.get("username") == payload.username for u in existing):
                raise ConflictError("Username already exists")

            try:
                user_id = await auth.create_user(_email_for(payload.username), payload.password)
            except AuthProviderError as exc:
                log.warning("signup_provider_error", username=payload.username, error=exc.message)
                raise AuthProviderError(f"Failed to create user: {exc.message}", provider_status=exc.provider_status)

            user = _make_user_dict(user_id, payload.username, payload.role)
            await store.set(user_key(user_id), user)

        log.info("user_created", user_id=user_id, role=payload.role)
        return {"success": True, "user": user, "message": "User created successfully"}


async def signin_logic(store: KVStore, auth: AuthProvider, payload: SignInIn):
    with _failing_as("Sign in failed"):
        if not payload.username or not payload.password:
            raise ValidationError("Username and password are required")

        try:
            session = await auth.sign_in(_email_for(payload.username), payload.password)
        except AuthProviderError as exc:
            log.info("signin_rejected", username=payload.username, error=exc.message)
            raise InvalidCredentials()

        user = await store.get(user_key(session.user_id))
        if user is None:
            # provider knows the account but the profile record is gone
            raise NotFound("User data")

        return {"success": True, "accessToken": session.access_token, "user": user}


async def session_logic(store: KVStore, auth: AuthProvider, token: Optional[str]):
    with _failing_as("Session check failed"):
        if not token:
            raise Unauthorized("No access token provided")
        try:
            user_id = await auth.get_user(token)
        except AuthProviderError:
            raise Unauthorized("Invalid or expired session")

        user = await store.get(user_key(user_id))
        if user is None:
            raise NotFound("User data")
        return {"success": True, "user": user}


async def signout_logic(auth: AuthProvider, token: Optional[str]):
    # best effort: the client drops its token either way
    if token:
        try:
            await auth.sign_out(token)
        except Exception as exc:
            log.warning("signout_failed", error=str(exc))
    return {"success": True, "message": "Signed out successfully"}


# Product endpoints
async def list_products_logic(store: KVStore):
    with _failing_as("Failed to get products"):
        products = await store.get_by_prefix(PRODUCT_PREFIX)
        return {"success": True, "products": products}


async def create_product_logic(store: KVStore, auth: AuthProvider, token: Optional[str],
                               payload: Optional[Dict[str, Any]]):
    with _failing_as("Failed to add product"):
        await _require_admin(store, auth, token)
        data = _parse(ProductIn, payload)

        pid = new_product_id()
        product = _make_product_dict(pid, data)
        await store.set(product_key(pid), product)

        log.info("product_created", product_id=pid, name=product["name"])
        return {"success": True, "product": product}


async def update_product_logic(store: KVStore, auth: AuthProvider, token: Optional[str],
                               product_id: str, payload: Optional[Dict[str, Any]]):
    # any signed-in user may edit stock; create/delete stay admin-only
    with _failing_as("Failed to update product"):
        await _authenticate(auth, token)

        existing = await store.get(product_key(product_id))
        if existing is None:
            raise NotFound("Product")

        changes = _parse(ProductUpdate, payload).model_dump(exclude_none=True)
        merged = {**existing, **changes, "id": product_id, "updatedAt": utc_now_iso()}
        product = _parse(Product, merged).model_dump(exclude_none=True)
        await store.set(product_key(product_id), product)

        return {"success": True, "product": product}


async def delete_product_logic(store: KVStore, auth: AuthProvider, token: Optional[str], product_id: str):
    with _failing_as("Failed to delete product"):
        await _require_admin(store, auth, token)
        await store.delete(product_key(product_id))
        log.info("product_deleted", product_id=product_id)
        return {"success": True, "message": "Product deleted successfully"}


# User administration endpoints
async def list_users_logic(store: KVStore, auth: AuthProvider, token: Optional[str]):
    with _failing_as("Failed to get users"):
        await _require_admin(store, auth, token)
        users = await store.get_by_prefix(USER_PREFIX)
        return {"success": True, "users": users}


async def update_user_logic(store: KVStore, auth: AuthProvider, token: Optional[str],
                            user_id: str, payload: Optional[Dict[str, Any]]):
    with _failing_as("Failed to update user"):
        await _require_admin(store, auth, token)

        existing = await store.get(user_key(user_id))
        if existing is None:
            raise NotFound("User")

        changes = _parse(UserUpdate, payload).model_dump(exclude_none=True)
        merged = {**existing, **changes, "id": user_id, "updatedAt": utc_now_iso()}
        user = _parse(User, merged).model_dump(exclude_none=True)
        await store.set(user_key(user_id), user)

        return {"success": True, "user": user}


async def delete_user_logic(store: KVStore, auth: AuthProvider, token: Optional[str], user_id: str):
    with _failing_as("Failed to delete user"):
        caller_id = await _require_admin(store, auth, token)
        if user_id == caller_id:
            raise SelfDeleteError()

        # Provider first, then the profile. Not transactional: if the store
        # write fails after this, the profile outlives the account.
        try:
            await auth.delete_user(user_id)
        except AuthProviderError as exc:
            if exc.provider_status != 404:
                raise AuthProviderError(
                    f"Failed to delete user: {exc.message}", status_code=500, provider_status=exc.provider_status
                )
            log.warning("auth_account_missing", user_id=user_id)

        await store.delete(user_key(user_id))
        log.info("user_deleted", user_id=user_id, by=caller_id)
        return {"success": True, "message": "User deleted successfully"}


# Initialization
async def _seed_account(store: KVStore, auth: AuthProvider, account: Dict[str, str]) -> None:
    try:
        user_id = await auth.create_user(_email_for(account["username"]), account["password"])
    except AuthProviderError as exc:
        if exc.already_registered:
            log.info("seed_account_exists", username=account["username"])
            return
        if account["role"] == "admin":
            raise AuthProviderError(f"Failed to create admin: {exc.message}", provider_status=exc.provider_status)
        log.warning("seed_account_failed", username=account["username"], error=exc.message)
        return

    await store.set(user_key(user_id), _make_user_dict(user_id, account["username"], account["role"]))


async def init_logic(store: KVStore, auth: AuthProvider):
    with _failing_as("Initialization failed"):
        async with _get_lock("init"):
            # gate on products only; users from a half-finished run are not revisited
            if await store.get_by_prefix(PRODUCT_PREFIX):
                return {"success": True, "message": "Database already initialized"}

            for account in SEED_ACCOUNTS:
                await _seed_account(store, auth, account)

            for item in SEED_PRODUCTS:
                pid = new_product_id()
                await store.set(product_key(pid), _make_product_dict(pid, ProductIn(**item)))

        log.info("database_initialized", products=len(SEED_PRODUCTS))
        return {
            "success": True,
            "message": "Database initialized successfully with default users and products",
        }
