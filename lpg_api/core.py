# lpg_api/core.py
import secrets
import time
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field

from .models import Product, User

USER_PREFIX = "user:"
PRODUCT_PREFIX = "product:"

_ID_ALPHABET = "0123456789abcdefghijklmnopqrstuvwxyz"


# ---------------------------
# Request bodies
# ---------------------------
class SignUpIn(BaseModel):
    # presence is checked by the handler so the error reads like the others
    username: Optional[str] = None
    password: Optional[str] = None
    role: Optional[str] = None


class SignInIn(BaseModel):
    username: Optional[str] = None
    password: Optional[str] = None


class ProductIn(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: str = Field(min_length=1)
    category: str = Field(min_length=1)
    quantity: int = Field(0, ge=0)
    price: float = Field(0.0, ge=0)
    lowStockThreshold: Optional[int] = Field(None, ge=0)


class ProductUpdate(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: Optional[str] = Field(None, min_length=1)
    category: Optional[str] = Field(None, min_length=1)
    quantity: Optional[int] = Field(None, ge=0)
    price: Optional[float] = Field(None, ge=0)
    lowStockThreshold: Optional[int] = Field(None, ge=0)


class UserUpdate(BaseModel):
    model_config = ConfigDict(extra="ignore")

    username: Optional[str] = Field(None, min_length=1)
    role: Optional[str] = Field(None, min_length=1)


# ---------------------------
# Helpers
# ---------------------------
def user_key(user_id: str) -> str:
    return f"{USER_PREFIX}{user_id}"


def product_key(product_id: str) -> str:
    return f"{PRODUCT_PREFIX}{product_id}"


def utc_now_iso() -> str:
    """e.g. 2024-05-01T10:00:00.000Z"""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def new_product_id() -> str:
    """<wall-clock millis>-<9 base36 chars>; collisions are only improbable."""
    suffix = "".join(secrets.choice(_ID_ALPHABET) for _ in range(9))
    return f"{int(time.time() * 1000)}-{suffix}"


def synthetic_email(username: str, domain: str) -> str:
    # the provider is email/password, users only have a username
    return f"{username}@{domain}"


def _make_product_dict(product_id: str, p: ProductIn) -> Dict[str, Any]:
    now = utc_now_iso()
    product = Product(id=product_id, createdAt=now, updatedAt=now, **p.model_dump(exclude_none=True))
    return product.model_dump(exclude_none=True)


def _make_user_dict(user_id: str, username: str, role: str) -> Dict[str, Any]:
    return User(id=user_id, username=username, role=role, createdAt=utc_now_iso()).model_dump(exclude_none=True)
