# lpg_api/models.py
from pydantic import BaseModel, ConfigDict
from typing import Optional


class User(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: str
    username: str
    role: str
    createdAt: str
    updatedAt: Optional[str] = None


class Product(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: str
    name: str
    category: str
    quantity: int
    price: float
    createdAt: str
    updatedAt: str
    lowStockThreshold: Optional[int] = None
