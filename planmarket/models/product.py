"""
planmarket/models/product.py

Physical products and the categories they are filed under.
"""

from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_serializer


class Category(BaseModel):
    model_config = ConfigDict(frozen=True)

    category_id: str
    name: str
    created_at: datetime


class CategoryInput(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(min_length=1, max_length=200)


class ProductRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    product_id: str
    name: str
    description: str = ""
    price: Decimal
    category_id: Optional[str] = None
    features: List[str] = Field(default_factory=list)
    quantity: int = 0
    created_at: datetime
    updated_at: datetime


class ProductCreate(BaseModel):
    name: str = Field(min_length=1)
    description: str = ""
    price: Decimal = Field(ge=0, max_digits=12, decimal_places=2)
    category_id: Optional[str] = None
    features: List[str] = Field(default_factory=list)
    quantity: int = Field(default=0, ge=0)


class ProductUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    price: Optional[Decimal] = Field(default=None, ge=0, max_digits=12, decimal_places=2)
    category_id: Optional[str] = None
    features: Optional[List[str]] = None
    quantity: Optional[int] = Field(default=None, ge=0)

    def changes(self) -> dict:
        """Fields the caller sent. An explicit null only means something for category_id."""
        return {
            key: value
            for key, value in self.model_dump(exclude_unset=True).items()
            if value is not None or key == "category_id"
        }


class ProductSummary(BaseModel):
    product_id: str
    name: str
    description: str
    price: Decimal
    category: Optional[Category] = None
    features: List[str]
    quantity: int
    created_at: datetime
    detail_url: str

    @field_serializer("price")
    def serialize_price(self, value: Decimal) -> float:
        return float(value)
