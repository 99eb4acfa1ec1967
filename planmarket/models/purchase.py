"""
planmarket/models/purchase.py

Purchase ledger entries. A row keyed by (plan_id, user_id) is what grants a
user the full document when entitlements run in ledger mode.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_serializer


class Purchase(BaseModel):
    model_config = ConfigDict(frozen=True)

    plan_id: str
    user_id: str
    payment_method: Optional[str] = None
    price: Decimal
    purchased_at: datetime


class PurchaseRequest(BaseModel):
    user_id: Optional[str] = Field(default=None, alias="userId")
    payment_method: Optional[str] = Field(default=None, alias="paymentMethod")

    model_config = ConfigDict(populate_by_name=True)


class PurchaseReceipt(BaseModel):
    """Response to a purchase intent: where the buyer fetches the full plan."""
    message: str
    plan_id: str
    title: str
    price: Decimal
    user_id: str
    payment_method: Optional[str] = None
    download_url: str

    @field_serializer("price")
    def serialize_price(self, value: Decimal) -> float:
        return float(value)
