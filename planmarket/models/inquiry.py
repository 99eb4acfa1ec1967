"""
planmarket/models/inquiry.py

Inbound contact messages and order notifications. Nothing here is stored;
both are turned into an email for the shop owner.
"""

import re
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
PHONE_RE = re.compile(r"^[\+]?[0-9\s\-\(\)]+$")

# Order lines whose category mentions one of these are design files, not parcels.
DIGITAL_CATEGORY_HINTS = ("plan", "plano", "pdf", "cnc", "design", "diseño")


def _check_email(value: str) -> str:
    if not EMAIL_RE.match(value):
        raise ValueError("email format is not valid")
    return value


def _check_phone(value: Optional[str]) -> Optional[str]:
    if value is not None and not PHONE_RE.match(value):
        raise ValueError("phone format is not valid")
    return value


class ContactMessage(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(min_length=1)
    email: str = Field(min_length=1)
    phone: Optional[str] = None
    message: str = Field(min_length=1)

    @field_validator("email")
    @classmethod
    def check_email_format(cls, value):
        return _check_email(value)

    @field_validator("phone")
    @classmethod
    def check_phone_format(cls, value):
        return _check_phone(value)


class PostalAddress(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    street: str = Field(min_length=1)
    city: str = Field(min_length=1)
    country: str = Field(min_length=1)
    postal_code: Optional[str] = None

    def lines(self) -> List[str]:
        city_line = f"{self.city} {self.postal_code}" if self.postal_code else self.city
        return [self.street, city_line, self.country]


class BillingDetails(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    first_name: str = Field(min_length=1)
    last_name: str = ""
    email: str
    phone: Optional[str] = None
    address: PostalAddress

    @field_validator("email")
    @classmethod
    def check_email_format(cls, value):
        return _check_email(value)

    @field_validator("phone")
    @classmethod
    def check_phone_format(cls, value):
        return _check_phone(value)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


class ShippingDetails(BaseModel):
    """Where to ship. With same_as_billing the billing address is used."""
    same_as_billing: bool = True
    recipient: Optional[str] = None
    address: Optional[PostalAddress] = None

    @model_validator(mode="after")
    def check_shipping_address(self):
        if not self.same_as_billing and self.address is None:
            raise ValueError("shipping address is required unless same_as_billing is set")
        return self


class OrderLine(BaseModel):
    item_id: Optional[str] = None
    name: str = Field(min_length=1)
    price: Decimal = Field(ge=0)
    quantity: int = Field(ge=1)
    category: Optional[str] = None

    @property
    def is_digital(self) -> bool:
        label = (self.category or "").casefold()
        return any(hint in label for hint in DIGITAL_CATEGORY_HINTS)

    @property
    def line_total(self) -> Decimal:
        return self.price * self.quantity


class OrderNotification(BaseModel):
    order_id: str = Field(min_length=1)
    items: List[OrderLine] = Field(min_length=1)
    billing: BillingDetails
    shipping: ShippingDetails = Field(default_factory=ShippingDetails)
    payment_method: str = Field(min_length=1)
    notes: Optional[str] = None
    subtotal: Decimal = Field(ge=0)
    shipping_cost: Decimal = Field(default=Decimal("0"), ge=0)
    total: Decimal = Field(ge=0)
    placed_at: Optional[datetime] = None

    @field_validator("order_id", mode="before")
    @classmethod
    def coerce_order_id(cls, value):
        return str(value) if isinstance(value, int) else value

    @property
    def ship_to(self) -> PostalAddress:
        return self.billing.address if self.shipping.same_as_billing else self.shipping.address


class InquiryAck(BaseModel):
    message: str
    status: str = "success"
