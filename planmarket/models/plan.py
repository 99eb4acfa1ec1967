"""
planmarket/models/plan.py

Plan models: a sellable technical-drawing PDF plus its catalog metadata.

A Plan's `total_pages` is always derived from the stored document; clients
never supply it. `preview_pages` is an ordered set of 1-based page numbers
(empty means "pick a random half at preview time").
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import List, Optional
from urllib.parse import urlencode

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator


class Difficulty(str, Enum):
    BASIC = "BASIC"
    INTERMEDIATE = "INTERMEDIATE"
    ADVANCED = "ADVANCED"


def _dedupe_pages(pages: Optional[List[int]]) -> Optional[List[int]]:
    if pages is None:
        return None
    seen = set()
    ordered = []
    for page in pages:
        if page not in seen:
            seen.add(page)
            ordered.append(page)
    return ordered


def preview_url_for(plan_id: str) -> str:
    return f"/plans/preview/{plan_id}"


class PlanRecord(BaseModel):
    """
    Persisted plan row.

    `document` is only populated when the caller asked the repository for the
    full record of a single plan; projections leave it None and rely on
    `has_document`.
    """
    model_config = ConfigDict(frozen=True)

    plan_id: str
    title: str
    description: str = ""
    category: str = ""
    machine_type: str = ""
    difficulty: Difficulty
    document: Optional[bytes] = Field(default=None, repr=False)
    has_document: bool = False
    total_pages: Optional[int] = None
    preview_pages: List[int] = Field(default_factory=list)
    preview_description: str = ""
    price: Decimal
    author: str = ""
    version: str = "1.0"
    created_at: datetime
    updated_at: datetime


class PlanCreate(BaseModel):
    """Fields accepted when creating a plan (document travels separately)."""
    title: str = Field(min_length=1)
    description: str = ""
    category: str = ""
    machine_type: str = ""
    difficulty: Difficulty
    preview_pages: List[int] = Field(default_factory=list)
    preview_description: str = ""
    price: Decimal = Field(ge=0, max_digits=12, decimal_places=2)
    author: str = ""
    version: str = "1.0"

    @field_validator("preview_pages")
    @classmethod
    def dedupe_preview_pages(cls, value):
        return _dedupe_pages(value)


class PlanUpdate(BaseModel):
    """Partial update; unset fields are left untouched."""
    title: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    category: Optional[str] = None
    machine_type: Optional[str] = None
    difficulty: Optional[Difficulty] = None
    preview_pages: Optional[List[int]] = None
    preview_description: Optional[str] = None
    price: Optional[Decimal] = Field(default=None, ge=0, max_digits=12, decimal_places=2)
    author: Optional[str] = None
    version: Optional[str] = None

    @field_validator("preview_pages")
    @classmethod
    def dedupe_preview_pages(cls, value):
        return _dedupe_pages(value)

    def changes(self) -> dict:
        return self.model_dump(exclude_unset=True, exclude_none=True)


class PlanSummary(BaseModel):
    """Catalog list item: metadata only, plus where to fetch the preview."""
    plan_id: str
    title: str
    description: str
    category: str
    machine_type: str
    difficulty: Difficulty
    total_pages: Optional[int]
    price: Decimal
    author: str
    version: str
    created_at: datetime
    preview_url: str

    @field_serializer("price")
    def serialize_price(self, value: Decimal) -> float:
        return float(value)

    @classmethod
    def from_record(cls, record: PlanRecord) -> "PlanSummary":
        return cls(
            plan_id=record.plan_id,
            title=record.title,
            description=record.description,
            category=record.category,
            machine_type=record.machine_type,
            difficulty=record.difficulty,
            total_pages=record.total_pages,
            price=record.price,
            author=record.author,
            version=record.version,
            created_at=record.created_at,
            preview_url=preview_url_for(record.plan_id),
        )


class PlanDetail(PlanSummary):
    """Single-plan view: summary plus the preview configuration."""
    preview_pages: List[int]
    preview_description: str
    has_document: bool
    updated_at: datetime

    @classmethod
    def from_record(cls, record: PlanRecord) -> "PlanDetail":
        summary = PlanSummary.from_record(record)
        return cls(
            **dict(summary),
            preview_pages=list(record.preview_pages),
            preview_description=record.preview_description,
            has_document=record.has_document,
            updated_at=record.updated_at,
        )


def download_url_for(plan_id: str, user_id: str) -> str:
    return f"/plans/download/{plan_id}?{urlencode({'userId': user_id})}"
