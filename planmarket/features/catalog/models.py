"""Catalog query and result shapes shared by plan and product listings."""

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Generic, List, Optional, TypeVar

from pydantic import BaseModel, Field

from planmarket.models.plan import Difficulty

ItemT = TypeVar("ItemT")


class CatalogFilter(BaseModel):
    """Listing constraints; a None option imposes no constraint."""
    category: Optional[str] = None
    category_exact: bool = False
    machine_type: Optional[str] = None
    difficulty: Optional[Difficulty] = None
    min_price: Optional[Decimal] = None
    max_price: Optional[Decimal] = None

    def active_options(self) -> set:
        return {
            name
            for name in ("category", "machine_type", "difficulty", "min_price", "max_price")
            if getattr(self, name) is not None
        }


@dataclass(frozen=True)
class CatalogCriteria:
    """What a repository must match: structured filter plus optional free text."""
    filter: CatalogFilter = field(default_factory=CatalogFilter)
    text: Optional[str] = None


class CatalogPage(BaseModel, Generic[ItemT]):
    items: List[ItemT] = Field(default_factory=list)
    total: int
    total_pages: int
    current_page: int
