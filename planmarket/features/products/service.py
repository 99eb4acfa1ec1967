"""Product CRUD; listings and search go through the shared catalog index."""

import uuid
from datetime import datetime, timezone
from typing import Dict, List, Optional

from planmarket.core.errors import BadRequestError, NotFoundError
from planmarket.core.logging import log_event
from planmarket.features.categories.service import CategoryRepository
from planmarket.features.products.repository import ProductRepository
from planmarket.models.product import Category, ProductCreate, ProductRecord, ProductSummary, ProductUpdate

PRODUCT_FILTER_OPTIONS = frozenset({"category", "min_price", "max_price"})


def detail_url_for(product_id: str) -> str:
    return f"/products/{product_id}"


class ProductService:
    def __init__(self, repository: ProductRepository, categories: CategoryRepository):
        self._repository = repository
        self._categories = categories

    def _check_category(self, category_id: Optional[str]) -> None:
        if category_id is not None and self._categories.get(category_id) is None:
            raise BadRequestError(f"Unknown category {category_id}")

    def to_summary(self, record: ProductRecord) -> ProductSummary:
        return self.to_summaries([record])[0]

    def to_summaries(self, records: List[ProductRecord]) -> List[ProductSummary]:
        """Summaries for a page of records with one category lookup for the lot."""
        ids = {record.category_id for record in records if record.category_id}
        found = self._categories.get_many(ids) if ids else {}
        return [self._summarise(record, found) for record in records]

    @staticmethod
    def _summarise(record: ProductRecord, found: Dict[str, Category]) -> ProductSummary:
        # A deleted category leaves the product uncategorised.
        category = found.get(record.category_id) if record.category_id else None
        return ProductSummary(
            product_id=record.product_id,
            name=record.name,
            description=record.description,
            price=record.price,
            category=category,
            features=list(record.features),
            quantity=record.quantity,
            created_at=record.created_at,
            detail_url=detail_url_for(record.product_id),
        )

    def create(self, data: ProductCreate, *, now: Optional[datetime] = None) -> ProductSummary:
        self._check_category(data.category_id)
        now = now or datetime.now(timezone.utc)
        record = ProductRecord(
            product_id=uuid.uuid4().hex,
            created_at=now,
            updated_at=now,
            **data.model_dump(),
        )
        self._repository.put(record)
        log_event("info", "product.created", event_type="product.create", extra={"product_id": record.product_id})
        return self.to_summary(record)

    def get(self, product_id: str) -> ProductSummary:
        record = self._repository.get(product_id)
        if record is None:
            raise NotFoundError(f"Product {product_id} not found")
        return self.to_summary(record)

    def update(self, product_id: str, data: ProductUpdate, *, now: Optional[datetime] = None) -> ProductSummary:
        changes = data.changes()
        if "category_id" in changes:
            self._check_category(changes["category_id"])
        if not changes:
            return self.get(product_id)
        changes["updated_at"] = now or datetime.now(timezone.utc)
        updated = self._repository.update(product_id, changes)
        if updated is None:
            raise NotFoundError(f"Product {product_id} not found")
        return self.to_summary(updated)

    def delete(self, product_id: str) -> None:
        if not self._repository.delete(product_id):
            raise NotFoundError(f"Product {product_id} not found")
        log_event("info", "product.deleted", event_type="product.delete", extra={"product_id": product_id})
