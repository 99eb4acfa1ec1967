"""
planmarket/features/products/repository.py

Storage for physical products. Same shape as the plan repository so the
catalog index can page over either one.
"""

import threading
from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Tuple

from sqlalchemy import and_, delete, func, insert, or_, select, true, update

from planmarket.core.database import get_db_session, products
from planmarket.features.catalog.models import CatalogCriteria
from planmarket.features.plans.repository import _as_utc, _contains, _folded_contains
from planmarket.models.product import ProductRecord


class ProductRepository(ABC):
    @abstractmethod
    def get(self, product_id: str) -> Optional[ProductRecord]:
        ...

    @abstractmethod
    def put(self, record: ProductRecord) -> None:
        ...

    @abstractmethod
    def update(self, product_id: str, changes: Dict[str, object]) -> Optional[ProductRecord]:
        ...

    @abstractmethod
    def delete(self, product_id: str) -> bool:
        ...

    @abstractmethod
    def find_projected(self, criteria: CatalogCriteria, offset: int, limit: int) -> Tuple[List[ProductRecord], int]:
        ...


def _matches(record: ProductRecord, criteria: CatalogCriteria) -> bool:
    flt = criteria.filter
    if flt.category is not None and record.category_id != flt.category:
        return False
    if flt.min_price is not None and record.price < flt.min_price:
        return False
    if flt.max_price is not None and record.price > flt.max_price:
        return False
    if criteria.text and not (_contains(record.name, criteria.text) or _contains(record.description, criteria.text)):
        return False
    return True


class InMemoryProductRepository(ProductRepository):
    def __init__(self):
        self._records: Dict[str, ProductRecord] = {}
        self._lock = threading.Lock()

    def get(self, product_id: str) -> Optional[ProductRecord]:
        with self._lock:
            return self._records.get(product_id)

    def put(self, record: ProductRecord) -> None:
        with self._lock:
            self._records[record.product_id] = record

    def update(self, product_id: str, changes: Dict[str, object]) -> Optional[ProductRecord]:
        with self._lock:
            current = self._records.get(product_id)
            if current is None:
                return None
            updated = current.model_copy(update=changes)
            self._records[product_id] = updated
            return updated

    def delete(self, product_id: str) -> bool:
        with self._lock:
            return self._records.pop(product_id, None) is not None

    def find_projected(self, criteria: CatalogCriteria, offset: int, limit: int) -> Tuple[List[ProductRecord], int]:
        with self._lock:
            records = list(self._records.values())
        matched = sorted(
            (r for r in records if _matches(r, criteria)),
            key=lambda r: (-r.created_at.timestamp(), r.product_id),
        )
        return matched[offset:offset + limit], len(matched)


class SqlProductRepository(ProductRepository):
    def __init__(self, session_factory):
        self._session_factory = session_factory

    def _session(self):
        return get_db_session(self._session_factory)

    @staticmethod
    def _to_record(row) -> ProductRecord:
        data = dict(row._mapping)
        data["features"] = list(data["features"] or [])
        data["created_at"] = _as_utc(data["created_at"])
        data["updated_at"] = _as_utc(data["updated_at"])
        return ProductRecord(**data)

    def get(self, product_id: str) -> Optional[ProductRecord]:
        with self._session() as session:
            row = session.execute(select(products).where(products.c.product_id == product_id)).first()
        return self._to_record(row) if row is not None else None

    def put(self, record: ProductRecord) -> None:
        with self._session() as session:
            session.execute(insert(products).values(**record.model_dump()))

    def update(self, product_id: str, changes: Dict[str, object]) -> Optional[ProductRecord]:
        with self._session() as session:
            result = session.execute(
                update(products).where(products.c.product_id == product_id).values(**changes)
            )
            if result.rowcount == 0:
                return None
            row = session.execute(select(products).where(products.c.product_id == product_id)).first()
        return self._to_record(row)

    def delete(self, product_id: str) -> bool:
        with self._session() as session:
            result = session.execute(delete(products).where(products.c.product_id == product_id))
            return result.rowcount > 0

    @staticmethod
    def _conditions(criteria: CatalogCriteria) -> list:
        flt = criteria.filter
        conditions = []
        if flt.category is not None:
            conditions.append(products.c.category_id == flt.category)
        if flt.min_price is not None:
            conditions.append(products.c.price >= flt.min_price)
        if flt.max_price is not None:
            conditions.append(products.c.price <= flt.max_price)
        if criteria.text:
            conditions.append(or_(
                _folded_contains(products.c.name, criteria.text),
                _folded_contains(products.c.description, criteria.text),
            ))
        return conditions

    def find_projected(self, criteria: CatalogCriteria, offset: int, limit: int) -> Tuple[List[ProductRecord], int]:
        where = and_(true(), *self._conditions(criteria))
        with self._session() as session:
            total = session.execute(select(func.count()).select_from(products).where(where)).scalar_one()
            rows = session.execute(
                select(products)
                .where(where)
                .order_by(products.c.created_at.desc(), products.c.product_id.asc())
                .offset(offset)
                .limit(limit)
            ).all()
        return [self._to_record(row) for row in rows], total
