"""
planmarket/features/categories/service.py

Product categories. Names are unique (case-sensitive); a duplicate name is a
ConflictError, an unknown id a NotFoundError.
"""

import threading
import uuid
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional

from sqlalchemy import delete, insert, select, update
from sqlalchemy.exc import IntegrityError

from planmarket.core.database import categories, get_db_session
from planmarket.core.errors import ConflictError, NotFoundError
from planmarket.core.logging import log_event
from planmarket.features.plans.repository import _as_utc
from planmarket.models.product import Category, CategoryInput


class CategoryRepository(ABC):
    @abstractmethod
    def get(self, category_id: str) -> Optional[Category]:
        ...

    @abstractmethod
    def get_many(self, category_ids: Iterable[str]) -> Dict[str, Category]:
        """Categories keyed by id; unknown ids are left out."""

    @abstractmethod
    def list(self) -> List[Category]:
        ...

    @abstractmethod
    def add(self, category: Category) -> None:
        """Insert; raise ConflictError when the name is taken."""

    @abstractmethod
    def rename(self, category_id: str, name: str) -> Optional[Category]:
        ...

    @abstractmethod
    def delete(self, category_id: str) -> bool:
        ...


class InMemoryCategoryRepository(CategoryRepository):
    def __init__(self):
        self._rows: Dict[str, Category] = {}
        self._lock = threading.Lock()

    def _name_taken(self, name: str, exclude_id: Optional[str] = None) -> bool:
        return any(c.name == name and c.category_id != exclude_id for c in self._rows.values())

    def get(self, category_id: str) -> Optional[Category]:
        with self._lock:
            return self._rows.get(category_id)

    def get_many(self, category_ids: Iterable[str]) -> Dict[str, Category]:
        with self._lock:
            return {cid: self._rows[cid] for cid in set(category_ids) if cid in self._rows}

    def list(self) -> List[Category]:
        with self._lock:
            return sorted(self._rows.values(), key=lambda c: c.name)

    def add(self, category: Category) -> None:
        with self._lock:
            if self._name_taken(category.name):
                raise ConflictError(f"Category {category.name!r} already exists")
            self._rows[category.category_id] = category

    def rename(self, category_id: str, name: str) -> Optional[Category]:
        with self._lock:
            current = self._rows.get(category_id)
            if current is None:
                return None
            if self._name_taken(name, exclude_id=category_id):
                raise ConflictError(f"Category {name!r} already exists")
            renamed = current.model_copy(update={"name": name})
            self._rows[category_id] = renamed
            return renamed

    def delete(self, category_id: str) -> bool:
        with self._lock:
            return self._rows.pop(category_id, None) is not None


class SqlCategoryRepository(CategoryRepository):
    def __init__(self, session_factory):
        self._session_factory = session_factory

    @staticmethod
    def _to_category(row) -> Category:
        data = row._mapping
        return Category(category_id=data["category_id"], name=data["name"], created_at=_as_utc(data["created_at"]))

    def get(self, category_id: str) -> Optional[Category]:
        with get_db_session(self._session_factory) as session:
            row = session.execute(select(categories).where(categories.c.category_id == category_id)).first()
        return self._to_category(row) if row is not None else None

    def get_many(self, category_ids: Iterable[str]) -> Dict[str, Category]:
        ids = set(category_ids)
        if not ids:
            return {}
        with get_db_session(self._session_factory) as session:
            rows = session.execute(select(categories).where(categories.c.category_id.in_(ids))).all()
        found = [self._to_category(row) for row in rows]
        return {c.category_id: c for c in found}

    def list(self) -> List[Category]:
        with get_db_session(self._session_factory) as session:
            rows = session.execute(select(categories).order_by(categories.c.name.asc())).all()
        return [self._to_category(row) for row in rows]

    def add(self, category: Category) -> None:
        try:
            with get_db_session(self._session_factory) as session:
                session.execute(insert(categories).values(**category.model_dump()))
        except IntegrityError as exc:
            raise ConflictError(f"Category {category.name!r} already exists") from exc

    def rename(self, category_id: str, name: str) -> Optional[Category]:
        try:
            with get_db_session(self._session_factory) as session:
                result = session.execute(
                    update(categories).where(categories.c.category_id == category_id).values(name=name)
                )
                if result.rowcount == 0:
                    return None
        except IntegrityError as exc:
            raise ConflictError(f"Category {name!r} already exists") from exc
        return self.get(category_id)

    def delete(self, category_id: str) -> bool:
        with get_db_session(self._session_factory) as session:
            result = session.execute(delete(categories).where(categories.c.category_id == category_id))
            return result.rowcount > 0


class CategoryService:
    def __init__(self, repository: CategoryRepository):
        self._repository = repository

    def create(self, data: CategoryInput, *, now: Optional[datetime] = None) -> Category:
        category = Category(
            category_id=uuid.uuid4().hex,
            name=data.name,
            created_at=now or datetime.now(timezone.utc),
        )
        self._repository.add(category)
        log_event("info", "category.created", event_type="category.create", extra={"category_id": category.category_id})
        return category

    def list(self) -> List[Category]:
        return self._repository.list()

    def get(self, category_id: str) -> Category:
        category = self._repository.get(category_id)
        if category is None:
            raise NotFoundError(f"Category {category_id} not found")
        return category

    def rename(self, category_id: str, data: CategoryInput) -> Category:
        renamed = self._repository.rename(category_id, data.name)
        if renamed is None:
            raise NotFoundError(f"Category {category_id} not found")
        return renamed

    def delete(self, category_id: str) -> None:
        if not self._repository.delete(category_id):
            raise NotFoundError(f"Category {category_id} not found")
        log_event("info", "category.deleted", event_type="category.delete", extra={"category_id": category_id})
