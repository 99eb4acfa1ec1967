"""
planmarket/features/plans/repository.py

Storage for plan records.

Two implementations share one contract:
- InMemoryPlanRepository: process-local dict, used when DATABASE_URL is unset
  and in tests.
- SqlPlanRepository: SQLAlchemy Core over the `plans` table.

Every mutation is a single call (one statement inside one session), so a
metadata change and its document replacement are never observed half-applied.
List queries are projections: the `document` column is never selected.
"""

import threading
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple

from sqlalchemy import and_, delete, func, insert, or_, select, true, update

from planmarket.core.database import casefold, get_db_session, plan_purchases, plans
from planmarket.features.catalog.models import CatalogCriteria
from planmarket.models.plan import Difficulty, PlanRecord


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes even for timezone-aware columns.
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _escape_like(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _folded_contains(column, term: str):
    """SQL counterpart of _contains: case-folded substring match, wildcards literal."""
    return casefold(column).like(f"%{_escape_like(term.casefold())}%", escape="\\")


def _sort_key(record: PlanRecord):
    return (-record.created_at.timestamp(), record.plan_id)


class PlanRepository(ABC):
    """Persistence contract for plans."""

    @abstractmethod
    def get(self, plan_id: str, *, include_document: bool = False) -> Optional[PlanRecord]:
        """Return the plan, with its document bytes only when asked for."""

    @abstractmethod
    def put(self, record: PlanRecord) -> None:
        """Insert a new plan (document included)."""

    @abstractmethod
    def update(self, plan_id: str, changes: Dict[str, object]) -> Optional[PlanRecord]:
        """Apply ``changes`` atomically; return the projected record or None if missing."""

    @abstractmethod
    def delete(self, plan_id: str) -> bool:
        """Remove metadata and document; False if the plan did not exist."""

    @abstractmethod
    def find_projected(self, criteria: CatalogCriteria, offset: int, limit: int) -> Tuple[List[PlanRecord], int]:
        """Return (page of matching records without documents, total match count)."""


class InMemoryPlanRepository(PlanRepository):
    def __init__(self):
        self._records: Dict[str, PlanRecord] = {}
        self._lock = threading.Lock()

    @staticmethod
    def _project(record: PlanRecord) -> PlanRecord:
        return record.model_copy(update={"document": None})

    def get(self, plan_id: str, *, include_document: bool = False) -> Optional[PlanRecord]:
        with self._lock:
            record = self._records.get(plan_id)
        if record is None:
            return None
        return record if include_document else self._project(record)

    def put(self, record: PlanRecord) -> None:
        stored = record.model_copy(update={"has_document": record.document is not None})
        with self._lock:
            self._records[record.plan_id] = stored

    def update(self, plan_id: str, changes: Dict[str, object]) -> Optional[PlanRecord]:
        with self._lock:
            current = self._records.get(plan_id)
            if current is None:
                return None
            merged = dict(changes)
            if "document" in merged:
                merged["has_document"] = merged["document"] is not None
            updated = current.model_copy(update=merged)
            self._records[plan_id] = updated
        return self._project(updated)

    def delete(self, plan_id: str) -> bool:
        with self._lock:
            return self._records.pop(plan_id, None) is not None

    def find_projected(self, criteria: CatalogCriteria, offset: int, limit: int) -> Tuple[List[PlanRecord], int]:
        with self._lock:
            records = list(self._records.values())
        matched = sorted((r for r in records if _matches(r, criteria)), key=_sort_key)
        return [self._project(r) for r in matched[offset:offset + limit]], len(matched)


def _contains(haystack: str, needle: str) -> bool:
    return needle.casefold() in (haystack or "").casefold()


def _matches(record: PlanRecord, criteria: CatalogCriteria) -> bool:
    flt = criteria.filter
    if flt.category is not None:
        if flt.category_exact:
            if record.category.casefold() != flt.category.casefold():
                return False
        elif not _contains(record.category, flt.category):
            return False
    if flt.machine_type is not None and not _contains(record.machine_type, flt.machine_type):
        return False
    if flt.difficulty is not None and record.difficulty != flt.difficulty:
        return False
    if flt.min_price is not None and record.price < flt.min_price:
        return False
    if flt.max_price is not None and record.price > flt.max_price:
        return False
    if criteria.text:
        fields = (record.title, record.description, record.category, record.machine_type)
        if not any(_contains(value, criteria.text) for value in fields):
            return False
    return True


# Every column except the payload, plus a computed presence flag.
_PROJECTION = [c for c in plans.c if c.name != "document"] + [
    plans.c.document.isnot(None).label("has_document")
]


class SqlPlanRepository(PlanRepository):
    def __init__(self, session_factory):
        self._session_factory = session_factory

    def _session(self):
        return get_db_session(self._session_factory)

    @staticmethod
    def _to_record(row, document: Optional[bytes] = None) -> PlanRecord:
        data = row._mapping
        return PlanRecord(
            plan_id=data["plan_id"],
            title=data["title"],
            description=data["description"],
            category=data["category"],
            machine_type=data["machine_type"],
            difficulty=Difficulty(data["difficulty"]),
            document=document,
            has_document=bool(data["has_document"]),
            total_pages=data["total_pages"],
            preview_pages=list(data["preview_pages"] or []),
            preview_description=data["preview_description"],
            price=data["price"],
            author=data["author"],
            version=data["version"],
            created_at=_as_utc(data["created_at"]),
            updated_at=_as_utc(data["updated_at"]),
        )

    @staticmethod
    def _to_row(values: Dict[str, object]) -> Dict[str, object]:
        row = {k: v for k, v in values.items() if k != "has_document"}
        if isinstance(row.get("difficulty"), Difficulty):
            row["difficulty"] = row["difficulty"].value
        return row

    def get(self, plan_id: str, *, include_document: bool = False) -> Optional[PlanRecord]:
        columns = list(_PROJECTION)
        if include_document:
            columns.append(plans.c.document)
        with self._session() as session:
            row = session.execute(select(*columns).where(plans.c.plan_id == plan_id)).first()
        if row is None:
            return None
        return self._to_record(row, row._mapping["document"] if include_document else None)

    def put(self, record: PlanRecord) -> None:
        values = self._to_row(record.model_dump())
        with self._session() as session:
            session.execute(insert(plans).values(**values))

    def update(self, plan_id: str, changes: Dict[str, object]) -> Optional[PlanRecord]:
        values = self._to_row(changes)
        with self._session() as session:
            result = session.execute(update(plans).where(plans.c.plan_id == plan_id).values(**values))
            if result.rowcount == 0:
                return None
            row = session.execute(select(*_PROJECTION).where(plans.c.plan_id == plan_id)).first()
        return self._to_record(row)

    def delete(self, plan_id: str) -> bool:
        with self._session() as session:
            # Ledger rows go with the plan; SQLite does not enforce ON DELETE CASCADE by default.
            session.execute(delete(plan_purchases).where(plan_purchases.c.plan_id == plan_id))
            result = session.execute(delete(plans).where(plans.c.plan_id == plan_id))
            return result.rowcount > 0

    @staticmethod
    def _conditions(criteria: CatalogCriteria) -> list:
        flt = criteria.filter
        conditions = []
        if flt.category is not None:
            if flt.category_exact:
                conditions.append(casefold(plans.c.category) == flt.category.casefold())
            else:
                conditions.append(_folded_contains(plans.c.category, flt.category))
        if flt.machine_type is not None:
            conditions.append(_folded_contains(plans.c.machine_type, flt.machine_type))
        if flt.difficulty is not None:
            conditions.append(plans.c.difficulty == flt.difficulty.value)
        if flt.min_price is not None:
            conditions.append(plans.c.price >= flt.min_price)
        if flt.max_price is not None:
            conditions.append(plans.c.price <= flt.max_price)
        if criteria.text:
            conditions.append(or_(
                _folded_contains(plans.c.title, criteria.text),
                _folded_contains(plans.c.description, criteria.text),
                _folded_contains(plans.c.category, criteria.text),
                _folded_contains(plans.c.machine_type, criteria.text),
            ))
        return conditions

    def find_projected(self, criteria: CatalogCriteria, offset: int, limit: int) -> Tuple[List[PlanRecord], int]:
        where = and_(true(), *self._conditions(criteria))
        with self._session() as session:
            total = session.execute(select(func.count()).select_from(plans).where(where)).scalar_one()
            rows = session.execute(
                select(*_PROJECTION)
                .where(where)
                .order_by(plans.c.created_at.desc(), plans.c.plan_id.asc())
                .offset(offset)
                .limit(limit)
            ).all()
        return [self._to_record(row) for row in rows], total
