"""
planmarket/features/entitlements/ledger.py

Purchase ledger: one row per (plan_id, user_id). Recording the same pair
again keeps the first row, so purchase intent is idempotent.
"""

import threading
from abc import ABC, abstractmethod
from typing import Dict, Optional, Tuple

from sqlalchemy import and_, delete, insert, select
from sqlalchemy.exc import IntegrityError

from planmarket.core.database import get_db_session, plan_purchases
from planmarket.features.plans.repository import _as_utc
from planmarket.models.purchase import Purchase


class PurchaseLedger(ABC):
    @abstractmethod
    def record(self, purchase: Purchase) -> Purchase:
        """Store ``purchase`` unless the pair exists; return the stored row."""

    @abstractmethod
    def get(self, plan_id: str, user_id: str) -> Optional[Purchase]:
        ...

    def exists(self, plan_id: str, user_id: str) -> bool:
        return self.get(plan_id, user_id) is not None

    @abstractmethod
    def forget_plan(self, plan_id: str) -> None:
        """Drop every row for ``plan_id``."""


class InMemoryPurchaseLedger(PurchaseLedger):
    def __init__(self):
        self._rows: Dict[Tuple[str, str], Purchase] = {}
        self._lock = threading.Lock()

    def record(self, purchase: Purchase) -> Purchase:
        key = (purchase.plan_id, purchase.user_id)
        with self._lock:
            return self._rows.setdefault(key, purchase)

    def get(self, plan_id: str, user_id: str) -> Optional[Purchase]:
        with self._lock:
            return self._rows.get((plan_id, user_id))

    def forget_plan(self, plan_id: str) -> None:
        with self._lock:
            for key in [k for k in self._rows if k[0] == plan_id]:
                del self._rows[key]


class SqlPurchaseLedger(PurchaseLedger):
    def __init__(self, session_factory):
        self._session_factory = session_factory

    @staticmethod
    def _to_purchase(row) -> Purchase:
        data = row._mapping
        return Purchase(
            plan_id=data["plan_id"],
            user_id=data["user_id"],
            payment_method=data["payment_method"],
            price=data["price"],
            purchased_at=_as_utc(data["purchased_at"]),
        )

    def record(self, purchase: Purchase) -> Purchase:
        try:
            with get_db_session(self._session_factory) as session:
                session.execute(insert(plan_purchases).values(**purchase.model_dump()))
        except IntegrityError:
            # Unique (plan_id, user_id): somebody already recorded this pair.
            pass
        return self.get(purchase.plan_id, purchase.user_id)

    def get(self, plan_id: str, user_id: str) -> Optional[Purchase]:
        query = select(plan_purchases).where(
            and_(plan_purchases.c.plan_id == plan_id, plan_purchases.c.user_id == user_id)
        )
        with get_db_session(self._session_factory) as session:
            row = session.execute(query).first()
        return self._to_purchase(row) if row is not None else None

    def forget_plan(self, plan_id: str) -> None:
        with get_db_session(self._session_factory) as session:
            session.execute(delete(plan_purchases).where(plan_purchases.c.plan_id == plan_id))
