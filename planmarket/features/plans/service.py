"""
planmarket/features/plans/service.py

Plan lifecycle: create (metadata plus optional document), read, partial
update, delete and purchase intent.

Every write reaches the repository as exactly one call. A metadata edit that
also replaces the document is validated in full (size, parse, preview pages
against the new page count) before anything is written.
"""

import uuid
from datetime import datetime, timezone
from typing import Iterable, Optional

from planmarket.core.errors import AppError, BadRequestError, InvalidPageRangeError, NotFoundError
from planmarket.core.logging import log_event
from planmarket.core.metrics import plan_uploads_total
from planmarket.features.entitlements.ledger import PurchaseLedger
from planmarket.features.plans import slicer
from planmarket.features.plans.asset_store import AssetStore
from planmarket.features.plans.repository import PlanRepository
from planmarket.models.plan import PlanCreate, PlanDetail, PlanRecord, PlanUpdate, download_url_for
from planmarket.models.purchase import Purchase, PurchaseReceipt


def _check_preview_pages(pages: Iterable[int], total_pages: Optional[int]) -> None:
    pages = list(pages)
    if not pages:
        return
    if total_pages is not None:
        slicer.validate_pages(pages, total_pages)
        return
    # No document yet: only the lower bound can be checked.
    below = [p for p in pages if p < 1]
    if below:
        raise InvalidPageRangeError(f"Pages {below} are not valid 1-based page numbers")


class PlanService:
    def __init__(self, repository: PlanRepository, asset_store: AssetStore, ledger: PurchaseLedger):
        self._repository = repository
        self._assets = asset_store
        self._ledger = ledger

    def _require(self, plan_id: str) -> PlanRecord:
        record = self._repository.get(plan_id)
        if record is None:
            raise NotFoundError(f"Plan {plan_id} not found")
        return record

    def create(self, data: PlanCreate, document: Optional[bytes] = None, *, now: Optional[datetime] = None) -> PlanDetail:
        try:
            total_pages = self._assets.inspect(document) if document is not None else None
            _check_preview_pages(data.preview_pages, total_pages)
        except AppError as exc:
            plan_uploads_total.inc({"outcome": "rejected"})
            log_event("warning", "plan.upload_rejected", event_type="plan.create", error_code=exc.code)
            raise

        now = now or datetime.now(timezone.utc)
        record = PlanRecord(
            plan_id=uuid.uuid4().hex,
            document=document,
            has_document=document is not None,
            total_pages=total_pages,
            created_at=now,
            updated_at=now,
            **data.model_dump(),
        )
        self._repository.put(record)

        plan_uploads_total.inc({"outcome": "stored" if document is not None else "metadata_only"})
        log_event(
            "info",
            "plan.created",
            plan_id=record.plan_id,
            event_type="plan.create",
            extra={"pages": total_pages, "bytes": len(document) if document is not None else 0},
        )
        return PlanDetail.from_record(record)

    def get(self, plan_id: str) -> PlanDetail:
        return PlanDetail.from_record(self._require(plan_id))

    def update(
        self,
        plan_id: str,
        data: PlanUpdate,
        document: Optional[bytes] = None,
        *,
        now: Optional[datetime] = None,
    ) -> PlanDetail:
        current = self._require(plan_id)
        changes = data.changes()

        try:
            total_pages = current.total_pages
            if document is not None:
                total_pages = self._assets.inspect(document)
                changes["document"] = document
                changes["total_pages"] = total_pages
            _check_preview_pages(changes.get("preview_pages", current.preview_pages), total_pages)
        except AppError as exc:
            if document is not None:
                plan_uploads_total.inc({"outcome": "rejected"})
            log_event("warning", "plan.update_rejected", plan_id=plan_id, event_type="plan.update", error_code=exc.code)
            raise

        if not changes:
            return PlanDetail.from_record(current)

        changes["updated_at"] = now or datetime.now(timezone.utc)
        updated = self._repository.update(plan_id, changes)
        if updated is None:
            raise NotFoundError(f"Plan {plan_id} not found")

        if document is not None:
            plan_uploads_total.inc({"outcome": "stored"})
        log_event(
            "info",
            "plan.updated",
            plan_id=plan_id,
            event_type="plan.update",
            extra={"fields": ",".join(sorted(k for k in changes if k != "document"))},
        )
        return PlanDetail.from_record(updated)

    def delete(self, plan_id: str) -> None:
        if not self._repository.delete(plan_id):
            raise NotFoundError(f"Plan {plan_id} not found")
        self._ledger.forget_plan(plan_id)
        log_event("info", "plan.deleted", plan_id=plan_id, event_type="plan.delete")

    def purchase(
        self,
        plan_id: str,
        user_id: Optional[str],
        payment_method: Optional[str] = None,
        *,
        now: Optional[datetime] = None,
    ) -> PurchaseReceipt:
        """Record purchase intent. No payment is taken; the ledger row is what grants the download."""
        if user_id is None or not user_id.strip():
            raise BadRequestError("userId is required")
        user_id = user_id.strip()
        record = self._require(plan_id)

        purchase = self._ledger.record(Purchase(
            plan_id=plan_id,
            user_id=user_id,
            payment_method=payment_method,
            price=record.price,
            purchased_at=now or datetime.now(timezone.utc),
        ))
        log_event("info", "plan.purchased", plan_id=plan_id, user_id=user_id, event_type="plan.purchase")

        return PurchaseReceipt(
            message="Purchase recorded",
            plan_id=plan_id,
            title=record.title,
            price=purchase.price if purchase is not None else record.price,
            user_id=user_id,
            payment_method=payment_method,
            download_url=download_url_for(plan_id, user_id),
        )
