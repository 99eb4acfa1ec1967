"""
planmarket/features/plans/asset_store.py

Byte storage for plan documents on top of PlanRepository.

Keeps two failure modes apart:
- NotFoundError: there is no plan with that id
- MissingAssetError: the plan exists but no document has been uploaded
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from planmarket.core.errors import AppError, MissingAssetError, NotFoundError, PayloadTooLargeError
from planmarket.core.metrics import plan_uploads_total
from planmarket.features.plans import slicer
from planmarket.features.plans.repository import PlanRepository
from planmarket.models.plan import PlanRecord

logger = logging.getLogger(__name__)


class AssetStore:
    def __init__(self, repository: PlanRepository, *, max_document_bytes: int):
        self._repository = repository
        self._max_document_bytes = max_document_bytes

    def inspect(self, document: bytes) -> int:
        """Check size and parse ``document``; return its page count without storing it."""
        if len(document) > self._max_document_bytes:
            raise PayloadTooLargeError(
                f"Document is {len(document)} bytes; the limit is {self._max_document_bytes}"
            )
        return slicer.page_count(document)

    def put(self, plan_id: str, document: bytes, *, now: Optional[datetime] = None) -> int:
        """Store ``document`` for an existing plan and return its recomputed page count."""
        current = self._repository.get(plan_id)
        if current is None:
            raise NotFoundError(f"Plan {plan_id} not found")
        try:
            total_pages = self.inspect(document)
            if current.preview_pages:
                slicer.validate_pages(current.preview_pages, total_pages)
        except AppError:
            plan_uploads_total.inc({"outcome": "rejected"})
            raise
        updated = self._repository.update(plan_id, {
            "document": document,
            "total_pages": total_pages,
            "updated_at": now or datetime.now(timezone.utc),
        })
        if updated is None:
            raise NotFoundError(f"Plan {plan_id} not found")
        plan_uploads_total.inc({"outcome": "stored"})
        logger.info("asset.stored", extra={"plan_id": plan_id, "pages": total_pages, "bytes": len(document)})
        return total_pages

    def fetch(self, plan_id: str) -> PlanRecord:
        """Full record including the document bytes."""
        record = self._repository.get(plan_id, include_document=True)
        if record is None:
            raise NotFoundError(f"Plan {plan_id} not found")
        if record.document is None:
            raise MissingAssetError(f"Plan {plan_id} has no document uploaded")
        return record

    def get(self, plan_id: str) -> bytes:
        return self.fetch(plan_id).document
