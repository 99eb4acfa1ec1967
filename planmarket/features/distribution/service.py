"""
planmarket/features/distribution/service.py

Preview and download orchestration.

Preview: fetch document -> choose pages -> extract a new PDF with only those
pages. Read-only apart from metrics and logs, so repeated calls with an
explicit page list return identical page sets.

Download: validate the caller -> entitlement check -> raw stored bytes.
"""

import logging
import random
from dataclasses import dataclass, field
from typing import List, Optional
from urllib.parse import quote

from planmarket.core.errors import AppError, BadRequestError, UnauthorizedError
from planmarket.core.metrics import plan_bytes_served, plan_downloads_total, plan_previews_total
from planmarket.core.tracing import DOWNLOAD_SPAN, PREVIEW_SPAN, start_span
from planmarket.features.entitlements.service import Entitlement
from planmarket.features.plans import slicer
from planmarket.features.plans.asset_store import AssetStore
from planmarket.features.plans.preview import select_preview_pages

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PreviewResult:
    content: bytes = field(repr=False)
    title: str
    pages: List[int]

    @property
    def filename(self) -> str:
        return f"{self.title}_preview.pdf"


@dataclass(frozen=True)
class DownloadResult:
    content: bytes = field(repr=False)
    title: str

    @property
    def filename(self) -> str:
        return f"{self.title}.pdf"


def content_disposition(disposition: str, filename: str) -> str:
    """Header value with an ASCII fallback name and an RFC 5987 UTF-8 name."""
    fallback = filename.encode("ascii", "replace").decode("ascii").replace("?", "_")
    fallback = fallback.replace("\\", "_").replace('"', "_")
    return f"{disposition}; filename=\"{fallback}\"; filename*=UTF-8''{quote(filename, safe='')}"


class DistributionService:
    def __init__(self, asset_store: AssetStore, entitlement: Entitlement, rng: Optional[random.Random] = None):
        self._assets = asset_store
        self._entitlement = entitlement
        self._rng = rng

    def preview(self, plan_id: str) -> PreviewResult:
        with start_span(PREVIEW_SPAN, {"plan_id": plan_id}):
            record = self._assets.fetch(plan_id)
            source = "explicit" if record.preview_pages else "random"
            pages = select_preview_pages(record.total_pages or 0, record.preview_pages, rng=self._rng)
            content = slicer.extract_pages(record.document, pages)

        plan_previews_total.inc({"source": source})
        plan_bytes_served.observe(len(content), {"kind": "preview"})
        logger.info(
            "plan.preview",
            extra={"plan_id": plan_id, "pages": ",".join(map(str, pages)), "bytes": len(content)},
        )
        return PreviewResult(content=content, title=record.title, pages=pages)

    def download(self, plan_id: str, user_id: Optional[str]) -> DownloadResult:
        if user_id is None or not user_id.strip():
            plan_downloads_total.inc({"outcome": "bad_request"})
            raise BadRequestError("userId is required")
        user_id = user_id.strip()

        with start_span(DOWNLOAD_SPAN, {"plan_id": plan_id}):
            if not self._entitlement.has_access(plan_id, user_id):
                plan_downloads_total.inc({"outcome": "denied"})
                logger.warning("plan.download_denied", extra={"plan_id": plan_id, "user_id": user_id})
                raise UnauthorizedError("User is not entitled to download this plan")
            try:
                record = self._assets.fetch(plan_id)
            except AppError as exc:
                plan_downloads_total.inc({"outcome": exc.code})
                raise

        plan_downloads_total.inc({"outcome": "served"})
        plan_bytes_served.observe(len(record.document), {"kind": "download"})
        logger.info("plan.download", extra={"plan_id": plan_id, "user_id": user_id, "bytes": len(record.document)})
        return DownloadResult(content=record.document, title=record.title)
