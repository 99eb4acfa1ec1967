"""Shared request helpers for the API routers."""

from typing import List, Optional

from fastapi import Request, UploadFile
from pydantic import ValidationError

from planmarket.core.errors import BadRequestError
from planmarket.services import Services

PDF_CONTENT_TYPES = {"application/pdf", "application/x-pdf"}


def get_services(request: Request) -> Services:
    return request.app.state.services


def validation_message(exc: ValidationError) -> str:
    problems = []
    for err in exc.errors():
        location = ".".join(str(part) for part in err.get("loc", ()))
        problems.append(f"{location}: {err.get('msg')}" if location else str(err.get("msg")))
    return "; ".join(problems) or "Invalid request"


def parse_page_list(raw: Optional[str]) -> Optional[List[int]]:
    """'1, 3,4' -> [1, 3, 4]; None stays None, '' means an empty list."""
    if raw is None:
        return None
    pages = []
    for part in raw.split(","):
        part = part.strip()
        if not part:
            continue
        try:
            pages.append(int(part))
        except ValueError as exc:
            raise BadRequestError(f"preview_pages must be comma-separated integers, got {part!r}") from exc
    return pages


def read_pdf_upload(upload: Optional[UploadFile], max_bytes: int) -> Optional[bytes]:
    """Read an uploaded PDF, stopping one byte past the limit so oversize input is still detected."""
    if upload is None:
        return None
    content_type = (upload.content_type or "").split(";")[0].strip().lower()
    if content_type not in PDF_CONTENT_TYPES:
        raise BadRequestError(f"document must be a PDF, got content type {content_type or 'unknown'!r}")
    return upload.file.read(max_bytes + 1)
