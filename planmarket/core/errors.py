"""
planmarket/core/errors.py

Error kinds and their normalized HTTP handlers.

Every error response has the same body,
{"error": {"code", "message", "request_id"}, "detail": message},
and carries the x-request-id header.
"""

import logging
from typing import Optional
from uuid import uuid4

from fastapi import HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.requests import Request

from planmarket.core.logging import REQUEST_ID_HEADER, get_request_id


class AppError(Exception):
    code = "app_error"
    status_code = 500

    def __init__(self, message: str, *, code: Optional[str] = None, status_code: Optional[int] = None, request_id: Optional[str] = None):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code
        if status_code:
            self.status_code = status_code
        self.request_id = request_id


class BadRequestError(AppError, ValueError):
    code = "bad_request"
    status_code = 400


class NotFoundError(AppError, LookupError):
    """No record exists for the identifier."""
    code = "not_found"
    status_code = 404


class MissingAssetError(AppError, LookupError):
    """The record exists but has no stored document."""
    code = "missing_asset"
    status_code = 404


class InvalidPageRangeError(AppError, ValueError):
    code = "invalid_page_range"
    status_code = 422


class CorruptDocumentError(AppError, ValueError):
    code = "corrupt_document"
    status_code = 422


class UnauthorizedError(AppError):
    code = "unauthorized"
    status_code = 401


class ConflictError(AppError):
    code = "conflict"
    status_code = 409


class PayloadTooLargeError(AppError):
    code = "payload_too_large"
    status_code = 413


class StoreUnavailableError(AppError):
    """Transient storage failure; the caller may retry."""
    code = "store_unavailable"
    status_code = 503


class DeliveryError(AppError):
    """Outbound mail could not be handed to the SMTP server."""
    code = "delivery_failed"
    status_code = 502


def _extract_request_id(request: Request, fallback: Optional[str] = None) -> str:
    return (
        getattr(request.state, "request_id", None)
        or get_request_id()
        or fallback
        or str(uuid4())
    )


def _error_payload(code: str, message: str, request_id: str) -> dict:
    return {
        "error": {"code": code, "message": message, "request_id": request_id},
        "detail": message,
    }


async def app_error_handler(request: Request, exc: AppError):
    rid = exc.request_id or _extract_request_id(request)
    payload = _error_payload(exc.code, exc.message, rid)
    logger = logging.getLogger("planmarket")
    log_level = logging.ERROR if exc.status_code >= 500 else logging.WARNING
    logger.log(
        log_level,
        "app.error",
        extra={"request_id": rid, "error_code": exc.code, "error_message": exc.message, "status": exc.status_code},
    )
    response = JSONResponse(status_code=exc.status_code, content=payload)
    response.headers[REQUEST_ID_HEADER] = rid
    if isinstance(exc, StoreUnavailableError):
        response.headers["retry-after"] = "1"
    return response


async def http_error_handler(request: Request, exc: HTTPException):
    rid = _extract_request_id(request)
    code = "not_found" if exc.status_code == 404 else "http_error"
    message = exc.detail if exc.detail else "HTTP error"
    payload = _error_payload(code, message, rid)
    logger = logging.getLogger("planmarket")
    logger.warning("http.error", extra={"request_id": rid, "error_code": code, "status": exc.status_code})
    response = JSONResponse(status_code=exc.status_code, content=payload)
    response.headers[REQUEST_ID_HEADER] = rid
    return response


async def request_validation_error_handler(request: Request, exc: RequestValidationError):
    """Malformed query/form/body parameters are reported as bad_request."""
    rid = _extract_request_id(request)
    problems = []
    for err in exc.errors():
        location = ".".join(str(part) for part in err.get("loc", ()) if part not in ("body", "query", "path", "form"))
        problems.append(f"{location}: {err.get('msg')}" if location else str(err.get("msg")))
    message = "; ".join(problems) or "Invalid request"
    logger = logging.getLogger("planmarket")
    logger.warning("request.invalid", extra={"request_id": rid, "error_code": BadRequestError.code, "status": 400})
    response = JSONResponse(status_code=400, content=_error_payload(BadRequestError.code, message, rid))
    response.headers[REQUEST_ID_HEADER] = rid
    return response


async def unhandled_exception_handler(request: Request, exc: Exception):
    rid = _extract_request_id(request)
    logger = logging.getLogger("planmarket")
    logger.error("unhandled.exception", exc_info=True, extra={"request_id": rid, "error_code": "internal_error"})
    payload = _error_payload("internal_error", "Unexpected error", rid)
    response = JSONResponse(status_code=500, content=payload)
    response.headers[REQUEST_ID_HEADER] = rid
    return response
