"""
planmarket/core/middleware/request_id.py

Request correlation.

Every request gets an id: the caller's x-request-id when sent, a fresh
uuid4 otherwise. The id is stored on request.state (read by the error
handlers), bound to request_id_ctx_var for the duration of the request
(read by log_event and RequestIdFilter) and echoed on the response.
A completion line with status and latency bucket is logged per request.
"""

import logging
import time
from uuid import uuid4

from starlette.middleware.base import BaseHTTPMiddleware

from planmarket.core.logging import REQUEST_ID_HEADER, latency_bucket_ms, request_id_ctx_var

logger = logging.getLogger("planmarket")


class RequestIdMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, header_name: str = REQUEST_ID_HEADER):
        super().__init__(app)
        self.header_name = header_name

    async def dispatch(self, request, call_next):
        rid = request.headers.get(self.header_name) or str(uuid4())
        request.state.request_id = rid
        token = request_id_ctx_var.set(rid)

        start = time.perf_counter()
        try:
            response = await call_next(request)
        finally:
            request_id_ctx_var.reset(token)
        latency_bucket = latency_bucket_ms((time.perf_counter() - start) * 1000)

        response.headers[self.header_name] = rid
        logger.info(
            "request.complete",
            extra={
                "request_id": rid,
                "path": request.url.path,
                "method": request.method,
                "status": response.status_code,
                "latency_bucket": latency_bucket,
            },
        )
        return response
