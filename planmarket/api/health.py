"""
Liveness and readiness probes.

/readyz checks the configured database and its tables; with in-memory
storage there is nothing external to probe, so it reports ready.
"""

import logging
import time

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy import inspect

from planmarket.api.deps import get_services
from planmarket.core.database import check_connection
from planmarket.core.logging import latency_bucket_ms
from planmarket.services import Services

logger = logging.getLogger("planmarket")

router = APIRouter(tags=["health"])

REQUIRED_TABLES = ["plans", "plan_purchases", "categories", "products"]


@router.get("/healthz")
def healthz():
    """Lightweight liveness check (no deps)."""
    return {"status": "ok"}


@router.get("/readyz")
def readyz(services: Services = Depends(get_services)):
    """Readiness check: DB connectivity + required tables."""
    engine = services.engine
    if engine is None:
        return {"status": "ok", "storage": "memory"}

    start = time.perf_counter()
    if not check_connection(engine):
        logger.error("[readyz] database unreachable")
        return JSONResponse(status_code=503, content={"status": "error", "detail": "database unreachable"})

    inspector = inspect(engine)
    missing = [t for t in REQUIRED_TABLES if not inspector.has_table(t)]
    latency_bucket = latency_bucket_ms((time.perf_counter() - start) * 1000)
    if missing:
        detail = f"missing tables: {', '.join(missing)}"
        logger.warning(f"[readyz] {detail}")
        return JSONResponse(status_code=503, content={"status": "error", "detail": detail})

    logger.info("health.ready", extra={"latency_bucket": latency_bucket})
    return {"status": "ok", "storage": engine.dialect.name}
