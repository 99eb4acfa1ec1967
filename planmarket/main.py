import logging
import os
import random
import time
from contextlib import asynccontextmanager
from typing import Optional

from dotenv import load_dotenv

if "PYTEST_CURRENT_TEST" not in os.environ:
    load_dotenv()

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.engine import Engine
from starlette.exceptions import HTTPException as StarletteHTTPException

from planmarket.api import categories, health, inquiries, metrics, plans, products
from planmarket.core.config import Settings, settings, validate_config
from planmarket.core.errors import (
    AppError,
    app_error_handler,
    http_error_handler,
    request_validation_error_handler,
    unhandled_exception_handler,
)
from planmarket.core.logging import REQUEST_ID_HEADER, configure_logging
from planmarket.core.middleware.metrics import MetricsMiddleware
from planmarket.core.middleware.request_id import RequestIdMiddleware
from planmarket.core.tracing import setup_tracing
from planmarket.core.validation import validate_env
from planmarket.features.inquiries.mailer import Mailer
from planmarket.services import build_services


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger = logging.getLogger("planmarket")
    logger.info("Starting plan market backend...")
    app.state.startup_time = time.time()
    try:
        yield
    finally:
        engine = app.state.services.engine
        if engine is not None:
            engine.dispose()
        logging.getLogger("planmarket").info("Stopping plan market backend...")


def create_app(
    settings_obj: Optional[Settings] = None,
    *,
    engine: Optional[Engine] = None,
    mailer: Optional[Mailer] = None,
    rng: Optional[random.Random] = None,
) -> FastAPI:
    cfg = settings_obj or settings

    configure_logging(cfg.ENV)
    validate_env(settings_obj=cfg)
    validate_config(strict=cfg.CONFIG_STRICT, settings_obj=cfg)
    setup_tracing(enabled=cfg.OTEL_ENABLED, exporter_name=cfg.OTEL_EXPORTER)

    app = FastAPI(title="Plan Market - Catalog Backend", lifespan=lifespan)
    app.state.services = build_services(cfg, engine, mailer=mailer, rng=rng)

    # Middlewares
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(RequestIdMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cfg.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["Content-Disposition", "X-Preview-Pages", REQUEST_ID_HEADER],
    )

    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_error_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    app.include_router(plans.router)
    app.include_router(categories.router)
    app.include_router(products.router)
    app.include_router(inquiries.router)
    app.include_router(health.router)
    app.include_router(metrics.router)

    return app


app = create_app()
