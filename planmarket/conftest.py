# planmarket/conftest.py
import random

import pytest
from fastapi.testclient import TestClient

from planmarket.core.config import Settings
from planmarket.core.database import build_engine, create_all_tables, get_session_factory
from planmarket.core.metrics import METRICS
from planmarket.features.inquiries.mailer import LogMailer


def make_settings(**overrides) -> Settings:
    """Settings isolated from the developer's .env and shell."""
    values = dict(
        ENV="test",
        DATABASE_URL=None,
        TEST_DATABASE_URL=None,
        ENTITLEMENT_MODE="open",
        MAX_DOCUMENT_BYTES=1_000_000,
        DEFAULT_PAGE_SIZE=12,
        MAX_PAGE_SIZE=100,
        PREVIEW_CACHE_SECONDS=3600,
        MAIL_ENABLED=False,
        MAIL_FROM="shop@example.com",
        MAIL_TO="owner@example.com",
        OTEL_ENABLED=False,
    )
    values.update(overrides)
    return Settings(_env_file=None, **values)


@pytest.fixture(autouse=True)
def reset_metrics():
    """Counters are process-global; start every test from zero."""
    METRICS.reset()
    yield


@pytest.fixture
def settings_factory():
    return make_settings


@pytest.fixture
def mailer():
    return LogMailer()


@pytest.fixture
def app_factory(mailer):
    from planmarket.main import create_app

    def _build(engine=None, **overrides):
        return create_app(make_settings(**overrides), engine=engine, mailer=mailer, rng=random.Random(7))

    return _build


@pytest.fixture
def app(app_factory):
    return app_factory()


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def services(app):
    return app.state.services


@pytest.fixture
def sqlite_engine():
    """Private in-memory SQLite database with all tables created."""
    engine = build_engine("sqlite://")
    create_all_tables(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(sqlite_engine):
    return get_session_factory(sqlite_engine)
