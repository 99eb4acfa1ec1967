"""
planmarket/core/database.py

Database configuration and connection management.

This module provides:
- SQLAlchemy engine and session management
- Connection pooling with sane defaults
- Table definitions for plans, purchases, products and categories
"""
import logging
from typing import Optional
from contextlib import contextmanager
from sqlalchemy import (
    create_engine,
    event,
    MetaData,
    Table,
    Column,
    Integer,
    String,
    DateTime,
    JSON,
    Text,
    Numeric,
    LargeBinary,
    Index,
    ForeignKey,
    UniqueConstraint,
    text,
)
from sqlalchemy.engine import Engine
from sqlalchemy.ext.compiler import compiles
from sqlalchemy.sql.functions import GenericFunction
from sqlalchemy.exc import DBAPIError, OperationalError, TimeoutError as PoolTimeoutError
from sqlalchemy.pool import QueuePool, StaticPool
from sqlalchemy.orm import sessionmaker

from planmarket.core.config import settings
from planmarket.core.errors import StoreUnavailableError

logger = logging.getLogger("planmarket")

# SQLAlchemy metadata for table definitions
metadata = MetaData()

# Connection pooling configuration
POOL_SIZE = 10
MAX_OVERFLOW = 20
POOL_RECYCLE = 3600  # Recycle connections after 1 hour


class casefold(GenericFunction):
    """Unicode case folding of a text expression, for case-insensitive matching.

    Compiles to lower() everywhere except SQLite, whose lower() only folds
    ASCII; there it calls the Python str.casefold registered on each
    connection by build_engine.
    """
    type = Text()
    inherit_cache = True


@compiles(casefold)
def _compile_casefold(element, compiler, **kw):
    return f"lower({compiler.process(element.clauses, **kw)})"


@compiles(casefold, "sqlite")
def _compile_casefold_sqlite(element, compiler, **kw):
    return f"casefold({compiler.process(element.clauses, **kw)})"


def _sqlite_casefold(value):
    return value.casefold() if isinstance(value, str) else value


def _register_sqlite_functions(dbapi_connection, connection_record):
    dbapi_connection.create_function("casefold", 1, _sqlite_casefold, deterministic=True)


def build_engine(url: str, pool_timeout: Optional[int] = None) -> Engine:
    """Create an engine for ``url``.

    SQLite (used by tests and single-node deployments) cannot share a QueuePool;
    in-memory SQLite needs one shared connection or every checkout sees an empty database.
    """
    if url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if ":memory:" in url or url.rstrip("/") in ("sqlite:", "sqlite+pysqlite:"):
            kwargs["poolclass"] = StaticPool
        engine = create_engine(url, **kwargs)
        event.listen(engine, "connect", _register_sqlite_functions)
        return engine

    return create_engine(
        url,
        poolclass=QueuePool,
        pool_size=POOL_SIZE,
        max_overflow=MAX_OVERFLOW,
        pool_timeout=pool_timeout or settings.DB_POOL_TIMEOUT,
        pool_recycle=POOL_RECYCLE,
        pool_pre_ping=True,
        echo=False,  # Set to True for SQL query logging
    )


def get_session_factory(engine: Engine):
    """Session factory bound to ``engine``."""
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@contextmanager
def get_db_session(session_factory):
    """
    Context manager for database sessions.

    Usage:
        with get_db_session(session_factory) as session:
            session.execute(...)

    Commits on success, rolls back on error. Connection-level failures are
    re-raised as StoreUnavailableError so callers can retry.
    """
    session = session_factory()
    try:
        with translate_store_errors():
            yield session
            session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


@contextmanager
def translate_store_errors():
    """Map transient driver/pool failures onto StoreUnavailableError."""
    try:
        yield
    except PoolTimeoutError as exc:
        logger.error("store.timeout", extra={"error_code": StoreUnavailableError.code})
        raise StoreUnavailableError("Storage timed out, retry later") from exc
    except DBAPIError as exc:
        if isinstance(exc, OperationalError) or exc.connection_invalidated:
            logger.error("store.unavailable", extra={"error_code": StoreUnavailableError.code})
            raise StoreUnavailableError("Storage is unavailable, retry later") from exc
        raise


def create_all_tables(engine: Engine):
    """
    Create all tables defined in metadata.

    This is idempotent - tables that already exist will not be recreated.
    """
    metadata.create_all(bind=engine)


def check_connection(engine: Engine) -> bool:
    """
    Check if database connection is available.

    Returns:
        True if connection successful, False otherwise
    """
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.warning(f"Database connection check failed: {e}")
        return False


# Plans: metadata plus the full PDF inline
plans = Table(
    'plans',
    metadata,
    Column('plan_id', String(64), primary_key=True),
    Column('title', Text, nullable=False),
    Column('description', Text, nullable=False, server_default=''),
    Column('category', String(200), nullable=False, server_default=''),
    Column('machine_type', String(200), nullable=False, server_default=''),
    Column('difficulty', String(20), nullable=False),
    Column('document', LargeBinary, nullable=True),
    Column('total_pages', Integer, nullable=True),
    Column('preview_pages', JSON, nullable=False),
    Column('preview_description', Text, nullable=False, server_default=''),
    Column('price', Numeric(12, 2), nullable=False),
    Column('author', String(200), nullable=False, server_default=''),
    Column('version', String(50), nullable=False, server_default='1.0'),
    Column('created_at', DateTime(timezone=True), nullable=False),
    Column('updated_at', DateTime(timezone=True), nullable=False),
    Index('idx_plans_created_at', 'created_at'),
    Index('idx_plans_category', 'category'),
    Index('idx_plans_difficulty', 'difficulty'),
)

# Purchase ledger: one row per (plan, user)
plan_purchases = Table(
    'plan_purchases',
    metadata,
    Column('id', Integer, primary_key=True, autoincrement=True),
    Column('plan_id', String(64), ForeignKey('plans.plan_id', ondelete='CASCADE'), nullable=False),
    Column('user_id', String(100), nullable=False),
    Column('payment_method', String(50), nullable=True),
    Column('price', Numeric(12, 2), nullable=False),
    Column('purchased_at', DateTime(timezone=True), nullable=False),
    UniqueConstraint('plan_id', 'user_id', name='uq_plan_purchases_plan_user'),
    Index('idx_plan_purchases_user', 'user_id'),
)

categories = Table(
    'categories',
    metadata,
    Column('category_id', String(64), primary_key=True),
    Column('name', String(200), nullable=False, unique=True),
    Column('created_at', DateTime(timezone=True), nullable=False),
)

products = Table(
    'products',
    metadata,
    Column('product_id', String(64), primary_key=True),
    Column('name', Text, nullable=False),
    Column('description', Text, nullable=False, server_default=''),
    Column('price', Numeric(12, 2), nullable=False),
    Column('category_id', String(64), ForeignKey('categories.category_id', ondelete='SET NULL'), nullable=True),
    Column('features', JSON, nullable=False),
    Column('quantity', Integer, nullable=False, server_default='0'),
    Column('created_at', DateTime(timezone=True), nullable=False),
    Column('updated_at', DateTime(timezone=True), nullable=False),
    Index('idx_products_created_at', 'created_at'),
    Index('idx_products_category', 'category_id'),
)
