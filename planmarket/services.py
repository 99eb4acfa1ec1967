"""
planmarket/services.py

Wires repositories and feature services from a Settings object.

Storage selection follows DATABASE_URL: set means SQLAlchemy tables on that
database, unset means process-local in-memory repositories.
"""

import logging
import random
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.engine import Engine

from planmarket.core.config import Settings
from planmarket.core.database import build_engine, create_all_tables, get_session_factory
from planmarket.features.catalog.index import ALL_FILTER_OPTIONS, CatalogIndex
from planmarket.features.categories.service import (
    CategoryService,
    InMemoryCategoryRepository,
    SqlCategoryRepository,
)
from planmarket.features.distribution.service import DistributionService
from planmarket.features.entitlements.ledger import InMemoryPurchaseLedger, SqlPurchaseLedger
from planmarket.features.entitlements.service import Entitlement, build_entitlement
from planmarket.features.inquiries.mailer import Mailer, build_mailer
from planmarket.features.inquiries.service import InquiryService
from planmarket.features.plans.asset_store import AssetStore
from planmarket.features.plans.repository import InMemoryPlanRepository, SqlPlanRepository
from planmarket.features.plans.service import PlanService
from planmarket.features.products.repository import InMemoryProductRepository, SqlProductRepository
from planmarket.features.products.service import PRODUCT_FILTER_OPTIONS, ProductService
from planmarket.models.plan import PlanSummary

logger = logging.getLogger("planmarket")


@dataclass
class Services:
    settings: Settings
    engine: Optional[Engine]
    plans: PlanService
    plan_catalog: CatalogIndex
    assets: AssetStore
    distribution: DistributionService
    entitlement: Entitlement
    categories: CategoryService
    products: ProductService
    product_catalog: CatalogIndex
    inquiries: InquiryService
    mailer: Mailer


def build_services(
    settings: Settings,
    engine: Optional[Engine] = None,
    *,
    mailer: Optional[Mailer] = None,
    rng: Optional[random.Random] = None,
) -> Services:
    """Build every service for one application instance."""
    if engine is None and settings.DATABASE_URL:
        engine = build_engine(settings.DATABASE_URL, pool_timeout=settings.DB_POOL_TIMEOUT)

    if engine is not None:
        create_all_tables(engine)
        session_factory = get_session_factory(engine)
        plan_repo = SqlPlanRepository(session_factory)
        ledger = SqlPurchaseLedger(session_factory)
        category_repo = SqlCategoryRepository(session_factory)
        product_repo = SqlProductRepository(session_factory)
        logger.info(f"[services] using SQL storage ({engine.dialect.name})")
    else:
        plan_repo = InMemoryPlanRepository()
        ledger = InMemoryPurchaseLedger()
        category_repo = InMemoryCategoryRepository()
        product_repo = InMemoryProductRepository()
        logger.info("[services] DATABASE_URL not set, using in-memory storage")

    assets = AssetStore(plan_repo, max_document_bytes=settings.MAX_DOCUMENT_BYTES)
    entitlement = build_entitlement(settings.ENTITLEMENT_MODE, ledger)
    mailer = mailer or build_mailer(settings)
    products = ProductService(product_repo, category_repo)

    return Services(
        settings=settings,
        engine=engine,
        plans=PlanService(plan_repo, assets, ledger),
        plan_catalog=CatalogIndex(
            plan_repo,
            PlanSummary.from_record,
            default_page_size=settings.DEFAULT_PAGE_SIZE,
            max_page_size=settings.MAX_PAGE_SIZE,
            supported_filters=ALL_FILTER_OPTIONS,
            name="plans",
        ),
        assets=assets,
        distribution=DistributionService(assets, entitlement, rng=rng),
        entitlement=entitlement,
        categories=CategoryService(category_repo),
        products=products,
        product_catalog=CatalogIndex(
            product_repo,
            products.to_summary,
            default_page_size=settings.DEFAULT_PAGE_SIZE,
            max_page_size=settings.MAX_PAGE_SIZE,
            supported_filters=PRODUCT_FILTER_OPTIONS,
            name="products",
            to_items=products.to_summaries,
        ),
        inquiries=InquiryService(mailer, sender=settings.MAIL_FROM, recipient=settings.MAIL_TO),
        mailer=mailer,
    )
