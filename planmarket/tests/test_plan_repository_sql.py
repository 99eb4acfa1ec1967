"""SqlPlanRepository and SqlPurchaseLedger against in-memory SQLite."""

from datetime import timedelta
from decimal import Decimal

import pytest

from planmarket.features.catalog.models import CatalogCriteria, CatalogFilter
from planmarket.features.entitlements.ledger import SqlPurchaseLedger
from planmarket.features.plans.repository import SqlPlanRepository
from planmarket.models.plan import Difficulty
from planmarket.models.purchase import Purchase
from planmarket.tests.factories import EPOCH, plan_record
from planmarket.tests.pdfs import make_pdf


@pytest.fixture
def repository(session_factory):
    return SqlPlanRepository(session_factory)


@pytest.fixture
def ledger(session_factory):
    return SqlPurchaseLedger(session_factory)


def test_round_trip_keeps_fields(repository):
    document = make_pdf(3)
    repository.put(plan_record(
        "p1",
        document=document,
        total_pages=3,
        preview_pages=[3, 1],
        difficulty=Difficulty.INTERMEDIATE,
        price=Decimal("19.99"),
    ))

    stored = repository.get("p1")
    assert stored.title == "Plan p1"
    assert stored.difficulty is Difficulty.INTERMEDIATE
    assert stored.preview_pages == [3, 1]
    assert stored.price == Decimal("19.99")
    assert stored.total_pages == 3
    assert stored.created_at == EPOCH


def test_projection_excludes_document_unless_requested(repository):
    document = make_pdf(2)
    repository.put(plan_record("p1", document=document, total_pages=2))

    projected = repository.get("p1")
    assert projected.document is None
    assert projected.has_document is True
    assert repository.get("p1", include_document=True).document == document


def test_get_unknown_returns_none(repository):
    assert repository.get("missing") is None


def test_update_applies_changes_in_one_call(repository):
    repository.put(plan_record("p1"))
    document = make_pdf(4)

    updated = repository.update("p1", {
        "title": "Renamed",
        "document": document,
        "total_pages": 4,
        "updated_at": EPOCH + timedelta(hours=1),
    })

    assert updated.title == "Renamed"
    assert updated.total_pages == 4
    assert updated.has_document is True
    assert updated.document is None
    assert updated.updated_at == EPOCH + timedelta(hours=1)
    assert repository.get("p1", include_document=True).document == document


def test_update_unknown_returns_none(repository):
    assert repository.update("missing", {"title": "x"}) is None


def test_find_projected_orders_pages_and_counts(repository):
    for n in range(5):
        repository.put(plan_record(f"p{n}", minutes=n, document=make_pdf(1), total_pages=1))
    repository.put(plan_record("p5", minutes=4))

    records, total = repository.find_projected(CatalogCriteria(), 0, 3)
    assert total == 6
    assert [r.plan_id for r in records] == ["p4", "p5", "p3"]
    assert all(r.document is None for r in records)

    records, _ = repository.find_projected(CatalogCriteria(), 3, 3)
    assert [r.plan_id for r in records] == ["p2", "p1", "p0"]


def test_find_projected_filters_and_searches(repository):
    repository.put(plan_record("a", category="CNC Router", title="Spindle 50% off", price=Decimal("5")))
    repository.put(plan_record("b", category="Laser", machine_type="CO2", price=Decimal("30"), difficulty=Difficulty.ADVANCED))
    repository.put(plan_record("c", category="router", price=Decimal("15")))

    def ids(criteria):
        records, _ = repository.find_projected(criteria, 0, 10)
        return sorted(r.plan_id for r in records)

    assert ids(CatalogCriteria(filter=CatalogFilter(category="ROUTER"))) == ["a", "c"]
    assert ids(CatalogCriteria(filter=CatalogFilter(category="Router", category_exact=True))) == ["c"]
    assert ids(CatalogCriteria(filter=CatalogFilter(difficulty=Difficulty.ADVANCED))) == ["b"]
    assert ids(CatalogCriteria(filter=CatalogFilter(min_price=Decimal("5"), max_price=Decimal("15")))) == ["a", "c"]
    assert ids(CatalogCriteria(text="co2")) == ["b"]
    assert ids(CatalogCriteria(text="50%")) == ["a"]
    assert ids(CatalogCriteria(text="%")) == ["a"]


def test_delete_removes_plan_and_its_purchases(repository, ledger):
    repository.put(plan_record("p1", document=make_pdf(1), total_pages=1))
    ledger.record(Purchase(plan_id="p1", user_id="u1", price=Decimal("10"), purchased_at=EPOCH))

    assert repository.delete("p1") is True
    assert repository.get("p1") is None
    assert ledger.exists("p1", "u1") is False
    assert repository.delete("p1") is False


def test_ledger_record_is_idempotent(repository, ledger):
    repository.put(plan_record("p1"))
    first = ledger.record(Purchase(plan_id="p1", user_id="u1", payment_method="transfer",
                                   price=Decimal("10"), purchased_at=EPOCH))
    again = ledger.record(Purchase(plan_id="p1", user_id="u1", payment_method="cash",
                                   price=Decimal("12"), purchased_at=EPOCH + timedelta(days=1)))

    assert again == first
    assert again.payment_method == "transfer"
    assert ledger.exists("p1", "u1")
    assert not ledger.exists("p1", "u2")
