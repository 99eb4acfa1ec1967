import pytest

from planmarket.core.errors import InvalidPageRangeError, MissingAssetError, NotFoundError, PayloadTooLargeError
from planmarket.core.metrics import plan_uploads_total
from planmarket.features.catalog.models import CatalogCriteria
from planmarket.features.plans.asset_store import AssetStore
from planmarket.features.plans.repository import InMemoryPlanRepository
from planmarket.tests.factories import plan_record
from planmarket.tests.pdfs import make_pdf


@pytest.fixture
def repository():
    return InMemoryPlanRepository()


@pytest.fixture
def store(repository):
    return AssetStore(repository, max_document_bytes=50_000)


def test_put_stores_document_and_page_count(repository, store):
    repository.put(plan_record("p1"))
    document = make_pdf(4)

    assert store.put("p1", document) == 4

    assert store.get("p1") == document
    projected = repository.get("p1")
    assert projected.total_pages == 4
    assert projected.has_document is True
    assert projected.document is None
    assert plan_uploads_total.value({"outcome": "stored"}) == 1


def test_put_on_unknown_plan_is_not_found(store):
    with pytest.raises(NotFoundError):
        store.put("missing", make_pdf(1))


def test_get_distinguishes_missing_plan_from_missing_document(repository, store):
    repository.put(plan_record("empty"))

    with pytest.raises(MissingAssetError):
        store.get("empty")
    with pytest.raises(NotFoundError):
        store.get("nope")


def test_oversized_document_is_rejected_and_not_stored(repository):
    small_store = AssetStore(repository, max_document_bytes=100)
    repository.put(plan_record("p1"))

    with pytest.raises(PayloadTooLargeError):
        small_store.put("p1", make_pdf(2))

    assert repository.get("p1").has_document is False
    assert plan_uploads_total.value({"outcome": "rejected"}) == 1


def test_replacement_too_short_for_preview_pages_keeps_original(repository, store):
    original = make_pdf(5)
    repository.put(plan_record("p1", document=original, total_pages=5, preview_pages=[1, 5]))

    with pytest.raises(InvalidPageRangeError):
        store.put("p1", make_pdf(3))

    assert store.get("p1") == original
    assert repository.get("p1").total_pages == 5


def test_inspect_counts_without_storing(repository, store):
    assert store.inspect(make_pdf(3)) == 3
    assert repository.find_projected(CatalogCriteria(), 0, 10) == ([], 0)
