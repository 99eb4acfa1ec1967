import pytest
from fastapi.testclient import TestClient

from planmarket.core import tracing
from planmarket.tests.pdfs import make_pdf

pytest.importorskip("opentelemetry.sdk")


@pytest.fixture
def traced_client(app_factory):
    app = app_factory(OTEL_ENABLED=True, OTEL_EXPORTER="memory")
    yield TestClient(app)
    tracing.reset_exported_spans()
    tracing.setup_tracing(enabled=False)


def test_preview_and_download_emit_spans(traced_client):
    created = traced_client.post(
        "/plans",
        data={"title": "Spoilboard", "difficulty": "BASIC", "price": "5"},
        files={"document": ("plan.pdf", make_pdf(2), "application/pdf")},
    )
    plan_id = created.json()["plan_id"]

    assert traced_client.get(f"/plans/preview/{plan_id}").status_code == 200
    assert traced_client.get(f"/plans/download/{plan_id}", params={"userId": "u1"}).status_code == 200

    spans = {span.name: span for span in tracing.get_exported_spans()}
    assert {tracing.PREVIEW_SPAN, tracing.DOWNLOAD_SPAN} <= set(spans)
    assert spans[tracing.PREVIEW_SPAN].attributes["plan_id"] == plan_id


def test_spans_are_noops_when_disabled():
    tracing.setup_tracing(enabled=False)
    with tracing.start_span(tracing.PREVIEW_SPAN) as span:
        assert span is None
