"""HTTP contract for plan creation, listing, search and CRUD."""

from fastapi.testclient import TestClient

from planmarket.core.metrics import plan_uploads_total
from planmarket.tests.pdfs import make_pdf


def _form(**overrides):
    data = {
        "title": "Router table",
        "difficulty": "BASIC",
        "price": "12.50",
        "category": "CNC Router",
        "machine_type": "Router 3040",
        "description": "Flat-pack router table",
    }
    data.update(overrides)
    return data


def _pdf_file(document, content_type="application/pdf", name="plan.pdf"):
    return {"document": (name, document, content_type)}


def _create(client, document=None, **overrides):
    files = _pdf_file(document) if document is not None else None
    return client.post("/plans", data=_form(**overrides), files=files)


def test_create_with_document_reports_page_count(client):
    resp = _create(client, make_pdf(4))

    assert resp.status_code == 201
    body = resp.json()
    assert body["total_pages"] == 4
    assert body["has_document"] is True
    assert body["price"] == 12.5
    assert body["difficulty"] == "BASIC"
    assert body["preview_url"] == f"/plans/preview/{body['plan_id']}"
    assert plan_uploads_total.value({"outcome": "stored"}) == 1


def test_create_without_document(client):
    resp = _create(client)

    assert resp.status_code == 201
    assert resp.json()["total_pages"] is None
    assert resp.json()["has_document"] is False


def test_created_plan_is_readable(client):
    plan_id = _create(client, make_pdf(2), preview_pages="2, 1,2").json()["plan_id"]

    resp = client.get(f"/plans/{plan_id}")
    assert resp.status_code == 200
    assert resp.json()["title"] == "Router table"
    assert resp.json()["preview_pages"] == [2, 1]


def test_non_pdf_upload_is_rejected(client):
    resp = client.post("/plans", data=_form(), files=_pdf_file(b"hello", content_type="text/plain", name="a.txt"))
    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "bad_request"


def test_corrupt_pdf_is_rejected(client):
    resp = _create(client, b"%PDF-1.4 truncated garbage")
    assert resp.status_code == 422
    assert resp.json()["error"]["code"] == "corrupt_document"
    assert plan_uploads_total.value({"outcome": "rejected"}) == 1


def test_preview_pages_beyond_document_are_rejected(client):
    resp = _create(client, make_pdf(4), preview_pages="1,9")
    assert resp.status_code == 422
    assert resp.json()["error"]["code"] == "invalid_page_range"


def test_oversized_document_is_rejected(app_factory):
    from fastapi.testclient import TestClient

    client = TestClient(app_factory(MAX_DOCUMENT_BYTES=200))
    resp = _create(client, make_pdf(3))
    assert resp.status_code == 413
    assert resp.json()["error"]["code"] == "payload_too_large"


def test_invalid_metadata_is_bad_request(client):
    assert _create(client, difficulty="EXPERT").status_code == 400
    assert _create(client, price="-1").status_code == 400
    assert _create(client, title="").status_code == 400
    assert _create(client, preview_pages="1,x").status_code == 400


def test_price_precision_matches_storage(client):
    assert _create(client, price="1.239").status_code == 400
    assert _create(client, price="12345678901").status_code == 400
    plan_id = _create(client).json()["plan_id"]
    assert client.patch(f"/plans/{plan_id}", data={"price": "0.001"}).status_code == 400


def test_sql_backed_price_reads_back_as_created(app_factory, sqlite_engine):
    client = TestClient(app_factory(engine=sqlite_engine))
    created = _create(client, price="1.25").json()

    assert created["price"] == 1.25
    assert client.get(f"/plans/{created['plan_id']}").json()["price"] == created["price"]


def test_unknown_plan_is_not_found(client):
    resp = client.get("/plans/does-not-exist")
    assert resp.status_code == 404
    assert resp.json()["error"]["code"] == "not_found"


def test_list_paginates_and_filters(client):
    for n in range(5):
        _create(client, title=f"Router part {n}", difficulty="ADVANCED" if n % 2 else "BASIC")
    _create(client, title="Laser frame", category="Laser", machine_type="CO2 Laser")

    page = client.get("/plans", params={"page": 2, "limit": 4}).json()
    assert page["total"] == 6
    assert page["total_pages"] == 2
    assert page["current_page"] == 2
    assert len(page["items"]) == 2

    laser = client.get("/plans", params={"category": "laser"}).json()
    assert [item["title"] for item in laser["items"]] == ["Laser frame"]

    advanced = client.get("/plans", params={"difficulty": "ADVANCED"}).json()
    assert advanced["total"] == 2


def test_list_rejects_bad_parameters(client):
    assert client.get("/plans", params={"limit": 0}).status_code == 400
    assert client.get("/plans", params={"limit": 101}).status_code == 400
    assert client.get("/plans", params={"page": 0}).status_code == 400
    assert client.get("/plans", params={"difficulty": "EXPERT"}).status_code == 400
    assert client.get("/plans", params={"min_price": 10, "max_price": 1}).status_code == 400
    assert client.get("/plans", params={"page": "two"}).status_code == 400


def test_search(client):
    _create(client, title="Dust shoe")
    _create(client, title="Spindle mount", description="for DUST extraction")
    _create(client, title="Tool rack")

    resp = client.get("/plans/search", params={"q": "dust"})
    assert resp.status_code == 200
    assert sorted(item["title"] for item in resp.json()["items"]) == ["Dust shoe", "Spindle mount"]

    assert client.get("/plans/search").status_code == 400
    assert client.get("/plans/search", params={"q": "  "}).status_code == 400


def test_patch_metadata_and_document_together(client):
    plan_id = _create(client, make_pdf(2)).json()["plan_id"]

    resp = client.patch(
        f"/plans/{plan_id}",
        data={"title": "Router table v2", "preview_pages": "5"},
        files=_pdf_file(make_pdf(6)),
    )

    assert resp.status_code == 200
    body = resp.json()
    assert body["title"] == "Router table v2"
    assert body["total_pages"] == 6
    assert body["preview_pages"] == [5]


def test_patch_rejected_as_a_whole(client):
    plan_id = _create(client, make_pdf(2)).json()["plan_id"]

    resp = client.patch(f"/plans/{plan_id}", data={"title": "New"}, files=_pdf_file(b"junk"))
    assert resp.status_code == 422

    body = client.get(f"/plans/{plan_id}").json()
    assert body["title"] == "Router table"
    assert body["total_pages"] == 2


def test_replace_document_only(client):
    plan_id = _create(client).json()["plan_id"]

    resp = client.put(f"/plans/{plan_id}/document", files=_pdf_file(make_pdf(3)))
    assert resp.status_code == 200
    assert resp.json() == {"plan_id": plan_id, "total_pages": 3}
    assert client.get(f"/plans/{plan_id}").json()["has_document"] is True


def test_delete_plan(client):
    plan_id = _create(client, make_pdf(1)).json()["plan_id"]

    assert client.delete(f"/plans/{plan_id}").status_code == 204
    assert client.get(f"/plans/{plan_id}").status_code == 404
    assert client.get(f"/plans/preview/{plan_id}").status_code == 404
    assert client.delete(f"/plans/{plan_id}").status_code == 404
