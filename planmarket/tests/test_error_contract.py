"""Tests for normalized error responses."""

from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError

import pytest

from planmarket.core.database import translate_store_errors
from planmarket.core.errors import StoreUnavailableError


def test_validation_error_has_standard_shape(client):
    resp = client.get("/plans", params={"difficulty": "impossible"})
    assert resp.status_code == 400
    body = resp.json()
    rid = resp.headers.get("x-request-id")
    assert body["error"]["code"] == "bad_request"
    assert body["error"]["request_id"] == rid
    assert body["detail"] == body["error"]["message"]


def test_not_found_echoes_request_id(client):
    resp = client.get("/plans/missing", headers={"X-Request-Id": "rid-404"})
    assert resp.status_code == 404
    assert resp.headers["x-request-id"] == "rid-404"
    assert resp.json()["error"] == {
        "code": "not_found",
        "message": resp.json()["detail"],
        "request_id": "rid-404",
    }


def test_unknown_route_is_normalized(client):
    resp = client.get("/no/such/route")
    assert resp.status_code == 404
    assert resp.json()["error"]["code"] == "not_found"


def test_unhandled_exception_is_internal_error(app):
    @app.get("/boom")
    def boom():
        raise RuntimeError("kaboom")

    client = TestClient(app, raise_server_exceptions=False)
    resp = client.get("/boom", headers={"X-Request-Id": "rid-500"})
    assert resp.status_code == 500
    body = resp.json()
    assert body["error"]["code"] == "internal_error"
    assert body["error"]["request_id"] == "rid-500"
    assert "kaboom" not in resp.text


def test_store_unavailable_asks_for_retry(client, services, monkeypatch):
    def unavailable(plan_id):
        raise StoreUnavailableError("Storage is unavailable, retry later")

    monkeypatch.setattr(services.plans, "get", unavailable)
    resp = client.get("/plans/anything")
    assert resp.status_code == 503
    assert resp.headers["retry-after"] == "1"
    assert resp.json()["error"]["code"] == "store_unavailable"


def test_operational_errors_become_store_unavailable():
    with pytest.raises(StoreUnavailableError):
        with translate_store_errors():
            raise OperationalError("SELECT 1", {}, Exception("server closed the connection"))
