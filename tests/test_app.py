from __future__ import annotations

from fastapi.testclient import TestClient

from invoice_desk.core.config import settings
from invoice_desk.core.currencies import currency_symbol, normalize_currency
from invoice_desk.main import app


def test_health():
    client = TestClient(app)
    resp = client.get("/api/health")
    assert resp.status_code == 200
    body = resp.json()
    assert body["status"] == "OK"
    assert body["timestamp"].endswith("Z")


def test_root_lists_endpoints():
    client = TestClient(app)
    body = client.get("/").json()
    assert "POST /api/upload - Upload PDF files" in body["endpoints"]
    assert "GET /api/health - Health check" in body["endpoints"]


def test_root_banner_advertises_public_base_url(monkeypatch):
    monkeypatch.setattr(settings, "public_api_url", "https://api.example.com/")
    client = TestClient(app)

    body = client.get("/").json()

    assert body["baseUrl"] == "https://api.example.com"


def test_request_id_is_echoed():
    client = TestClient(app)
    resp = client.get("/api/health", headers={"x-request-id": "req-123"})
    assert resp.headers["x-request-id"] == "req-123"


def test_unknown_route_is_json_404():
    client = TestClient(app)
    resp = client.get("/api/nope")
    assert resp.status_code == 404
    assert resp.json() == {"error": "Not Found"}


def test_unhandled_errors_hide_details_outside_dev(monkeypatch):
    from invoice_desk.core.config import settings
    from invoice_desk.modules.invoices import api as invoices_api

    def boom(*args, **kwargs):
        raise RuntimeError("database exploded")

    monkeypatch.setattr(invoices_api, "list_invoices", boom)
    client = TestClient(app, raise_server_exceptions=False)

    monkeypatch.setattr(settings, "environment", "production")
    resp = client.get("/api/invoices")
    assert resp.status_code == 500
    assert resp.json() == {"error": "Internal server error", "message": "Something went wrong"}

    monkeypatch.setattr(settings, "environment", "dev")
    resp = client.get("/api/invoices")
    assert resp.json()["message"] == "database exploded"


def test_currency_normalisation():
    assert normalize_currency("₹") == "INR"
    assert normalize_currency(" usd ") == "USD"
    assert normalize_currency("dollars") is None
    assert normalize_currency(None) is None
    assert currency_symbol("EUR") == "€"
    assert currency_symbol("XYZ") == "XYZ"


def test_bootstrap_survives_unreachable_database(monkeypatch):
    from sqlalchemy import create_engine

    from invoice_desk import bootstrap as bootstrap_mod

    monkeypatch.setattr(
        bootstrap_mod, "engine", create_engine("sqlite:////nonexistent-dir/x/y/z.db")
    )
    bootstrap_mod.bootstrap()
