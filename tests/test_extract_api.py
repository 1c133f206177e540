from __future__ import annotations

import json

import httpx
from fastapi.testclient import TestClient

from invoice_desk.main import app
from invoice_desk.modules.extraction.backends import ExtractionBackend
from invoice_desk.modules.extraction.cache import MemoryExtractionCache
from invoice_desk.modules.extraction.errors import ConfigurationError, QuotaExceededError
from invoice_desk.modules.extraction.service import ExtractionService, get_extraction_service
from invoice_desk.modules.quota.service import record_model_call_in_new_session

GOOD_REPLY = json.dumps(
    {
        "vendor": {"name": "ACME Supplies Pvt Ltd", "address": "Bengaluru"},
        "invoice": {
            "number": "INV-1001",
            "date": "2026-01-05",
            "currency": None,
            "subtotal": 1000,
            "taxPercent": 18,
            "total": 1180,
            "lineItems": [
                {"description": "Widget", "unitPrice": 500, "quantity": 2, "total": 1000}
            ],
        },
    }
)


class ScriptedBackend(ExtractionBackend):
    name = "gemini"

    def __init__(self, reply):
        self.reply = reply
        self.prompts: list[str] = []

    async def generate(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if isinstance(self.reply, Exception):
            raise self.reply
        return self.reply


def _client_with(reply) -> tuple[TestClient, ScriptedBackend]:
    backend = ScriptedBackend(reply)
    service = ExtractionService(
        cache=MemoryExtractionCache(),
        backends={"gemini": lambda: backend},
        default_currency="INR",
        on_upstream_call=record_model_call_in_new_session,
    )
    app.dependency_overrides[get_extraction_service] = lambda: service
    return TestClient(app), backend


def _upload(client: TestClient, body: bytes) -> str:
    resp = client.post("/api/upload", files={"pdf": ("invoice.pdf", body, "application/pdf")})
    assert resp.status_code == 200
    return resp.json()["fileId"]


def test_extract_returns_validated_record(sample_pdf):
    client, backend = _client_with(GOOD_REPLY)
    file_id = _upload(client, sample_pdf)

    resp = client.post("/api/extract", json={"fileId": file_id, "model": "gemini"})

    assert resp.status_code == 200
    body = resp.json()
    assert body["vendor"]["name"] == "ACME Supplies Pvt Ltd"
    assert body["invoice"]["currency"] == "INR"
    assert body["invoice"]["lineItems"][0]["unitPrice"] == 500
    assert "ACME Supplies Pvt Ltd" in backend.prompts[0]


def test_repeated_extract_hits_cache_and_counts_quota_once(sample_pdf):
    client, backend = _client_with(GOOD_REPLY)
    file_id = _upload(client, sample_pdf)

    for _ in range(2):
        resp = client.post("/api/extract", json={"fileId": file_id, "model": "gemini"})
        assert resp.status_code == 200
    assert len(backend.prompts) == 1

    quota = client.get("/api/extract/quota").json()
    assert quota["quota"] == {"used": 1, "limit": 50, "remaining": 49}
    assert quota["info"]["freeTierLimit"] == 50
    assert quota["info"]["upgradeUrl"] == "https://ai.google.dev/pricing"


def test_quota_exceeded_returns_429_with_fallback(sample_pdf):
    client, _ = _client_with(QuotaExceededError("[429 Too Many Requests] exhausted"))
    file_id = _upload(client, sample_pdf)

    resp = client.post("/api/extract", json={"fileId": file_id, "model": "gemini"})

    assert resp.status_code == 429
    body = resp.json()
    assert body["quotaInfo"]["isQuotaExceeded"] is True
    assert body["quotaInfo"]["retryAfter"] == "24 hours"
    assert body["data"]["vendor"]["name"] == "Unknown Vendor (Quota Exceeded)"
    assert body["error"]


def test_missing_credential_returns_401(sample_pdf):
    client, _ = _client_with(ConfigurationError("GEMINI_API_KEY not configured"))
    file_id = _upload(client, sample_pdf)

    resp = client.post("/api/extract", json={"fileId": file_id, "model": "gemini"})

    assert resp.status_code == 401
    assert resp.json()["quotaInfo"]["isQuotaExceeded"] is False


def test_schema_violation_returns_400_with_details(sample_pdf):
    client, _ = _client_with(json.dumps({"vendor": {}, "invoice": {"number": "1"}}))
    file_id = _upload(client, sample_pdf)

    resp = client.post("/api/extract", json={"fileId": file_id, "model": "gemini"})

    assert resp.status_code == 400
    fields = [d["field"] for d in resp.json()["details"]]
    assert "vendor.name" in fields


def test_non_finite_numbers_are_rejected_and_not_cached(sample_pdf):
    reply = GOOD_REPLY.replace('"unitPrice": 500', '"unitPrice": NaN')
    assert "NaN" in reply
    client, backend = _client_with(reply)
    file_id = _upload(client, sample_pdf)

    for _ in range(2):
        resp = client.post("/api/extract", json={"fileId": file_id, "model": "gemini"})
        assert resp.status_code == 400
        assert resp.json()["details"][0]["field"] == "$"
    assert len(backend.prompts) == 2


def test_upstream_failure_returns_500(sample_pdf):
    client, _ = _client_with(RuntimeError("socket closed"))
    file_id = _upload(client, sample_pdf)

    resp = client.post("/api/extract", json={"fileId": file_id, "model": "gemini"})

    assert resp.status_code == 500
    assert resp.json()["message"].startswith("Failed to extract data with gemini")


def test_unknown_file_without_url_returns_404():
    client, backend = _client_with(GOOD_REPLY)
    resp = client.post("/api/extract", json={"fileId": "nope", "model": "gemini"})
    assert resp.status_code == 404
    assert backend.prompts == []


def test_unreadable_pdf_returns_400():
    client, backend = _client_with(GOOD_REPLY)
    file_id = _upload(client, b"this is not a pdf")

    resp = client.post("/api/extract", json={"fileId": file_id, "model": "gemini"})

    assert resp.status_code == 400
    assert backend.prompts == []


def test_remote_file_url_is_fetched(monkeypatch, sample_pdf):
    client, _ = _client_with(GOOD_REPLY)
    real_client = httpx.AsyncClient

    def handler(request: httpx.Request) -> httpx.Response:
        assert str(request.url) == "https://blob.test/invoice.pdf"
        return httpx.Response(200, content=sample_pdf)

    def fake_client(*args, **kwargs):
        kwargs["transport"] = httpx.MockTransport(handler)
        return real_client(*args, **kwargs)

    monkeypatch.setattr(httpx, "AsyncClient", fake_client)

    resp = client.post(
        "/api/extract",
        json={
            "fileId": "remote-only",
            "model": "gemini",
            "fileUrl": "https://blob.test/invoice.pdf",
        },
    )

    assert resp.status_code == 200
    assert resp.json()["invoice"]["number"] == "INV-1001"


def test_unsupported_model_is_a_validation_error():
    client, _ = _client_with(GOOD_REPLY)
    resp = client.post("/api/extract", json={"fileId": "x", "model": "gpt-4"})
    assert resp.status_code == 400
    assert resp.json()["details"][0]["field"] == "model"
