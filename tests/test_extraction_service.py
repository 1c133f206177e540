from __future__ import annotations

import asyncio
import json
import threading

import pytest

from invoice_desk.modules.extraction.backends import ExtractionBackend
from invoice_desk.core.db import SessionLocal
from invoice_desk.modules.extraction.cache import DatabaseExtractionCache, MemoryExtractionCache
from invoice_desk.modules.extraction.errors import (
    ConfigurationError,
    ErrorKind,
    ExtractionFailedError,
    QuotaExceededError,
    UnsupportedBackendError,
    UpstreamUnavailableError,
)
from invoice_desk.modules.extraction.service import (
    QUOTA_EXCEEDED_INVOICE_NUMBER,
    ExtractionService,
    text_hash,
)

TEXT = "ACME Supplies\nInvoice No: INV-1001\nTotal: 1180.00"

GOOD_REPLY = json.dumps(
    {
        "vendor": {"name": "ACME Supplies"},
        "invoice": {
            "number": "INV-1001",
            "date": "2026-01-05",
            "currency": "INR",
            "subtotal": 1000,
            "taxPercent": 18,
            "total": 1180,
            "lineItems": [
                {"description": "Widget", "unitPrice": 500, "quantity": 2, "total": 1000}
            ],
        },
    }
)


class StubBackend(ExtractionBackend):
    name = "gemini"

    def __init__(self, *replies, delay: float = 0.0, configured: bool = True):
        self.replies = list(replies)
        self.prompts: list[str] = []
        self.delay = delay
        self.configured = configured

    def ensure_configured(self) -> None:
        if not self.configured:
            raise ConfigurationError("GEMINI_API_KEY not configured")

    async def generate(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if self.delay:
            await asyncio.sleep(self.delay)
        reply = self.replies[min(len(self.prompts), len(self.replies)) - 1]
        if isinstance(reply, Exception):
            raise reply
        return reply


def _service(backend: StubBackend, cache=None, **kwargs) -> ExtractionService:
    return ExtractionService(
        cache=cache if cache is not None else MemoryExtractionCache(),
        backends={"gemini": lambda: backend},
        default_currency="INR",
        **kwargs,
    )


def test_text_hash_is_stable_and_namespaced():
    assert text_hash(TEXT, backend="gemini") == text_hash(TEXT, backend="gemini")
    assert text_hash(TEXT, backend="gemini").startswith("gemini:")
    assert text_hash(TEXT, backend="gemini") != text_hash(TEXT + " ", backend="gemini")


def test_identical_text_calls_upstream_once():
    backend = StubBackend(GOOD_REPLY)
    service = _service(backend)

    first = asyncio.run(service.extract(TEXT))
    second = asyncio.run(service.extract(TEXT))

    assert len(backend.prompts) == 1
    assert TEXT in backend.prompts[0]
    assert first.upstream_called and not first.from_cache
    assert second.from_cache and not second.upstream_called
    assert second.record == first.record
    assert first.record.vendor.name == "ACME Supplies"


def test_upstream_call_hook_runs_only_on_real_calls():
    backend = StubBackend(GOOD_REPLY)
    seen: list[str] = []
    service = _service(backend, on_upstream_call=seen.append)

    asyncio.run(service.extract(TEXT))
    asyncio.run(service.extract(TEXT))

    assert seen == ["gemini"]


class ThreadRecordingDatabaseCache(DatabaseExtractionCache):
    def __init__(self):
        super().__init__(SessionLocal)
        self.threads: set[int] = set()

    def get(self, key):
        self.threads.add(threading.get_ident())
        return super().get(key)

    def set(self, key, value, *, ttl_seconds=None):
        self.threads.add(threading.get_ident())
        super().set(key, value, ttl_seconds=ttl_seconds)


class ThreadRecordingMemoryCache(MemoryExtractionCache):
    def __init__(self):
        super().__init__()
        self.threads: set[int] = set()

    def get(self, key):
        self.threads.add(threading.get_ident())
        return super().get(key)


def test_database_cache_and_hook_run_off_the_event_loop():
    backend = StubBackend(GOOD_REPLY)
    cache = ThreadRecordingDatabaseCache()
    hook_threads: list[int] = []
    service = _service(
        backend, cache=cache, on_upstream_call=lambda _: hook_threads.append(threading.get_ident())
    )
    loop_thread = threading.get_ident()

    first = asyncio.run(service.extract(TEXT))
    second = asyncio.run(service.extract(TEXT))

    assert first.upstream_called
    assert second.from_cache
    assert second.record == first.record
    assert len(backend.prompts) == 1
    assert cache.threads and loop_thread not in cache.threads
    assert hook_threads and hook_threads[0] != loop_thread


def test_memory_cache_stays_on_the_event_loop():
    cache = ThreadRecordingMemoryCache()
    service = _service(StubBackend(GOOD_REPLY), cache=cache)

    asyncio.run(service.extract(TEXT))

    assert cache.threads == {threading.get_ident()}


def test_quota_error_returns_cached_fallback():
    backend = StubBackend(QuotaExceededError("[429 Too Many Requests] quota"), GOOD_REPLY)
    service = _service(backend)

    outcome = asyncio.run(service.extract(TEXT))
    assert outcome.fallback
    assert isinstance(outcome.error, QuotaExceededError)
    assert outcome.record.vendor.name == "Unknown Vendor (Quota Exceeded)"
    assert outcome.record.invoice.number == QUOTA_EXCEEDED_INVOICE_NUMBER
    assert len(outcome.record.invoice.line_items) == 1

    again = asyncio.run(service.extract(TEXT))
    assert again.fallback and again.from_cache
    assert again.error is not None and again.error.kind == ErrorKind.QUOTA_EXCEEDED
    assert len(backend.prompts) == 1


def test_fallback_uses_short_ttl():
    now = [0.0]
    cache = MemoryExtractionCache(ttl_seconds=1000, clock=lambda: now[0])
    backend = StubBackend(QuotaExceededError("[429 Too Many Requests]"), GOOD_REPLY)
    service = _service(backend, cache=cache, fallback_ttl_seconds=10)

    assert asyncio.run(service.extract(TEXT)).fallback
    now[0] = 11.0
    outcome = asyncio.run(service.extract(TEXT))

    assert not outcome.fallback
    assert outcome.record.vendor.name == "ACME Supplies"
    assert len(backend.prompts) == 2


def test_configuration_error_is_raised_and_not_cached():
    backend = StubBackend(GOOD_REPLY, configured=False)
    cache = MemoryExtractionCache()
    service = _service(backend, cache=cache)

    with pytest.raises(ConfigurationError):
        asyncio.run(service.extract(TEXT))
    assert len(cache) == 0
    assert backend.prompts == []


def test_other_failures_are_wrapped_and_not_cached():
    backend = StubBackend(UpstreamUnavailableError("[503] Gemini unavailable"), GOOD_REPLY)
    cache = MemoryExtractionCache()
    service = _service(backend, cache=cache)

    with pytest.raises(ExtractionFailedError) as exc_info:
        asyncio.run(service.extract(TEXT))

    assert str(exc_info.value).startswith("Failed to extract data with gemini:")
    assert exc_info.value.kind == ErrorKind.UPSTREAM_UNAVAILABLE
    assert len(cache) == 0

    outcome = asyncio.run(service.extract(TEXT))
    assert outcome.record.vendor.name == "ACME Supplies"


def test_schema_violation_keeps_violations():
    backend = StubBackend(json.dumps({"vendor": {}, "invoice": {"number": "1"}}))
    service = _service(backend)

    with pytest.raises(ExtractionFailedError) as exc_info:
        asyncio.run(service.extract(TEXT))

    assert exc_info.value.kind == ErrorKind.VALIDATION_FAILED
    assert "vendor.name" in [v["field"] for v in exc_info.value.violations]


def test_concurrent_identical_requests_share_one_call():
    backend = StubBackend(GOOD_REPLY, delay=0.05)
    service = _service(backend)

    async def _run():
        return await asyncio.gather(service.extract(TEXT), service.extract(TEXT))

    first, second = asyncio.run(_run())

    assert len(backend.prompts) == 1
    assert first.record == second.record
    assert sorted([first.deduplicated, second.deduplicated]) == [False, True]


def test_unknown_backend_is_rejected():
    service = _service(StubBackend(GOOD_REPLY))
    with pytest.raises(UnsupportedBackendError):
        asyncio.run(service.extract(TEXT, backend="gpt"))


def test_foreign_rate_limit_errors_also_fall_back():
    backend = StubBackend(RuntimeError("Resource exhausted: quota for today"))
    service = _service(backend)

    outcome = asyncio.run(service.extract(TEXT))

    assert outcome.fallback
    assert outcome.error.kind == ErrorKind.QUOTA_EXCEEDED
