from __future__ import annotations

import asyncio
import hashlib
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass, replace
from datetime import date

from starlette.concurrency import run_in_threadpool

from invoice_desk.core.config import settings
from invoice_desk.core.logging import get_logger, log_event, monotonic_ms
from invoice_desk.modules.extraction.backends import BACKENDS, ExtractionBackend
from invoice_desk.modules.extraction.cache import CachedExtraction, ExtractionCache, build_cache
from invoice_desk.modules.extraction.errors import (
    ConfigurationError,
    ExtractionError,
    ExtractionFailedError,
    QuotaExceededError,
    UnsupportedBackendError,
)
from invoice_desk.modules.extraction.prompt import build_extraction_prompt
from invoice_desk.modules.extraction.sanitize import sanitize_model_response
from invoice_desk.modules.extraction.schemas import (
    ExtractedInvoice,
    InvoiceDetail,
    LineItem,
    Vendor,
)
from invoice_desk.modules.extraction.validation import validate_extraction
from invoice_desk.modules.quota.service import (
    record_model_call_in_new_session,
    should_use_fallback,
)

logger = get_logger(__name__)

QUOTA_EXCEEDED_INVOICE_NUMBER = "INV-QUOTA-EXCEEDED"


def text_hash(text: str, *, backend: str) -> str:
    digest = hashlib.blake2b(text.encode("utf-8", errors="ignore"), digest_size=8).hexdigest()
    return f"{backend}:{digest}"


def quota_fallback_record(*, default_currency: str, today: date | None = None) -> ExtractedInvoice:
    """Placeholder returned when the model quota is exhausted."""
    return ExtractedInvoice(
        vendor=Vendor(name="Unknown Vendor (Quota Exceeded)", address="", tax_id=""),
        invoice=InvoiceDetail(
            number=QUOTA_EXCEEDED_INVOICE_NUMBER,
            date=(today or date.today()).isoformat(),
            currency=default_currency,
            subtotal=0.0,
            tax_percent=0.0,
            total=0.0,
            line_items=[
                LineItem(
                    description=(
                        "AI extraction unavailable: the daily model quota is exhausted. "
                        "Enter the invoice details manually or retry later."
                    ),
                    unit_price=0.0,
                    quantity=1.0,
                    total=0.0,
                )
            ],
        ),
    )


@dataclass(frozen=True)
class ExtractionOutcome:
    record: ExtractedInvoice
    from_cache: bool = False
    fallback: bool = False
    error: ExtractionError | None = None
    upstream_called: bool = False
    deduplicated: bool = False


class ExtractionService:
    def __init__(
        self,
        *,
        cache: ExtractionCache,
        backends: Mapping[str, Callable[[], ExtractionBackend]] | None = None,
        default_currency: str | None = None,
        default_tax_percent: float | None = None,
        fallback_ttl_seconds: int | None = None,
        on_upstream_call: Callable[[str], None] | None = None,
    ) -> None:
        self.cache = cache
        self._backends = dict(backends if backends is not None else BACKENDS)
        self.default_currency = default_currency or settings.default_currency
        self.default_tax_percent = (
            settings.default_tax_percent if default_tax_percent is None else default_tax_percent
        )
        self.fallback_ttl_seconds = (
            settings.quota_fallback_ttl_seconds
            if fallback_ttl_seconds is None
            else fallback_ttl_seconds
        )
        self._on_upstream_call = on_upstream_call
        self._inflight: dict[str, asyncio.Future[ExtractionOutcome]] = {}

    async def extract(self, pdf_text: str, *, backend: str = "gemini") -> ExtractionOutcome:
        if backend not in self._backends:
            raise UnsupportedBackendError(f"Unsupported extraction model: {backend}")

        key = text_hash(pdf_text, backend=backend)
        cached = await self._cache_get(key)
        if cached is not None:
            log_event(
                logger,
                "extraction.cache.hit",
                backend=backend,
                text_hash=key,
                fallback=cached.fallback,
            )
            error = QuotaExceededError(cached.error_message or "") if cached.fallback else None
            return ExtractionOutcome(
                record=cached.record, from_cache=True, fallback=cached.fallback, error=error
            )

        pending = self._inflight.get(key)
        if pending is not None:
            log_event(logger, "extraction.inflight.join", backend=backend, text_hash=key)
            outcome = await asyncio.shield(pending)
            return replace(outcome, upstream_called=False, deduplicated=True)

        future: asyncio.Future[ExtractionOutcome] = asyncio.get_running_loop().create_future()
        future.add_done_callback(_consume_exception)
        self._inflight[key] = future
        try:
            outcome = await self._extract_uncached(pdf_text, backend=backend, key=key)
        except asyncio.CancelledError:
            future.cancel()
            raise
        except Exception as e:
            future.set_exception(e)
            raise
        else:
            future.set_result(outcome)
            return outcome
        finally:
            self._inflight.pop(key, None)

    async def _extract_uncached(self, pdf_text: str, *, backend: str, key: str) -> ExtractionOutcome:
        start = time.monotonic()
        client = self._backends[backend]()
        prompt = build_extraction_prompt(pdf_text, default_currency=self.default_currency)
        try:
            client.ensure_configured()
            if self._on_upstream_call is not None:
                await run_in_threadpool(self._on_upstream_call, backend)
            raw = await client.generate(prompt)
            sanitized = sanitize_model_response(
                raw,
                default_currency=self.default_currency,
                tax_percent=self.default_tax_percent,
            )
            record = validate_extraction(sanitized, default_currency=self.default_currency)
        except QuotaExceededError as e:
            return await self._fallback(e, backend=backend, key=key)
        except ConfigurationError as e:
            log_event(logger, "extraction.configuration_error", backend=backend, error=str(e))
            raise
        except ExtractionError as e:
            log_event(
                logger,
                "extraction.failure",
                backend=backend,
                text_hash=key,
                error_kind=e.kind.value,
                error=str(e),
            )
            raise ExtractionFailedError(
                f"Failed to extract data with {backend}: {e}", cause=e
            ) from e
        except Exception as e:
            if should_use_fallback(e):
                return await self._fallback(QuotaExceededError(str(e)), backend=backend, key=key)
            log_event(logger, "extraction.failure", backend=backend, text_hash=key, error=str(e))
            raise ExtractionFailedError(f"Failed to extract data with {backend}: {e}") from e

        await self._cache_set(key, CachedExtraction(provider=backend, record=record))
        log_event(
            logger,
            "extraction.success",
            backend=backend,
            text_hash=key,
            line_items=len(record.invoice.line_items),
            duration_ms=monotonic_ms(start),
        )
        return ExtractionOutcome(record=record, upstream_called=True)

    async def _fallback(
        self, error: QuotaExceededError, *, backend: str, key: str
    ) -> ExtractionOutcome:
        log_event(
            logger,
            "extraction.quota_exceeded",
            backend=backend,
            text_hash=key,
            error=str(error),
        )
        record = quota_fallback_record(default_currency=self.default_currency)
        await self._cache_set(
            key,
            CachedExtraction(
                provider=backend, record=record, fallback=True, error_message=str(error)
            ),
            ttl_seconds=self.fallback_ttl_seconds,
        )
        return ExtractionOutcome(record=record, fallback=True, error=error, upstream_called=True)

    async def _cache_get(self, key: str) -> CachedExtraction | None:
        if self.cache.blocking:
            return await run_in_threadpool(self.cache.get, key)
        return self.cache.get(key)

    async def _cache_set(
        self, key: str, value: CachedExtraction, *, ttl_seconds: int | None = None
    ) -> None:
        if self.cache.blocking:
            await run_in_threadpool(self.cache.set, key, value, ttl_seconds=ttl_seconds)
        else:
            self.cache.set(key, value, ttl_seconds=ttl_seconds)


def _consume_exception(future: asyncio.Future) -> None:
    # Marks the exception retrieved when no concurrent caller was waiting on it.
    if not future.cancelled():
        future.exception()


_service: ExtractionService | None = None


def get_extraction_service() -> ExtractionService:
    global _service  # noqa: PLW0603
    if _service is None:
        _service = ExtractionService(
            cache=build_cache(), on_upstream_call=record_model_call_in_new_session
        )
    return _service


def reset_extraction_service() -> None:
    global _service  # noqa: PLW0603
    _service = None
