from __future__ import annotations

from datetime import UTC, date, datetime

from sqlalchemy import select
from sqlalchemy.orm import Session

from invoice_desk.core.config import settings
from invoice_desk.core.logging import get_logger, log_event, log_exception
from invoice_desk.modules.extraction.errors import ErrorKind, ExtractionError
from invoice_desk.modules.quota.models import QuotaUsage
from invoice_desk.modules.quota.schemas import QuotaInfo, QuotaUsageOut

logger = get_logger(__name__)

QUOTA_SUGGESTIONS = [
    "Wait until tomorrow for the free tier quota to reset ({limit} requests/day)",
    "Upgrade to a paid Gemini API plan for higher limits",
    "Implement request caching to reduce API calls",
    "Consider using multiple API keys for different environments",
]
CREDENTIAL_SUGGESTIONS = [
    "Check your GEMINI_API_KEY environment variable",
    "Verify the API key is valid and active",
    "Ensure the API key has the necessary permissions",
]
GENERIC_SUGGESTIONS = [
    "Check your internet connection",
    "Verify the Gemini API service is available",
    "Try again in a few minutes",
]


def _kind_of(error: BaseException) -> ErrorKind | None:
    if isinstance(error, ExtractionError):
        return error.kind
    message = str(error)
    if "429 Too Many Requests" in message:
        return ErrorKind.QUOTA_EXCEEDED
    if "API key" in message:
        return ErrorKind.INVALID_CREDENTIAL
    return None


def get_quota_info(error: BaseException) -> QuotaInfo:
    """Advice for the caller of a failed extraction."""
    kind = _kind_of(error)
    if kind == ErrorKind.QUOTA_EXCEEDED:
        limit = settings.quota_daily_limit
        return QuotaInfo(
            is_quota_exceeded=True,
            retry_after="24 hours",
            suggestions=[s.format(limit=limit) for s in QUOTA_SUGGESTIONS],
            upgrade_url=settings.quota_upgrade_url,
        )
    if kind == ErrorKind.INVALID_CREDENTIAL:
        return QuotaInfo(is_quota_exceeded=False, suggestions=list(CREDENTIAL_SUGGESTIONS))
    return QuotaInfo(is_quota_exceeded=False, suggestions=list(GENERIC_SUGGESTIONS))


def should_use_fallback(error: BaseException) -> bool:
    if isinstance(error, ExtractionError):
        return error.kind == ErrorKind.QUOTA_EXCEEDED
    message = str(error)
    return "429" in message or "quota" in message or "limit" in message


def utc_today() -> date:
    return datetime.now(UTC).date()


def record_model_call(session: Session, *, today: date | None = None) -> int:
    day = today or utc_today()
    row = session.scalar(select(QuotaUsage).where(QuotaUsage.day == day))
    if row is None:
        row = QuotaUsage(day=day, calls=0)
    row.calls = (row.calls or 0) + 1
    session.add(row)
    session.commit()
    return row.calls


def record_model_call_in_new_session(backend: str) -> None:
    from invoice_desk.core.db import SessionLocal

    try:
        with SessionLocal() as session:
            used = record_model_call(session)
    except Exception:
        # The counter is advisory; a database outage must not block extraction.
        log_exception(logger, "quota.record.failure", backend=backend)
        return
    log_event(logger, "quota.model_call", backend=backend, used=used)


def get_quota_usage(session: Session, *, today: date | None = None) -> QuotaUsageOut:
    day = today or utc_today()
    used = session.scalar(select(QuotaUsage.calls).where(QuotaUsage.day == day)) or 0
    limit = settings.quota_daily_limit
    return QuotaUsageOut(used=used, limit=limit, remaining=max(limit - used, 0))
