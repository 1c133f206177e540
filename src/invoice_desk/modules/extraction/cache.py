from __future__ import annotations

import time
from collections import OrderedDict
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from invoice_desk.core.config import settings
from invoice_desk.modules.extraction.models import ExtractionAICache
from invoice_desk.modules.extraction.schemas import ExtractedInvoice


@dataclass(frozen=True)
class CachedExtraction:
    provider: str
    record: ExtractedInvoice
    fallback: bool = False
    error_message: str | None = None


class ExtractionCache:
    """Key/value store for validated extraction results, keyed by text hash.

    Caches that do blocking I/O set ``blocking`` so async callers run them
    in a worker thread.
    """

    blocking = False

    def get(self, key: str) -> CachedExtraction | None:  # pragma: no cover
        raise NotImplementedError

    def set(
        self, key: str, value: CachedExtraction, *, ttl_seconds: int | None = None
    ) -> None:  # pragma: no cover
        raise NotImplementedError

    def clear(self) -> None:  # pragma: no cover
        raise NotImplementedError


class MemoryExtractionCache(ExtractionCache):
    """Process-local LRU with per-entry expiry."""

    def __init__(
        self,
        *,
        max_entries: int = 512,
        ttl_seconds: int = 60 * 60 * 24,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_entries < 1:
            raise ValueError("max_entries must be positive")
        self.max_entries = max_entries
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: OrderedDict[str, tuple[float, CachedExtraction]] = OrderedDict()

    def __len__(self) -> int:
        return len(self._entries)

    def get(self, key: str) -> CachedExtraction | None:
        item = self._entries.get(key)
        if item is None:
            return None
        expires_at, value = item
        if expires_at <= self._clock():
            del self._entries[key]
            return None
        self._entries.move_to_end(key)
        return value

    def set(self, key: str, value: CachedExtraction, *, ttl_seconds: int | None = None) -> None:
        ttl = self.ttl_seconds if ttl_seconds is None else ttl_seconds
        self._entries[key] = (self._clock() + ttl, value)
        self._entries.move_to_end(key)
        while len(self._entries) > self.max_entries:
            self._entries.popitem(last=False)

    def clear(self) -> None:
        self._entries.clear()


class DatabaseExtractionCache(ExtractionCache):
    """Cache shared by every process using the same database."""

    blocking = True

    def __init__(
        self, session_factory: Callable[[], Session], *, ttl_seconds: int = 60 * 60 * 24
    ) -> None:
        self._session_factory = session_factory
        self.ttl_seconds = ttl_seconds

    def get(self, key: str) -> CachedExtraction | None:
        now = datetime.now(UTC)
        with self._session_factory() as session:
            row = session.scalar(select(ExtractionAICache).where(ExtractionAICache.text_hash == key))
            if row is None:
                return None
            expires_at = row.expires_at
            if expires_at.tzinfo is None:
                expires_at = expires_at.replace(tzinfo=UTC)
            if expires_at <= now:
                session.delete(row)
                session.commit()
                return None
            return CachedExtraction(
                provider=row.provider,
                record=ExtractedInvoice.model_validate(row.response_json or {}),
                fallback=bool(row.is_fallback),
                error_message=row.error_message,
            )

    def set(self, key: str, value: CachedExtraction, *, ttl_seconds: int | None = None) -> None:
        ttl = self.ttl_seconds if ttl_seconds is None else ttl_seconds
        expires_at = datetime.now(UTC) + timedelta(seconds=ttl)
        with self._session_factory() as session:
            row = session.scalar(select(ExtractionAICache).where(ExtractionAICache.text_hash == key))
            if row is None:
                row = ExtractionAICache(text_hash=key)
            row.provider = value.provider
            row.is_fallback = value.fallback
            row.response_json = value.record.model_dump(mode="json", by_alias=True)
            row.error_message = value.error_message
            row.expires_at = expires_at
            session.add(row)
            session.commit()

    def purge_expired(self) -> int:
        with self._session_factory() as session:
            result = session.execute(
                delete(ExtractionAICache).where(ExtractionAICache.expires_at <= datetime.now(UTC))
            )
            session.commit()
            return int(result.rowcount or 0)

    def clear(self) -> None:
        with self._session_factory() as session:
            session.execute(delete(ExtractionAICache))
            session.commit()


def build_cache() -> ExtractionCache:
    if settings.extraction_cache_backend == "database":
        from invoice_desk.core.db import SessionLocal

        return DatabaseExtractionCache(SessionLocal, ttl_seconds=settings.extraction_cache_ttl_seconds)
    return MemoryExtractionCache(
        max_entries=settings.extraction_cache_max_entries,
        ttl_seconds=settings.extraction_cache_ttl_seconds,
    )
