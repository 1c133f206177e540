from __future__ import annotations

import logging

from sqlalchemy.exc import SQLAlchemyError

import invoice_desk.models  # noqa: F401
from invoice_desk.core.config import settings
from invoice_desk.core.db import SessionLocal, engine
from invoice_desk.core.logging import get_logger, log_event
from invoice_desk.core.models import Base
from invoice_desk.modules.extraction.cache import DatabaseExtractionCache

logger = get_logger(__name__)


def bootstrap() -> None:
    """Prepare the database; the API keeps serving even when it is unreachable."""
    try:
        if settings.environment == "dev" and str(settings.database_url).startswith("sqlite"):
            Base.metadata.create_all(engine)
        with engine.connect():
            pass
        if settings.extraction_cache_backend == "database":
            purged = DatabaseExtractionCache(SessionLocal).purge_expired()
            log_event(logger, "extraction.cache.purged", rows=purged)
    except SQLAlchemyError as e:
        log_event(
            logger,
            "db.unavailable",
            level=logging.WARNING,
            error=str(e),
            hint="Endpoints that need the database will fail until it is reachable",
        )
        return
    log_event(logger, "db.ready", dialect=engine.dialect.name)
