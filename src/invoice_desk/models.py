"""
Alembic model import hook.

Importing this module ensures all SQLAlchemy models are registered on Base.metadata.
"""

from __future__ import annotations

from invoice_desk.modules.extraction.models import ExtractionAICache  # noqa: F401
from invoice_desk.modules.invoices.models import Invoice  # noqa: F401
from invoice_desk.modules.quota.models import QuotaUsage  # noqa: F401
from invoice_desk.modules.uploads.models import UploadedFile  # noqa: F401
