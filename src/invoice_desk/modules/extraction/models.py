from __future__ import annotations

from datetime import datetime

from sqlalchemy import JSON, Boolean, DateTime, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from invoice_desk.core.models import Base, Timestamped, UUIDPrimaryKey


class ExtractionAICache(UUIDPrimaryKey, Timestamped, Base):
    __tablename__ = "extraction_ai_cache"

    text_hash: Mapped[str] = mapped_column(String(64), unique=True, index=True)
    provider: Mapped[str] = mapped_column(String(50), default="gemini")
    is_fallback: Mapped[bool] = mapped_column(Boolean, default=False)
    response_json: Mapped[dict] = mapped_column(JSON, default=dict)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), index=True)
