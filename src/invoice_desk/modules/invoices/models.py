from __future__ import annotations

from datetime import datetime

from sqlalchemy import JSON, DateTime, Float, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from invoice_desk.core.models import Base, UUIDPrimaryKey, utcnow


class Invoice(UUIDPrimaryKey, Base):
    __tablename__ = "invoices_invoice"

    file_id: Mapped[str] = mapped_column(String(64), unique=True, index=True)
    file_name: Mapped[str] = mapped_column(String(512))
    file_url: Mapped[str | None] = mapped_column(Text, nullable=True)

    vendor_name: Mapped[str] = mapped_column(String(255), index=True)
    vendor_address: Mapped[str | None] = mapped_column(Text, nullable=True)
    vendor_tax_id: Mapped[str | None] = mapped_column(String(100), nullable=True)

    invoice_number: Mapped[str] = mapped_column(String(100), index=True)
    invoice_date: Mapped[str] = mapped_column(String(32))
    currency: Mapped[str] = mapped_column(String(8))
    subtotal: Mapped[float | None] = mapped_column(Float, nullable=True)
    tax_percent: Mapped[float | None] = mapped_column(Float, nullable=True)
    total: Mapped[float | None] = mapped_column(Float, nullable=True)
    po_number: Mapped[str | None] = mapped_column(String(100), nullable=True)
    po_date: Mapped[str | None] = mapped_column(String(32), nullable=True)
    line_items: Mapped[list] = mapped_column(JSON, default=list)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, index=True
    )
    updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
