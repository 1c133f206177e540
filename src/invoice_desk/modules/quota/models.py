from __future__ import annotations

from datetime import date

from sqlalchemy import Date, Integer
from sqlalchemy.orm import Mapped, mapped_column

from invoice_desk.core.models import Base, Timestamped, UUIDPrimaryKey


class QuotaUsage(UUIDPrimaryKey, Timestamped, Base):
    __tablename__ = "quota_usage"

    day: Mapped[date] = mapped_column(Date, unique=True, index=True)
    calls: Mapped[int] = mapped_column(Integer, default=0)
