from __future__ import annotations

from sqlalchemy import Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from invoice_desk.core.models import Base, Timestamped, UUIDPrimaryKey


class UploadedFile(UUIDPrimaryKey, Timestamped, Base):
    """Maps an upload identifier to where its bytes live."""

    __tablename__ = "uploads_uploaded_file"

    file_id: Mapped[str] = mapped_column(String(64), unique=True, index=True)
    file_name: Mapped[str] = mapped_column(String(512))
    content_type: Mapped[str | None] = mapped_column(String(200), nullable=True)
    byte_size: Mapped[int] = mapped_column(Integer)
    sha256: Mapped[str] = mapped_column(String(64), index=True)
    storage_backend: Mapped[str] = mapped_column(String(20))
    storage_key: Mapped[str] = mapped_column(String(1024), unique=True)
    url: Mapped[str | None] = mapped_column(Text, nullable=True)
