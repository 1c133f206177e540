"""initial schema

Revision ID: 3c1e7b2a9f40
Revises:
Create Date: 2026-10-17

"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op


# revision identifiers, used by Alembic.
revision: str = "3c1e7b2a9f40"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "uploads_uploaded_file",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("file_id", sa.String(length=64), nullable=False),
        sa.Column("file_name", sa.String(length=512), nullable=False),
        sa.Column("content_type", sa.String(length=200), nullable=True),
        sa.Column("byte_size", sa.Integer(), nullable=False),
        sa.Column("sha256", sa.String(length=64), nullable=False),
        sa.Column("storage_backend", sa.String(length=20), nullable=False),
        sa.Column("storage_key", sa.String(length=1024), nullable=False),
        sa.Column("url", sa.Text(), nullable=True),
        sa.UniqueConstraint("storage_key", name="uq_uploads_uploaded_file_storage_key"),
    )
    op.create_index(
        "ix_uploads_uploaded_file_file_id", "uploads_uploaded_file", ["file_id"], unique=True
    )
    op.create_index("ix_uploads_uploaded_file_sha256", "uploads_uploaded_file", ["sha256"])

    op.create_table(
        "invoices_invoice",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("file_id", sa.String(length=64), nullable=False),
        sa.Column("file_name", sa.String(length=512), nullable=False),
        sa.Column("file_url", sa.Text(), nullable=True),
        sa.Column("vendor_name", sa.String(length=255), nullable=False),
        sa.Column("vendor_address", sa.Text(), nullable=True),
        sa.Column("vendor_tax_id", sa.String(length=100), nullable=True),
        sa.Column("invoice_number", sa.String(length=100), nullable=False),
        sa.Column("invoice_date", sa.String(length=32), nullable=False),
        sa.Column("currency", sa.String(length=8), nullable=False),
        sa.Column("subtotal", sa.Float(), nullable=True),
        sa.Column("tax_percent", sa.Float(), nullable=True),
        sa.Column("total", sa.Float(), nullable=True),
        sa.Column("po_number", sa.String(length=100), nullable=True),
        sa.Column("po_date", sa.String(length=32), nullable=True),
        sa.Column("line_items", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_invoices_invoice_file_id", "invoices_invoice", ["file_id"], unique=True)
    op.create_index("ix_invoices_invoice_vendor_name", "invoices_invoice", ["vendor_name"])
    op.create_index("ix_invoices_invoice_invoice_number", "invoices_invoice", ["invoice_number"])
    op.create_index("ix_invoices_invoice_created_at", "invoices_invoice", ["created_at"])

    op.create_table(
        "extraction_ai_cache",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("text_hash", sa.String(length=64), nullable=False),
        sa.Column("provider", sa.String(length=50), nullable=False),
        sa.Column("is_fallback", sa.Boolean(), nullable=False),
        sa.Column("response_json", sa.JSON(), nullable=False),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index(
        "ix_extraction_ai_cache_text_hash", "extraction_ai_cache", ["text_hash"], unique=True
    )
    op.create_index("ix_extraction_ai_cache_expires_at", "extraction_ai_cache", ["expires_at"])

    op.create_table(
        "quota_usage",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("day", sa.Date(), nullable=False),
        sa.Column("calls", sa.Integer(), nullable=False),
    )
    op.create_index("ix_quota_usage_day", "quota_usage", ["day"], unique=True)


def downgrade() -> None:
    op.drop_index("ix_quota_usage_day", table_name="quota_usage")
    op.drop_table("quota_usage")
    op.drop_index("ix_extraction_ai_cache_expires_at", table_name="extraction_ai_cache")
    op.drop_index("ix_extraction_ai_cache_text_hash", table_name="extraction_ai_cache")
    op.drop_table("extraction_ai_cache")
    op.drop_index("ix_invoices_invoice_created_at", table_name="invoices_invoice")
    op.drop_index("ix_invoices_invoice_invoice_number", table_name="invoices_invoice")
    op.drop_index("ix_invoices_invoice_vendor_name", table_name="invoices_invoice")
    op.drop_index("ix_invoices_invoice_file_id", table_name="invoices_invoice")
    op.drop_table("invoices_invoice")
    op.drop_index("ix_uploads_uploaded_file_sha256", table_name="uploads_uploaded_file")
    op.drop_index("ix_uploads_uploaded_file_file_id", table_name="uploads_uploaded_file")
    op.drop_table("uploads_uploaded_file")
