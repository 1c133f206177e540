from __future__ import annotations

import math
import uuid
from collections.abc import Iterable
from typing import Any

from fastapi import HTTPException, status
from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from invoice_desk.core.config import settings
from invoice_desk.core.currencies import currency_symbol, normalize_currency
from invoice_desk.core.logging import get_logger, log_event
from invoice_desk.core.models import utcnow
from invoice_desk.modules.extraction.schemas import InvoiceDetail, LineItem, Vendor
from invoice_desk.modules.invoices.models import Invoice
from invoice_desk.modules.invoices.schemas import (
    InvoiceCreate,
    InvoiceOut,
    InvoiceUpdate,
    Pagination,
    TotalsLineItem,
    TotalsLineOut,
    TotalsOut,
)
from invoice_desk.modules.uploads.service import delete_upload

logger = get_logger(__name__)

DUPLICATE_FILE_DETAIL = "Invoice with this file already exists"


def _apply_vendor(row: Invoice, vendor: Vendor) -> None:
    row.vendor_name = vendor.name
    row.vendor_address = vendor.address
    row.vendor_tax_id = vendor.tax_id


def _apply_detail(row: Invoice, detail: InvoiceDetail) -> None:
    row.invoice_number = detail.number
    row.invoice_date = detail.date
    row.currency = detail.currency or settings.default_currency
    row.subtotal = detail.subtotal
    row.tax_percent = detail.tax_percent
    row.total = detail.total
    row.po_number = detail.po_number
    row.po_date = detail.po_date
    row.line_items = [item.model_dump(by_alias=True) for item in detail.line_items]


def invoice_to_out(row: Invoice) -> InvoiceOut:
    return InvoiceOut(
        id=row.id,
        file_id=row.file_id,
        file_name=row.file_name,
        file_url=row.file_url,
        vendor=Vendor(name=row.vendor_name, address=row.vendor_address, tax_id=row.vendor_tax_id),
        invoice=InvoiceDetail(
            number=row.invoice_number,
            date=row.invoice_date,
            currency=row.currency,
            subtotal=row.subtotal,
            tax_percent=row.tax_percent,
            total=row.total,
            po_number=row.po_number,
            po_date=row.po_date,
            line_items=[LineItem.model_validate(item) for item in row.line_items or []],
        ),
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _file_id_taken(session: Session, file_id: str, *, exclude_id: uuid.UUID | None = None) -> bool:
    stmt = select(Invoice.id).where(Invoice.file_id == file_id)
    if exclude_id is not None:
        stmt = stmt.where(Invoice.id != exclude_id)
    return session.scalar(stmt) is not None


def _commit_or_conflict(session: Session) -> None:
    try:
        session.commit()
    except IntegrityError as e:
        session.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=DUPLICATE_FILE_DETAIL) from e


def create_invoice(session: Session, *, payload: InvoiceCreate) -> Invoice:
    if _file_id_taken(session, payload.file_id):
        log_event(logger, "invoice.duplicate", file_id=payload.file_id)
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=DUPLICATE_FILE_DETAIL)

    row = Invoice(file_id=payload.file_id, file_name=payload.file_name, file_url=payload.file_url)
    _apply_vendor(row, payload.vendor)
    _apply_detail(row, payload.invoice)
    session.add(row)
    _commit_or_conflict(session)
    session.refresh(row)
    log_event(logger, "invoice.created", invoice_id=str(row.id), file_id=row.file_id)
    return row


def get_invoice(session: Session, *, invoice_id: uuid.UUID) -> Invoice:
    row = session.scalar(select(Invoice).where(Invoice.id == invoice_id))
    if not row:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Invoice not found")
    return row


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def list_invoices(
    session: Session, *, q: str | None = None, page: int = 1, limit: int = 10
) -> tuple[list[Invoice], Pagination]:
    """Newest first, filtered by a case-insensitive substring of vendor name or number."""
    stmt = select(Invoice)
    count_stmt = select(func.count()).select_from(Invoice)
    if q:
        pattern = f"%{_escape_like(q)}%"
        cond = or_(
            Invoice.vendor_name.ilike(pattern, escape="\\"),
            Invoice.invoice_number.ilike(pattern, escape="\\"),
        )
        stmt = stmt.where(cond)
        count_stmt = count_stmt.where(cond)

    total = int(session.scalar(count_stmt) or 0)
    rows = list(
        session.scalars(
            stmt.order_by(Invoice.created_at.desc(), Invoice.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
    )
    pagination = Pagination(page=page, limit=limit, total=total, pages=math.ceil(total / limit))
    return rows, pagination


def update_invoice(session: Session, *, row: Invoice, payload: InvoiceUpdate) -> Invoice:
    changes = payload.model_fields_set
    if "file_id" in changes and payload.file_id is not None:
        if _file_id_taken(session, payload.file_id, exclude_id=row.id):
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=DUPLICATE_FILE_DETAIL)
        row.file_id = payload.file_id
    if "file_name" in changes and payload.file_name is not None:
        row.file_name = payload.file_name
    if "file_url" in changes:
        row.file_url = payload.file_url
    if "vendor" in changes and payload.vendor is not None:
        _apply_vendor(row, payload.vendor)
    if "invoice" in changes and payload.invoice is not None:
        _apply_detail(row, payload.invoice)

    row.updated_at = utcnow()
    session.add(row)
    _commit_or_conflict(session)
    session.refresh(row)
    log_event(logger, "invoice.updated", invoice_id=str(row.id), fields=sorted(changes))
    return row


def delete_invoice(session: Session, *, row: Invoice) -> None:
    """Delete the invoice and the uploaded document it was extracted from."""
    invoice_id = str(row.id)
    file_id = row.file_id
    session.delete(row)
    session.commit()
    log_event(logger, "invoice.deleted", invoice_id=invoice_id, file_id=file_id)
    delete_upload(session, file_id=file_id)


def compute_totals(
    line_items: Iterable[TotalsLineItem | dict[str, Any]],
    *,
    tax_percent: float | None = None,
    currency: str | None = None,
) -> TotalsOut:
    """Line totals, subtotal, tax and grand total the way the edit form shows them."""
    lines: list[TotalsLineOut] = []
    for item in line_items:
        if isinstance(item, dict):
            item = TotalsLineItem.model_validate(item)
        lines.append(
            TotalsLineOut(
                description=item.description,
                unit_price=item.unit_price,
                quantity=item.quantity,
                total=round(item.unit_price * item.quantity, 2),
            )
        )
    rate = tax_percent or 0.0
    subtotal = sum(line.total for line in lines)
    tax_amount = subtotal * (rate / 100)
    code = normalize_currency(currency) or settings.default_currency
    return TotalsOut(
        currency=code,
        currency_symbol=currency_symbol(code),
        subtotal=round(subtotal, 2),
        tax_percent=rate,
        tax_amount=round(tax_amount, 2),
        total=round(subtotal + tax_amount, 2),
        line_items=lines,
    )
