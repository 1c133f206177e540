from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from invoice_desk.core.db import db_session
from invoice_desk.modules.invoices.schemas import (
    InvoiceCreate,
    InvoiceListOut,
    InvoiceOut,
    InvoiceUpdate,
    TotalsOut,
    TotalsRequest,
)
from invoice_desk.modules.invoices.service import (
    compute_totals,
    create_invoice,
    delete_invoice,
    get_invoice,
    invoice_to_out,
    list_invoices,
    update_invoice,
)

router = APIRouter(tags=["invoices"])


@router.get("/invoices", response_model=InvoiceListOut)
def list_invoices_endpoint(
    q: str | None = None,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    session: Session = Depends(db_session),
) -> InvoiceListOut:
    rows, pagination = list_invoices(session, q=q, page=page, limit=limit)
    return InvoiceListOut(invoices=[invoice_to_out(r) for r in rows], pagination=pagination)


@router.post("/invoices", response_model=InvoiceOut, status_code=status.HTTP_201_CREATED)
def create_invoice_endpoint(
    payload: InvoiceCreate,
    session: Session = Depends(db_session),
) -> InvoiceOut:
    return invoice_to_out(create_invoice(session, payload=payload))


@router.post("/invoices/totals", response_model=TotalsOut)
def totals_endpoint(payload: TotalsRequest) -> TotalsOut:
    return compute_totals(
        payload.line_items, tax_percent=payload.tax_percent, currency=payload.currency
    )


@router.get("/invoices/{invoice_id}", response_model=InvoiceOut)
def get_invoice_endpoint(
    invoice_id: uuid.UUID,
    session: Session = Depends(db_session),
) -> InvoiceOut:
    return invoice_to_out(get_invoice(session, invoice_id=invoice_id))


@router.put("/invoices/{invoice_id}", response_model=InvoiceOut)
def update_invoice_endpoint(
    invoice_id: uuid.UUID,
    payload: InvoiceUpdate,
    session: Session = Depends(db_session),
) -> InvoiceOut:
    row = get_invoice(session, invoice_id=invoice_id)
    return invoice_to_out(update_invoice(session, row=row, payload=payload))


@router.delete("/invoices/{invoice_id}")
def delete_invoice_endpoint(
    invoice_id: uuid.UUID,
    session: Session = Depends(db_session),
) -> dict[str, str]:
    row = get_invoice(session, invoice_id=invoice_id)
    delete_invoice(session, row=row)
    return {"message": "Invoice deleted successfully"}
