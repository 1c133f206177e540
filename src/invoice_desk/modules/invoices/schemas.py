from __future__ import annotations

import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from invoice_desk.modules.extraction.schemas import InvoiceDetail, Vendor, WireModel


class InvoiceCreate(WireModel):
    file_id: str
    file_name: str
    file_url: str | None = None
    vendor: Vendor
    invoice: InvoiceDetail


class InvoiceUpdate(WireModel):
    file_id: str | None = None
    file_name: str | None = None
    file_url: str | None = None
    vendor: Vendor | None = None
    invoice: InvoiceDetail | None = None


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class InvoiceOut(CamelModel):
    id: uuid.UUID
    file_id: str
    file_name: str
    file_url: str | None = None
    vendor: Vendor
    invoice: InvoiceDetail
    created_at: datetime
    updated_at: datetime | None = None


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    pages: int


class InvoiceListOut(BaseModel):
    invoices: list[InvoiceOut]
    pagination: Pagination


class TotalsLineItem(WireModel):
    description: str = ""
    unit_price: float
    quantity: float


class TotalsRequest(WireModel):
    currency: str | None = None
    tax_percent: float = 0.0
    line_items: list[TotalsLineItem] = Field(default_factory=list)


class TotalsLineOut(CamelModel):
    description: str
    unit_price: float
    quantity: float
    total: float


class TotalsOut(CamelModel):
    currency: str
    currency_symbol: str
    subtotal: float
    tax_percent: float
    tax_amount: float
    total: float
    line_items: list[TotalsLineOut]
