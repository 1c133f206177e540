from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator
from pydantic.alias_generators import to_camel

from invoice_desk.core.config import settings
from invoice_desk.core.currencies import normalize_currency


class WireModel(BaseModel):
    """camelCase on the wire, snake_case in Python, no silent str -> number coercion.

    Non-finite floats are rejected so every record stays JSON serialisable.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        strict=True,
        allow_inf_nan=False,
    )


class LineItem(WireModel):
    description: str
    unit_price: float
    quantity: float
    total: float


class Vendor(WireModel):
    name: str
    address: str | None = None
    tax_id: str | None = None


class InvoiceDetail(WireModel):
    number: str
    date: str
    currency: str | None = Field(default=None, validate_default=True)
    subtotal: float | None = None
    tax_percent: float | None = None
    total: float | None = None
    po_number: str | None = None
    po_date: str | None = None
    line_items: list[LineItem]

    @field_validator("currency")
    @classmethod
    def _default_currency(cls, value: str | None, info: ValidationInfo) -> str:
        default = (info.context or {}).get("default_currency") or settings.default_currency
        if value is None or not value.strip():
            return default
        return normalize_currency(value) or value


class ExtractedInvoice(WireModel):
    vendor: Vendor
    invoice: InvoiceDetail


class ExtractRequest(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    file_id: str
    model: Literal["gemini"]
    file_url: str | None = None
