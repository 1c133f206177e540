from __future__ import annotations

import json
import re
from datetime import date
from typing import Any

DEFAULT_TAX_PERCENT = 18

_FENCE_RE = re.compile(r"```json\s*|```\s*")


def default_document(
    *, default_currency: str, today: date | None = None, tax_percent: float = DEFAULT_TAX_PERCENT
) -> dict[str, Any]:
    """Document substituted when the model returns nothing usable."""
    iso_today = (today or date.today()).isoformat()
    return {
        "vendor": {"name": "Unknown Vendor", "address": "", "taxId": ""},
        "invoice": {
            "number": "Unknown",
            "date": iso_today,
            "currency": default_currency,
            "subtotal": 0,
            "taxPercent": tax_percent,
            "total": 0,
            "poNumber": "",
            "poDate": iso_today,
            "lineItems": [],
        },
    }


def strip_code_fences(raw: str) -> str:
    return _FENCE_RE.sub("", raw or "").strip()


def sanitize_model_response(
    raw: str,
    *,
    default_currency: str,
    today: date | None = None,
    tax_percent: float = DEFAULT_TAX_PERCENT,
) -> str:
    """Clean a raw model reply into (probably) valid JSON text.

    Fences are removed and the text trimmed; an empty reply or a bare ``{}``
    becomes the default document; an explicit null currency gets the default
    code. Text that does not parse is returned as-is for the validator to
    reject.
    """
    cleaned = strip_code_fences(raw)
    if not cleaned or cleaned == "{}":
        return json.dumps(
            default_document(
                default_currency=default_currency, today=today, tax_percent=tax_percent
            )
        )

    try:
        parsed = json.loads(cleaned)
    except ValueError:
        return cleaned

    invoice = parsed.get("invoice") if isinstance(parsed, dict) else None
    if isinstance(invoice, dict) and "currency" in invoice and invoice["currency"] is None:
        invoice["currency"] = default_currency
    return json.dumps(parsed, ensure_ascii=False)
