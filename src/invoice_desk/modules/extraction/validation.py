from __future__ import annotations

import json
from typing import Any

from pydantic import ValidationError

from invoice_desk.modules.extraction.errors import ExtractionValidationError
from invoice_desk.modules.extraction.schemas import ExtractedInvoice


def field_path(loc: tuple[Any, ...]) -> str:
    parts: list[str] = []
    for item in loc:
        if isinstance(item, int):
            parts.append(f"[{item}]")
        elif parts:
            parts.append(f".{item}")
        else:
            parts.append(str(item))
    return "".join(parts) or "$"


def violations_from_error(error: ValidationError) -> list[dict[str, Any]]:
    return [
        {"field": field_path(tuple(err.get("loc") or ())), "message": err.get("msg", "")}
        for err in error.errors()
    ]


def _reject_constant(name: str) -> Any:
    raise ValueError(f"non-finite number {name} is not allowed")


def validate_extraction(text: str, *, default_currency: str) -> ExtractedInvoice:
    """Parse sanitized model output and check it against the invoice schema.

    Raises ExtractionValidationError listing every violation found.
    """
    try:
        data = json.loads(text, parse_constant=_reject_constant)
    except ValueError as e:
        raise ExtractionValidationError(
            f"Model response is not valid JSON: {e}",
            violations=[{"field": "$", "message": f"Invalid JSON: {e}"}],
        ) from e

    try:
        return ExtractedInvoice.model_validate(
            data, context={"default_currency": default_currency}
        )
    except ValidationError as e:
        violations = violations_from_error(e)
        summary = "; ".join(f"{v['field']}: {v['message']}" for v in violations)
        raise ExtractionValidationError(
            f"Model response does not match the invoice schema: {summary}",
            violations=violations,
        ) from e
