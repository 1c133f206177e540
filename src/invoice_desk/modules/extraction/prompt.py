from __future__ import annotations

from invoice_desk.core.currencies import PROMPT_SYMBOLS

_SCHEMA_DESCRIPTION = """{
  "vendor": {
    "name": "string (required)",
    "address": "string (optional)",
    "taxId": "string (optional)"
  },
  "invoice": {
    "number": "string (required)",
    "date": "string (required, format: YYYY-MM-DD)",
    "currency": "string (optional, 3-letter currency code)",
    "subtotal": "number (optional)",
    "taxPercent": "number (optional - IGST rate, GST rate, tax percentage or similar)",
    "total": "number (optional)",
    "poNumber": "string (optional - PO No, Purchase Order No, P.O. No)",
    "poDate": "string (optional, format: YYYY-MM-DD - PO Date, Purchase Order Date, P.O. Date)",
    "lineItems": [
      {
        "description": "string (required)",
        "unitPrice": "number (required)",
        "quantity": "number (required)",
        "total": "number (required)"
      }
    ]
  }
}"""

_TAX_RULES = """TAX EXTRACTION:
- Look for "IGST rate", "GST rate", "Tax %", "Tax Rate", "VAT rate" or similar terms
- Extract the percentage value (e.g. for "IGST @ 18%" extract 18)
- If multiple tax rates are mentioned, use the main/primary rate
- Percentages are plain numbers: 18% = 18, not 0.18"""

_PO_RULES = """PURCHASE ORDER (PO) EXTRACTION:
- Look for "PO Date", "Purchase Order Date", "P.O. Date", "Order Date", "PO No", "Purchase Order No", "P.O. No"
- Extract the PO number and date from these fields, dates as YYYY-MM-DD
- Look for patterns like "PO: 12345" or "Purchase Order: ABC-2024-001\""""

_FORMAT_RULES = """CRITICAL INSTRUCTIONS:
- Return ONLY the JSON object, no markdown formatting, no code blocks
- Do NOT wrap the response in ```json or ```
- If a field is not found, omit it (don't use null)
- For dates, use YYYY-MM-DD format
- For numbers, use actual numbers, not strings
- Extract all line items from the invoice
- Be accurate and conservative - if unsure, omit the field
- The response must be valid JSON that can be parsed directly"""


def _currency_rules(default_currency: str) -> str:
    symbols = ", ".join(f'"{symbol}"' for symbol, _ in PROMPT_SYMBOLS)
    codes = ", ".join(f'"{code}"' for _, code in PROMPT_SYMBOLS)
    mapping = "\n".join(
        f'- If you see "{symbol}" or "{code}", use "{code}"' for symbol, code in PROMPT_SYMBOLS
    )
    return (
        "CURRENCY EXTRACTION:\n"
        f"- Look for currency symbols like {symbols} or codes like {codes}\n"
        '- Look for text like "Currency:", "Amount in:", "Total in:"\n'
        "- Return the 3-letter currency code, never the symbol\n"
        f"{mapping}\n"
        f'- If no currency is found, use "{default_currency}"\n'
        "- NEVER return null for currency - always provide a valid currency code"
    )


def build_extraction_prompt(pdf_text: str, *, default_currency: str = "INR") -> str:
    return (
        "You are an AI assistant specialized in extracting structured data from invoice PDFs.\n"
        "Extract the following information from the provided PDF text and return it as a "
        "valid JSON object.\n\n"
        "PDF Text:\n"
        f"{pdf_text}\n\n"
        "Please extract and return ONLY a JSON object with this exact structure:\n"
        f"{_SCHEMA_DESCRIPTION}\n\n"
        "IMPORTANT EXTRACTION NOTES:\n\n"
        f"{_TAX_RULES}\n\n"
        f"{_PO_RULES}\n\n"
        f"{_currency_rules(default_currency)}\n\n"
        f"{_FORMAT_RULES}\n"
    )
