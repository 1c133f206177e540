from __future__ import annotations

CURRENCY_SYMBOLS: dict[str, str] = {
    "INR": "₹",
    "USD": "$",
    "EUR": "€",
    "GBP": "£",
    "JPY": "¥",
    "CAD": "C$",
    "AUD": "A$",
    "CHF": "CHF",
    "CNY": "¥",
    "SEK": "kr",
    "NOK": "kr",
    "DKK": "kr",
    "PLN": "zł",
    "CZK": "Kč",
    "HUF": "Ft",
    "RUB": "₽",
    "BRL": "R$",
    "MXN": "$",
    "ZAR": "R",
    "KRW": "₩",
    "SGD": "S$",
    "HKD": "HK$",
    "NZD": "NZ$",
    "THB": "฿",
    "MYR": "RM",
    "IDR": "Rp",
    "PHP": "₱",
    "VND": "₫",
}

# Ambiguous symbols ($, ¥, kr) resolve to the most common issuer.
_SYMBOL_TO_CODE: dict[str, str] = {
    "₹": "INR",
    "RS": "INR",
    "RS.": "INR",
    "$": "USD",
    "US$": "USD",
    "€": "EUR",
    "£": "GBP",
    "¥": "JPY",
    "₽": "RUB",
    "₩": "KRW",
    "฿": "THB",
    "₱": "PHP",
    "₫": "VND",
    "ZŁ": "PLN",
    "KČ": "CZK",
    "FT": "HUF",
    "R$": "BRL",
    "C$": "CAD",
    "A$": "AUD",
    "S$": "SGD",
    "HK$": "HKD",
    "NZ$": "NZD",
    "RM": "MYR",
    "RP": "IDR",
}

# Symbols listed in the extraction prompt, in the order the model should check them.
PROMPT_SYMBOLS: tuple[tuple[str, str], ...] = (
    ("₹", "INR"),
    ("$", "USD"),
    ("€", "EUR"),
    ("£", "GBP"),
    ("¥", "JPY"),
)


def normalize_currency(value: str | None) -> str | None:
    """Return an upper-case 3-letter code for a code or symbol, or None."""
    if value is None:
        return None
    raw = value.strip().upper()
    if not raw:
        return None
    if raw in _SYMBOL_TO_CODE:
        return _SYMBOL_TO_CODE[raw]
    if len(raw) == 3 and raw.isalpha() and raw.isascii():
        return raw
    return None


def currency_symbol(code: str | None) -> str:
    if not code:
        return "$"
    return CURRENCY_SYMBOLS.get(code.upper(), code)
