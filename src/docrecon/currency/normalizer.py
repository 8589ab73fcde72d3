"""Resolution of free-form currency tokens to ISO 4217 codes."""

import re

import pycountry

# Exact matches first, then substring scan in this order
SYMBOL_MAP: dict[str, str] = {
    "$": "USD",
    "DOLLAR": "USD",
    "US": "USD",
    "€": "EUR",
    "EURO": "EUR",
    "£": "GBP",
    "POUND": "GBP",
    "STERLING": "GBP",
    "¥": "JPY",
    "YEN": "JPY",
    "₹": "INR",
    "RUPEE": "INR",
    "SAR": "SAR",
    "RIYAL": "SAR",
    "AED": "AED",
    "DIRHAM": "AED",
    "DHS": "AED",
}

UNKNOWN_CURRENCY_TOKENS = frozenset({"", "N/A", "UNKNOWN"})

_NON_LETTERS = re.compile(r"[^A-Z]")


def _token_text(token) -> str:
    return "" if token is None else str(token).strip().upper()


def is_known_currency(code) -> bool:
    """False for empty, ``N/A`` and ``UNKNOWN`` placeholders."""
    return _token_text(code) not in UNKNOWN_CURRENCY_TOKENS


def _lookup_by_name(token: str) -> str | None:
    try:
        return pycountry.currencies.lookup(token).alpha_3
    except LookupError:
        return None


def normalize_currency(token) -> str | None:
    """
    Resolve a currency token to a 3-letter code.

    Accepts ISO codes, symbols ("$", "€"), words ("Dirham", "EURO") and full
    currency names ("US Dollar"). Returns None when nothing resolves.
    """
    if not is_known_currency(token):
        return None

    key = _token_text(token)
    letters = _NON_LETTERS.sub("", key)

    if key in SYMBOL_MAP:
        return SYMBOL_MAP[key]
    if letters in SYMBOL_MAP:
        return SYMBOL_MAP[letters]
    if len(letters) == 3:
        return letters

    for symbol, code in SYMBOL_MAP.items():
        if symbol in key:
            return code

    return _lookup_by_name(str(token).strip())
