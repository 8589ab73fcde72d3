"""Date parsing for heterogeneous statement and invoice dates."""

import re
from datetime import date, datetime
from typing import Iterable, TypeVar

T = TypeVar("T")

MONTHS = {
    "jan": 1, "feb": 2, "mar": 3, "apr": 4, "may": 5, "jun": 6,
    "jul": 7, "aug": 8, "sep": 9, "oct": 10, "nov": 11, "dec": 12,
    "january": 1, "february": 2, "march": 3, "april": 4, "june": 6,
    "july": 7, "august": 8, "september": 9, "october": 10, "november": 11, "december": 12,
}

_SEPARATORS = re.compile(r"[/\-.\s]+")

# Used when the text has fewer than three parts
_FALLBACK_FORMATS = (
    "%Y%m%d",
    "%d%m%Y",
    "%b %Y",
    "%B %Y",
    "%Y %b",
    "%Y %B",
)


def _to_int(token: str) -> int | None:
    try:
        return int(token)
    except ValueError:
        return None


def _build(year: int, month: int, day: int) -> date | None:
    try:
        return date(year, month, day)
    except (ValueError, OverflowError):
        return None


def _parse_with_month_name(parts: list[str], month_idx: int) -> date | None:
    month = MONTHS[parts[month_idx].lower()]
    numbers = [n for n in (_to_int(p) for i, p in enumerate(parts) if i != month_idx) if n is not None]
    if len(numbers) < 2:
        return None

    year = next((n for n in numbers if n > 1000), None)
    day = next((n for n in numbers if 1 <= n <= 31 and n != year), None)

    if year is None:
        # "12-Oct-23": the token left over after the day is a 2-digit year
        rest = list(numbers)
        if day is not None:
            rest.remove(day)
        year = next((n for n in rest if 0 <= n < 100), 1970)

    if year < 100:
        year += 2000
    return _build(year, month, day or 1)


def _parse_numeric(parts: list[str]) -> date | None:
    numbers = [_to_int(p) for p in parts[:3]]
    if any(n is None for n in numbers):
        return None

    if len(parts[0]) == 4:
        year, month, day = numbers
    else:
        day, month, year = numbers

    if year < 100:
        year += 2000
    return _build(year, month, day)


def _parse_fallback(text: str) -> date | None:
    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
    except ValueError:
        pass

    for fmt in _FALLBACK_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    return None


def parse_transaction_date(raw: str | None) -> date | None:
    """
    Parse a statement date into a calendar date.

    Handles:
    - month names: "12 Oct 2023", "Oct 12, 2023", "12-Oct-23"
    - ISO order: "2023-10-12"
    - day-first numeric: "12/10/2023", "12.10.23"

    Returns None when the text cannot be read; never raises.
    """
    if raw is None:
        return None
    if isinstance(raw, datetime):
        return raw.date()
    if isinstance(raw, date):
        return raw

    cleaned = str(raw).replace(",", "").strip()
    if not cleaned:
        return None

    parts = [p for p in _SEPARATORS.split(cleaned) if p]
    if len(parts) >= 3:
        month_idx = next((i for i, p in enumerate(parts) if p.lower() in MONTHS), None)
        if month_idx is not None:
            return _parse_with_month_name(parts, month_idx)
        return _parse_numeric(parts)

    return _parse_fallback(cleaned)


def date_key(raw: str | None) -> str:
    """Canonical ISO form of a date when parseable, else the trimmed raw text."""
    parsed = parse_transaction_date(raw)
    if parsed is not None:
        return parsed.isoformat()
    return "" if raw is None else str(raw).strip()


def filter_by_date_range(
    transactions: Iterable[T],
    start: str | date | None = None,
    end: str | date | None = None,
) -> list[T]:
    """
    Keep transactions dated within [start, end].

    Rows whose date cannot be parsed are kept for manual review.
    """
    start_date = parse_transaction_date(start) if start else None
    end_date = parse_transaction_date(end) if end else None

    kept = []
    for txn in transactions:
        txn_date = parse_transaction_date(getattr(txn, "date", None))
        if txn_date is None:
            kept.append(txn)
            continue
        if start_date and txn_date < start_date:
            continue
        if end_date and txn_date > end_date:
            continue
        kept.append(txn)
    return kept
