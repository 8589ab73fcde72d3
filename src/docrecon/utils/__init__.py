"""Utility modules."""

from .dates import date_key, filter_by_date_range, parse_transaction_date
from .json_repair import clean_text, repair, safe_parse
from .retry import RetryPolicy, is_rate_limit_error

__all__ = [
    "RetryPolicy",
    "clean_text",
    "date_key",
    "filter_by_date_range",
    "is_rate_limit_error",
    "parse_transaction_date",
    "repair",
    "safe_parse",
]
