"""Currency normalization and conversion."""

from .normalizer import SYMBOL_MAP, is_known_currency, normalize_currency
from .rates import CurrencyConverter, ExchangeRateClient, RateCache

__all__ = [
    "SYMBOL_MAP",
    "CurrencyConverter",
    "ExchangeRateClient",
    "RateCache",
    "is_known_currency",
    "normalize_currency",
]
