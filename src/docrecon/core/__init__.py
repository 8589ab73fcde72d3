"""Core module - models and pipeline."""

from .models import (
    AccountCategory,
    BankStatementSummary,
    Invoice,
    InvoiceBatchResult,
    InvoiceType,
    LineItem,
    StatementResult,
    Transaction,
    TrialBalanceEntry,
    TrialBalanceResult,
)

__all__ = [
    "AccountCategory",
    "BankStatementSummary",
    "Invoice",
    "InvoiceBatchResult",
    "InvoiceType",
    "LineItem",
    "StatementResult",
    "Transaction",
    "TrialBalanceEntry",
    "TrialBalanceResult",
]
