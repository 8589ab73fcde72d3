"""Invoice and ledger classification."""

from .categories import (
    CategoryNormalizer,
    RuleTable,
    TransactionCategorizer,
    declared_category,
    infer_category,
    load_rules,
)
from .invoice_classifier import InvoiceClassifier, token_overlap

__all__ = [
    "CategoryNormalizer",
    "InvoiceClassifier",
    "RuleTable",
    "TransactionCategorizer",
    "declared_category",
    "infer_category",
    "load_rules",
    "token_overlap",
]
