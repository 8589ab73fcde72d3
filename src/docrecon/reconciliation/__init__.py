"""Ledger reconciliation - deduplication and direction validation."""

from .deduplicator import DedupAction, TransactionDeduplicator
from .direction import DirectionReport, DirectionValidator, Hypothesis

__all__ = [
    "DedupAction",
    "DirectionReport",
    "DirectionValidator",
    "Hypothesis",
    "TransactionDeduplicator",
]
