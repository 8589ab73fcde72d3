"""Single-pass deduplication and merging of extracted statement rows."""

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any, Iterable

from ..core.models import Transaction
from ..utils.dates import date_key

logger = logging.getLogger(__name__)

DEFAULT_CONTINUATION_TOKENS = frozenset({"-", "N/A", "..", "."})

# Amounts closer than this are the same figure read twice
AMOUNT_TOLERANCE = Decimal("0.01")


class DedupAction(str, Enum):
    """Decision taken for one input row."""

    APPENDED = "appended"
    EXACT_DUPLICATE = "exact_duplicate"
    CONTINUATION = "continuation"
    BALANCE_HEADER = "balance_header"
    OCR_REPEAT = "ocr_repeat"


def fingerprint(row: Transaction) -> str:
    """Identity of a row for exact-duplicate detection."""
    return "|".join(
        [
            date_key(row.date),
            row.description.lower(),
            f"{row.debit:.2f}",
            f"{row.credit:.2f}",
            f"{row.balance:.2f}",
            row.currency.upper(),
        ]
    )


def _close(a: Decimal, b: Decimal) -> bool:
    return abs(a - b) < AMOUNT_TOLERANCE


@dataclass
class _LedgerFold:
    """
    Accumulator for the deduplication fold.

    Each rule looks at the incoming row and the last accepted row only. Rules
    are tried in priority order and the first one that fires decides the row.
    """

    continuation_tokens: frozenset[str]
    rows: list[Transaction] = field(default_factory=list)
    seen: set[str] = field(default_factory=set)
    actions: list[DedupAction] = field(default_factory=list)

    @property
    def prev(self) -> Transaction | None:
        return self.rows[-1] if self.rows else None

    def step(self, row: Transaction) -> DedupAction:
        key = fingerprint(row)
        action = self._decide(row, key)
        self.actions.append(action)
        logger.debug("%s: %s %r", action.value, row.date, row.description)
        return action

    def _decide(self, row: Transaction, key: str) -> DedupAction:
        if key in self.seen:
            return DedupAction.EXACT_DUPLICATE

        if self.prev is not None:
            if self.is_continuation(row):
                self.merge_continuation(row)
                return DedupAction.CONTINUATION
            if self.is_balance_header(row):
                return DedupAction.BALANCE_HEADER
            if self.is_ocr_repeat(row):
                return DedupAction.OCR_REPEAT

        self.rows.append(row)
        self.seen.add(key)
        return DedupAction.APPENDED

    def is_continuation(self, row: Transaction) -> bool:
        return not row.date or row.date in self.continuation_tokens

    def merge_continuation(self, row: Transaction) -> None:
        prev = self.prev
        description = " ".join(part for part in (prev.description, row.description) if part).strip()
        self.rows[-1] = prev.model_copy(
            update={
                "description": description,
                "debit": prev.debit or row.debit,
                "credit": prev.credit or row.credit,
                "balance": row.balance or prev.balance,
            }
        )

    def is_balance_header(self, row: Transaction) -> bool:
        return (
            not row.debit
            and not row.credit
            and bool(row.balance)
            and _close(row.balance, self.prev.balance)
        )

    def is_ocr_repeat(self, row: Transaction) -> bool:
        prev = self.prev
        if date_key(row.date) != date_key(prev.date):
            return False
        if not (_close(row.debit, prev.debit) and _close(row.credit, prev.credit)):
            return False
        return not row.balance or not prev.balance or _close(row.balance, prev.balance)


class TransactionDeduplicator:
    """
    Collapse a raw transaction stream into a clean, ordered ledger.

    Rules, in priority order:
    1. exact duplicate of any accepted row: dropped
    2. empty or placeholder date: wrapped description, merged into the previous row
    3. balance-only row repeating the previous balance: dropped
    4. same date and amounts as the previous row: dropped
    """

    def __init__(self, continuation_tokens: Iterable[str] = DEFAULT_CONTINUATION_TOKENS):
        self.continuation_tokens = frozenset(token.strip() for token in continuation_tokens)

    @classmethod
    def from_settings(cls, settings) -> "TransactionDeduplicator":
        return cls(continuation_tokens=settings.continuation_date_tokens)

    def fold(self, transactions: Iterable[Transaction | dict[str, Any]]) -> _LedgerFold:
        """Run the fold and return the accumulator, including per-row actions."""
        state = _LedgerFold(continuation_tokens=self.continuation_tokens)
        for raw in transactions:
            state.step(self._normalize(raw))
        return state

    def deduplicate(self, transactions: Iterable[Transaction | dict[str, Any]]) -> list[Transaction]:
        """Return the deduplicated ledger in input order."""
        state = self.fold(transactions)
        dropped = len(state.actions) - len(state.rows)
        if dropped:
            logger.info(f"Deduplicated {len(state.actions)} rows into {len(state.rows)}")
        return state.rows

    @staticmethod
    def _normalize(raw: Transaction | dict[str, Any]) -> Transaction:
        row = raw if isinstance(raw, Transaction) else Transaction.model_validate(raw)
        return row.model_copy(
            update={"date": row.date.strip(), "description": row.description.strip()}
        )
