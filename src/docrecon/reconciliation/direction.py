"""Detection of swapped debit/credit columns from balance arithmetic."""

import logging
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Sequence

from ..core.models import Transaction, to_decimal

logger = logging.getLogger(__name__)


class Hypothesis(str, Enum):
    """Row order and column mapping under test."""

    ASC_NORMAL = "AscNormal"
    ASC_SWAPPED = "AscSwapped"
    DESC_NORMAL = "DescNormal"
    DESC_SWAPPED = "DescSwapped"

    @property
    def swapped(self) -> bool:
        return self in (Hypothesis.ASC_SWAPPED, Hypothesis.DESC_SWAPPED)

    @property
    def chronological(self) -> bool:
        return self in (Hypothesis.ASC_NORMAL, Hypothesis.ASC_SWAPPED)


@dataclass(frozen=True)
class DirectionReport:
    """Outcome of the four-way comparison."""

    rows_considered: int
    errors: dict[Hypothesis, Decimal]
    best: Hypothesis | None
    swap: bool

    @property
    def sufficient_signal(self) -> bool:
        return self.best is not None


def _pair_error(prev_balance: Decimal, row: Transaction, swapped: bool) -> Decimal:
    debit, credit = (row.credit, row.debit) if swapped else (row.debit, row.credit)
    observed = row.balance - prev_balance
    return abs(observed - (credit - debit))


class DirectionValidator:
    """
    Decide whether debit and credit were extracted into each other's columns.

    Every balance-bearing row should satisfy
    ``balance[i] = balance[i-1] + credit[i] - debit[i]``. The total error is
    computed for four hypotheses (list order chronological or reversed,
    columns normal or swapped) and the smallest one wins. A swap is only
    applied when the best unswapped hypothesis is not already within
    ``swap_bias_per_row`` per balance-bearing row, and then to every row of
    the ledger.
    """

    def __init__(self, swap_bias_per_row: float = 0.5):
        self.swap_bias_per_row = Decimal(str(swap_bias_per_row))

    @classmethod
    def from_settings(cls, settings) -> "DirectionValidator":
        return cls(swap_bias_per_row=settings.swap_bias_per_row)

    def analyze(self, transactions: Sequence[Transaction], opening_balance=0) -> DirectionReport:
        """Score all four hypotheses without changing anything."""
        rows = [t for t in transactions if t.balance != 0]
        if len(rows) < 2:
            return DirectionReport(rows_considered=len(rows), errors={}, best=None, swap=False)

        opening = to_decimal(opening_balance)
        errors = {hypothesis: Decimal("0") for hypothesis in Hypothesis}

        for hypothesis in Hypothesis:
            ordered = rows if hypothesis.chronological else list(reversed(rows))
            total = Decimal("0")
            if opening:
                total += _pair_error(opening, ordered[0], hypothesis.swapped)
            for prev, row in zip(ordered, ordered[1:]):
                total += _pair_error(prev.balance, row, hypothesis.swapped)
            errors[hypothesis] = total

        best = min(Hypothesis, key=lambda h: errors[h])
        swap = best.swapped
        if swap:
            best_unswapped = min(errors[h] for h in Hypothesis if not h.swapped)
            if best_unswapped < self.swap_bias_per_row * len(rows):
                swap = False

        return DirectionReport(rows_considered=len(rows), errors=errors, best=best, swap=swap)

    def validate(
        self,
        transactions: Sequence[Transaction],
        opening_balance=0,
        report: DirectionReport | None = None,
    ) -> list[Transaction]:
        """
        Return the ledger with columns swapped back if a swap is detected.

        Args:
            transactions: Deduplicated ledger in extraction order
            opening_balance: Statement opening balance, 0 when unknown
            report: Result of an earlier ``analyze`` on the same rows

        Returns:
            The input rows unchanged, or a copy with debit and credit
            exchanged on every row.
        """
        if report is None:
            report = self.analyze(transactions, opening_balance)
        if not report.swap:
            return list(transactions)

        logger.warning(
            "Detected swapped debit/credit columns (%s, error %s). Swapping %d rows.",
            report.best.value,
            report.errors[report.best],
            len(transactions),
        )
        return [t.model_copy(update={"debit": t.credit, "credit": t.debit}) for t in transactions]
