"""Normalization of free-form ledger labels onto the account taxonomy."""

import json
import logging
import re
from decimal import Decimal
from functools import lru_cache
from importlib import resources
from pathlib import Path
from typing import Any, Iterable

from pydantic import BaseModel, Field, field_validator

from ..core.models import AccountCategory, Transaction, TrialBalanceEntry

logger = logging.getLogger(__name__)


class CategoryRule(BaseModel):
    """Keyword fragments that map an account name to a category."""

    category: AccountCategory
    keywords: list[str]

    @field_validator("keywords")
    @classmethod
    def lower_keywords(cls, value: list[str]) -> list[str]:
        return [k.lower() for k in value if k.strip()]


class TransactionRule(BaseModel):
    """Description keywords that map a bank row to a chart-of-accounts path."""

    category: str
    keywords: list[str]

    @property
    def top_level(self) -> str:
        return self.category.split("|", 1)[0]


class RuleTable(BaseModel):
    """Vocabulary driving header detection, inference and filtering."""

    default_category: AccountCategory = AccountCategory.ASSETS
    headers: dict[str, AccountCategory]
    declared_keywords: list[CategoryRule]
    account_rules: list[CategoryRule]
    table_header_tokens: list[str] = Field(default_factory=list)
    table_header_contains: list[str] = Field(default_factory=list)
    summary_prefixes: list[str] = Field(default_factory=list)
    summary_contains: list[str] = Field(default_factory=list)
    transaction_rules: list[TransactionRule] = Field(default_factory=list)

    @field_validator("headers")
    @classmethod
    def normalize_headers(cls, value: dict[str, AccountCategory]) -> dict[str, AccountCategory]:
        return {normalize_label(k): v for k, v in value.items()}

    @field_validator(
        "table_header_tokens", "table_header_contains", "summary_prefixes", "summary_contains"
    )
    @classmethod
    def lower_phrases(cls, value: list[str]) -> list[str]:
        return [normalize_label(v) for v in value if v.strip()]


def load_rules(path: str | Path | None = None) -> RuleTable:
    """
    Load a rule table.

    Args:
        path: JSON file to load; the bundled ``rules.json`` when omitted

    Returns:
        Validated RuleTable
    """
    if path is None:
        return _default_rules()
    return RuleTable.model_validate(json.loads(Path(path).read_text(encoding="utf-8")))


@lru_cache
def _default_rules() -> RuleTable:
    text = resources.files("docrecon.classification").joinpath("rules.json").read_text(encoding="utf-8")
    return RuleTable.model_validate(json.loads(text))


def normalize_label(text: Any) -> str:
    """Lowercase, trim and collapse whitespace."""
    return " ".join(str(text or "").lower().split())


@lru_cache(maxsize=512)
def _word_start(keyword: str) -> re.Pattern:
    # Anchored at a word start so "rent" does not fire inside "current"
    return re.compile(r"(?<![a-z0-9])" + re.escape(keyword))


def infer_category(account: str, rules: RuleTable | None = None) -> AccountCategory:
    """Keyword inference from an account name; the default when nothing matches."""
    rules = rules or load_rules()
    name = normalize_label(account)
    for rule in rules.account_rules:
        if any(_word_start(keyword).search(name) for keyword in rule.keywords):
            return rule.category
    return rules.default_category


def declared_category(value: Any, rules: RuleTable | None = None) -> AccountCategory | None:
    """Map a category label supplied by extraction ("Current Assets") to the taxonomy."""
    label = normalize_label(value)
    if not label:
        return None
    rules = rules or load_rules()
    for rule in rules.declared_keywords:
        if any(keyword in label for keyword in rule.keywords):
            return rule.category
    return None


def _net_sides(debit: Decimal, credit: Decimal) -> tuple[Decimal, Decimal]:
    """Move negatives to the opposite side and net a two-sided row."""
    if debit < 0:
        debit, credit = Decimal("0"), credit - debit
    if credit < 0:
        debit, credit = debit - credit, Decimal("0")
    if debit and credit:
        net = debit - credit
        return (net, Decimal("0")) if net > 0 else (Decimal("0"), -net)
    return debit, credit


class CategoryNormalizer:
    """
    Assign every trial balance row a top-level category and drop noise.

    Pass 1 walks the rows in document order. Section headers ("Liabilities",
    "in Expenses") set the active category and are removed. When the batch
    contains headers, keyword inference wins over the extracted label unless
    it only produced the default bucket, in which case the active header
    category is used. Without headers, the extracted label is trusted first.

    Pass 2 nets each row to a single side, then drops empty names, zero rows,
    table-header cells and total/balance lines, and removes duplicates.
    """

    def __init__(self, rules: RuleTable | None = None):
        self.rules = rules or load_rules()

    def header_category(self, account: str) -> AccountCategory | None:
        return self.rules.headers.get(normalize_label(account))

    def is_table_header(self, account: str) -> bool:
        name = normalize_label(account)
        return name in self.rules.table_header_tokens or any(
            phrase in name for phrase in self.rules.table_header_contains
        )

    def is_summary_row(self, account: str) -> bool:
        name = normalize_label(account)
        return any(name.startswith(prefix) for prefix in self.rules.summary_prefixes) or any(
            phrase in name for phrase in self.rules.summary_contains
        )

    def merge_split_rows(self, entries: Iterable[TrialBalanceEntry | dict]) -> list[TrialBalanceEntry]:
        """
        Join a label-only row with the amount row directly below it.

        Long account names often wrap onto two lines with the amounts on the
        second one.
        """
        rows = [self._coerce(e) for e in entries]
        merged: list[TrialBalanceEntry] = []
        i = 0
        while i < len(rows):
            row = rows[i]
            nxt = rows[i + 1] if i + 1 < len(rows) else None
            if (
                nxt is not None
                and not self._has_amount(row)
                and self._has_amount(nxt)
                and row.account
                and self.header_category(row.account) is None
                and not self.is_table_header(row.account)
            ):
                merged.append(
                    nxt.model_copy(
                        update={
                            "account": f"{row.account} {nxt.account}".strip(),
                            "category": nxt.category or row.category,
                        }
                    )
                )
                i += 2
                continue
            merged.append(row)
            i += 1
        return merged

    def normalize(self, entries: Iterable[TrialBalanceEntry | dict]) -> list[TrialBalanceEntry]:
        """Categorize, filter and deduplicate trial balance rows."""
        categorized = self._propagate_headers([self._coerce(e) for e in entries])

        result: list[TrialBalanceEntry] = []
        seen: set[tuple] = set()
        for entry in categorized:
            debit, credit = _net_sides(entry.debit, entry.credit)
            if self._should_skip(entry.account, debit, credit):
                continue
            key = (entry.category, entry.account, debit, credit)
            if key in seen:
                continue
            seen.add(key)
            result.append(entry.model_copy(update={"debit": debit, "credit": credit}))

        logger.info(f"Normalized {len(categorized)} trial balance rows into {len(result)} entries")
        return result

    def _propagate_headers(self, entries: list[TrialBalanceEntry]) -> list[TrialBalanceEntry]:
        headers_present = any(self.header_category(e.account) for e in entries)
        current: AccountCategory | None = None
        categorized = []

        for entry in entries:
            if not entry.account:
                continue

            header = self.header_category(entry.account)
            if header is not None:
                current = header
                continue

            inferred = infer_category(entry.account, self.rules)
            if headers_present:
                if inferred != self.rules.default_category:
                    category = inferred
                else:
                    category = current or inferred
            else:
                category = declared_category(entry.category, self.rules) or current or inferred

            categorized.append(entry.model_copy(update={"category": category.value}))

        return categorized

    def _should_skip(self, account: str, debit: Decimal, credit: Decimal) -> bool:
        if not normalize_label(account):
            return True
        if not debit and not credit:
            return True
        return self.is_table_header(account) or self.is_summary_row(account)

    @staticmethod
    def _has_amount(entry: TrialBalanceEntry) -> bool:
        return entry.debit > 0 or entry.credit > 0

    @staticmethod
    def _coerce(entry: TrialBalanceEntry | dict) -> TrialBalanceEntry:
        if isinstance(entry, TrialBalanceEntry):
            return entry
        return TrialBalanceEntry.model_validate(entry)


def is_uncategorized(category: str | None) -> bool:
    return not category or "UNCATEGORIZED" in category.upper()


@lru_cache(maxsize=512)
def _keyword_pattern(keyword: str) -> re.Pattern:
    return re.compile(r"(^|[^a-z0-9])" + re.escape(keyword.lower()) + r"(?=[^a-z0-9]|$)")


class TransactionCategorizer:
    """
    Assign chart-of-accounts paths to bank rows from description keywords.

    Only uncategorized rows are touched. Money-in rows never receive an
    Expenses or Assets path and money-out rows never Income or Equity.
    """

    MONEY_OUT_ONLY = ("Expenses", "Assets")
    MONEY_IN_ONLY = ("Income", "Equity")

    def __init__(self, rules: RuleTable | None = None):
        self.rules = rules or load_rules()

    def match(self, txn: Transaction) -> TransactionRule | None:
        description = txn.description.lower()
        money_in = txn.credit > 0 and txn.credit > txn.debit

        for rule in self.rules.transaction_rules:
            if rule.top_level in self.MONEY_OUT_ONLY and money_in:
                continue
            if rule.top_level in self.MONEY_IN_ONLY and not money_in:
                continue
            if any(_keyword_pattern(k).search(description) for k in rule.keywords):
                return rule
        return None

    def categorize(self, transactions: Iterable[Transaction]) -> list[Transaction]:
        result = []
        for txn in transactions:
            if is_uncategorized(txn.category):
                rule = self.match(txn)
                if rule is not None:
                    txn = txn.model_copy(update={"category": rule.category})
            result.append(txn)
        return result
