"""Pydantic models for reconciled financial records."""

import math
import re
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

TWO_PLACES = Decimal("0.01")

_AMOUNT_NOISE = re.compile(r"[^\d.\-]")


def to_decimal(value: Any) -> Decimal:
    """
    Coerce an untrusted amount into a Decimal.

    Handles numbers, numeric strings with thousands separators or currency
    symbols, and accounting-style parentheses. Anything unreadable is 0.
    """
    if value is None or isinstance(value, bool):
        return Decimal("0")
    if isinstance(value, Decimal):
        return value if value.is_finite() else Decimal("0")
    if isinstance(value, (int, float)):
        if isinstance(value, float) and not math.isfinite(value):
            return Decimal("0")
        return Decimal(str(value))

    text = str(value).strip()
    if not text:
        return Decimal("0")

    negative = text.startswith("(") and text.endswith(")")
    cleaned = _AMOUNT_NOISE.sub("", text)
    if cleaned in ("", "-", ".", "-."):
        return Decimal("0")
    try:
        amount = Decimal(cleaned)
    except InvalidOperation:
        return Decimal("0")
    if not amount.is_finite():
        return Decimal("0")
    return -abs(amount) if negative else amount


def round_money(value: Decimal) -> Decimal:
    """Round to 2 decimal places, half up."""
    return value.quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


class InvoiceType(str, Enum):
    """Role of the declared company on an invoice."""

    SALES = "sales"
    PURCHASE = "purchase"


class AccountCategory(str, Enum):
    """Top-level accounting taxonomy."""

    ASSETS = "Assets"
    LIABILITIES = "Liabilities"
    EQUITY = "Equity"
    INCOME = "Income"
    EXPENSES = "Expenses"


def to_text(value: Any) -> str:
    """Coerce an untrusted scalar to stripped text (None becomes empty)."""
    return "" if value is None else str(value).strip()


def to_optional_text(value: Any) -> str | None:
    text = to_text(value)
    return text or None


class RecordModel(BaseModel):
    """Base for records exchanged with the extraction service (camelCase on the wire)."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )


class Transaction(RecordModel):
    """A single bank statement row."""

    date: str = ""
    description: str = ""
    debit: Decimal = Field(default=Decimal("0"))
    credit: Decimal = Field(default=Decimal("0"))
    balance: Decimal = Field(default=Decimal("0"))
    currency: str = Field(default="UNKNOWN")
    confidence: float = Field(default=0.0, ge=0.0, le=100.0)
    original_currency: str | None = None
    original_debit: Decimal | None = None
    original_credit: Decimal | None = None
    original_balance: Decimal | None = None
    category: str | None = None
    source_file: str | None = None

    @field_validator("date", "description", mode="before")
    @classmethod
    def _text(cls, value: Any) -> str:
        return "" if value is None else str(value)

    @field_validator("original_currency", "category", "source_file", mode="before")
    @classmethod
    def _optional_text(cls, value: Any) -> str | None:
        return to_optional_text(value)

    @field_validator("debit", "credit", mode="before")
    @classmethod
    def _unsigned_amount(cls, value: Any) -> Decimal:
        return abs(to_decimal(value))

    @field_validator("balance", mode="before")
    @classmethod
    def _signed_amount(cls, value: Any) -> Decimal:
        return to_decimal(value)

    @field_validator("original_debit", "original_credit", "original_balance", mode="before")
    @classmethod
    def _optional_amount(cls, value: Any) -> Decimal | None:
        return None if value is None else to_decimal(value)

    @field_validator("currency", mode="before")
    @classmethod
    def _currency(cls, value: Any) -> str:
        text = str(value or "").strip().upper()
        return text or "UNKNOWN"

    @field_validator("confidence", mode="before")
    @classmethod
    def _confidence(cls, value: Any) -> float:
        try:
            score = float(value)
        except (TypeError, ValueError):
            return 0.0
        if not math.isfinite(score):
            return 0.0
        return min(max(score, 0.0), 100.0)

    @property
    def is_converted(self) -> bool:
        """Whether pre-conversion amounts were preserved."""
        return self.original_currency is not None


class LineItem(RecordModel):
    """Invoice line item."""

    description: str = ""
    quantity: Decimal = Field(default=Decimal("0"))
    unit_price: Decimal = Field(default=Decimal("0"))
    subtotal: Decimal = Field(default=Decimal("0"))
    tax_rate: Decimal | None = None
    tax_amount: Decimal = Field(default=Decimal("0"))
    total: Decimal = Field(default=Decimal("0"))

    @field_validator("description", mode="before")
    @classmethod
    def _description(cls, value: Any) -> str:
        return to_text(value)

    @field_validator("quantity", "unit_price", "subtotal", "tax_amount", "total", mode="before")
    @classmethod
    def _amount(cls, value: Any) -> Decimal:
        return to_decimal(value)

    @field_validator("tax_rate", mode="before")
    @classmethod
    def _rate(cls, value: Any) -> Decimal | None:
        return None if value in (None, "") else to_decimal(value)

    @property
    def net_amount(self) -> Decimal:
        """Pre-tax amount: explicit subtotal, else quantity × unit price."""
        if self.subtotal:
            return self.subtotal
        return self.quantity * self.unit_price


class Invoice(RecordModel):
    """An extracted invoice with native and reporting-currency totals."""

    invoice_id: str = ""
    vendor_name: str = ""
    customer_name: str = ""
    vendor_trn: str | None = None
    customer_trn: str | None = None
    invoice_date: str = ""
    due_date: str = ""
    total_before_tax: Decimal = Field(default=Decimal("0"))
    total_tax: Decimal = Field(default=Decimal("0"))
    zero_rated: Decimal = Field(default=Decimal("0"))
    total_amount: Decimal = Field(default=Decimal("0"))
    total_before_tax_aed: Decimal | None = Field(default=None, alias="totalBeforeTaxAED")
    total_tax_aed: Decimal | None = Field(default=None, alias="totalTaxAED")
    zero_rated_aed: Decimal | None = Field(default=None, alias="zeroRatedAED")
    total_amount_aed: Decimal | None = Field(default=None, alias="totalAmountAED")
    currency: str = Field(default="UNKNOWN")
    invoice_type: InvoiceType = Field(default=InvoiceType.PURCHASE)
    line_items: list[LineItem] = Field(default_factory=list)
    confidence: float | None = None
    is_verified: bool = False

    @field_validator("invoice_id", "vendor_name", "customer_name", "invoice_date", "due_date", mode="before")
    @classmethod
    def _text(cls, value: Any) -> str:
        return to_text(value)

    @field_validator("vendor_trn", "customer_trn", mode="before")
    @classmethod
    def _trn(cls, value: Any) -> str | None:
        return to_optional_text(value)

    @field_validator("is_verified", mode="before")
    @classmethod
    def _verified(cls, value: Any) -> bool:
        return bool(value)

    @field_validator("total_before_tax", "total_tax", "zero_rated", "total_amount", mode="before")
    @classmethod
    def _amount(cls, value: Any) -> Decimal:
        return to_decimal(value)

    @field_validator(
        "total_before_tax_aed", "total_tax_aed", "zero_rated_aed", "total_amount_aed", mode="before"
    )
    @classmethod
    def _optional_amount(cls, value: Any) -> Decimal | None:
        return None if value in (None, "") else to_decimal(value)

    @field_validator("currency", mode="before")
    @classmethod
    def _currency(cls, value: Any) -> str:
        text = str(value or "").strip().upper()
        return text or "UNKNOWN"

    @field_validator("invoice_type", mode="before")
    @classmethod
    def _invoice_type(cls, value: Any) -> InvoiceType:
        if isinstance(value, InvoiceType):
            return value
        if str(value or "").strip().lower() == "sales":
            return InvoiceType.SALES
        return InvoiceType.PURCHASE

    @field_validator("line_items", mode="before")
    @classmethod
    def _line_items(cls, value: Any) -> list:
        if not isinstance(value, list):
            return []
        return [item for item in value if isinstance(item, (dict, LineItem))]

    @field_validator("confidence", mode="before")
    @classmethod
    def _confidence(cls, value: Any) -> float | None:
        try:
            return None if value is None else float(value)
        except (TypeError, ValueError):
            return None


class TrialBalanceEntry(RecordModel):
    """A trial balance / opening balance row."""

    account: str = ""
    debit: Decimal = Field(default=Decimal("0"))
    credit: Decimal = Field(default=Decimal("0"))
    # One of AccountCategory once normalized; raw extraction labels before that.
    category: str | None = None
    currency: str | None = None

    @field_validator("account", mode="before")
    @classmethod
    def _account(cls, value: Any) -> str:
        return to_text(value)

    @field_validator("debit", "credit", mode="before")
    @classmethod
    def _amount(cls, value: Any) -> Decimal:
        return to_decimal(value)

    @field_validator("category", "currency", mode="before")
    @classmethod
    def _optional_text(cls, value: Any) -> str | None:
        if isinstance(value, AccountCategory):
            return value.value
        return to_optional_text(value)


class BankStatementSummary(RecordModel):
    """Statement-level header values, in the reporting currency."""

    account_holder: str | None = None
    account_number: str | None = None
    statement_period: str | None = None
    opening_balance: Decimal | None = None
    closing_balance: Decimal | None = None
    original_opening_balance: Decimal | None = None
    original_closing_balance: Decimal | None = None
    total_withdrawals: Decimal = Field(default=Decimal("0"))
    total_deposits: Decimal = Field(default=Decimal("0"))
    currency: str | None = None

    @field_validator(
        "opening_balance", "closing_balance", "original_opening_balance", "original_closing_balance", mode="before"
    )
    @classmethod
    def _optional_amount(cls, value: Any) -> Decimal | None:
        return None if value in (None, "") else to_decimal(value)

    @field_validator("total_withdrawals", "total_deposits", mode="before")
    @classmethod
    def _amount(cls, value: Any) -> Decimal:
        return to_decimal(value)

    @field_validator("account_holder", "account_number", "statement_period", "currency", mode="before")
    @classmethod
    def _optional_text(cls, value: Any) -> str | None:
        return to_optional_text(value)


class StatementResult(RecordModel):
    """Result of bank statement extraction and reconciliation."""

    transactions: list[Transaction] = Field(default_factory=list)
    summary: BankStatementSummary = Field(default_factory=BankStatementSummary)
    currency: str = "AED"
    columns_swapped: bool = False
    warnings: list[str] = Field(default_factory=list)


class InvoiceBatchResult(RecordModel):
    """Result of invoice extraction."""

    invoices: list[Invoice] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)


class TrialBalanceResult(RecordModel):
    """Result of trial balance extraction."""

    entries: list[TrialBalanceEntry] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
