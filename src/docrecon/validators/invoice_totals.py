"""Arithmetic reconciliation of extracted invoice totals."""

from dataclasses import dataclass, field
from decimal import Decimal

from ..core.models import Invoice, round_money


@dataclass
class ValidationResult:
    """Result of validation check."""

    is_valid: bool
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def messages(self) -> list[str]:
        return self.errors + self.warnings


_REPORTING_FIELDS = (
    ("total_before_tax_aed", "total_before_tax"),
    ("total_tax_aed", "total_tax"),
    ("zero_rated_aed", "zero_rated"),
    ("total_amount_aed", "total_amount"),
)


class InvoiceTotalsValidator:
    """
    Fill and cross-check invoice totals.

    Extraction often leaves out the tax or pre-tax total, or prints a total
    the line items do not add up to. Missing totals are derived from the line
    items, a missing grand total is replaced with pre-tax + tax, and every
    amount is rounded to cents. Reporting-currency totals are taken from the
    document when present and copied from the native totals when the invoice
    is already in the reporting currency; the rest are left for conversion.
    """

    # Gap between printed and computed totals that triggers substitution
    SUBSTITUTION_TOLERANCE = Decimal("1.00")

    # Absolute tolerance for rounding (2 cents)
    ABSOLUTE_TOLERANCE = Decimal("0.02")

    # Relative tolerance for larger amounts (1%)
    RELATIVE_TOLERANCE = 0.01

    def __init__(self, reporting_currency: str = "AED"):
        self.reporting_currency = reporting_currency.upper()

    def reconcile(self, invoice: Invoice) -> tuple[Invoice, ValidationResult]:
        """
        Return a copy of ``invoice`` with reconciled totals, plus findings.

        Args:
            invoice: Invoice as extracted

        Returns:
            (reconciled invoice, ValidationResult with any mismatches)
        """
        label = invoice.invoice_id or invoice.vendor_name or "invoice"
        result = self._validate_line_items(invoice, label)

        total_tax = invoice.total_tax
        total_before_tax = invoice.total_before_tax
        total_amount = invoice.total_amount

        if not total_tax and invoice.line_items:
            total_tax = sum((item.tax_amount for item in invoice.line_items), Decimal("0"))
        if not total_before_tax and invoice.line_items:
            total_before_tax = sum((item.net_amount for item in invoice.line_items), Decimal("0"))

        calculated_total = total_before_tax + total_tax
        if abs(total_amount - calculated_total) > self.SUBSTITUTION_TOLERANCE and calculated_total > 0:
            if not total_amount:
                total_amount = calculated_total
                result.warnings.append(
                    f"{label}: total amount missing, using pre-tax + tax = {calculated_total:.2f}"
                )
            else:
                result.is_valid = False
                result.errors.append(
                    f"{label}: total {total_amount} differs from pre-tax ({total_before_tax}) "
                    f"+ tax ({total_tax}) = {calculated_total:.2f}"
                )

        updates: dict = {
            "total_tax": round_money(total_tax),
            "total_before_tax": round_money(total_before_tax),
            "total_amount": round_money(total_amount),
            "zero_rated": round_money(invoice.zero_rated),
        }

        for reporting_field, native_field in _REPORTING_FIELDS:
            provided = getattr(invoice, reporting_field)
            if provided is not None:
                updates[reporting_field] = round_money(provided)
            elif invoice.currency == self.reporting_currency:
                updates[reporting_field] = updates[native_field]

        return invoice.model_copy(update=updates), result

    def _validate_line_items(self, invoice: Invoice, label: str) -> ValidationResult:
        """Check each line's net + tax against its printed total."""
        warnings = []

        for number, item in enumerate(invoice.line_items, start=1):
            if not item.total:
                continue
            expected = item.net_amount + item.tax_amount
            if not self._is_close(item.total, expected):
                warnings.append(
                    f"{label} line {number}: total {item.total} doesn't match "
                    f"net + tax ({expected:.2f})"
                )

        return ValidationResult(is_valid=True, warnings=warnings)

    def _is_close(self, a: Decimal, b: Decimal) -> bool:
        """
        Check if two decimal values are close enough.

        Uses both relative and absolute tolerance.
        """
        diff = abs(a - b)

        if diff <= self.ABSOLUTE_TOLERANCE:
            return True

        max_val = max(abs(a), abs(b))
        if max_val > 0:
            return float(diff / max_val) <= self.RELATIVE_TOLERANCE

        return True
