"""Document validators."""

from .invoice_totals import InvoiceTotalsValidator, ValidationResult

__all__ = ["InvoiceTotalsValidator", "ValidationResult"]
