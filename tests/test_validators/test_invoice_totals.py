"""Tests for invoice totals reconciliation."""

from decimal import Decimal

from docrecon.core.models import Invoice, LineItem
from docrecon.validators import InvoiceTotalsValidator


class TestInvoiceTotalsValidator:
    """Test cases for InvoiceTotalsValidator."""

    def setup_method(self):
        """Setup test fixtures."""
        self.validator = InvoiceTotalsValidator()

    def test_totals_derived_from_line_items(self, sample_invoice):
        """Test that missing pre-tax, tax and grand totals are filled."""
        invoice, result = self.validator.reconcile(sample_invoice)

        assert invoice.total_before_tax == Decimal("200.00")
        assert invoice.total_tax == Decimal("10.00")
        assert invoice.total_amount == Decimal("210.00")
        assert result.is_valid
        assert any("total amount missing" in w for w in result.warnings)

    def test_foreign_reporting_totals_left_for_conversion(self, sample_invoice):
        """Test that USD invoices keep their AED totals empty."""
        invoice, _ = self.validator.reconcile(sample_invoice)
        assert invoice.total_amount_aed is None

    def test_reporting_currency_totals_are_copied(self):
        """Test that AED invoices copy native totals into the AED fields."""
        invoice, _ = self.validator.reconcile(
            Invoice(
                invoice_id="A1",
                currency="AED",
                total_before_tax=Decimal("100"),
                total_tax=Decimal("5"),
                total_amount=Decimal("105"),
            )
        )
        assert invoice.total_amount_aed == Decimal("105.00")
        assert invoice.total_tax_aed == Decimal("5.00")

    def test_printed_reporting_totals_are_kept(self):
        """Test that AED totals stated on the document win."""
        invoice, _ = self.validator.reconcile(
            Invoice(invoice_id="A2", currency="USD", total_amount=Decimal("10"), total_amount_aed=Decimal("36.7251"))
        )
        assert invoice.total_amount_aed == Decimal("36.73")

    def test_conflicting_total_is_an_error(self, sample_invoice):
        """Test that a printed total far from pre-tax + tax is flagged, not replaced."""
        bad = sample_invoice.model_copy(update={"total_amount": Decimal("500")})
        invoice, result = self.validator.reconcile(bad)

        assert not result.is_valid
        assert invoice.total_amount == Decimal("500.00")
        assert any("differs" in e for e in result.errors)

    def test_small_gap_is_tolerated(self, sample_invoice):
        """Test that rounding gaps up to 1.00 pass."""
        close = sample_invoice.model_copy(update={"total_amount": Decimal("210.80")})
        invoice, result = self.validator.reconcile(close)

        assert result.is_valid
        assert result.errors == []
        assert invoice.total_amount == Decimal("210.80")

    def test_line_item_mismatch_warns(self):
        """Test that a line whose total disagrees with net + tax is reported."""
        invoice = Invoice(
            invoice_id="L1",
            currency="AED",
            line_items=[
                LineItem(
                    description="Service",
                    subtotal=Decimal("100"),
                    tax_amount=Decimal("5"),
                    total=Decimal("150"),
                )
            ],
        )
        _, result = self.validator.reconcile(invoice)
        assert any("L1 line 1" in w for w in result.warnings)

    def test_amounts_rounded_half_up(self):
        """Test that totals are rounded to cents."""
        invoice, _ = self.validator.reconcile(
            Invoice(
                invoice_id="R1",
                currency="AED",
                total_before_tax=Decimal("10.005"),
                total_tax=Decimal("0.5"),
                total_amount=Decimal("10.505"),
            )
        )
        assert invoice.total_before_tax == Decimal("10.01")
        assert invoice.total_amount == Decimal("10.51")
