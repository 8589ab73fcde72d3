"""Sales/purchase classification of invoices against the declared company."""

import logging
import re

from ..core.models import Invoice, InvoiceType

logger = logging.getLogger(__name__)

_NON_ALNUM = re.compile(r"[^a-zA-Z0-9]")


def _clean(value: str | None) -> str:
    return _NON_ALNUM.sub("", value or "").lower()


def _overlaps(a: str, b: str) -> bool:
    """Equal, or one contains the other. Empty values never match."""
    return bool(a and b) and (a == b or a in b or b in a)


def token_overlap(company_name: str, counterparty_name: str) -> float:
    """
    Share of the company's name tokens found in the counterparty name.

    Only company tokens longer than two characters count; a token is found
    when it appears inside any counterparty token.
    """
    tokens = [t for t in company_name.lower().split() if len(t) > 2]
    if not tokens:
        return 0.0
    other = counterparty_name.lower().split()
    found = sum(1 for token in tokens if any(token in candidate for candidate in other))
    return found / len(tokens)


class InvoiceClassifier:
    """
    Label invoices as sales or purchase relative to the declared company.

    The company issued the invoice when it is the vendor (sales) and
    received it when it is the customer (purchase). TRNs are compared first;
    names only when neither TRN matches. Without a match the extracted type
    is left as is.
    """

    def __init__(self, name_match_threshold: float = 0.6):
        self.name_match_threshold = name_match_threshold

    @classmethod
    def from_settings(cls, settings) -> "InvoiceClassifier":
        return cls(name_match_threshold=settings.name_match_threshold)

    def classify(
        self,
        invoice: Invoice,
        company_name: str | None = None,
        company_trn: str | None = None,
    ) -> Invoice:
        """Return the invoice with ``invoice_type`` set when the company is identified."""
        if not company_name and not company_trn:
            return invoice

        detected = self._match_trn(invoice, company_trn) or self._match_name(invoice, company_name)
        if detected is None or detected == invoice.invoice_type:
            return invoice

        logger.debug(f"Invoice {invoice.invoice_id!r} classified as {detected.value}")
        return invoice.model_copy(update={"invoice_type": detected})

    def _match_trn(self, invoice: Invoice, company_trn: str | None) -> InvoiceType | None:
        trn = _clean(company_trn)
        if not trn:
            return None
        if _overlaps(trn, _clean(invoice.vendor_trn)):
            return InvoiceType.SALES
        if _overlaps(trn, _clean(invoice.customer_trn)):
            return InvoiceType.PURCHASE
        return None

    def _match_name(self, invoice: Invoice, company_name: str | None) -> InvoiceType | None:
        name = (company_name or "").strip()
        normalized = _clean(name)
        if len(normalized) <= 2:
            return None
        if self._name_matches(name, normalized, invoice.vendor_name):
            return InvoiceType.SALES
        if self._name_matches(name, normalized, invoice.customer_name):
            return InvoiceType.PURCHASE
        return None

    def _name_matches(self, name: str, normalized: str, counterparty: str) -> bool:
        if _overlaps(normalized, _clean(counterparty)):
            return True
        return token_overlap(name, counterparty) >= self.name_match_threshold
