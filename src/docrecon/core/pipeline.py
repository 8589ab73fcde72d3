"""Reconciliation pipeline for extracted financial documents."""

import asyncio
import logging
from decimal import Decimal
from typing import Any, Awaitable, Callable, Iterable, Sequence, TypeVar

from pydantic import BaseModel, ValidationError

from ..classification import CategoryNormalizer, InvoiceClassifier, TransactionCategorizer
from ..config import Settings, get_settings
from ..currency import CurrencyConverter, ExchangeRateClient, RateCache, is_known_currency, normalize_currency
from ..extractors.base import ContentPart, ExtractionService
from ..normalizers.prompts import (
    BANK_STATEMENT_SCHEMA,
    INVOICE_SCHEMA,
    TRIAL_BALANCE_SCHEMA,
    get_bank_statement_prompt,
    get_invoice_prompt,
    get_trial_balance_prompt,
)
from ..reconciliation import DirectionValidator, TransactionDeduplicator
from ..utils.dates import filter_by_date_range
from ..validators import InvoiceTotalsValidator
from .models import (
    BankStatementSummary,
    Invoice,
    InvoiceBatchResult,
    StatementResult,
    Transaction,
    TrialBalanceEntry,
    TrialBalanceResult,
    round_money,
    to_decimal,
    to_optional_text,
)

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)
T = TypeVar("T")


def build_records(model: type[M], rows: Any, label: str, warnings: list[str]) -> list[M]:
    """Validate raw rows into records, skipping (and reporting) rows that do not fit."""
    if not isinstance(rows, list):
        return []

    records = []
    for position, row in enumerate(rows, start=1):
        if not isinstance(row, dict):
            warnings.append(f"{label}: row {position} is not an object")
            continue
        try:
            records.append(model.model_validate(row))
        except ValidationError as e:
            logger.warning(f"{label}: skipping row {position}: {e}")
            warnings.append(f"{label}: row {position} skipped ({e.error_count()} invalid fields)")
    return records


class _SummaryMerge:
    """Combine per-page statement headers into one summary."""

    def __init__(self):
        self.fields: dict[str, str | None] = {
            "account_holder": None,
            "account_number": None,
            "statement_period": None,
        }
        self.opening: Decimal | None = None
        self.opening_currency: str | None = None
        self.closing: Decimal | None = None
        self.closing_currency: str | None = None
        self.withdrawals = Decimal("0")
        self.deposits = Decimal("0")

    def add(self, summary: dict, currency: str | None, rate: Decimal) -> None:
        for name, alias in (
            ("account_holder", "accountHolder"),
            ("account_number", "accountNumber"),
            ("statement_period", "statementPeriod"),
        ):
            if self.fields[name] is None:
                self.fields[name] = to_optional_text(summary.get(alias))

        opening = summary.get("openingBalance")
        if self.opening is None and opening not in (None, ""):
            self.opening = to_decimal(opening)
            self.opening_currency = currency

        closing = summary.get("closingBalance")
        if closing not in (None, ""):
            self.closing = to_decimal(closing)
            self.closing_currency = currency

        self.withdrawals += to_decimal(summary.get("totalWithdrawals")) * rate
        self.deposits += to_decimal(summary.get("totalDeposits")) * rate


class ReconciliationPipeline:
    """
    Main reconciliation pipeline.

    Orchestrates: Extraction -> Repair -> Records -> Deduplication ->
    Direction validation -> Currency conversion -> Classification -> Result
    """

    def __init__(
        self,
        extraction_service: ExtractionService | None = None,
        converter: CurrencyConverter | None = None,
        deduplicator: TransactionDeduplicator | None = None,
        direction_validator: DirectionValidator | None = None,
        invoice_classifier: InvoiceClassifier | None = None,
        category_normalizer: CategoryNormalizer | None = None,
        transaction_categorizer: TransactionCategorizer | None = None,
        totals_validator: InvoiceTotalsValidator | None = None,
        settings: Settings | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        """
        Initialize pipeline with its components.

        If not provided, creates default instances from settings.
        """
        self.settings = settings or get_settings()
        self.reporting_currency = self.settings.reporting_currency

        self._extraction_service = extraction_service
        self.converter = converter or CurrencyConverter(
            client=ExchangeRateClient.from_settings(self.settings),
            cache=RateCache(),
            reporting_currency=self.reporting_currency,
        )
        self.deduplicator = deduplicator or TransactionDeduplicator.from_settings(self.settings)
        self.direction_validator = direction_validator or DirectionValidator.from_settings(self.settings)
        self.invoice_classifier = invoice_classifier or InvoiceClassifier.from_settings(self.settings)
        self.category_normalizer = category_normalizer or CategoryNormalizer()
        self.transaction_categorizer = transaction_categorizer or TransactionCategorizer(
            self.category_normalizer.rules
        )
        self.totals_validator = totals_validator or InvoiceTotalsValidator(self.reporting_currency)
        self._sleep = sleep

    @property
    def extraction_service(self) -> ExtractionService:
        """Lazy-load the OpenAI extraction service."""
        if self._extraction_service is None:
            from ..normalizers.llm_extractor import OpenAIExtractionService

            self._extraction_service = OpenAIExtractionService()
        return self._extraction_service

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------

    async def reconcile_transactions(
        self,
        transactions: Iterable[Transaction | dict],
        opening_balance: Any = 0,
        fallback_currency: str | None = None,
        start_date: str | None = None,
        end_date: str | None = None,
    ) -> StatementResult:
        """
        Turn a raw transaction stream into a normalized ledger.

        Args:
            transactions: Rows in extraction order
            opening_balance: Statement opening balance in the native currency
            fallback_currency: Currency for rows that carry none
            start_date: Optional period start; rows before it are dropped
            end_date: Optional period end; rows after it are dropped

        Returns:
            StatementResult with the ledger in the reporting currency
        """
        ledger = self.deduplicator.deduplicate(transactions)

        report = self.direction_validator.analyze(ledger, opening_balance)
        ledger = self.direction_validator.validate(ledger, report=report)

        converted = [await self.converter.convert_transaction(t, fallback_currency) for t in ledger]

        if start_date or end_date:
            converted = filter_by_date_range(converted, start_date, end_date)

        return StatementResult(
            transactions=converted,
            currency=self.reporting_currency,
            columns_swapped=report.swap,
        )

    async def extract_bank_statement(
        self,
        pages: Sequence[ContentPart],
        start_date: str | None = None,
        end_date: str | None = None,
    ) -> StatementResult:
        """
        Extract, reconcile and convert a bank statement.

        Pages are sent one at a time with a pause between calls. Each page's
        currency is carried over to later pages that do not state one.
        """
        prompt = get_bank_statement_prompt(start_date, end_date)
        warnings: list[str] = []
        rows: list[Transaction] = []
        summary = _SummaryMerge()
        last_currency: str | None = None

        for index, page in enumerate(pages):
            label = f"Page {index + 1}"
            if index > 0:
                await self._sleep(self.settings.statement_page_delay_seconds)

            try:
                response = await self.extraction_service.generate([page], prompt, BANK_STATEMENT_SCHEMA)
            except Exception as e:
                logger.error(f"{label}: extraction failed: {e}")
                warnings.append(f"{label}: extraction failed ({type(e).__name__})")
                continue

            warnings.extend(f"{label}: {w}" for w in response.warnings)
            data = response.parsed()
            if not isinstance(data, dict):
                logger.warning(f"{label}: no usable JSON in extraction output")
                warnings.append(f"{label}: unreadable extraction output")
                continue

            try:
                page_currency, page_rows = await self._read_statement_page(
                    data, last_currency, summary, label, warnings
                )
            except Exception as e:
                logger.error(f"{label}: could not process extraction output: {e}")
                warnings.append(f"{label}: unprocessable extraction output ({type(e).__name__})")
                continue

            if page_currency:
                last_currency = page_currency
            rows.extend(page_rows)

        result = await self.reconcile_transactions(
            rows,
            opening_balance=summary.opening or 0,
            fallback_currency=last_currency,
            start_date=start_date,
            end_date=end_date,
        )
        result.summary = await self._build_summary(summary)
        result.warnings = warnings + result.warnings
        logger.info(f"Bank statement: {len(pages)} pages, {len(rows)} rows, {len(result.transactions)} kept")
        return result

    async def _read_statement_page(
        self,
        data: dict,
        last_currency: str | None,
        summary: _SummaryMerge,
        label: str,
        warnings: list[str],
    ) -> tuple[str | None, list[Transaction]]:
        """Rows of one statement page with the page currency applied."""
        page_currency = normalize_currency(data.get("currency")) or last_currency

        rows = []
        for txn in build_records(Transaction, data.get("transactions"), label, warnings):
            if not is_known_currency(txn.currency) and page_currency:
                txn = txn.model_copy(update={"currency": page_currency})
            rows.append(txn)

        if isinstance(data.get("summary"), dict):
            rate = await self.converter.rate(page_currency)
            summary.add(data["summary"], page_currency, rate)
        return page_currency, rows

    async def _build_summary(self, merged: _SummaryMerge) -> BankStatementSummary:
        summary = BankStatementSummary(
            **merged.fields,
            total_withdrawals=round_money(merged.withdrawals),
            total_deposits=round_money(merged.deposits),
            currency=self.reporting_currency,
        )

        if merged.opening is not None:
            summary.opening_balance, summary.original_opening_balance = await self._convert_balance(
                merged.opening, merged.opening_currency
            )
        if merged.closing is not None:
            summary.closing_balance, summary.original_closing_balance = await self._convert_balance(
                merged.closing, merged.closing_currency
            )
        return summary

    async def _convert_balance(self, amount: Decimal, currency: str | None) -> tuple[Decimal, Decimal | None]:
        """Converted balance plus the original when a conversion happened."""
        if not is_known_currency(currency) or currency == self.reporting_currency:
            return amount, None
        rate = await self.converter.rate(currency)
        if rate == 1:
            return amount, None
        return round_money(amount * rate), amount

    def categorize_transactions(self, transactions: Iterable[Transaction | dict]) -> list[Transaction]:
        """Assign chart-of-accounts paths to uncategorized rows by keyword."""
        rows = [t if isinstance(t, Transaction) else Transaction.model_validate(t) for t in transactions]
        return self.transaction_categorizer.categorize(rows)

    # ------------------------------------------------------------------
    # Invoices
    # ------------------------------------------------------------------

    async def normalize_invoice(
        self,
        invoice: Invoice | dict,
        company_name: str | None = None,
        company_trn: str | None = None,
    ) -> tuple[Invoice, list[str]]:
        """Reconcile totals, fill reporting-currency amounts and classify one invoice."""
        if not isinstance(invoice, Invoice):
            invoice = Invoice.model_validate(invoice)

        invoice, validation = self.totals_validator.reconcile(invoice)
        invoice = await self.converter.convert_invoice(invoice)
        invoice = self.invoice_classifier.classify(invoice, company_name, company_trn)
        return invoice, validation.messages

    async def normalize_invoices(
        self,
        invoices: Iterable[Invoice | dict],
        company_name: str | None = None,
        company_trn: str | None = None,
    ) -> InvoiceBatchResult:
        result = InvoiceBatchResult()
        for invoice in invoices:
            normalized, messages = await self.normalize_invoice(invoice, company_name, company_trn)
            result.invoices.append(normalized)
            result.warnings.extend(messages)
        return result

    async def extract_invoices(
        self,
        pages: Sequence[ContentPart],
        company_name: str | None = None,
        company_trn: str | None = None,
        known_vendors: Iterable[dict] | None = None,
    ) -> InvoiceBatchResult:
        """
        Extract and normalize invoices from page images or PDFs.

        Pages are grouped into small batches processed a few at a time;
        results keep the original page order.
        """
        prompt = get_invoice_prompt(company_name, company_trn, list(known_vendors or []))
        batch_size = self.settings.invoice_batch_size
        batches = [list(pages[i : i + batch_size]) for i in range(0, len(pages), batch_size)]

        async def process(batch: list[ContentPart], index: int) -> tuple[list[Invoice], list[str]]:
            label = f"Invoice batch {index + 1}"
            data, warnings = await self._extract_batch(batch, index, prompt, INVOICE_SCHEMA, label)
            if isinstance(data, dict) and isinstance(data.get("invoices"), list):
                raw = data["invoices"]
            elif isinstance(data, dict) and data.get("invoiceId"):
                raw = [data]
            else:
                return [], warnings

            invoices = []
            for invoice in build_records(Invoice, raw, label, warnings):
                normalized, messages = await self.normalize_invoice(invoice, company_name, company_trn)
                invoices.append(normalized)
                warnings.extend(messages)
            return invoices, warnings

        result = InvoiceBatchResult()
        for invoices, warnings in await self._run_windowed(batches, process):
            result.invoices.extend(invoices)
            result.warnings.extend(warnings)
        logger.info(f"Extracted {len(result.invoices)} invoices from {len(pages)} pages")
        return result

    # ------------------------------------------------------------------
    # Trial balance
    # ------------------------------------------------------------------

    def normalize_trial_balance(self, entries: Iterable[TrialBalanceEntry | dict]) -> list[TrialBalanceEntry]:
        """Merge wrapped rows, categorize, filter and deduplicate."""
        merged = self.category_normalizer.merge_split_rows(entries)
        return self.category_normalizer.normalize(merged)

    async def extract_trial_balance(self, pages: Sequence[ContentPart]) -> TrialBalanceResult:
        """Extract trial balance rows page by page and normalize them together."""
        prompt = get_trial_balance_prompt()
        batches = [[page] for page in pages]

        async def process(batch: list[ContentPart], index: int) -> tuple[list[TrialBalanceEntry], list[str]]:
            label = f"Trial balance page {index + 1}"
            data, warnings = await self._extract_batch(batch, index, prompt, TRIAL_BALANCE_SCHEMA, label)
            if not isinstance(data, dict):
                return [], warnings
            entries = build_records(TrialBalanceEntry, data.get("entries"), label, warnings)
            return self.category_normalizer.merge_split_rows(entries), warnings

        raw_entries: list[TrialBalanceEntry] = []
        warnings: list[str] = []
        for entries, batch_warnings in await self._run_windowed(batches, process):
            raw_entries.extend(entries)
            warnings.extend(batch_warnings)

        return TrialBalanceResult(
            entries=self.category_normalizer.normalize(raw_entries),
            warnings=warnings,
        )

    # ------------------------------------------------------------------
    # Batch scheduling
    # ------------------------------------------------------------------

    async def _extract_batch(
        self,
        batch: list[ContentPart],
        index: int,
        prompt: str,
        schema: dict,
        label: str,
    ) -> tuple[Any, list[str]]:
        """One extraction call; failures become warnings and a None result."""
        if index > 0:
            await self._sleep(self.settings.batch_delay_seconds)

        try:
            response = await self.extraction_service.generate(batch, prompt, schema)
        except Exception as e:
            logger.error(f"{label}: extraction failed: {e}")
            return None, [f"{label}: extraction failed ({type(e).__name__})"]

        warnings = [f"{label}: {w}" for w in response.warnings]
        data = response.parsed()
        if data is None:
            warnings.append(f"{label}: unreadable extraction output")
        return data, warnings

    async def _run_windowed(
        self,
        batches: list[T],
        worker: Callable[[T, int], Awaitable[Any]],
    ) -> list[Any]:
        """Run batches in windows of ``max_concurrent_batches``, keeping batch order."""
        window = self.settings.max_concurrent_batches
        results: list[Any] = []
        for start in range(0, len(batches), window):
            chunk = batches[start : start + window]
            results.extend(
                await asyncio.gather(*(worker(batch, start + offset) for offset, batch in enumerate(chunk)))
            )
        return results
