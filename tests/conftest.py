"""Pytest configuration and fixtures."""

import json
from decimal import Decimal
from typing import Any, Sequence

import httpx
import pytest

from docrecon.config import Settings
from docrecon.core.models import Invoice, LineItem, Transaction
from docrecon.core.pipeline import ReconciliationPipeline
from docrecon.currency import CurrencyConverter, ExchangeRateClient, RateCache
from docrecon.extractors.base import ContentPart, ExtractionResponse, ExtractionService


class FakeExtractionService(ExtractionService):
    """Replays canned outputs in call order and records every request."""

    def __init__(self, outputs: Sequence[Any] = ()):
        self.outputs = list(outputs)
        self.calls: list[tuple[list[ContentPart], str, dict | None]] = []

    async def generate(self, parts, instruction, response_schema=None) -> ExtractionResponse:
        self.calls.append((list(parts), instruction, response_schema))
        output = self.outputs.pop(0) if self.outputs else "{}"
        if isinstance(output, Exception):
            raise output
        if isinstance(output, ExtractionResponse):
            return output
        text = output if isinstance(output, str) else json.dumps(output)
        return ExtractionResponse(text=text, model="fake")


def rate_transport(rates: dict[str, float], calls: list[str] | None = None) -> httpx.MockTransport:
    """Mock ExchangeRate-API answering ``{"FROM-TO": rate}`` and failing otherwise."""

    def handler(request: httpx.Request) -> httpx.Response:
        base, quote = request.url.path.rstrip("/").split("/")[-2:]
        if calls is not None:
            calls.append(f"{base}-{quote}")
        rate = rates.get(f"{base}-{quote}")
        if rate is None:
            return httpx.Response(404, json={"result": "error", "error-type": "unsupported-code"})
        return httpx.Response(200, json={"result": "success", "conversion_rate": rate})

    return httpx.MockTransport(handler)


def make_converter(rates: dict[str, float] | None = None, calls: list[str] | None = None) -> CurrencyConverter:
    client = ExchangeRateClient(
        api_key="test-key",
        base_url="https://fx.test/v6",
        client=httpx.AsyncClient(transport=rate_transport(rates or {}, calls)),
    )
    return CurrencyConverter(client=client, cache=RateCache(), reporting_currency="AED")


async def no_sleep(seconds: float) -> None:
    return None


@pytest.fixture
def settings() -> Settings:
    """Settings isolated from the environment and any .env file."""
    return Settings(
        _env_file=None,
        openai_api_key="test",
        exchange_rate_api_key="test-key",
        batch_delay_seconds=0,
        statement_page_delay_seconds=0,
    )


@pytest.fixture
def fx_calls() -> list[str]:
    return []


@pytest.fixture
def converter_factory(fx_calls):
    """Build converters over a mock rate table, recording lookups in fx_calls."""
    return lambda rates: make_converter(rates, fx_calls)


@pytest.fixture
def converter(fx_calls) -> CurrencyConverter:
    """Converter with USD->AED 3.6725 and EUR->AED 4.0."""
    return make_converter({"USD-AED": 3.6725, "EUR-AED": 4.0}, fx_calls)


@pytest.fixture
def fake_service() -> FakeExtractionService:
    return FakeExtractionService()


@pytest.fixture
def pipeline(settings, converter, fake_service) -> ReconciliationPipeline:
    return ReconciliationPipeline(
        extraction_service=fake_service,
        converter=converter,
        settings=settings,
        sleep=no_sleep,
    )


@pytest.fixture
def statement_rows() -> list[dict]:
    """A small, consistent statement in chronological order (opening 1000)."""
    return [
        {"date": "01/10/2023", "description": "DEWA BILL", "debit": 100, "credit": 0, "balance": 900},
        {"date": "02/10/2023", "description": "POS SETTLEMENT", "debit": 0, "credit": 50, "balance": 950},
        {"date": "03/10/2023", "description": "SALARY OCT", "debit": 200, "credit": 0, "balance": 750},
    ]


@pytest.fixture
def swapped_rows(statement_rows) -> list[dict]:
    """Same statement with debit and credit extracted into each other's columns."""
    return [{**row, "debit": row["credit"], "credit": row["debit"]} for row in statement_rows]


@pytest.fixture
def sample_invoice() -> Invoice:
    """A USD purchase invoice whose grand total was not printed."""
    return Invoice(
        invoice_id="INV-2024-001",
        vendor_name="Global Supplies Inc",
        customer_name="Acme Trading LLC",
        vendor_trn="100200300400500",
        customer_trn="100999888777003",
        invoice_date="2024-01-15",
        currency="USD",
        line_items=[
            LineItem(
                description="Widget A",
                quantity=Decimal("10"),
                unit_price=Decimal("10.00"),
                tax_amount=Decimal("5.00"),
                total=Decimal("105.00"),
            ),
            LineItem(
                description="Widget B",
                quantity=Decimal("2"),
                unit_price=Decimal("50.00"),
                tax_amount=Decimal("5.00"),
                total=Decimal("105.00"),
            ),
        ],
    )


@pytest.fixture
def sample_transaction() -> Transaction:
    return Transaction(
        date="12 Oct 2023",
        description="Card purchase",
        debit=Decimal("100"),
        balance=Decimal("900"),
        currency="USD",
    )
