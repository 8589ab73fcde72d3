"""Tests for exchange rate lookup and conversion."""

import asyncio
from decimal import Decimal

import httpx

from docrecon.core.models import Invoice, Transaction
from docrecon.currency import ExchangeRateClient, RateCache


class TestRateCache:
    """Test cases for RateCache."""

    def test_keys_are_case_insensitive(self):
        """Test that pairs are stored under upper-case keys."""
        cache = RateCache()
        cache.set("usd", "aed", Decimal("3.6725"))

        assert cache.get("USD", "AED") == Decimal("3.6725")
        assert "usd-aed" in cache
        assert len(cache) == 1

    def test_seed_and_clear(self):
        """Test seeding and clearing."""
        cache = RateCache(seed={"eur-aed": "4.0"})
        assert cache.snapshot() == {"EUR-AED": Decimal("4.0")}

        cache.clear()
        assert len(cache) == 0


class TestExchangeRateClient:
    """Test cases for ExchangeRateClient."""

    def _client(self, handler) -> ExchangeRateClient:
        return ExchangeRateClient(
            api_key="k",
            base_url="https://fx.test/v6/",
            client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        )

    def test_pair_url(self):
        """Test the pair endpoint layout."""
        client = ExchangeRateClient(api_key="k", base_url="https://fx.test/v6/")
        assert client.pair_url("usd", "aed") == "https://fx.test/v6/k/pair/USD/AED"

    def test_success(self):
        """Test that a success payload yields the rate."""
        client = self._client(
            lambda request: httpx.Response(200, json={"result": "success", "conversion_rate": 3.6725})
        )
        assert asyncio.run(client.fetch_rate("USD", "AED")) == Decimal("3.6725")

    def test_error_payload(self):
        """Test that an unsuccessful result yields None."""
        client = self._client(lambda request: httpx.Response(403, json={"result": "error"}))
        assert asyncio.run(client.fetch_rate("USD", "AED")) is None

    def test_invalid_body(self):
        """Test that a non-JSON body yields None."""
        client = self._client(lambda request: httpx.Response(502, text="<html>Bad gateway</html>"))
        assert asyncio.run(client.fetch_rate("USD", "AED")) is None

    def test_network_error(self):
        """Test that transport failures yield None."""

        def handler(request):
            raise httpx.ConnectError("unreachable", request=request)

        assert asyncio.run(self._client(handler).fetch_rate("USD", "AED")) is None


class TestCurrencyConverter:
    """Test cases for CurrencyConverter."""

    def test_same_currency_is_identity(self, converter, fx_calls):
        """Test that no lookup happens for the reporting currency."""
        assert asyncio.run(converter.rate("AED")) == Decimal("1")
        assert fx_calls == []

    def test_unknown_currency_is_identity(self, converter, fx_calls):
        """Test that placeholders and unresolvable tokens use the identity rate."""
        assert asyncio.run(converter.rate("UNKNOWN")) == Decimal("1")
        assert asyncio.run(converter.rate("Monopoly money")) == Decimal("1")
        assert fx_calls == []

    def test_rates_are_cached(self, converter, fx_calls):
        """Test that a successful rate is fetched once."""

        async def run():
            first = await converter.rate("USD")
            second = await converter.rate("$")
            return first, second

        assert asyncio.run(run()) == (Decimal("3.6725"), Decimal("3.6725"))
        assert fx_calls == ["USD-AED"]

    def test_failures_are_not_cached(self, converter, fx_calls):
        """Test that a failed lookup is retried on the next request."""

        async def run():
            await converter.rate("GBP")
            return await converter.rate("GBP")

        assert asyncio.run(run()) == Decimal("1")
        assert fx_calls == ["GBP-AED", "GBP-AED"]

    def test_convert_rounds_to_cents(self, converter):
        """Test half-up rounding of converted amounts."""
        assert asyncio.run(converter.convert("10.00", "USD")) == Decimal("36.73")

    def test_convert_transaction_keeps_originals(self, converter, sample_transaction):
        """Test that converted rows keep the pre-conversion amounts."""
        converted = asyncio.run(converter.convert_transaction(sample_transaction))

        assert converted.currency == "AED"
        assert converted.debit == Decimal("367.25")
        assert converted.balance == Decimal("3305.25")
        assert converted.original_currency == "USD"
        assert converted.original_debit == Decimal("100")
        assert converted.original_balance == Decimal("900")

    def test_convert_transaction_uses_fallback_currency(self, converter):
        """Test that the page currency applies when the row has none."""
        txn = Transaction(date="01/10/2023", description="x", credit=Decimal("10"))
        converted = asyncio.run(converter.convert_transaction(txn, fallback_currency="EUR"))

        assert converted.credit == Decimal("40.00")
        assert converted.original_currency == "EUR"

    def test_original_currency_is_resolved_code(self, converter):
        """Test that the pre-conversion currency is stored as its ISO code."""
        txn = Transaction(date="01/10/2023", description="x", debit=Decimal("10"), currency="US$")
        converted = asyncio.run(converter.convert_transaction(txn))

        assert converted.debit == Decimal("36.73")
        assert converted.original_currency == "USD"

    def test_unconverted_transaction_has_no_originals(self, converter):
        """Test that identity conversions only relabel the currency."""
        txn = Transaction(date="01/10/2023", description="x", debit=Decimal("5"), currency="UNKNOWN")
        converted = asyncio.run(converter.convert_transaction(txn))

        assert converted.currency == "AED"
        assert converted.debit == Decimal("5")
        assert not converted.is_converted

    def test_convert_invoice_fills_missing_totals(self, converter):
        """Test that only missing reporting-currency totals are computed."""
        invoice = Invoice(
            invoice_id="1",
            currency="EUR",
            total_before_tax=Decimal("100"),
            total_tax=Decimal("5"),
            total_amount=Decimal("105"),
            total_amount_aed=Decimal("420.50"),
        )
        converted = asyncio.run(converter.convert_invoice(invoice))

        assert converted.total_before_tax_aed == Decimal("400.00")
        assert converted.total_tax_aed == Decimal("20.00")
        assert converted.zero_rated_aed == Decimal("0.00")
        assert converted.total_amount_aed == Decimal("420.50")

    def test_shared_cache_across_converters(self, converter_factory, fx_calls):
        """Test that converters sharing a cache share fetched rates."""
        cache = RateCache()
        first = converter_factory({"USD-AED": 3.6725})
        second = converter_factory({})
        first.cache = second.cache = cache

        asyncio.run(first.rate("USD"))
        assert asyncio.run(second.rate("USD")) == Decimal("3.6725")
        assert fx_calls == ["USD-AED"]
