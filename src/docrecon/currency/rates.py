"""Exchange rate lookup, caching and amount conversion."""

import logging
import threading
from decimal import Decimal

import httpx

from ..core.models import Invoice, Transaction, round_money, to_decimal
from .normalizer import is_known_currency, normalize_currency

logger = logging.getLogger(__name__)

IDENTITY_RATE = Decimal("1")


class RateCache:
    """
    Memo of successful exchange rates keyed ``"{FROM}-{TO}"``.

    Construct one per process or per request and pass it to the converter.
    Access is lock-guarded so threaded servers can share an instance.
    """

    def __init__(self, seed: dict[str, Decimal] | None = None):
        self._lock = threading.Lock()
        self._rates: dict[str, Decimal] = {}
        for key, rate in (seed or {}).items():
            self._rates[key.upper()] = to_decimal(rate)

    @staticmethod
    def key(base: str, quote: str) -> str:
        return f"{base.upper()}-{quote.upper()}"

    def get(self, base: str, quote: str) -> Decimal | None:
        with self._lock:
            return self._rates.get(self.key(base, quote))

    def set(self, base: str, quote: str, rate: Decimal) -> None:
        with self._lock:
            self._rates[self.key(base, quote)] = rate

    def clear(self) -> None:
        with self._lock:
            self._rates.clear()

    def snapshot(self) -> dict[str, Decimal]:
        with self._lock:
            return dict(self._rates)

    def __contains__(self, key: str) -> bool:
        with self._lock:
            return key.upper() in self._rates

    def __len__(self) -> int:
        with self._lock:
            return len(self._rates)


class ExchangeRateClient:
    """
    Client for the ExchangeRate-API pair endpoint.

    ``GET {base_url}/{api_key}/pair/{BASE}/{QUOTE}`` answers
    ``{"result": "success", "conversion_rate": 3.6725}``; any other shape is
    a failure.
    """

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://v6.exchangerate-api.com/v6",
        timeout: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._client = client

    @classmethod
    def from_settings(cls, settings, client: httpx.AsyncClient | None = None) -> "ExchangeRateClient":
        return cls(
            api_key=settings.exchange_rate_api_key,
            base_url=settings.exchange_rate_base_url,
            timeout=settings.fx_timeout_seconds,
            client=client,
        )

    def pair_url(self, base: str, quote: str) -> str:
        return f"{self.base_url}/{self.api_key}/pair/{base.upper()}/{quote.upper()}"

    async def fetch_rate(self, base: str, quote: str) -> Decimal | None:
        """
        Fetch one conversion rate.

        Returns None on any failure (network error, bad payload, unsuccessful
        result) after logging a warning. Never raises.
        """
        url = self.pair_url(base, quote)
        try:
            if self._client is not None:
                response = await self._client.get(url, timeout=self.timeout)
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.get(url)
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"Exchange rate fetch error for {base}->{quote}: {e}")
            return None

        rate = data.get("conversion_rate") if isinstance(data, dict) else None
        result = data.get("result") if isinstance(data, dict) else None
        if result != "success" or isinstance(rate, bool) or not isinstance(rate, (int, float)):
            logger.warning(
                f"Exchange rate API failed for {base}->{quote}. Result: {result}. Falling back to 1.0."
            )
            return None

        logger.info(f"Exchange rate fetched for {base}->{quote}: {rate}")
        return Decimal(str(rate))


class CurrencyConverter:
    """
    Convert amounts into the reporting currency.

    Unresolvable currencies and failed lookups fall back to an identity rate
    so a single bad token never stops a document.
    """

    def __init__(
        self,
        client: ExchangeRateClient,
        cache: RateCache | None = None,
        reporting_currency: str = "AED",
    ):
        self.client = client
        self.cache = cache if cache is not None else RateCache()
        self.reporting_currency = reporting_currency.upper()

    async def rate(self, from_currency: str | None, to_currency: str | None = None) -> Decimal:
        """Rate from ``from_currency`` to ``to_currency`` (default: reporting currency)."""
        target = (to_currency or self.reporting_currency).strip().upper()
        if not is_known_currency(from_currency) or str(from_currency).strip().upper() == target:
            return IDENTITY_RATE

        base = normalize_currency(from_currency)
        if base is None:
            logger.warning(f'Could not normalize currency from "{from_currency}". Defaulting to 1.0.')
            return IDENTITY_RATE
        if base == target:
            return IDENTITY_RATE

        cached = self.cache.get(base, target)
        if cached is not None:
            return cached

        fetched = await self.client.fetch_rate(base, target)
        if fetched is None:
            return IDENTITY_RATE

        self.cache.set(base, target, fetched)
        return fetched

    async def convert(self, amount, from_currency: str | None, to_currency: str | None = None) -> Decimal:
        """Convert and round to cents."""
        rate = await self.rate(from_currency, to_currency)
        return round_money(to_decimal(amount) * rate)

    async def convert_transaction(self, txn: Transaction, fallback_currency: str | None = None) -> Transaction:
        """
        Express a transaction in the reporting currency.

        The row's own currency wins; ``fallback_currency`` (the page or
        statement currency) is used when the row has none. Original amounts
        are kept only when a real conversion happened.
        """
        source = txn.currency if is_known_currency(txn.currency) else fallback_currency
        rate = await self.rate(source)

        if rate == IDENTITY_RATE or not is_known_currency(source):
            return txn.model_copy(update={"currency": self.reporting_currency})

        return txn.model_copy(
            update={
                "currency": self.reporting_currency,
                "debit": round_money(txn.debit * rate),
                "credit": round_money(txn.credit * rate),
                "balance": round_money(txn.balance * rate),
                "original_currency": normalize_currency(source),
                "original_debit": txn.debit,
                "original_credit": txn.credit,
                "original_balance": txn.balance,
            }
        )

    async def convert_invoice(self, invoice: Invoice) -> Invoice:
        """Fill the reporting-currency totals the document did not state."""
        pairs = (
            ("total_before_tax_aed", invoice.total_before_tax),
            ("total_tax_aed", invoice.total_tax),
            ("zero_rated_aed", invoice.zero_rated),
            ("total_amount_aed", invoice.total_amount),
        )
        missing = [(name, amount) for name, amount in pairs if getattr(invoice, name) is None]
        if not missing:
            return invoice

        rate = await self.rate(invoice.currency)
        return invoice.model_copy(
            update={name: round_money(amount * rate) for name, amount in missing}
        )
