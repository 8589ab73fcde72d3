"""Reconciliation endpoints for raw extraction output and records."""

from decimal import Decimal
from functools import lru_cache
from typing import Annotated, Any

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from ...core.models import InvoiceBatchResult, StatementResult, Transaction, TrialBalanceResult
from ...core.pipeline import ReconciliationPipeline
from ...utils.json_repair import clean_text, safe_parse

router = APIRouter(prefix="/reconcile", tags=["reconcile"])


@lru_cache
def get_pipeline() -> ReconciliationPipeline:
    """Process-wide pipeline (and rate cache)."""
    return ReconciliationPipeline()


PipelineDep = Annotated[ReconciliationPipeline, Depends(get_pipeline)]


class RequestModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ParseRequest(RequestModel):
    """Raw extraction text."""

    text: str


class ParseResponse(RequestModel):
    parsed: Any = None
    ok: bool


class TransactionsRequest(RequestModel):
    """Raw transaction rows plus statement context."""

    transactions: list[dict[str, Any]]
    opening_balance: Decimal | None = None
    currency: str | None = None
    start_date: str | None = None
    end_date: str | None = None


class InvoicesRequest(RequestModel):
    invoices: list[dict[str, Any]]
    company_name: str | None = None
    company_trn: str | None = None


class TrialBalanceRequest(RequestModel):
    entries: list[dict[str, Any]]


class CategorizeRequest(RequestModel):
    transactions: list[dict[str, Any]]


class CategorizeResponse(RequestModel):
    transactions: list[Transaction] = Field(default_factory=list)


class RateResponse(RequestModel):
    from_currency: str
    to_currency: str
    rate: Decimal


@router.post("/parse", response_model=ParseResponse)
async def parse_output(request: ParseRequest) -> ParseResponse:
    """
    Repair and parse raw extraction text.

    Returns ``ok: false`` with a null value when the text cannot be repaired.
    """
    if not clean_text(request.text):
        raise ValueError("text is empty")
    parsed = safe_parse(request.text)
    return ParseResponse(parsed=parsed, ok=parsed is not None)


@router.post("/transactions", response_model=StatementResult)
async def reconcile_transactions(request: TransactionsRequest, pipeline: PipelineDep) -> StatementResult:
    """Deduplicate, direction-check and convert a transaction stream."""
    return await pipeline.reconcile_transactions(
        request.transactions,
        opening_balance=request.opening_balance or 0,
        fallback_currency=request.currency,
        start_date=request.start_date,
        end_date=request.end_date,
    )


@router.post("/invoices", response_model=InvoiceBatchResult)
async def reconcile_invoices(request: InvoicesRequest, pipeline: PipelineDep) -> InvoiceBatchResult:
    """Reconcile totals, convert and classify invoices."""
    return await pipeline.normalize_invoices(
        request.invoices,
        company_name=request.company_name,
        company_trn=request.company_trn,
    )


@router.post("/trial-balance", response_model=TrialBalanceResult)
async def reconcile_trial_balance(request: TrialBalanceRequest, pipeline: PipelineDep) -> TrialBalanceResult:
    """Categorize, filter and deduplicate trial balance rows."""
    return TrialBalanceResult(entries=pipeline.normalize_trial_balance(request.entries))


@router.post("/categorize", response_model=CategorizeResponse)
async def categorize_transactions(request: CategorizeRequest, pipeline: PipelineDep) -> CategorizeResponse:
    """Apply keyword rules to uncategorized transactions."""
    return CategorizeResponse(transactions=pipeline.categorize_transactions(request.transactions))


@router.get("/rate", response_model=RateResponse)
async def exchange_rate(
    pipeline: PipelineDep,
    from_currency: Annotated[str, Query(alias="from")],
    to_currency: Annotated[str | None, Query(alias="to")] = None,
) -> RateResponse:
    """Conversion rate between two currencies (identity when unresolvable)."""
    target = (to_currency or pipeline.reporting_currency).upper()
    rate = await pipeline.converter.rate(from_currency, target)
    return RateResponse(from_currency=from_currency.upper(), to_currency=target, rate=rate)
