"""LLM prompts for document extraction."""

from .extraction import (
    BANK_STATEMENT_SCHEMA,
    INVOICE_SCHEMA,
    TRIAL_BALANCE_SCHEMA,
    format_known_vendors,
    get_bank_statement_prompt,
    get_invoice_prompt,
    get_trial_balance_prompt,
    mask_invoice_id,
)

__all__ = [
    "BANK_STATEMENT_SCHEMA",
    "INVOICE_SCHEMA",
    "TRIAL_BALANCE_SCHEMA",
    "format_known_vendors",
    "get_bank_statement_prompt",
    "get_invoice_prompt",
    "get_trial_balance_prompt",
    "mask_invoice_id",
]
