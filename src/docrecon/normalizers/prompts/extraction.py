"""Extraction prompts and response shape hints."""

import json
import re
from typing import Iterable

BANK_STATEMENT_PROMPT = '''You are an expert data entry assistant extracting bank statement pages into JSON.
{period_context}
## 1. SUMMARY
Extract account holder, account number, statement period, opening balance, closing balance,
total withdrawals, total deposits and currency.

**STRICT BALANCE EXTRACTION:**
- Look for labels such as "Opening Balance", "Balance Brought Forward", "Closing Balance",
  "Closing Available Balance", "Ending Balance", "Balance as at", "Available Balance".
- Map the nearest number to the label.
- Extract ONLY if explicitly written. Do NOT calculate. If not found, return null.

## 2. TRANSACTIONS
Extract the transaction table row by row.
- **date**: as printed, preferably DD/MM/YYYY
- **description**: the full description (merge wrapped lines)
- **debit**: money OUT (withdrawals, payments, charges, fees). Use 0.00 if empty.
- **credit**: money IN (deposits, refunds, salary, transfers in). Use 0.00 if empty.
- **balance**: running balance ONLY if a balance column exists, else null
- **currency**: currency printed for this row, else null
- **confidence**: 0-100, how sure you are about the row

**STRICT COLUMN MAPPING:** use the column headers. "Debit/Dr/Withdrawal" is debit,
"Credit/Cr/Deposit" is credit. For signed single-column layouts, negative is debit.

## 3. CURRENCY
- **DO NOT DEFAULT TO AED.**
- Look for ISO codes (AED, USD, EUR, INR), symbols ($, €, £, ₹) and words ("Dirhams", "US Dollars").
- If no currency information exists anywhere, use "UNKNOWN".

## 4. OUTPUT
Return ONLY valid JSON matching the JSON shape below. Do not invent values.'''

INVOICE_PROMPT = '''You are an expert invoice parser. Extract every invoice in these pages.
{company_context}
## Fields (per invoice)
- invoiceId
- invoiceDate (DD/MM/YYYY)
- dueDate
- vendorName, vendorTrn
- customerName, customerTrn
- totalBeforeTax, totalTax, zeroRated, totalAmount
- totalBeforeTaxAED, totalTaxAED, zeroRatedAED, totalAmountAED (ONLY when printed on the document)
- currency (ISO code as printed: AED, USD, EUR...)
- invoiceType ("sales" or "purchase")
- lineItems: every row with description, quantity, unitPrice, subtotal, taxRate, taxAmount, total

**CRITICAL:** summary rows (Subtotal, VAT, Total) are NOT line items.
{known_vendors}
Return ONLY valid JSON matching the JSON shape below.'''

COMPANY_CONTEXT = '''
UserCompany: "{name}" UserTRN: "{trn}"
- If the VENDOR name/TRN matches UserCompany, invoiceType is "sales".
- If the CUSTOMER name/TRN matches UserCompany, invoiceType is "purchase".
'''

TRIAL_BALANCE_PROMPT = '''ACT AS A DATA ENTRY AI. Extract the trial balance table EXACTLY as it appears.
EXTRACT EVERY SINGLE ROW. DO NOT SKIP OR SUMMARIZE.

## 1. COLUMN MAPPING
- **account**: the account name text
- **debit**: "Debit", "Net Debit", "Dr"
- **credit**: "Credit", "Net Credit", "Cr"
- A single "Amount" column: "Dr" or positive goes to debit; "Cr", brackets "(100)" or negative go to credit.

## 2. CATEGORY (HEADER DRIVEN)
- Section headers ("ASSETS", "LIABILITIES", "EQUITY", "INCOME", "EXPENSES", "Current Assets"...)
  apply to every row below them until the next header.
- Map to "Assets", "Liabilities", "Equity", "Income" or "Expenses".
- If there are no headers, infer the category from the account name.

## 3. EXCLUSIONS
- IGNORE rows starting with "Total", "Grand Total", "Sum", "Difference", "Balance".
- IGNORE page numbers, footers and column header rows.

## 4. OUTPUT
Copy numbers exactly. Return ONLY valid JSON matching the JSON shape below.'''


BANK_STATEMENT_SCHEMA = {
    "summary": {
        "accountHolder": "string|null",
        "accountNumber": "string|null",
        "statementPeriod": "string|null",
        "openingBalance": "number|null",
        "closingBalance": "number|null",
        "totalWithdrawals": "number|null",
        "totalDeposits": "number|null",
    },
    "transactions": [
        {
            "date": "string",
            "description": "string",
            "debit": "string",
            "credit": "string",
            "balance": "string|null",
            "currency": "string|null",
            "category": "string|null",
            "confidence": "number|null",
        }
    ],
    "currency": "string",
}

INVOICE_SCHEMA = {
    "invoices": [
        {
            "invoiceId": "string",
            "invoiceDate": "string",
            "dueDate": "string|null",
            "vendorName": "string",
            "vendorTrn": "string|null",
            "customerName": "string|null",
            "customerTrn": "string|null",
            "totalBeforeTax": "number",
            "totalTax": "number",
            "zeroRated": "number|null",
            "totalAmount": "number",
            "totalBeforeTaxAED": "number|null",
            "totalTaxAED": "number|null",
            "zeroRatedAED": "number|null",
            "totalAmountAED": "number|null",
            "currency": "string",
            "invoiceType": "sales|purchase",
            "lineItems": [
                {
                    "description": "string",
                    "quantity": "number|null",
                    "unitPrice": "number|null",
                    "subtotal": "number|null",
                    "taxRate": "number|null",
                    "taxAmount": "number|null",
                    "total": "number",
                }
            ],
            "confidence": "number|null",
        }
    ]
}

TRIAL_BALANCE_SCHEMA = {
    "entries": [
        {
            "account": "string",
            "debit": "number|null",
            "credit": "number|null",
            "category": "string|null",
        }
    ]
}


def get_bank_statement_prompt(start_date: str | None = None, end_date: str | None = None) -> str:
    """
    Get the bank statement page prompt.

    The statement period is given as context only; filtering happens after
    extraction so the model never hides rows.
    """
    period_context = ""
    if start_date and end_date:
        period_context = (
            f"\nContext: the statement period is likely {start_date} to {end_date}, "
            "but EXTRACT ALL transactions found.\n"
        )
    return BANK_STATEMENT_PROMPT.format(period_context=period_context)


def mask_invoice_id(invoice_id: str | None) -> str:
    """Turn an invoice number into a pattern ("INV-2024-001" -> "INV-####-###")."""
    return re.sub(r"\d", "#", invoice_id or "")


def format_known_vendors(known_vendors: Iterable[dict] | None) -> str:
    """Describe previously seen vendors and their invoice number patterns."""
    hints = []
    for vendor in known_vendors or []:
        name = vendor.get("vendorName") or vendor.get("vendor_name")
        if not name:
            continue
        hints.append(
            {
                "name": name,
                "idPattern": mask_invoice_id(vendor.get("invoiceId") or vendor.get("invoice_id")),
            }
        )
    if not hints:
        return ""
    return f"\nKnown vendors: {json.dumps(hints)}.\n"


def get_invoice_prompt(
    company_name: str | None = None,
    company_trn: str | None = None,
    known_vendors: Iterable[dict] | None = None,
) -> str:
    """
    Get the invoice extraction prompt.

    Args:
        company_name: Declared company, used for the sales/purchase hint
        company_trn: Declared company TRN
        known_vendors: Earlier invoices (dicts with vendorName/invoiceId)

    Returns:
        Formatted prompt
    """
    company_context = ""
    if company_name or company_trn:
        company_context = COMPANY_CONTEXT.format(name=company_name or "N/A", trn=company_trn or "N/A")
    return INVOICE_PROMPT.format(
        company_context=company_context,
        known_vendors=format_known_vendors(known_vendors),
    )


def get_trial_balance_prompt() -> str:
    """Get the trial balance extraction prompt."""
    return TRIAL_BALANCE_PROMPT
