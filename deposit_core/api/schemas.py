"""
Pydantic schemas for API requests, and response serializers

Monetary amounts travel as decimal strings or integers, never floats.
"""

from datetime import datetime
from typing import Any, Dict, Optional, Union
from pydantic import BaseModel, Field, StrictInt, StrictStr

from ..accounts import FixedDepositAccount
from ..calculator import FdCalculation
from ..ledger import LedgerEntry, LedgerPage
from ..reconciliation import ReconciliationSummary
from ..redemption import RedemptionQuote, RedemptionReceipt


WireAmount = Union[StrictStr, StrictInt]


# Ledger schemas
class IssueRequest(BaseModel):
    customer_id: str
    amount: WireAmount = Field(..., description="Whole token amount as string or integer")
    reference: Optional[str] = None


class RedeemRequest(BaseModel):
    customer_id: str
    amount: WireAmount = Field(..., description="Whole token amount as string or integer")
    reference: Optional[str] = None


class TransferRequest(BaseModel):
    from_customer_id: str
    to_customer_id: str
    amount: WireAmount = Field(..., description="Whole token amount as string or integer")
    reference: Optional[str] = None


# Redemption schemas
class ProcessRedemptionRequest(BaseModel):
    reference: Optional[str] = None


# FD calculator schemas
class FdCalculationRequest(BaseModel):
    product_code: str
    principal_amount: WireAmount = Field(..., description="Decimal amount as string")
    tenure_months: int = Field(..., gt=0)
    compounding: Optional[str] = Field(None, description="Override: simple, daily, monthly, quarterly, semi_annual, annual")


# Account schemas
class CreateAccountRequest(BaseModel):
    customer_id: str
    product_code: str
    principal_amount: WireAmount = Field(..., description="Whole token principal")
    tenure_months: int = Field(..., gt=0)
    account_number: Optional[str] = None


class UpgradeAccountRequest(BaseModel):
    product_code: Optional[str] = None
    interest_rate: Optional[StrictStr] = None  # Decimal as string
    tenure_months: Optional[int] = Field(None, gt=0)
    principal_amount: Optional[WireAmount] = None


class CloseAccountRequest(BaseModel):
    reason: str = "Closed by bank officer"


class SuspendAccountRequest(BaseModel):
    reason: str


# Admin clock schemas
class SetTimeRequest(BaseModel):
    system_time: datetime = Field(..., description="ISO-8601 instant; naive values are taken as UTC")


class AdvanceTimeRequest(BaseModel):
    seconds: int = 0


# Response serializers
def entry_to_dict(entry: LedgerEntry) -> Dict[str, Any]:
    return {
        "id": entry.id,
        "customer_id": entry.customer_id,
        "change_amount": str(entry.change_amount),
        "balance_after": str(entry.balance_after),
        "operation": entry.operation.value,
        "transaction_hash": entry.transaction_hash,
        "reference": entry.reference,
        "counterparty_id": entry.counterparty_id,
        "created_at": entry.created_at.isoformat()
    }


def page_to_dict(page: LedgerPage) -> Dict[str, Any]:
    return {
        "entries": [entry_to_dict(e) for e in page.entries],
        "page": page.page,
        "size": page.size,
        "total": page.total,
        "total_pages": page.total_pages
    }


def summary_to_dict(summary: ReconciliationSummary) -> Dict[str, Any]:
    return {
        "ledger_total": str(summary.ledger_total),
        "on_chain_supply": str(summary.on_chain_supply),
        "variance": str(summary.variance),
        "balanced": summary.is_balanced,
        "customer_count": summary.customer_count,
        "contract_address": summary.contract_address,
        "treasury_address": summary.treasury_address,
        "as_of": summary.as_of.isoformat()
    }


def quote_to_dict(quote: RedemptionQuote) -> Dict[str, Any]:
    return {
        "account_id": quote.account_id,
        "account_number": quote.account_number,
        "customer_id": quote.customer_id,
        "currency": quote.currency,
        "principal_amount": str(quote.principal),
        "interest_rate": str(quote.interest_rate),
        "accrued_interest": str(quote.accrued_interest),
        "maturity_amount": str(quote.maturity_amount),
        "penalty_amount": str(quote.penalty),
        "net_payable": str(quote.net_payable),
        "is_matured": quote.is_matured,
        "redemption_type": quote.redemption_type.value,
        "redemption_eligibility": quote.eligibility.value,
        "days_since_opening": quote.days_since_opening,
        "days_until_maturity": quote.days_until_maturity,
        "maturity_date": quote.maturity_date.isoformat(),
        "as_of": quote.as_of.isoformat(),
        "warnings": list(quote.warnings)
    }


def receipt_to_dict(receipt: RedemptionReceipt) -> Dict[str, Any]:
    return {
        "account_id": receipt.account_id,
        "customer_id": receipt.customer_id,
        "redemption_type": receipt.redemption_type.value,
        "accrued_interest": str(receipt.accrued_interest),
        "penalty_amount": str(receipt.penalty),
        "net_payable": str(receipt.net_payable),
        "tokens_redeemed": str(receipt.tokens_redeemed),
        "unsettled_fraction": str(receipt.unsettled_fraction),
        "ledger_entry_id": receipt.ledger_entry_id,
        "transaction_hash": receipt.transaction_hash,
        "reference": receipt.reference,
        "closed_at": receipt.closed_at.isoformat()
    }


def calculation_to_dict(calc: FdCalculation) -> Dict[str, Any]:
    return {
        "product_code": calc.product_code,
        "currency": calc.currency,
        "principal_amount": str(calc.principal_amount),
        "tenure_months": calc.tenure_months,
        "interest_rate": str(calc.interest_rate),
        "interest_earned": str(calc.interest_earned),
        "maturity_amount": str(calc.maturity_amount),
        "effective_rate": str(calc.effective_rate),
        "compounding": calc.compounding.value,
        "compounding_frequency": calc.compounding_frequency,
        "start_date": calc.start_date.isoformat(),
        "maturity_date": calc.maturity_date.isoformat(),
        "pricing_rule_id": calc.pricing_rule_id,
        "fee": str(calc.fee)
    }


def account_to_dict(account: FixedDepositAccount) -> Dict[str, Any]:
    def optional(value):
        return str(value) if value is not None else None

    return {
        "id": account.id,
        "account_number": account.account_number,
        "customer_id": account.customer_id,
        "product_code": account.product_code,
        "principal_amount": str(account.principal_amount),
        "interest_rate": str(account.interest_rate),
        "tenure_months": account.tenure_months,
        "currency": account.currency.code,
        "compounding": account.compounding.value,
        "status": account.status.value,
        "opened_at": account.opened_at.isoformat(),
        "maturity_date": account.maturity_date.isoformat(),
        "premature_penalty_rate": str(account.premature_penalty_rate),
        "premature_penalty_grace_days": account.premature_penalty_grace_days,
        "pricing_rule_id": account.pricing_rule_id,
        "fee_amount": str(account.fee_amount),
        "accrued_interest_applied": optional(account.accrued_interest_applied),
        "penalty_applied": optional(account.penalty_applied),
        "net_payout": optional(account.net_payout),
        "redemption_entry_id": account.redemption_entry_id,
        "closed_at": account.closed_at.isoformat() if account.closed_at else None,
        "closure_reason": account.closure_reason
    }
