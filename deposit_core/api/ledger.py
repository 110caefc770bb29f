"""
Token ledger endpoints
"""

from fastapi import APIRouter, Depends, Query, status

from .system import SettlementSystem, get_settlement_system, require_admin
from .schemas import (
    IssueRequest, RedeemRequest, TransferRequest,
    entry_to_dict, page_to_dict, summary_to_dict
)


router = APIRouter()


@router.get("/balance/{customer_id}")
def get_balance(
    customer_id: str,
    system: SettlementSystem = Depends(get_settlement_system)
):
    """Current token balance for a customer"""
    return {
        "customer_id": customer_id,
        "balance": str(system.ledger.balance(customer_id))
    }


@router.get("/history/{customer_id}")
def get_history(
    customer_id: str,
    page: int = Query(0, ge=0),
    size: int = Query(20, ge=1, le=500),
    system: SettlementSystem = Depends(get_settlement_system)
):
    """Customer ledger entries, newest first"""
    return page_to_dict(system.ledger.history(customer_id, page, size))


@router.get("/history", dependencies=[Depends(require_admin)])
def get_all_history(
    page: int = Query(0, ge=0),
    size: int = Query(20, ge=1, le=500),
    system: SettlementSystem = Depends(get_settlement_system)
):
    """All ledger entries, newest first (admin)"""
    return page_to_dict(system.ledger.all_history(page, size))


@router.get("/summary", dependencies=[Depends(require_admin)])
def get_summary(system: SettlementSystem = Depends(get_settlement_system)):
    """Ledger total versus on-chain supply (admin)"""
    return summary_to_dict(system.reconciliation_reporter.summary())


@router.post("/issue", status_code=status.HTTP_201_CREATED, dependencies=[Depends(require_admin)])
def issue_tokens(
    request: IssueRequest,
    system: SettlementSystem = Depends(get_settlement_system)
):
    """Issue whole tokens to a customer"""
    entry = system.ledger.issue(request.customer_id, request.amount, request.reference)
    return entry_to_dict(entry)


@router.post("/redeem", dependencies=[Depends(require_admin)])
def redeem_tokens(
    request: RedeemRequest,
    system: SettlementSystem = Depends(get_settlement_system)
):
    """Redeem whole tokens from a customer"""
    entry = system.ledger.redeem(request.customer_id, request.amount, request.reference)
    return entry_to_dict(entry)


@router.post("/transfer", dependencies=[Depends(require_admin)])
def transfer_tokens(
    request: TransferRequest,
    system: SettlementSystem = Depends(get_settlement_system)
):
    """Move whole tokens between customers"""
    out_entry, in_entry = system.ledger.transfer(
        request.from_customer_id, request.to_customer_id,
        request.amount, request.reference
    )
    return {
        "debit": entry_to_dict(out_entry),
        "credit": entry_to_dict(in_entry)
    }
