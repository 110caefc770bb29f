"""
Fixed deposit account endpoints
"""

from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, Depends, status

from .system import SettlementSystem, get_settlement_system, require_admin
from .schemas import (
    CreateAccountRequest, UpgradeAccountRequest, CloseAccountRequest,
    SuspendAccountRequest, account_to_dict
)
from ..currency import decimal_from_string
from ..errors import InvalidAmount, InvalidRequest


router = APIRouter()


def _amount(value) -> Decimal:
    try:
        return decimal_from_string(value)
    except ValueError as e:
        raise InvalidAmount(str(e))


@router.post("", status_code=status.HTTP_201_CREATED)
def create_account(
    request: CreateAccountRequest,
    system: SettlementSystem = Depends(get_settlement_system)
):
    """Open a fixed deposit"""
    account = system.account_manager.create_account(
        customer_id=request.customer_id,
        product_code=request.product_code,
        principal_amount=_amount(request.principal_amount),
        tenure_months=request.tenure_months,
        account_number=request.account_number
    )
    return account_to_dict(account)


@router.get("/{account_id}")
def get_account(
    account_id: str,
    system: SettlementSystem = Depends(get_settlement_system)
):
    """Get account details"""
    return account_to_dict(system.account_manager.get_account(account_id))


@router.get("/customer/{customer_id}")
def get_customer_accounts(
    customer_id: str,
    system: SettlementSystem = Depends(get_settlement_system)
):
    """All fixed deposits held by a customer"""
    accounts = system.account_manager.get_customer_accounts(customer_id)
    return {"accounts": [account_to_dict(a) for a in accounts]}


@router.post("/{account_id}/upgrade", dependencies=[Depends(require_admin)])
def upgrade_account(
    account_id: str,
    request: UpgradeAccountRequest,
    system: SettlementSystem = Depends(get_settlement_system)
):
    """Change product, rate, tenure or principal"""
    interest_rate: Optional[Decimal] = None
    if request.interest_rate is not None:
        try:
            interest_rate = decimal_from_string(request.interest_rate)
        except ValueError as e:
            raise InvalidRequest(str(e))

    principal = _amount(request.principal_amount) if request.principal_amount is not None else None
    account = system.account_manager.upgrade_account(
        account_id,
        product_code=request.product_code,
        interest_rate=interest_rate,
        tenure_months=request.tenure_months,
        principal_amount=principal
    )
    return account_to_dict(account)


@router.post("/{account_id}/close", dependencies=[Depends(require_admin)])
def close_account(
    account_id: str,
    request: CloseAccountRequest,
    system: SettlementSystem = Depends(get_settlement_system)
):
    """Close without settlement"""
    return account_to_dict(system.account_manager.close_account(account_id, request.reason))


@router.post("/{account_id}/reopen", dependencies=[Depends(require_admin)])
def reopen_account(
    account_id: str,
    system: SettlementSystem = Depends(get_settlement_system)
):
    """Reopen a closed account"""
    return account_to_dict(system.account_manager.reopen_account(account_id))


@router.post("/{account_id}/suspend", dependencies=[Depends(require_admin)])
def suspend_account(
    account_id: str,
    request: SuspendAccountRequest,
    system: SettlementSystem = Depends(get_settlement_system)
):
    """Administratively suspend an active account"""
    return account_to_dict(system.account_manager.suspend_account(account_id, request.reason))
