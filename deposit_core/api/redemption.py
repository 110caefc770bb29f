"""
Fixed deposit redemption endpoints
"""

from typing import Optional

from fastapi import APIRouter, Depends

from .system import SettlementSystem, get_settlement_system
from .schemas import ProcessRedemptionRequest, quote_to_dict, receipt_to_dict


router = APIRouter()


@router.get("/{account_id}")
def enquire_redemption(
    account_id: str,
    system: SettlementSystem = Depends(get_settlement_system)
):
    """Quote a redemption as of the current system time"""
    return quote_to_dict(system.redemption_engine.enquire_by_id(account_id))


@router.post("/{account_id}")
def process_redemption(
    account_id: str,
    request: Optional[ProcessRedemptionRequest] = None,
    system: SettlementSystem = Depends(get_settlement_system)
):
    """Redeem and close a fixed deposit"""
    reference = request.reference if request else None
    receipt = system.redemption_engine.process(account_id, reference)
    return receipt_to_dict(receipt)
