"""
FD calculation endpoint
"""

from fastapi import APIRouter, Depends

from .system import SettlementSystem, get_settlement_system
from .schemas import FdCalculationRequest, calculation_to_dict
from ..currency import decimal_from_string
from ..errors import InvalidRequest
from ..products import CompoundingConvention


router = APIRouter()


@router.post("/calculate")
def calculate_fd(
    request: FdCalculationRequest,
    system: SettlementSystem = Depends(get_settlement_system)
):
    """Project interest and maturity value without touching the ledger"""
    try:
        principal = decimal_from_string(request.principal_amount)
        compounding = (
            CompoundingConvention.from_label(request.compounding)
            if request.compounding else None
        )
    except ValueError as e:
        raise InvalidRequest(str(e))

    calculation = system.fd_calculator.calculate(
        request.product_code, principal, request.tenure_months, compounding
    )
    return calculation_to_dict(calculation)
