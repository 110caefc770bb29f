"""
Admin endpoints (system clock control, chain maintenance)
"""

from fastapi import APIRouter, Depends

from .system import SettlementSystem, get_settlement_system, require_admin
from .schemas import SetTimeRequest, AdvanceTimeRequest
from ..audit import AuditEventType


router = APIRouter(dependencies=[Depends(require_admin)])


def _audit_clock(system: SettlementSystem, action: str, actor: str, **metadata) -> None:
    system.audit_trail.log_event(
        event_type=AuditEventType.CLOCK_CHANGED,
        entity_type="clock",
        entity_id="system",
        metadata={"action": action, **metadata},
        actor=actor
    )


@router.get("/time")
def get_time(system: SettlementSystem = Depends(get_settlement_system)):
    """Current system time and offset"""
    return system.clock.state().to_dict()


@router.put("/time")
def set_time(
    request: SetTimeRequest,
    system: SettlementSystem = Depends(get_settlement_system),
    role: str = Depends(require_admin)
):
    """Pin the system clock at an absolute instant"""
    system.clock.set_absolute(request.system_time)
    _audit_clock(system, "set_absolute", role, system_time=system.clock.now())
    return {"message": "Time set", **system.clock.state().to_dict()}


@router.post("/time/advance")
def advance_time(
    request: AdvanceTimeRequest,
    system: SettlementSystem = Depends(get_settlement_system),
    role: str = Depends(require_admin)
):
    """Advance (or rewind) the system clock by seconds"""
    system.clock.advance(request.seconds)
    _audit_clock(system, "advance", role, seconds=request.seconds)
    return {"message": "Time advanced", **system.clock.state().to_dict()}


@router.post("/time/reset")
def reset_time(
    system: SettlementSystem = Depends(get_settlement_system),
    role: str = Depends(require_admin)
):
    """Return the system clock to real time"""
    system.clock.reset()
    _audit_clock(system, "reset", role)
    return {"message": "Time reset", **system.clock.state().to_dict()}


@router.post("/ledger/retry-submissions")
def retry_submissions(system: SettlementSystem = Depends(get_settlement_system)):
    """Resubmit ledger entries that have no transaction hash"""
    return {"submitted": system.ledger.retry_unsubmitted()}


@router.get("/audit/verify")
def verify_audit(system: SettlementSystem = Depends(get_settlement_system)):
    """Verify the audit hash chain"""
    return system.audit_trail.verify_integrity()
