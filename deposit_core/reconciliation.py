"""
Reconciliation Module

Compares the ledger's total token balance with the supply reported on chain.
A variance is an operational alert; it is logged and audited but never
corrected here.
"""

from decimal import Decimal
from datetime import datetime
from dataclasses import dataclass
from typing import Optional, Protocol

from .audit import AuditTrail, AuditEventType
from .clock import SystemClock, get_clock
from .ledger import LedgerEngine
from .logging_config import get_logger, log_action


logger = get_logger("deposit_core.reconciliation")


class OnChainSupplySource(Protocol):
    """Reports the token supply held on chain"""

    def total_supply(self) -> Decimal:
        ...


@dataclass(frozen=True)
class ReconciliationSummary:
    ledger_total: Decimal
    on_chain_supply: Decimal
    variance: Decimal  # on_chain_supply - ledger_total
    as_of: datetime
    customer_count: int = 0
    contract_address: Optional[str] = None
    treasury_address: Optional[str] = None

    @property
    def is_balanced(self) -> bool:
        return self.variance == 0


class ReconciliationReporter:
    """
    Builds ledger vs on-chain supply summaries.

    When no supply source is configured the on-chain figure is taken to be
    zero, so the variance shows the full ledger total.
    """

    def __init__(
        self,
        ledger: LedgerEngine,
        supply_source: Optional[OnChainSupplySource] = None,
        audit_trail: Optional[AuditTrail] = None,
        clock: Optional[SystemClock] = None,
        contract_address: Optional[str] = None,
        treasury_address: Optional[str] = None
    ):
        self.ledger = ledger
        self.supply_source = supply_source
        self.audit_trail = audit_trail
        self.clock = clock or get_clock()
        self.contract_address = contract_address
        self.treasury_address = treasury_address

    def summary(self) -> ReconciliationSummary:
        """
        Raises:
            TransientError: If the on-chain supply cannot be read
        """
        balances = self.ledger.customer_balances()
        ledger_total = sum(balances.values(), Decimal('0'))
        on_chain = self.supply_source.total_supply() if self.supply_source else Decimal('0')
        variance = on_chain - ledger_total

        summary = ReconciliationSummary(
            ledger_total=ledger_total,
            on_chain_supply=on_chain,
            variance=variance,
            as_of=self.clock.now(),
            customer_count=len(balances),
            contract_address=self.contract_address,
            treasury_address=self.treasury_address
        )

        if variance != 0:
            log_action(logger, "warning", "Ledger and on-chain supply disagree",
                       action="reconcile", resource="ledger",
                       extra={"ledger_total": str(ledger_total),
                              "on_chain_supply": str(on_chain),
                              "variance": str(variance)})
            if self.audit_trail:
                self.audit_trail.log_event(
                    event_type=AuditEventType.RECONCILIATION_VARIANCE,
                    entity_type="reconciliation",
                    entity_id="ledger",
                    metadata={
                        "ledger_total": ledger_total,
                        "on_chain_supply": on_chain,
                        "variance": variance
                    }
                )
        return summary
