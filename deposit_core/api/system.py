"""
Settlement system wiring and request dependencies
"""

from typing import Optional

from fastapi import Header, HTTPException

from ..storage import StorageInterface, create_storage
from ..audit import AuditTrail
from ..clock import SystemClock, get_clock
from ..products import ProductCatalog
from ..pricing import PricingRuleResolver
from ..interest import AccrualCalculator
from ..accounts import AccountManager
from ..ledger import LedgerEngine
from ..blockchain import BlockchainClient
from ..redemption import RedemptionEngine
from ..reconciliation import ReconciliationReporter
from ..calculator import FdCalculator
from ..config import DepositCoreConfig, get_config


ADMIN_ROLES = {"ADMIN", "BANKOFFICER"}


class SettlementSystem:
    """Settlement core with all components initialized"""

    def __init__(
        self,
        storage: Optional[StorageInterface] = None,
        catalog: Optional[ProductCatalog] = None,
        clock: Optional[SystemClock] = None,
        blockchain_client: Optional[BlockchainClient] = None,
        config: Optional[DepositCoreConfig] = None
    ):
        self.config = config or get_config()
        self.storage = storage or create_storage(self.config.storage_backend, self.config.database_path)
        self.clock = clock or get_clock()
        self.catalog = catalog or self._load_catalog()
        self.blockchain_client = blockchain_client or self._create_blockchain_client()

        self.audit_trail = AuditTrail(self.storage)
        self.resolver = PricingRuleResolver()
        self.accrual_calculator = AccrualCalculator()

        self.ledger = LedgerEngine(
            self.storage, self.audit_trail, self.clock,
            chain_submitter=self.blockchain_client
        )
        self.account_manager = AccountManager(
            self.storage, self.catalog, self.audit_trail, self.resolver, self.clock
        )
        self.redemption_engine = RedemptionEngine(
            self.account_manager, self.ledger, self.audit_trail,
            self.accrual_calculator, self.clock,
            overdue_warning_days=self.config.overdue_warning_days
        )
        self.reconciliation_reporter = ReconciliationReporter(
            self.ledger, self.blockchain_client, self.audit_trail, self.clock,
            contract_address=self.config.contract_address or None,
            treasury_address=self.config.treasury_address or None
        )
        self.fd_calculator = FdCalculator(
            self.catalog, self.resolver, self.accrual_calculator, self.clock
        )

    def _load_catalog(self) -> ProductCatalog:
        if self.config.products_file:
            return ProductCatalog.from_file(self.config.products_file)
        return ProductCatalog()

    def _create_blockchain_client(self) -> Optional[BlockchainClient]:
        """Create the gateway client only when a URL is configured"""
        if not self.config.blockchain_gateway_url:
            return None
        return BlockchainClient(
            base_url=self.config.blockchain_gateway_url,
            timeout=self.config.blockchain_timeout,
            api_key=self.config.blockchain_api_key or None,
            contract_address=self.config.contract_address or None,
            treasury_address=self.config.treasury_address or None
        )


_settlement_system: Optional[SettlementSystem] = None


def get_settlement_system() -> SettlementSystem:
    """Dependency returning the process-wide settlement system"""
    global _settlement_system
    if _settlement_system is None:
        _settlement_system = SettlementSystem()
    return _settlement_system


def require_admin(x_role: Optional[str] = Header(None)) -> str:
    """Restrict an endpoint to ADMIN or BANKOFFICER callers"""
    if not get_config().admin_auth_enabled:
        return x_role or "ADMIN"
    if not x_role or x_role.strip().upper() not in ADMIN_ROLES:
        raise HTTPException(status_code=403, detail="User does not have required role (BANKOFFICER or ADMIN)")
    return x_role.strip().upper()
