"""
Fixed Deposit Account Module

Manages the fixed-deposit account lifecycle: creation with a rate fixed by
pricing resolution, upgrades, closure, reopening and suspension. Each account
has its own write lock so lifecycle changes and redemption never interleave.
"""

from decimal import Decimal
from datetime import datetime
from dataclasses import dataclass
from typing import Dict, List, Optional
from enum import Enum
import threading
import uuid

from .currency import Currency, is_whole
from .storage import StorageInterface, StorageRecord
from .audit import AuditTrail, AuditEventType
from .clock import SystemClock, get_clock
from .products import ProductCatalog, Product, CompoundingConvention
from .pricing import PricingRuleResolver
from .interest import add_months
from .errors import InvalidAmount, InvalidRequest, NotFound
from .logging_config import get_logger, log_action


logger = get_logger("deposit_core.accounts")


class AccountStatus(Enum):
    """Fixed deposit lifecycle states"""
    ACTIVE = "active"        # Earning interest, redeemable
    MATURED = "matured"      # Past maturity, awaiting redemption
    CLOSED = "closed"        # Terminal unless reopened by an officer
    SUSPENDED = "suspended"  # Administratively blocked


@dataclass
class FixedDepositAccount(StorageRecord):
    """
    Fixed deposit account. The interest rate is frozen at creation and only
    changes through an explicit upgrade.
    """
    account_number: str
    customer_id: str
    product_code: str
    principal_amount: Decimal
    interest_rate: Decimal  # Annual percent
    tenure_months: int
    opened_at: datetime
    maturity_date: datetime
    currency: Currency
    compounding: CompoundingConvention
    premature_penalty_rate: Decimal = Decimal('0')
    premature_penalty_grace_days: int = 0
    status: AccountStatus = AccountStatus.ACTIVE
    pricing_rule_id: Optional[int] = None
    fee_amount: Decimal = Decimal('0')

    # Redemption / closure record
    accrued_interest_applied: Optional[Decimal] = None
    penalty_applied: Optional[Decimal] = None
    net_payout: Optional[Decimal] = None
    redemption_entry_id: Optional[int] = None
    closed_at: Optional[datetime] = None
    closure_reason: Optional[str] = None

    @property
    def is_active(self) -> bool:
        return self.status == AccountStatus.ACTIVE

    def to_dict(self) -> Dict:
        result = super().to_dict()
        result['currency'] = self.currency.code
        return result

    @classmethod
    def from_dict(cls, data: Dict) -> 'FixedDepositAccount':
        def optional_decimal(key):
            value = data.get(key)
            return Decimal(value) if value is not None else None

        def optional_datetime(key):
            value = data.get(key)
            return datetime.fromisoformat(value) if value else None

        return cls(
            id=data['id'],
            created_at=datetime.fromisoformat(data['created_at']),
            updated_at=datetime.fromisoformat(data['updated_at']),
            account_number=data['account_number'],
            customer_id=data['customer_id'],
            product_code=data['product_code'],
            principal_amount=Decimal(data['principal_amount']),
            interest_rate=Decimal(data['interest_rate']),
            tenure_months=int(data['tenure_months']),
            opened_at=datetime.fromisoformat(data['opened_at']),
            maturity_date=datetime.fromisoformat(data['maturity_date']),
            currency=Currency[data['currency']],
            compounding=CompoundingConvention(data['compounding']),
            premature_penalty_rate=Decimal(data['premature_penalty_rate']),
            premature_penalty_grace_days=int(data['premature_penalty_grace_days']),
            status=AccountStatus(data['status']),
            pricing_rule_id=data.get('pricing_rule_id'),
            fee_amount=Decimal(data['fee_amount']),
            accrued_interest_applied=optional_decimal('accrued_interest_applied'),
            penalty_applied=optional_decimal('penalty_applied'),
            net_payout=optional_decimal('net_payout'),
            redemption_entry_id=data.get('redemption_entry_id'),
            closed_at=optional_datetime('closed_at'),
            closure_reason=data.get('closure_reason')
        )


class AccountManager:
    """
    Manages fixed deposit accounts and their per-account write locks
    """

    def __init__(
        self,
        storage: StorageInterface,
        catalog: ProductCatalog,
        audit_trail: AuditTrail,
        resolver: Optional[PricingRuleResolver] = None,
        clock: Optional[SystemClock] = None
    ):
        self.storage = storage
        self.catalog = catalog
        self.audit_trail = audit_trail
        self.resolver = resolver or PricingRuleResolver()
        self.clock = clock or get_clock()
        self.accounts_table = "fd_accounts"

        self._locks: Dict[str, threading.RLock] = {}
        self._locks_guard = threading.Lock()
        self._number_lock = threading.Lock()

    def lock_for(self, account_id: str) -> threading.RLock:
        """Write lock for a single account"""
        with self._locks_guard:
            lock = self._locks.get(account_id)
            if lock is None:
                lock = threading.RLock()
                self._locks[account_id] = lock
            return lock

    def create_account(
        self,
        customer_id: str,
        product_code: str,
        principal_amount: Decimal,
        tenure_months: int,
        account_number: Optional[str] = None
    ) -> FixedDepositAccount:
        """
        Open a fixed deposit

        Args:
            customer_id: Owning customer
            product_code: Product to open under
            principal_amount: Principal in whole tokens
            tenure_months: Term in months
            account_number: Specific account number (generated if not provided)

        Returns:
            Created FixedDepositAccount
        """
        product = self.catalog.get(product_code)
        self._validate_terms(product, principal_amount, tenure_months)
        pricing = self.resolver.resolve(product, principal_amount, tenure_months)

        now = self.clock.now()
        account = FixedDepositAccount(
            id=str(uuid.uuid4()),
            created_at=now,
            updated_at=now,
            account_number=account_number or self._generate_account_number(now),
            customer_id=customer_id,
            product_code=product.code,
            principal_amount=principal_amount,
            interest_rate=pricing.rate,
            tenure_months=tenure_months,
            opened_at=now,
            maturity_date=add_months(now, tenure_months),
            currency=product.currency,
            compounding=product.compounding,
            premature_penalty_rate=product.premature_penalty_rate,
            premature_penalty_grace_days=product.premature_penalty_grace_days,
            pricing_rule_id=pricing.rule_id,
            fee_amount=pricing.fee
        )

        self._save_account(account)

        self.audit_trail.log_event(
            event_type=AuditEventType.ACCOUNT_CREATED,
            entity_type="account",
            entity_id=account.id,
            metadata={
                "account_number": account.account_number,
                "customer_id": customer_id,
                "product_code": product.code,
                "principal_amount": principal_amount,
                "interest_rate": pricing.rate,
                "tenure_months": tenure_months,
                "pricing_rule_id": pricing.rule_id
            }
        )
        log_action(logger, "info", f"Opened fixed deposit {account.account_number}",
                   customer_id=customer_id, action="create_account", resource=account.id)

        return account

    def get_account(self, account_id: str) -> FixedDepositAccount:
        """Get account by ID, raising NotFound if absent"""
        account_dict = self.storage.load(self.accounts_table, account_id)
        if not account_dict:
            raise NotFound(f"Account {account_id} not found", {"account_id": account_id})
        return FixedDepositAccount.from_dict(account_dict)

    def get_account_by_number(self, account_number: str) -> Optional[FixedDepositAccount]:
        accounts = self.storage.find(self.accounts_table, {"account_number": account_number})
        if accounts:
            return FixedDepositAccount.from_dict(accounts[0])
        return None

    def get_customer_accounts(self, customer_id: str) -> List[FixedDepositAccount]:
        accounts_data = self.storage.find(self.accounts_table, {"customer_id": customer_id})
        accounts = [FixedDepositAccount.from_dict(data) for data in accounts_data]
        return sorted(accounts, key=lambda a: a.opened_at)

    def upgrade_account(
        self,
        account_id: str,
        product_code: Optional[str] = None,
        interest_rate: Optional[Decimal] = None,
        tenure_months: Optional[int] = None,
        principal_amount: Optional[Decimal] = None
    ) -> FixedDepositAccount:
        """
        Change product, rate, term or principal. Unspecified fields keep their
        current values; the rate is re-resolved unless given explicitly.
        Maturity is recomputed from the original opening date.
        """
        with self.lock_for(account_id):
            account = self.get_account(account_id)
            if account.status == AccountStatus.CLOSED:
                raise InvalidRequest(f"Cannot upgrade a closed account: {account.account_number}")

            product = self.catalog.get(product_code or account.product_code)
            new_tenure = tenure_months if tenure_months is not None else account.tenure_months
            new_principal = principal_amount if principal_amount is not None else account.principal_amount
            self._validate_terms(product, new_principal, new_tenure)

            pricing = self.resolver.resolve(product, new_principal, new_tenure)
            if interest_rate is not None:
                if not (product.min_interest_rate <= interest_rate <= product.max_interest_rate):
                    raise InvalidRequest(
                        f"Interest rate must be between {product.min_interest_rate} "
                        f"and {product.max_interest_rate}"
                    )
                new_rate = interest_rate
            else:
                new_rate = pricing.rate

            previous = {
                "product_code": account.product_code,
                "interest_rate": account.interest_rate,
                "tenure_months": account.tenure_months,
                "principal_amount": account.principal_amount
            }

            account.product_code = product.code
            account.interest_rate = new_rate
            account.tenure_months = new_tenure
            account.principal_amount = new_principal
            account.maturity_date = add_months(account.opened_at, new_tenure)
            account.compounding = product.compounding
            account.currency = product.currency
            account.premature_penalty_rate = product.premature_penalty_rate
            account.premature_penalty_grace_days = product.premature_penalty_grace_days
            account.pricing_rule_id = pricing.rule_id
            account.fee_amount = pricing.fee
            account.updated_at = self.clock.now()

            self._save_account(account)

            self.audit_trail.log_event(
                event_type=AuditEventType.ACCOUNT_UPGRADED,
                entity_type="account",
                entity_id=account.id,
                metadata={
                    "previous": previous,
                    "product_code": account.product_code,
                    "interest_rate": new_rate,
                    "tenure_months": new_tenure,
                    "principal_amount": new_principal
                }
            )
            log_action(logger, "info", f"Upgraded fixed deposit {account.account_number}",
                       customer_id=account.customer_id, action="upgrade_account",
                       resource=account.id)
            return account

    def close_account(self, account_id: str, reason: str) -> FixedDepositAccount:
        """Close an account without settlement"""
        with self.lock_for(account_id):
            account = self.get_account(account_id)
            if account.status == AccountStatus.CLOSED:
                raise InvalidRequest(f"Account is already closed: {account.account_number}")
            now = self.clock.now()
            account.closed_at = now
            account.closure_reason = reason
            return self._transition(account, AccountStatus.CLOSED, AuditEventType.ACCOUNT_CLOSED, reason)

    def reopen_account(self, account_id: str) -> FixedDepositAccount:
        """Return a closed account to ACTIVE"""
        with self.lock_for(account_id):
            account = self.get_account(account_id)
            if account.status != AccountStatus.CLOSED:
                raise InvalidRequest(f"Account is not closed: {account.account_number}")
            if account.redemption_entry_id is not None or account.net_payout is not None:
                raise InvalidRequest(
                    f"Account {account.account_number} was settled by redemption and cannot be reopened"
                )
            account.closed_at = None
            account.closure_reason = None
            return self._transition(account, AccountStatus.ACTIVE, AuditEventType.ACCOUNT_REOPENED, "reopened")

    def suspend_account(self, account_id: str, reason: str) -> FixedDepositAccount:
        with self.lock_for(account_id):
            account = self.get_account(account_id)
            if account.status != AccountStatus.ACTIVE:
                raise InvalidRequest(f"Only active accounts can be suspended: {account.account_number}")
            return self._transition(account, AccountStatus.SUSPENDED, AuditEventType.ACCOUNT_SUSPENDED, reason)

    def record_redemption(
        self,
        account: FixedDepositAccount,
        accrued_interest: Decimal,
        penalty: Decimal,
        net_payout: Decimal,
        ledger_entry_id: int
    ) -> FixedDepositAccount:
        """
        Terminal transition after a successful redemption. The caller must
        hold the account's write lock.
        """
        now = self.clock.now()
        account.accrued_interest_applied = accrued_interest
        account.penalty_applied = penalty
        account.net_payout = net_payout
        account.redemption_entry_id = ledger_entry_id
        account.closed_at = now
        account.closure_reason = "redeemed"
        return self._transition(account, AccountStatus.CLOSED, AuditEventType.ACCOUNT_CLOSED, "redeemed")

    def _transition(self, account: FixedDepositAccount, new_status: AccountStatus,
                    event_type: AuditEventType, reason: str) -> FixedDepositAccount:
        old_status = account.status
        account.status = new_status
        account.updated_at = self.clock.now()
        self._save_account(account)

        self.audit_trail.log_event(
            event_type=event_type,
            entity_type="account",
            entity_id=account.id,
            metadata={
                "old_status": old_status.value,
                "new_status": new_status.value,
                "reason": reason
            }
        )
        log_action(logger, "info",
                   f"Account {account.account_number} {old_status.value} -> {new_status.value}",
                   customer_id=account.customer_id, action="status_change", resource=account.id)
        return account

    def _validate_terms(self, product: Product, principal_amount: Decimal, tenure_months: int) -> None:
        if principal_amount < Decimal('1'):
            raise InvalidAmount("Principal must be at least 1 token")
        if not is_whole(principal_amount):
            raise InvalidAmount("Principal must be a whole number of tokens")
        if not product.is_active:
            raise InvalidRequest(f"Product {product.code} is not active")
        if not product.principal_in_range(principal_amount):
            raise InvalidRequest(
                f"Principal amount must be between {product.min_amount} and {product.max_amount}"
            )
        if not product.term_in_range(tenure_months):
            raise InvalidRequest(
                f"Tenure must be between {product.min_term_months} and {product.max_term_months} months"
            )

    def _generate_account_number(self, now: datetime) -> str:
        """Sequential FD-yyyymmdd-nnnnnnnn account number"""
        with self._number_lock:
            sequence = self.storage.count(self.accounts_table) + 1
            candidate = f"FD-{now:%Y%m%d}-{sequence:08d}"
            while self.storage.find(self.accounts_table, {"account_number": candidate}):
                sequence += 1
                candidate = f"FD-{now:%Y%m%d}-{sequence:08d}"
            return candidate

    def _save_account(self, account: FixedDepositAccount) -> None:
        self.storage.save(self.accounts_table, account.id, account.to_dict())
