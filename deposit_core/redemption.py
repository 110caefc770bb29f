"""
Redemption Module

Quotes and settles fixed deposit redemptions at maturity or prematurely.
Quotes are read-only and always computed against the current system time;
processing re-quotes under the account's write lock, redeems the payout on
the token ledger and closes the account.
"""

import math
from decimal import Decimal, ROUND_HALF_UP
from datetime import datetime
from dataclasses import dataclass, field
from typing import List, Optional
from enum import Enum

from .accounts import AccountManager, FixedDepositAccount, AccountStatus
from .audit import AuditTrail, AuditEventType
from .clock import SystemClock, get_clock
from .currency import round_money, whole_units
from .errors import AccountNotActive
from .interest import AccrualCalculator
from .ledger import LedgerEngine
from .logging_config import get_logger, log_action


logger = get_logger("deposit_core.redemption")


class RedemptionType(Enum):
    MATURITY = "MATURITY"
    PREMATURE = "PREMATURE"


class RedemptionEligibility(Enum):
    ELIGIBLE = "ELIGIBLE"
    ELIGIBLE_WITH_PENALTY = "ELIGIBLE_WITH_PENALTY"
    NOT_ELIGIBLE = "NOT_ELIGIBLE"


@dataclass(frozen=True)
class RedemptionQuote:
    """Point-in-time redemption figures for an account"""
    account_id: str
    account_number: str
    customer_id: str
    currency: str
    principal: Decimal
    interest_rate: Decimal
    accrued_interest: Decimal
    maturity_amount: Decimal
    penalty: Decimal
    net_payable: Decimal
    is_matured: bool
    redemption_type: RedemptionType
    eligibility: RedemptionEligibility
    days_since_opening: int
    days_until_maturity: int
    maturity_date: datetime
    as_of: datetime
    warnings: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class RedemptionReceipt:
    """Outcome of a processed redemption"""
    account_id: str
    customer_id: str
    redemption_type: RedemptionType
    accrued_interest: Decimal
    penalty: Decimal
    net_payable: Decimal
    tokens_redeemed: Decimal
    unsettled_fraction: Decimal
    ledger_entry_id: Optional[int]
    transaction_hash: Optional[str]
    reference: str
    closed_at: datetime


class RedemptionEngine:
    """
    Classifies accounts as matured or premature and settles them.

    Args:
        accounts: Account store providing per-account locks
        ledger: Token ledger debited with the payout
        audit_trail: Audit trail for processed redemptions
        calculator: Interest accrual calculator
        clock: Source of "now"
        overdue_warning_days: Days past maturity before an overdue warning
    """

    def __init__(
        self,
        accounts: AccountManager,
        ledger: LedgerEngine,
        audit_trail: AuditTrail,
        calculator: Optional[AccrualCalculator] = None,
        clock: Optional[SystemClock] = None,
        overdue_warning_days: int = 30
    ):
        self.accounts = accounts
        self.ledger = ledger
        self.audit_trail = audit_trail
        self.calculator = calculator or AccrualCalculator()
        self.clock = clock or get_clock()
        self.overdue_warning_days = overdue_warning_days

    def enquire(self, account: FixedDepositAccount) -> RedemptionQuote:
        """Quote a redemption as of now. Never mutates state."""
        now = self.clock.now()
        currency = account.currency
        principal = account.principal_amount

        is_matured = now >= account.maturity_date
        accrual_end = min(now, account.maturity_date)
        accrued = self.calculator.interest_earned(
            principal, account.interest_rate, account.compounding,
            account.opened_at, accrual_end, currency
        )
        maturity_amount = round_money(principal + accrued, currency)

        days_since_opening = max((now - account.opened_at).days, 0)
        # A partial day still counts as a day to wait
        days_until_maturity = 0 if is_matured else math.ceil(
            (account.maturity_date - now).total_seconds() / 86400
        )
        grace_days = account.premature_penalty_grace_days

        warnings = []
        penalty = Decimal('0')
        if is_matured:
            days_overdue = (now - account.maturity_date).days
            if days_overdue > self.overdue_warning_days:
                warnings.append(f"Account is overdue by {days_overdue} days")
        else:
            warnings.append("Account has not reached maturity date")
            if days_since_opening <= grace_days:
                warnings.append(
                    f"Grace period still active ({grace_days - days_since_opening} days remaining)"
                )
            else:
                penalty = round_money(principal * account.premature_penalty_rate, currency)
                penalty = min(penalty, maturity_amount)

        penalty = round_money(penalty, currency)
        net_payable = round_money(maturity_amount - penalty, currency)
        if penalty > 0:
            warnings.append(f"Penalty of {penalty} will be deducted")
            if maturity_amount > 0:
                reduction = (penalty / maturity_amount * Decimal('100')).quantize(
                    Decimal('0.01'), rounding=ROUND_HALF_UP
                )
                warnings.append(f"Penalty reduces payout by {reduction}%")

        if account.status != AccountStatus.ACTIVE:
            eligibility = RedemptionEligibility.NOT_ELIGIBLE
            warnings.append(f"Account is {account.status.value}")
        elif penalty > 0:
            eligibility = RedemptionEligibility.ELIGIBLE_WITH_PENALTY
        else:
            eligibility = RedemptionEligibility.ELIGIBLE

        return RedemptionQuote(
            account_id=account.id,
            account_number=account.account_number,
            customer_id=account.customer_id,
            currency=currency.code,
            principal=principal,
            interest_rate=account.interest_rate,
            accrued_interest=accrued,
            maturity_amount=maturity_amount,
            penalty=penalty,
            net_payable=net_payable,
            is_matured=is_matured,
            redemption_type=RedemptionType.MATURITY if is_matured else RedemptionType.PREMATURE,
            eligibility=eligibility,
            days_since_opening=days_since_opening,
            days_until_maturity=days_until_maturity,
            maturity_date=account.maturity_date,
            as_of=now,
            warnings=warnings
        )

    def enquire_by_id(self, account_id: str) -> RedemptionQuote:
        return self.enquire(self.accounts.get_account(account_id))

    def process(self, account_id: str, reference: Optional[str] = None) -> RedemptionReceipt:
        """
        Settle and close an account

        The account's write lock is held for the whole operation. The
        payout is floored to whole tokens; the remainder is reported as
        unsettled_fraction.

        Raises:
            NotFound: If the account does not exist
            AccountNotActive: If the account is not ACTIVE
            InsufficientBalance: Propagated from the ledger; the account is left unchanged
        """
        with self.accounts.lock_for(account_id):
            account = self.accounts.get_account(account_id)
            if account.status != AccountStatus.ACTIVE:
                raise AccountNotActive(
                    f"Account {account.account_number} is {account.status.value}",
                    {"account_id": account_id, "status": account.status.value}
                )

            quote = self.enquire(account)
            tokens = whole_units(quote.net_payable)
            fraction = quote.net_payable - tokens
            reference = reference or f"redemption:{account.id}"

            entry = None
            if tokens > 0:
                entry = self.ledger.redeem(account.customer_id, tokens, reference)

            account = self.accounts.record_redemption(
                account,
                accrued_interest=quote.accrued_interest,
                penalty=quote.penalty,
                net_payout=quote.net_payable,
                ledger_entry_id=entry.id if entry else None
            )

        self.audit_trail.log_event(
            event_type=AuditEventType.REDEMPTION_PROCESSED,
            entity_type="account",
            entity_id=account.id,
            metadata={
                "redemption_type": quote.redemption_type,
                "accrued_interest": quote.accrued_interest,
                "penalty": quote.penalty,
                "net_payable": quote.net_payable,
                "tokens_redeemed": tokens,
                "ledger_entry_id": entry.id if entry else None,
                "reference": reference
            }
        )
        log_action(logger, "info",
                   f"Processed {quote.redemption_type.value} redemption for {account.account_number}",
                   customer_id=account.customer_id, action="process_redemption",
                   resource=account.id, reference=reference,
                   extra={"net_payable": str(quote.net_payable), "penalty": str(quote.penalty)})

        return RedemptionReceipt(
            account_id=account.id,
            customer_id=account.customer_id,
            redemption_type=quote.redemption_type,
            accrued_interest=quote.accrued_interest,
            penalty=quote.penalty,
            net_payable=quote.net_payable,
            tokens_redeemed=tokens,
            unsettled_fraction=fraction,
            ledger_entry_id=entry.id if entry else None,
            transaction_hash=entry.transaction_hash if entry else None,
            reference=reference,
            closed_at=account.closed_at
        )
