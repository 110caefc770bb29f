"""
Error Taxonomy Module

Typed errors raised by the settlement core. Each error carries a stable code
for the HTTP boundary and a severity that tells callers whether a retry makes
sense.
"""

from enum import Enum
from typing import Any, Dict, Optional


class ErrorSeverity(str, Enum):
    """Error severity for caller-side retry and alerting"""
    USER_ERROR = "user_error"  # Caller mistake or business rule, not retryable as-is
    TRANSIENT = "transient"    # Temporary, retryable
    FATAL = "fatal"            # Unrecoverable, requires operator investigation


class DepositCoreError(Exception):
    """Base class for all settlement core errors"""

    code = "DEPOSIT_CORE_ERROR"
    severity = ErrorSeverity.USER_ERROR

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        result = {
            "error": self.code,
            "detail": self.message,
            "severity": self.severity.value
        }
        if self.details:
            result["details"] = {k: str(v) for k, v in self.details.items()}
        return result


class InsufficientBalance(DepositCoreError):
    """Redeem or transfer exceeds the customer's balance"""
    code = "INSUFFICIENT_BALANCE"


class SameAccount(DepositCoreError):
    """Transfer source and destination are the same customer"""
    code = "SAME_ACCOUNT"


class AccountNotActive(DepositCoreError):
    """Operation requires an ACTIVE account"""
    code = "ACCOUNT_NOT_ACTIVE"


class NoApplicableRate(DepositCoreError):
    """Pricing could not be resolved; indicates a product configuration problem"""
    code = "NO_APPLICABLE_RATE"


class InvalidAmount(DepositCoreError):
    """Amount is not a positive whole token amount"""
    code = "INVALID_AMOUNT"


class InvalidRequest(DepositCoreError):
    """Request violates product bounds or is otherwise malformed"""
    code = "INVALID_REQUEST"


class NotFound(DepositCoreError):
    """Referenced product or account does not exist"""
    code = "NOT_FOUND"


class InvariantViolation(DepositCoreError):
    """A ledger append would break the balance chain. Never auto-repaired."""
    code = "INVARIANT_VIOLATION"
    severity = ErrorSeverity.FATAL


class TransientError(DepositCoreError):
    """A read dependency was unavailable; safe for the caller to retry"""
    code = "TRANSIENT_ERROR"
    severity = ErrorSeverity.TRANSIENT


class BlockchainSubmissionError(TransientError):
    """The blockchain gateway rejected or failed a submission"""
    code = "BLOCKCHAIN_SUBMISSION_FAILED"
