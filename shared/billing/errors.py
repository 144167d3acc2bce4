"""Error taxonomy for spend metering and quota admission."""
from typing import Any, Dict, Optional


class BillingError(Exception):
    """Base exception for billing errors."""
    pass


class PricingConfigError(BillingError):
    """Raised at startup when a price, free tier or quota is missing or invalid."""
    pass


class LedgerError(BillingError):
    """Base exception for usage ledger faults."""

    retryable = False


class LedgerUnavailableError(LedgerError):
    """Raised when the ledger store cannot be reached. Safe to retry."""

    retryable = True


class LedgerTimeoutError(LedgerUnavailableError):
    """Raised when the caller's deadline expired before the ledger call finished."""
    pass


class LedgerCorruptionError(LedgerError):
    """Raised when a stored record cannot be decoded."""
    pass


class LedgerClosedBucketError(LedgerError, ValueError):
    """Raised when a write targets a daily bucket older than today."""
    pass


class LedgerInconsistencyError(LedgerError):
    """
    Raised when the daily bucket and the all-time total no longer agree.

    Attributes:
        delta: The delta that was being applied, for reconciliation
    """

    def __init__(self, message: str, delta: Optional[Any] = None):
        super().__init__(message)
        self.delta = delta


class QuotaExceededError(BillingError):
    """
    Raised when the daily spending ceiling has been reached.

    Attributes:
        result: QuotaResult observed by the gate
    """

    def __init__(self, result):
        self.result = result
        super().__init__(
            f"Daily quota exceeded: {result.current_cost_micros} >= "
            f"{result.limit_micros} micro-USD ({result.day})"
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for API responses."""
        return {
            "error": "quota_exceeded",
            "day": self.result.day,
            "current_cost_micros": self.result.current_cost_micros,
            "limit_micros": self.result.limit_micros,
        }
