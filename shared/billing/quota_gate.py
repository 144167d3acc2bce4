"""
Quota Gate - daily spending ceiling admission check.

Runs before every billable request. The gate only reads the ledger;
spend recorded by requests already in flight is not visible yet, so
under load the daily cost can end up somewhat above the ceiling (soft
quota). A failed ledger read propagates so callers fail closed.
"""
import logging
from datetime import date
from typing import Optional

from pydantic import BaseModel

from .errors import PricingConfigError, QuotaExceededError
from .pricing import micros_to_usd
from .usage_ledger import UsageLedger, daily_key

logger = logging.getLogger(__name__)


class QuotaResult(BaseModel):
    """Result of a quota check."""
    allowed: bool
    current_cost_micros: int
    limit_micros: int
    remaining_micros: int
    day: str


class QuotaGate:
    """Compares today's spend against a fixed daily ceiling."""

    def __init__(self, ledger: UsageLedger, daily_quota_micros: int):
        if isinstance(daily_quota_micros, bool) or not isinstance(daily_quota_micros, int) \
                or daily_quota_micros <= 0:
            raise PricingConfigError(
                f"Daily quota must be a positive integer of micro-USD, got {daily_quota_micros!r}"
            )
        self._ledger = ledger
        self.daily_quota_micros = daily_quota_micros
        logger.info(
            f"QuotaGate initialized: {daily_quota_micros} micro-USD/day "
            f"(~{micros_to_usd(daily_quota_micros)} USD)"
        )

    def check_quota(
        self,
        day: Optional[date] = None,
        timeout: Optional[float] = None,
    ) -> QuotaResult:
        """
        Read today's spend and compare it with the ceiling.

        Raises:
            LedgerError: If the ledger cannot be read
        """
        day = day or self._ledger.today()
        current = self._ledger.read_daily(day=day, timeout=timeout).cost_micros
        return QuotaResult(
            allowed=current < self.daily_quota_micros,
            current_cost_micros=current,
            limit_micros=self.daily_quota_micros,
            remaining_micros=max(0, self.daily_quota_micros - current),
            day=daily_key(day),
        )

    def is_over_quota(
        self,
        day: Optional[date] = None,
        timeout: Optional[float] = None,
    ) -> bool:
        result = self.check_quota(day=day, timeout=timeout)
        if not result.allowed:
            logger.warning(
                f"Daily quota exceeded for {result.day}: "
                f"{result.current_cost_micros} >= {result.limit_micros} micro-USD"
            )
        return not result.allowed

    def ensure_within_quota(
        self,
        day: Optional[date] = None,
        timeout: Optional[float] = None,
    ) -> QuotaResult:
        """Like check_quota, but raises QuotaExceededError when over the ceiling."""
        result = self.check_quota(day=day, timeout=timeout)
        if not result.allowed:
            logger.warning(f"Rejecting request: daily quota exceeded for {result.day}")
            raise QuotaExceededError(result)
        return result

    def get_remaining(self, day: Optional[date] = None, timeout: Optional[float] = None) -> int:
        """Micro-USD left before today's ceiling is reached."""
        return self.check_quota(day=day, timeout=timeout).remaining_micros
