"""
Spending Recorder - meters one completed billable sub-operation.

Prices the batch against the all-time total and applies the resulting
delta to today's bucket and the total. On transactional stores the read,
the pricing and both writes happen under one write lock. Only call this
after the billable work has succeeded.
"""
import logging
from datetime import date
from typing import Optional

from .cost_accumulator import compute_delta
from .errors import LedgerError, LedgerInconsistencyError
from .models import CostDelta, UsageBatch, UsageRecord
from .pricing import PricingTable
from .usage_ledger import UsageLedger

logger = logging.getLogger(__name__)


class SpendingRecorder:
    """Prices usage batches and writes them to the ledger."""

    def __init__(self, ledger: UsageLedger, pricing: PricingTable):
        self._ledger = ledger
        self._pricing = pricing

    def record(
        self,
        batch: UsageBatch,
        day: Optional[date] = None,
        timeout: Optional[float] = None,
    ) -> CostDelta:
        """
        Record usage of one billable sub-operation.

        Args:
            batch: Raw usage counts of the completed operation
            day: Bucket day (default: today in UTC, read once by the ledger)
            timeout: Seconds left in the caller's deadline

        Returns:
            The CostDelta that was applied

        Raises:
            LedgerError: If the ledger could not be read or written. The
                unbilled usage is logged for reconciliation before re-raising.
        """
        if batch.is_empty():
            return CostDelta()

        def price(totals: UsageRecord) -> CostDelta:
            return compute_delta(totals, batch, self._pricing)

        try:
            key, delta = self._ledger.apply_priced(price, day=day, timeout=timeout)
        except LedgerInconsistencyError as e:
            pending = e.delta.fields() if e.delta is not None else None
            logger.error(f"Ledger inconsistent after partial write, reconcile delta {pending}: {e}")
            raise
        except LedgerError as e:
            logger.error(f"Failed to record spending, unbilled usage {batch.model_dump()}: {e}")
            raise

        logger.info(
            f"Recorded spending for {key}: {delta.cost_micros} micro-USD "
            f"({', '.join(f'{d.value}={n}' for d, n in batch.counters().items() if n)})"
        )
        return delta
