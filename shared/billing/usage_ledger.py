"""
Usage Ledger - cumulative spend per UTC day and all-time.

The ledger is the only owner of the authoritative counters. Every write
reads the clock at most once, so a single operation never straddles two
buckets, and tests can pin the date with an injected clock.
"""
import logging
from datetime import date, datetime, timezone
from typing import Callable, Dict, List, Optional, Tuple

from .errors import LedgerClosedBucketError, LedgerError, LedgerInconsistencyError
from .models import CostDelta, LedgerBucket, UsageRecord
from .usage_store import COUNTER_FIELDS, LedgerStore

logger = logging.getLogger(__name__)

TOTAL_KEY = "total"


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def daily_key(day: date) -> str:
    """Bucket key of a calendar day, ``YYYY-MM-DD``."""
    return day.strftime("%Y-%m-%d")


class UsageLedger:
    """Reads and increments daily and all-time usage records."""

    def __init__(
        self,
        store: LedgerStore,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self._store = store
        self._clock = clock or _utc_now

    def today(self) -> date:
        """Current calendar date in UTC."""
        return self._clock().astimezone(timezone.utc).date()

    def _key(self, bucket: LedgerBucket, day: Optional[date]) -> str:
        if LedgerBucket(bucket) is LedgerBucket.TOTAL:
            return TOTAL_KEY
        return daily_key(day or self.today())

    def read(
        self,
        bucket: LedgerBucket,
        day: Optional[date] = None,
        timeout: Optional[float] = None,
    ) -> UsageRecord:
        """Return the record of a bucket, zero-valued if it was never written."""
        key = self._key(bucket, day)
        data = self._store.get(key, timeout=timeout)
        if data is None:
            logger.debug(f"Ledger bucket {key} not found, returning zero usage")
            return UsageRecord()
        record = UsageRecord(**data)
        logger.debug(f"Read ledger bucket {key}: cost_micros={record.cost_micros}")
        return record

    def read_daily(self, day: Optional[date] = None, timeout: Optional[float] = None) -> UsageRecord:
        return self.read(LedgerBucket.DAILY, day=day, timeout=timeout)

    def read_total(self, timeout: Optional[float] = None) -> UsageRecord:
        return self.read(LedgerBucket.TOTAL, timeout=timeout)

    def _writable_daily_key(self, day: Optional[date]) -> str:
        """Key to write; the clock is read once, and only an explicit past day is refused."""
        today = self.today()
        if day is None:
            return daily_key(today)
        if day < today:
            raise LedgerClosedBucketError(
                f"Ledger bucket {daily_key(day)} is closed; today is {daily_key(today)}"
            )
        return daily_key(day)

    def apply_delta(
        self,
        bucket: LedgerBucket,
        delta: CostDelta,
        day: Optional[date] = None,
        timeout: Optional[float] = None,
    ) -> None:
        """Atomically add delta to a single bucket."""
        if LedgerBucket(bucket) is LedgerBucket.TOTAL:
            key = TOTAL_KEY
        else:
            key = self._writable_daily_key(day)
        self._store.increment([key], delta.fields(), timeout=timeout)
        logger.debug(f"Applied delta to ledger bucket {key}: cost_micros={delta.cost_micros}")

    def apply_delta_atomic(
        self,
        delta: CostDelta,
        day: Optional[date] = None,
        timeout: Optional[float] = None,
    ) -> None:
        """
        Add delta to the daily bucket and the all-time total.

        Stores with multi-key transactions get both writes in one
        transaction. Otherwise the daily bucket is written first and a
        failed total write raises LedgerInconsistencyError.
        """
        self._apply_both(self._writable_daily_key(day), delta, timeout)

    def _apply_both(self, key: str, delta: CostDelta, timeout: Optional[float]) -> None:
        if self._store.supports_transactions:
            self._store.increment([key, TOTAL_KEY], delta.fields(), timeout=timeout)
        else:
            self._store.increment([key], delta.fields(), timeout=timeout)
            try:
                self._store.increment([TOTAL_KEY], delta.fields(), timeout=timeout)
            except LedgerError as e:
                raise LedgerInconsistencyError(
                    f"Bucket {key} updated but {TOTAL_KEY} write failed: {e}", delta=delta
                ) from e
        logger.debug(
            f"Applied delta to ledger buckets {key} and {TOTAL_KEY}: cost_micros={delta.cost_micros}"
        )

    def apply_priced(
        self,
        price: Callable[[UsageRecord], CostDelta],
        day: Optional[date] = None,
        timeout: Optional[float] = None,
    ) -> Tuple[str, CostDelta]:
        """
        Price a batch against the all-time total and apply the delta to
        the daily bucket and the total.

        On transactional stores the read of the total, ``price`` and both
        writes run under one write lock, so concurrent batches straddling
        a free tier are priced one after the other. Other stores read the
        total first and then fall back to apply_delta_atomic semantics.

        Args:
            price: Pure function from the current total to the CostDelta
            day: Explicit bucket day; when omitted today is read once

        Returns:
            (daily bucket key, applied CostDelta)
        """
        key = self._writable_daily_key(day)
        if not self._store.supports_transactions:
            delta = price(self.read_total(timeout=timeout))
            self._apply_both(key, delta, timeout)
            return key, delta

        priced: List[CostDelta] = []

        def compute(data: Optional[Dict[str, int]]) -> Dict[str, int]:
            priced[:] = [price(UsageRecord(**data) if data else UsageRecord())]
            return priced[0].fields()

        self._store.read_and_increment(TOTAL_KEY, [key, TOTAL_KEY], compute, timeout=timeout)
        delta = priced[0]
        logger.debug(
            f"Applied priced delta to ledger buckets {key} and {TOTAL_KEY}: "
            f"cost_micros={delta.cost_micros}"
        )
        return key, delta

    def history(
        self,
        limit: int = 30,
        timeout: Optional[float] = None,
    ) -> List[Tuple[str, UsageRecord]]:
        """Daily records, newest first."""
        rows = self._store.list_buckets(exclude=[TOTAL_KEY], limit=limit, timeout=timeout)
        return [(key, UsageRecord(**data)) for key, data in rows]

    def audit(self, timeout: Optional[float] = None) -> Dict[str, int]:
        """
        Compare the sum of all daily buckets with the all-time total.

        Returns:
            Field name -> (total - sum of days) for every field that
            disagrees. Empty when the ledger is consistent.
        """
        sums = dict.fromkeys(COUNTER_FIELDS, 0)
        for _, data in self._store.list_buckets(exclude=[TOTAL_KEY], timeout=timeout):
            for name in COUNTER_FIELDS:
                sums[name] += data[name]

        total = self.read_total(timeout=timeout).model_dump()
        drift = {
            name: total[name] - sums[name]
            for name in COUNTER_FIELDS
            if total[name] != sums[name]
        }
        if drift:
            logger.error(f"Ledger drift between daily buckets and total: {drift}")
        return drift
