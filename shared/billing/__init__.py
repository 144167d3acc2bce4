"""
shared.billing - Spend metering and daily quota admission control.

Provides the billing primitives for the sentence gateway:
- PricingTable: unit prices and free tiers per usage dimension
- compute_delta: pure usage -> cost conversion
- UsageLedger: durable daily and all-time usage counters
- QuotaGate: daily spending ceiling check
- SpendingRecorder: meters completed billable operations
"""
from .cost_accumulator import billable_units, compute_delta
from .errors import (
    BillingError,
    LedgerClosedBucketError,
    LedgerCorruptionError,
    LedgerError,
    LedgerInconsistencyError,
    LedgerTimeoutError,
    LedgerUnavailableError,
    PricingConfigError,
    QuotaExceededError,
)
from .models import CostDelta, LedgerBucket, UsageBatch, UsageRecord
from .pricing import (
    MICROS_PER_USD,
    PricingEntry,
    PricingTable,
    UsageDimension,
    micros_to_usd,
    usd_to_micros,
)
from .quota_gate import QuotaGate, QuotaResult
from .spending_recorder import SpendingRecorder
from .usage_ledger import TOTAL_KEY, UsageLedger, daily_key
from .usage_store import LedgerStore, SQLiteLedgerStore

__all__ = [
    "BillingError",
    "LedgerClosedBucketError",
    "CostDelta",
    "LedgerBucket",
    "LedgerCorruptionError",
    "LedgerError",
    "LedgerInconsistencyError",
    "LedgerStore",
    "LedgerTimeoutError",
    "LedgerUnavailableError",
    "MICROS_PER_USD",
    "PricingConfigError",
    "PricingEntry",
    "PricingTable",
    "QuotaExceededError",
    "QuotaGate",
    "QuotaResult",
    "SQLiteLedgerStore",
    "SpendingRecorder",
    "TOTAL_KEY",
    "UsageBatch",
    "UsageDimension",
    "UsageLedger",
    "UsageRecord",
    "billable_units",
    "compute_delta",
    "daily_key",
    "micros_to_usd",
    "usd_to_micros",
]
