"""
Cost Accumulator - converts a usage batch into a cost delta.

Pure computation: no I/O, no shared state. The free tier of each
dimension is measured against the all-time total as it was *before*
the batch, so a batch straddling the threshold is charged only for the
units past it.
"""
from .models import CostDelta, UsageBatch, UsageRecord
from .pricing import PricingTable


def billable_units(current_total: int, amount: int, free_tier_threshold: int) -> int:
    """
    Units of ``amount`` that fall at or above the free tier.

    Once ``current_total >= free_tier_threshold`` the whole amount is
    billable; below it only the overflow past the threshold is.
    """
    if amount <= 0:
        return 0
    overflow = current_total + amount - free_tier_threshold
    return min(amount, max(0, overflow))


def compute_delta(
    current_totals: UsageRecord,
    batch: UsageBatch,
    pricing: PricingTable,
) -> CostDelta:
    """
    Compute the cost and counter increments for one batch.

    Args:
        current_totals: All-time UsageRecord before this batch is applied
        batch: Raw per-dimension counts of one billable sub-operation
        pricing: Pricing table

    Returns:
        CostDelta whose counters equal the batch and whose cost is the
        sum of billable units times unit price over all dimensions
    """
    cost = 0
    for dimension, amount in batch.counters().items():
        entry = pricing.get(dimension)
        units = billable_units(
            current_totals.count(dimension), amount, entry.free_tier_threshold
        )
        cost += units * entry.unit_price_micros

    return CostDelta(cost_micros=cost, **batch.model_dump())
