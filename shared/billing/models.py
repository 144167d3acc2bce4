"""Pydantic models for usage records, usage batches and cost deltas."""
from enum import Enum
from typing import Dict

from pydantic import BaseModel, ConfigDict, NonNegativeInt

from .pricing import UsageDimension


class LedgerBucket(str, Enum):
    """Time scope of a ledger record."""
    DAILY = "daily"
    TOTAL = "total"


class _Counters(BaseModel):
    model_config = ConfigDict(frozen=True)

    premium_voice_characters: NonNegativeInt = 0
    standard_voice_characters: NonNegativeInt = 0
    model_input_units: NonNegativeInt = 0
    model_output_units: NonNegativeInt = 0

    def count(self, dimension: UsageDimension) -> int:
        return getattr(self, UsageDimension(dimension).value)

    def counters(self) -> Dict[UsageDimension, int]:
        return {d: self.count(d) for d in UsageDimension}


class UsageBatch(_Counters):
    """Raw usage produced by one completed billable sub-operation."""

    def is_empty(self) -> bool:
        return not any(self.counters().values())


class UsageRecord(_Counters):
    """Cumulative usage and cost of one ledger bucket."""
    cost_micros: NonNegativeInt = 0


class CostDelta(_Counters):
    """Increment to add to a UsageRecord."""
    cost_micros: NonNegativeInt = 0

    def is_zero(self) -> bool:
        return self.cost_micros == 0 and not any(self.counters().values())

    def fields(self) -> Dict[str, int]:
        """Ledger field name -> increment."""
        return self.model_dump()

    def __add__(self, other: "CostDelta") -> "CostDelta":
        if not isinstance(other, CostDelta):
            return NotImplemented
        mine, theirs = self.model_dump(), other.model_dump()
        return CostDelta(**{k: mine[k] + theirs[k] for k in mine})
