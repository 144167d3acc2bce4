"""
Pricing Table - unit prices and free tiers per usage dimension.

All money is handled as integer micro-USD. The table is built once at
startup and never mutated afterwards.
"""
import logging
from enum import Enum
from typing import Dict, Mapping, Optional

from pydantic import BaseModel, ConfigDict, NonNegativeInt, ValidationError

from .errors import PricingConfigError

logger = logging.getLogger(__name__)

MICROS_PER_USD = 1_000_000


class UsageDimension(str, Enum):
    """Metered usage dimensions. Values double as ledger field names."""
    PREMIUM_VOICE = "premium_voice_characters"
    STANDARD_VOICE = "standard_voice_characters"
    MODEL_INPUT = "model_input_units"
    MODEL_OUTPUT = "model_output_units"


class PricingEntry(BaseModel):
    """Price of one unit above the free tier, and the free tier itself."""
    model_config = ConfigDict(frozen=True)

    unit_price_micros: NonNegativeInt
    free_tier_threshold: NonNegativeInt = 0


PREMIUM_VOICE_PRICE_MICROS = 30
PREMIUM_VOICE_FREE_TIER = 1_000_000
STANDARD_VOICE_PRICE_MICROS = 4
STANDARD_VOICE_FREE_TIER = 4_000_000


def micros_to_usd(micros: int) -> int:
    """Whole dollars contained in an amount of micro-USD (truncating)."""
    return int(micros) // MICROS_PER_USD


def usd_to_micros(usd: int) -> int:
    return int(usd) * MICROS_PER_USD


class PricingTable:
    """
    Read-only mapping from usage dimension to PricingEntry.

    Every UsageDimension must be priced; a zero threshold charges from
    the first unit.
    """

    def __init__(self, entries: Mapping[UsageDimension, PricingEntry]):
        missing = [d.value for d in UsageDimension if d not in entries]
        if missing:
            raise PricingConfigError(f"No price configured for: {', '.join(missing)}")
        self._entries: Dict[UsageDimension, PricingEntry] = dict(entries)

    def get(self, dimension: UsageDimension) -> PricingEntry:
        return self._entries[UsageDimension(dimension)]

    def __getitem__(self, dimension: UsageDimension) -> PricingEntry:
        return self.get(dimension)

    def items(self):
        return self._entries.items()

    @classmethod
    def from_prices(
        cls,
        model_input_price: int,
        model_output_price: int,
        premium_voice_price: int = PREMIUM_VOICE_PRICE_MICROS,
        premium_voice_free_tier: int = PREMIUM_VOICE_FREE_TIER,
        standard_voice_price: int = STANDARD_VOICE_PRICE_MICROS,
        standard_voice_free_tier: int = STANDARD_VOICE_FREE_TIER,
        model_input_free_tier: Optional[int] = 0,
        model_output_free_tier: Optional[int] = 0,
    ) -> "PricingTable":
        """
        Build a table from raw integers, validating each entry.

        Model calls have no free tier unless one is given explicitly.

        Raises:
            PricingConfigError: If any price or threshold is negative or not an integer
        """
        raw = {
            UsageDimension.PREMIUM_VOICE: (premium_voice_price, premium_voice_free_tier),
            UsageDimension.STANDARD_VOICE: (standard_voice_price, standard_voice_free_tier),
            UsageDimension.MODEL_INPUT: (model_input_price, model_input_free_tier or 0),
            UsageDimension.MODEL_OUTPUT: (model_output_price, model_output_free_tier or 0),
        }
        entries = {}
        for dimension, (price, threshold) in raw.items():
            try:
                entries[dimension] = PricingEntry(
                    unit_price_micros=price,
                    free_tier_threshold=threshold,
                )
            except ValidationError as e:
                raise PricingConfigError(
                    f"Invalid pricing for {dimension.value}: {e.errors()[0]['msg']}"
                ) from e

        table = cls(entries)
        for dimension, entry in table.items():
            logger.info(
                f"Pricing {dimension.value}: {entry.unit_price_micros} micro-USD/unit, "
                f"free tier {entry.free_tier_threshold}"
            )
        return table
