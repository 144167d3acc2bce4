"""
Shared pytest fixtures for the sentence gateway tests.

Provides fixtures for:
- Logging capture
- Temporary SQLite usage ledgers with a pinned clock
- Pricing table, quota gate and spending recorder
"""

import logging
import sys
from datetime import datetime, timezone
from pathlib import Path

import pytest

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from shared.billing import (  # noqa: E402
    PricingTable,
    QuotaGate,
    SQLiteLedgerStore,
    SpendingRecorder,
    UsageLedger,
)

FIXED_NOW = datetime(2025, 3, 14, 12, 0, tzinfo=timezone.utc)


# ============================================================================
# Logging Fixtures
# ============================================================================

@pytest.fixture(autouse=True)
def configure_test_logging(caplog):
    """Configure logging for all tests."""
    caplog.set_level(logging.DEBUG)
    return caplog


# ============================================================================
# Billing Fixtures
# ============================================================================

@pytest.fixture
def tmp_db(tmp_path):
    """Return a temporary SQLite DB path for the ledger store."""
    return str(tmp_path / "test_spending.db")


@pytest.fixture
def ledger_store(tmp_db):
    """Create a fresh SQLiteLedgerStore backed by a temp DB."""
    return SQLiteLedgerStore(db_path=tmp_db)


@pytest.fixture
def clock():
    """Clock pinned to FIXED_NOW."""
    return lambda: FIXED_NOW


@pytest.fixture
def ledger(ledger_store, clock):
    """UsageLedger whose 'today' is FIXED_NOW's date."""
    return UsageLedger(ledger_store, clock=clock)


@pytest.fixture
def pricing():
    """Model tokens at 2/5 micro-USD, voice tiers at their default prices."""
    return PricingTable.from_prices(model_input_price=2, model_output_price=5)


@pytest.fixture
def recorder(ledger, pricing):
    return SpendingRecorder(ledger, pricing)


@pytest.fixture
def quota_gate(ledger):
    """Gate with a 5 USD daily ceiling."""
    return QuotaGate(ledger, daily_quota_micros=5_000_000)
