#!/usr/bin/env python3
"""
Spending Report - print daily usage buckets, the all-time total and the
ledger audit.

Usage:
    python scripts/spending_report.py [--db data/spending.db] [--days 7] [--quota MICROS]

Exit status is 1 when the audit finds drift between the daily buckets
and the all-time total, so the script can run as a reconciliation check.
"""

import argparse
import os
import sys

sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from shared.billing import (  # noqa: E402
    QuotaGate,
    SQLiteLedgerStore,
    UsageLedger,
    UsageRecord,
)
from shared.billing.pricing import MICROS_PER_USD  # noqa: E402


def _format_record(label: str, record: UsageRecord) -> str:
    return (
        f"{label:<12} ${record.cost_micros / MICROS_PER_USD:>10.4f}  "
        f"premium={record.premium_voice_characters:<9} "
        f"standard={record.standard_voice_characters:<9} "
        f"in={record.model_input_units:<9} out={record.model_output_units}"
    )


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Usage ledger report")
    parser.add_argument("--db", default=os.getenv("LEDGER_DB_PATH", "data/spending.db"))
    parser.add_argument("--days", type=int, default=7, help="Number of daily buckets to show")
    parser.add_argument("--quota", type=int, default=None, help="Daily quota in micro-USD")
    args = parser.parse_args(argv)

    ledger = UsageLedger(SQLiteLedgerStore(args.db))

    for key, record in ledger.history(limit=args.days):
        print(_format_record(key, record))
    print(_format_record("total", ledger.read_total()))

    if args.quota:
        gate = QuotaGate(ledger, args.quota)
        result = gate.check_quota()
        state = "ok" if result.allowed else "OVER QUOTA"
        print(f"quota {result.day}: {result.current_cost_micros}/{result.limit_micros} micro-USD ({state})")

    drift = ledger.audit()
    if drift:
        print(f"DRIFT: {drift}")
        return 1
    print("ledger consistent")
    return 0


if __name__ == "__main__":
    sys.exit(main())
