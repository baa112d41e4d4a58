#!/usr/bin/env python3
"""Re-run the ledger recalculation for one or more accounts.

Repairs accounts left partially consistent after a cascade hit its depth
bound, or after expenses were edited directly in the database.
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

project_root = Path(__file__).resolve().parents[1]
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

from rolling_budget import config  # noqa: E402
from rolling_budget.db import SQLiteLedgerStore  # noqa: E402
from rolling_budget.errors import LedgerError  # noqa: E402
from rolling_budget.ledger import BudgetLedger  # noqa: E402


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("accounts", nargs="+", help="Account ids to recalculate")
    parser.add_argument("--db", default=None, help=f"Path to the ledger database (default: {config.get_db_path()})")
    parser.add_argument("--max-depth", type=int, default=None, help="Cascade depth bound")
    parser.add_argument("--log-level", default="INFO")
    args = parser.parse_args(argv)

    config.configure_logging(args.log_level)
    store = SQLiteLedgerStore(args.db)
    ledger = BudgetLedger(store, max_cascade_depth=args.max_depth)
    failures = 0
    try:
        for account_id in args.accounts:
            try:
                count = ledger.recalculate_account(account_id)
            except LedgerError as exc:
                failures += 1
                print(f"  - {account_id}: {exc}")
                continue
            print(f"{account_id}: {count} cycles recalculated")
    finally:
        store.close()
    return 1 if failures else 0


if __name__ == "__main__":
    raise SystemExit(main())
