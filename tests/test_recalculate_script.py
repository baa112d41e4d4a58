from __future__ import annotations

import importlib.util
from datetime import date
from decimal import Decimal
from pathlib import Path

import pytest

from rolling_budget.db import SQLiteLedgerStore
from rolling_budget.errors import RecalculationIncomplete
from rolling_budget.ledger import BudgetLedger
from rolling_budget.models import CarryOverMode

from conftest import ACCOUNT, ANCHOR, FakeClock

SCRIPT = Path(__file__).resolve().parents[1] / 'scripts' / 'recalculate_account.py'


def _load_script():
    spec = importlib.util.spec_from_file_location('recalculate_account', SCRIPT)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


def test_script_repairs_stale_cascade(tmp_path, capsys):
    db_path = tmp_path / 'ledger.db'
    store = SQLiteLedgerStore(db_path)
    clock = FakeClock(ANCHOR)
    ledger = BudgetLedger(store, clock=clock, max_cascade_depth=1)
    ledger.upsert_config(ACCOUNT, '50', CarryOverMode.ROLLOVER, 7, ANCHOR)
    ledger.get_current_cycle(ACCOUNT)
    clock.set(date(2024, 1, 8))
    ledger.get_current_cycle(ACCOUNT)
    with pytest.raises(RecalculationIncomplete):
        ledger.add_expense(ACCOUNT, 20, on=date(2024, 1, 5))
    store.close()

    assert _load_script().main([ACCOUNT, '--db', str(db_path), '--log-level', 'WARNING']) == 0
    assert f"{ACCOUNT}: 2 cycles recalculated" in capsys.readouterr().out

    reopened = SQLiteLedgerStore(db_path)
    try:
        assert reopened.get_active_cycle(ACCOUNT).carried_in == Decimal('330.00')
    finally:
        reopened.close()


def test_script_reports_unknown_accounts(tmp_path):
    assert _load_script().main(['nobody', '--db', str(tmp_path / 'empty.db')]) == 0
