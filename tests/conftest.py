from __future__ import annotations

from datetime import date, timedelta

import pytest

from rolling_budget.cycles import CycleManager
from rolling_budget.daily_records import DailyRecordManager
from rolling_budget.db import SQLiteLedgerStore
from rolling_budget.ledger import BudgetLedger
from rolling_budget.recalculation import RecalculationEngine

# 2024-01-01 is a Monday
ANCHOR = date(2024, 1, 1)
ACCOUNT = 'household'


class FakeClock:
    def __init__(self, day: date) -> None:
        self.day = day

    def __call__(self) -> date:
        return self.day

    def set(self, day: date) -> None:
        self.day = day

    def advance(self, days: int) -> None:
        self.day += timedelta(days=days)


@pytest.fixture
def store(tmp_path):
    ledger_store = SQLiteLedgerStore(tmp_path / 'ledger.db')
    yield ledger_store
    ledger_store.close()


@pytest.fixture
def clock():
    return FakeClock(ANCHOR)


@pytest.fixture
def ledger(store, clock):
    return BudgetLedger(store, clock=clock)


@pytest.fixture
def records(store):
    return DailyRecordManager(store)


@pytest.fixture
def recalculation(store, records):
    return RecalculationEngine(store, records)


@pytest.fixture
def cycles(store, recalculation):
    return CycleManager(store, recalculation)
