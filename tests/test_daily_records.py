from __future__ import annotations

from datetime import date
from decimal import Decimal

import pytest

from rolling_budget.errors import DateOutOfRange, InvalidExpense, NotFound
from rolling_budget.models import CarryOverMode

from conftest import ACCOUNT, ANCHOR


@pytest.fixture
def second_cycle(ledger, cycles, clock):
    """Rolled-over cycle starting 2024-01-08 with 50 carried in."""
    ledger.upsert_config(ACCOUNT, '50', CarryOverMode.ROLLOVER, 7, ANCHOR)
    clock.set(date(2024, 1, 7))
    ledger.add_expense(ACCOUNT, 300, on=date(2024, 1, 3))
    clock.set(date(2024, 1, 8))
    return cycles.ensure_active_cycle(ACCOUNT, date(2024, 1, 8))


def test_carried_balance_lands_on_day_one_only(records, second_cycle):
    assert second_cycle.opening_balance == Decimal('50.00')
    day_one = records.get_or_create_daily_record(second_cycle.id, date(2024, 1, 8))
    day_two = records.get_or_create_daily_record(second_cycle.id, date(2024, 1, 9))
    assert day_one.allocated == Decimal('100.00')
    assert day_one.spent == 0
    assert day_one.balance == Decimal('100.00')
    assert day_two.allocated == Decimal('50.00')


def test_get_or_create_returns_existing_record(records, second_cycle, store):
    first = records.get_or_create_daily_record(second_cycle.id, date(2024, 1, 9))
    again = records.get_or_create_daily_record(second_cycle.id, date(2024, 1, 9))
    assert first.id == again.id
    assert len(store.list_records(second_cycle.id)) == 1


def test_date_outside_cycle_is_rejected(records, second_cycle, store):
    with pytest.raises(DateOutOfRange):
        records.get_or_create_daily_record(second_cycle.id, date(2024, 1, 15))
    with pytest.raises(DateOutOfRange):
        records.get_or_create_daily_record(second_cycle.id, date(2024, 1, 7))
    assert store.list_records(second_cycle.id) == []


def test_unknown_cycle(records):
    with pytest.raises(NotFound):
        records.get_or_create_daily_record(999, ANCHOR)


def test_update_spent_is_an_assignment(records, second_cycle):
    record = records.get_or_create_daily_record(second_cycle.id, date(2024, 1, 9))
    once = records.update_daily_record_spent(record.id, Decimal('12.00'))
    twice = records.update_daily_record_spent(record.id, Decimal('12.00'))
    assert once == twice
    assert twice.spent == Decimal('12.00')
    assert twice.balance == Decimal('38.00')

    corrected = records.update_daily_record_spent(record.id, '5')
    assert corrected.balance == Decimal('45.00')


def test_update_spent_rejects_negative_totals(records, second_cycle):
    record = records.get_or_create_daily_record(second_cycle.id, date(2024, 1, 9))
    with pytest.raises(InvalidExpense):
        records.update_daily_record_spent(record.id, -1)
    with pytest.raises(NotFound):
        records.update_daily_record_spent(12345, 1)


def test_total_expenses_reads_the_expense_log(records, ledger, second_cycle, store):
    ledger.add_expense(ACCOUNT, '7.25', on=date(2024, 1, 8))
    ledger.add_expense(ACCOUNT, '2.75', on=date(2024, 1, 8))
    record = store.get_record(second_cycle.id, date(2024, 1, 8))
    assert records.get_total_expenses_for_record(record.id) == Decimal('10.00')
    assert record.spent == Decimal('10.00')


def test_resolve_or_default_never_writes(records, second_cycle, store):
    synthesized = records.resolve_or_default(second_cycle, date(2024, 1, 8))
    assert synthesized.id is None
    assert synthesized.allocated == Decimal('100.00')
    assert store.list_records(second_cycle.id) == []
