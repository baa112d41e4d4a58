from __future__ import annotations

from datetime import date, timedelta
from decimal import Decimal

import pytest

from rolling_budget.errors import NotFound, RecalculationIncomplete
from rolling_budget.ledger import BudgetLedger
from rolling_budget.models import CarryOverMode, CycleStatus, WeekCycle
from rolling_budget.recalculation import RecalculationEngine

from conftest import ACCOUNT, ANCHOR


def _cycle_starting(store, start):
    return next(c for c in store.list_cycles(ACCOUNT) if c.start_date == start)


def _setup_first_week(ledger, clock, mode=CarryOverMode.ROLLOVER, spend='300'):
    ledger.upsert_config(ACCOUNT, '50', mode, 7, ANCHOR)
    clock.set(date(2024, 1, 7))
    ledger.add_expense(ACCOUNT, spend, on=date(2024, 1, 3))
    clock.set(date(2024, 1, 8))


def test_rollover_reaches_day_one_of_next_cycle(ledger, clock):
    _setup_first_week(ledger, clock)
    today = ledger.get_today_budget(ACCOUNT)
    assert today.date == date(2024, 1, 8)
    assert today.allocated == Decimal('100.00')
    assert today.adjustment == Decimal('50.00')
    assert today.remaining_days == 7


def test_backdated_expense_updates_successor(ledger, clock, store):
    _setup_first_week(ledger, clock)
    ledger.get_today_budget(ACCOUNT)

    ledger.add_expense(ACCOUNT, '20', on=date(2024, 1, 5))

    first = _cycle_starting(store, ANCHOR)
    second = _cycle_starting(store, date(2024, 1, 8))
    assert first.accumulated_balance == Decimal('30.00')
    assert first.closing_balance == Decimal('30.00')
    assert second.carried_in == Decimal('30.00')
    assert store.get_record(second.id, date(2024, 1, 8)).allocated == Decimal('80.00')
    assert second.accumulated_balance == Decimal('380.00')
    assert ledger.get_today_budget(ACCOUNT).allocated == Decimal('80.00')


def test_none_mode_starts_fresh(ledger, clock):
    _setup_first_week(ledger, clock, mode=CarryOverMode.NONE)
    assert ledger.get_today_budget(ACCOUNT).allocated == Decimal('50.00')


def test_redistribute_spreads_balance_over_the_cycle(ledger, clock, store):
    _setup_first_week(ledger, clock, mode=CarryOverMode.REDISTRIBUTE, spend='250')
    cycle = ledger.get_current_cycle(ACCOUNT)
    assert cycle.carried_in == Decimal('100.00')
    assert cycle.per_day_adjustment == Decimal('14.28')
    assert cycle.remainder_adjustment == Decimal('0.04')

    days = ledger.get_daily_records_for_cycle(cycle.id)
    assert days[0].allocated == Decimal('64.32')
    assert {day.allocated for day in days[1:]} == {Decimal('64.28')}
    assert sum(day.allocated for day in days) == Decimal('450.00')


def test_redistribute_remainder_on_last_day(store, clock):
    ledger = BudgetLedger(store, clock=clock, remainder_day='last')
    _setup_first_week(ledger, clock, mode=CarryOverMode.REDISTRIBUTE, spend='250')
    cycle = ledger.get_current_cycle(ACCOUNT)
    days = ledger.get_daily_records_for_cycle(cycle.id)
    assert days[0].allocated == Decimal('64.28')
    assert days[-1].allocated == Decimal('64.32')


def test_overspending_rolls_a_deficit(ledger, clock):
    _setup_first_week(ledger, clock, spend='500')
    today = ledger.get_today_budget(ACCOUNT)
    assert today.allocated == Decimal('-100.00')
    assert today.available == Decimal('-100.00')
    assert today.status.value == 'overspent'


def test_rollover_credit_ignores_deficit(ledger, clock):
    _setup_first_week(ledger, clock, mode=CarryOverMode.ROLLOVER_CREDIT, spend='500')
    cycle = ledger.get_current_cycle(ACCOUNT)
    assert cycle.carried_in == Decimal('-150.00')
    assert ledger.get_today_budget(ACCOUNT).allocated == Decimal('50.00')


def test_rollover_deficit_ignores_surplus(ledger, clock):
    _setup_first_week(ledger, clock, mode=CarryOverMode.ROLLOVER_DEFICIT, spend='300')
    assert ledger.get_today_budget(ACCOUNT).allocated == Decimal('50.00')


def test_deletion_cascades_through_three_cycles(ledger, clock, store):
    ledger.upsert_config(ACCOUNT, '50', CarryOverMode.ROLLOVER, 7, ANCHOR)
    clock.set(date(2024, 1, 2))
    old = ledger.add_expense(ACCOUNT, '100', on=date(2024, 1, 2))

    clock.set(date(2024, 1, 15))
    ledger.add_expense(ACCOUNT, '30')
    third = ledger.get_current_cycle(ACCOUNT)
    assert third.start_date == date(2024, 1, 15)
    assert _cycle_starting(store, date(2024, 1, 8)).accumulated_balance == Decimal('600.00')
    assert store.get_record(third.id, date(2024, 1, 15)).allocated == Decimal('650.00')

    ledger.delete_expense(ACCOUNT, old.id)

    assert _cycle_starting(store, ANCHOR).closing_balance == Decimal('350.00')
    assert _cycle_starting(store, date(2024, 1, 8)).closing_balance == Decimal('700.00')
    record = store.get_record(third.id, date(2024, 1, 15))
    assert record.allocated == Decimal('750.00')
    assert record.spent == Decimal('30.00')
    assert record.balance == Decimal('720.00')


def test_unchanged_balance_stops_at_fixed_point(ledger, clock, store):
    _setup_first_week(ledger, clock)
    ledger.get_current_cycle(ACCOUNT)
    engine = RecalculationEngine(store, ledger.records, max_cascade_depth=1)
    first = _cycle_starting(store, ANCHOR)
    assert engine.recalculate_cycle_accumulated_balance(first.id) == Decimal('50.00')


def test_cascade_depth_bound_and_repair(store, clock):
    shallow = BudgetLedger(store, clock=clock, max_cascade_depth=1)
    _setup_first_week(shallow, clock)
    shallow.get_current_cycle(ACCOUNT)

    with pytest.raises(RecalculationIncomplete) as excinfo:
        shallow.add_expense(ACCOUNT, '20', on=date(2024, 1, 5))
    first = _cycle_starting(store, ANCHOR)
    assert excinfo.value.last_cycle_id == first.id
    assert excinfo.value.processed == 1
    assert first.closing_balance == Decimal('30.00')
    # the successor keeps its stale carry until repaired
    assert _cycle_starting(store, date(2024, 1, 8)).carried_in == Decimal('50.00')

    deep = BudgetLedger(store, clock=clock)
    assert deep.recalculate_account(ACCOUNT) == 2
    assert _cycle_starting(store, date(2024, 1, 8)).carried_in == Decimal('30.00')
    assert deep.get_today_budget(ACCOUNT).allocated == Decimal('80.00')


def test_settle_retotals_from_the_expense_log(ledger, clock, store, recalculation):
    _setup_first_week(ledger, clock)
    first = _cycle_starting(store, ANCHOR)
    record = store.get_record(first.id, date(2024, 1, 3))
    # simulate a drifted row
    ledger.records.update_daily_record_spent(record.id, '1')
    assert recalculation.recalculate_cycle_accumulated_balance(first.id) == Decimal('50.00')
    assert store.get_record(first.id, date(2024, 1, 3)).spent == Decimal('300.00')


def test_daily_records_are_synthesized_without_writes(ledger, clock, store, recalculation):
    ledger.upsert_config(ACCOUNT, '50', CarryOverMode.ROLLOVER, 7, ANCHOR)
    cycle = ledger.get_current_cycle(ACCOUNT)
    days = recalculation.get_daily_records_for_cycle(cycle.id)
    assert [d.date for d in days] == [ANCHOR + timedelta(days=i) for i in range(7)]
    assert not any(d.is_materialized for d in days)
    assert store.list_records(cycle.id) == []


def test_unknown_cycle(recalculation):
    with pytest.raises(NotFound):
        recalculation.recalculate_cycle_accumulated_balance(404)


def test_remainder_day_stays_with_the_cycle(store, clock):
    ledger = BudgetLedger(store, clock=clock, remainder_day='last')
    _setup_first_week(ledger, clock, mode=CarryOverMode.REDISTRIBUTE, spend='250')
    cycle = ledger.get_current_cycle(ACCOUNT)
    assert cycle.remainder_day == 'last'
    clock.set(date(2024, 1, 14))
    assert ledger.get_today_budget(ACCOUNT).allocated == Decimal('64.32')

    default_ledger = BudgetLedger(store, clock=clock)
    default_ledger.recalculate_account(ACCOUNT)
    assert store.get_record(cycle.id, date(2024, 1, 14)).allocated == Decimal('64.32')
    assert default_ledger.get_today_budget(ACCOUNT).allocated == Decimal('64.32')

    clock.set(date(2024, 1, 15))
    assert default_ledger.get_current_cycle(ACCOUNT).remainder_day == 'first'


def _ledger_state(store):
    return [(cycle, store.list_records(cycle.id)) for cycle in store.list_cycles(ACCOUNT)]


def test_repeated_recalculation_changes_nothing(ledger, clock, store):
    ledger.upsert_config(ACCOUNT, '50', CarryOverMode.REDISTRIBUTE, 7, ANCHOR)
    clock.set(date(2024, 1, 3))
    ledger.add_expense(ACCOUNT, '80', on=date(2024, 1, 2))
    clock.set(date(2024, 1, 16))
    ledger.add_expense(ACCOUNT, '12.34', on=date(2024, 1, 9))
    ledger.add_expense(ACCOUNT, '5')
    ledger.get_today_budget(ACCOUNT)

    before = _ledger_state(store)
    assert len(before) == 3
    ledger.recalculate_account(ACCOUNT)
    once = _ledger_state(store)
    ledger.recalculate_account(ACCOUNT)
    assert _ledger_state(store) == once == before


def test_corrupted_cycle_chain_is_reported(store, recalculation):
    # a zero-length closed cycle is its own successor
    looping = store.create_cycle(
        WeekCycle(
            account_id=ACCOUNT,
            start_date=ANCHOR,
            end_date=ANCHOR,
            daily_base=Decimal('50.00'),
            cycle_length_days=7,
            carry_over_mode=CarryOverMode.ROLLOVER,
            carried_in=Decimal('10.00'),
            closing_balance=Decimal('0.00'),
            status=CycleStatus.CLOSED,
        )
    )
    with pytest.raises(RecalculationIncomplete) as excinfo:
        recalculation.recalculate_cycle_accumulated_balance(looping.id)
    assert excinfo.value.last_cycle_id == looping.id
    assert excinfo.value.processed == 1
