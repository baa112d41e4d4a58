"""Application facade over the budget engine.

:class:`BudgetLedger` is what the surrounding application calls: it wires the
cycle manager, the daily record manager and the recalculation engine to one
store, keeps the expense log and the day rows in step, and retries whole
operations when the store reports a conflicting write.

The caller is responsible for authorization; every ``account_id`` passed in
is assumed to be one the current user may act on.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import date
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple, TypeVar, Union

from . import calculations as calc
from . import config
from .cycles import CycleManager
from .daily_records import DailyRecordManager
from .errors import ConcurrentModification, InvalidConfig, InvalidExpense, NotFound
from .models import BudgetConfig, BudgetExpense, CarryOverMode, DailyRecord, TodayBudget, WeekCycle
from .recalculation import RecalculationEngine
from .store import LedgerStore
from .summary import WeekSummary, summarize_cycle

logger = logging.getLogger(__name__)

T = TypeVar('T')
DateLike = Union[date, str]


class BudgetLedger:
    """Entry point for budget status queries and expense writes."""

    def __init__(
        self,
        store: LedgerStore,
        *,
        clock: Callable[[], date] = calc.today,
        max_cascade_depth: Optional[int] = None,
        remainder_day: Optional[str] = None,
        warning_threshold: Optional[Decimal] = None,
        conflict_retries: Optional[int] = None,
    ) -> None:
        self.store = store
        self.clock = clock
        self.warning_threshold = warning_threshold
        self.conflict_retries = config.CONFLICT_RETRIES if conflict_retries is None else conflict_retries
        self.records = DailyRecordManager(store)
        self.recalculation = RecalculationEngine(store, self.records, max_cascade_depth=max_cascade_depth)
        self.cycles = CycleManager(store, self.recalculation, remainder_day=remainder_day)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _retry(self, label: str, operation: Callable[[], T]) -> T:
        attempts = self.conflict_retries + 1
        attempt = 1
        while True:
            try:
                return operation()
            except ConcurrentModification:
                if attempt >= attempts:
                    raise
                logger.warning("%s hit a conflicting write (attempt %d/%d); retrying", label, attempt, attempts)
                attempt += 1

    def _day(self, on: Optional[DateLike]) -> date:
        return self.clock() if on is None else calc.to_date(on)

    def _expense_day(self, on: Optional[DateLike]) -> date:
        try:
            day = self._day(on)
        except (TypeError, ValueError) as exc:
            raise InvalidExpense(f"Invalid expense date: {on!r}") from exc
        if day > self.clock():
            raise InvalidExpense(f"Expense date {day.isoformat()} is in the future")
        return day

    def _cycle_for_expense(self, account_id: str, day: date) -> WeekCycle:
        cycle = self.store.get_cycle_for_date(account_id, day)
        if cycle is None:
            raise InvalidExpense(f"Expense date {day.isoformat()} is before budget tracking began")
        return cycle

    def _cycle_for_view(self, account_id: str, day: date) -> WeekCycle:
        """Advance the chain to today, then pick the cycle holding ``day``.

        Raises:
            NotFound: ``day`` is after the active cycle or before tracking began.
        """
        active = self.cycles.ensure_active_cycle(account_id, self.clock())
        if active.contains(day):
            return active
        cycle = self.store.get_cycle_for_date(account_id, day)
        if cycle is None:
            raise NotFound(f"No budget cycle covers {day.isoformat()} for account '{account_id}'")
        return cycle

    def _refresh(self, cycle: WeekCycle, day: date) -> None:
        record = self.store.get_record(cycle.id, day)  # type: ignore[arg-type]
        if record is not None:
            self.records.refresh_spent(record.id)  # type: ignore[arg-type]

    def _recalculate(self, cycles: Sequence[WeekCycle]) -> None:
        seen = set()
        for cycle in sorted(cycles, key=lambda c: c.start_date):
            if cycle.id in seen:
                continue
            seen.add(cycle.id)
            self._retry(
                'recalculate',
                lambda cycle_id=cycle.id: self.recalculation.recalculate_cycle_accumulated_balance(cycle_id),
            )

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    def upsert_config(
        self,
        account_id: str,
        daily_base: Any,
        carry_over_mode: Union[CarryOverMode, str] = CarryOverMode.ROLLOVER,
        cycle_length_days: int = config.DEFAULT_CYCLE_LENGTH_DAYS,
        cycle_anchor_date: Optional[DateLike] = None,
    ) -> BudgetConfig:
        """Create or supersede the account's budget config.

        Existing cycles keep the values they were created with; the new
        config applies from the next cycle that is opened.

        Raises:
            InvalidConfig: On a bad daily base, cycle length or mode.
        """
        base = calc.validate_daily_base(daily_base)
        length = calc.validate_cycle_length(cycle_length_days)
        try:
            mode = CarryOverMode(carry_over_mode)
        except ValueError as exc:
            raise InvalidConfig(f"Unknown carry-over mode: {carry_over_mode!r}") from exc
        if cycle_anchor_date is None:
            anchor = calc.week_start(self.clock())
        else:
            try:
                anchor = calc.to_date(cycle_anchor_date)
            except (TypeError, ValueError) as exc:
                raise InvalidConfig(f"Invalid cycle anchor date: {cycle_anchor_date!r}") from exc
        saved = self._retry(
            'upsert_config',
            lambda: self.store.save_config(
                BudgetConfig(
                    account_id=account_id,
                    daily_base=base,
                    carry_over_mode=mode,
                    cycle_length_days=length,
                    cycle_anchor_date=anchor,
                )
            ),
        )
        logger.info("Saved budget config %s for account %s (%s/day, %s)", saved.id, account_id, base, mode.value)
        return saved

    def get_active_config(self, account_id: str) -> Optional[BudgetConfig]:
        return self.store.get_config(account_id)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_current_cycle(self, account_id: str) -> WeekCycle:
        return self._retry('get_current_cycle', lambda: self.cycles.ensure_active_cycle(account_id, self.clock()))

    def get_today_budget(self, account_id: str, on: Optional[DateLike] = None) -> TodayBudget:
        """Budget position of a day (today by default).

        Materializes the day's record; ``on`` may also name a past day of an
        existing cycle.

        Raises:
            NotFound: No cycle covers ``on``.
        """
        day = self._day(on)

        def operation() -> TodayBudget:
            with self.store.transaction(account_id):
                cycle = self._cycle_for_view(account_id, day)
                record = self.records.get_or_create_daily_record(cycle.id, day)  # type: ignore[arg-type]
            days = self.recalculation.get_daily_records_for_cycle(cycle.id)  # type: ignore[arg-type]
            return TodayBudget(
                date=day,
                daily_base=cycle.daily_base,
                allocated=record.allocated,
                adjustment=record.allocated - cycle.daily_base,
                spent=record.spent,
                available=calc.available_budget(record),
                status=calc.budget_status(record, self.warning_threshold),
                remaining_days=calc.remaining_days(cycle, day),
                cycle_id=cycle.id,  # type: ignore[arg-type]
                cycle_start=cycle.start_date,
                cycle_end=cycle.end_date,
                accumulated_to_date=calc.accumulated_balance(r for r in days if r.date <= day),
            )

        return self._retry('get_today_budget', operation)

    def get_week_summary(self, account_id: str, on: Optional[DateLike] = None) -> WeekSummary:
        day = self._day(on)
        cycle = self._retry('get_week_summary', lambda: self._cycle_for_view(account_id, day))
        records = self.recalculation.get_daily_records_for_cycle(cycle.id)  # type: ignore[arg-type]
        return summarize_cycle(cycle, records, day, self.warning_threshold)

    def get_daily_records_for_cycle(self, cycle_id: int) -> List[DailyRecord]:
        return self.recalculation.get_daily_records_for_cycle(cycle_id)

    def list_expenses(self, account_id: str, on: DateLike) -> List[BudgetExpense]:
        return self.store.list_expenses(account_id, calc.to_date(on))

    # ------------------------------------------------------------------
    # Expense writes
    # ------------------------------------------------------------------

    def add_expense(
        self,
        account_id: str,
        amount: Any,
        on: Optional[DateLike] = None,
        category: Optional[str] = None,
        description: Optional[str] = None,
    ) -> BudgetExpense:
        """Record an expense and bring the ledger up to date.

        Raises:
            InvalidExpense: Bad amount, a future date, or a date before the
                account's first cycle.
            NoConfig: The account has no budget config.
        """
        value = calc.validate_expense_amount(amount)
        day = self._expense_day(on)

        def write() -> Tuple[BudgetExpense, WeekCycle]:
            with self.store.transaction(account_id):
                self.cycles.ensure_active_cycle(account_id, self.clock())
                cycle = self._cycle_for_expense(account_id, day)
                record = self.records.get_or_create_daily_record(cycle.id, day)  # type: ignore[arg-type]
                expense = self.store.add_expense(
                    BudgetExpense(
                        account_id=account_id,
                        date=day,
                        amount=value,
                        category=(category or config.DEFAULT_CATEGORY).strip() or config.DEFAULT_CATEGORY,
                        description=description,
                    )
                )
                self.records.refresh_spent(record.id)  # type: ignore[arg-type]
            return expense, cycle

        expense, cycle = self._retry('add_expense', write)
        self._recalculate([cycle])
        logger.info("Added expense %s for account %s: %s on %s", expense.id, account_id, value, day)
        return expense

    def update_expense(
        self,
        account_id: str,
        expense_id: int,
        amount: Any = None,
        on: Optional[DateLike] = None,
        category: Optional[str] = None,
        description: Optional[str] = None,
    ) -> BudgetExpense:
        """Edit an expense; moving it to another date re-totals both days.

        Raises:
            NotFound: The expense does not exist for this account.
        """
        changes: Dict[str, Any] = {}
        if amount is not None:
            changes['amount'] = calc.validate_expense_amount(amount)
        if on is not None:
            changes['date'] = self._expense_day(on)
        if category is not None:
            changes['category'] = category.strip() or config.DEFAULT_CATEGORY
        if description is not None:
            changes['description'] = description

        def write() -> Tuple[BudgetExpense, List[WeekCycle]]:
            with self.store.transaction(account_id):
                self.cycles.ensure_active_cycle(account_id, self.clock())
                current = self.store.get_expense(account_id, expense_id)
                if current is None:
                    raise NotFound(f"Expense {expense_id} not found")
                old_cycle = self._cycle_for_expense(account_id, current.date)
                new_day = changes.get('date', current.date)
                new_cycle = self._cycle_for_expense(account_id, new_day)
                self.records.get_or_create_daily_record(new_cycle.id, new_day)  # type: ignore[arg-type]
                updated = self.store.update_expense(replace(current, **changes))
                self._refresh(old_cycle, current.date)
                if new_day != current.date:
                    self._refresh(new_cycle, new_day)
            return updated, [old_cycle, new_cycle]

        updated, cycles = self._retry('update_expense', write)
        self._recalculate(cycles)
        logger.info("Updated expense %s for account %s", expense_id, account_id)
        return updated

    def delete_expense(self, account_id: str, expense_id: int) -> None:
        """Remove an expense and propagate the freed balance.

        Raises:
            NotFound: The expense does not exist for this account.
        """

        def write() -> WeekCycle:
            with self.store.transaction(account_id):
                current = self.store.get_expense(account_id, expense_id)
                if current is None:
                    raise NotFound(f"Expense {expense_id} not found")
                cycle = self._cycle_for_expense(account_id, current.date)
                self.store.delete_expense(account_id, expense_id)
                self._refresh(cycle, current.date)
            return cycle

        cycle = self._retry('delete_expense', write)
        self._recalculate([cycle])
        logger.info("Deleted expense %s for account %s", expense_id, account_id)

    def recalculate_account(self, account_id: str) -> int:
        return self._retry('recalculate_account', lambda: self.recalculation.recalculate_account(account_id))
