"""Daily record manager: one ledger row per calendar day of a cycle."""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import date
from decimal import Decimal

from .calculations import allocation_for_day, to_money, validate_expense_date
from .errors import InvalidExpense, NotFound
from .models import DailyRecord, WeekCycle
from .store import LedgerStore

logger = logging.getLogger(__name__)


class DailyRecordManager:
    """Materializes day rows and keeps their spent totals authoritative."""

    def __init__(self, store: LedgerStore) -> None:
        self.store = store

    def _cycle(self, cycle_id: int) -> WeekCycle:
        cycle = self.store.get_cycle(cycle_id)
        if cycle is None:
            raise NotFound(f"Cycle {cycle_id} not found")
        return cycle

    def _record(self, record_id: int) -> DailyRecord:
        record = self.store.get_record_by_id(record_id)
        if record is None:
            raise NotFound(f"Daily record {record_id} not found")
        return record

    def default_record(self, cycle: WeekCycle, day: date) -> DailyRecord:
        """Unsaved record for ``day`` as it would be created (nothing spent)."""
        allocated = allocation_for_day(cycle, day)
        return DailyRecord(cycle_id=cycle.id, date=day, allocated=allocated)  # type: ignore[arg-type]

    def resolve_or_default(self, cycle: WeekCycle, day: date) -> DailyRecord:
        """Stored record for ``day`` or a synthesized default; never writes."""
        validate_expense_date(day, cycle)
        record = self.store.get_record(cycle.id, day)  # type: ignore[arg-type]
        return record if record is not None else self.default_record(cycle, day)

    def get_or_create_daily_record(self, cycle_id: int, day: date) -> DailyRecord:
        """Return the record for ``(cycle_id, day)``, creating it on first use.

        Raises:
            DateOutOfRange: If ``day`` is not inside the cycle.
        """
        with self.store.transaction(self._cycle(cycle_id).account_id):
            cycle = self._cycle(cycle_id)
            validate_expense_date(day, cycle)
            existing = self.store.get_record(cycle_id, day)
            if existing is not None:
                return existing
            record = self.store.upsert_record(self.default_record(cycle, day))
        logger.debug("Materialized record %s for %s (allocated %s)", record.id, day, record.allocated)
        return record

    def update_daily_record_spent(self, record_id: int, new_spent_total) -> DailyRecord:
        """Set a record's spent total and re-derive its balance.

        This is an assignment, not an increment, so repeating it with the
        same total leaves the record unchanged.
        """
        spent = to_money(new_spent_total)
        if spent < 0:
            raise InvalidExpense(f"Spent total cannot be negative: {spent}")
        account_id = self._cycle(self._record(record_id).cycle_id).account_id
        with self.store.transaction(account_id):
            current = self._record(record_id)
            updated = replace(current, spent=spent, balance=current.allocated - spent)
            return self.store.upsert_record(updated)

    def get_total_expenses_for_record(self, record_id: int) -> Decimal:
        return self.store.sum_expenses(record_id)

    def refresh_spent(self, record_id: int) -> DailyRecord:
        """Re-total a record from the expense log."""
        return self.update_daily_record_spent(record_id, self.get_total_expenses_for_record(record_id))
