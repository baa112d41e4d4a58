"""Recalculation engine.

Restores consistency after historical mutations. Recalculating a cycle
re-totals every materialized record from the expense log, re-derives the
cycle's accumulated balance and, when the cycle is closed, pushes a changed
balance into the next cycle's inbound carry. That hand-over repeats cycle by
cycle until the active cycle or an unchanged carry (fixed point) is reached.

Each step (apply the inbound carry, settle the cycle) is committed as one
transaction, so a cascade that stops early leaves every processed cycle
correct and every later one consistently stale.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from decimal import Decimal
from typing import List, Optional, Set

from . import config
from .calculations import accumulated_balance, allocation_for_day, cycle_dates
from .carry_over import CarryOver, compute_next_opening
from .daily_records import DailyRecordManager
from .errors import NotFound, RecalculationIncomplete
from .models import DailyRecord, WeekCycle
from .store import LedgerStore

logger = logging.getLogger(__name__)


class RecalculationEngine:
    def __init__(
        self,
        store: LedgerStore,
        records: Optional[DailyRecordManager] = None,
        *,
        max_cascade_depth: Optional[int] = None,
    ) -> None:
        self.store = store
        self.records = records or DailyRecordManager(store)
        self.max_cascade_depth = config.MAX_CASCADE_DEPTH if max_cascade_depth is None else max_cascade_depth

    def _cycle(self, cycle_id: int) -> WeekCycle:
        cycle = self.store.get_cycle(cycle_id)
        if cycle is None:
            raise NotFound(f"Cycle {cycle_id} not found")
        return cycle

    def get_daily_records_for_cycle(self, cycle_id: int) -> List[DailyRecord]:
        """Every day of the cycle ordered by date.

        Days that were never materialized are synthesized with their default
        allocation and nothing spent; they are not written back.
        """
        cycle = self._cycle(cycle_id)
        stored = {record.date: record for record in self.store.list_records(cycle_id)}
        return [
            stored.get(day) or self.records.default_record(cycle, day)
            for day in cycle_dates(cycle)
        ]

    def settle_cycle(self, cycle: WeekCycle) -> Decimal:
        """Re-total one cycle's records and store its accumulated balance.

        Does not cascade. Returns the accumulated balance over the whole
        cycle, counting unmaterialized days at their default allocation.
        """
        with self.store.transaction(cycle.account_id):
            stored = {record.date: record for record in self.store.list_records(cycle.id)}
            days: List[DailyRecord] = []
            for day in cycle_dates(cycle):
                record = stored.get(day)
                if record is None:
                    days.append(self.records.default_record(cycle, day))
                    continue
                allocated = allocation_for_day(cycle, day)
                spent = self.records.get_total_expenses_for_record(record.id)  # type: ignore[arg-type]
                balance = allocated - spent
                if (record.allocated, record.spent, record.balance) != (allocated, spent, balance):
                    record = self.store.upsert_record(
                        replace(record, allocated=allocated, spent=spent, balance=balance)
                    )
                days.append(record)
            total = accumulated_balance(days)
            if total != cycle.accumulated_balance:
                self.store.set_accumulated_balance(cycle.id, total)  # type: ignore[arg-type]
        logger.debug("Settled cycle %s starting %s: accumulated %s", cycle.id, cycle.start_date, total)
        return total

    def _apply_carry(self, cycle: WeekCycle, carry: CarryOver) -> WeekCycle:
        updated = replace(
            cycle,
            carried_in=carry.carried_in,
            opening_balance=carry.opening_balance,
            per_day_adjustment=carry.per_day_adjustment,
            remainder_adjustment=carry.remainder_adjustment,
        )
        self.store.update_cycle_carry(updated)
        return updated

    def recalculate_cycle_accumulated_balance(self, cycle_id: int) -> Decimal:
        """Recalculate a cycle and cascade carry changes forward.

        Returns:
            The recalculated accumulated balance of ``cycle_id``.

        Raises:
            RecalculationIncomplete: If more than ``max_cascade_depth`` cycles
                would be processed or the cycle chain loops back on itself.
        """
        account_id = self._cycle(cycle_id).account_id
        with self.store.account_lock(account_id):
            cycle = self._cycle(cycle_id)
            incoming: Optional[CarryOver] = None
            visited: Set[int] = set()
            result: Optional[Decimal] = None
            processed = 0
            while True:
                if cycle.id in visited:
                    raise RecalculationIncomplete(
                        f"Cycle chain of account '{account_id}' loops at cycle {cycle.id}",
                        last_cycle_id=cycle.id,
                        processed=processed,
                    )
                visited.add(cycle.id)  # type: ignore[arg-type]

                with self.store.transaction(account_id):
                    if incoming is not None:
                        cycle = self._apply_carry(cycle, incoming)
                    total = self.settle_cycle(cycle)
                    if cycle.is_closed and cycle.closing_balance != total:
                        self.store.update_closing_balance(cycle.id, total)  # type: ignore[arg-type]
                processed += 1
                if result is None:
                    result = total

                if not cycle.is_closed:
                    break
                successor = self.store.get_next_cycle(cycle)
                if successor is None or successor.carried_in == total:
                    break
                if processed >= self.max_cascade_depth:
                    logger.warning(
                        "Cascade for account %s stopped after %d cycles; cycle %s keeps a stale carry",
                        account_id, processed, successor.id,
                    )
                    raise RecalculationIncomplete(
                        f"Recalculation stopped after {processed} cycles; "
                        f"cycles from {successor.start_date.isoformat()} keep a stale carry-over",
                        last_cycle_id=cycle.id,
                        processed=processed,
                    )
                logger.debug(
                    "Cycle %s balance changed %s -> %s; cascading into cycle %s",
                    cycle.id, successor.carried_in, total, successor.id,
                )
                incoming = compute_next_opening(successor.carry_over_mode, total, successor.cycle_length_days)
                cycle = successor
        return result  # type: ignore[return-value]

    def recalculate_account(self, account_id: str) -> int:
        """Recalculate every cycle of an account oldest first.

        Repair path after :class:`RecalculationIncomplete` or manual data
        fixes. Returns the number of cycles visited.
        """
        with self.store.account_lock(account_id):
            cycles = self.store.list_cycles(account_id)
            for cycle in cycles:
                self.recalculate_cycle_accumulated_balance(cycle.id)  # type: ignore[arg-type]
        logger.info("Recalculated %d cycles for account %s", len(cycles), account_id)
        return len(cycles)
