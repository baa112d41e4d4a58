"""Cycle manager: creation, closing and hand-over of budget cycles."""

from __future__ import annotations

import logging
from datetime import date, timedelta
from decimal import Decimal
from typing import Optional

from . import config
from .calculations import align_cycle_start, validate_remainder_day
from .carry_over import compute_next_opening
from .errors import NoConfig
from .models import BudgetConfig, CarryOverMode, CycleStatus, WeekCycle
from .recalculation import RecalculationEngine
from .store import LedgerStore

logger = logging.getLogger(__name__)


class CycleManager:
    """Keeps exactly one active cycle per account, covering the requested date."""

    def __init__(
        self,
        store: LedgerStore,
        recalculation: Optional[RecalculationEngine] = None,
        *,
        remainder_day: Optional[str] = None,
    ) -> None:
        self.store = store
        self.recalculation = recalculation or RecalculationEngine(store)
        # stamped on each new cycle; existing cycles keep their own
        self.remainder_day = validate_remainder_day(remainder_day or config.REMAINDER_DAY)

    def get_config(self, account_id: str) -> BudgetConfig:
        budget_config = self.store.get_config(account_id)
        if budget_config is None:
            raise NoConfig(account_id)
        return budget_config

    def ensure_active_cycle(self, account_id: str, day: date) -> WeekCycle:
        """Return the active cycle, advancing the chain until it contains ``day``.

        Expired cycles are closed and their balance handed to the next cycle
        according to the config's carry-over mode, one cycle length at a time,
        so periods of inactivity are filled in. A ``day`` before the active
        cycle's end returns that cycle unchanged.

        Raises:
            NoConfig: If the account has no active budget config.
        """
        self.get_config(account_id)
        with self.store.transaction(account_id):
            budget_config = self.get_config(account_id)
            cycle = self.store.get_active_cycle(account_id)
            if cycle is None:
                latest = self.store.get_latest_cycle(account_id)
                if latest is None:
                    cycle = self._create_first_cycle(budget_config, day)
                else:
                    closing = latest.closing_balance if latest.closing_balance is not None else latest.accumulated_balance
                    cycle = self._open_successor(latest, closing, budget_config)
            while day >= cycle.end_date:
                cycle = self._advance(cycle, budget_config)
        return cycle

    def get_current_cycle(self, account_id: str) -> Optional[WeekCycle]:
        """Active cycle as stored, without advancing anything."""
        return self.store.get_active_cycle(account_id)

    def _create(self, cycle: WeekCycle) -> WeekCycle:
        created = self.store.create_cycle(cycle)
        self.recalculation.settle_cycle(created)
        logger.info(
            "Opened cycle %s for account %s: %s..%s (carried in %s)",
            created.id, created.account_id, created.start_date, created.end_date, created.carried_in,
        )
        return self.store.get_cycle(created.id)  # type: ignore[arg-type,return-value]

    def _create_first_cycle(self, budget_config: BudgetConfig, day: date) -> WeekCycle:
        length = budget_config.cycle_length_days
        start = align_cycle_start(budget_config.cycle_anchor_date, day, length)
        return self._create(
            WeekCycle(
                account_id=budget_config.account_id,
                start_date=start,
                end_date=start + timedelta(days=length),
                daily_base=budget_config.daily_base,
                cycle_length_days=length,
                carry_over_mode=CarryOverMode(budget_config.carry_over_mode),
                status=CycleStatus.ACTIVE,
                remainder_day=self.remainder_day,
            )
        )

    def _open_successor(self, previous: WeekCycle, closing_balance: Decimal, budget_config: BudgetConfig) -> WeekCycle:
        length = budget_config.cycle_length_days
        mode = CarryOverMode(budget_config.carry_over_mode)
        carry = compute_next_opening(mode, closing_balance, length)
        return self._create(
            WeekCycle(
                account_id=previous.account_id,
                start_date=previous.end_date,
                end_date=previous.end_date + timedelta(days=length),
                daily_base=budget_config.daily_base,
                cycle_length_days=length,
                carry_over_mode=mode,
                opening_balance=carry.opening_balance,
                per_day_adjustment=carry.per_day_adjustment,
                remainder_adjustment=carry.remainder_adjustment,
                carried_in=carry.carried_in,
                status=CycleStatus.ACTIVE,
                remainder_day=self.remainder_day,
            )
        )

    def _advance(self, cycle: WeekCycle, budget_config: BudgetConfig) -> WeekCycle:
        closing = self.recalculation.settle_cycle(cycle)
        self.store.close_cycle(cycle.id, closing)  # type: ignore[arg-type]
        logger.info("Closed cycle %s for account %s with balance %s", cycle.id, cycle.account_id, closing)
        return self._open_successor(cycle, closing, budget_config)
