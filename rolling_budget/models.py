"""Data classes for budget configs, cycles, daily records and expenses."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------


class CarryOverMode(str, Enum):
    NONE = 'none'
    ROLLOVER = 'rollover'
    REDISTRIBUTE = 'redistribute'
    ROLLOVER_DEFICIT = 'rollover_deficit'
    ROLLOVER_CREDIT = 'rollover_credit'


class CycleStatus(str, Enum):
    ACTIVE = 'active'
    CLOSED = 'closed'


class BudgetStatus(str, Enum):
    ON_TRACK = 'onTrack'
    WARNING = 'warning'
    OVERSPENT = 'overspent'


# ---------------------------------------------------------------------------
# Ledger rows
# ---------------------------------------------------------------------------


@dataclass
class BudgetConfig:
    account_id: str
    daily_base: Decimal
    carry_over_mode: CarryOverMode
    cycle_length_days: int
    cycle_anchor_date: date
    id: Optional[int] = None
    is_active: bool = True
    created_at: Optional[datetime] = None


@dataclass
class WeekCycle:
    """One fixed-length budgeting period.

    ``daily_base`` and ``cycle_length_days`` are copied from the config at
    creation time. The inbound carry fields describe what the previous cycle
    handed over: ``carried_in`` is the raw accumulated balance that was
    propagated, and ``opening_balance``/``per_day_adjustment``/
    ``remainder_adjustment`` are what ``carry_over_mode`` turned it into.
    ``remainder_day`` (``first`` or ``last``) fixes which day holds the
    redistribution rounding remainder.
    """

    account_id: str
    start_date: date
    end_date: date  # exclusive
    daily_base: Decimal
    cycle_length_days: int
    carry_over_mode: CarryOverMode
    opening_balance: Decimal = Decimal('0.00')
    per_day_adjustment: Decimal = Decimal('0.00')
    remainder_adjustment: Decimal = Decimal('0.00')
    carried_in: Decimal = Decimal('0.00')
    accumulated_balance: Decimal = Decimal('0.00')
    closing_balance: Optional[Decimal] = None
    status: CycleStatus = CycleStatus.ACTIVE
    remainder_day: str = 'first'
    id: Optional[int] = None

    @property
    def is_closed(self) -> bool:
        return self.status == CycleStatus.CLOSED

    def contains(self, day: date) -> bool:
        return self.start_date <= day < self.end_date


@dataclass
class DailyRecord:
    cycle_id: int
    date: date
    allocated: Decimal
    spent: Decimal = Decimal('0.00')
    balance: Decimal = field(default=None)  # type: ignore[assignment]
    id: Optional[int] = None

    def __post_init__(self) -> None:
        if self.balance is None:
            self.balance = self.allocated - self.spent

    @property
    def is_materialized(self) -> bool:
        return self.id is not None


@dataclass
class BudgetExpense:
    account_id: str
    date: date
    amount: Decimal
    category: str
    description: Optional[str] = None
    id: Optional[int] = None
    created_at: Optional[datetime] = None


# ---------------------------------------------------------------------------
# Read models returned by the ledger facade
# ---------------------------------------------------------------------------


@dataclass
class TodayBudget:
    date: date
    daily_base: Decimal
    allocated: Decimal
    adjustment: Decimal
    spent: Decimal
    available: Decimal
    status: BudgetStatus
    remaining_days: int
    cycle_id: int
    cycle_start: date
    cycle_end: date
    accumulated_to_date: Decimal
