"""Ledger store adapter interface.

The engine depends only on :class:`LedgerStore`. A concrete store owns the
persistence technology; :mod:`rolling_budget.db` provides the SQLite one.

Serialization contract: every mutating engine operation runs inside
``transaction(account_id)``, which holds the per-account lock for its whole
duration and gives read-your-writes consistency. Nested calls join the outer
transaction. Nothing is promised across accounts.
"""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from datetime import date
from decimal import Decimal
from typing import Dict, Iterator, List, Optional

from .models import BudgetConfig, BudgetExpense, DailyRecord, WeekCycle


class LedgerStore(ABC):
    """Persistence capability consumed by the budget engine."""

    def __init__(self) -> None:
        self._locks: Dict[str, threading.RLock] = {}
        self._locks_guard = threading.Lock()

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def _lock_for(self, account_id: str) -> threading.RLock:
        with self._locks_guard:
            lock = self._locks.get(account_id)
            if lock is None:
                lock = self._locks[account_id] = threading.RLock()
            return lock

    @contextmanager
    def account_lock(self, account_id: str) -> Iterator[None]:
        """Hold the in-process, re-entrant lock serializing one account."""
        lock = self._lock_for(account_id)
        with lock:
            yield

    @abstractmethod
    def transaction(self, account_id: str):
        """Context manager: account lock plus an atomic unit of work."""

    # ------------------------------------------------------------------
    # Configs
    # ------------------------------------------------------------------

    @abstractmethod
    def get_config(self, account_id: str) -> Optional[BudgetConfig]:
        """Return the account's active config, if any."""

    @abstractmethod
    def save_config(self, config: BudgetConfig) -> BudgetConfig:
        """Insert ``config`` as the active one, superseding the previous."""

    # ------------------------------------------------------------------
    # Cycles
    # ------------------------------------------------------------------

    @abstractmethod
    def get_active_cycle(self, account_id: str) -> Optional[WeekCycle]: ...

    @abstractmethod
    def get_cycle(self, cycle_id: int) -> Optional[WeekCycle]: ...

    @abstractmethod
    def get_cycle_for_date(self, account_id: str, day: date) -> Optional[WeekCycle]: ...

    @abstractmethod
    def get_latest_cycle(self, account_id: str) -> Optional[WeekCycle]: ...

    @abstractmethod
    def get_next_cycle(self, cycle: WeekCycle) -> Optional[WeekCycle]:
        """Return the cycle starting on ``cycle.end_date``, if any."""

    @abstractmethod
    def list_cycles(self, account_id: str) -> List[WeekCycle]:
        """All cycles of the account, oldest first."""

    @abstractmethod
    def create_cycle(self, cycle: WeekCycle) -> WeekCycle: ...

    @abstractmethod
    def close_cycle(self, cycle_id: int, closing_balance: Decimal) -> None:
        """Mark an active cycle closed; conflicting closes are reported."""

    @abstractmethod
    def update_cycle_carry(self, cycle: WeekCycle) -> None:
        """Persist the inbound carry fields of ``cycle``."""

    @abstractmethod
    def set_accumulated_balance(self, cycle_id: int, value: Decimal) -> None: ...

    @abstractmethod
    def update_closing_balance(self, cycle_id: int, value: Decimal) -> None: ...

    # ------------------------------------------------------------------
    # Daily records
    # ------------------------------------------------------------------

    @abstractmethod
    def get_record(self, cycle_id: int, day: date) -> Optional[DailyRecord]: ...

    @abstractmethod
    def get_record_by_id(self, record_id: int) -> Optional[DailyRecord]: ...

    @abstractmethod
    def upsert_record(self, record: DailyRecord) -> DailyRecord: ...

    @abstractmethod
    def list_records(self, cycle_id: int) -> List[DailyRecord]:
        """Materialized records of a cycle ordered by date."""

    # ------------------------------------------------------------------
    # Expenses
    # ------------------------------------------------------------------

    @abstractmethod
    def sum_expenses(self, record_id: int) -> Decimal:
        """Total of the expenses attributed to the record's date."""

    @abstractmethod
    def add_expense(self, expense: BudgetExpense) -> BudgetExpense: ...

    @abstractmethod
    def get_expense(self, account_id: str, expense_id: int) -> Optional[BudgetExpense]: ...

    @abstractmethod
    def update_expense(self, expense: BudgetExpense) -> BudgetExpense: ...

    @abstractmethod
    def delete_expense(self, account_id: str, expense_id: int) -> None: ...

    @abstractmethod
    def list_expenses(self, account_id: str, day: Optional[date] = None) -> List[BudgetExpense]: ...
