"""SQLite implementation of the ledger store.

Money is stored as TEXT so Decimal values survive the round trip exactly.
Each thread gets its own connection in autocommit mode; units of work are
opened explicitly with ``BEGIN IMMEDIATE`` by :meth:`SQLiteLedgerStore.transaction`.
"""

from __future__ import annotations

import logging
import sqlite3
import threading
from contextlib import contextmanager
from datetime import date, datetime, timezone
from decimal import Decimal
from pathlib import Path
from typing import Any, Iterator, List, Optional, Union

from . import config
from .errors import ConcurrentModification, NotFound
from .models import (
    BudgetConfig,
    BudgetExpense,
    CarryOverMode,
    CycleStatus,
    DailyRecord,
    WeekCycle,
)
from .store import LedgerStore

logger = logging.getLogger(__name__)

SCHEMA_SQL = """
PRAGMA journal_mode=WAL;
PRAGMA synchronous=NORMAL;

CREATE TABLE IF NOT EXISTS budget_configs (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    account_id TEXT NOT NULL,
    daily_base TEXT NOT NULL,
    carry_over_mode TEXT NOT NULL,
    cycle_length_days INTEGER NOT NULL,
    cycle_anchor_date TEXT NOT NULL,
    is_active INTEGER NOT NULL DEFAULT 1,
    created_at TEXT NOT NULL
);

CREATE UNIQUE INDEX IF NOT EXISTS ux_config_active
ON budget_configs (account_id) WHERE is_active = 1;

CREATE TABLE IF NOT EXISTS week_cycles (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    account_id TEXT NOT NULL,
    start_date TEXT NOT NULL,
    end_date TEXT NOT NULL,
    daily_base TEXT NOT NULL,
    cycle_length_days INTEGER NOT NULL,
    carry_over_mode TEXT NOT NULL,
    opening_balance TEXT NOT NULL,
    per_day_adjustment TEXT NOT NULL,
    remainder_adjustment TEXT NOT NULL,
    carried_in TEXT NOT NULL,
    accumulated_balance TEXT NOT NULL,
    closing_balance TEXT,
    status TEXT NOT NULL,
    remainder_day TEXT NOT NULL DEFAULT 'first'
);

CREATE UNIQUE INDEX IF NOT EXISTS ux_cycle_start
ON week_cycles (account_id, start_date);

CREATE UNIQUE INDEX IF NOT EXISTS ux_cycle_active
ON week_cycles (account_id) WHERE status = 'active';

CREATE TABLE IF NOT EXISTS daily_records (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    cycle_id INTEGER NOT NULL REFERENCES week_cycles (id),
    record_date TEXT NOT NULL,
    allocated TEXT NOT NULL,
    spent TEXT NOT NULL,
    balance TEXT NOT NULL,
    UNIQUE (cycle_id, record_date)
);

CREATE TABLE IF NOT EXISTS budget_expenses (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    account_id TEXT NOT NULL,
    expense_date TEXT NOT NULL,
    amount TEXT NOT NULL,
    category TEXT NOT NULL,
    description TEXT,
    created_at TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS ix_expense_account_date ON budget_expenses (account_id, expense_date);
"""

_CONFLICT_MARKERS = ('locked', 'busy', 'unique constraint')


def _money(value: Optional[str]) -> Optional[Decimal]:
    return None if value is None else Decimal(value)


def _text(value: Optional[Decimal]) -> Optional[str]:
    return None if value is None else str(value)


def _utcnow() -> str:
    return datetime.now(timezone.utc).isoformat()


def _row_to_config(row: sqlite3.Row) -> BudgetConfig:
    return BudgetConfig(
        id=row['id'],
        account_id=row['account_id'],
        daily_base=Decimal(row['daily_base']),
        carry_over_mode=CarryOverMode(row['carry_over_mode']),
        cycle_length_days=row['cycle_length_days'],
        cycle_anchor_date=date.fromisoformat(row['cycle_anchor_date']),
        is_active=bool(row['is_active']),
        created_at=datetime.fromisoformat(row['created_at']),
    )


def _row_to_cycle(row: sqlite3.Row) -> WeekCycle:
    return WeekCycle(
        id=row['id'],
        account_id=row['account_id'],
        start_date=date.fromisoformat(row['start_date']),
        end_date=date.fromisoformat(row['end_date']),
        daily_base=Decimal(row['daily_base']),
        cycle_length_days=row['cycle_length_days'],
        carry_over_mode=CarryOverMode(row['carry_over_mode']),
        opening_balance=Decimal(row['opening_balance']),
        per_day_adjustment=Decimal(row['per_day_adjustment']),
        remainder_adjustment=Decimal(row['remainder_adjustment']),
        carried_in=Decimal(row['carried_in']),
        accumulated_balance=Decimal(row['accumulated_balance']),
        closing_balance=_money(row['closing_balance']),
        status=CycleStatus(row['status']),
        remainder_day=row['remainder_day'],
    )


def _row_to_record(row: sqlite3.Row) -> DailyRecord:
    return DailyRecord(
        id=row['id'],
        cycle_id=row['cycle_id'],
        date=date.fromisoformat(row['record_date']),
        allocated=Decimal(row['allocated']),
        spent=Decimal(row['spent']),
        balance=Decimal(row['balance']),
    )


def _row_to_expense(row: sqlite3.Row) -> BudgetExpense:
    return BudgetExpense(
        id=row['id'],
        account_id=row['account_id'],
        date=date.fromisoformat(row['expense_date']),
        amount=Decimal(row['amount']),
        category=row['category'],
        description=row['description'],
        created_at=datetime.fromisoformat(row['created_at']),
    )


def is_conflict(exc: sqlite3.Error) -> bool:
    """True when an SQLite error means another writer got there first."""
    message = str(exc).lower()
    return isinstance(exc, (sqlite3.IntegrityError, sqlite3.OperationalError)) and any(
        marker in message for marker in _CONFLICT_MARKERS
    )


class SQLiteLedgerStore(LedgerStore):
    """Ledger store backed by a single SQLite database file."""

    def __init__(
        self,
        db_path: Optional[Union[str, Path]] = None,
        *,
        busy_timeout: Optional[float] = None,
    ) -> None:
        super().__init__()
        if db_path is None:
            config.ensure_data_directories()
            db_path = config.get_db_path()
        self.db_path = Path(db_path)
        self.busy_timeout = config.BUSY_TIMEOUT if busy_timeout is None else busy_timeout
        self._local = threading.local()
        self._connections: List[sqlite3.Connection] = []
        self._connections_guard = threading.Lock()
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.init_db()

    # ------------------------------------------------------------------
    # Connections and transactions
    # ------------------------------------------------------------------

    def _conn(self) -> sqlite3.Connection:
        conn = getattr(self._local, 'conn', None)
        if conn is None:
            conn = sqlite3.connect(
                str(self.db_path),
                timeout=self.busy_timeout,
                isolation_level=None,
                check_same_thread=False,
            )
            conn.row_factory = sqlite3.Row
            conn.execute('PRAGMA foreign_keys=ON')
            self._local.conn = conn
            self._local.depth = 0
            with self._connections_guard:
                self._connections.append(conn)
        return conn

    def init_db(self) -> None:
        self._conn().executescript(SCHEMA_SQL)

    def close(self) -> None:
        """Close every connection opened by this store."""
        with self._connections_guard:
            for conn in self._connections:
                conn.close()
            self._connections.clear()
        self._local = threading.local()

    @contextmanager
    def _guard(self) -> Iterator[None]:
        """Translate lock and uniqueness failures into ConcurrentModification."""
        try:
            yield
        except sqlite3.Error as exc:
            if is_conflict(exc):
                raise ConcurrentModification(f"Conflicting write: {exc}") from exc
            raise

    @contextmanager
    def transaction(self, account_id: str) -> Iterator['SQLiteLedgerStore']:
        with self.account_lock(account_id):
            conn = self._conn()
            depth = self._local.depth
            if depth == 0:
                with self._guard():
                    conn.execute('BEGIN IMMEDIATE')
            self._local.depth = depth + 1
            try:
                yield self
            except BaseException:
                self._local.depth = depth
                if depth == 0:
                    conn.execute('ROLLBACK')
                raise
            self._local.depth = depth
            if depth == 0:
                try:
                    with self._guard():
                        conn.execute('COMMIT')
                except ConcurrentModification:
                    conn.execute('ROLLBACK')
                    raise

    def _execute(self, sql: str, params: Any = ()) -> sqlite3.Cursor:
        with self._guard():
            return self._conn().execute(sql, params)

    def _one(self, sql: str, params: Any = ()) -> Optional[sqlite3.Row]:
        return self._execute(sql, params).fetchone()

    # ------------------------------------------------------------------
    # Configs
    # ------------------------------------------------------------------

    def get_config(self, account_id: str) -> Optional[BudgetConfig]:
        row = self._one(
            "SELECT * FROM budget_configs WHERE account_id = ? AND is_active = 1",
            (account_id,),
        )
        return _row_to_config(row) if row else None

    def save_config(self, budget_config: BudgetConfig) -> BudgetConfig:
        created_at = _utcnow()
        with self.transaction(budget_config.account_id):
            self._execute(
                "UPDATE budget_configs SET is_active = 0 WHERE account_id = ? AND is_active = 1",
                (budget_config.account_id,),
            )
            cursor = self._execute(
                """
                INSERT INTO budget_configs (
                    account_id, daily_base, carry_over_mode, cycle_length_days,
                    cycle_anchor_date, is_active, created_at
                ) VALUES (?, ?, ?, ?, ?, 1, ?)
                """,
                (
                    budget_config.account_id,
                    _text(budget_config.daily_base),
                    CarryOverMode(budget_config.carry_over_mode).value,
                    budget_config.cycle_length_days,
                    budget_config.cycle_anchor_date.isoformat(),
                    created_at,
                ),
            )
        return BudgetConfig(
            id=cursor.lastrowid,
            account_id=budget_config.account_id,
            daily_base=budget_config.daily_base,
            carry_over_mode=CarryOverMode(budget_config.carry_over_mode),
            cycle_length_days=budget_config.cycle_length_days,
            cycle_anchor_date=budget_config.cycle_anchor_date,
            is_active=True,
            created_at=datetime.fromisoformat(created_at),
        )

    # ------------------------------------------------------------------
    # Cycles
    # ------------------------------------------------------------------

    def get_active_cycle(self, account_id: str) -> Optional[WeekCycle]:
        row = self._one(
            "SELECT * FROM week_cycles WHERE account_id = ? AND status = 'active'",
            (account_id,),
        )
        return _row_to_cycle(row) if row else None

    def get_cycle(self, cycle_id: int) -> Optional[WeekCycle]:
        row = self._one("SELECT * FROM week_cycles WHERE id = ?", (cycle_id,))
        return _row_to_cycle(row) if row else None

    def get_cycle_for_date(self, account_id: str, day: date) -> Optional[WeekCycle]:
        key = day.isoformat()
        row = self._one(
            "SELECT * FROM week_cycles WHERE account_id = ? AND start_date <= ? AND end_date > ?",
            (account_id, key, key),
        )
        return _row_to_cycle(row) if row else None

    def get_latest_cycle(self, account_id: str) -> Optional[WeekCycle]:
        row = self._one(
            "SELECT * FROM week_cycles WHERE account_id = ? ORDER BY start_date DESC LIMIT 1",
            (account_id,),
        )
        return _row_to_cycle(row) if row else None

    def get_next_cycle(self, cycle: WeekCycle) -> Optional[WeekCycle]:
        row = self._one(
            "SELECT * FROM week_cycles WHERE account_id = ? AND start_date = ?",
            (cycle.account_id, cycle.end_date.isoformat()),
        )
        return _row_to_cycle(row) if row else None

    def list_cycles(self, account_id: str) -> List[WeekCycle]:
        rows = self._execute(
            "SELECT * FROM week_cycles WHERE account_id = ? ORDER BY start_date",
            (account_id,),
        ).fetchall()
        return [_row_to_cycle(row) for row in rows]

    def create_cycle(self, cycle: WeekCycle) -> WeekCycle:
        cursor = self._execute(
            """
            INSERT INTO week_cycles (
                account_id, start_date, end_date, daily_base, cycle_length_days,
                carry_over_mode, opening_balance, per_day_adjustment,
                remainder_adjustment, carried_in, accumulated_balance,
                closing_balance, status, remainder_day
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                cycle.account_id,
                cycle.start_date.isoformat(),
                cycle.end_date.isoformat(),
                _text(cycle.daily_base),
                cycle.cycle_length_days,
                CarryOverMode(cycle.carry_over_mode).value,
                _text(cycle.opening_balance),
                _text(cycle.per_day_adjustment),
                _text(cycle.remainder_adjustment),
                _text(cycle.carried_in),
                _text(cycle.accumulated_balance),
                _text(cycle.closing_balance),
                CycleStatus(cycle.status).value,
                cycle.remainder_day,
            ),
        )
        return self.get_cycle(cursor.lastrowid)  # type: ignore[return-value]

    def close_cycle(self, cycle_id: int, closing_balance: Decimal) -> None:
        cursor = self._execute(
            """
            UPDATE week_cycles
            SET status = 'closed', closing_balance = ?, accumulated_balance = ?
            WHERE id = ? AND status = 'active'
            """,
            (_text(closing_balance), _text(closing_balance), cycle_id),
        )
        if cursor.rowcount != 1:
            raise ConcurrentModification(f"Cycle {cycle_id} is no longer active")

    def update_cycle_carry(self, cycle: WeekCycle) -> None:
        cursor = self._execute(
            """
            UPDATE week_cycles
            SET opening_balance = ?, per_day_adjustment = ?,
                remainder_adjustment = ?, carried_in = ?
            WHERE id = ?
            """,
            (
                _text(cycle.opening_balance),
                _text(cycle.per_day_adjustment),
                _text(cycle.remainder_adjustment),
                _text(cycle.carried_in),
                cycle.id,
            ),
        )
        if cursor.rowcount != 1:
            raise NotFound(f"Cycle {cycle.id} not found")

    def set_accumulated_balance(self, cycle_id: int, value: Decimal) -> None:
        self._execute(
            "UPDATE week_cycles SET accumulated_balance = ? WHERE id = ?",
            (_text(value), cycle_id),
        )

    def update_closing_balance(self, cycle_id: int, value: Decimal) -> None:
        self._execute(
            "UPDATE week_cycles SET closing_balance = ? WHERE id = ? AND status = 'closed'",
            (_text(value), cycle_id),
        )

    # ------------------------------------------------------------------
    # Daily records
    # ------------------------------------------------------------------

    def get_record(self, cycle_id: int, day: date) -> Optional[DailyRecord]:
        row = self._one(
            "SELECT * FROM daily_records WHERE cycle_id = ? AND record_date = ?",
            (cycle_id, day.isoformat()),
        )
        return _row_to_record(row) if row else None

    def get_record_by_id(self, record_id: int) -> Optional[DailyRecord]:
        row = self._one("SELECT * FROM daily_records WHERE id = ?", (record_id,))
        return _row_to_record(row) if row else None

    def upsert_record(self, record: DailyRecord) -> DailyRecord:
        self._execute(
            """
            INSERT INTO daily_records (cycle_id, record_date, allocated, spent, balance)
            VALUES (?, ?, ?, ?, ?)
            ON CONFLICT (cycle_id, record_date) DO UPDATE SET
                allocated = excluded.allocated,
                spent = excluded.spent,
                balance = excluded.balance
            """,
            (
                record.cycle_id,
                record.date.isoformat(),
                _text(record.allocated),
                _text(record.spent),
                _text(record.balance),
            ),
        )
        return self.get_record(record.cycle_id, record.date)  # type: ignore[return-value]

    def list_records(self, cycle_id: int) -> List[DailyRecord]:
        rows = self._execute(
            "SELECT * FROM daily_records WHERE cycle_id = ? ORDER BY record_date",
            (cycle_id,),
        ).fetchall()
        return [_row_to_record(row) for row in rows]

    # ------------------------------------------------------------------
    # Expenses
    # ------------------------------------------------------------------

    def sum_expenses(self, record_id: int) -> Decimal:
        rows = self._execute(
            """
            SELECT e.amount
            FROM daily_records r
            JOIN week_cycles c ON c.id = r.cycle_id
            JOIN budget_expenses e
                ON e.account_id = c.account_id AND e.expense_date = r.record_date
            WHERE r.id = ?
            """,
            (record_id,),
        ).fetchall()
        return sum((Decimal(row['amount']) for row in rows), Decimal('0.00'))

    def add_expense(self, expense: BudgetExpense) -> BudgetExpense:
        cursor = self._execute(
            """
            INSERT INTO budget_expenses (
                account_id, expense_date, amount, category, description, created_at
            ) VALUES (?, ?, ?, ?, ?, ?)
            """,
            (
                expense.account_id,
                expense.date.isoformat(),
                _text(expense.amount),
                expense.category,
                expense.description,
                _utcnow(),
            ),
        )
        return self.get_expense(expense.account_id, cursor.lastrowid)  # type: ignore[return-value]

    def get_expense(self, account_id: str, expense_id: int) -> Optional[BudgetExpense]:
        row = self._one(
            "SELECT * FROM budget_expenses WHERE id = ? AND account_id = ?",
            (expense_id, account_id),
        )
        return _row_to_expense(row) if row else None

    def update_expense(self, expense: BudgetExpense) -> BudgetExpense:
        cursor = self._execute(
            """
            UPDATE budget_expenses
            SET expense_date = ?, amount = ?, category = ?, description = ?
            WHERE id = ? AND account_id = ?
            """,
            (
                expense.date.isoformat(),
                _text(expense.amount),
                expense.category,
                expense.description,
                expense.id,
                expense.account_id,
            ),
        )
        if cursor.rowcount != 1:
            raise NotFound(f"Expense {expense.id} not found")
        return self.get_expense(expense.account_id, expense.id)  # type: ignore[arg-type,return-value]

    def delete_expense(self, account_id: str, expense_id: int) -> None:
        cursor = self._execute(
            "DELETE FROM budget_expenses WHERE id = ? AND account_id = ?",
            (expense_id, account_id),
        )
        if cursor.rowcount != 1:
            raise NotFound(f"Expense {expense_id} not found")

    def list_expenses(self, account_id: str, day: Optional[date] = None) -> List[BudgetExpense]:
        if day is None:
            rows = self._execute(
                "SELECT * FROM budget_expenses WHERE account_id = ? ORDER BY expense_date, id",
                (account_id,),
            ).fetchall()
        else:
            rows = self._execute(
                "SELECT * FROM budget_expenses WHERE account_id = ? AND expense_date = ? "
                "ORDER BY created_at DESC, id DESC",
                (account_id, day.isoformat()),
            ).fetchall()
        return [_row_to_expense(row) for row in rows]
