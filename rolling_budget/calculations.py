"""Budget calculation utilities.

Pure functions for date arithmetic and the numbers derived from a config,
a cycle and a daily record. Nothing in here touches the ledger store, and
the only clock read is :func:`today`.

All money values are :class:`decimal.Decimal` quantized to cents. Dates are
keyed by their ISO calendar representation (``YYYY-MM-DD``); any time of day
is discarded.
"""

from __future__ import annotations

import calendar
from datetime import date, datetime, timedelta, timezone
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Dict, Iterable, List, Optional

from . import config
from .errors import DateOutOfRange, InvalidConfig, InvalidExpense
from .models import BudgetStatus, DailyRecord, WeekCycle

ZERO = Decimal('0.00')


# ---------------------------------------------------------------------------
# Money and dates
# ---------------------------------------------------------------------------


def to_money(value: Any) -> Decimal:
    """Convert a number or numeric string into a cent-quantized Decimal.

    Floats are converted through ``str`` so ``0.1`` becomes ``Decimal('0.10')``
    rather than its binary expansion.

    Raises:
        ValueError: If the value is not a finite number.
    """
    if isinstance(value, bool) or value is None:
        raise ValueError(f"Not a monetary amount: {value!r}")
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except (InvalidOperation, ValueError) as exc:
        raise ValueError(f"Not a monetary amount: {value!r}") from exc
    if not amount.is_finite():
        raise ValueError(f"Amount must be finite: {value!r}")
    try:
        return amount.quantize(config.MONEY_QUANTUM, rounding=ROUND_HALF_UP)
    except InvalidOperation as exc:
        raise ValueError(f"Amount out of range: {value!r}") from exc


def today() -> date:
    """Return the current date at the UTC day boundary.

    Callers in other timezones must convert to their local date themselves
    and pass it explicitly to the ledger.
    """
    return datetime.now(timezone.utc).date()


def to_date(value: Any) -> date:
    """Normalize a date, datetime, pandas Timestamp or ISO string to a date."""
    if hasattr(value, 'to_pydatetime'):
        value = value.to_pydatetime()
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        return parse_date_string(value)
    raise TypeError(f"Cannot interpret {value!r} as a date")


def format_date_to_string(value: Any) -> str:
    """Format a date-like value as ``YYYY-MM-DD``."""
    return to_date(value).isoformat()


def parse_date_string(text: str) -> date:
    """Parse ``YYYY-MM-DD`` (optionally followed by a time part) into a date."""
    cleaned = text.strip()
    # Drop any time-of-day component: '2024-12-25T10:30:00' or '2024-12-25 10:30'
    for separator in ('T', ' '):
        if separator in cleaned:
            cleaned = cleaned.split(separator, 1)[0]
    try:
        return date.fromisoformat(cleaned)
    except ValueError as exc:
        raise ValueError(f"Invalid calendar date: {text!r}") from exc


def week_start(day: date, week_start_day: int = config.DEFAULT_WEEK_START_DAY) -> date:
    """Return the most recent ``week_start_day`` (0=Monday) on or before ``day``."""
    offset = (day.weekday() - week_start_day) % 7
    return day - timedelta(days=offset)


def align_cycle_start(anchor: date, day: date, length_days: int) -> date:
    """Floor ``day`` to the start of the anchor-aligned cycle containing it.

    Works for dates before the anchor as well; cycles then extend backwards
    from the anchor in steps of ``length_days``.

    Example:
        >>> align_cycle_start(date(2024, 12, 23), date(2025, 1, 1), 7)
        datetime.date(2024, 12, 30)
    """
    validate_cycle_length(length_days)
    periods = (day - anchor).days // length_days
    return anchor + timedelta(days=periods * length_days)


# ---------------------------------------------------------------------------
# Cycle arithmetic
# ---------------------------------------------------------------------------


def remaining_days(cycle: WeekCycle, from_date: date) -> int:
    """Whole days from ``from_date`` up to the cycle's exclusive end (never negative)."""
    return max(0, (cycle.end_date - from_date).days)


def cycle_dates(cycle: WeekCycle) -> List[date]:
    return [cycle.start_date + timedelta(days=i) for i in range((cycle.end_date - cycle.start_date).days)]


def allocation_for_day(cycle: WeekCycle, day: date) -> Decimal:
    """Allocated amount for ``day`` derived from the cycle snapshot.

    ``daily_base`` plus the redistribution share on every day, plus on a
    single day the lump ``opening_balance`` (day one) and the redistribution
    rounding remainder (day one, or the last day when the cycle's
    ``remainder_day`` is ``'last'``).
    """
    if not cycle.contains(day):
        raise DateOutOfRange(
            f"{day.isoformat()} is outside cycle {cycle.start_date.isoformat()}"
            f"..{cycle.end_date.isoformat()}"
        )
    allocated = cycle.daily_base + cycle.per_day_adjustment
    if day == cycle.start_date:
        allocated += cycle.opening_balance
    remainder_on = cycle.end_date - timedelta(days=1) if cycle.remainder_day == 'last' else cycle.start_date
    if day == remainder_on:
        allocated += cycle.remainder_adjustment
    return allocated


def accumulated_balance(records: Iterable[DailyRecord]) -> Decimal:
    """Sum of the daily balances; the carry-over source value of a cycle."""
    return sum((record.balance for record in records), ZERO)


# ---------------------------------------------------------------------------
# Record-level figures
# ---------------------------------------------------------------------------


def available_budget(record: DailyRecord) -> Decimal:
    return record.allocated - record.spent


def daily_balance(record: DailyRecord) -> Decimal:
    """Running balance of a day; same figure as :func:`available_budget`."""
    return available_budget(record)


def budget_status(record: DailyRecord, threshold: Optional[Decimal] = None) -> BudgetStatus:
    """Classify a day as on track, warning or overspent.

    ``overspent`` when the balance is negative, ``warning`` when less than
    ``threshold`` (20% by default) of the allocation is left.

    Example:
        >>> budget_status(DailyRecord(cycle_id=1, date=date(2024, 1, 1),
        ...                           allocated=Decimal('100'), spent=Decimal('85')))
        <BudgetStatus.WARNING: 'warning'>
    """
    ratio = config.WARNING_THRESHOLD if threshold is None else Decimal(str(threshold))
    balance = daily_balance(record)
    if balance < 0:
        return BudgetStatus.OVERSPENT
    if balance < record.allocated * ratio:
        return BudgetStatus.WARNING
    return BudgetStatus.ON_TRACK


def derived_budgets(
    daily_base: Any,
    year: Optional[int] = None,
    month: Optional[int] = None,
) -> Dict[str, Decimal]:
    """Weekly, monthly and yearly equivalents of a daily base.

    Without ``year``/``month`` a month counts 30 days and a year 365. With
    them, the actual month length and leap years are used (``month`` is
    1-based).
    """
    base = to_money(daily_base)
    month_days = 30
    year_days = 365
    if year is not None and month is not None:
        month_days = calendar.monthrange(year, month)[1]
        year_days = 366 if calendar.isleap(year) else 365
    return {
        'daily': base,
        'weekly': base * 7,
        'monthly': base * month_days,
        'yearly': base * year_days,
    }


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


def validate_daily_base(value: Any) -> Decimal:
    """Return ``value`` as money if it is a usable daily base.

    Raises:
        InvalidConfig: If the value is not a finite number, is <= 0 or is
            above ``MAX_DAILY_BASE``.
    """
    try:
        amount = to_money(value)
    except ValueError as exc:
        raise InvalidConfig(f"Daily base must be a valid number: {value!r}") from exc
    if amount <= 0:
        raise InvalidConfig("Daily base must be positive")
    if amount > config.MAX_DAILY_BASE:
        raise InvalidConfig(f"Daily base too high (maximum {config.MAX_DAILY_BASE})")
    return amount


def validate_cycle_length(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise InvalidConfig(f"Cycle length must be a positive whole number of days: {value!r}")
    return value


def validate_remainder_day(value: Any) -> str:
    if value not in ('first', 'last'):
        raise InvalidConfig(f"Remainder day must be 'first' or 'last': {value!r}")
    return value


def validate_expense_amount(value: Any) -> Decimal:
    """Return ``value`` as money if it is a usable expense amount.

    Raises:
        InvalidExpense: If the value is not finite, is <= 0 or is above
            ``MAX_EXPENSE_AMOUNT``.
    """
    try:
        amount = to_money(value)
    except ValueError as exc:
        raise InvalidExpense(f"Expense amount must be a valid number: {value!r}") from exc
    if amount <= 0:
        raise InvalidExpense("Expense amount must be positive")
    if amount > config.MAX_EXPENSE_AMOUNT:
        raise InvalidExpense(f"Expense amount too high (maximum {config.MAX_EXPENSE_AMOUNT})")
    return amount


def validate_expense_date(day: date, cycle: WeekCycle) -> None:
    if not cycle.contains(day):
        raise DateOutOfRange(
            f"Expense date {day.isoformat()} is outside cycle "
            f"{cycle.start_date.isoformat()}..{cycle.end_date.isoformat()}"
        )
