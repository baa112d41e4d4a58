"""Summary tables for the cycle (week) view.

Turns the ordered day list from the recalculation engine into a pandas
DataFrame plus headline totals, the way the budget pages present
performance snapshots.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import List, Optional, Sequence

import pandas as pd

from .calculations import accumulated_balance, budget_status
from .models import DailyRecord, WeekCycle

RECORD_COLUMNS = ['Date', 'Allocated', 'Spent', 'Balance', 'Status', 'Materialized']


@dataclass
class WeekSummary:
    cycle: WeekCycle
    records: List[DailyRecord]
    frame: pd.DataFrame
    total_allocated: Decimal
    total_spent: Decimal
    total_saved: Decimal
    balance_to_date: Decimal
    average_daily_spent: Decimal
    days_over_budget: int
    days_under_budget: int
    days_elapsed: int


def records_frame(records: Sequence[DailyRecord], threshold: Optional[Decimal] = None) -> pd.DataFrame:
    """One row per day with float money columns for display and charts.

    ``threshold`` is the warning ratio used for the Status column.
    """
    if not records:
        return pd.DataFrame(columns=RECORD_COLUMNS)
    rows = []
    for record in records:
        rows.append({
            'Date': pd.Timestamp(record.date),
            'Allocated': float(record.allocated),
            'Spent': float(record.spent),
            'Balance': float(record.balance),
            'Status': budget_status(record, threshold).value,
            'Materialized': record.is_materialized,
        })
    return pd.DataFrame(rows, columns=RECORD_COLUMNS)


def summarize_cycle(
    cycle: WeekCycle,
    records: Sequence[DailyRecord],
    as_of: date,
    threshold: Optional[Decimal] = None,
) -> WeekSummary:
    """Headline figures of a cycle as of ``as_of``.

    Args:
        cycle: The cycle being summarized
        records: Every day of the cycle ordered by date (synthesized days included)
        as_of: Days after this date are not counted as elapsed
        threshold: Warning ratio for the day statuses (config default if None)

    Returns:
        WeekSummary; averages and over/under counts only cover elapsed days
    """
    elapsed = [record for record in records if record.date <= as_of]
    total_allocated = sum((record.allocated for record in records), Decimal('0.00'))
    total_spent = sum((record.spent for record in records), Decimal('0.00'))
    divisor = len(elapsed) or 1
    average = (sum((record.spent for record in elapsed), Decimal('0.00')) / divisor).quantize(Decimal('0.01'))
    return WeekSummary(
        cycle=cycle,
        records=list(records),
        frame=records_frame(records, threshold),
        total_allocated=total_allocated,
        total_spent=total_spent,
        total_saved=total_allocated - total_spent,
        balance_to_date=accumulated_balance(elapsed),
        average_daily_spent=average,
        days_over_budget=sum(1 for record in elapsed if record.spent > record.allocated),
        days_under_budget=sum(1 for record in elapsed if record.spent < record.allocated),
        days_elapsed=len(elapsed),
    )
