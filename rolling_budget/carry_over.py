"""Carry-over policies.

Each :class:`~rolling_budget.models.CarryOverMode` maps to one pure function
turning a closing cycle's accumulated balance into the inbound carry of the
next cycle. The cycle manager and the recalculation engine only ever call
:func:`compute_next_opening`; adding a mode means adding an entry to
``CARRY_OVER_POLICIES``.

Rounding rule for ``redistribute``: the per-day share is the balance divided
by the number of days, truncated toward zero to whole cents. Whatever is left
over (at most ``days - 1`` cents, same sign as the balance) is the remainder
adjustment, applied to a single day of the new cycle.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_DOWN, Decimal
from typing import Callable, Dict

from . import config
from .models import CarryOverMode

ZERO = Decimal('0.00')


@dataclass(frozen=True)
class CarryOver:
    """Inbound carry for a new cycle."""

    carried_in: Decimal
    opening_balance: Decimal = ZERO
    per_day_adjustment: Decimal = ZERO
    remainder_adjustment: Decimal = ZERO


def _discard(balance: Decimal, days: int) -> CarryOver:
    return CarryOver(carried_in=balance)


def _rollover(balance: Decimal, days: int) -> CarryOver:
    return CarryOver(carried_in=balance, opening_balance=balance)


def _rollover_deficit(balance: Decimal, days: int) -> CarryOver:
    return CarryOver(carried_in=balance, opening_balance=min(ZERO, balance))


def _rollover_credit(balance: Decimal, days: int) -> CarryOver:
    return CarryOver(carried_in=balance, opening_balance=max(ZERO, balance))


def _redistribute(balance: Decimal, days: int) -> CarryOver:
    share = (balance / days).quantize(config.MONEY_QUANTUM, rounding=ROUND_DOWN)
    remainder = balance - share * days
    return CarryOver(
        carried_in=balance,
        per_day_adjustment=share,
        remainder_adjustment=remainder,
    )


CARRY_OVER_POLICIES: Dict[CarryOverMode, Callable[[Decimal, int], CarryOver]] = {
    CarryOverMode.NONE: _discard,
    CarryOverMode.ROLLOVER: _rollover,
    CarryOverMode.REDISTRIBUTE: _redistribute,
    CarryOverMode.ROLLOVER_DEFICIT: _rollover_deficit,
    CarryOverMode.ROLLOVER_CREDIT: _rollover_credit,
}


def compute_next_opening(mode: CarryOverMode, closing_balance: Decimal, next_length_days: int) -> CarryOver:
    """Derive the next cycle's inbound carry from a closing balance.

    Args:
        mode: Carry-over mode in force when the previous cycle closed
        closing_balance: Accumulated balance of the closing cycle
        next_length_days: Number of days of the cycle receiving the carry

    Returns:
        CarryOver describing the lump, per-day share and remainder

    Example:
        >>> compute_next_opening(CarryOverMode.REDISTRIBUTE, Decimal('50.00'), 7)
        CarryOver(carried_in=Decimal('50.00'), opening_balance=Decimal('0.00'),
                  per_day_adjustment=Decimal('7.14'), remainder_adjustment=Decimal('0.02'))
    """
    if next_length_days < 1:
        raise ValueError("A cycle must have at least one day")
    policy = CARRY_OVER_POLICIES[CarryOverMode(mode)]
    return policy(closing_balance, next_length_days)
