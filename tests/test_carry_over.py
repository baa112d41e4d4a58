from __future__ import annotations

from decimal import Decimal

import pytest

from rolling_budget.carry_over import CARRY_OVER_POLICIES, compute_next_opening
from rolling_budget.models import CarryOverMode


def test_every_mode_has_a_policy():
    assert set(CARRY_OVER_POLICIES) == set(CarryOverMode)


def test_none_discards_balance():
    carry = compute_next_opening(CarryOverMode.NONE, Decimal('-40.00'), 7)
    assert carry.carried_in == Decimal('-40.00')
    assert carry.opening_balance == 0
    assert carry.per_day_adjustment == 0
    assert carry.remainder_adjustment == 0


def test_rollover_keeps_sign():
    assert compute_next_opening(CarryOverMode.ROLLOVER, Decimal('50.00'), 7).opening_balance == Decimal('50.00')
    assert compute_next_opening(CarryOverMode.ROLLOVER, Decimal('-150.00'), 7).opening_balance == Decimal('-150.00')


def test_partial_rollover_modes():
    assert compute_next_opening(CarryOverMode.ROLLOVER_DEFICIT, Decimal('50.00'), 7).opening_balance == 0
    assert compute_next_opening(CarryOverMode.ROLLOVER_DEFICIT, Decimal('-30.00'), 7).opening_balance == Decimal('-30.00')
    assert compute_next_opening(CarryOverMode.ROLLOVER_CREDIT, Decimal('50.00'), 7).opening_balance == Decimal('50.00')
    assert compute_next_opening(CarryOverMode.ROLLOVER_CREDIT, Decimal('-30.00'), 7).opening_balance == 0


def test_redistribute_truncates_share_and_keeps_remainder():
    carry = compute_next_opening(CarryOverMode.REDISTRIBUTE, Decimal('50.00'), 7)
    assert carry.opening_balance == 0
    assert carry.per_day_adjustment == Decimal('7.14')
    assert carry.remainder_adjustment == Decimal('0.02')

    deficit = compute_next_opening(CarryOverMode.REDISTRIBUTE, Decimal('-50.00'), 7)
    assert deficit.per_day_adjustment == Decimal('-7.14')
    assert deficit.remainder_adjustment == Decimal('-0.02')


@pytest.mark.parametrize('balance', ['0.00', '0.01', '-0.05', '99.99', '-1234.56'])
@pytest.mark.parametrize('days', [1, 3, 7, 10])
def test_redistribute_conserves_the_balance(balance, days):
    value = Decimal(balance)
    carry = compute_next_opening(CarryOverMode.REDISTRIBUTE, value, days)
    assert carry.per_day_adjustment * days + carry.remainder_adjustment == value
    assert abs(carry.remainder_adjustment) < Decimal('0.01') * days


def test_mode_accepts_plain_strings():
    assert compute_next_opening('rollover', Decimal('5.00'), 7).opening_balance == Decimal('5.00')


def test_zero_length_cycle_rejected():
    with pytest.raises(ValueError):
        compute_next_opening(CarryOverMode.ROLLOVER, Decimal('1.00'), 0)
