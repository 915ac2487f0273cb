"""Tests for the periodic IRR solver and equity multiple."""

import pytest
from decimal import Decimal

from distribution_domain.calculations import calculate_irr, equity_multiple, npv


# =============================================================================
# calculate_irr
# =============================================================================

def test_irr_single_period():
    """100 in, 110 out one period later is 10%."""
    assert calculate_irr([-100, 110]) == pytest.approx(0.10, abs=1e-6)


def test_irr_two_periods():
    assert calculate_irr([-1000, 0, 1210]) == pytest.approx(0.10, abs=1e-6)


def test_irr_uneven_flows():
    # 60x^2 + 50x - 100 = 0 with x = 1 / (1 + r)
    assert calculate_irr([-100, 50, 60]) == pytest.approx(0.06394, abs=1e-4)


def test_irr_accepts_decimals():
    assert calculate_irr([Decimal("-100"), Decimal("110")]) == pytest.approx(0.10, abs=1e-6)


def test_irr_negative_rate():
    assert calculate_irr([-100, 50]) == pytest.approx(-0.5, abs=1e-4)


def test_irr_root_zeroes_npv():
    flows = [-5_000_000, 400_000, 400_000, 6_200_000]
    rate = calculate_irr(flows)
    assert rate is not None
    assert npv(rate, flows) == pytest.approx(0.0, abs=100.0)


@pytest.mark.parametrize("flows", [
    [],
    [-100],
    [100, 200],
    [-100, -50],
    [0, 0, 0],
])
def test_irr_undefined_without_sign_change(flows):
    assert calculate_irr(flows) is None


def test_irr_outside_bounded_range_is_none():
    """A 9900% return is outside (-0.99, 10] and has no bracket inside it."""
    assert calculate_irr([-100, 10_000]) is None


def test_irr_far_guess_still_converges():
    assert calculate_irr([-100, 110], guess=5.0) == pytest.approx(0.10, abs=1e-4)


# =============================================================================
# npv / equity_multiple
# =============================================================================

def test_npv_at_zero_rate_is_sum():
    assert npv(0.0, [-100, 40, 70]) == pytest.approx(10.0)


def test_equity_multiple():
    assert equity_multiple(Decimal("15000000"), Decimal("10000000")) == Decimal("1.5")


def test_equity_multiple_without_capital():
    assert equity_multiple(Decimal("100"), Decimal("0")) == Decimal("0")
