"""Unit tests for loan amortization"""

import math
import pytest
from nova_sandbox.domain.amortization import (
    calculate_monthly_payment,
    generate_amortization_schedule,
    split_payment,
)


def test_monthly_payment_matches_standard_formula():
    """Test payment is the ceiling of the amortization formula"""
    rate = 0.085 / 12
    growth = (1 + rate) ** 24
    expected = math.ceil(500000 * rate * growth / (growth - 1))

    assert calculate_monthly_payment(500000, 0.085, 24) == expected


def test_zero_rate_splits_principal_evenly():
    """Test zero interest divides principal across the term"""
    assert calculate_monthly_payment(120000, 0.0, 12) == 10000
    assert calculate_monthly_payment(100000, 0.0, 3) == 33334


def test_invalid_term_raises():
    """Test non-positive terms are refused"""
    with pytest.raises(ValueError):
        calculate_monthly_payment(100000, 0.05, 0)


def test_split_payment_charges_interest_first():
    """Test each payment covers interest before principal"""
    split = split_payment(120000, 0.12, 10000)

    # 1% of 120000 per month
    assert split.interest == 1200
    assert split.principal == 8800
    assert split.remaining == 111200


def test_twenty_four_payments_clear_the_loan():
    """Test 500000 at 8.5% is paid off after exactly 24 payments"""
    payment = calculate_monthly_payment(500000, 0.085, 24)
    remaining = 500000
    for _ in range(24):
        remaining = split_payment(remaining, 0.085, payment).remaining

    assert remaining == 0


def test_schedule_covers_term_and_ends_at_zero():
    """Test schedule has one row per month and ends at zero"""
    schedule = generate_amortization_schedule(500000, 0.085, 24)

    assert len(schedule) <= 24
    assert [p.number for p in schedule] == list(range(1, len(schedule) + 1))
    assert schedule[-1].remaining == 0
    assert sum(p.principal for p in schedule) == 500000
    assert schedule[-1].payment <= schedule[0].payment
