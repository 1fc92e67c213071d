"""Unit tests for the composite risk score"""

from datetime import datetime, timedelta
from nova_sandbox.domain.models import HistoryEntry, RiskFactors, RiskLevel, TransactionType
from nova_sandbox.domain.risk_scoring import (
    analyze_risk_factors,
    assess_risk,
    calculate_composite_score,
    determine_risk_level,
)

NOW = datetime(2024, 6, 12, 14, 0)


def test_no_data_yields_neutral_defaults():
    """Test a user with no history gets neutral sub-scores"""
    factors = analyze_risk_factors([], 0, 0, 0, None, NOW)

    assert factors.spending_stability == 80
    assert factors.income_volatility == 20
    assert factors.loan_repayment_history == 80
    assert factors.account_age == 0
    assert factors.transaction_diversity == 0


def test_no_data_scores_21_low():
    """Test empty profile composite score and level"""
    assessment = assess_risk(analyze_risk_factors([], 0, 0, 0, None, NOW))

    # 20*.2 + 20*.15 + 20*.2 + 100*.05 + 100*.05
    assert assessment.score == 21
    assert assessment.level == RiskLevel.LOW
    assert "Limited transaction history across categories" in assessment.recommendations


def test_steady_long_standing_customer_is_low_risk():
    """Test regular income and spending on an old account scores low"""
    history = [
        HistoryEntry(amount=2500, type=TransactionType.DEBIT, created_at=NOW - timedelta(days=d), category=category)
        for d, category in enumerate(["food", "transport", "shopping", "education", "entertainment"] * 4, start=1)
    ] + [
        HistoryEntry(amount=150000, type=TransactionType.CREDIT, created_at=NOW - timedelta(days=d), category="salary")
        for d in (1, 31, 61)
    ]

    factors = analyze_risk_factors(history, 0, 10, 0, NOW - timedelta(days=400), NOW)

    assert factors.spending_stability == 100
    assert factors.income_volatility == 0
    assert factors.account_age == 100
    assert factors.loan_repayment_history == 100
    assert factors.transaction_diversity == 60
    assert calculate_composite_score(factors) == 2


def test_overdraft_and_missed_payments_raise_risk():
    """Test overdrafts and missed payments push the score up"""
    factors = analyze_risk_factors([], 2, 1, 3, NOW - timedelta(days=30), NOW)

    assert factors.overdraft_frequency == 20
    assert factors.loan_repayment_history == 25
    assessment = assess_risk(factors)
    assert assessment.score > 21
    assert "Missed loan payments detected; enable automatic payments" in assessment.recommendations


def test_night_activity_counts_as_unusual():
    """Test night-time activity raises the unusual activity factor"""
    history = [
        HistoryEntry(amount=60000, type=TransactionType.DEBIT, created_at=datetime(2024, 6, d, 3, 0))
        for d in (1, 2, 3)
    ]

    factors = analyze_risk_factors(history, 0, 0, 0, None, NOW)

    assert factors.unusual_activity == 45


def test_level_boundaries():
    """Test risk level thresholds"""
    assert determine_risk_level(0) == RiskLevel.LOW
    assert determine_risk_level(24) == RiskLevel.LOW
    assert determine_risk_level(25) == RiskLevel.MEDIUM
    assert determine_risk_level(50) == RiskLevel.HIGH
    assert determine_risk_level(75) == RiskLevel.CRITICAL
    assert determine_risk_level(100) == RiskLevel.CRITICAL


def test_composite_is_clamped():
    """Test composite score stays within 0 to 100"""
    worst = RiskFactors(0, 100, 100, 0, 100, 0, 0)
    best = RiskFactors(100, 0, 0, 100, 0, 100, 100)

    assert calculate_composite_score(worst) == 100
    assert calculate_composite_score(best) == 0
