"""Risk scoring engine - composite 0-100 user risk from transaction behaviour"""

import statistics
from datetime import datetime
from typing import Dict, List, Optional

from nova_sandbox.domain.models import HistoryEntry, RiskAssessment, RiskFactors, RiskLevel, TransactionType

WEIGHTS: Dict[str, float] = {
    "spending_stability": 0.20,
    "income_volatility": 0.15,
    "overdraft_frequency": 0.20,
    "loan_repayment_history": 0.20,
    "unusual_activity": 0.15,
    "account_age": 0.05,
    "transaction_diversity": 0.05,
}

# Factors where a high value means lower risk
INVERTED = {"spending_stability", "loan_repayment_history", "account_age", "transaction_diversity"}

LARGE_DEBIT = 100_000  # $1000
UNUSUAL_NIGHT_AMOUNT = 50_000
UNUSUAL_NIGHT_END_HOUR = 5


def _coefficient_of_variation(values: List[int]) -> Optional[float]:
    if len(values) < 2:
        return None
    mean = statistics.fmean(values)
    if mean == 0:
        return 0.0
    return statistics.pstdev(values) / mean


def analyze_risk_factors(
    transactions: List[HistoryEntry],
    accounts_in_overdraft: int,
    payments_made: int,
    payments_missed: int,
    oldest_account_at: Optional[datetime],
    now: datetime,
) -> RiskFactors:
    """
    Extract sub-scores from trailing history.

    Requirements:
    - Missing data yields neutral defaults, never an error
    - Stability 80 and volatility 20 with fewer than two samples
    - Repayment 80 when the user has no loan history
    """
    debits = [t.amount for t in transactions if t.type == TransactionType.DEBIT]
    credits = [t.amount for t in transactions if t.type == TransactionType.CREDIT]

    spending_cv = _coefficient_of_variation(debits)
    stability = 80.0 if spending_cv is None else max(0.0, min(100.0, 100 - spending_cv * 100))

    income_cv = _coefficient_of_variation(credits)
    volatility = 20.0 if income_cv is None else min(100.0, income_cv * 100)

    large_debits = sum(1 for amount in debits if amount > LARGE_DEBIT)
    overdraft = min(100.0, (accounts_in_overdraft + large_debits) * 10)

    total_payments = payments_made + payments_missed
    repayment = 80.0 if total_payments == 0 else payments_made / total_payments * 100

    unusual_count = sum(
        1 for t in transactions
        if t.created_at.hour < UNUSUAL_NIGHT_END_HOUR and t.amount > UNUSUAL_NIGHT_AMOUNT
    )
    unusual = min(100.0, unusual_count * 15)

    age_days = max(0, (now - oldest_account_at).days) if oldest_account_at else 0
    age = min(100.0, age_days / 3.65)

    categories = {t.category for t in transactions if t.category}
    diversity = min(100.0, len(categories) * 10)

    return RiskFactors(
        spending_stability=stability,
        income_volatility=volatility,
        overdraft_frequency=overdraft,
        loan_repayment_history=repayment,
        unusual_activity=unusual,
        account_age=age,
        transaction_diversity=diversity,
    )


def calculate_composite_score(factors: RiskFactors) -> int:
    """Weighted sum with "good" factors inverted, rounded to 0..100"""
    total = 0.0
    for name, weight in WEIGHTS.items():
        value = getattr(factors, name)
        if name in INVERTED:
            value = 100 - value
        total += value * weight
    return max(0, min(100, round(total)))


def determine_risk_level(score: int) -> RiskLevel:
    if score < 25:
        return RiskLevel.LOW
    elif score < 50:
        return RiskLevel.MEDIUM
    elif score < 75:
        return RiskLevel.HIGH
    return RiskLevel.CRITICAL


def build_recommendations(factors: RiskFactors) -> List[str]:
    recommendations = []
    if factors.spending_stability < 50:
        recommendations.append("Spending is erratic; consider a monthly budget")
    if factors.income_volatility > 60:
        recommendations.append("Income is irregular; keep a larger emergency buffer")
    if factors.overdraft_frequency > 30:
        recommendations.append("Frequent overdrafts or large debits; review account limits")
    if factors.loan_repayment_history < 70:
        recommendations.append("Missed loan payments detected; enable automatic payments")
    if factors.unusual_activity > 30:
        recommendations.append("Unusual late-night activity; review recent transactions")
    if factors.transaction_diversity < 30:
        recommendations.append("Limited transaction history across categories")
    return recommendations


def assess_risk(factors: RiskFactors) -> RiskAssessment:
    score = calculate_composite_score(factors)
    return RiskAssessment(
        score=score,
        level=determine_risk_level(score),
        factors=factors,
        recommendations=build_recommendations(factors),
    )
