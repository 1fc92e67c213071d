"""Unit tests for AML thresholds, sanction screening and KYC rolls"""

from datetime import datetime, timedelta
from nova_sandbox.domain.compliance_rules import evaluate_aml, kyc_expired, roll_kyc_outcome, screen_name
from nova_sandbox.domain.models import KYCStatus, SanctionStatus
from nova_sandbox.domain.rng import SeededRandom


class FixedRandom(SeededRandom):
    """Replays a fixed list of floats"""

    def __init__(self, values):
        super().__init__(0)
        self.values = list(values)

    def next(self) -> float:
        return self.values.pop(0)


def _codes(result):
    return [flag.code for flag in result.flags]


def test_small_transaction_is_clear():
    """Test ordinary amounts raise no AML flag"""
    result = evaluate_aml(50000, 0, 50000, 1)
    assert not result.flagged
    assert result.flags == []


def test_reporting_threshold():
    """Test amounts at the reporting threshold are flagged"""
    assert _codes(evaluate_aml(1_000_000, 1, 1_000_000, 1)) == ["large_transaction"]
    assert not evaluate_aml(999_999, 1, 999_999, 1).flagged


def test_structuring_needs_three_in_band():
    """Test structuring needs three just-under-threshold amounts in a week"""
    assert _codes(evaluate_aml(960_000, 3, 960_000, 1)) == ["structuring"]
    assert not evaluate_aml(960_000, 2, 960_000, 1).flagged
    assert not evaluate_aml(900_000, 5, 900_000, 1).flagged


def test_daily_aggregate_and_frequency():
    """Test daily aggregate and daily count limits"""
    assert _codes(evaluate_aml(10_000, 0, 2_500_001, 21)) == ["daily_aggregate", "high_frequency"]
    assert not evaluate_aml(10_000, 0, 2_500_000, 20).flagged


def test_blocklisted_name_is_blocked_without_a_draw():
    """Test a blocklisted name is blocked at 0.95 confidence"""
    result = screen_name("Embargo Trading LLC", FixedRandom([]), 0.02)

    assert result.status == SanctionStatus.BLOCKED
    assert result.confidence == 0.95
    assert result.matched_pattern == "embargo"


def test_injected_false_positive_is_a_match():
    """Test a false positive is a match but not a block"""
    result = screen_name("Jane Doe", FixedRandom([0.01]), 0.02)

    assert result.status == SanctionStatus.MATCH
    assert result.confidence == 0.45
    assert result.matched_pattern is None


def test_ordinary_name_is_clear():
    result = screen_name("Jane Doe", FixedRandom([0.5]), 0.02)
    assert result.status == SanctionStatus.CLEAR
    assert result.confidence == 0.0


def test_kyc_outcome_bands():
    """Test KYC outcome thresholds"""
    assert roll_kyc_outcome(FixedRandom([0.84]), 0.85, 0.10) == KYCStatus.VERIFIED
    assert roll_kyc_outcome(FixedRandom([0.90]), 0.85, 0.10) == KYCStatus.PENDING
    assert roll_kyc_outcome(FixedRandom([0.96]), 0.85, 0.10) == KYCStatus.REJECTED


def test_kyc_outcome_is_reproducible():
    first = [roll_kyc_outcome(SeededRandom("kyc"), 0.85, 0.10) for _ in range(3)]
    second = [roll_kyc_outcome(SeededRandom("kyc"), 0.85, 0.10) for _ in range(3)]
    assert first == second


def test_kyc_expiry():
    """Test verified KYC expires after the configured days"""
    now = datetime(2024, 6, 12)
    assert kyc_expired(now - timedelta(days=31), now, 30)
    assert not kyc_expired(now - timedelta(days=30), now, 30)
    assert not kyc_expired(None, now, 30)
