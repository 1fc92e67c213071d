"""Unit tests for fraud heuristics"""

from datetime import datetime, timedelta
from nova_sandbox.domain.fraud_scoring import score_transaction
from nova_sandbox.domain.models import FraudAlertType, HistoryEntry, TransactionType

NOON = datetime(2024, 6, 12, 12, 0)


def _entry(amount, minutes_ago, at=NOON, merchant=None, location=None, type=TransactionType.DEBIT):
    return HistoryEntry(
        amount=amount,
        type=type,
        created_at=at - timedelta(minutes=minutes_ago),
        merchant=merchant,
        location=location,
    )


def _types(result):
    return {signal.type for signal in result.alerts}


def test_clean_transaction_scores_zero():
    """Test an ordinary daytime debit raises no signal"""
    history = [_entry(2000, 60 * 24 * d, location="Boston") for d in range(1, 4)]

    result = score_transaction(2500, TransactionType.DEBIT, NOON, history, merchant="Starbucks", location="Boston")

    assert result.risk_score == 0
    assert result.alerts == []
    assert not result.is_fraudulent
    assert not result.should_block


def test_large_debit_at_night():
    """Test large debits between midnight and 5am"""
    at = datetime(2024, 6, 12, 2, 30)

    result = score_transaction(60000, TransactionType.DEBIT, at, [])

    assert _types(result) == {FraudAlertType.MIDNIGHT_LARGE}
    assert result.risk_score == 35
    assert not result.is_fraudulent


def test_large_credit_at_night_is_ignored():
    """Test night rule only applies to debits"""
    result = score_transaction(60000, TransactionType.CREDIT, datetime(2024, 6, 12, 2, 30), [])
    assert result.risk_score == 0


def test_velocity_and_card_testing_block():
    """Test a burst of small charges trips velocity and card testing"""
    history = [_entry(100, minutes) for minutes in (5, 10, 15, 20, 25)]

    result = score_transaction(200, TransactionType.DEBIT, NOON, history)

    assert _types(result) == {FraudAlertType.VELOCITY, FraudAlertType.CARD_TESTING}
    assert result.risk_score == 70
    assert result.is_fraudulent
    assert result.should_block
    assert not result.should_freeze


def test_impossible_travel():
    """Test a far city within the hour is a high geolocation jump"""
    history = [_entry(3000, 30, location="New York")]

    result = score_transaction(3000, TransactionType.DEBIT, NOON, history, merchant="Uber", location="Los Angeles")

    assert _types(result) == {FraudAlertType.GEOLOCATION_JUMP}
    assert result.risk_score == 50
    assert result.is_fraudulent


def test_rapid_location_change_is_medium():
    """Test a far city within a few hours is a medium jump"""
    history = [_entry(3000, 60 * 4, location="New York")]

    result = score_transaction(3000, TransactionType.DEBIT, NOON, history, location="Chicago")

    assert result.risk_score == 20
    assert result.alerts[0].severity.value == "medium"


def test_known_location_is_not_a_jump():
    """Test a city seen recently does not count as a jump"""
    history = [_entry(3000, 30, location="New York"), _entry(3000, 60 * 24, location="Chicago")]

    result = score_transaction(3000, TransactionType.DEBIT, NOON, history, location="Chicago")

    assert FraudAlertType.GEOLOCATION_JUMP not in _types(result)


def test_unusual_amount():
    """Test amounts far above the account's average"""
    history = [_entry(1000, 60 * 24), _entry(1000, 60 * 48)]

    result = score_transaction(6000, TransactionType.DEBIT, NOON, history)

    assert _types(result) == {FraudAlertType.UNUSUAL_AMOUNT}
    assert result.risk_score == 20


def test_duplicate_charge():
    """Test same merchant and amount within minutes"""
    history = [_entry(4599, 2, merchant="Netflix")]

    result = score_transaction(4599, TransactionType.DEBIT, NOON, history, merchant="Netflix")

    assert _types(result) == {FraudAlertType.DUPLICATE}
    assert result.risk_score == 25


def test_score_is_capped_and_freezes():
    """Test score is capped at 100 and triggers a freeze"""
    at = datetime(2024, 6, 12, 1, 0)
    history = [_entry(100, minutes, at=at, location="Miami") for minutes in (5, 10, 15, 20, 25)]

    result = score_transaction(90000, TransactionType.DEBIT, at, history, location="Seattle")

    # night 35 + velocity 30 + geo 50 + unusual 20 + card testing 40
    assert result.risk_score == 100
    assert result.should_freeze
