"""Fraud heuristics - additive scoring of a transaction against its trailing history"""

from datetime import datetime, timedelta
from typing import List, Optional

from nova_sandbox.domain.models import (
    FraudAlertType,
    FraudCheckResult,
    FraudSignal,
    HistoryEntry,
    Severity,
    TransactionType,
)

FLAG_THRESHOLD = 50
BLOCK_THRESHOLD = 70
FREEZE_THRESHOLD = 90
MAX_SCORE = 100

# Thresholds
NIGHT_END_HOUR = 5
LARGE_NIGHT_AMOUNT = 50_000  # $500
VELOCITY_WINDOW = timedelta(hours=1)
VELOCITY_LIMIT = 5
IMPOSSIBLE_TRAVEL = timedelta(hours=2)
SUSPICIOUS_TRAVEL = timedelta(hours=8)
KNOWN_LOCATIONS_LOOKBACK = 20
UNUSUAL_AMOUNT_MULTIPLIER = 5
DUPLICATE_WINDOW = timedelta(minutes=5)
CARD_TEST_AMOUNT = 500  # $5
CARD_TEST_LIMIT = 3


def check_midnight_large(amount: int, type: TransactionType, at: datetime) -> Optional[FraudSignal]:
    if at.hour < NIGHT_END_HOUR and amount > LARGE_NIGHT_AMOUNT and type == TransactionType.DEBIT:
        return FraudSignal(
            type=FraudAlertType.MIDNIGHT_LARGE,
            severity=Severity.HIGH,
            score=35,
            description=f"Large debit of {amount} cents at {at.hour:02d}:{at.minute:02d}",
            metadata={"hour": at.hour, "amount": amount},
        )
    return None


def check_velocity(history: List[HistoryEntry], at: datetime) -> Optional[FraudSignal]:
    recent = [h for h in history if at - VELOCITY_WINDOW <= h.created_at <= at]
    if len(recent) >= VELOCITY_LIMIT:
        return FraudSignal(
            type=FraudAlertType.VELOCITY,
            severity=Severity.HIGH,
            score=30,
            description=f"{len(recent)} transactions in the last hour",
            metadata={"count": len(recent)},
        )
    return None


def check_geolocation(location: Optional[str], history: List[HistoryEntry], at: datetime) -> Optional[FraudSignal]:
    """
    Flag a new location that would need implausibly fast travel from the
    previous transaction's location. History is newest first.
    """
    located = [h for h in history if h.location]
    if not location or not located:
        return None

    known = {h.location for h in located[:KNOWN_LOCATIONS_LOOKBACK]}
    last = located[0]
    if location in known or last.location == location:
        return None

    elapsed = at - last.created_at
    metadata = {"from": last.location, "to": location, "hours": round(elapsed.total_seconds() / 3600, 2)}
    if elapsed < IMPOSSIBLE_TRAVEL:
        return FraudSignal(
            type=FraudAlertType.GEOLOCATION_JUMP,
            severity=Severity.CRITICAL,
            score=50,
            description=f"Impossible travel from {last.location} to {location}",
            metadata=metadata,
        )
    if elapsed < SUSPICIOUS_TRAVEL:
        return FraudSignal(
            type=FraudAlertType.GEOLOCATION_JUMP,
            severity=Severity.MEDIUM,
            score=20,
            description=f"Rapid location change from {last.location} to {location}",
            metadata=metadata,
        )
    return None


def check_unusual_amount(amount: int, type: TransactionType, history: List[HistoryEntry]) -> Optional[FraudSignal]:
    debits = [h.amount for h in history if h.type == TransactionType.DEBIT]
    if type != TransactionType.DEBIT or not debits:
        return None
    average = sum(debits) / len(debits)
    if amount > average * UNUSUAL_AMOUNT_MULTIPLIER:
        return FraudSignal(
            type=FraudAlertType.UNUSUAL_AMOUNT,
            severity=Severity.MEDIUM,
            score=20,
            description=f"Amount {amount} is {amount / average:.1f}x the average debit",
            metadata={"average": round(average), "amount": amount},
        )
    return None


def check_duplicate(
    amount: int,
    merchant: Optional[str],
    history: List[HistoryEntry],
    at: datetime,
) -> Optional[FraudSignal]:
    for entry in history:
        if (
            entry.amount == amount
            and entry.merchant == merchant
            and abs(at - entry.created_at) <= DUPLICATE_WINDOW
        ):
            return FraudSignal(
                type=FraudAlertType.DUPLICATE,
                severity=Severity.MEDIUM,
                score=25,
                description=f"Possible duplicate charge at {merchant}",
                metadata={"amount": amount, "merchant": merchant},
            )
    return None


def check_card_testing(history: List[HistoryEntry], at: datetime) -> Optional[FraudSignal]:
    small = [
        h for h in history
        if h.amount < CARD_TEST_AMOUNT and at - VELOCITY_WINDOW <= h.created_at <= at
    ]
    if len(small) >= CARD_TEST_LIMIT:
        return FraudSignal(
            type=FraudAlertType.CARD_TESTING,
            severity=Severity.HIGH,
            score=40,
            description=f"{len(small)} small transactions in the last hour",
            metadata={"count": len(small)},
        )
    return None


def score_transaction(
    amount: int,
    type: TransactionType,
    at: datetime,
    history: List[HistoryEntry],
    merchant: Optional[str] = None,
    location: Optional[str] = None,
) -> FraudCheckResult:
    """
    Run every heuristic and sum their contributions.

    Args:
        history: posted transactions for the account, newest first

    Returns:
        FraudCheckResult with the capped score and block/freeze recommendations
    """
    checks = [
        check_midnight_large(amount, type, at),
        check_velocity(history, at),
        check_geolocation(location, history, at),
        check_unusual_amount(amount, type, history),
        check_duplicate(amount, merchant, history, at),
        check_card_testing(history, at),
    ]
    alerts = [signal for signal in checks if signal is not None]
    score = min(MAX_SCORE, sum(signal.score for signal in alerts))

    return FraudCheckResult(
        is_fraudulent=score >= FLAG_THRESHOLD,
        risk_score=score,
        alerts=alerts,
        should_block=score >= BLOCK_THRESHOLD,
        should_freeze=score >= FREEZE_THRESHOLD,
    )
