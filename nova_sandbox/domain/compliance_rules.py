"""AML thresholds, sanction patterns and KYC outcome rolls"""

from datetime import datetime
from typing import List, Optional

from nova_sandbox.domain.models import AMLFlag, AMLResult, KYCStatus, SanctionResult, SanctionStatus
from nova_sandbox.domain.rng import SeededRandom

LARGE_TRANSACTION = 1_000_000  # $10,000 reporting threshold
STRUCTURING_FLOOR = 950_000
STRUCTURING_COUNT = 3
STRUCTURING_WINDOW_DAYS = 7
DAILY_AGGREGATE_LIMIT = 2_500_000
DAILY_COUNT_LIMIT = 20

SANCTION_PATTERNS = ["sanctioned", "blocked", "restricted", "embargo"]
PATTERN_CONFIDENCE = 0.95
FALSE_POSITIVE_CONFIDENCE = 0.45
BLOCK_CONFIDENCE = 0.9


def evaluate_aml(
    amount: int,
    similar_recent_count: int,
    daily_total: int,
    daily_count: int,
) -> AMLResult:
    """
    Apply fixed-threshold AML rules to one transaction.

    Args:
        amount: Transaction amount in cents
        similar_recent_count: Transactions in the structuring band over the
            last 7 days, this one included
        daily_total: Sum of the user's transactions today, this one included
        daily_count: Number of the user's transactions today
    """
    flags: List[AMLFlag] = []
    if amount >= LARGE_TRANSACTION:
        flags.append(AMLFlag("large_transaction", f"Transaction of {amount} cents meets the reporting threshold"))
    if STRUCTURING_FLOOR <= amount < LARGE_TRANSACTION and similar_recent_count >= STRUCTURING_COUNT:
        flags.append(
            AMLFlag("structuring", f"{similar_recent_count} transactions just under the threshold in 7 days")
        )
    if daily_total > DAILY_AGGREGATE_LIMIT:
        flags.append(AMLFlag("daily_aggregate", f"Daily total {daily_total} cents exceeds limit"))
    if daily_count > DAILY_COUNT_LIMIT:
        flags.append(AMLFlag("high_frequency", f"{daily_count} transactions today"))
    return AMLResult(flagged=bool(flags), flags=flags)


def screen_name(name: str, rng: SeededRandom, false_positive_rate: float) -> SanctionResult:
    """Substring match against the blocklist plus a small injected false-positive rate"""
    lowered = name.lower()
    matched: Optional[str] = next((p for p in SANCTION_PATTERNS if p in lowered), None)
    if matched:
        confidence = PATTERN_CONFIDENCE
    elif rng.next() < false_positive_rate:
        confidence = FALSE_POSITIVE_CONFIDENCE
    else:
        return SanctionResult(status=SanctionStatus.CLEAR, confidence=0.0)

    status = SanctionStatus.BLOCKED if confidence >= BLOCK_CONFIDENCE else SanctionStatus.MATCH
    return SanctionResult(status=status, confidence=confidence, matched_pattern=matched)


def roll_kyc_outcome(rng: SeededRandom, verified_rate: float, pending_rate: float) -> KYCStatus:
    roll = rng.next()
    if roll < verified_rate:
        return KYCStatus.VERIFIED
    if roll < verified_rate + pending_rate:
        return KYCStatus.PENDING
    return KYCStatus.REJECTED


def kyc_expired(verified_at: Optional[datetime], now: datetime, expiry_days: int) -> bool:
    return verified_at is not None and (now - verified_at).days > expiry_days
