"""Risk engine - user risk scores and the risk event audit trail"""

import logging
from datetime import timedelta
from typing import List, Optional

from sqlalchemy.orm import Session

from nova_sandbox.domain.models import RiskAssessment, RiskEventType, RiskLevel, Severity
from nova_sandbox.domain.risk_scoring import analyze_risk_factors, assess_risk, determine_risk_level
from nova_sandbox.infrastructure.database.models import RiskEvent, User
from nova_sandbox.infrastructure.database.repositories import (
    AccountRepository,
    AuditRepository,
    LoanRepository,
    TransactionRepository,
    UserRepository,
)
from nova_sandbox.utils.clock import Clock, SystemClock

logger = logging.getLogger(__name__)

LOOKBACK = timedelta(days=90)
SEVERITY_BUMP = {Severity.HIGH: 10, Severity.CRITICAL: 15}


class RiskEngine:
    """Computes composite risk per user and records risk events"""

    def __init__(self, db: Session, clock: Optional[Clock] = None):
        self.db = db
        self.clock = clock or SystemClock()
        self.users = UserRepository(db)
        self.accounts = AccountRepository(db)
        self.transactions = TransactionRepository(db)
        self.loans = LoanRepository(db)
        self.audit = AuditRepository(db)

    def calculate_user_risk_score(self, user_id: str) -> Optional[RiskAssessment]:
        """
        Score a user from the last 90 days of posted activity and persist
        the score on the user. Returns None for unknown users.
        """
        user = self.users.get(user_id)
        if user is None:
            return None

        now = self.clock.now()
        history = self.transactions.posted_history_for_user(user_id, now - LOOKBACK)
        made, missed = self.loans.payment_counts(user_id)
        factors = analyze_risk_factors(
            transactions=history,
            accounts_in_overdraft=self.accounts.count_in_overdraft(user_id),
            payments_made=made,
            payments_missed=missed,
            oldest_account_at=self.accounts.oldest_created_at(user_id),
            now=now,
        )
        assessment = assess_risk(factors)
        user.risk_score = assessment.score
        self.db.flush()
        return assessment

    def log_risk_event(
        self,
        user_id: str,
        event_type: RiskEventType,
        severity: Severity,
        description: str,
        details: Optional[dict] = None,
    ) -> RiskEvent:
        """Append a risk event; high and critical events raise the user's score"""
        event = self.audit.add(
            RiskEvent(
                user_id=user_id,
                event_type=event_type.value,
                severity=severity.value,
                description=description,
                details=details or {},
                created_at=self.clock.now(),
            )
        )
        bump = SEVERITY_BUMP.get(severity, 0)
        if bump:
            user = self.users.get(user_id)
            if user is not None:
                user.risk_score = min(100, (user.risk_score or 0) + bump)
        self.db.flush()
        logger.info(
            f"Risk event: {event_type.value}",
            extra={"user_id": user_id, "severity": severity.value},
        )
        return event

    def get_user_risk_events(self, user_id: str, limit: int = 50) -> List[RiskEvent]:
        return self.audit.risk_events_for_user(user_id, limit)

    def get_risk_summary(self) -> dict:
        users: List[User] = self.users.list_all()
        by_level = {level.value: 0 for level in RiskLevel}
        for user in users:
            by_level[determine_risk_level(user.risk_score or 0).value] += 1

        since = self.clock.now() - timedelta(hours=24)
        return {
            "total_users": len(users),
            "average_score": round(sum(u.risk_score or 0 for u in users) / len(users), 1) if users else 0,
            "users_by_level": by_level,
            "events_last_24h": self.audit.count_grouped(RiskEvent, RiskEvent.severity, since),
        }
