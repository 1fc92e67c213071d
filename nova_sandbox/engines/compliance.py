"""Compliance engine - KYC, AML monitoring and sanction screening"""

import logging
from datetime import timedelta
from typing import List, Optional

from sqlalchemy.orm import Session

from nova_sandbox.config import Settings, settings as default_settings
from nova_sandbox.domain.compliance_rules import (
    STRUCTURING_FLOOR,
    STRUCTURING_WINDOW_DAYS,
    LARGE_TRANSACTION,
    evaluate_aml,
    roll_kyc_outcome,
    screen_name,
)
from nova_sandbox.domain.models import (
    AMLResult,
    AMLStatus,
    ComplianceCheck,
    ComplianceOutcome,
    KYCStatus,
    RiskEventType,
    SanctionResult,
    SanctionStatus,
    Severity,
)
from nova_sandbox.domain.rng import SeededRandom
from nova_sandbox.engines.risk import RiskEngine
from nova_sandbox.infrastructure.database.models import ComplianceLog, User
from nova_sandbox.infrastructure.database.repositories import (
    AccountRepository,
    AuditRepository,
    TransactionRepository,
    UserRepository,
)
from nova_sandbox.utils.clock import Clock, SystemClock
from nova_sandbox.utils.date_utils import start_of_day

logger = logging.getLogger(__name__)

RESCREEN_BATCH = 10


class ComplianceEngine:
    """KYC, AML and sanctions checks with an append-only compliance log"""

    def __init__(self, db: Session, clock: Optional[Clock] = None, config: Optional[Settings] = None):
        self.db = db
        self.clock = clock or SystemClock()
        self.settings = config or default_settings
        self.users = UserRepository(db)
        self.accounts = AccountRepository(db)
        self.transactions = TransactionRepository(db)
        self.audit = AuditRepository(db)
        self.risk = RiskEngine(db, self.clock)

    def process_kyc_verification(self, user_id: str, rng: SeededRandom, document_type: str = "passport") -> Optional[str]:
        """Roll a KYC outcome from the configured distribution and log it"""
        user = self.users.get(user_id)
        if user is None:
            return None
        status = roll_kyc_outcome(rng, self.settings.kyc_verified_rate, self.settings.kyc_pending_rate)
        user.kyc_status = status.value
        user.kyc_verified_at = self.clock.now() if status == KYCStatus.VERIFIED else None
        outcome = {
            KYCStatus.VERIFIED: ComplianceOutcome.PASSED,
            KYCStatus.PENDING: ComplianceOutcome.PENDING,
        }.get(status, ComplianceOutcome.FAILED)
        self._log(user_id, ComplianceCheck.KYC, outcome, {"document_type": document_type, "kyc_status": status.value})
        return status.value

    def analyze_transaction_aml(self, user_id: str, amount: int) -> AMLResult:
        """
        Check a transaction against the AML thresholds.

        Aggregates cover the user's non-canceled transactions created today
        and, for structuring, the last 7 days.
        """
        now = self.clock.now()
        today = self.transactions.user_activity_since(user_id, start_of_day(now))
        week = self.transactions.user_activity_since(user_id, now - timedelta(days=STRUCTURING_WINDOW_DAYS))
        similar = sum(1 for t in week if STRUCTURING_FLOOR <= t.amount < LARGE_TRANSACTION)

        result = evaluate_aml(
            amount=amount,
            similar_recent_count=similar,
            daily_total=sum(t.amount for t in today),
            daily_count=len(today),
        )
        if result.flagged:
            user = self.users.get(user_id)
            if user is not None and user.aml_status == AMLStatus.CLEAR.value:
                user.aml_status = AMLStatus.FLAGGED.value
                self.risk.log_risk_event(
                    user_id,
                    RiskEventType.AML_FLAG,
                    Severity.HIGH,
                    "AML thresholds crossed",
                    {"flags": [f.code for f in result.flags]},
                )
            self._log(
                user_id,
                ComplianceCheck.AML,
                ComplianceOutcome.FLAGGED,
                {"amount": amount, "flags": [{"code": f.code, "description": f.description} for f in result.flags]},
            )
        return result

    def perform_sanction_screening(self, user_id: str, rng: SeededRandom, name: Optional[str] = None) -> Optional[SanctionResult]:
        user = self.users.get(user_id)
        if user is None:
            return None
        result = screen_name(name or user.name, rng, self.settings.sanction_false_positive_rate)
        user.sanction_status = result.status.value
        outcome = ComplianceOutcome.PASSED if result.status == SanctionStatus.CLEAR else ComplianceOutcome.FLAGGED
        self._log(
            user_id,
            ComplianceCheck.SANCTIONS,
            outcome,
            {"status": result.status.value, "confidence": result.confidence, "pattern": result.matched_pattern},
        )
        if result.status == SanctionStatus.BLOCKED:
            self.accounts.set_frozen(user_id, True, "Sanctions match")
        return result

    def clear_aml_flag(self, user_id: str, reason: str) -> bool:
        user = self.users.get(user_id)
        if user is None:
            return False
        user.aml_status = AMLStatus.CLEAR.value
        self._log(user_id, ComplianceCheck.AML, ComplianceOutcome.PASSED, {"action": "cleared", "reason": reason})
        return True

    def block_user_aml(self, user_id: str, reason: str) -> bool:
        """Block a user for AML reasons and freeze every account"""
        user = self.users.get(user_id)
        if user is None:
            return False
        user.aml_status = AMLStatus.BLOCKED.value
        self.accounts.set_frozen(user_id, True, f"AML block: {reason}")
        self._log(user_id, ComplianceCheck.AML, ComplianceOutcome.FAILED, {"action": "blocked", "reason": reason})
        logger.warning("User blocked for AML", extra={"user_id": user_id, "reason": reason})
        return True

    def run_scheduled_compliance_checks(self, rng: SeededRandom) -> dict:
        """
        Daily batch: expire stale KYC, re-screen a batch of sanction matches
        and count users still flagged for AML. Each user is its own unit.
        """
        now = self.clock.now()
        summary = {"kyc_expired": 0, "rescreened": 0, "aml_flagged": 0, "failed": 0}

        cutoff = now - timedelta(days=self.settings.kyc_expiry_days)
        for user in self.users.list_verified_before(cutoff):
            user_id = user.id
            try:
                user.kyc_status = KYCStatus.EXPIRED.value
                self._log(user_id, ComplianceCheck.KYC, ComplianceOutcome.PENDING, {"action": "expired"})
                self.db.commit()
                summary["kyc_expired"] += 1
            except Exception as e:
                self.db.rollback()
                summary["failed"] += 1
                logger.error(f"KYC expiry failed: {e}", extra={"user_id": user_id})

        for user in self.users.list_by_sanction_status(SanctionStatus.MATCH.value, RESCREEN_BATCH):
            user_id = user.id
            try:
                self.perform_sanction_screening(user_id, rng)
                self.db.commit()
                summary["rescreened"] += 1
            except Exception as e:
                self.db.rollback()
                summary["failed"] += 1
                logger.error(f"Sanction re-screen failed: {e}", extra={"user_id": user_id})

        summary["aml_flagged"] = len(self.users.list_by_aml_status(AMLStatus.FLAGGED.value))
        return summary

    def get_user_compliance_logs(self, user_id: str, limit: int = 50) -> List[ComplianceLog]:
        return self.audit.compliance_logs_for_user(user_id, limit)

    def get_compliance_summary(self) -> dict:
        users: List[User] = self.users.list_all()

        def tally(attribute: str) -> dict:
            counts: dict = {}
            for user in users:
                value = getattr(user, attribute)
                counts[value] = counts.get(value, 0) + 1
            return counts

        since = self.clock.now() - timedelta(hours=24)
        return {
            "total_users": len(users),
            "kyc": tally("kyc_status"),
            "aml": tally("aml_status"),
            "sanctions": tally("sanction_status"),
            "checks_last_24h": self.audit.count_grouped(ComplianceLog, ComplianceLog.check_type, since),
        }

    def _log(self, user_id: str, check: ComplianceCheck, outcome: ComplianceOutcome, details: dict) -> ComplianceLog:
        return self.audit.add(
            ComplianceLog(
                user_id=user_id,
                check_type=check.value,
                status=outcome.value,
                details=details,
                created_at=self.clock.now(),
            )
        )
