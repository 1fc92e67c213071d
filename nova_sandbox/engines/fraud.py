"""Fraud engine - transaction screening, alerts, freezes and simulated incidents"""

import logging
from datetime import timedelta
from typing import List, Optional

from sqlalchemy.orm import Session

from nova_sandbox.domain.fraud_scoring import score_transaction
from nova_sandbox.domain.models import (
    FraudAlertStatus,
    FraudAlertType,
    FraudCheckResult,
    RiskEventType,
    Severity,
    TransactionStatus,
    TransactionType,
)
from nova_sandbox.domain.merchants import transaction_reference
from nova_sandbox.domain.rng import SeededRandom
from nova_sandbox.infrastructure.database.models import FraudAlert, Transaction
from nova_sandbox.infrastructure.database.repositories import (
    AccountRepository,
    AuditRepository,
    SimulationStateRepository,
    TransactionRepository,
    UserRepository,
)
from nova_sandbox.infrastructure.observability.metrics import fraud_alert_counter
from nova_sandbox.engines.risk import RiskEngine
from nova_sandbox.utils.clock import Clock, SystemClock

logger = logging.getLogger(__name__)

LOOKBACK = timedelta(days=30)
INCIDENT_BURST = 5
INCIDENT_MERCHANTS = ["Online Gift Cards", "Digital Goods Store", "Prepaid Top-Up"]
INCIDENT_PERSONAS = ("spender", "investor")
INCIDENT_CANDIDATES = 5


class FraudEngine:
    """Screens transactions and manages fraud alerts"""

    def __init__(self, db: Session, clock: Optional[Clock] = None):
        self.db = db
        self.clock = clock or SystemClock()
        self.accounts = AccountRepository(db)
        self.transactions = TransactionRepository(db)
        self.users = UserRepository(db)
        self.audit = AuditRepository(db)
        self.risk = RiskEngine(db, self.clock)

    def analyze_transaction(self, transaction: Transaction) -> FraudCheckResult:
        """Score a transaction against the account's last 30 days of posted activity"""
        history = [
            entry
            for entry in self.transactions.posted_history_for_account(
                transaction.account_id, transaction.created_at - LOOKBACK
            )
            if entry.created_at <= transaction.created_at
        ]
        return score_transaction(
            amount=transaction.amount,
            type=TransactionType(transaction.type),
            at=transaction.created_at,
            history=history,
            merchant=transaction.merchant,
            location=transaction.location,
        )

    def screen_transaction(self, user_id: str, transaction: Transaction) -> FraudCheckResult:
        """
        Analyze and act: one alert per signal, a risk event and the fraud
        flag when the score crosses the flag threshold.
        """
        result = self.analyze_transaction(transaction)
        for signal in result.alerts:
            self.create_fraud_alert(
                user_id=user_id,
                alert_type=signal.type,
                severity=signal.severity,
                description=signal.description,
                account_id=transaction.account_id,
                transaction_id=transaction.id,
                risk_score=result.risk_score,
                details=signal.metadata,
            )

        if result.is_fraudulent:
            transaction.fraud_flag = True
            self.risk.log_risk_event(
                user_id,
                RiskEventType.FRAUD_ALERT,
                result.highest_severity or Severity.MEDIUM,
                f"Transaction {transaction.id} scored {result.risk_score}",
                {"transaction_id": transaction.id, "score": result.risk_score},
            )
        if result.should_freeze:
            self.freeze_account(user_id, f"Fraud score {result.risk_score}")
        self.db.flush()
        return result

    def create_fraud_alert(
        self,
        user_id: str,
        alert_type: FraudAlertType,
        severity: Severity,
        description: str,
        account_id: Optional[str] = None,
        transaction_id: Optional[str] = None,
        risk_score: int = 0,
        details: Optional[dict] = None,
    ) -> FraudAlert:
        """Persist an alert; critical alerts freeze every account of the user"""
        alert = self.audit.add(
            FraudAlert(
                user_id=user_id,
                account_id=account_id,
                transaction_id=transaction_id,
                alert_type=alert_type.value,
                severity=severity.value,
                status=FraudAlertStatus.OPEN.value,
                risk_score=risk_score,
                description=description,
                details=details or {},
                created_at=self.clock.now(),
            )
        )
        fraud_alert_counter.labels(severity=severity.value).inc()
        logger.warning(
            f"Fraud alert: {alert_type.value}",
            extra={"user_id": user_id, "severity": severity.value, "transaction_id": transaction_id},
        )
        if severity == Severity.CRITICAL:
            self.freeze_account(user_id, f"Critical fraud alert: {alert_type.value}")
        return alert

    def freeze_account(self, user_id: str, reason: str) -> int:
        frozen = self.accounts.set_frozen(user_id, True, reason)
        self.db.flush()
        logger.warning("Accounts frozen", extra={"user_id": user_id, "reason": reason, "accounts": frozen})
        return frozen

    def unfreeze_account(self, user_id: str) -> int:
        """Unfreeze all accounts and dismiss the user's open alerts"""
        unfrozen = self.accounts.set_frozen(user_id, False, None)
        now = self.clock.now()
        for alert in self.audit.fraud_alerts_for_user(user_id, status=FraudAlertStatus.OPEN.value, limit=1000):
            alert.status = FraudAlertStatus.DISMISSED.value
            alert.resolved_at = now
        self.db.flush()
        return unfrozen

    def get_user_fraud_alerts(self, user_id: str, status: Optional[str] = None, limit: int = 50) -> List[FraudAlert]:
        return self.audit.fraud_alerts_for_user(user_id, status, limit)

    def update_fraud_alert_status(self, alert_id: str, status: FraudAlertStatus) -> Optional[FraudAlert]:
        alert = self.audit.get_fraud_alert(alert_id)
        if alert is None:
            return None
        alert.status = status.value
        if status in (FraudAlertStatus.CONFIRMED, FraudAlertStatus.DISMISSED):
            alert.resolved_at = self.clock.now()
        self.db.flush()
        return alert

    def trigger_fraud_event(self, rng: SeededRandom) -> Optional[dict]:
        """
        Simulate a card-testing incident on a random active account.

        A burst of small posted debits lands on the account, a critical
        alert follows (which freezes the user) and the incident is marked
        active until the next day rollover.
        """
        accounts = self.accounts.list_active()
        if not accounts:
            return None
        account = rng.pick(accounts)
        now = self.clock.now()

        burst = []
        for i in range(INCIDENT_BURST):
            at = now + timedelta(seconds=i * 30)
            amount = rng.next_int(100, 499)
            burst.append(
                Transaction(
                    account_id=account.id,
                    type=TransactionType.DEBIT.value,
                    amount=amount,
                    authorized_amount=amount,
                    status=TransactionStatus.POSTED.value,
                    category="other",
                    merchant=rng.pick(INCIDENT_MERCHANTS),
                    description="Suspicious small charge",
                    reference=transaction_reference(rng, at),
                    fraud_flag=True,
                    created_at=at,
                    posted_at=at,
                )
            )
        self.transactions.add_all(burst)
        self.accounts.adjust_balance(account.id, -sum(t.amount for t in burst))

        alert = self.create_fraud_alert(
            user_id=account.user_id,
            alert_type=FraudAlertType.CARD_TESTING,
            severity=Severity.CRITICAL,
            description=f"{INCIDENT_BURST} small charges in quick succession",
            account_id=account.id,
            risk_score=95,
            details={"transaction_ids": [t.id for t in burst]},
        )
        SimulationStateRepository(self.db).get_or_create().fraud_event_active = True
        self.db.flush()
        return {"user_id": account.user_id, "account_id": account.id, "alert_id": alert.id, "transactions": len(burst)}

    def simulate_suspicious_activity(self, rng: SeededRandom) -> Optional[dict]:
        """
        Background incident raised by the simulation: a high alert and a
        risk event on a spender or investor. Nothing is frozen and no money
        moves, so the population keeps transacting.
        """
        users = self.users.list_by_personas(INCIDENT_PERSONAS, INCIDENT_CANDIDATES)
        if not users:
            return None
        user = rng.pick(users)

        alert = self.create_fraud_alert(
            user_id=user.id,
            alert_type=FraudAlertType.SUSPICIOUS_ACTIVITY,
            severity=Severity.HIGH,
            description="Unusual account access pattern detected",
            risk_score=75,
            details={"source": "auto_simulation", "timestamp": self.clock.now().isoformat()},
        )
        self.risk.log_risk_event(
            user.id,
            RiskEventType.SUSPICIOUS_LOGIN,
            Severity.HIGH,
            "Simulated suspicious activity detected",
            {"alert_id": alert.id},
        )
        SimulationStateRepository(self.db).get_or_create().fraud_event_active = True
        self.db.flush()
        return {"user_id": user.id, "alert_id": alert.id}

    def get_fraud_summary(self) -> dict:
        since = self.clock.now() - timedelta(hours=24)
        return {
            "alerts_last_24h": self.audit.count_since(FraudAlert, since),
            "by_severity": self.audit.count_grouped(FraudAlert, FraudAlert.severity, since),
            "by_type": self.audit.count_grouped(FraudAlert, FraudAlert.alert_type, since),
            "by_status": self.audit.count_grouped(FraudAlert, FraudAlert.status),
        }
