"""Data access layer for sandbox entities"""

import uuid
from datetime import datetime
from typing import Iterable, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from nova_sandbox.domain.models import HistoryEntry, TransactionStatus, TransactionType
from nova_sandbox.infrastructure.database.models import (
    SIMULATION_STATE_ID,
    Account,
    ComplianceLog,
    FraudAlert,
    Holding,
    Loan,
    LoanPayment,
    MarketAsset,
    Portfolio,
    RiskEvent,
    SimulationState,
    Transaction,
    User,
)


class UserRepository:
    """Repository for users"""

    def __init__(self, db: Session):
        self.db = db

    def get(self, user_id: str) -> Optional[User]:
        return self.db.query(User).filter(User.id == user_id).first()

    def list_all(self) -> List[User]:
        return self.db.query(User).order_by(User.created_at).all()

    def create(self, name: str, email: str, persona: str, created_at: Optional[datetime] = None) -> User:
        user = User(name=name, email=email, persona=persona)
        if created_at:
            user.created_at = created_at
        self.db.add(user)
        self.db.flush()
        return user

    def list_by_personas(self, personas: Iterable[str], limit: int) -> List[User]:
        return (
            self.db.query(User)
            .filter(User.persona.in_(list(personas)))
            .order_by(User.created_at)
            .limit(limit)
            .all()
        )

    def reset_status(self, user: User, risk_score: int, now: datetime) -> User:
        """Put a user back to a verified, clear standing"""
        user.risk_score = risk_score
        user.kyc_status = "verified"
        user.kyc_verified_at = now
        user.aml_status = "clear"
        user.sanction_status = "clear"
        self.db.flush()
        return user

    def list_by_aml_status(self, status: str) -> List[User]:
        return self.db.query(User).filter(User.aml_status == status).all()

    def list_by_sanction_status(self, status: str, limit: int) -> List[User]:
        return self.db.query(User).filter(User.sanction_status == status).limit(limit).all()

    def list_verified_before(self, cutoff: datetime) -> List[User]:
        return (
            self.db.query(User)
            .filter(User.kyc_status == "verified", User.kyc_verified_at < cutoff)
            .all()
        )


class AccountRepository:
    """Repository for accounts and their balances"""

    def __init__(self, db: Session):
        self.db = db

    def get(self, account_id: str) -> Optional[Account]:
        return self.db.query(Account).filter(Account.id == account_id).first()

    def list_for_user(self, user_id: str) -> List[Account]:
        return self.db.query(Account).filter(Account.user_id == user_id).order_by(Account.created_at).all()

    def list_active(self) -> List[Account]:
        return self.db.query(Account).filter(Account.is_frozen.is_(False)).order_by(Account.created_at).all()

    def create(self, user: User, **fields) -> Account:
        fields.setdefault("account_number", f"NB{uuid.uuid4().int % 10**10:010d}")
        account = Account(user_id=user.id, **fields)
        self.db.add(account)
        self.db.flush()
        return account

    def adjust_balance(self, account_id: str, delta: int) -> None:
        """Atomic in-store increment; never read-modify-write"""
        if delta == 0:
            return
        self.db.query(Account).filter(Account.id == account_id).update(
            {Account.balance: Account.balance + delta}, synchronize_session="evaluate"
        )

    def set_frozen(self, user_id: str, frozen: bool, reason: Optional[str]) -> int:
        return (
            self.db.query(Account)
            .filter(Account.user_id == user_id)
            .update({Account.is_frozen: frozen, Account.frozen_reason: reason}, synchronize_session="evaluate")
        )

    def count_in_overdraft(self, user_id: str) -> int:
        return self.db.query(Account).filter(Account.user_id == user_id, Account.balance < 0).count()

    def total_positive_balance(self, user_id: str) -> int:
        total = (
            self.db.query(func.coalesce(func.sum(Account.balance), 0))
            .filter(Account.user_id == user_id, Account.balance > 0)
            .scalar()
        )
        return int(total)

    def oldest_created_at(self, user_id: str) -> Optional[datetime]:
        return self.db.query(func.min(Account.created_at)).filter(Account.user_id == user_id).scalar()


class TransactionRepository:
    """Repository for transactions"""

    def __init__(self, db: Session):
        self.db = db

    def get(self, transaction_id: str) -> Optional[Transaction]:
        return self.db.query(Transaction).filter(Transaction.id == transaction_id).first()

    def add(self, transaction: Transaction) -> Transaction:
        self.db.add(transaction)
        self.db.flush()
        return transaction

    def add_all(self, transactions: Iterable[Transaction]) -> None:
        self.db.add_all(list(transactions))
        self.db.flush()

    def transition(self, transaction_id: str, to_status: TransactionStatus, **fields) -> bool:
        """
        Move a pending transaction to a terminal status.

        Conditional on the row still being pending, so a second caller gets
        False instead of applying the transition twice.
        """
        values = {Transaction.status: to_status.value}
        values.update({getattr(Transaction, k): v for k, v in fields.items()})
        updated = (
            self.db.query(Transaction)
            .filter(Transaction.id == transaction_id, Transaction.status == TransactionStatus.PENDING.value)
            .update(values, synchronize_session="evaluate")
        )
        return updated == 1

    def list_due_pending(self, now: datetime) -> List[Transaction]:
        return (
            self.db.query(Transaction)
            .filter(Transaction.status == TransactionStatus.PENDING.value, Transaction.post_at <= now)
            .order_by(Transaction.post_at)
            .all()
        )

    def list_for_account(self, account_id: str, limit: int = 50, status: Optional[str] = None) -> List[Transaction]:
        query = self.db.query(Transaction).filter(Transaction.account_id == account_id)
        if status:
            query = query.filter(Transaction.status == status)
        return query.order_by(Transaction.created_at.desc()).limit(limit).all()

    def posted_history_for_account(self, account_id: str, since: datetime) -> List[HistoryEntry]:
        rows = (
            self.db.query(Transaction)
            .filter(
                Transaction.account_id == account_id,
                Transaction.status == TransactionStatus.POSTED.value,
                Transaction.created_at >= since,
            )
            .order_by(Transaction.created_at.desc())
            .all()
        )
        return [_history(row) for row in rows]

    def posted_history_for_user(self, user_id: str, since: datetime) -> List[HistoryEntry]:
        rows = (
            self.db.query(Transaction)
            .join(Account, Account.id == Transaction.account_id)
            .filter(
                Account.user_id == user_id,
                Transaction.status == TransactionStatus.POSTED.value,
                Transaction.created_at >= since,
            )
            .order_by(Transaction.created_at.desc())
            .all()
        )
        return [_history(row) for row in rows]

    def user_activity_since(self, user_id: str, since: datetime) -> List[Transaction]:
        """Non-canceled transactions of a user, any status"""
        return (
            self.db.query(Transaction)
            .join(Account, Account.id == Transaction.account_id)
            .filter(
                Account.user_id == user_id,
                Transaction.status != TransactionStatus.CANCELED.value,
                Transaction.created_at >= since,
            )
            .all()
        )

    def signed_total(self, account_id: str, statuses: Iterable[TransactionStatus]) -> int:
        rows = (
            self.db.query(Transaction.type, func.coalesce(func.sum(Transaction.amount), 0))
            .filter(Transaction.account_id == account_id, Transaction.status.in_([s.value for s in statuses]))
            .group_by(Transaction.type)
            .all()
        )
        return sum(int(total) if type == TransactionType.CREDIT.value else -int(total) for type, total in rows)

    def count_by_status(self) -> dict:
        rows = self.db.query(Transaction.status, func.count(Transaction.id)).group_by(Transaction.status).all()
        return {status: count for status, count in rows}

    def pending_created_at(self) -> List[datetime]:
        return [
            row[0]
            for row in self.db.query(Transaction.created_at)
            .filter(Transaction.status == TransactionStatus.PENDING.value)
            .all()
        ]


def _history(row: Transaction) -> HistoryEntry:
    return HistoryEntry(
        amount=row.amount,
        type=TransactionType(row.type),
        created_at=row.created_at,
        merchant=row.merchant,
        location=row.location,
        category=row.category,
    )


class SimulationStateRepository:
    def __init__(self, db: Session):
        self.db = db

    def get_or_create(self) -> SimulationState:
        state = self.db.query(SimulationState).filter(SimulationState.id == SIMULATION_STATE_ID).first()
        if state is None:
            state = SimulationState(id=SIMULATION_STATE_ID)
            self.db.add(state)
            self.db.flush()
        return state


class LoanRepository:
    def __init__(self, db: Session):
        self.db = db

    def get(self, loan_id: str) -> Optional[Loan]:
        return self.db.query(Loan).filter(Loan.id == loan_id).first()

    def add(self, loan: Loan) -> Loan:
        self.db.add(loan)
        self.db.flush()
        return loan

    def list_for_user(self, user_id: str) -> List[Loan]:
        return self.db.query(Loan).filter(Loan.user_id == user_id).order_by(Loan.created_at.desc()).all()

    def list_active(self) -> List[Loan]:
        return self.db.query(Loan).filter(Loan.status == "active").all()

    def list_due(self, now: datetime) -> List[Loan]:
        return (
            self.db.query(Loan)
            .filter(Loan.status == "active", Loan.next_payment_date <= now)
            .order_by(Loan.next_payment_date)
            .all()
        )

    def outstanding_for_user(self, user_id: str) -> int:
        total = (
            self.db.query(func.coalesce(func.sum(Loan.remaining_amount), 0))
            .filter(Loan.user_id == user_id, Loan.status.in_(["active", "approved", "pending"]))
            .scalar()
        )
        return int(total)

    def payment_counts(self, user_id: str) -> tuple[int, int]:
        made, missed = (
            self.db.query(
                func.coalesce(func.sum(Loan.payments_made), 0),
                func.coalesce(func.sum(Loan.payments_missed), 0),
            )
            .filter(Loan.user_id == user_id)
            .one()
        )
        return int(made), int(missed)

    def add_payment(self, payment: LoanPayment) -> LoanPayment:
        self.db.add(payment)
        self.db.flush()
        return payment

    def all(self) -> List[Loan]:
        return self.db.query(Loan).all()


class MarketRepository:
    def __init__(self, db: Session):
        self.db = db

    def list_assets(self) -> List[MarketAsset]:
        return self.db.query(MarketAsset).order_by(MarketAsset.symbol).all()

    def by_symbol(self, symbol: str) -> Optional[MarketAsset]:
        return self.db.query(MarketAsset).filter(MarketAsset.symbol == symbol).first()

    def add(self, asset: MarketAsset) -> MarketAsset:
        self.db.add(asset)
        self.db.flush()
        return asset


class PortfolioRepository:
    def __init__(self, db: Session):
        self.db = db

    def get(self, portfolio_id: str) -> Optional[Portfolio]:
        return self.db.query(Portfolio).filter(Portfolio.id == portfolio_id).first()

    def list_all(self) -> List[Portfolio]:
        return self.db.query(Portfolio).all()

    def list_for_user(self, user_id: str) -> List[Portfolio]:
        return self.db.query(Portfolio).filter(Portfolio.user_id == user_id).order_by(Portfolio.created_at).all()

    def add(self, portfolio: Portfolio, holdings: List[Holding]) -> Portfolio:
        self.db.add(portfolio)
        self.db.flush()
        for holding in holdings:
            holding.portfolio_id = portfolio.id
            self.db.add(holding)
        self.db.flush()
        return portfolio


class AuditRepository:
    """Append-only risk events, fraud alerts and compliance logs"""

    def __init__(self, db: Session):
        self.db = db

    def add(self, entry):
        self.db.add(entry)
        self.db.flush()
        return entry

    def risk_events_for_user(self, user_id: str, limit: int = 50) -> List[RiskEvent]:
        return (
            self.db.query(RiskEvent)
            .filter(RiskEvent.user_id == user_id)
            .order_by(RiskEvent.created_at.desc())
            .limit(limit)
            .all()
        )

    def fraud_alerts_for_user(self, user_id: str, status: Optional[str] = None, limit: int = 50) -> List[FraudAlert]:
        query = self.db.query(FraudAlert).filter(FraudAlert.user_id == user_id)
        if status:
            query = query.filter(FraudAlert.status == status)
        return query.order_by(FraudAlert.created_at.desc()).limit(limit).all()

    def get_fraud_alert(self, alert_id: str) -> Optional[FraudAlert]:
        return self.db.query(FraudAlert).filter(FraudAlert.id == alert_id).first()

    def compliance_logs_for_user(self, user_id: str, limit: int = 50) -> List[ComplianceLog]:
        return (
            self.db.query(ComplianceLog)
            .filter(ComplianceLog.user_id == user_id)
            .order_by(ComplianceLog.created_at.desc())
            .limit(limit)
            .all()
        )

    def count_grouped(self, model, column, since: Optional[datetime] = None) -> dict:
        query = self.db.query(column, func.count(model.id))
        if since is not None:
            query = query.filter(model.created_at >= since)
        return {key: count for key, count in query.group_by(column).all()}

    def count_since(self, model, since: datetime) -> int:
        return self.db.query(model).filter(model.created_at >= since).count()

    def clear_for_user(self, user_id: str) -> dict:
        """Delete a user's alerts, risk events and compliance logs"""
        cleared = {}
        for name, model in (("fraud_alerts", FraudAlert), ("risk_events", RiskEvent), ("compliance_logs", ComplianceLog)):
            cleared[name] = (
                self.db.query(model).filter(model.user_id == user_id).delete(synchronize_session=False)
            )
        self.db.flush()
        return cleared
