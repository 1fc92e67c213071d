"""SQLAlchemy ORM models for the banking sandbox"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    Column,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()

SIMULATION_STATE_ID = "singleton"


def _new_id() -> str:
    return str(uuid.uuid4())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


class User(Base):
    """Simulated account holder"""

    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=_new_id)
    name = Column(Text, nullable=False)
    email = Column(Text, nullable=False, unique=True)
    persona = Column(Text, nullable=False, index=True)
    risk_score = Column(Integer, nullable=False, default=0)
    kyc_status = Column(Text, nullable=False, default="pending")
    kyc_verified_at = Column(DateTime, nullable=True)
    aml_status = Column(Text, nullable=False, default="clear")
    sanction_status = Column(Text, nullable=False, default="clear")
    created_at = Column(DateTime, nullable=False, default=_utcnow)

    accounts = relationship("Account", back_populates="user", cascade="all, delete-orphan")
    loans = relationship("Loan", back_populates="user", cascade="all, delete-orphan")
    portfolios = relationship("Portfolio", back_populates="user", cascade="all, delete-orphan")


class Account(Base):
    """Bank account; balance includes holds from pending transactions"""

    __tablename__ = "accounts"

    id = Column(String(36), primary_key=True, default=_new_id)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    account_type = Column(Text, nullable=False, default="CHECKING")
    account_number = Column(Text, nullable=False, unique=True)
    currency = Column(Text, nullable=False, default="USD")
    balance = Column(BigInteger, nullable=False, default=0)
    daily_limit = Column(BigInteger, nullable=False, default=500_000)
    daily_spent = Column(BigInteger, nullable=False, default=0)
    daily_spent_date = Column(Date, nullable=True)
    is_frozen = Column(Boolean, nullable=False, default=False)
    frozen_reason = Column(Text, nullable=True)
    overdraft_enabled = Column(Boolean, nullable=False, default=False)
    overdraft_limit = Column(BigInteger, nullable=False, default=0)
    created_at = Column(DateTime, nullable=False, default=_utcnow)

    user = relationship("User", back_populates="accounts")
    transactions = relationship("Transaction", back_populates="account", cascade="all, delete-orphan")


class Transaction(Base):
    """Money movement; pending until posted or canceled, then immutable"""

    __tablename__ = "transactions"

    id = Column(String(36), primary_key=True, default=_new_id)
    account_id = Column(String(36), ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False, index=True)
    type = Column(Text, nullable=False)
    amount = Column(BigInteger, nullable=False)
    authorized_amount = Column(BigInteger, nullable=True)
    status = Column(Text, nullable=False, default="pending", index=True)
    category = Column(Text, nullable=True)
    merchant = Column(Text, nullable=True)
    description = Column(Text, nullable=True)
    location = Column(Text, nullable=True)
    reference = Column(Text, nullable=True)
    fraud_flag = Column(Boolean, nullable=False, default=False)
    post_at = Column(DateTime, nullable=True, index=True)
    posted_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, default=_utcnow, index=True)

    account = relationship("Account", back_populates="transactions")


class SimulationState(Base):
    """Singleton row of cycle bookkeeping"""

    __tablename__ = "simulation_state"

    id = Column(String(36), primary_key=True, default=SIMULATION_STATE_ID)
    cycle_in_progress = Column(Boolean, nullable=False, default=False)
    last_run_at = Column(DateTime, nullable=True)
    current_day = Column(Date, nullable=True)
    transactions_today = Column(Integer, nullable=False, default=0)
    market_crash_active = Column(Boolean, nullable=False, default=False)
    fraud_event_active = Column(Boolean, nullable=False, default=False)


class Loan(Base):
    __tablename__ = "loans"

    id = Column(String(36), primary_key=True, default=_new_id)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    account_id = Column(String(36), ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False)
    loan_type = Column(Text, nullable=False)
    principal = Column(BigInteger, nullable=False)
    remaining_amount = Column(BigInteger, nullable=False)
    interest_rate = Column(Float, nullable=False)
    term_months = Column(Integer, nullable=False)
    monthly_payment = Column(BigInteger, nullable=False)
    status = Column(Text, nullable=False, default="pending", index=True)
    payments_made = Column(Integer, nullable=False, default=0)
    payments_missed = Column(Integer, nullable=False, default=0)
    missed_streak = Column(Integer, nullable=False, default=0)
    start_date = Column(DateTime, nullable=True)
    end_date = Column(DateTime, nullable=True)
    next_payment_date = Column(DateTime, nullable=True)
    last_payment_at = Column(DateTime, nullable=True)
    rejection_reason = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=False, default=_utcnow)

    user = relationship("User", back_populates="loans")
    payments = relationship("LoanPayment", back_populates="loan", cascade="all, delete-orphan")


class LoanPayment(Base):
    __tablename__ = "loan_payments"

    id = Column(String(36), primary_key=True, default=_new_id)
    loan_id = Column(String(36), ForeignKey("loans.id", ondelete="CASCADE"), nullable=False, index=True)
    amount = Column(BigInteger, nullable=False)
    principal = Column(BigInteger, nullable=False)
    interest = Column(BigInteger, nullable=False)
    status = Column(Text, nullable=False, default="completed")
    paid_at = Column(DateTime, nullable=False, default=_utcnow)

    loan = relationship("Loan", back_populates="payments")


class MarketAsset(Base):
    __tablename__ = "market_assets"

    id = Column(String(36), primary_key=True, default=_new_id)
    symbol = Column(Text, nullable=False, unique=True)
    name = Column(Text, nullable=False)
    asset_type = Column(Text, nullable=False)
    price = Column(BigInteger, nullable=False)
    previous_price = Column(BigInteger, nullable=True)
    last_change = Column(Float, nullable=True)  # fraction, e.g. -0.012
    volatility = Column(Float, nullable=False)
    updated_at = Column(DateTime, nullable=False, default=_utcnow)


class Portfolio(Base):
    __tablename__ = "portfolios"

    id = Column(String(36), primary_key=True, default=_new_id)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(Text, nullable=False)
    portfolio_type = Column(Text, nullable=False)
    total_invested = Column(BigInteger, nullable=False, default=0)
    total_value = Column(BigInteger, nullable=False, default=0)
    total_gain_loss = Column(BigInteger, nullable=False, default=0)
    created_at = Column(DateTime, nullable=False, default=_utcnow)
    updated_at = Column(DateTime, nullable=False, default=_utcnow)

    user = relationship("User", back_populates="portfolios")
    holdings = relationship("Holding", back_populates="portfolio", cascade="all, delete-orphan")


class Holding(Base):
    __tablename__ = "holdings"

    id = Column(String(36), primary_key=True, default=_new_id)
    portfolio_id = Column(String(36), ForeignKey("portfolios.id", ondelete="CASCADE"), nullable=False, index=True)
    asset_id = Column(String(36), ForeignKey("market_assets.id"), nullable=False)
    quantity = Column(Float, nullable=False)
    cost_basis = Column(BigInteger, nullable=False)
    market_value = Column(BigInteger, nullable=False)
    gain_loss = Column(BigInteger, nullable=False, default=0)

    portfolio = relationship("Portfolio", back_populates="holdings")
    asset = relationship("MarketAsset")


class RiskEvent(Base):
    """Append-only risk audit entry"""

    __tablename__ = "risk_events"

    id = Column(String(36), primary_key=True, default=_new_id)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    event_type = Column(Text, nullable=False)
    severity = Column(Text, nullable=False)
    description = Column(Text, nullable=False)
    details = Column(JSON, nullable=True)
    created_at = Column(DateTime, nullable=False, default=_utcnow)


class FraudAlert(Base):
    __tablename__ = "fraud_alerts"

    id = Column(String(36), primary_key=True, default=_new_id)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    account_id = Column(String(36), ForeignKey("accounts.id", ondelete="CASCADE"), nullable=True)
    transaction_id = Column(String(36), nullable=True)
    alert_type = Column(Text, nullable=False)
    severity = Column(Text, nullable=False)
    status = Column(Text, nullable=False, default="open")
    risk_score = Column(Integer, nullable=False, default=0)
    description = Column(Text, nullable=False)
    details = Column(JSON, nullable=True)
    created_at = Column(DateTime, nullable=False, default=_utcnow)
    resolved_at = Column(DateTime, nullable=True)


class ComplianceLog(Base):
    """Append-only compliance audit entry"""

    __tablename__ = "compliance_logs"

    id = Column(String(36), primary_key=True, default=_new_id)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    check_type = Column(Text, nullable=False)
    status = Column(Text, nullable=False)
    details = Column(JSON, nullable=True)
    created_at = Column(DateTime, nullable=False, default=_utcnow)
