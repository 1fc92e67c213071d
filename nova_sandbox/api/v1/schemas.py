"""Pydantic schemas for API request/response validation"""

from datetime import datetime
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class ORMModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)


# Transactions


class TransactionCreateRequest(BaseModel):
    """Request body for POST /v1/transactions"""

    account_id: str = Field(..., min_length=1)
    type: Literal["credit", "debit"]
    amount: int = Field(..., gt=0, description="Amount in cents")
    category: Optional[str] = None
    merchant: Optional[str] = None
    description: Optional[str] = None
    location: Optional[str] = None
    reference: Optional[str] = Field(None, description="Generated when omitted")


class PostTransactionRequest(BaseModel):
    final_amount: Optional[int] = Field(None, gt=0, description="Settled amount when it differs from the hold")


class CancelTransactionRequest(BaseModel):
    reason: Optional[str] = None


class TransactionResponse(ORMModel):
    id: str
    account_id: str
    type: str
    amount: int
    authorized_amount: Optional[int] = None
    status: str
    category: Optional[str] = None
    merchant: Optional[str] = None
    description: Optional[str] = None
    location: Optional[str] = None
    reference: Optional[str] = None
    fraud_flag: bool = False
    post_at: Optional[datetime] = None
    posted_at: Optional[datetime] = None
    created_at: datetime


class PendingResolutionResponse(BaseModel):
    posted: int
    canceled: int
    amount_changed: int
    failed: int


# Accounts


class AccountResponse(ORMModel):
    id: str
    user_id: str
    account_type: str
    account_number: str
    currency: str
    balance: int
    daily_limit: int
    daily_spent: int
    is_frozen: bool
    frozen_reason: Optional[str] = None
    overdraft_enabled: bool
    overdraft_limit: int
    created_at: datetime


class FreezeRequest(BaseModel):
    reason: str = "Frozen from sandbox"


class SetBalanceRequest(BaseModel):
    balance: int = Field(..., description="Target balance in cents; may be negative")


class AccountSettingsRequest(BaseModel):
    daily_limit: Optional[int] = Field(None, ge=0)
    overdraft_enabled: Optional[bool] = None
    overdraft_limit: Optional[int] = Field(None, ge=0)


# Fraud


class FraudAlertResponse(ORMModel):
    id: str
    user_id: str
    account_id: Optional[str] = None
    transaction_id: Optional[str] = None
    alert_type: str
    severity: str
    status: str
    risk_score: int
    description: str
    details: Optional[dict] = None
    created_at: datetime
    resolved_at: Optional[datetime] = None


class AlertStatusRequest(BaseModel):
    status: Literal["open", "investigating", "confirmed", "dismissed"]


class FraudSignalResponse(BaseModel):
    type: str
    severity: str
    score: int
    description: str


class FraudCheckResponse(BaseModel):
    transaction_id: str
    is_fraudulent: bool
    risk_score: int
    should_block: bool
    should_freeze: bool
    alerts: List[FraudSignalResponse]


# Risk


class RiskAssessmentResponse(BaseModel):
    user_id: str
    score: int
    level: str
    factors: Dict[str, float]
    recommendations: List[str]


class RiskEventResponse(ORMModel):
    id: str
    user_id: str
    event_type: str
    severity: str
    description: str
    details: Optional[dict] = None
    created_at: datetime


# Loans


class LoanApplicationRequest(BaseModel):
    user_id: str = Field(..., min_length=1)
    loan_type: str
    amount: int = Field(..., gt=0)
    term_months: int = Field(..., gt=0)


class RejectLoanRequest(BaseModel):
    reason: str = Field(..., min_length=1)


class LoanResponse(ORMModel):
    id: str
    user_id: str
    account_id: str
    loan_type: str
    principal: int
    remaining_amount: int
    interest_rate: float
    term_months: int
    monthly_payment: int
    status: str
    payments_made: int
    payments_missed: int
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    next_payment_date: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    created_at: datetime


class EligibilityResponse(BaseModel):
    eligible: bool
    max_amount: int
    interest_rate: float
    suggested_term: int
    reasons: List[str]


class ScheduledPaymentResponse(BaseModel):
    number: int
    payment: int
    interest: int
    principal: int
    remaining: int


# Portfolios


class PortfolioCreateRequest(BaseModel):
    user_id: str = Field(..., min_length=1)
    amount: int = Field(..., gt=0)
    portfolio_type: Optional[Literal["conservative", "balanced", "aggressive", "crypto"]] = None
    name: Optional[str] = None


class HoldingResponse(BaseModel):
    symbol: str
    quantity: float
    cost_basis: int
    market_value: int
    gain_loss: int


class PortfolioResponse(BaseModel):
    id: str
    user_id: str
    name: str
    portfolio_type: str
    total_invested: int
    total_value: int
    total_gain_loss: int
    holdings: List[HoldingResponse]
    updated_at: datetime


# Compliance


class KYCRequest(BaseModel):
    document_type: str = "passport"


class SanctionScreeningRequest(BaseModel):
    name: Optional[str] = None


class AMLActionRequest(BaseModel):
    reason: str = Field(..., min_length=1)


class ComplianceLogResponse(ORMModel):
    id: str
    user_id: str
    check_type: str
    status: str
    details: Optional[dict] = None
    created_at: datetime


# Sandbox


class ChaosModeRequest(BaseModel):
    mode: Literal["normal", "latency", "flaky", "maintenance", "corrupt"]
    latency_ms: Optional[int] = Field(None, ge=0)
    failure_rate: Optional[float] = Field(None, ge=0, le=1)


class MarketCrashRequest(BaseModel):
    severity: Literal["mild", "moderate", "severe"] = "moderate"


class MarketRecoveryRequest(BaseModel):
    recovery_percent: float = Field(0.1, gt=0, le=1)


class SimulationConfigRequest(BaseModel):
    """Partial update; checked against the simulation config rules, not here"""

    mode: Optional[str] = None
    seed_key: Optional[str] = None
    interval: Optional[str] = Field(None, description="Cycle interval such as 30s, 5m or 1h")
    pending_duration_ms: Optional[int] = None
    cancel_rate: Optional[float] = None
    amount_change_rate: Optional[float] = None
    max_amount_change_percent: Optional[float] = None
