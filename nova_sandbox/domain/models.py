"""Domain models - pure Python dataclasses and enums for the banking sandbox"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional


class TransactionType(str, Enum):
    CREDIT = "credit"
    DEBIT = "debit"


class TransactionStatus(str, Enum):
    PENDING = "pending"
    POSTED = "posted"
    CANCELED = "canceled"


class ErrorCode(str, Enum):
    """Closed set of domain-rule failure codes returned in results"""

    ACCOUNT_NOT_FOUND = "ACCOUNT_NOT_FOUND"
    ACCOUNT_FROZEN = "ACCOUNT_FROZEN"
    DAILY_LIMIT_EXCEEDED = "DAILY_LIMIT_EXCEEDED"
    INSUFFICIENT_FUNDS = "INSUFFICIENT_FUNDS"
    TRANSACTION_NOT_FOUND = "TRANSACTION_NOT_FOUND"
    INVALID_STATUS = "INVALID_STATUS"
    INVALID_AMOUNT = "INVALID_AMOUNT"
    INVALID_TYPE = "INVALID_TYPE"
    USER_NOT_FOUND = "USER_NOT_FOUND"
    LOAN_NOT_FOUND = "LOAN_NOT_FOUND"
    NOT_ELIGIBLE = "NOT_ELIGIBLE"
    INVALID_TERM = "INVALID_TERM"
    INVALID_LOAN_TYPE = "INVALID_LOAN_TYPE"
    NO_ACCOUNT = "NO_ACCOUNT"


class Severity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


SEVERITY_RANK = {Severity.LOW: 0, Severity.MEDIUM: 1, Severity.HIGH: 2, Severity.CRITICAL: 3}


class FraudAlertType(str, Enum):
    MIDNIGHT_LARGE = "midnight_large"
    VELOCITY = "velocity"
    GEOLOCATION_JUMP = "geolocation_jump"
    UNUSUAL_AMOUNT = "unusual_amount"
    DUPLICATE = "duplicate"
    CARD_TESTING = "card_testing"
    SUSPICIOUS_ACTIVITY = "suspicious_activity"


class FraudAlertStatus(str, Enum):
    OPEN = "open"
    INVESTIGATING = "investigating"
    CONFIRMED = "confirmed"
    DISMISSED = "dismissed"


class RiskLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class RiskEventType(str, Enum):
    FRAUD_ALERT = "fraud_alert"
    PAYMENT_MISSED = "payment_missed"
    LOAN_DEFAULT = "loan_default"
    LOAN_WARNING = "loan_warning"
    AML_FLAG = "aml_flag"
    ACCOUNT_FROZEN = "account_frozen"
    SUSPICIOUS_LOGIN = "suspicious_login"


class LoanType(str, Enum):
    STUDENT = "student"
    CONSUMER = "consumer"
    BUSINESS = "business"
    EMERGENCY = "emergency"


class LoanStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    ACTIVE = "active"
    PAID = "paid"
    DEFAULTED = "defaulted"
    REJECTED = "rejected"


class AssetType(str, Enum):
    STOCK = "stock"
    ETF = "etf"
    CRYPTO = "crypto"
    BOND = "bond"
    SAVINGS = "savings"


class PortfolioType(str, Enum):
    CONSERVATIVE = "conservative"
    BALANCED = "balanced"
    AGGRESSIVE = "aggressive"
    CRYPTO = "crypto"


class CrashSeverity(str, Enum):
    MILD = "mild"
    MODERATE = "moderate"
    SEVERE = "severe"


class KYCStatus(str, Enum):
    PENDING = "pending"
    VERIFIED = "verified"
    REJECTED = "rejected"
    EXPIRED = "expired"


class AMLStatus(str, Enum):
    CLEAR = "clear"
    FLAGGED = "flagged"
    BLOCKED = "blocked"


class SanctionStatus(str, Enum):
    CLEAR = "clear"
    MATCH = "match"
    BLOCKED = "blocked"


class ComplianceCheck(str, Enum):
    KYC = "kyc"
    AML = "aml"
    SANCTIONS = "sanctions"


class ComplianceOutcome(str, Enum):
    PASSED = "passed"
    FAILED = "failed"
    PENDING = "pending"
    FLAGGED = "flagged"


class ChaosMode(str, Enum):
    NORMAL = "normal"
    LATENCY = "latency"
    FLAKY = "flaky"
    MAINTENANCE = "maintenance"
    CORRUPT = "corrupt"


@dataclass
class GeneratedTransaction:
    """Synthetic transaction produced by the generator, not yet persisted"""

    type: TransactionType
    amount: int
    category: str
    merchant: str
    description: str
    location: str
    reference: str
    created_at: datetime

    @property
    def signed_amount(self) -> int:
        return self.amount if self.type == TransactionType.CREDIT else -self.amount


@dataclass
class TransactionResult:
    """Outcome of a lifecycle operation; failures carry a code instead of raising"""

    success: bool
    transaction: Optional[Any] = None
    code: Optional[ErrorCode] = None
    error: Optional[str] = None

    @classmethod
    def ok(cls, transaction: Any) -> "TransactionResult":
        return cls(success=True, transaction=transaction)

    @classmethod
    def fail(cls, code: ErrorCode, error: str) -> "TransactionResult":
        return cls(success=False, code=code, error=error)


@dataclass
class PendingResolution:
    """Counts from one pending-batch run"""

    posted: int = 0
    canceled: int = 0
    amount_changed: int = 0
    failed: int = 0


@dataclass
class HistoryEntry:
    """Minimal view of a past posted transaction used by heuristics"""

    amount: int
    type: TransactionType
    created_at: datetime
    merchant: Optional[str] = None
    location: Optional[str] = None
    category: Optional[str] = None


@dataclass
class FraudSignal:
    type: FraudAlertType
    severity: Severity
    score: int
    description: str
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass
class FraudCheckResult:
    is_fraudulent: bool
    risk_score: int
    alerts: List[FraudSignal]
    should_block: bool
    should_freeze: bool

    @property
    def highest_severity(self) -> Optional[Severity]:
        if not self.alerts:
            return None
        return max((a.severity for a in self.alerts), key=lambda s: SEVERITY_RANK[s])


@dataclass
class RiskFactors:
    """Sub-scores, each in 0..100; higher is riskier except where noted"""

    spending_stability: float  # higher is more stable
    income_volatility: float
    overdraft_frequency: float
    loan_repayment_history: float  # higher is better
    unusual_activity: float
    account_age: float  # higher is older
    transaction_diversity: float  # higher is more diverse


@dataclass
class RiskAssessment:
    score: int
    level: RiskLevel
    factors: RiskFactors
    recommendations: List[str]


@dataclass
class EligibilityResult:
    eligible: bool
    max_amount: int
    interest_rate: float
    suggested_term: int
    reasons: List[str]


@dataclass
class LoanResult:
    success: bool
    loan: Optional[Any] = None
    code: Optional[ErrorCode] = None
    error: Optional[str] = None


@dataclass
class PaymentSplit:
    interest: int
    principal: int
    remaining: int


@dataclass
class ScheduledPayment:
    """Single row of an amortization schedule"""

    number: int
    payment: int
    interest: int
    principal: int
    remaining: int


@dataclass
class AMLFlag:
    code: str
    description: str


@dataclass
class AMLResult:
    flagged: bool
    flags: List[AMLFlag]


@dataclass
class SanctionResult:
    status: SanctionStatus
    confidence: float
    matched_pattern: Optional[str] = None


@dataclass
class CycleSummary:
    """Structured outcome of one simulation cycle"""

    started_at: datetime
    seed: int
    accounts_processed: int = 0
    transactions_generated: int = 0
    transactions_rejected: int = 0
    flagged: int = 0
    aml_flagged: int = 0
    pending: PendingResolution = field(default_factory=PendingResolution)
    random_events: List[str] = field(default_factory=list)
    market_updated: bool = False
    portfolios_revalued: int = 0
    daily_tasks_run: bool = False
    unit_failures: int = 0
    duration_ms: float = 0.0
