"""Loans engine - eligibility, underwriting, disbursement, repayment and defaults"""

import logging
import math
from dataclasses import dataclass
from typing import Dict, List, Optional

from sqlalchemy.orm import Session

from nova_sandbox.config import Settings, settings as default_settings
from nova_sandbox.domain.amortization import calculate_monthly_payment, split_payment
from nova_sandbox.domain.models import (
    AMLStatus,
    EligibilityResult,
    ErrorCode,
    KYCStatus,
    LoanResult,
    LoanStatus,
    LoanType,
    RiskEventType,
    Severity,
    TransactionStatus,
    TransactionType,
)
from nova_sandbox.engines.risk import RiskEngine
from nova_sandbox.infrastructure.database.models import Loan, LoanPayment, Transaction
from nova_sandbox.infrastructure.database.repositories import (
    AccountRepository,
    LoanRepository,
    TransactionRepository,
    UserRepository,
)
from nova_sandbox.infrastructure.observability.metrics import loan_payment_counter
from nova_sandbox.utils.clock import Clock, SystemClock
from nova_sandbox.utils.date_utils import add_months

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LoanConfig:
    min_amount: int
    max_amount: int
    min_term: int
    max_term: int
    base_rate: float
    max_risk_score: int


LOAN_CONFIGS: Dict[LoanType, LoanConfig] = {
    LoanType.STUDENT: LoanConfig(100_000, 5_000_000, 12, 120, 0.045, 70),
    LoanType.CONSUMER: LoanConfig(50_000, 2_500_000, 6, 60, 0.085, 60),
    LoanType.BUSINESS: LoanConfig(500_000, 25_000_000, 12, 84, 0.065, 50),
    LoanType.EMERGENCY: LoanConfig(10_000, 200_000, 1, 12, 0.18, 80),
}

RISK_PREMIUM = 0.05
MAX_DEBT_TO_BALANCE = 3
TERM_STEP_AMOUNT = 50_000


def interest_rate_for(config: LoanConfig, risk_score: int) -> float:
    return round(config.base_rate + risk_score / 100 * RISK_PREMIUM, 4)


def suggested_term(config: LoanConfig, amount: int) -> int:
    term = math.ceil(amount / TERM_STEP_AMOUNT) * 12
    return max(config.min_term, min(config.max_term, term))


class LoanEngine:
    """Underwrites and services loans against a user's primary account"""

    def __init__(self, db: Session, clock: Optional[Clock] = None, config: Optional[Settings] = None):
        self.db = db
        self.clock = clock or SystemClock()
        self.settings = config or default_settings
        self.users = UserRepository(db)
        self.accounts = AccountRepository(db)
        self.transactions = TransactionRepository(db)
        self.loans = LoanRepository(db)
        self.risk = RiskEngine(db, self.clock)

    def check_eligibility(self, user_id: str, loan_type: LoanType) -> EligibilityResult:
        """
        Gate a loan on risk, KYC/AML status and existing debt.

        The maximum amount shrinks with risk (never below 30% of the type's
        cap), minus outstanding debt, clamped to the type's bounds.
        """
        config = LOAN_CONFIGS[loan_type]
        user = self.users.get(user_id)
        if user is None:
            return EligibilityResult(False, 0, config.base_rate, config.min_term, ["User not found"])

        assessment = self.risk.calculate_user_risk_score(user_id)
        risk_score = assessment.score if assessment else user.risk_score
        reasons: List[str] = []

        if risk_score > config.max_risk_score:
            reasons.append(f"Risk score {risk_score} exceeds maximum {config.max_risk_score}")
        if user.kyc_status != KYCStatus.VERIFIED.value:
            reasons.append("KYC verification required")
        if user.aml_status != AMLStatus.CLEAR.value:
            reasons.append("AML status must be clear")

        existing = self.loans.outstanding_for_user(user_id)
        balance = self.accounts.total_positive_balance(user_id)
        if existing > balance * MAX_DEBT_TO_BALANCE:
            reasons.append("Existing debt too high relative to balance")

        scaled = math.floor(config.max_amount * max(0.3, 1 - risk_score / 100)) - existing
        max_amount = max(config.min_amount, min(config.max_amount, scaled))

        return EligibilityResult(
            eligible=not reasons,
            max_amount=max_amount,
            interest_rate=interest_rate_for(config, risk_score),
            suggested_term=suggested_term(config, max_amount),
            reasons=reasons,
        )

    def apply_for_loan(self, user_id: str, loan_type: str, amount: int, term_months: int) -> LoanResult:
        """Create a pending loan; low-risk applicants are approved immediately"""
        try:
            kind = LoanType(loan_type)
        except ValueError:
            return LoanResult(False, code=ErrorCode.INVALID_LOAN_TYPE, error=f"Unknown loan type: {loan_type}")
        config = LOAN_CONFIGS[kind]

        if not config.min_amount <= amount <= config.max_amount:
            return LoanResult(
                False,
                code=ErrorCode.INVALID_AMOUNT,
                error=f"Amount must be between {config.min_amount} and {config.max_amount}",
            )
        if not config.min_term <= term_months <= config.max_term:
            return LoanResult(
                False,
                code=ErrorCode.INVALID_TERM,
                error=f"Term must be between {config.min_term} and {config.max_term} months",
            )

        eligibility = self.check_eligibility(user_id, kind)
        if not eligibility.eligible:
            return LoanResult(False, code=ErrorCode.NOT_ELIGIBLE, error="; ".join(eligibility.reasons))
        if amount > eligibility.max_amount:
            return LoanResult(
                False, code=ErrorCode.NOT_ELIGIBLE, error=f"Maximum eligible amount is {eligibility.max_amount}"
            )

        accounts = self.accounts.list_for_user(user_id)
        if not accounts:
            return LoanResult(False, code=ErrorCode.NO_ACCOUNT, error="User has no account for disbursement")

        loan = self.loans.add(
            Loan(
                user_id=user_id,
                account_id=accounts[0].id,
                loan_type=kind.value,
                principal=amount,
                remaining_amount=amount,
                interest_rate=eligibility.interest_rate,
                term_months=term_months,
                monthly_payment=calculate_monthly_payment(amount, eligibility.interest_rate, term_months),
                status=LoanStatus.PENDING.value,
                created_at=self.clock.now(),
            )
        )

        user = self.users.get(user_id)
        if user.risk_score < self.settings.loan_auto_approve_risk:
            return self.approve_loan(loan.id)
        return LoanResult(True, loan=loan)

    def approve_loan(self, loan_id: str) -> LoanResult:
        """Activate a pending loan and disburse the principal as a posted credit"""
        loan = self.loans.get(loan_id)
        if loan is None:
            return LoanResult(False, code=ErrorCode.LOAN_NOT_FOUND, error="Loan not found")
        if loan.status != LoanStatus.PENDING.value:
            return LoanResult(False, loan=loan, code=ErrorCode.INVALID_STATUS, error=f"Loan is {loan.status}")

        now = self.clock.now()
        loan.status = LoanStatus.ACTIVE.value
        loan.start_date = now
        loan.end_date = add_months(now, loan.term_months)
        loan.next_payment_date = add_months(now, 1)

        self._post_ledger_entry(
            loan.account_id,
            TransactionType.CREDIT,
            loan.principal,
            "loan_disbursement",
            f"{loan.loan_type.title()} loan disbursement",
        )
        self.db.flush()
        logger.info("Loan approved", extra={"loan_id": loan.id, "user_id": loan.user_id, "principal": loan.principal})
        return LoanResult(True, loan=loan)

    def reject_loan(self, loan_id: str, reason: str) -> LoanResult:
        loan = self.loans.get(loan_id)
        if loan is None:
            return LoanResult(False, code=ErrorCode.LOAN_NOT_FOUND, error="Loan not found")
        if loan.status != LoanStatus.PENDING.value:
            return LoanResult(False, loan=loan, code=ErrorCode.INVALID_STATUS, error=f"Loan is {loan.status}")
        loan.status = LoanStatus.REJECTED.value
        loan.rejection_reason = reason
        self.db.flush()
        return LoanResult(True, loan=loan)

    def process_loan_payment(self, loan_id: str) -> LoanResult:
        """
        Collect one installment from the loan's account.

        Insufficient balance records a miss and pushes the due date a month;
        the configured run of consecutive misses defaults the loan.
        """
        loan = self.loans.get(loan_id)
        if loan is None:
            return LoanResult(False, code=ErrorCode.LOAN_NOT_FOUND, error="Loan not found")
        if loan.status != LoanStatus.ACTIVE.value:
            return LoanResult(False, loan=loan, code=ErrorCode.INVALID_STATUS, error=f"Loan is {loan.status}")

        now = self.clock.now()
        account = self.accounts.get(loan.account_id)
        interest_due = math.floor(loan.remaining_amount * loan.interest_rate / 12)
        amount = min(loan.monthly_payment, loan.remaining_amount + interest_due)
        due_from = loan.next_payment_date or now

        if account is None or account.balance < amount:
            return self._record_miss(loan, due_from)

        split = split_payment(loan.remaining_amount, loan.interest_rate, amount)
        self._post_ledger_entry(loan.account_id, TransactionType.DEBIT, amount, "loan_payment", "Loan payment")
        self.loans.add_payment(
            LoanPayment(loan_id=loan.id, amount=amount, principal=split.principal, interest=split.interest, paid_at=now)
        )

        loan.remaining_amount = split.remaining
        loan.payments_made += 1
        loan.missed_streak = 0
        loan.last_payment_at = now
        loan.next_payment_date = add_months(due_from, 1)
        if loan.remaining_amount <= 0:
            loan.status = LoanStatus.PAID.value
            loan.next_payment_date = None
        self.db.flush()
        loan_payment_counter.labels(outcome="paid").inc()
        return LoanResult(True, loan=loan)

    def process_due_payments(self) -> dict:
        """Daily batch: collect every installment that has come due"""
        summary = {"processed": 0, "paid": 0, "missed": 0, "defaulted": 0, "failed": 0}
        for loan in self.loans.list_due(self.clock.now()):
            loan_id = loan.id
            try:
                result = self.process_loan_payment(loan_id)
                self.db.commit()
            except Exception as e:
                self.db.rollback()
                summary["failed"] += 1
                logger.error(f"Loan payment failed: {e}", extra={"loan_id": loan_id})
                continue
            summary["processed"] += 1
            if result.success:
                summary["paid"] += 1
            elif result.loan is not None and result.loan.status == LoanStatus.DEFAULTED.value:
                summary["defaulted"] += 1
            else:
                summary["missed"] += 1
        return summary

    def process_loan_defaults(self) -> dict:
        """Daily batch: default loans silent for too long, warn on the way there"""
        now = self.clock.now()
        summary = {"defaulted": 0, "warned": 0, "failed": 0}
        for loan in self.loans.list_active():
            loan_id = loan.id
            try:
                since = loan.last_payment_at or loan.start_date or loan.created_at
                days = (now - since).days
                if days > self.settings.loan_default_days:
                    self._default(loan, f"No payment for {days} days")
                    summary["defaulted"] += 1
                elif days > self.settings.loan_warning_days:
                    self.risk.log_risk_event(
                        loan.user_id,
                        RiskEventType.LOAN_WARNING,
                        Severity.MEDIUM,
                        f"Loan {loan.id} has had no payment for {days} days",
                        {"loan_id": loan.id, "days": days},
                    )
                    summary["warned"] += 1
                self.db.commit()
            except Exception as e:
                self.db.rollback()
                summary["failed"] += 1
                logger.error(f"Loan default check failed: {e}", extra={"loan_id": loan_id})
        return summary

    def get_user_loans(self, user_id: str) -> List[Loan]:
        return self.loans.list_for_user(user_id)

    def get_loan_summary(self) -> dict:
        loans = self.loans.all()
        by_status: Dict[str, int] = {}
        for loan in loans:
            by_status[loan.status] = by_status.get(loan.status, 0) + 1
        active = [loan for loan in loans if loan.status == LoanStatus.ACTIVE.value]
        return {
            "total_loans": len(loans),
            "by_status": by_status,
            "total_disbursed": sum(loan.principal for loan in loans if loan.start_date is not None),
            "outstanding": sum(loan.remaining_amount for loan in active),
            "default_rate": round(by_status.get(LoanStatus.DEFAULTED.value, 0) / len(loans), 4) if loans else 0.0,
        }

    def _record_miss(self, loan: Loan, due_from) -> LoanResult:
        loan.payments_missed += 1
        loan.missed_streak += 1
        loan.next_payment_date = add_months(due_from, 1)
        self.risk.log_risk_event(
            loan.user_id,
            RiskEventType.PAYMENT_MISSED,
            Severity.HIGH,
            f"Missed payment on loan {loan.id}",
            {"loan_id": loan.id, "missed_streak": loan.missed_streak},
        )
        loan_payment_counter.labels(outcome="missed").inc()
        if loan.missed_streak >= self.settings.loan_default_missed_payments:
            self._default(loan, f"{loan.missed_streak} consecutive missed payments")
        self.db.flush()
        return LoanResult(False, loan=loan, code=ErrorCode.INSUFFICIENT_FUNDS, error="Insufficient balance for payment")

    def _default(self, loan: Loan, reason: str) -> None:
        loan.status = LoanStatus.DEFAULTED.value
        loan.next_payment_date = None
        self.risk.log_risk_event(
            loan.user_id,
            RiskEventType.LOAN_DEFAULT,
            Severity.CRITICAL,
            f"Loan {loan.id} defaulted: {reason}",
            {"loan_id": loan.id, "remaining": loan.remaining_amount},
        )
        loan_payment_counter.labels(outcome="defaulted").inc()
        logger.warning("Loan defaulted", extra={"loan_id": loan.id, "user_id": loan.user_id, "reason": reason})

    def _post_ledger_entry(
        self, account_id: str, type: TransactionType, amount: int, category: str, description: str
    ) -> Transaction:
        """Settled bank-originated entry; balance moves with the row"""
        now = self.clock.now()
        transaction = self.transactions.add(
            Transaction(
                account_id=account_id,
                type=type.value,
                amount=amount,
                authorized_amount=amount,
                status=TransactionStatus.POSTED.value,
                category=category,
                merchant="Nova Bank",
                description=description,
                created_at=now,
                posted_at=now,
            )
        )
        self.accounts.adjust_balance(account_id, amount if type == TransactionType.CREDIT else -amount)
        return transaction
