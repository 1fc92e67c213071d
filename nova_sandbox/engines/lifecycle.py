"""Transaction lifecycle - pending holds, posting, cancellation and batch resolution"""

import logging
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.orm import Session

from nova_sandbox.config import SimulationConfig
from nova_sandbox.domain.models import (
    ErrorCode,
    GeneratedTransaction,
    PendingResolution,
    TransactionResult,
    TransactionStatus,
    TransactionType,
)
from nova_sandbox.domain.rng import SeededRandom, round_half_up
from nova_sandbox.infrastructure.database.models import Account, Transaction
from nova_sandbox.infrastructure.database.repositories import AccountRepository, TransactionRepository
from nova_sandbox.infrastructure.observability.metrics import pending_gauge, record_rejection, record_transition
from nova_sandbox.utils.clock import Clock, SystemClock
from nova_sandbox.utils.date_utils import epoch_ms

logger = logging.getLogger(__name__)

MIN_CHANGED_AMOUNT = 100


def _signed(type: str, amount: int) -> int:
    return amount if type == TransactionType.CREDIT.value else -amount


class TransactionLifecycle:
    """
    Owns the pending -> posted | canceled state machine.

    Every public operation is a single unit of work: the balance hold and the
    transaction row are committed together or rolled back together. Domain
    failures come back as TransactionResult with a code; store errors raise.
    """

    def __init__(self, db: Session, config: SimulationConfig, clock: Optional[Clock] = None):
        self.db = db
        self.config = config
        self.clock = clock or SystemClock()
        self.accounts = AccountRepository(db)
        self.transactions = TransactionRepository(db)

    def create(
        self,
        account_id: str,
        type: str,
        amount: int,
        category: Optional[str] = None,
        merchant: Optional[str] = None,
        description: Optional[str] = None,
        location: Optional[str] = None,
        reference: Optional[str] = None,
        created_at: Optional[datetime] = None,
        skip_validation: bool = False,
    ) -> TransactionResult:
        """
        Authorize a transaction and place its hold on the balance.

        Validation (debits only, unless skip_validation):
        - frozen accounts are rejected for any direction
        - daily spend counter resets when its date is before today
        - daily limit, then balance plus overdraft allowance
        """
        if type not in (TransactionType.CREDIT.value, TransactionType.DEBIT.value):
            return self._reject(ErrorCode.INVALID_TYPE, f"Unknown transaction type: {type}")
        if amount <= 0:
            return self._reject(ErrorCode.INVALID_AMOUNT, "Amount must be positive")

        account = self.accounts.get(account_id)
        if account is None:
            return self._reject(ErrorCode.ACCOUNT_NOT_FOUND, "Account not found")

        now = self.clock.now()
        if not skip_validation:
            failure = self._validate(account, type, amount, now)
            if failure:
                return failure

        try:
            transaction = self.transactions.add(
                Transaction(
                    account_id=account.id,
                    type=type,
                    amount=amount,
                    authorized_amount=amount,
                    status=TransactionStatus.PENDING.value,
                    category=category,
                    merchant=merchant,
                    description=description,
                    location=location,
                    reference=reference,
                    post_at=now + timedelta(milliseconds=self.config.pending_duration_ms),
                    created_at=created_at or now,
                )
            )
            if type == TransactionType.DEBIT.value and not skip_validation:
                account.daily_spent = (account.daily_spent or 0) + amount
            self.accounts.adjust_balance(account.id, _signed(type, amount))
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        record_transition("created")
        return TransactionResult.ok(transaction)

    def create_generated(self, account_id: str, generated: GeneratedTransaction) -> TransactionResult:
        return self.create(
            account_id=account_id,
            type=generated.type.value,
            amount=generated.amount,
            category=generated.category,
            merchant=generated.merchant,
            description=generated.description,
            location=generated.location,
            reference=generated.reference,
            created_at=generated.created_at,
        )

    def post(self, transaction_id: str, final_amount: Optional[int] = None) -> TransactionResult:
        """Settle a pending transaction, adjusting the balance by any amount change"""
        transaction = self.transactions.get(transaction_id)
        if transaction is None:
            return TransactionResult.fail(ErrorCode.TRANSACTION_NOT_FOUND, "Transaction not found")
        if transaction.status != TransactionStatus.PENDING.value:
            return TransactionResult.fail(
                ErrorCode.INVALID_STATUS, f"Cannot post transaction with status: {transaction.status}"
            )
        if final_amount is not None and final_amount <= 0:
            return TransactionResult.fail(ErrorCode.INVALID_AMOUNT, "Final amount must be positive")

        amount = transaction.amount if final_amount is None else final_amount
        delta = _signed(transaction.type, amount) - _signed(transaction.type, transaction.amount)

        try:
            moved = self.transactions.transition(
                transaction.id,
                TransactionStatus.POSTED,
                amount=amount,
                posted_at=self.clock.now(),
            )
            if not moved:
                self.db.rollback()
                return TransactionResult.fail(ErrorCode.INVALID_STATUS, "Transaction is no longer pending")
            self.accounts.adjust_balance(transaction.account_id, delta)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(transaction)
        record_transition("posted")
        return TransactionResult.ok(transaction)

    def cancel(self, transaction_id: str, reason: Optional[str] = None) -> TransactionResult:
        """Void a pending transaction and release its full hold"""
        transaction = self.transactions.get(transaction_id)
        if transaction is None:
            return TransactionResult.fail(ErrorCode.TRANSACTION_NOT_FOUND, "Transaction not found")
        if transaction.status != TransactionStatus.PENDING.value:
            return TransactionResult.fail(
                ErrorCode.INVALID_STATUS, f"Cannot cancel transaction with status: {transaction.status}"
            )

        description = transaction.description or ""
        if reason:
            description = f"{description} [Canceled: {reason}]".strip()

        try:
            moved = self.transactions.transition(
                transaction.id, TransactionStatus.CANCELED, description=description
            )
            if not moved:
                self.db.rollback()
                return TransactionResult.fail(ErrorCode.INVALID_STATUS, "Transaction is no longer pending")
            self.accounts.adjust_balance(transaction.account_id, -_signed(transaction.type, transaction.amount))
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(transaction)
        record_transition("canceled")
        return TransactionResult.ok(transaction)

    def process_pending(self, rng: Optional[SeededRandom] = None) -> PendingResolution:
        """
        Resolve every pending transaction whose post_at has passed.

        Per transaction: cancel with cancel_rate, otherwise post, changing the
        amount by up to max_amount_change_percent with amount_change_rate.
        A failure on one transaction is logged and does not stop the batch.
        """
        rng = rng or SeededRandom(epoch_ms(self.clock.now()))
        result = PendingResolution()

        for transaction in self.transactions.list_due_pending(self.clock.now()):
            transaction_id = transaction.id
            try:
                if rng.next() < self.config.cancel_rate:
                    outcome = self.cancel(transaction_id, "Merchant canceled")
                    if outcome.success:
                        result.canceled += 1
                    continue

                final_amount = None
                if rng.next() < self.config.amount_change_rate:
                    change = (rng.next() * 2 - 1) * self.config.max_amount_change_percent / 100
                    final_amount = max(MIN_CHANGED_AMOUNT, round_half_up(transaction.amount * (1 + change)))

                outcome = self.post(transaction_id, final_amount)
                if outcome.success:
                    result.posted += 1
                    if final_amount is not None and final_amount != outcome.transaction.authorized_amount:
                        result.amount_changed += 1
            except Exception as e:
                self.db.rollback()
                result.failed += 1
                logger.error(
                    f"Failed to resolve pending transaction: {e}",
                    extra={"transaction_id": transaction_id},
                )

        pending_gauge.set(len(self.transactions.pending_created_at()))
        return result

    def set_balance(self, account_id: str, balance: int) -> TransactionResult:
        """
        Move an account to an exact balance through a posted adjustment so
        the balance still equals the sum of its transactions.
        """
        account = self.accounts.get(account_id)
        if account is None:
            return TransactionResult.fail(ErrorCode.ACCOUNT_NOT_FOUND, "Account not found")
        delta = balance - account.balance
        if delta == 0:
            return TransactionResult.ok(None)

        now = self.clock.now()
        type = TransactionType.CREDIT if delta > 0 else TransactionType.DEBIT
        try:
            transaction = self.transactions.add(
                Transaction(
                    account_id=account.id,
                    type=type.value,
                    amount=abs(delta),
                    authorized_amount=abs(delta),
                    status=TransactionStatus.POSTED.value,
                    category="adjustment",
                    merchant="Nova Bank",
                    description="Sandbox balance adjustment",
                    created_at=now,
                    posted_at=now,
                )
            )
            self.accounts.adjust_balance(account.id, delta)
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

        logger.info("Balance adjusted", extra={"account_id": account_id, "delta": delta})
        return TransactionResult.ok(transaction)

    def stats(self) -> dict:
        counts = self.transactions.count_by_status()
        now = self.clock.now()
        ages = [(now - created).total_seconds() * 1000 for created in self.transactions.pending_created_at()]
        return {
            "pending": counts.get(TransactionStatus.PENDING.value, 0),
            "posted": counts.get(TransactionStatus.POSTED.value, 0),
            "canceled": counts.get(TransactionStatus.CANCELED.value, 0),
            "avg_pending_age_ms": round(sum(ages) / len(ages)) if ages else 0,
        }

    def _validate(self, account: Account, type: str, amount: int, now: datetime) -> Optional[TransactionResult]:
        if account.is_frozen:
            return self._reject(ErrorCode.ACCOUNT_FROZEN, "Account is frozen")
        if type != TransactionType.DEBIT.value:
            return None

        today = now.date()
        if account.daily_spent_date is None or account.daily_spent_date < today:
            account.daily_spent = 0
            account.daily_spent_date = today

        if account.daily_spent + amount > account.daily_limit:
            return self._reject(
                ErrorCode.DAILY_LIMIT_EXCEEDED,
                f"Daily limit exceeded. Remaining: {account.daily_limit - account.daily_spent}",
            )

        available = account.balance + (account.overdraft_limit if account.overdraft_enabled else 0)
        if amount > available:
            return self._reject(ErrorCode.INSUFFICIENT_FUNDS, f"Insufficient funds. Available: {available}")
        return None

    def _reject(self, code: ErrorCode, message: str) -> TransactionResult:
        record_rejection(code.value)
        logger.warning(message, extra={"code": code.value})
        return TransactionResult.fail(code, message)
