"""Bulk seeding - deterministic users, accounts and posted history

Usage:
    python -m nova_sandbox.seed --mode light --months 3 --reset
"""

import argparse
import logging
import sys
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from nova_sandbox.config import Settings, settings as default_settings
from nova_sandbox.domain.exceptions import InvalidConfigurationError
from nova_sandbox.domain.generator import TransactionGenerator
from nova_sandbox.domain.models import TransactionStatus
from nova_sandbox.domain.personas import PERSONAS, PersonaType
from nova_sandbox.domain.rng import SeededRandom
from nova_sandbox.engines.compliance import ComplianceEngine
from nova_sandbox.engines.investment import InvestmentEngine
from nova_sandbox.infrastructure.database.models import (
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
from nova_sandbox.infrastructure.database.repositories import (
    AccountRepository,
    TransactionRepository,
    UserRepository,
)
from nova_sandbox.infrastructure.database.session import SessionLocal, init_db
from nova_sandbox.infrastructure.observability.logging import setup_logging
from nova_sandbox.utils.clock import FixedClock, SystemClock
from nova_sandbox.utils.date_utils import add_months

logger = logging.getLogger(__name__)

USERS_PER_PERSONA = {"light": 1, "realistic": 3, "stress": 10}

FIRST_NAMES = [
    "John", "Jane", "Michael", "Sarah", "David", "Emma", "Chris", "Lisa", "Robert", "Anna",
    "James", "Mary", "William", "Patricia", "Richard", "Linda", "Charles", "Barbara", "Joseph", "Elizabeth",
]
LAST_NAMES = [
    "Doe", "Smith", "Johnson", "Williams", "Brown", "Jones", "Garcia", "Miller", "Davis", "Rodriguez",
    "Martinez", "Hernandez", "Lopez", "Gonzalez", "Wilson", "Anderson", "Thomas", "Taylor", "Moore", "Jackson",
]

INVESTOR_DAILY_LIMIT = 2_000_000
INVESTOR_PORTFOLIO_AMOUNT = 500_000

# children before parents
RESET_ORDER = [
    LoanPayment,
    Loan,
    Holding,
    Portfolio,
    MarketAsset,
    FraudAlert,
    RiskEvent,
    ComplianceLog,
    Transaction,
    Account,
    User,
    SimulationState,
]


@dataclass
class SeedSummary:
    users: int = 0
    accounts: int = 0
    transactions: int = 0
    portfolios: int = 0
    skipped: bool = False


def has_existing_data(db: Session) -> bool:
    return any(db.query(model).count() > 0 for model in (User, Account, Transaction))


def reset_database(db: Session) -> None:
    for model in RESET_ORDER:
        deleted = db.query(model).delete(synchronize_session=False)
        logger.info("Deleted rows", extra={"table": model.__tablename__, "rows": deleted})
    db.commit()


def seed_database(
    db: Session,
    mode: str = "light",
    months: int = 3,
    seed_key: Optional[str] = None,
    now: Optional[datetime] = None,
    app_settings: Optional[Settings] = None,
) -> SeedSummary:
    """
    Populate the store with one cohort of users per persona.

    Every draw goes through seeded sources keyed by seed_key, so the same
    key, mode, months and `now` produce the same people and history. Each
    account's balance is the sum of its posted history. Refuses to run
    against a store that already holds users or transactions.
    """
    if mode not in USERS_PER_PERSONA:
        raise InvalidConfigurationError(f"Unknown seed mode: {mode}")
    if months < 1:
        raise InvalidConfigurationError("months must be at least 1")

    app_settings = app_settings or default_settings
    seed_key = seed_key or app_settings.simulation_seed_key
    now = now or SystemClock().now()
    clock = FixedClock(now)
    summary = SeedSummary()

    if has_existing_data(db):
        logger.warning("Existing data detected; run with --reset to clear it")
        summary.skipped = True
        return summary

    master = SeededRandom(seed_key)
    start = add_months(now, -months)
    users = UserRepository(db)
    accounts = AccountRepository(db)
    transactions = TransactionRepository(db)

    logger.info(
        "Seeding",
        extra={"mode": mode, "months": months, "seed_key": seed_key, "start": start.isoformat(), "end": now.isoformat()},
    )

    investors = []
    all_users = []
    for persona_type in PersonaType:
        persona = PERSONAS[persona_type]
        for i in range(USERS_PER_PERSONA[mode]):
            number = master.next_int(1000, 9999)
            first = FIRST_NAMES[master.next_int(0, len(FIRST_NAMES) - 1)]
            last = LAST_NAMES[master.next_int(0, len(LAST_NAMES) - 1)]
            user = users.create(
                name=f"{first} {last}",
                email=f"{first.lower()}.{last.lower()}{number}@example.com",
                persona=persona_type.value,
                created_at=start,
            )
            summary.users += 1
            all_users.append(user)
            if persona_type == PersonaType.INVESTOR:
                investors.append(user)

            account_count = 1 if master.next_boolean(0.7) else 2
            for j in range(account_count):
                account = accounts.create(
                    user,
                    account_type="CHECKING" if j == 0 else "SAVINGS",
                    overdraft_enabled=persona.allow_overdraft,
                    overdraft_limit=app_settings.max_overdraft_amount if persona.allow_overdraft else 0,
                    daily_limit=(
                        INVESTOR_DAILY_LIMIT
                        if persona_type == PersonaType.INVESTOR
                        else app_settings.default_daily_limit
                    ),
                    created_at=start,
                )
                summary.accounts += 1

                generator = TransactionGenerator(SeededRandom(f"{seed_key}-{persona_type.value}-{i}-{j}"))
                history = generator.generate_for_period(persona, start.date(), now.date(), 0)
                transactions.add_all(
                    Transaction(
                        account_id=account.id,
                        type=item.type.value,
                        amount=item.amount,
                        authorized_amount=item.amount,
                        status=TransactionStatus.POSTED.value,
                        category=item.category,
                        merchant=item.merchant,
                        description=item.description,
                        location=item.location,
                        reference=item.reference,
                        created_at=item.created_at,
                        posted_at=item.created_at,
                    )
                    for item in history
                )
                balance = sum(item.signed_amount for item in history)
                accounts.adjust_balance(account.id, balance)
                summary.transactions += len(history)

                if balance < -100_000 and not persona.allow_overdraft:
                    logger.warning(
                        "Large negative balance for a persona without overdraft",
                        extra={"account_id": account.id, "balance": balance, "persona": persona_type.value},
                    )
            db.commit()
            logger.info("Seeded user", extra={"persona": persona_type.value, "accounts": account_count})

    investment = InvestmentEngine(db, clock)
    investment.initialize_market_assets()
    for user in investors:
        investment.create_portfolio(user.id, INVESTOR_PORTFOLIO_AMOUNT)
        summary.portfolios += 1
    db.commit()

    compliance = ComplianceEngine(db, clock, app_settings)
    for user in all_users:
        compliance.process_kyc_verification(user.id, master)
    db.commit()

    logger.info(
        "Seed complete",
        extra={
            "users": summary.users,
            "accounts": summary.accounts,
            "transactions": summary.transactions,
            "portfolios": summary.portfolios,
        },
    )
    return summary


def main(argv: Optional[list] = None) -> int:
    parser = argparse.ArgumentParser(description="Seed the banking sandbox with deterministic history")
    parser.add_argument("--mode", choices=sorted(USERS_PER_PERSONA), default="light")
    parser.add_argument("--months", type=int, default=3)
    parser.add_argument("--seed-key", default=None)
    parser.add_argument("--reset", action="store_true", help="Delete existing data first")
    args = parser.parse_args(argv)

    setup_logging(default_settings.log_level)
    init_db()
    db = SessionLocal()
    try:
        if args.reset:
            reset_database(db)
        seed_database(db, mode=args.mode, months=args.months, seed_key=args.seed_key)
    except Exception:
        db.rollback()
        logger.exception("Seed process failed")
        return 1
    finally:
        db.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
