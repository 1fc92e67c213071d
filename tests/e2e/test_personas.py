"""
E2E tests for personas living through simulation cycles.

Personas:
- student: monthly income at month end, no overdraft
- spender: frequent discretionary spending
- investor: market-linked portfolio revalued every cycle

Cycles run against the shared in-memory store with a hand-cranked clock.
"""

from datetime import datetime, timedelta

import pytest
from nova_sandbox.config import SimulationConfig
from nova_sandbox.engines.fraud import FraudEngine
from nova_sandbox.engines.lifecycle import TransactionLifecycle
from nova_sandbox.engines.loans import LoanEngine
from nova_sandbox.infrastructure.database.models import Account, Portfolio, Transaction
from nova_sandbox.seed import seed_database


def _run_hours(simulation, clock, hours: int) -> list:
    summaries = []
    for _ in range(hours):
        summaries.append(simulation.run_cycle())
        clock.advance(timedelta(hours=1))
    return summaries


@pytest.fixture
def seeded(db, clock, app_settings):
    return seed_database(db, mode="light", months=1, seed_key="personas", now=clock.now(), app_settings=app_settings)


@pytest.fixture
def settled_config(sim_config: SimulationConfig) -> SimulationConfig:
    """Pending holds always post at their authorized amount"""
    return sim_config.model_copy(update={"cancel_rate": 0.0, "amount_change_rate": 0.0})


def test_a_simulated_day_keeps_every_ledger_balanced(db, clock, simulation, seeded, ledger_total):
    """Test a day of hourly cycles keeps every balance equal to its ledger"""
    summaries = _run_hours(simulation, clock, 24)
    db.expire_all()

    assert all(s.unit_failures == 0 for s in summaries)
    assert sum(1 for s in summaries if s.daily_tasks_run) == 2  # first cycle and midnight
    for account in db.query(Account).all():
        assert ledger_total(account.id) == account.balance


def test_pending_holds_never_outlive_their_post_time(db, clock, simulation, seeded):
    """Test no hold stays pending long past its post time"""
    _run_hours(simulation, clock, 12)
    last = clock.now() - timedelta(hours=1)
    db.expire_all()

    overdue = (
        db.query(Transaction)
        .filter(Transaction.status == "pending", Transaction.post_at <= last)
        .count()
    )
    assert overdue == 0


def test_investor_portfolio_is_marked_to_market(db, clock, simulation, seeded):
    """Test the investor's portfolio value follows market prices"""
    _run_hours(simulation, clock, 3)
    db.expire_all()

    portfolio = db.query(Portfolio).one()
    assert portfolio.total_value == sum(h.market_value for h in portfolio.holdings)
    assert portfolio.total_gain_loss == portfolio.total_value - portfolio.total_invested
    assert portfolio.updated_at == clock.now() - timedelta(hours=1)


def test_frozen_user_gets_no_new_activity(db, clock, simulation, make_account):
    """Test a frozen user sees no new transactions"""
    frozen = make_account(balance=500000, persona="spender")
    FraudEngine(db, clock).freeze_account(frozen.user_id, "Investigation")
    db.commit()

    _run_hours(simulation, clock, 12)
    db.expire_all()

    assert db.query(Transaction).filter(Transaction.account_id == frozen.id).count() == 1
    assert db.get(Account, frozen.id).balance == 500000


def test_student_is_paid_on_the_first_cycle_of_month_end(db, clock, simulation, make_account):
    """Test month-end salary is paid once, on the first cycle of the day"""
    account = make_account(balance=10000, persona="student")
    clock.advance(datetime(2024, 6, 30, 10, 0) - clock.now())

    simulation.run_cycle()
    db.expire_all()

    salaries = (
        db.query(Transaction)
        .filter(Transaction.account_id == account.id, Transaction.category == "salary")
        .all()
    )
    assert len(salaries) == 1
    assert salaries[0].type == "credit"
    assert 135000 <= salaries[0].amount <= 165000

    # later cycles the same day pay nothing more
    _run_hours(simulation, clock, 3)
    db.expire_all()
    assert (
        db.query(Transaction)
        .filter(Transaction.account_id == account.id, Transaction.category == "salary")
        .count()
        == 1
    )


def test_student_without_overdraft_cannot_spend_past_zero(db, clock, simulation, make_account):
    """Test a student with no funds has every debit rejected"""
    account = make_account(balance=0, persona="student")

    _run_hours(simulation, clock, 12)
    db.expire_all()

    assert db.query(Transaction).filter(Transaction.account_id == account.id, Transaction.type == "debit").count() == 0


def test_loan_is_collected_then_defaults_after_three_misses(
    db, clock, app_settings, settled_config, make_simulation, make_account
):
    """Test a loan is collected when due and defaults after three misses"""
    simulation = make_simulation(settled_config)
    account = make_account(balance=100000, persona="student")
    account.user.kyc_status = "verified"
    db.commit()

    result = LoanEngine(db, clock, app_settings).apply_for_loan(account.user_id, "consumer", 500000, 24)
    db.commit()
    assert result.success
    loan_id = result.loan.id

    # first installment falls due a month later
    clock.advance(timedelta(days=31))
    simulation.run_cycle()
    db.expire_all()
    loan = LoanEngine(db, clock, app_settings).loans.get(loan_id)
    assert loan.payments_made == 1
    assert loan.status == "active"

    TransactionLifecycle(db, settled_config, clock).set_balance(account.id, 0)

    for missed in (1, 2, 3):
        clock.advance(timedelta(days=31))
        simulation.run_cycle()
        db.expire_all()
        loan = LoanEngine(db, clock, app_settings).loans.get(loan_id)
        assert loan.payments_missed == missed

    assert loan.status == "defaulted"
    assert loan.payments_made == 1
