"""Integration tests for the simulation cycle and its lifecycle"""

from datetime import timedelta
import pytest
from nova_sandbox.config import SimulationConfig
from nova_sandbox.domain.exceptions import InvalidConfigurationError, SimulationAlreadyRunningError
from nova_sandbox.domain.rng import SeededRandom, hash_seed
from nova_sandbox.infrastructure.database.models import Account, FraudAlert, RiskEvent, SimulationState, Transaction
from nova_sandbox.utils.date_utils import epoch_ms


def test_start_and_stop(simulation):
    """Test start, double start and stop of the scheduler"""
    assert not simulation.is_running

    simulation.start()

    assert simulation.is_running
    assert simulation._timer.interval_seconds == 3600
    with pytest.raises(SimulationAlreadyRunningError):
        simulation.start()

    timer = simulation._timer
    assert simulation.stop()
    assert timer.cancelled
    assert not simulation.is_running
    assert not simulation.stop()


def test_timer_tick_runs_a_cycle(db, simulation, make_account):
    """Test a timer tick runs one cycle"""
    make_account()
    simulation.start()

    simulation._timer.tick()

    assert simulation.last_summary is not None
    assert simulation.last_summary.accounts_processed == 1


def test_first_cycle_of_the_day(db, clock, simulation, make_account, ledger_total):
    """Test the first cycle processes accounts, runs daily tasks and balances ledgers"""
    accounts = [make_account(persona=p) for p in ("student", "spender", "investor")]

    summary = simulation.run_cycle()
    db.expire_all()

    assert summary.accounts_processed == 3
    assert summary.daily_tasks_run
    assert summary.market_updated
    assert summary.unit_failures == 0
    assert summary.started_at == clock.now()
    state = db.query(SimulationState).one()
    assert state.current_day == clock.now().date()
    assert state.last_run_at == clock.now()
    assert not state.cycle_in_progress
    assert state.transactions_today == summary.transactions_generated
    for account in accounts:
        db.refresh(account)
        assert account.balance == ledger_total(account.id)


def test_daily_tasks_run_once_per_day(db, clock, simulation, make_account):
    """Test daily tasks only run on day rollover"""
    make_account()

    simulation.run_cycle()
    clock.advance(timedelta(hours=1))
    second = simulation.run_cycle()

    assert not second.daily_tasks_run

    clock.advance(timedelta(days=1))
    third = simulation.run_cycle()

    assert third.daily_tasks_run
    db.expire_all()
    state = db.query(SimulationState).one()
    assert state.current_day == clock.now().date()
    assert state.transactions_today == third.transactions_generated


def test_counter_accumulates_within_a_day(db, clock, simulation, make_account):
    """Test transactions_today accumulates across cycles"""
    make_account(persona="spender")

    first = simulation.run_cycle()
    clock.advance(timedelta(hours=1))
    second = simulation.run_cycle()

    db.expire_all()
    state = db.query(SimulationState).one()
    assert state.transactions_today == first.transactions_generated + second.transactions_generated


def test_pending_transactions_settle_on_later_cycles(db, clock, simulation, make_account, ledger_total):
    """Test holds settle on later cycles"""
    account = make_account(balance=1_000_000, persona="spender")
    for hour in range(6):
        simulation.run_cycle()
        clock.advance(timedelta(hours=1))

    db.expire_all()
    statuses = {t.status for t in db.query(Transaction).filter(Transaction.account_id == account.id)}
    db.refresh(account)
    assert "posted" in statuses
    assert account.balance == ledger_total(account.id)
    overdue = (
        db.query(Transaction)
        .filter(Transaction.status == "pending", Transaction.post_at < clock.now() - timedelta(hours=1))
        .count()
    )
    assert overdue == 0


def test_frozen_accounts_are_skipped(db, simulation, make_account):
    """Test frozen accounts generate no activity"""
    make_account(is_frozen=True)
    active = make_account()

    summary = simulation.run_cycle()

    assert summary.accounts_processed == 1
    db.expire_all()
    frozen = db.query(Account).filter(Account.is_frozen.is_(True)).one()
    assert db.query(Transaction).filter(Transaction.account_id == frozen.id).count() == 1
    assert active.id != frozen.id


def test_broken_account_does_not_stop_the_cycle(db, simulation, make_user, make_account):
    """Test one failing account does not stop the others"""
    make_account(user=make_user(persona="retiree"))
    make_account(persona="student")

    summary = simulation.run_cycle()

    assert summary.unit_failures == 1
    assert summary.accounts_processed == 1
    db.expire_all()
    assert not db.query(SimulationState).one().cycle_in_progress


def test_deterministic_seed_is_keyed_by_date(clock, simulation):
    """Test every cycle on a day shares one seed and the next day gets a new one"""
    simulation.update_config(mode="deterministic", seed_key="unit")

    first = simulation.cycle_seed()
    assert first == hash_seed("unit-2024-06-12")

    clock.advance(timedelta(hours=9))
    assert simulation.cycle_seed() == first

    clock.advance(timedelta(hours=1))
    assert simulation.cycle_seed() == hash_seed("unit-2024-06-13") != first


def test_random_seed_uses_the_clock(clock, simulation):
    """Test random mode seeds from the clock"""
    assert simulation.config.mode == "random"
    assert simulation.cycle_seed() == epoch_ms(clock.now()) & 0xFFFFFFFF


def test_deterministic_cycles_repeat(db, clock, simulation, make_account):
    """Test deterministic sources replay the same draws"""
    simulation.update_config(mode="deterministic", seed_key="repeat")
    make_account(persona="spender")

    first = simulation.random_source()
    second = simulation.random_source()

    assert [first.next() for _ in range(5)] == [second.next() for _ in range(5)]


def test_stats(db, simulation, make_account):
    """Test engine stats after a cycle"""
    make_account()
    simulation.run_cycle()

    stats = simulation.get_stats()

    assert stats["is_running"] is False
    assert stats["cycle_in_progress"] is False
    assert stats["current_day"] == "2024-06-12"
    assert stats["last_run_at"] == "2024-06-12T14:00:00"
    assert stats["current_mode"] == "normal"
    assert stats["simulation_mode"] == "random"
    assert stats["interval_ms"] == 3600000
    assert stats["failures_injected"] == 0


def test_background_fraud_incident_freezes_nothing(db, monkeypatch, simulation, make_account):
    """Test an in-cycle fraud incident leaves every account able to transact"""
    monkeypatch.setattr("nova_sandbox.simulation.engine.FRAUD_INCIDENT_PROBABILITY", 1.0)
    # no funds and no payday, so nothing is generated and screened
    account = make_account(balance=0, persona="spender")

    summary = simulation.run_cycle()

    assert "fraud_incident" in summary.random_events
    db.expire_all()
    assert not db.get(Account, account.id).is_frozen
    assert [(a.alert_type, a.severity) for a in db.query(FraudAlert)] == [("suspicious_activity", "high")]
    assert db.query(RiskEvent).filter(RiskEvent.event_type == "suspicious_login").count() == 1


def test_update_config_validates_through_the_config_rules(simulation):
    """Test bad mode, interval or rates are refused and leave the config alone"""
    for changes in ({"mode": "chaotic"}, {"interval": "soon"}, {"interval": "0s"}, {"cancel_rate": 1.5}, {"seed_key": ""}):
        with pytest.raises(InvalidConfigurationError):
            simulation.update_config(**changes)

    assert simulation.config == SimulationConfig()


def test_update_config_parses_interval_and_restarts_the_timer(simulation):
    """Test a new interval takes effect on a running simulation"""
    simulation.start()
    old_timer = simulation._timer

    config = simulation.update_config(interval="30s", cancel_rate=0.5)

    assert config.interval_ms == 30000
    assert config.cancel_rate == 0.5
    assert old_timer.cancelled
    assert simulation.is_running
    assert simulation._timer.interval_seconds == 30


def test_chaos_draws_follow_the_deterministic_seed(make_simulation, simulation):
    """Test chaos decisions replay from the seed key and date in deterministic mode"""
    seeded = make_simulation(SimulationConfig(mode="deterministic", seed_key="chaos"))
    assert seeded.chaos.rng.next() == SeededRandom(hash_seed("chaos-2024-06-12")).next()

    simulation.update_config(mode="deterministic", seed_key="switched")
    assert simulation.chaos.rng.next() == SeededRandom(hash_seed("switched-2024-06-12")).next()


def test_run_daily_batch_leaves_day_rollover_alone(db, clock, simulation, make_account):
    """Test the on-demand daily batch runs loans, compliance and risk without a cycle"""
    make_account(persona="investor")

    results = simulation.run_daily_batch()

    assert results["day"] == "2024-06-12"
    assert results["rescored"] == 1
    assert set(results) >= {"loan_payments", "loan_defaults", "compliance", "market"}
    assert results["market"]["updated"] == 0
    db.expire_all()
    # the first cycle of the day still runs the daily tasks
    assert simulation.run_cycle().daily_tasks_run


def test_reset_stats(db, simulation, make_account):
    """Test the transaction counter and injected failures go back to zero"""
    make_account(persona="spender")
    simulation.run_cycle()
    simulation.chaos.record_failure()

    simulation.reset_stats()

    assert simulation.chaos.failures_injected == 0
    db.expire_all()
    assert db.query(SimulationState).one().transactions_today == 0
