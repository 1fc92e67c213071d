"""Integration tests for fraud screening, alerts and freezes"""

from datetime import timedelta
from nova_sandbox.domain.models import FraudAlertStatus, FraudAlertType, Severity
from nova_sandbox.domain.rng import SeededRandom
from nova_sandbox.engines.fraud import FraudEngine
from nova_sandbox.engines.lifecycle import TransactionLifecycle
from nova_sandbox.infrastructure.database.models import Account, FraudAlert, RiskEvent, SimulationState, Transaction


def _posted(db, account, amount, at, merchant=None, location=None):
    db.add(
        Transaction(
            account_id=account.id,
            type="debit",
            amount=amount,
            authorized_amount=amount,
            status="posted",
            merchant=merchant,
            location=location,
            created_at=at,
            posted_at=at,
        )
    )
    db.commit()


def test_clean_transaction_creates_no_alerts(db, clock, sim_config, make_account):
    """Test an ordinary debit creates no alert"""
    account = make_account(balance=100000)
    transaction = TransactionLifecycle(db, sim_config, clock).create(account.id, "debit", 2500).transaction
    engine = FraudEngine(db, clock)

    result = engine.screen_transaction(account.user_id, transaction)
    db.commit()

    assert result.risk_score == 0
    assert db.query(FraudAlert).count() == 0
    assert not transaction.fraud_flag


def test_card_testing_flags_and_records_risk_event(db, clock, sim_config, make_account):
    """Test card testing flags the transaction and logs a risk event"""
    account = make_account(balance=100000)
    for minutes in (5, 10, 15, 20, 25):
        _posted(db, account, 150, clock.now() - timedelta(minutes=minutes))
    transaction = TransactionLifecycle(db, sim_config, clock).create(account.id, "debit", 300).transaction
    engine = FraudEngine(db, clock)

    result = engine.screen_transaction(account.user_id, transaction)
    db.commit()

    assert result.risk_score == 70
    assert result.should_block
    alerts = engine.get_user_fraud_alerts(account.user_id)
    assert {a.alert_type for a in alerts} == {"velocity", "card_testing"}
    assert all(a.transaction_id == transaction.id for a in alerts)
    assert all(a.risk_score == 70 for a in alerts)
    db.refresh(transaction)
    assert transaction.fraud_flag
    event = db.query(RiskEvent).one()
    assert event.event_type == "fraud_alert"
    assert event.severity == "high"
    db.refresh(account)
    assert not account.is_frozen


def test_impossible_travel_freezes_every_account(db, clock, sim_config, make_account, make_user):
    """Test a critical score freezes all of the user's accounts"""
    user = make_user()
    checking = make_account(balance=100000, user=user)
    savings = make_account(balance=50000, user=user)
    _posted(db, checking, 3000, clock.now() - timedelta(minutes=20), location="New York")
    transaction = TransactionLifecycle(db, sim_config, clock).create(
        checking.id, "debit", 3000, location="San Francisco"
    ).transaction

    FraudEngine(db, clock).screen_transaction(user.id, transaction)
    db.commit()

    accounts = db.query(Account).filter(Account.user_id == user.id).all()
    assert len(accounts) == 2
    assert all(a.is_frozen for a in accounts)
    assert all(a.frozen_reason.startswith("Critical fraud alert") for a in accounts)
    alert = db.query(FraudAlert).one()
    assert alert.severity == Severity.CRITICAL.value
    assert alert.details["to"] == "San Francisco"
    assert savings.id in {a.id for a in accounts}


def test_unfreeze_dismisses_open_alerts(db, clock, make_account):
    """Test unfreezing dismisses the user's open alerts"""
    account = make_account(balance=100000)
    engine = FraudEngine(db, clock)
    engine.create_fraud_alert(account.user_id, FraudAlertType.VELOCITY, Severity.CRITICAL, "burst")
    engine.create_fraud_alert(account.user_id, FraudAlertType.DUPLICATE, Severity.MEDIUM, "dup")
    db.commit()
    db.refresh(account)
    assert account.is_frozen

    unfrozen = engine.unfreeze_account(account.user_id)
    db.commit()

    assert unfrozen == 1
    db.refresh(account)
    assert not account.is_frozen
    assert account.frozen_reason is None
    statuses = {a.status for a in engine.get_user_fraud_alerts(account.user_id)}
    assert statuses == {"dismissed"}


def test_update_alert_status(db, clock, make_account):
    """Test alert status transitions and resolution time"""
    account = make_account()
    engine = FraudEngine(db, clock)
    alert = engine.create_fraud_alert(account.user_id, FraudAlertType.DUPLICATE, Severity.MEDIUM, "dup")
    db.commit()

    investigating = engine.update_fraud_alert_status(alert.id, FraudAlertStatus.INVESTIGATING)
    assert investigating.resolved_at is None

    confirmed = engine.update_fraud_alert_status(alert.id, FraudAlertStatus.CONFIRMED)
    assert confirmed.status == "confirmed"
    assert confirmed.resolved_at == clock.now()
    assert engine.update_fraud_alert_status("missing", FraudAlertStatus.DISMISSED) is None


def test_trigger_fraud_event(db, clock, make_account, ledger_total):
    """Test manual card-testing incident posts a burst and freezes the user"""
    account = make_account(balance=100000)
    engine = FraudEngine(db, clock)

    incident = engine.trigger_fraud_event(SeededRandom("incident"))
    db.commit()

    assert incident["account_id"] == account.id
    assert incident["transactions"] == 5
    db.refresh(account)
    assert account.is_frozen
    assert account.balance == ledger_total(account.id)
    assert 100000 - 5 * 499 <= account.balance <= 100000 - 5 * 100
    assert db.query(SimulationState).one().fraud_event_active
    alert = db.query(FraudAlert).one()
    assert alert.alert_type == "card_testing"
    assert alert.risk_score == 95


def test_trigger_fraud_event_without_accounts(db, clock):
    assert FraudEngine(db, clock).trigger_fraud_event(SeededRandom("empty")) is None


def test_fraud_summary(db, clock, make_account):
    """Test fraud summary groups the last day's alerts"""
    account = make_account()
    engine = FraudEngine(db, clock)
    engine.create_fraud_alert(account.user_id, FraudAlertType.DUPLICATE, Severity.MEDIUM, "dup")
    engine.create_fraud_alert(account.user_id, FraudAlertType.VELOCITY, Severity.HIGH, "fast")
    db.commit()

    summary = engine.get_fraud_summary()

    assert summary["alerts_last_24h"] == 2
    assert summary["by_severity"] == {"medium": 1, "high": 1}
    assert summary["by_status"] == {"open": 2}


def test_suspicious_activity_raises_high_alert_without_freezing(db, clock, make_account, ledger_total):
    """Test background incident: high alert and risk event, no freeze and no money moved"""
    account = make_account(balance=100000, persona="spender")
    engine = FraudEngine(db, clock)

    incident = engine.simulate_suspicious_activity(SeededRandom("background"))
    db.commit()

    assert incident["user_id"] == account.user_id
    db.refresh(account)
    assert not account.is_frozen
    assert account.balance == 100000 == ledger_total(account.id)
    alert = db.query(FraudAlert).one()
    assert (alert.alert_type, alert.severity) == ("suspicious_activity", "high")
    assert alert.details["source"] == "auto_simulation"
    event = db.query(RiskEvent).one()
    assert (event.event_type, event.severity) == ("suspicious_login", "high")
    assert db.query(SimulationState).one().fraud_event_active


def test_suspicious_activity_targets_spenders_and_investors_only(db, clock, make_account):
    """Test students are never picked for background incidents"""
    make_account(persona="student")
    engine = FraudEngine(db, clock)

    assert engine.simulate_suspicious_activity(SeededRandom("students")) is None
    assert db.query(FraudAlert).count() == 0
