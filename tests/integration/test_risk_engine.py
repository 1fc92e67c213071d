"""Integration tests for persisted risk scores and events"""

from nova_sandbox.domain.models import RiskEventType, Severity
from nova_sandbox.engines.risk import RiskEngine


def test_score_is_persisted_on_the_user(db, clock, make_account):
    """Test calculated risk score is stored on the user"""
    account = make_account()
    engine = RiskEngine(db, clock)

    assessment = engine.calculate_user_risk_score(account.user_id)
    db.commit()

    assert assessment.score == 16
    assert assessment.level.value == "low"
    db.refresh(account.user)
    assert account.user.risk_score == 16


def test_unknown_user(db, clock):
    """Test scoring an unknown user"""
    assert RiskEngine(db, clock).calculate_user_risk_score("missing") is None


def test_severe_events_raise_the_score(db, clock, make_user):
    """Test high and critical events bump the score"""
    user = make_user()
    engine = RiskEngine(db, clock)

    engine.log_risk_event(user.id, RiskEventType.LOAN_WARNING, Severity.MEDIUM, "quiet loan")
    assert user.risk_score == 0
    engine.log_risk_event(user.id, RiskEventType.PAYMENT_MISSED, Severity.HIGH, "missed")
    engine.log_risk_event(user.id, RiskEventType.LOAN_DEFAULT, Severity.CRITICAL, "default")
    db.commit()

    assert user.risk_score == 25
    events = engine.get_user_risk_events(user.id)
    assert len(events) == 3
    assert {e.event_type for e in events} == {"loan_warning", "payment_missed", "loan_default"}


def test_bump_is_capped_at_100(db, clock, make_user):
    """Test event bumps stop at 100"""
    user = make_user()
    user.risk_score = 95
    db.commit()

    RiskEngine(db, clock).log_risk_event(user.id, RiskEventType.FRAUD_ALERT, Severity.CRITICAL, "fraud")

    assert user.risk_score == 100


def test_risk_summary(db, clock, make_user):
    """Test risk summary by level and event type"""
    low = make_user()
    high = make_user()
    low.risk_score = 10
    high.risk_score = 60
    db.commit()
    engine = RiskEngine(db, clock)
    engine.log_risk_event(high.id, RiskEventType.AML_FLAG, Severity.HIGH, "aml")
    db.commit()

    summary = engine.get_risk_summary()

    assert summary["total_users"] == 2
    assert summary["users_by_level"] == {"low": 1, "medium": 0, "high": 1, "critical": 0}
    assert summary["average_score"] == 40.0
    assert summary["events_last_24h"] == {"high": 1}
