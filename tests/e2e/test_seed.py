"""
E2E tests for bulk seeding.

Seeding builds one cohort per persona with a posted history, an investor
portfolio and a KYC outcome for everyone, all derived from the seed key.
"""

import pytest
from nova_sandbox.domain.exceptions import InvalidConfigurationError
from nova_sandbox.infrastructure.database.models import (
    Account,
    ComplianceLog,
    MarketAsset,
    Portfolio,
    Transaction,
    User,
)
from nova_sandbox.seed import reset_database, seed_database


def _seed(db, clock, app_settings, **kwargs):
    return seed_database(db, mode="light", months=1, seed_key="e2e-seed", now=clock.now(), app_settings=app_settings, **kwargs)


def _snapshot(db):
    users = db.query(User).order_by(User.email).all()
    return [
        (u.name, u.email, u.persona, u.kyc_status, sorted(a.balance for a in u.accounts))
        for u in users
    ]


def test_light_seed_builds_one_user_per_persona(db, clock, app_settings, ledger_total):
    """Test light mode seeds one user per persona with balanced ledgers"""
    summary = _seed(db, clock, app_settings)

    assert summary.skipped is False
    assert summary.users == 3
    assert 3 <= summary.accounts <= 6
    assert summary.portfolios == 1
    assert summary.transactions > 0

    assert db.query(User).count() == 3
    assert {u.persona for u in db.query(User).all()} == {"student", "spender", "investor"}
    assert db.query(Account).count() == summary.accounts
    assert db.query(Transaction).count() == summary.transactions
    assert db.query(MarketAsset).count() == 16
    assert db.query(Portfolio).one().portfolio_type == "aggressive"

    for account in db.query(Account).all():
        assert ledger_total(account.id) == account.balance
    for user in db.query(User).all():
        checks = db.query(ComplianceLog).filter(ComplianceLog.user_id == user.id).all()
        assert [c.check_type for c in checks] == ["kyc"]


def test_seeded_history_is_posted_and_in_range(db, clock, app_settings):
    """Test seeded history is posted and within the requested months"""
    _seed(db, clock, app_settings)

    for transaction in db.query(Transaction).all():
        assert transaction.status == "posted"
        assert transaction.posted_at == transaction.created_at
        assert transaction.created_at.date() <= clock.now().date()


def test_investor_accounts_get_the_higher_daily_limit(db, clock, app_settings):
    """Test investor accounts get the higher daily limit"""
    _seed(db, clock, app_settings)

    for account in db.query(Account).all():
        expected = 2_000_000 if account.user.persona == "investor" else app_settings.default_daily_limit
        assert account.daily_limit == expected


def test_seed_refuses_to_run_on_existing_data(db, clock, app_settings):
    """Test seeding is skipped when data already exists"""
    first = _seed(db, clock, app_settings)

    second = _seed(db, clock, app_settings)

    assert second.skipped is True
    assert second.users == 0
    assert db.query(User).count() == first.users


def test_reset_empties_every_table(db, clock, app_settings):
    """Test reset deletes every row"""
    _seed(db, clock, app_settings)

    reset_database(db)

    for model in (User, Account, Transaction, Portfolio, MarketAsset, ComplianceLog):
        assert db.query(model).count() == 0


def test_same_key_reproduces_the_same_world(db, clock, app_settings):
    """Test the same seed key reproduces the same data"""
    _seed(db, clock, app_settings)
    before = _snapshot(db)

    reset_database(db)
    _seed(db, clock, app_settings)

    assert _snapshot(db) == before


def test_different_keys_produce_different_people(db, clock, app_settings):
    """Test a different seed key gives different data"""
    _seed(db, clock, app_settings)
    before = _snapshot(db)

    reset_database(db)
    seed_database(db, mode="light", months=1, seed_key="another-key", now=clock.now(), app_settings=app_settings)

    assert _snapshot(db) != before


@pytest.mark.parametrize("mode,months", [("huge", 3), ("light", 0)])
def test_invalid_options_are_rejected(db, clock, app_settings, mode, months):
    """Test bad mode and month count are refused"""
    with pytest.raises(InvalidConfigurationError):
        seed_database(db, mode=mode, months=months, now=clock.now(), app_settings=app_settings)
