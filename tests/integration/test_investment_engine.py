"""Integration tests for the market and portfolios"""

from nova_sandbox.domain.market import DEFAULT_ASSETS
from nova_sandbox.domain.rng import SeededRandom
from nova_sandbox.engines.investment import InvestmentEngine
from nova_sandbox.infrastructure.database.models import MarketAsset, SimulationState


def test_initialize_market_is_idempotent(db, clock):
    """Test market initialization only adds missing assets"""
    engine = InvestmentEngine(db, clock)

    assert engine.initialize_market_assets() == len(DEFAULT_ASSETS)
    assert engine.initialize_market_assets() == 0
    assert db.query(MarketAsset).count() == len(DEFAULT_ASSETS)


def test_portfolio_type_follows_persona(db, clock, make_user):
    """Test portfolio type is chosen from the persona"""
    engine = InvestmentEngine(db, clock)
    student = make_user(persona="student")
    investor = make_user(persona="investor")

    conservative = engine.create_portfolio(student.id, 100000)
    aggressive = engine.create_portfolio(investor.id, 100000)
    db.commit()

    assert conservative.portfolio_type == "conservative"
    assert conservative.name == "Conservative Portfolio"
    assert aggressive.portfolio_type == "aggressive"
    assert {h.asset.symbol for h in conservative.holdings} == {"BND", "SPY", "VTI", "HYS"}


def test_portfolio_buys_weighted_basket(db, clock, make_user):
    """Test holdings follow the basket weights"""
    engine = InvestmentEngine(db, clock)
    user = make_user()

    portfolio = engine.create_portfolio(user.id, 100000, portfolio_type="crypto", name="Moonshot")
    db.commit()

    assert portfolio.name == "Moonshot"
    costs = {h.asset.symbol: h.cost_basis for h in portfolio.holdings}
    assert costs == {"BTC": 50000, "ETH": 30000, "SOL": 15000, "DOGE": 5000}
    assert portfolio.total_invested == 100000
    assert portfolio.total_value <= 100000
    assert portfolio.total_gain_loss == 0


def test_unknown_user_has_no_portfolio(db, clock):
    """Test portfolio creation for an unknown user"""
    assert InvestmentEngine(db, clock).create_portfolio("missing", 1000) is None


def test_price_updates_revalue_portfolios(db, clock, make_user):
    """Test price moves flow through to portfolio values"""
    engine = InvestmentEngine(db, clock)
    user = make_user()
    portfolio = engine.create_portfolio(user.id, 1_000_000, portfolio_type="aggressive")
    db.commit()

    update = engine.update_market_prices(SeededRandom("prices"))
    revalued = engine.update_portfolio_valuations()
    db.commit()

    assert update["updated"] == len(DEFAULT_ASSETS)
    assert update["trend"] in ("bullish", "bearish", "stable")
    assert revalued == 1
    db.refresh(portfolio)
    assert portfolio.total_value == sum(h.market_value for h in portfolio.holdings)
    assert portfolio.total_gain_loss == portfolio.total_value - portfolio.total_invested
    for asset in db.query(MarketAsset).all():
        assert asset.price >= 1
        assert asset.previous_price is not None


def test_crash_then_recovery(db, clock, make_user):
    """Test severe crash hits crypto harder than bonds and recovery follows"""
    engine = InvestmentEngine(db, clock)
    user = make_user()
    portfolio = engine.create_portfolio(user.id, 1_000_000, portfolio_type="balanced")
    db.commit()
    btc_before = engine.market.by_symbol("BTC").price
    bnd_before = engine.market.by_symbol("BND").price

    crash = engine.trigger_market_crash("severe", SeededRandom("crash"))
    db.commit()

    assert crash["base_drop"] == 0.35
    assert crash["drops"]["BTC"] > crash["drops"]["BND"]
    assert engine.market.by_symbol("BTC").price < btc_before
    assert engine.market.by_symbol("BND").price < bnd_before
    assert db.query(SimulationState).one().market_crash_active
    db.refresh(portfolio)
    assert portfolio.total_gain_loss < 0
    assert engine.get_market_overview()["trend"] == "bearish"

    recovery = engine.trigger_market_recovery(SeededRandom("recovery"), 0.1)
    db.commit()

    assert set(recovery["gains"]) == {a.symbol for a in DEFAULT_ASSETS}
    assert not db.query(SimulationState).one().market_crash_active


def test_investment_summary(db, clock, make_user):
    """Test portfolio count and invested total"""
    engine = InvestmentEngine(db, clock)
    user = make_user()
    engine.create_portfolio(user.id, 100000, portfolio_type="conservative")
    engine.create_portfolio(user.id, 200000, portfolio_type="balanced")
    db.commit()

    summary = engine.get_investment_summary()

    assert summary["total_portfolios"] == 2
    assert summary["total_invested"] == 300000
    assert len(engine.get_user_portfolios(user.id)) == 2
