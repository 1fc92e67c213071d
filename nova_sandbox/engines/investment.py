"""Investment engine - market assets, portfolios and market-wide shocks"""

import logging
import math
from typing import List, Optional

from sqlalchemy.orm import Session

from nova_sandbox.domain.market import (
    CRASH_DROPS,
    DEFAULT_ASSETS,
    PORTFOLIO_ALLOCATIONS,
    crash_price,
    daily_move,
    market_trend,
    recovery_price,
)
from nova_sandbox.domain.models import AssetType, CrashSeverity, PortfolioType
from nova_sandbox.domain.personas import PERSONA_PORTFOLIO_TYPES, PersonaType
from nova_sandbox.domain.rng import SeededRandom
from nova_sandbox.infrastructure.database.models import Holding, MarketAsset, Portfolio
from nova_sandbox.infrastructure.database.repositories import (
    MarketRepository,
    PortfolioRepository,
    SimulationStateRepository,
    UserRepository,
)
from nova_sandbox.utils.clock import Clock, SystemClock

logger = logging.getLogger(__name__)


class InvestmentEngine:
    def __init__(self, db: Session, clock: Optional[Clock] = None):
        self.db = db
        self.clock = clock or SystemClock()
        self.market = MarketRepository(db)
        self.portfolios = PortfolioRepository(db)
        self.users = UserRepository(db)
        self.state = SimulationStateRepository(db)

    def initialize_market_assets(self) -> int:
        """Insert any default asset that is missing; returns how many were added"""
        created = 0
        now = self.clock.now()
        for asset in DEFAULT_ASSETS:
            if self.market.by_symbol(asset.symbol) is None:
                self.market.add(
                    MarketAsset(
                        symbol=asset.symbol,
                        name=asset.name,
                        asset_type=asset.type.value,
                        price=asset.price,
                        previous_price=asset.price,
                        last_change=0.0,
                        volatility=asset.volatility,
                        updated_at=now,
                    )
                )
                created += 1
        return created

    def create_portfolio(
        self,
        user_id: str,
        amount: int,
        portfolio_type: Optional[str] = None,
        name: Optional[str] = None,
    ) -> Optional[Portfolio]:
        """
        Buy a target-weight basket worth `amount` cents.

        Without an explicit type the user's persona decides the basket.
        Returns None for unknown users.
        """
        user = self.users.get(user_id)
        if user is None:
            return None
        if portfolio_type is None:
            kind = PERSONA_PORTFOLIO_TYPES.get(PersonaType(user.persona), PortfolioType.BALANCED)
        else:
            kind = PortfolioType(portfolio_type)

        if not self.market.list_assets():
            self.initialize_market_assets()

        holdings: List[Holding] = []
        for symbol, weight in PORTFOLIO_ALLOCATIONS[kind].items():
            asset = self.market.by_symbol(symbol)
            if asset is None:
                continue
            cost = math.floor(amount * weight)
            quantity = cost / asset.price
            holdings.append(
                Holding(
                    asset_id=asset.id,
                    quantity=quantity,
                    cost_basis=cost,
                    market_value=math.floor(quantity * asset.price),
                    gain_loss=0,
                )
            )

        invested = sum(h.cost_basis for h in holdings)
        now = self.clock.now()
        portfolio = Portfolio(
            user_id=user_id,
            name=name or f"{kind.value.title()} Portfolio",
            portfolio_type=kind.value,
            total_invested=invested,
            total_value=sum(h.market_value for h in holdings),
            total_gain_loss=0,
            created_at=now,
            updated_at=now,
        )
        return self.portfolios.add(portfolio, holdings)

    def update_market_prices(self, rng: SeededRandom, volatility_multiplier: float = 1.0) -> dict:
        """Random walk with momentum for every asset"""
        now = self.clock.now()
        changes = []
        for asset in self.market.list_assets():
            new_price, change = daily_move(asset.price, asset.volatility, asset.last_change, rng, volatility_multiplier)
            asset.previous_price = asset.price
            asset.price = new_price
            asset.last_change = change
            asset.updated_at = now
            changes.append(change)
        self.db.flush()
        average = sum(changes) / len(changes) if changes else 0.0
        return {"updated": len(changes), "average_change": round(average, 5), "trend": market_trend(changes)}

    def update_portfolio_valuations(self) -> int:
        """Mark every holding to market and roll totals up to the portfolio"""
        now = self.clock.now()
        portfolios = self.portfolios.list_all()
        for portfolio in portfolios:
            total_value = 0
            for holding in portfolio.holdings:
                holding.market_value = math.floor(holding.quantity * holding.asset.price)
                holding.gain_loss = holding.market_value - holding.cost_basis
                total_value += holding.market_value
            portfolio.total_value = total_value
            portfolio.total_gain_loss = total_value - portfolio.total_invested
            portfolio.updated_at = now
        self.db.flush()
        return len(portfolios)

    def trigger_market_crash(self, severity: str, rng: SeededRandom) -> dict:
        """
        Drop every price by the severity's base percentage, scaled per asset
        class and jittered through the seeded source. Prices never go below 1.
        """
        base_drop = CRASH_DROPS[CrashSeverity(severity)]
        drops = {}
        for asset in self.market.list_assets():
            new_price, drop = crash_price(asset.price, AssetType(asset.asset_type), base_drop, rng)
            asset.previous_price = asset.price
            asset.price = new_price
            asset.last_change = -drop
            drops[asset.symbol] = round(drop, 4)
        self.state.get_or_create().market_crash_active = True
        self.db.flush()
        self.update_portfolio_valuations()
        logger.warning("Market crash triggered", extra={"severity": severity, "assets": len(drops)})
        return {"severity": severity, "base_drop": base_drop, "drops": drops}

    def trigger_market_recovery(self, rng: SeededRandom, recovery_percent: float = 0.1) -> dict:
        gains = {}
        for asset in self.market.list_assets():
            new_price, gain = recovery_price(asset.price, AssetType(asset.asset_type), recovery_percent, rng)
            asset.previous_price = asset.price
            asset.price = new_price
            asset.last_change = gain
            gains[asset.symbol] = round(gain, 4)
        self.state.get_or_create().market_crash_active = False
        self.db.flush()
        self.update_portfolio_valuations()
        logger.info("Market recovery triggered", extra={"recovery_percent": recovery_percent})
        return {"recovery_percent": recovery_percent, "gains": gains}

    def get_market_overview(self) -> dict:
        assets = self.market.list_assets()
        changes = [a.last_change or 0.0 for a in assets]
        return {
            "trend": market_trend(changes),
            "market_crash_active": self.state.get_or_create().market_crash_active,
            "assets": [
                {
                    "symbol": a.symbol,
                    "name": a.name,
                    "type": a.asset_type,
                    "price": a.price,
                    "previous_price": a.previous_price,
                    "change": round(a.last_change or 0.0, 5),
                }
                for a in assets
            ],
        }

    def get_user_portfolios(self, user_id: str) -> List[Portfolio]:
        return self.portfolios.list_for_user(user_id)

    def get_investment_summary(self) -> dict:
        portfolios = self.portfolios.list_all()
        invested = sum(p.total_invested for p in portfolios)
        value = sum(p.total_value for p in portfolios)
        return {
            "total_portfolios": len(portfolios),
            "total_invested": invested,
            "total_value": value,
            "total_gain_loss": value - invested,
            "return_percent": round((value - invested) / invested * 100, 2) if invested else 0.0,
        }
