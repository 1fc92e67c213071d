"""Market catalog and price moves - asset list, allocation baskets, shocks"""

import math
from dataclasses import dataclass
from typing import Dict, List, Optional

from nova_sandbox.domain.models import AssetType, CrashSeverity, PortfolioType
from nova_sandbox.domain.rng import SeededRandom

MOMENTUM = 0.1
PRICE_FLOOR = 1


@dataclass(frozen=True)
class AssetSpec:
    symbol: str
    name: str
    type: AssetType
    price: int  # cents
    volatility: float  # typical daily move


DEFAULT_ASSETS: List[AssetSpec] = [
    AssetSpec("AAPL", "Apple Inc.", AssetType.STOCK, 18_500, 0.02),
    AssetSpec("GOOGL", "Alphabet Inc.", AssetType.STOCK, 14_200, 0.025),
    AssetSpec("MSFT", "Microsoft Corp.", AssetType.STOCK, 37_500, 0.018),
    AssetSpec("AMZN", "Amazon.com Inc.", AssetType.STOCK, 17_800, 0.028),
    AssetSpec("TSLA", "Tesla Inc.", AssetType.STOCK, 24_200, 0.045),
    AssetSpec("NVDA", "NVIDIA Corp.", AssetType.STOCK, 48_000, 0.04),
    AssetSpec("SPY", "SPDR S&P 500 ETF", AssetType.ETF, 47_500, 0.012),
    AssetSpec("QQQ", "Invesco QQQ Trust", AssetType.ETF, 40_000, 0.018),
    AssetSpec("VTI", "Vanguard Total Stock Market ETF", AssetType.ETF, 24_000, 0.011),
    AssetSpec("BND", "Vanguard Total Bond Market ETF", AssetType.ETF, 7_200, 0.005),
    AssetSpec("BTC", "Bitcoin", AssetType.CRYPTO, 4_250_000, 0.06),
    AssetSpec("ETH", "Ethereum", AssetType.CRYPTO, 230_000, 0.07),
    AssetSpec("SOL", "Solana", AssetType.CRYPTO, 15_000, 0.08),
    AssetSpec("DOGE", "Dogecoin", AssetType.CRYPTO, 15, 0.12),
    AssetSpec("TBILL", "US Treasury Bill", AssetType.BOND, 10_000, 0.001),
    AssetSpec("HYS", "High Yield Savings", AssetType.SAVINGS, 10_000, 0.0001),
]

PORTFOLIO_ALLOCATIONS: Dict[PortfolioType, Dict[str, float]] = {
    PortfolioType.CONSERVATIVE: {"BND": 0.4, "SPY": 0.3, "VTI": 0.2, "HYS": 0.1},
    PortfolioType.BALANCED: {"SPY": 0.35, "QQQ": 0.2, "VTI": 0.15, "BND": 0.15, "AAPL": 0.1, "MSFT": 0.05},
    PortfolioType.AGGRESSIVE: {
        "QQQ": 0.25, "TSLA": 0.15, "NVDA": 0.15, "AMZN": 0.15, "GOOGL": 0.15, "BTC": 0.1, "ETH": 0.05,
    },
    PortfolioType.CRYPTO: {"BTC": 0.5, "ETH": 0.3, "SOL": 0.15, "DOGE": 0.05},
}

CRASH_DROPS: Dict[CrashSeverity, float] = {
    CrashSeverity.MILD: 0.05,
    CrashSeverity.MODERATE: 0.15,
    CrashSeverity.SEVERE: 0.35,
}

# Asset-class sensitivity to shocks
SHOCK_MULTIPLIERS: Dict[AssetType, float] = {
    AssetType.CRYPTO: 1.5,
    AssetType.BOND: 0.3,
    AssetType.SAVINGS: 0.3,
}


def daily_move(
    price: int,
    volatility: float,
    previous_change: Optional[float],
    rng: SeededRandom,
    volatility_multiplier: float = 1.0,
) -> tuple[int, float]:
    """
    One random price step with momentum.

    change = uniform(-vol, +vol) * multiplier + 10% of the previous change.

    Returns:
        (new_price, change) with the price floored at 1 cent
    """
    change = (rng.next() * 2 - 1) * volatility * volatility_multiplier + (previous_change or 0) * MOMENTUM
    return max(PRICE_FLOOR, math.floor(price * (1 + change))), change


def jitter(rng: SeededRandom) -> float:
    """Uniform scale in [0.8, 1.2)"""
    return 0.8 + rng.next() * 0.4


def crash_price(price: int, asset_type: AssetType, base_drop: float, rng: SeededRandom) -> tuple[int, float]:
    """Apply a crash shock; returns (new_price, applied_drop)"""
    drop = base_drop * SHOCK_MULTIPLIERS.get(asset_type, 1.0) * jitter(rng)
    return max(PRICE_FLOOR, math.floor(price * (1 - drop))), drop


def recovery_price(price: int, asset_type: AssetType, base_gain: float, rng: SeededRandom) -> tuple[int, float]:
    gain = base_gain * SHOCK_MULTIPLIERS.get(asset_type, 1.0) * jitter(rng)
    return max(PRICE_FLOOR, math.floor(price * (1 + gain))), gain


def market_trend(changes: List[float]) -> str:
    if not changes:
        return "stable"
    average = sum(changes) / len(changes)
    if average > 0.01:
        return "bullish"
    if average < -0.01:
        return "bearish"
    return "stable"
