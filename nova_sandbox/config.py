"""Configuration management using Pydantic Settings"""

import re
from typing import List, Literal

from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

_INTERVAL_PATTERN = re.compile(r"^(\d+)(ms|s|m|h|d)?$")
_UNIT_MS = {"ms": 1, "s": 1000, "m": 60_000, "h": 3_600_000, "d": 86_400_000}
DEFAULT_INTERVAL_MS = 3_600_000


def parse_interval(value: str) -> int:
    """
    Parse an interval string such as "30s", "5m" or "1h" into milliseconds.

    A bare number is read as milliseconds. Anything unparseable falls back
    to one hour.
    """
    match = _INTERVAL_PATTERN.match(value.strip()) if value else None
    if not match:
        return DEFAULT_INTERVAL_MS
    amount = int(match.group(1))
    unit = match.group(2) or "ms"
    return amount * _UNIT_MS[unit]


def is_interval(value: str) -> bool:
    """True when parse_interval would read value rather than fall back"""
    return bool(value) and _INTERVAL_PATTERN.match(value.strip()) is not None


class Settings(BaseSettings):
    """Application configuration loaded from environment variables"""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # Database
    database_url: str = "sqlite:///./nova_sandbox.db"

    # Service
    service_name: str = "nova-sandbox"
    host: str = "127.0.0.1"
    port: int = 8000
    log_level: str = "INFO"

    # Simulation
    simulation_mode: str = "random"  # random | deterministic
    simulation_seed_key: str = "simulation-2024"
    simulation_interval: str = "1h"
    simulation_autostart: bool = False

    # Transaction lifecycle
    pending_duration_ms: int = 2 * 60 * 60 * 1000
    cancel_rate: float = 0.02
    amount_change_rate: float = 0.05
    max_amount_change_percent: float = 20

    # Account defaults
    default_daily_limit: int = 500_000  # $5000
    max_overdraft_amount: int = 50_000  # $500
    overdraft_fee: int = 3_500

    # Analysis floors
    fraud_min_amount: int = 5_000
    aml_min_amount: int = 100_000

    # Loans
    loan_default_missed_payments: int = 3
    loan_default_days: int = 90
    loan_warning_days: int = 30
    loan_auto_approve_risk: int = 30

    # Compliance
    kyc_verified_rate: float = 0.85
    kyc_pending_rate: float = 0.10
    kyc_expiry_days: int = 30
    sanction_false_positive_rate: float = 0.02

    # Chaos
    chaos_mode: str = "normal"
    chaos_latency_ms: int = 0
    chaos_failure_rate: float = 0.0


class TimeWindow(BaseModel):
    """Hour-of-day bucket with an activity multiplier, end hour exclusive"""

    name: str
    start_hour: int
    end_hour: int
    multiplier: float


DEFAULT_TIME_WINDOWS = [
    TimeWindow(name="night", start_hour=0, end_hour=6, multiplier=0.1),
    TimeWindow(name="morning", start_hour=6, end_hour=12, multiplier=1.2),
    TimeWindow(name="afternoon", start_hour=12, end_hour=18, multiplier=1.5),
    TimeWindow(name="evening", start_hour=18, end_hour=22, multiplier=1.3),
    TimeWindow(name="late_night", start_hour=22, end_hour=24, multiplier=0.4),
]


class SimulationConfig(BaseModel):
    """Runtime knobs for the simulation cycle and the lifecycle manager"""

    mode: Literal["random", "deterministic"] = "random"
    seed_key: str = Field("simulation-2024", min_length=1)
    interval_ms: int = Field(DEFAULT_INTERVAL_MS, gt=0)
    time_windows: List[TimeWindow] = DEFAULT_TIME_WINDOWS
    weekend_multiplier: float = 1.3

    pending_duration_ms: int = Field(2 * 60 * 60 * 1000, ge=0)
    cancel_rate: float = Field(0.02, ge=0, le=1)
    amount_change_rate: float = Field(0.05, ge=0, le=1)
    max_amount_change_percent: float = Field(20, ge=0, le=100)

    default_daily_limit: int = 500_000
    max_overdraft_amount: int = 50_000

    fraud_min_amount: int = 5_000
    aml_min_amount: int = 100_000

    @classmethod
    def from_settings(cls, source: Settings) -> "SimulationConfig":
        return cls(
            mode=source.simulation_mode,
            seed_key=source.simulation_seed_key,
            interval_ms=parse_interval(source.simulation_interval),
            pending_duration_ms=source.pending_duration_ms,
            cancel_rate=source.cancel_rate,
            amount_change_rate=source.amount_change_rate,
            max_amount_change_percent=source.max_amount_change_percent,
            default_daily_limit=source.default_daily_limit,
            max_overdraft_amount=source.max_overdraft_amount,
            fraud_min_amount=source.fraud_min_amount,
            aml_min_amount=source.aml_min_amount,
        )

    def activity_multiplier(self, hour: int) -> float:
        for window in self.time_windows:
            if window.start_hour <= hour < window.end_hour:
                return window.multiplier
        return 1.0


settings = Settings()
