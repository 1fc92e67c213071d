"""Simulation cycle orchestrator - the periodic heartbeat of the sandbox bank"""

import logging
import math
import threading
import time
from datetime import datetime
from typing import Callable, Optional

from pydantic import ValidationError
from sqlalchemy.orm import Session

from nova_sandbox.config import Settings, SimulationConfig, is_interval, parse_interval, settings as default_settings
from nova_sandbox.domain.exceptions import InvalidConfigurationError, SimulationAlreadyRunningError
from nova_sandbox.domain.generator import TransactionGenerator
from nova_sandbox.domain.models import CycleSummary
from nova_sandbox.domain.personas import get_persona
from nova_sandbox.domain.rng import SeededRandom, hash_seed
from nova_sandbox.engines.compliance import ComplianceEngine
from nova_sandbox.engines.fraud import FraudEngine
from nova_sandbox.engines.investment import InvestmentEngine
from nova_sandbox.engines.lifecycle import TransactionLifecycle
from nova_sandbox.engines.loans import LoanEngine
from nova_sandbox.engines.risk import RiskEngine
from nova_sandbox.infrastructure.database.models import Account
from nova_sandbox.infrastructure.database.repositories import (
    AccountRepository,
    SimulationStateRepository,
    UserRepository,
)
from nova_sandbox.infrastructure.observability.logging import log_cycle
from nova_sandbox.infrastructure.observability.metrics import cycle_duration_histogram, cycle_failure_counter
from nova_sandbox.simulation.chaos import ChaosController
from nova_sandbox.utils.clock import Clock, RepeatingTimer, SystemClock, ThreadingTimer
from nova_sandbox.utils.date_utils import epoch_ms

logger = logging.getLogger(__name__)

FRAUD_INCIDENT_PROBABILITY = 0.005
MARKET_SPIKE_PROBABILITY = 0.01
MARKET_HOURS = range(9, 17)
SPIKE_VOLATILITY = 2.0


def cycle_seed(config: SimulationConfig, now: datetime) -> int:
    """Seed key plus calendar date when deterministic, the clock otherwise"""
    if config.mode == "deterministic":
        return hash_seed(f"{config.seed_key}-{now:%Y-%m-%d}")
    return epoch_ms(now) & 0xFFFFFFFF


class SimulationEngine:
    """
    Explicit simulation context: owns the timer handle, running flag and
    cycle lock, and runs cycles against fresh sessions from session_factory.

    Several engines can coexist, each with its own clock, timer and config.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        config: SimulationConfig,
        clock: Optional[Clock] = None,
        timer_factory: Callable[[], RepeatingTimer] = ThreadingTimer,
        chaos: Optional[ChaosController] = None,
        app_settings: Optional[Settings] = None,
    ):
        self.session_factory = session_factory
        self.config = config
        self.clock = clock or SystemClock()
        self.timer_factory = timer_factory
        self.chaos = chaos or ChaosController(rng=SeededRandom(cycle_seed(config, self.clock.now())))
        self.settings = app_settings or default_settings
        self._timer: Optional[RepeatingTimer] = None
        self._cycle_lock = threading.Lock()
        self.last_summary: Optional[CycleSummary] = None

    @property
    def is_running(self) -> bool:
        return self._timer is not None

    def start(self) -> None:
        """Start ticking every interval; raises if already started"""
        if self._timer is not None:
            raise SimulationAlreadyRunningError("Simulation is already running")
        timer = self.timer_factory()
        timer.start(self.config.interval_ms / 1000, self._tick)
        self._timer = timer
        logger.info("Simulation started", extra={"interval_ms": self.config.interval_ms, "mode": self.config.mode})

    def stop(self) -> bool:
        """Stop future ticks; a cycle already in flight runs to completion"""
        if self._timer is None:
            return False
        self._timer.cancel()
        self._timer = None
        logger.info("Simulation stopped")
        return True

    def update_config(self, **changes) -> SimulationConfig:
        """
        Replace the running config. Accepts an "interval" string such as
        "30s" in place of interval_ms; a running timer picks up a new
        interval immediately.
        """
        interval = changes.pop("interval", None)
        if interval is not None:
            if not is_interval(interval):
                raise InvalidConfigurationError(f"Invalid interval: {interval}")
            changes["interval_ms"] = parse_interval(interval)
        try:
            config = SimulationConfig.model_validate({**self.config.model_dump(), **changes})
        except ValidationError as e:
            raise InvalidConfigurationError(f"Invalid simulation config: {e}")

        previous = self.config
        self.config = config
        if (config.mode, config.seed_key) != (previous.mode, previous.seed_key):
            self.chaos.reseed(self.random_source())
        if self.is_running and config.interval_ms != previous.interval_ms:
            self.stop()
            self.start()
        logger.info("Simulation config updated", extra={"changes": sorted(changes)})
        return self.config

    def _tick(self) -> None:
        try:
            self.run_cycle()
        except Exception:
            logger.exception("Simulation cycle failed; waiting for next tick")

    def cycle_seed(self) -> int:
        return cycle_seed(self.config, self.clock.now())

    def random_source(self) -> SeededRandom:
        """Seeded source for manual triggers, following the simulation mode"""
        return SeededRandom(self.cycle_seed())

    def run_cycle(self) -> CycleSummary:
        """
        Run one cycle. Cycles never overlap; a manual trigger waits for a
        scheduled cycle in flight.
        """
        with self._cycle_lock:
            db = self.session_factory()
            try:
                return self._run_cycle(db)
            finally:
                db.close()

    def _run_cycle(self, db: Session) -> CycleSummary:
        started = time.perf_counter()
        now = self.clock.now()
        seed = self.cycle_seed()
        rng = SeededRandom(seed)
        summary = CycleSummary(started_at=now, seed=seed)

        states = SimulationStateRepository(db)
        state = states.get_or_create()
        is_new_day = state.current_day != now.date()
        if is_new_day:
            state.transactions_today = 0
        state.cycle_in_progress = True
        db.commit()

        lifecycle = TransactionLifecycle(db, self.config, self.clock)
        fraud = FraudEngine(db, self.clock)
        compliance = ComplianceEngine(db, self.clock, self.settings)
        investment = InvestmentEngine(db, self.clock)

        try:
            generator = TransactionGenerator(rng)
            for account in AccountRepository(db).list_active():
                self._process_account(db, account, generator, lifecycle, fraud, compliance, is_new_day, summary)

            summary.pending = lifecycle.process_pending(rng)

            self._inject_random_events(db, rng, now, fraud, investment, summary)

            try:
                market_rng = SeededRandom(math.floor(rng.next() * 1_000_000))
                investment.update_market_prices(market_rng, 0.8 + rng.next() * 0.4)
                summary.portfolios_revalued = investment.update_portfolio_valuations()
                summary.market_updated = True
                db.commit()
            except Exception as e:
                db.rollback()
                summary.unit_failures += 1
                logger.error(f"Market update failed: {e}")

            if is_new_day:
                self._run_daily_tasks(db, rng)
                summary.daily_tasks_run = True

            state = states.get_or_create()
            if is_new_day:
                state.current_day = now.date()
                state.fraud_event_active = False
            state.last_run_at = now
            state.transactions_today += summary.transactions_generated
            state.cycle_in_progress = False
            db.commit()
        except Exception:
            db.rollback()
            cycle_failure_counter.inc()
            self._mark_not_running(db)
            raise

        summary.duration_ms = round((time.perf_counter() - started) * 1000, 2)
        cycle_duration_histogram.observe(summary.duration_ms / 1000)
        log_cycle(summary)
        self.last_summary = summary
        return summary

    def _process_account(
        self,
        db: Session,
        account: Account,
        generator: TransactionGenerator,
        lifecycle: TransactionLifecycle,
        fraud: FraudEngine,
        compliance: ComplianceEngine,
        is_new_day: bool,
        summary: CycleSummary,
    ) -> None:
        account_id = account.id
        user_id = account.user_id
        try:
            persona = get_persona(account.user.persona)
            generated = generator.generate_live(persona, self.clock.now(), self.config, include_income=is_new_day)
            for item in generated:
                result = lifecycle.create_generated(account_id, item)
                if not result.success:
                    summary.transactions_rejected += 1
                    continue
                summary.transactions_generated += 1
                transaction = result.transaction

                if transaction.amount >= self.config.fraud_min_amount:
                    check = fraud.screen_transaction(user_id, transaction)
                    if check.is_fraudulent:
                        summary.flagged += 1
                if transaction.amount >= self.config.aml_min_amount:
                    if compliance.analyze_transaction_aml(user_id, transaction.amount).flagged:
                        summary.aml_flagged += 1
                db.commit()
            summary.accounts_processed += 1
        except Exception as e:
            db.rollback()
            summary.unit_failures += 1
            logger.error(f"Account simulation failed: {e}", extra={"account_id": account_id})

    def _inject_random_events(
        self,
        db: Session,
        rng: SeededRandom,
        now,
        fraud: FraudEngine,
        investment: InvestmentEngine,
        summary: CycleSummary,
    ) -> None:
        state = SimulationStateRepository(db).get_or_create()
        try:
            if not state.fraud_event_active and rng.next() < FRAUD_INCIDENT_PROBABILITY:
                if fraud.simulate_suspicious_activity(rng):
                    summary.random_events.append("fraud_incident")
            if (
                now.hour in MARKET_HOURS
                and not state.market_crash_active
                and rng.next() < MARKET_SPIKE_PROBABILITY
            ):
                investment.update_market_prices(rng, SPIKE_VOLATILITY)
                summary.random_events.append("market_volatility_spike")
            db.commit()
        except Exception as e:
            db.rollback()
            summary.unit_failures += 1
            logger.error(f"Random event injection failed: {e}")

    def run_daily_batch(self) -> dict:
        """
        Run the end-of-day banking batch now: a market move and revaluation,
        then loans, compliance and risk. The cycle's own day rollover is
        left alone, so it still runs on the first cycle of the next day.
        """
        with self._cycle_lock:
            db = self.session_factory()
            try:
                rng = self.random_source()
                investment = InvestmentEngine(db, self.clock)
                market = investment.update_market_prices(SeededRandom(math.floor(rng.next() * 1_000_000)))
                market["portfolios_revalued"] = investment.update_portfolio_valuations()
                db.commit()

                results = self._run_daily_tasks(db, rng)
                results["market"] = market
                results["day"] = self.clock.now().date().isoformat()
                return results
            except Exception:
                db.rollback()
                raise
            finally:
                db.close()

    def _run_daily_tasks(self, db: Session, rng: SeededRandom) -> dict:
        """Once per calendar day: loans, compliance, then risk for every user"""
        loans = LoanEngine(db, self.clock, self.settings)
        payments = loans.process_due_payments()
        defaults = loans.process_loan_defaults()
        compliance = ComplianceEngine(db, self.clock, self.settings).run_scheduled_compliance_checks(rng)

        risk = RiskEngine(db, self.clock)
        rescored = 0
        for user in UserRepository(db).list_all():
            user_id = user.id
            try:
                risk.calculate_user_risk_score(user_id)
                db.commit()
                rescored += 1
            except Exception as e:
                db.rollback()
                logger.error(f"Risk recompute failed: {e}", extra={"user_id": user_id})

        results = {"loan_payments": payments, "loan_defaults": defaults, "compliance": compliance, "rescored": rescored}
        logger.info("Daily tasks completed", extra=results)
        return results

    def _mark_not_running(self, db: Session) -> None:
        try:
            SimulationStateRepository(db).get_or_create().cycle_in_progress = False
            db.commit()
        except Exception:
            db.rollback()
            logger.exception("Could not clear cycle flag")

    def get_stats(self) -> dict:
        db = self.session_factory()
        try:
            state = SimulationStateRepository(db).get_or_create()
            db.commit()
            return {
                "is_running": self.is_running,
                "cycle_in_progress": state.cycle_in_progress,
                "last_run_at": state.last_run_at.isoformat() if state.last_run_at else None,
                "current_day": state.current_day.isoformat() if state.current_day else None,
                "transactions_today": state.transactions_today,
                "market_crash_active": state.market_crash_active,
                "fraud_event_active": state.fraud_event_active,
                "failures_injected": self.chaos.failures_injected,
                "current_mode": self.chaos.mode.value,
                "simulation_mode": self.config.mode,
                "interval_ms": self.config.interval_ms,
            }
        finally:
            db.close()

    def reset_stats(self) -> None:
        """Zero today's transaction counter and the injected failure count"""
        db = self.session_factory()
        try:
            SimulationStateRepository(db).get_or_create().transactions_today = 0
            db.commit()
        finally:
            db.close()
        self.chaos.reset_stats()
        logger.info("Sandbox stats reset")
