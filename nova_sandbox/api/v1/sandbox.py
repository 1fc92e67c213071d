"""Sandbox control surface - chaos, simulation, account overrides and scenario triggers

Everything under /v1/sandbox bypasses chaos injection.
"""

import logging
from dataclasses import asdict

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from nova_sandbox.api.dependencies import (
    get_chaos,
    get_clock,
    get_fraud_engine,
    get_investment_engine,
    get_lifecycle,
    get_request_id,
    get_simulation,
    raise_for_failure,
)
from nova_sandbox.api.v1.schemas import (
    AccountResponse,
    AccountSettingsRequest,
    ChaosModeRequest,
    FreezeRequest,
    MarketCrashRequest,
    MarketRecoveryRequest,
    SetBalanceRequest,
    SimulationConfigRequest,
    TransactionResponse,
)
from nova_sandbox.domain.exceptions import InvalidConfigurationError, SimulationAlreadyRunningError
from nova_sandbox.domain.models import ErrorCode
from nova_sandbox.engines.fraud import FraudEngine
from nova_sandbox.engines.investment import InvestmentEngine
from nova_sandbox.engines.lifecycle import TransactionLifecycle
from nova_sandbox.infrastructure.database.models import Account, Transaction, User
from nova_sandbox.infrastructure.database.repositories import AccountRepository, AuditRepository, UserRepository
from nova_sandbox.infrastructure.database.session import get_db
from nova_sandbox.simulation.chaos import ChaosController
from nova_sandbox.simulation.engine import SimulationEngine
from nova_sandbox.utils.clock import Clock

router = APIRouter(prefix="/sandbox")

RESET_RISK_SCORE = 50


# Chaos


@router.get("/chaos")
def get_chaos_mode(chaos: ChaosController = Depends(get_chaos)):
    return chaos.describe()


@router.patch("/chaos")
def set_chaos_mode(request_body: ChaosModeRequest, chaos: ChaosController = Depends(get_chaos)):
    try:
        chaos.set_mode(request_body.mode, request_body.latency_ms, request_body.failure_rate)
    except InvalidConfigurationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    logging.warning("Chaos mode changed", extra={"mode": request_body.mode})
    return chaos.describe()


@router.post("/chaos/reset")
def reset_chaos_mode(chaos: ChaosController = Depends(get_chaos)):
    chaos.reset()
    return chaos.describe()


# Accounts


def _load_account(db: Session, account_id: str) -> Account:
    account = db.query(Account).filter(Account.id == account_id).first()
    if account is None:
        raise_for_failure(ErrorCode.ACCOUNT_NOT_FOUND, "Account not found")
    return account


@router.post("/accounts/{account_id}/freeze", response_model=AccountResponse)
def freeze_account(account_id: str, request_body: FreezeRequest = FreezeRequest(), db: Session = Depends(get_db)):
    account = _load_account(db, account_id)
    account.is_frozen = True
    account.frozen_reason = request_body.reason
    db.commit()
    return AccountResponse.model_validate(account)


@router.post("/accounts/{account_id}/unfreeze", response_model=AccountResponse)
def unfreeze_account(account_id: str, db: Session = Depends(get_db)):
    account = _load_account(db, account_id)
    account.is_frozen = False
    account.frozen_reason = None
    db.commit()
    return AccountResponse.model_validate(account)


@router.post("/accounts/{account_id}/balance", response_model=TransactionResponse)
def set_account_balance(
    account_id: str,
    request_body: SetBalanceRequest,
    request: Request,
    lifecycle: TransactionLifecycle = Depends(get_lifecycle),
):
    """Force a balance by posting an adjustment transaction for the difference"""
    request_id = get_request_id(request)
    try:
        result = lifecycle.set_balance(account_id, request_body.balance)
    except Exception as e:
        logging.error(f"Set balance failed: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=500, detail="Internal server error")
    if not result.success:
        raise_for_failure(result.code, result.error)
    if result.transaction is None:
        raise HTTPException(status_code=409, detail="Balance already at requested value")
    return TransactionResponse.model_validate(result.transaction)


@router.patch("/accounts/{account_id}/settings", response_model=AccountResponse)
def update_account_settings(account_id: str, request_body: AccountSettingsRequest, db: Session = Depends(get_db)):
    account = _load_account(db, account_id)
    for field, value in request_body.model_dump(exclude_none=True).items():
        setattr(account, field, value)
    db.commit()
    return AccountResponse.model_validate(account)


# Simulation


@router.post("/simulation/start")
def start_simulation(simulation: SimulationEngine = Depends(get_simulation)):
    try:
        simulation.start()
    except SimulationAlreadyRunningError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return {"is_running": True, "interval_ms": simulation.config.interval_ms}


@router.post("/simulation/stop")
def stop_simulation(simulation: SimulationEngine = Depends(get_simulation)):
    return {"is_running": False, "was_running": simulation.stop()}


@router.post("/simulation/trigger")
def trigger_simulation(request: Request, simulation: SimulationEngine = Depends(get_simulation)):
    """Run one cycle now, waiting for any scheduled cycle in flight"""
    request_id = get_request_id(request)
    try:
        summary = simulation.run_cycle()
    except Exception as e:
        logging.error(f"Manual cycle failed: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=500, detail="Simulation cycle failed")
    return asdict(summary)


@router.patch("/simulation/config")
def update_simulation_config(request_body: SimulationConfigRequest, simulation: SimulationEngine = Depends(get_simulation)):
    """Replace mode, seed, interval or lifecycle rates on the running simulation"""
    try:
        config = simulation.update_config(**request_body.model_dump(exclude_none=True))
    except InvalidConfigurationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    logging.warning("Simulation config changed", extra={"mode": config.mode, "interval_ms": config.interval_ms})
    return config.model_dump(exclude={"time_windows"})


@router.get("/simulation/status")
def get_simulation_status(simulation: SimulationEngine = Depends(get_simulation)):
    return simulation.get_stats()


@router.get("/stats")
def get_sandbox_stats(
    db: Session = Depends(get_db),
    lifecycle: TransactionLifecycle = Depends(get_lifecycle),
    simulation: SimulationEngine = Depends(get_simulation),
):
    return {
        "users": db.query(User).count(),
        "accounts": db.query(Account).count(),
        "frozen_accounts": db.query(Account).filter(Account.is_frozen.is_(True)).count(),
        "transactions": db.query(Transaction).count(),
        "lifecycle": lifecycle.stats(),
        "simulation": simulation.get_stats(),
    }


@router.post("/reset-stats")
def reset_sandbox_stats(simulation: SimulationEngine = Depends(get_simulation)):
    simulation.reset_stats()
    return simulation.get_stats()


@router.post("/day/advance")
def advance_day(request: Request, simulation: SimulationEngine = Depends(get_simulation)):
    """Run the daily banking batch now: market, loans, compliance and risk"""
    request_id = get_request_id(request)
    try:
        return simulation.run_daily_batch()
    except Exception as e:
        logging.error(f"Daily batch failed: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=500, detail="Daily batch failed")


# Users


@router.post("/reset-user/{user_id}")
def reset_user(user_id: str, request: Request, db: Session = Depends(get_db), clock: Clock = Depends(get_clock)):
    """
    Return a user to a clean state: verified and clear, every account
    unfrozen, and alerts, risk events and compliance logs deleted.
    """
    request_id = get_request_id(request)
    users = UserRepository(db)
    user = users.get(user_id)
    if user is None:
        raise_for_failure(ErrorCode.USER_NOT_FOUND, "User not found")
    try:
        users.reset_status(user, RESET_RISK_SCORE, clock.now())
        unfrozen = AccountRepository(db).set_frozen(user_id, False, None)
        cleared = AuditRepository(db).clear_for_user(user_id)
        db.commit()
    except Exception as e:
        db.rollback()
        logging.error(f"User reset failed: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=500, detail="Internal server error")
    logging.info("User reset", extra={"user_id": user_id})
    return {"user_id": user_id, "name": user.name, "accounts_unfrozen": unfrozen, "cleared": cleared}


# Scenarios


@router.post("/market/crash")
def trigger_market_crash(
    request_body: MarketCrashRequest,
    request: Request,
    investment: InvestmentEngine = Depends(get_investment_engine),
    simulation: SimulationEngine = Depends(get_simulation),
):
    request_id = get_request_id(request)
    try:
        result = investment.trigger_market_crash(request_body.severity, simulation.random_source())
        investment.db.commit()
    except Exception as e:
        investment.db.rollback()
        logging.error(f"Market crash failed: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=500, detail="Internal server error")
    return result


@router.post("/market/recovery")
def trigger_market_recovery(
    request: Request,
    request_body: MarketRecoveryRequest = MarketRecoveryRequest(),
    investment: InvestmentEngine = Depends(get_investment_engine),
    simulation: SimulationEngine = Depends(get_simulation),
):
    request_id = get_request_id(request)
    try:
        result = investment.trigger_market_recovery(simulation.random_source(), request_body.recovery_percent)
        investment.db.commit()
    except Exception as e:
        investment.db.rollback()
        logging.error(f"Market recovery failed: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=500, detail="Internal server error")
    return result


@router.post("/fraud/trigger")
def trigger_fraud_incident(
    request: Request,
    fraud: FraudEngine = Depends(get_fraud_engine),
    simulation: SimulationEngine = Depends(get_simulation),
):
    request_id = get_request_id(request)
    try:
        incident = fraud.trigger_fraud_event(simulation.random_source())
        fraud.db.commit()
    except Exception as e:
        fraud.db.rollback()
        logging.error(f"Fraud incident failed: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=500, detail="Internal server error")
    if incident is None:
        raise HTTPException(status_code=409, detail="No active account to target")
    return incident
