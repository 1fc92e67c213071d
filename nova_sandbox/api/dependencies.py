"""Dependency injection for FastAPI endpoints"""

from fastapi import Depends, HTTPException, Request
from sqlalchemy.orm import Session

from nova_sandbox.config import Settings
from nova_sandbox.domain.models import ErrorCode
from nova_sandbox.engines.compliance import ComplianceEngine
from nova_sandbox.engines.fraud import FraudEngine
from nova_sandbox.engines.investment import InvestmentEngine
from nova_sandbox.engines.lifecycle import TransactionLifecycle
from nova_sandbox.engines.loans import LoanEngine
from nova_sandbox.engines.risk import RiskEngine
from nova_sandbox.infrastructure.database.session import get_db
from nova_sandbox.simulation.chaos import ChaosController
from nova_sandbox.simulation.engine import SimulationEngine
from nova_sandbox.utils.clock import Clock

NOT_FOUND_CODES = {
    ErrorCode.ACCOUNT_NOT_FOUND,
    ErrorCode.TRANSACTION_NOT_FOUND,
    ErrorCode.USER_NOT_FOUND,
    ErrorCode.LOAN_NOT_FOUND,
}
CONFLICT_CODES = {ErrorCode.INVALID_STATUS}


def get_request_id(request: Request) -> str:
    """Extract request ID from request state"""
    return getattr(request.state, "request_id", "unknown")


def get_simulation(request: Request) -> SimulationEngine:
    return request.app.state.simulation


def get_chaos(request: Request) -> ChaosController:
    return request.app.state.chaos


def get_clock(request: Request) -> Clock:
    return request.app.state.simulation.clock


def get_app_settings(request: Request) -> Settings:
    return request.app.state.simulation.settings


def get_lifecycle(request: Request, db: Session = Depends(get_db)) -> TransactionLifecycle:
    simulation = get_simulation(request)
    return TransactionLifecycle(db, simulation.config, simulation.clock)


def get_fraud_engine(clock: Clock = Depends(get_clock), db: Session = Depends(get_db)) -> FraudEngine:
    return FraudEngine(db, clock)


def get_risk_engine(clock: Clock = Depends(get_clock), db: Session = Depends(get_db)) -> RiskEngine:
    return RiskEngine(db, clock)


def get_loan_engine(
    clock: Clock = Depends(get_clock),
    app_settings: Settings = Depends(get_app_settings),
    db: Session = Depends(get_db),
) -> LoanEngine:
    return LoanEngine(db, clock, app_settings)


def get_investment_engine(clock: Clock = Depends(get_clock), db: Session = Depends(get_db)) -> InvestmentEngine:
    return InvestmentEngine(db, clock)


def get_compliance_engine(
    clock: Clock = Depends(get_clock),
    app_settings: Settings = Depends(get_app_settings),
    db: Session = Depends(get_db),
) -> ComplianceEngine:
    return ComplianceEngine(db, clock, app_settings)


def error_status(code: ErrorCode) -> int:
    if code in NOT_FOUND_CODES:
        return 404
    if code in CONFLICT_CODES:
        return 409
    return 400


def raise_for_failure(code: ErrorCode, message: str) -> None:
    """Translate a typed domain failure into an HTTP error"""
    raise HTTPException(status_code=error_status(code), detail={"code": code.value, "message": message})
