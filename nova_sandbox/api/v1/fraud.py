"""Fraud endpoints - alerts, analysis and account freezes"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request

from nova_sandbox.api.dependencies import get_fraud_engine, get_request_id, raise_for_failure
from nova_sandbox.api.v1.schemas import (
    AlertStatusRequest,
    FraudAlertResponse,
    FraudCheckResponse,
    FraudSignalResponse,
    FreezeRequest,
)
from nova_sandbox.domain.models import ErrorCode, FraudAlertStatus
from nova_sandbox.engines.fraud import FraudEngine

router = APIRouter()


@router.get("/fraud/summary")
def get_fraud_summary(fraud: FraudEngine = Depends(get_fraud_engine)):
    return fraud.get_fraud_summary()


@router.get("/fraud/users/{user_id}/alerts", response_model=List[FraudAlertResponse])
def list_user_alerts(
    user_id: str,
    status: Optional[str] = Query(None, description="open | investigating | confirmed | dismissed"),
    limit: int = Query(50, ge=1, le=500),
    fraud: FraudEngine = Depends(get_fraud_engine),
):
    alerts = fraud.get_user_fraud_alerts(user_id, status, limit)
    return [FraudAlertResponse.model_validate(a) for a in alerts]


@router.post("/fraud/transactions/{transaction_id}/analyze", response_model=FraudCheckResponse)
def analyze_transaction(transaction_id: str, fraud: FraudEngine = Depends(get_fraud_engine)):
    """Score a transaction without raising alerts or freezing anything"""
    transaction = fraud.transactions.get(transaction_id)
    if transaction is None:
        raise_for_failure(ErrorCode.TRANSACTION_NOT_FOUND, "Transaction not found")

    result = fraud.analyze_transaction(transaction)
    return FraudCheckResponse(
        transaction_id=transaction.id,
        is_fraudulent=result.is_fraudulent,
        risk_score=result.risk_score,
        should_block=result.should_block,
        should_freeze=result.should_freeze,
        alerts=[
            FraudSignalResponse(
                type=s.type.value, severity=s.severity.value, score=s.score, description=s.description
            )
            for s in result.alerts
        ],
    )


@router.patch("/fraud/alerts/{alert_id}", response_model=FraudAlertResponse)
def update_alert_status(
    alert_id: str,
    request_body: AlertStatusRequest,
    request: Request,
    fraud: FraudEngine = Depends(get_fraud_engine),
):
    request_id = get_request_id(request)
    try:
        alert = fraud.update_fraud_alert_status(alert_id, FraudAlertStatus(request_body.status))
        if alert is None:
            raise HTTPException(status_code=404, detail="Alert not found")
        fraud.db.commit()
    except HTTPException:
        raise
    except Exception as e:
        fraud.db.rollback()
        logging.error(f"Alert update failed: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=500, detail="Internal server error")
    return FraudAlertResponse.model_validate(alert)


@router.post("/fraud/users/{user_id}/freeze")
def freeze_user_accounts(
    user_id: str,
    request: Request,
    request_body: Optional[FreezeRequest] = None,
    fraud: FraudEngine = Depends(get_fraud_engine),
):
    request_id = get_request_id(request)
    reason = request_body.reason if request_body else "Frozen by fraud team"
    try:
        frozen = fraud.freeze_account(user_id, reason)
        fraud.db.commit()
    except Exception as e:
        fraud.db.rollback()
        logging.error(f"Freeze failed: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=500, detail="Internal server error")
    if frozen == 0:
        raise_for_failure(ErrorCode.USER_NOT_FOUND, "No accounts for user")
    return {"user_id": user_id, "accounts_frozen": frozen}


@router.post("/fraud/users/{user_id}/unfreeze")
def unfreeze_user_accounts(user_id: str, request: Request, fraud: FraudEngine = Depends(get_fraud_engine)):
    """Unfreeze every account of the user and dismiss open alerts"""
    request_id = get_request_id(request)
    try:
        unfrozen = fraud.unfreeze_account(user_id)
        fraud.db.commit()
    except Exception as e:
        fraud.db.rollback()
        logging.error(f"Unfreeze failed: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=500, detail="Internal server error")
    if unfrozen == 0:
        raise_for_failure(ErrorCode.USER_NOT_FOUND, "No accounts for user")
    return {"user_id": user_id, "accounts_unfrozen": unfrozen}
