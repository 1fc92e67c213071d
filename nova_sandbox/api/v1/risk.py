"""Risk endpoints - composite scores and risk events"""

import logging
from dataclasses import asdict
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query, Request

from nova_sandbox.api.dependencies import get_request_id, get_risk_engine, raise_for_failure
from nova_sandbox.api.v1.schemas import RiskAssessmentResponse, RiskEventResponse
from nova_sandbox.domain.models import ErrorCode
from nova_sandbox.engines.risk import RiskEngine

router = APIRouter()


@router.get("/risk/summary")
def get_risk_summary(risk: RiskEngine = Depends(get_risk_engine)):
    return risk.get_risk_summary()


@router.get("/risk/users/{user_id}", response_model=RiskAssessmentResponse)
def get_user_risk(user_id: str, request: Request, risk: RiskEngine = Depends(get_risk_engine)):
    """Recalculate and persist the user's risk score"""
    request_id = get_request_id(request)
    try:
        assessment = risk.calculate_user_risk_score(user_id)
        risk.db.commit()
    except Exception as e:
        risk.db.rollback()
        logging.error(f"Risk calculation failed: {e}", extra={"request_id": request_id, "user_id": user_id})
        raise HTTPException(status_code=500, detail="Internal server error")

    if assessment is None:
        raise_for_failure(ErrorCode.USER_NOT_FOUND, "User not found")
    return RiskAssessmentResponse(
        user_id=user_id,
        score=assessment.score,
        level=assessment.level.value,
        factors=asdict(assessment.factors),
        recommendations=assessment.recommendations,
    )


@router.get("/risk/users/{user_id}/events", response_model=List[RiskEventResponse])
def get_user_risk_events(
    user_id: str,
    limit: int = Query(50, ge=1, le=500),
    risk: RiskEngine = Depends(get_risk_engine),
):
    return [RiskEventResponse.model_validate(e) for e in risk.get_user_risk_events(user_id, limit)]
