"""Compliance endpoints - KYC, AML and sanctions"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request

from nova_sandbox.api.dependencies import (
    get_compliance_engine,
    get_request_id,
    get_simulation,
    raise_for_failure,
)
from nova_sandbox.api.v1.schemas import (
    AMLActionRequest,
    ComplianceLogResponse,
    KYCRequest,
    SanctionScreeningRequest,
)
from nova_sandbox.domain.models import ErrorCode
from nova_sandbox.engines.compliance import ComplianceEngine
from nova_sandbox.simulation.engine import SimulationEngine

router = APIRouter()


def _commit(compliance: ComplianceEngine, request_id: str, action: str) -> None:
    try:
        compliance.db.commit()
    except Exception as e:
        compliance.db.rollback()
        logging.error(f"{action} failed: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=500, detail="Internal server error")


@router.get("/compliance/summary")
def get_compliance_summary(compliance: ComplianceEngine = Depends(get_compliance_engine)):
    return compliance.get_compliance_summary()


@router.post("/compliance/users/{user_id}/kyc")
def verify_kyc(
    user_id: str,
    request: Request,
    request_body: Optional[KYCRequest] = None,
    compliance: ComplianceEngine = Depends(get_compliance_engine),
    simulation: SimulationEngine = Depends(get_simulation),
):
    document_type = request_body.document_type if request_body else "passport"
    status = compliance.process_kyc_verification(user_id, simulation.random_source(), document_type)
    if status is None:
        raise_for_failure(ErrorCode.USER_NOT_FOUND, "User not found")
    _commit(compliance, get_request_id(request), "KYC verification")
    return {"user_id": user_id, "kyc_status": status}


@router.post("/compliance/users/{user_id}/aml/analyze")
def analyze_aml(
    user_id: str,
    request: Request,
    amount: int = Query(..., gt=0),
    compliance: ComplianceEngine = Depends(get_compliance_engine),
):
    """Check an amount against the AML thresholds given the user's recent activity"""
    if compliance.users.get(user_id) is None:
        raise_for_failure(ErrorCode.USER_NOT_FOUND, "User not found")
    result = compliance.analyze_transaction_aml(user_id, amount)
    _commit(compliance, get_request_id(request), "AML analysis")
    return {
        "user_id": user_id,
        "flagged": result.flagged,
        "flags": [{"code": f.code, "description": f.description} for f in result.flags],
    }


@router.post("/compliance/users/{user_id}/aml/clear")
def clear_aml(
    user_id: str,
    request_body: AMLActionRequest,
    request: Request,
    compliance: ComplianceEngine = Depends(get_compliance_engine),
):
    if not compliance.clear_aml_flag(user_id, request_body.reason):
        raise_for_failure(ErrorCode.USER_NOT_FOUND, "User not found")
    _commit(compliance, get_request_id(request), "AML clear")
    return {"user_id": user_id, "aml_status": "clear"}


@router.post("/compliance/users/{user_id}/aml/block")
def block_aml(
    user_id: str,
    request_body: AMLActionRequest,
    request: Request,
    compliance: ComplianceEngine = Depends(get_compliance_engine),
):
    if not compliance.block_user_aml(user_id, request_body.reason):
        raise_for_failure(ErrorCode.USER_NOT_FOUND, "User not found")
    _commit(compliance, get_request_id(request), "AML block")
    return {"user_id": user_id, "aml_status": "blocked"}


@router.post("/compliance/users/{user_id}/sanctions")
def screen_sanctions(
    user_id: str,
    request: Request,
    request_body: Optional[SanctionScreeningRequest] = None,
    compliance: ComplianceEngine = Depends(get_compliance_engine),
    simulation: SimulationEngine = Depends(get_simulation),
):
    name = request_body.name if request_body else None
    result = compliance.perform_sanction_screening(user_id, simulation.random_source(), name)
    if result is None:
        raise_for_failure(ErrorCode.USER_NOT_FOUND, "User not found")
    _commit(compliance, get_request_id(request), "Sanction screening")
    return {
        "user_id": user_id,
        "status": result.status.value,
        "confidence": result.confidence,
        "matched_pattern": result.matched_pattern,
    }


@router.get("/compliance/users/{user_id}/logs", response_model=List[ComplianceLogResponse])
def get_compliance_logs(
    user_id: str,
    limit: int = Query(50, ge=1, le=500),
    compliance: ComplianceEngine = Depends(get_compliance_engine),
):
    return [ComplianceLogResponse.model_validate(entry) for entry in compliance.get_user_compliance_logs(user_id, limit)]
