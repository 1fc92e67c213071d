"""Loan endpoints - eligibility, applications, decisions and repayments"""

import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query, Request

from nova_sandbox.api.dependencies import get_loan_engine, get_request_id, raise_for_failure
from nova_sandbox.api.v1.schemas import (
    EligibilityResponse,
    LoanApplicationRequest,
    LoanResponse,
    RejectLoanRequest,
    ScheduledPaymentResponse,
)
from nova_sandbox.domain.amortization import generate_amortization_schedule
from nova_sandbox.domain.models import ErrorCode, LoanResult, LoanType
from nova_sandbox.engines.loans import LoanEngine

router = APIRouter()


def _finish(loans: LoanEngine, result: LoanResult, request_id: str) -> LoanResponse:
    """Commit a successful loan operation or translate its failure"""
    if not result.success:
        loans.db.rollback()
        raise_for_failure(result.code, result.error)
    try:
        loans.db.commit()
    except Exception as e:
        loans.db.rollback()
        logging.error(f"Loan commit failed: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=500, detail="Internal server error")
    return LoanResponse.model_validate(result.loan)


@router.get("/loans/summary")
def get_loan_summary(loans: LoanEngine = Depends(get_loan_engine)):
    return loans.get_loan_summary()


@router.get("/loans/eligibility", response_model=EligibilityResponse)
def check_eligibility(
    user_id: str = Query(..., description="User identifier"),
    loan_type: str = Query(..., description="student | consumer | business | emergency"),
    loans: LoanEngine = Depends(get_loan_engine),
):
    try:
        kind = LoanType(loan_type)
    except ValueError:
        raise_for_failure(ErrorCode.INVALID_LOAN_TYPE, f"Unknown loan type: {loan_type}")
    if loans.users.get(user_id) is None:
        raise_for_failure(ErrorCode.USER_NOT_FOUND, "User not found")

    eligibility = loans.check_eligibility(user_id, kind)
    loans.db.commit()
    return EligibilityResponse(
        eligible=eligibility.eligible,
        max_amount=eligibility.max_amount,
        interest_rate=eligibility.interest_rate,
        suggested_term=eligibility.suggested_term,
        reasons=eligibility.reasons,
    )


@router.post("/loans", response_model=LoanResponse, status_code=201)
def apply_for_loan(
    request_body: LoanApplicationRequest,
    request: Request,
    loans: LoanEngine = Depends(get_loan_engine),
):
    """
    Apply for a loan.

    Low-risk applicants are approved and disbursed immediately; everyone
    else gets a pending loan awaiting a manual decision.
    """
    request_id = get_request_id(request)
    if loans.users.get(request_body.user_id) is None:
        raise_for_failure(ErrorCode.USER_NOT_FOUND, "User not found")
    try:
        result = loans.apply_for_loan(
            request_body.user_id, request_body.loan_type, request_body.amount, request_body.term_months
        )
    except Exception as e:
        loans.db.rollback()
        logging.error(f"Loan application failed: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=500, detail="Internal server error")
    return _finish(loans, result, request_id)


@router.get("/loans/{loan_id}", response_model=LoanResponse)
def get_loan(loan_id: str, loans: LoanEngine = Depends(get_loan_engine)):
    loan = loans.loans.get(loan_id)
    if loan is None:
        raise_for_failure(ErrorCode.LOAN_NOT_FOUND, "Loan not found")
    return LoanResponse.model_validate(loan)


@router.get("/loans/{loan_id}/schedule", response_model=List[ScheduledPaymentResponse])
def get_loan_schedule(loan_id: str, loans: LoanEngine = Depends(get_loan_engine)):
    loan = loans.loans.get(loan_id)
    if loan is None:
        raise_for_failure(ErrorCode.LOAN_NOT_FOUND, "Loan not found")
    schedule = generate_amortization_schedule(loan.principal, loan.interest_rate, loan.term_months)
    return [
        ScheduledPaymentResponse(
            number=p.number, payment=p.payment, interest=p.interest, principal=p.principal, remaining=p.remaining
        )
        for p in schedule
    ]


@router.post("/loans/{loan_id}/approve", response_model=LoanResponse)
def approve_loan(loan_id: str, request: Request, loans: LoanEngine = Depends(get_loan_engine)):
    request_id = get_request_id(request)
    try:
        result = loans.approve_loan(loan_id)
    except Exception as e:
        loans.db.rollback()
        logging.error(f"Loan approval failed: {e}", extra={"request_id": request_id, "loan_id": loan_id})
        raise HTTPException(status_code=500, detail="Internal server error")
    return _finish(loans, result, request_id)


@router.post("/loans/{loan_id}/reject", response_model=LoanResponse)
def reject_loan(
    loan_id: str,
    request_body: RejectLoanRequest,
    request: Request,
    loans: LoanEngine = Depends(get_loan_engine),
):
    request_id = get_request_id(request)
    try:
        result = loans.reject_loan(loan_id, request_body.reason)
    except Exception as e:
        loans.db.rollback()
        logging.error(f"Loan rejection failed: {e}", extra={"request_id": request_id, "loan_id": loan_id})
        raise HTTPException(status_code=500, detail="Internal server error")
    return _finish(loans, result, request_id)


@router.post("/loans/{loan_id}/payment", response_model=LoanResponse)
def make_loan_payment(loan_id: str, request: Request, loans: LoanEngine = Depends(get_loan_engine)):
    """Collect the next installment now; a miss is recorded and returned as 400"""
    request_id = get_request_id(request)
    try:
        result = loans.process_loan_payment(loan_id)
        if not result.success and result.loan is not None and result.code == ErrorCode.INSUFFICIENT_FUNDS:
            # the miss itself is part of the loan's history
            loans.db.commit()
    except Exception as e:
        loans.db.rollback()
        logging.error(f"Loan payment failed: {e}", extra={"request_id": request_id, "loan_id": loan_id})
        raise HTTPException(status_code=500, detail="Internal server error")
    return _finish(loans, result, request_id)


@router.get("/users/{user_id}/loans", response_model=List[LoanResponse])
def list_user_loans(user_id: str, loans: LoanEngine = Depends(get_loan_engine)):
    return [LoanResponse.model_validate(loan) for loan in loans.get_user_loans(user_id)]
