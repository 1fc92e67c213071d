"""Transaction lifecycle endpoints - authorize, post, cancel and batch resolution"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request

from nova_sandbox.api.dependencies import get_lifecycle, get_request_id, get_simulation, raise_for_failure
from nova_sandbox.api.v1.schemas import (
    CancelTransactionRequest,
    PendingResolutionResponse,
    PostTransactionRequest,
    TransactionCreateRequest,
    TransactionResponse,
)
from nova_sandbox.domain.merchants import transaction_reference
from nova_sandbox.domain.models import ErrorCode
from nova_sandbox.engines.lifecycle import TransactionLifecycle
from nova_sandbox.simulation.engine import SimulationEngine

router = APIRouter()


@router.post("/transactions", response_model=TransactionResponse, status_code=201)
def create_transaction(
    request_body: TransactionCreateRequest,
    request: Request,
    lifecycle: TransactionLifecycle = Depends(get_lifecycle),
    simulation: SimulationEngine = Depends(get_simulation),
):
    """
    Authorize a transaction and place its hold.

    Returns 400 for frozen accounts, exceeded limits or insufficient funds
    and 404 for unknown accounts.
    """
    request_id = get_request_id(request)
    reference = request_body.reference or transaction_reference(simulation.random_source(), simulation.clock.now())
    try:
        result = lifecycle.create(
            account_id=request_body.account_id,
            type=request_body.type,
            amount=request_body.amount,
            category=request_body.category,
            merchant=request_body.merchant,
            description=request_body.description,
            location=request_body.location,
            reference=reference,
        )
    except Exception as e:
        logging.error(f"Transaction create failed: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=500, detail="Internal server error")

    if not result.success:
        raise_for_failure(result.code, result.error)
    return TransactionResponse.model_validate(result.transaction)


@router.get("/transactions/stats")
def get_transaction_stats(lifecycle: TransactionLifecycle = Depends(get_lifecycle)):
    return lifecycle.stats()


@router.post("/transactions/process-pending", response_model=PendingResolutionResponse)
def process_pending_transactions(
    request: Request,
    lifecycle: TransactionLifecycle = Depends(get_lifecycle),
):
    """Resolve every pending transaction whose post time has passed"""
    request_id = get_request_id(request)
    try:
        resolution = lifecycle.process_pending()
    except Exception as e:
        logging.error(f"Pending resolution failed: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=500, detail="Internal server error")
    return PendingResolutionResponse(
        posted=resolution.posted,
        canceled=resolution.canceled,
        amount_changed=resolution.amount_changed,
        failed=resolution.failed,
    )


@router.get("/transactions/{transaction_id}", response_model=TransactionResponse)
def get_transaction(transaction_id: str, lifecycle: TransactionLifecycle = Depends(get_lifecycle)):
    transaction = lifecycle.transactions.get(transaction_id)
    if transaction is None:
        raise_for_failure(ErrorCode.TRANSACTION_NOT_FOUND, "Transaction not found")
    return TransactionResponse.model_validate(transaction)


@router.post("/transactions/{transaction_id}/post", response_model=TransactionResponse)
def post_transaction(
    transaction_id: str,
    request: Request,
    request_body: Optional[PostTransactionRequest] = None,
    lifecycle: TransactionLifecycle = Depends(get_lifecycle),
):
    request_id = get_request_id(request)
    final_amount = request_body.final_amount if request_body else None
    try:
        result = lifecycle.post(transaction_id, final_amount)
    except Exception as e:
        logging.error(f"Transaction post failed: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=500, detail="Internal server error")

    if not result.success:
        raise_for_failure(result.code, result.error)
    return TransactionResponse.model_validate(result.transaction)


@router.post("/transactions/{transaction_id}/cancel", response_model=TransactionResponse)
def cancel_transaction(
    transaction_id: str,
    request: Request,
    request_body: Optional[CancelTransactionRequest] = None,
    lifecycle: TransactionLifecycle = Depends(get_lifecycle),
):
    request_id = get_request_id(request)
    reason = request_body.reason if request_body else None
    try:
        result = lifecycle.cancel(transaction_id, reason)
    except Exception as e:
        logging.error(f"Transaction cancel failed: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=500, detail="Internal server error")

    if not result.success:
        raise_for_failure(result.code, result.error)
    return TransactionResponse.model_validate(result.transaction)


@router.get("/accounts/{account_id}/transactions", response_model=List[TransactionResponse])
def list_account_transactions(
    account_id: str,
    status: Optional[str] = Query(None, description="pending | posted | canceled"),
    limit: int = Query(50, ge=1, le=500),
    lifecycle: TransactionLifecycle = Depends(get_lifecycle),
):
    if lifecycle.accounts.get(account_id) is None:
        raise_for_failure(ErrorCode.ACCOUNT_NOT_FOUND, "Account not found")
    transactions = lifecycle.transactions.list_for_account(account_id, limit=limit, status=status)
    return [TransactionResponse.model_validate(t) for t in transactions]
