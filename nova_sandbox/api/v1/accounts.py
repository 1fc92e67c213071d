"""Read-only user and account endpoints"""

from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from nova_sandbox.api.dependencies import raise_for_failure
from nova_sandbox.api.v1.schemas import AccountResponse
from nova_sandbox.domain.models import ErrorCode
from nova_sandbox.infrastructure.database.repositories import AccountRepository, UserRepository
from nova_sandbox.infrastructure.database.session import get_db

router = APIRouter()


@router.get("/users")
def list_users(db: Session = Depends(get_db)):
    return [
        {
            "id": u.id,
            "name": u.name,
            "email": u.email,
            "persona": u.persona,
            "risk_score": u.risk_score,
            "kyc_status": u.kyc_status,
            "aml_status": u.aml_status,
            "sanction_status": u.sanction_status,
        }
        for u in UserRepository(db).list_all()
    ]


@router.get("/users/{user_id}/accounts", response_model=List[AccountResponse])
def list_user_accounts(user_id: str, db: Session = Depends(get_db)):
    if UserRepository(db).get(user_id) is None:
        raise_for_failure(ErrorCode.USER_NOT_FOUND, "User not found")
    return [AccountResponse.model_validate(a) for a in AccountRepository(db).list_for_user(user_id)]


@router.get("/accounts/{account_id}", response_model=AccountResponse)
def get_account(account_id: str, db: Session = Depends(get_db)):
    account = AccountRepository(db).get(account_id)
    if account is None:
        raise_for_failure(ErrorCode.ACCOUNT_NOT_FOUND, "Account not found")
    return AccountResponse.model_validate(account)
