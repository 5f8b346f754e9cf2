from __future__ import annotations

import logging
import uuid

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from app import audit
from app.accounts.dependencies import get_current_account
from app.accounts.models import Account
from app.api.errors import error_response
from app.core.auth import AuthUser
from app.core.database import get_db
from app.core.rbac import require_roles
from app.metrics import observe_credits_granted
from app.platform.ledger.errors import AccountNotFoundError, InvalidAmountError
from app.platform.ledger.schemas import (
    CreditBalanceRead,
    CreditGrantRead,
    CreditGrantRequest,
    CreditTransactionsRead,
    LedgerEntryRead,
)
from app.platform.ledger.service import ledger_store


logger = logging.getLogger("app.platform.ledger.api")

router = APIRouter(prefix="/api/user", tags=["credits"])
admin_router = APIRouter(prefix="/api/admin", tags=["credits.admin"])


@router.get("/credits", response_model=CreditBalanceRead)
def get_credits(
    db: Session = Depends(get_db),
    account: Account = Depends(get_current_account),
) -> CreditBalanceRead:
    return CreditBalanceRead(credits=ledger_store.get_balance(db, account.id))


@router.get("/credit-transactions", response_model=CreditTransactionsRead)
def list_credit_transactions(
    db: Session = Depends(get_db),
    account: Account = Depends(get_current_account),
) -> CreditTransactionsRead:
    entries = ledger_store.list_transactions(db, account.id)
    return CreditTransactionsRead(transactions=[LedgerEntryRead.model_validate(item) for item in entries])


@admin_router.post("/accounts/{account_id}/credits", response_model=CreditGrantRead, status_code=status.HTTP_201_CREATED)
def grant_credits(
    request: Request,
    account_id: uuid.UUID,
    payload: CreditGrantRequest,
    db: Session = Depends(get_db),
    admin: AuthUser = Depends(require_roles("billing.admin")),
) -> CreditGrantRead | JSONResponse:
    try:
        balance = ledger_store.record_credit(db, account_id, payload.amount, payload.description, operation="admin_grant")
    except AccountNotFoundError as exc:
        return error_response(
            request,
            status_code=status.HTTP_404_NOT_FOUND,
            code="account_not_found",
            message=str(exc),
            details={"account_id": str(account_id)},
        )
    except InvalidAmountError as exc:
        return error_response(
            request,
            status_code=422,
            code="invalid_credit_amount",
            message=str(exc),
            details={"amount": payload.amount},
        )

    observe_credits_granted("admin_grant", payload.amount)
    audit.record(
        actor_user_id=admin.sub,
        entity_type="account.credits",
        entity_id=str(account_id),
        action="grant",
        before={"credits": balance - payload.amount},
        after={"credits": balance},
    )
    logger.info(
        "credits.granted",
        extra={"account_id": str(account_id), "cost": payload.amount, "balance": balance},
    )
    return CreditGrantRead(account_id=account_id, credits=balance)
