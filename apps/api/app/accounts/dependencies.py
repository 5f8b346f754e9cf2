from __future__ import annotations

import uuid

from fastapi import Depends, HTTPException, status
from sqlalchemy.orm import Session

from app.accounts.models import Account
from app.core.auth import AuthUser, get_current_user
from app.core.database import get_db


def get_current_account(
    auth_user: AuthUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Account:
    try:
        account_id = uuid.UUID(auth_user.sub)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized: Invalid token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    account = db.get(Account, account_id)
    if account is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized: User not found",
            headers={"WWW-Authenticate": "Bearer"},
        )
    if account.status != "active":
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Account is suspended")
    return account
