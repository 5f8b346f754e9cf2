from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from fastapi import HTTPException, status
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app import audit, events
from app.accounts.models import Account
from app.accounts.passwords import hash_password, verify_password
from app.accounts.schemas import DemoSignupRequest, ProfileRead, ProfileUpdate, SignupRequest
from app.core.auth import create_access_token
from app.core.config import get_settings
from app.metrics import observe_credits_granted
from app.platform.ledger.service import LedgerStore, ledger_store


logger = logging.getLogger("app.accounts")

_DEMO_DEFAULTS = {
    "full_name": "Demo User",
    "password": "password123",
    "company_name": "Demo Corp",
    "industry": "Technology",
    "role": "Sales Manager",
}


@dataclass(slots=True)
class AccountService:
    entity_type = "account"
    store: LedgerStore = field(default_factory=lambda: ledger_store)

    def signup(self, session: Session, dto: SignupRequest) -> Account:
        settings = get_settings()
        if self.find_by_email(session, str(dto.email)) is not None:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Email already registered")

        return self._create_account(
            session,
            full_name=dto.full_name.strip(),
            email=str(dto.email),
            password=dto.password,
            company_name=dto.company_name,
            industry=dto.industry,
            role=dto.role,
            verified=True,
            starting_credits=settings.signup_starting_credits,
            grant_reason="signup",
        )

    def signup_demo(self, session: Session, dto: DemoSignupRequest) -> tuple[Account, bool]:
        """Return the demo account, creating it on first use. The flag is True when created."""
        settings = get_settings()
        email = str(dto.email) if dto.email is not None else settings.demo_account_email
        existing = self.find_by_email(session, email)
        if existing is not None:
            logger.info("account.demo_reused", extra={"account_id": str(existing.id)})
            return existing, False

        account = self._create_account(
            session,
            full_name=dto.full_name or _DEMO_DEFAULTS["full_name"],
            email=email,
            password=dto.password or _DEMO_DEFAULTS["password"],
            company_name=dto.company_name or _DEMO_DEFAULTS["company_name"],
            industry=dto.industry or _DEMO_DEFAULTS["industry"],
            role=dto.role or _DEMO_DEFAULTS["role"],
            verified=True,
            starting_credits=settings.demo_starting_credits,
            grant_reason="demo_signup",
        )
        return account, True

    def login(self, session: Session, email: str, password: str) -> Account:
        account = self.find_by_email(session, email)
        if account is None or not verify_password(password, account.password_hash):
            logger.info("account.login_failed")
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid credentials",
                headers={"WWW-Authenticate": "Bearer"},
            )
        if account.status != "active":
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Account is suspended")
        logger.info("account.login", extra={"account_id": str(account.id)})
        return account

    def issue_token(self, account: Account) -> str:
        return create_access_token(str(account.id), roles=["user"])

    def find_by_email(self, session: Session, email: str) -> Account | None:
        return session.scalar(select(Account).where(func.lower(Account.email) == email.strip().lower()))

    def get_profile(self, account: Account) -> ProfileRead:
        return ProfileRead.model_validate(account)

    def update_profile(self, session: Session, account: Account, dto: ProfileUpdate) -> ProfileRead:
        changes = dto.model_dump(exclude_unset=True)
        if "full_name" in changes and changes["full_name"] is None:
            raise HTTPException(status_code=422, detail="full_name cannot be null")

        before = self._snapshot(account)
        for field_name, value in changes.items():
            setattr(account, field_name, value.strip() if isinstance(value, str) else value)
        session.commit()
        session.refresh(account)
        after = self._snapshot(account)

        audit.record(
            actor_user_id=str(account.id),
            entity_type=self.entity_type,
            entity_id=str(account.id),
            action="update",
            before=before,
            after=after,
        )
        events.publish("account.profile_updated", account.id, {"fields": sorted(changes)})
        return ProfileRead.model_validate(account)

    def _create_account(
        self,
        session: Session,
        *,
        full_name: str,
        email: str,
        password: str,
        company_name: str | None,
        industry: str | None,
        role: str | None,
        verified: bool,
        starting_credits: int,
        grant_reason: str,
    ) -> Account:
        account = Account(
            full_name=full_name,
            email=email.strip().lower(),
            password_hash=hash_password(password),
            company_name=company_name,
            industry=industry,
            role=role,
            verified=verified,
        )
        session.add(account)
        try:
            session.flush()
        except IntegrityError:
            session.rollback()
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Email already registered")

        # The account row and its opening grant commit together.
        if starting_credits > 0:
            self.store.record_credit(
                session,
                account.id,
                starting_credits,
                "Initial account credits",
                operation=grant_reason,
            )
            observe_credits_granted(grant_reason, starting_credits)
        else:
            session.commit()
        session.refresh(account)

        audit.record(
            actor_user_id=str(account.id),
            entity_type=self.entity_type,
            entity_id=str(account.id),
            action="create",
            before=None,
            after=self._snapshot(account),
        )
        events.publish("account.created", account.id, {"email": account.email, "credits": account.credits})
        logger.info("account.created", extra={"account_id": str(account.id), "balance": account.credits})
        return account

    @staticmethod
    def _snapshot(account: Account) -> dict[str, Any]:
        return {
            "full_name": account.full_name,
            "email": account.email,
            "company_name": account.company_name,
            "industry": account.industry,
            "role": account.role,
            "status": account.status,
        }


account_service = AccountService()
