from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from app.accounts.dependencies import get_current_account
from app.accounts.models import Account
from app.accounts.schemas import (
    AccountSummary,
    AuthTokenRead,
    DemoSignupRequest,
    LoginRequest,
    ProfileRead,
    ProfileUpdate,
    SignupRequest,
)
from app.accounts.service import account_service
from app.api.errors import http_exception_response
from app.core.database import get_db


auth_router = APIRouter(prefix="/api/auth", tags=["auth"])
user_router = APIRouter(prefix="/api/user", tags=["user"])


def _token_response(account: Account, message: str) -> AuthTokenRead:
    return AuthTokenRead(
        message=message,
        token=account_service.issue_token(account),
        user=AccountSummary.model_validate(account),
    )


@auth_router.post("/signup", response_model=AuthTokenRead, status_code=status.HTTP_201_CREATED)
def signup(
    request: Request,
    dto: SignupRequest,
    db: Session = Depends(get_db),
) -> AuthTokenRead | JSONResponse:
    try:
        account = account_service.signup(db, dto)
        return _token_response(account, "Account created successfully")
    except HTTPException as exc:
        return http_exception_response(request, exc, code="auth_signup_failed")


@auth_router.post("/signup/demo", response_model=AuthTokenRead, status_code=status.HTTP_201_CREATED)
def signup_demo(
    request: Request,
    response: Response,
    dto: DemoSignupRequest | None = None,
    db: Session = Depends(get_db),
) -> AuthTokenRead | JSONResponse:
    try:
        account, created = account_service.signup_demo(db, dto or DemoSignupRequest())
        if not created:
            response.status_code = status.HTTP_200_OK
            return _token_response(account, "Demo account already exists")
        return _token_response(account, "Demo account created successfully")
    except HTTPException as exc:
        return http_exception_response(request, exc, code="auth_demo_signup_failed")


@auth_router.post("/login", response_model=AuthTokenRead)
def login(
    request: Request,
    dto: LoginRequest,
    db: Session = Depends(get_db),
) -> AuthTokenRead | JSONResponse:
    try:
        account = account_service.login(db, str(dto.email), dto.password)
        return _token_response(account, "Login successful")
    except HTTPException as exc:
        return http_exception_response(request, exc, code="auth_login_failed")


@user_router.get("/profile", response_model=ProfileRead)
def get_profile(account: Account = Depends(get_current_account)) -> ProfileRead:
    return account_service.get_profile(account)


@user_router.patch("/profile", response_model=ProfileRead)
def update_profile(
    request: Request,
    dto: ProfileUpdate,
    db: Session = Depends(get_db),
    account: Account = Depends(get_current_account),
) -> ProfileRead | JSONResponse:
    try:
        return account_service.update_profile(db, account, dto)
    except HTTPException as exc:
        return http_exception_response(request, exc, code="user_profile_update_failed")
