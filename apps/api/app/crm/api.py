from __future__ import annotations

import uuid
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from app.accounts.dependencies import get_current_account
from app.accounts.models import Account
from app.api.errors import http_exception_response
from app.core.database import get_db
from app.crm.schemas import (
    CompanyCreate,
    CompanyList,
    CompanyRead,
    CompanyUpdate,
    ContactCreate,
    ContactList,
    ContactRead,
    ContactUpdate,
)
from app.crm.service import company_service, contact_service


contacts_router = APIRouter(prefix="/api/contacts", tags=["crm.contacts"])
companies_router = APIRouter(prefix="/api/companies", tags=["crm.companies"])


@contacts_router.get("", response_model=ContactList)
def list_contacts(
    db: Session = Depends(get_db),
    account: Account = Depends(get_current_account),
) -> ContactList:
    return ContactList(contacts=contact_service.list_contacts(db, account.id))


@contacts_router.post("", response_model=ContactRead, status_code=status.HTTP_201_CREATED)
def create_contact(
    request: Request,
    dto: ContactCreate,
    db: Session = Depends(get_db),
    account: Account = Depends(get_current_account),
) -> ContactRead | JSONResponse:
    try:
        return contact_service.create_contact(db, account.id, dto)
    except HTTPException as exc:
        return http_exception_response(request, exc, code="crm_contact_create_failed")


@contacts_router.get("/{contact_id}", response_model=ContactRead)
def get_contact(
    request: Request,
    contact_id: uuid.UUID,
    db: Session = Depends(get_db),
    account: Account = Depends(get_current_account),
) -> ContactRead | JSONResponse:
    try:
        return contact_service.get_contact(db, account.id, contact_id)
    except HTTPException as exc:
        return http_exception_response(request, exc, code="crm_contact_get_failed")


@contacts_router.patch("/{contact_id}", response_model=ContactRead)
def patch_contact(
    request: Request,
    contact_id: uuid.UUID,
    dto: ContactUpdate,
    db: Session = Depends(get_db),
    account: Account = Depends(get_current_account),
) -> ContactRead | JSONResponse:
    try:
        return contact_service.update_contact(db, account.id, contact_id, dto)
    except HTTPException as exc:
        return http_exception_response(request, exc, code="crm_contact_update_failed")


@contacts_router.delete("/{contact_id}", response_model=None)
def delete_contact(
    request: Request,
    contact_id: uuid.UUID,
    db: Session = Depends(get_db),
    account: Account = Depends(get_current_account),
) -> Any:
    try:
        contact_service.delete_contact(db, account.id, contact_id)
        return {"status": "deleted"}
    except HTTPException as exc:
        return http_exception_response(request, exc, code="crm_contact_delete_failed")


@companies_router.get("", response_model=CompanyList)
def list_companies(
    db: Session = Depends(get_db),
    account: Account = Depends(get_current_account),
) -> CompanyList:
    return CompanyList(companies=company_service.list_companies(db, account.id))


@companies_router.post("", response_model=CompanyRead, status_code=status.HTTP_201_CREATED)
def create_company(
    request: Request,
    dto: CompanyCreate,
    db: Session = Depends(get_db),
    account: Account = Depends(get_current_account),
) -> CompanyRead | JSONResponse:
    try:
        return company_service.create_company(db, account.id, dto)
    except HTTPException as exc:
        return http_exception_response(request, exc, code="crm_company_create_failed")


@companies_router.get("/{company_id}", response_model=CompanyRead)
def get_company(
    request: Request,
    company_id: uuid.UUID,
    db: Session = Depends(get_db),
    account: Account = Depends(get_current_account),
) -> CompanyRead | JSONResponse:
    try:
        return company_service.get_company(db, account.id, company_id)
    except HTTPException as exc:
        return http_exception_response(request, exc, code="crm_company_get_failed")


@companies_router.patch("/{company_id}", response_model=CompanyRead)
def patch_company(
    request: Request,
    company_id: uuid.UUID,
    dto: CompanyUpdate,
    db: Session = Depends(get_db),
    account: Account = Depends(get_current_account),
) -> CompanyRead | JSONResponse:
    try:
        return company_service.update_company(db, account.id, company_id, dto)
    except HTTPException as exc:
        return http_exception_response(request, exc, code="crm_company_update_failed")


@companies_router.delete("/{company_id}", response_model=None)
def delete_company(
    request: Request,
    company_id: uuid.UUID,
    db: Session = Depends(get_db),
    account: Account = Depends(get_current_account),
) -> Any:
    try:
        company_service.delete_company(db, account.id, company_id)
        return {"status": "deleted"}
    except HTTPException as exc:
        return http_exception_response(request, exc, code="crm_company_delete_failed")
