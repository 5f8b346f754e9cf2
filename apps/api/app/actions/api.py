from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from app.accounts.dependencies import get_current_account
from app.accounts.models import Account
from app.actions.schemas import (
    CRMConnectionsRead,
    CRMExportCompaniesRequest,
    CRMExportContactsRequest,
    CRMExportResponse,
    CRMImportRequest,
    CRMImportResponse,
    ContactMessageRequest,
    EnrichContactRequest,
    EnrichContactResponse,
    FindEmailRequest,
    FindEmailResponse,
    FreeformMessageRequest,
    GeneratedMessageResponse,
    LinkedInConnectRequest,
    MarkMessageSentRequest,
    OutreachResponse,
    RevealEmailRequest,
    RevealEmailResponse,
    SearchRequest,
    SearchResponse,
    SendEmailRequest,
    SendEmailResponse,
    VerifyEmailRequest,
    VerifyEmailResponse,
)
from app.actions.service import action_service
from app.api.errors import http_exception_response
from app.core.database import get_db
from app.integrations.registry import Providers, get_providers


router = APIRouter(prefix="/api", tags=["actions"])


def _action_error(request: Request, exc: HTTPException, code: str) -> JSONResponse:
    if exc.status_code == status.HTTP_402_PAYMENT_REQUIRED:
        code = "insufficient_credits"
    elif exc.status_code == status.HTTP_502_BAD_GATEWAY:
        code = "provider_unavailable"
    return http_exception_response(request, exc, code=code)


@router.post("/enrich/search", response_model=SearchResponse)
def search_contacts(
    request: Request,
    dto: SearchRequest,
    db: Session = Depends(get_db),
    account: Account = Depends(get_current_account),
    providers: Providers = Depends(get_providers),
) -> SearchResponse | JSONResponse:
    try:
        return action_service.search(db, account, providers, dto)
    except HTTPException as exc:
        return _action_error(request, exc, "enrich_search_failed")


@router.post("/enrich/reveal-email", response_model=RevealEmailResponse)
def reveal_email(
    request: Request,
    dto: RevealEmailRequest,
    db: Session = Depends(get_db),
    account: Account = Depends(get_current_account),
    providers: Providers = Depends(get_providers),
) -> RevealEmailResponse | JSONResponse:
    try:
        return action_service.reveal_email(db, account, providers, dto)
    except HTTPException as exc:
        return _action_error(request, exc, "enrich_reveal_email_failed")


@router.post("/enrich/contact", response_model=EnrichContactResponse)
def enrich_contact(
    request: Request,
    dto: EnrichContactRequest,
    db: Session = Depends(get_db),
    account: Account = Depends(get_current_account),
    providers: Providers = Depends(get_providers),
) -> EnrichContactResponse | JSONResponse:
    try:
        return action_service.enrich_contact(db, account, providers, dto)
    except HTTPException as exc:
        return _action_error(request, exc, "enrich_contact_failed")


@router.post("/ai-writer/generate", response_model=GeneratedMessageResponse)
def generate_contact_message(
    request: Request,
    dto: ContactMessageRequest,
    db: Session = Depends(get_db),
    account: Account = Depends(get_current_account),
    providers: Providers = Depends(get_providers),
) -> GeneratedMessageResponse | JSONResponse:
    try:
        return action_service.generate_for_contact(db, account, providers, dto)
    except HTTPException as exc:
        return _action_error(request, exc, "message_generate_failed")


@router.post("/message/generate", response_model=GeneratedMessageResponse)
def generate_message(
    request: Request,
    dto: FreeformMessageRequest,
    db: Session = Depends(get_db),
    account: Account = Depends(get_current_account),
    providers: Providers = Depends(get_providers),
) -> GeneratedMessageResponse | JSONResponse:
    try:
        return action_service.generate_freeform(db, account, providers, dto)
    except HTTPException as exc:
        return _action_error(request, exc, "message_generate_failed")


@router.post("/email/find", response_model=FindEmailResponse)
def find_email(
    request: Request,
    dto: FindEmailRequest,
    db: Session = Depends(get_db),
    account: Account = Depends(get_current_account),
    providers: Providers = Depends(get_providers),
) -> FindEmailResponse | JSONResponse:
    try:
        return action_service.find_email(db, account, providers, dto)
    except HTTPException as exc:
        return _action_error(request, exc, "email_find_failed")


@router.post("/verify-email", response_model=VerifyEmailResponse)
def verify_email(
    request: Request,
    dto: VerifyEmailRequest,
    db: Session = Depends(get_db),
    account: Account = Depends(get_current_account),
    providers: Providers = Depends(get_providers),
) -> VerifyEmailResponse | JSONResponse:
    try:
        return action_service.verify_email(db, account, providers, dto)
    except HTTPException as exc:
        return _action_error(request, exc, "email_verify_failed")


@router.post("/email/send", response_model=SendEmailResponse)
def send_email(
    request: Request,
    dto: SendEmailRequest,
    db: Session = Depends(get_db),
    account: Account = Depends(get_current_account),
    providers: Providers = Depends(get_providers),
) -> SendEmailResponse | JSONResponse:
    try:
        return action_service.send_email(db, account, providers, dto)
    except HTTPException as exc:
        return _action_error(request, exc, "email_send_failed")


@router.post("/crm/import/contacts", response_model=CRMImportResponse)
def import_contacts(
    request: Request,
    dto: CRMImportRequest,
    db: Session = Depends(get_db),
    account: Account = Depends(get_current_account),
    providers: Providers = Depends(get_providers),
) -> CRMImportResponse | JSONResponse:
    try:
        return action_service.import_contacts(db, account, providers, dto)
    except HTTPException as exc:
        return _action_error(request, exc, "crm_import_failed")


@router.post("/crm/import/companies", response_model=CRMImportResponse)
def import_companies(
    request: Request,
    dto: CRMImportRequest,
    db: Session = Depends(get_db),
    account: Account = Depends(get_current_account),
    providers: Providers = Depends(get_providers),
) -> CRMImportResponse | JSONResponse:
    try:
        return action_service.import_companies(db, account, providers, dto)
    except HTTPException as exc:
        return _action_error(request, exc, "crm_import_failed")


@router.post("/crm/export/contacts", response_model=CRMExportResponse)
def export_contacts(
    request: Request,
    dto: CRMExportContactsRequest,
    db: Session = Depends(get_db),
    account: Account = Depends(get_current_account),
    providers: Providers = Depends(get_providers),
) -> CRMExportResponse | JSONResponse:
    try:
        return action_service.export_contacts(db, account, providers, dto)
    except HTTPException as exc:
        return _action_error(request, exc, "crm_export_failed")


@router.post("/crm/export/companies", response_model=CRMExportResponse)
def export_companies(
    request: Request,
    dto: CRMExportCompaniesRequest,
    db: Session = Depends(get_db),
    account: Account = Depends(get_current_account),
    providers: Providers = Depends(get_providers),
) -> CRMExportResponse | JSONResponse:
    try:
        return action_service.export_companies(db, account, providers, dto)
    except HTTPException as exc:
        return _action_error(request, exc, "crm_export_failed")


@router.post("/ai-writer/send-email", response_model=OutreachResponse)
def mark_message_sent(
    request: Request,
    dto: MarkMessageSentRequest,
    db: Session = Depends(get_db),
    account: Account = Depends(get_current_account),
) -> OutreachResponse | JSONResponse:
    try:
        return action_service.mark_message_sent(db, account, dto)
    except HTTPException as exc:
        return _action_error(request, exc, "message_send_failed")


@router.post("/linkedin/connect", response_model=OutreachResponse)
def linkedin_connect(
    request: Request,
    dto: LinkedInConnectRequest,
    db: Session = Depends(get_db),
    account: Account = Depends(get_current_account),
) -> OutreachResponse | JSONResponse:
    try:
        return action_service.linkedin_connect(db, account, dto)
    except HTTPException as exc:
        return _action_error(request, exc, "linkedin_connect_failed")


@router.get("/crm/connection/status", response_model=CRMConnectionsRead)
def crm_connection_status(
    account: Account = Depends(get_current_account),
    providers: Providers = Depends(get_providers),
) -> CRMConnectionsRead:
    return action_service.crm_connection_status(providers)
