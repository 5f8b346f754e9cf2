from __future__ import annotations

from uuid import UUID

from pydantic import BaseModel, Field

from app.crm.schemas import ContactRead
from app.integrations.crm_sync import CRMType
from app.integrations.messages import MessagePurpose, MessageTone


class BillableResponse(BaseModel):
    credits_used: int
    credits_remaining: int


class SearchRequest(BaseModel):
    job_title: str | None = None
    company: str | None = None
    industry: str | None = None
    location: str | None = None


class SearchResponse(BillableResponse):
    results: list[ContactRead] = Field(default_factory=list)


class RevealEmailRequest(BaseModel):
    contact_id: UUID


class RevealEmailResponse(BillableResponse):
    email: str
    contact: ContactRead


class EnrichContactRequest(BaseModel):
    contact_id: UUID
    options: list[str] = Field(default_factory=list)


class EnrichContactResponse(BillableResponse):
    success: bool = True
    message: str
    contact: ContactRead


class ContactMessageRequest(BaseModel):
    contact_id: UUID
    purpose: MessagePurpose
    tone: MessageTone
    custom_prompt: str | None = Field(default=None, max_length=2000)


class FreeformMessageRequest(BaseModel):
    contact_full_name: str = Field(min_length=1)
    user_full_name: str = Field(min_length=1)
    purpose: MessagePurpose
    tone: MessageTone
    contact_job_title: str | None = None
    contact_company_name: str | None = None
    user_job_title: str | None = None
    user_company_name: str | None = None


class GeneratedMessageResponse(BillableResponse):
    message: str


class FindEmailRequest(BaseModel):
    first_name: str = Field(min_length=1)
    last_name: str = Field(min_length=1)
    domain_or_company: str = Field(min_length=1)


class FindEmailResponse(BillableResponse):
    found: bool
    email: str | None


class VerifyEmailRequest(BaseModel):
    email: str = Field(min_length=1, max_length=320)


class VerifyEmailResponse(BillableResponse):
    success: bool = True
    is_valid: bool


class SendEmailRequest(BaseModel):
    contact_id: UUID
    subject: str = Field(min_length=1, max_length=998)
    message: str = Field(min_length=1)


class SendEmailResponse(BillableResponse):
    success: bool = True
    message: str
    message_id: str
    contact: ContactRead


class CRMImportRequest(BaseModel):
    source: CRMType


class CRMImportResponse(BillableResponse):
    message: str
    count: int


class CRMExportContactsRequest(BaseModel):
    destination: CRMType
    contact_ids: list[UUID] = Field(min_length=1)


class CRMExportCompaniesRequest(BaseModel):
    destination: CRMType
    company_ids: list[UUID] = Field(min_length=1)


class ExportResultRead(BaseModel):
    record_id: UUID
    success: bool
    external_id: str | None = None
    error: str | None = None


class CRMExportResponse(BillableResponse):
    success: bool
    message: str
    results: list[ExportResultRead] = Field(default_factory=list)


class MarkMessageSentRequest(BaseModel):
    contact_id: UUID
    message: str = Field(min_length=1)
    subject: str | None = None


class LinkedInConnectRequest(BaseModel):
    contact_id: UUID
    message: str | None = None


class OutreachResponse(BaseModel):
    success: bool = True
    message: str
    contact: ContactRead


class CRMConnectionRead(BaseModel):
    type: CRMType
    connected: bool
    message: str


class CRMConnectionsRead(BaseModel):
    connections: list[CRMConnectionRead] = Field(default_factory=list)
