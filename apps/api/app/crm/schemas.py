from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field


class CompanyCreate(BaseModel):
    name: str = Field(min_length=1)
    industry: str | None = None
    website: str | None = None
    size: str | None = None
    location: str | None = None
    description: str | None = None
    phone: str | None = None
    linkedin_url: str | None = None
    employee_count: int | None = Field(default=None, ge=0)


class CompanyUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str | None = Field(default=None, min_length=1)
    industry: str | None = None
    website: str | None = None
    size: str | None = None
    location: str | None = None
    description: str | None = None
    phone: str | None = None
    linkedin_url: str | None = None
    employee_count: int | None = Field(default=None, ge=0)


class CompanyRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    account_id: UUID
    name: str
    industry: str | None
    website: str | None
    size: str | None
    location: str | None
    description: str | None
    phone: str | None
    linkedin_url: str | None
    employee_count: int | None
    is_enriched: bool
    salesforce_id: str | None
    hubspot_id: str | None
    crm_source: str | None
    crm_last_synced: datetime | None
    imported_from_crm: bool
    created_at: datetime
    updated_at: datetime


class CompanyList(BaseModel):
    companies: list[CompanyRead] = Field(default_factory=list)


class ContactCreate(BaseModel):
    full_name: str = Field(min_length=1)
    email: EmailStr | None = None
    phone: str | None = None
    job_title: str | None = None
    company_id: UUID | None = None
    company_name: str | None = None
    industry: str | None = None
    location: str | None = None
    linkedin_url: str | None = None
    notes: str | None = None
    tags: list[str] = Field(default_factory=list)


class ContactUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    full_name: str | None = Field(default=None, min_length=1)
    email: EmailStr | None = None
    phone: str | None = None
    job_title: str | None = None
    company_id: UUID | None = None
    company_name: str | None = None
    industry: str | None = None
    location: str | None = None
    linkedin_url: str | None = None
    notes: str | None = None
    tags: list[str] | None = None


class ContactRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    account_id: UUID
    full_name: str
    email: str | None
    phone: str | None
    job_title: str | None
    company_id: UUID | None
    company_name: str | None
    industry: str | None
    location: str | None
    linkedin_url: str | None
    notes: str | None
    tags: list[str]
    is_enriched: bool
    email_verified: bool
    enrichment_source: str | None
    enrichment_date: datetime | None
    salesforce_id: str | None
    hubspot_id: str | None
    crm_source: str | None
    crm_last_synced: datetime | None
    imported_from_crm: bool
    connection_sent: bool
    connection_sent_date: datetime | None
    message_sent: bool
    message_sent_date: datetime | None
    email_sent: bool
    last_contacted: datetime | None
    last_interaction_date: datetime | None
    created_at: datetime
    updated_at: datetime


class ContactList(BaseModel):
    contacts: list[ContactRead] = Field(default_factory=list)
