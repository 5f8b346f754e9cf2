from __future__ import annotations

import uuid
from dataclasses import dataclass
from enum import StrEnum
from typing import Any, Protocol


class CRMType(StrEnum):
    SALESFORCE = "salesforce"
    HUBSPOT = "hubspot"

    @property
    def label(self) -> str:
        return "Salesforce" if self is CRMType.SALESFORCE else "HubSpot"


@dataclass(frozen=True, slots=True)
class CRMConnectionStatus:
    type: CRMType
    connected: bool
    message: str


@dataclass(frozen=True, slots=True)
class ExportResult:
    record_id: uuid.UUID
    success: bool
    external_id: str | None = None
    error: str | None = None


class CRMAdapter(Protocol):
    crm_type: CRMType

    @property
    def name(self) -> str: ...

    def test_connection(self) -> CRMConnectionStatus: ...

    def import_contacts(self) -> list[dict[str, Any]]: ...

    def import_companies(self) -> list[dict[str, Any]]: ...

    def export_contacts(self, contacts: list[dict[str, Any]]) -> list[ExportResult]: ...

    def export_companies(self, companies: list[dict[str, Any]]) -> list[ExportResult]: ...


_SAMPLE_CONTACTS: tuple[dict[str, Any], ...] = (
    {
        "full_name": "Michael Chen",
        "email": "m.chen@northwind.example.com",
        "job_title": "Head of Operations",
        "company_name": "Northwind Traders",
        "location": "Seattle, WA",
    },
    {
        "full_name": "Priya Patel",
        "email": "priya.patel@contoso.example.com",
        "job_title": "Procurement Manager",
        "company_name": "Contoso",
        "location": "Chicago, IL",
    },
)

_SAMPLE_COMPANIES: tuple[dict[str, Any], ...] = (
    {
        "name": "Northwind Traders",
        "industry": "Wholesale",
        "website": "https://northwind.example.com",
        "size": "100-500",
        "location": "Seattle, WA",
    },
    {
        "name": "Contoso",
        "industry": "Manufacturing",
        "website": "https://contoso.example.com",
        "size": "1000+",
        "location": "Chicago, IL",
    },
)


class StubCRMAdapter:
    """In-memory CRM that serves a fixed sample and accepts every export."""

    def __init__(self, crm_type: CRMType, *, connected: bool = True) -> None:
        self.crm_type = crm_type
        self.connected = connected

    @property
    def name(self) -> str:
        return f"stub-{self.crm_type.value}"

    def test_connection(self) -> CRMConnectionStatus:
        if not self.connected:
            return CRMConnectionStatus(self.crm_type, False, f"{self.crm_type.label} is not configured")
        return CRMConnectionStatus(self.crm_type, True, f"Connected to {self.crm_type.label}")

    def import_contacts(self) -> list[dict[str, Any]]:
        return [dict(item) for item in _SAMPLE_CONTACTS]

    def import_companies(self) -> list[dict[str, Any]]:
        return [dict(item) for item in _SAMPLE_COMPANIES]

    def export_contacts(self, contacts: list[dict[str, Any]]) -> list[ExportResult]:
        return self._export(contacts)

    def export_companies(self, companies: list[dict[str, Any]]) -> list[ExportResult]:
        return self._export(companies)

    def _export(self, records: list[dict[str, Any]]) -> list[ExportResult]:
        results: list[ExportResult] = []
        for record in records:
            external_id = record.get("external_id") or f"{self.crm_type.value[:2]}-{uuid.uuid4().hex[:12]}"
            results.append(ExportResult(record_id=record["id"], success=True, external_id=external_id))
        return results
