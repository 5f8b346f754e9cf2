from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Protocol


@dataclass(frozen=True, slots=True)
class PersonRecord:
    full_name: str
    job_title: str | None = None
    company_name: str | None = None
    industry: str | None = None
    location: str | None = None
    email: str | None = None
    phone: str | None = None
    linkedin_url: str | None = None


@dataclass(frozen=True, slots=True)
class SearchFilters:
    job_title: str | None = None
    company: str | None = None
    industry: str | None = None
    location: str | None = None

    def describe(self) -> str:
        return self.job_title or self.company or self.industry or self.location or "General search"


@dataclass(slots=True)
class EnrichmentResult:
    email: str | None = None
    phone: str | None = None
    linkedin_url: str | None = None
    company_name: str | None = None
    industry: str | None = None
    email_verified: bool = False
    fields: list[str] = field(default_factory=list)


class EnrichmentProvider(Protocol):
    name: str

    def search_people(self, filters: SearchFilters) -> list[PersonRecord]: ...

    def reveal_email(self, person: PersonRecord, company_domain: str | None) -> str: ...

    def enrich(self, person: PersonRecord, categories: list[str]) -> EnrichmentResult: ...


_SAMPLE_PEOPLE: tuple[PersonRecord, ...] = (
    PersonRecord(
        full_name="Sarah Johnson",
        job_title="VP of Marketing",
        company_name="TechCorp Inc.",
        industry="Technology",
        location="San Francisco, CA",
    ),
    PersonRecord(
        full_name="Robert Miller",
        job_title="CTO",
        company_name="InnovateSoft",
        industry="Software",
        location="Austin, TX",
    ),
    PersonRecord(
        full_name="Jennifer Lee",
        job_title="Director of Sales",
        company_name="GlobalFinance Ltd.",
        industry="Finance",
        location="New York, NY",
        email="j.lee@globalfinance.com",
    ),
)

_NON_WORD = re.compile(r"[^a-z0-9]+")


def _slug(value: str, separator: str) -> str:
    return _NON_WORD.sub(separator, value.lower()).strip(separator)


def domain_from_website(website: str | None) -> str | None:
    if not website:
        return None
    host = re.sub(r"^[a-z]+://", "", website.strip().lower()).split("/", 1)[0]
    if host.startswith("www."):
        host = host[4:]
    return host or None


class StubEnrichmentProvider:
    """Deterministic in-process provider backed by a fixed people sample."""

    name = "stub-enrichment"

    def __init__(self, people: tuple[PersonRecord, ...] = _SAMPLE_PEOPLE) -> None:
        self.people = people

    def search_people(self, filters: SearchFilters) -> list[PersonRecord]:
        return [person for person in self.people if self._matches(person, filters)]

    def reveal_email(self, person: PersonRecord, company_domain: str | None) -> str:
        if person.email:
            return person.email
        return f"{_slug(person.full_name, '.')}@{company_domain or 'example.com'}"

    def enrich(self, person: PersonRecord, categories: list[str]) -> EnrichmentResult:
        wanted = set(categories) or {"email", "phone", "social", "company"}
        result = EnrichmentResult()
        if "email" in wanted:
            company_slug = _slug(person.company_name or "", "")
            result.email = person.email or f"{_slug(person.full_name, '.')}@{company_slug or 'example'}.com"
            result.email_verified = True
            result.fields.append("email")
        if "phone" in wanted:
            result.phone = person.phone or "+1 (555) 123-4567"
            result.fields.append("phone")
        if "social" in wanted:
            result.linkedin_url = person.linkedin_url or f"https://linkedin.com/in/{_slug(person.full_name, '-')}"
            result.fields.append("social")
        if "company" in wanted and person.company_name:
            result.company_name = person.company_name
            result.industry = person.industry
            result.fields.append("company")
        return result

    @staticmethod
    def _matches(person: PersonRecord, filters: SearchFilters) -> bool:
        checks = (
            (filters.job_title, person.job_title),
            (filters.company, person.company_name),
            (filters.industry, person.industry),
            (filters.location, person.location),
        )
        for wanted, actual in checks:
            if wanted and actual and wanted.lower() not in actual.lower():
                return False
        return True
