from __future__ import annotations

from dataclasses import dataclass
from functools import lru_cache

from app.core.config import get_settings
from app.integrations.crm_sync import CRMAdapter, CRMType, StubCRMAdapter
from app.integrations.email_finder import EmailFinder, IcypeasEmailFinder, StubEmailFinder
from app.integrations.email_sender import EmailSender, StubEmailSender
from app.integrations.enrichment import EnrichmentProvider, StubEnrichmentProvider
from app.integrations.messages import MessageGenerator, TemplateMessageGenerator


@dataclass(slots=True)
class Providers:
    enrichment: EnrichmentProvider
    email_finder: EmailFinder
    message_generator: MessageGenerator
    email_sender: EmailSender
    crm_adapters: dict[CRMType, CRMAdapter]

    def crm(self, crm_type: CRMType) -> CRMAdapter:
        return self.crm_adapters[crm_type]


def build_providers() -> Providers:
    settings = get_settings()
    email_finder: EmailFinder
    if settings.icypeas_api_key:
        email_finder = IcypeasEmailFinder(
            settings.icypeas_api_key,
            base_url=settings.icypeas_base_url,
            max_attempts=settings.icypeas_max_attempts,
            poll_interval=settings.icypeas_poll_interval_seconds,
            timeout=settings.provider_timeout_seconds,
        )
    else:
        email_finder = StubEmailFinder()

    return Providers(
        enrichment=StubEnrichmentProvider(),
        email_finder=email_finder,
        message_generator=TemplateMessageGenerator(),
        email_sender=StubEmailSender(),
        crm_adapters={crm_type: StubCRMAdapter(crm_type) for crm_type in CRMType},
    )


@lru_cache
def get_providers() -> Providers:
    return build_providers()
