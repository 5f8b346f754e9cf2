from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import Protocol


class MessagePurpose(StrEnum):
    INTRODUCTION = "introduction"
    FOLLOWUP = "followup"
    PROPOSAL = "proposal"


class MessageTone(StrEnum):
    PROFESSIONAL = "professional"
    FRIENDLY = "friendly"
    CASUAL = "casual"
    FORMAL = "formal"
    PERSUASIVE = "persuasive"
    ENTHUSIASTIC = "enthusiastic"


@dataclass(frozen=True, slots=True)
class MessageRequest:
    contact_full_name: str
    user_full_name: str
    purpose: MessagePurpose
    tone: MessageTone
    contact_job_title: str | None = None
    contact_company_name: str | None = None
    user_company_name: str | None = None
    user_job_title: str | None = None
    custom_prompt: str | None = None


class MessageGenerator(Protocol):
    name: str

    def generate(self, request: MessageRequest) -> str: ...


_GREETINGS = {
    MessageTone.PROFESSIONAL: "Hello {first},",
    MessageTone.FRIENDLY: "Hi {first},",
    MessageTone.CASUAL: "Hey {first},",
    MessageTone.FORMAL: "Dear {full},",
    MessageTone.PERSUASIVE: "Hi {first},",
    MessageTone.ENTHUSIASTIC: "Hi {first}!",
}

_CLOSINGS = {
    MessageTone.PROFESSIONAL: "Best regards,",
    MessageTone.FRIENDLY: "Cheers,",
    MessageTone.CASUAL: "Talk soon,",
    MessageTone.FORMAL: "Sincerely,",
    MessageTone.PERSUASIVE: "Looking forward to hearing from you,",
    MessageTone.ENTHUSIASTIC: "Can't wait to connect,",
}


class TemplateMessageGenerator:
    """Builds outreach copy from fixed templates; no model calls."""

    name = "template-writer"

    def generate(self, request: MessageRequest) -> str:
        parts = request.contact_full_name.split()
        first_name = parts[0] if parts else request.contact_full_name
        greeting = _GREETINGS[request.tone].format(first=first_name, full=request.contact_full_name)
        lines = [greeting, "", self._body(request)]
        if request.custom_prompt:
            lines.extend(["", request.custom_prompt.strip()])
        signature = request.user_full_name
        if request.user_job_title and request.user_company_name:
            signature = f"{signature}\n{request.user_job_title}, {request.user_company_name}"
        elif request.user_company_name:
            signature = f"{signature}\n{request.user_company_name}"
        lines.extend(["", _CLOSINGS[request.tone], signature])
        return "\n".join(lines)

    @staticmethod
    def _body(request: MessageRequest) -> str:
        role = request.contact_job_title or "your role"
        company = request.contact_company_name or "your company"
        sender_company = request.user_company_name or "our team"
        if request.purpose is MessagePurpose.INTRODUCTION:
            return (
                f"I came across your work as {role} at {company} and wanted to introduce myself. "
                f"At {sender_company} we help teams like yours find and engage the right prospects."
            )
        if request.purpose is MessagePurpose.FOLLOWUP:
            return (
                f"I wanted to follow up on my earlier note. I think {sender_company} could be useful "
                f"for {company}, and I'd welcome a short conversation."
            )
        return (
            f"Based on what {company} is working on, I've put together a proposal for how "
            f"{sender_company} could support you as {role}. Would you be open to reviewing it?"
        )
