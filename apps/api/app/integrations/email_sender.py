from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Protocol


@dataclass(frozen=True, slots=True)
class OutboundEmail:
    from_name: str
    from_email: str
    to_name: str
    to_email: str
    subject: str
    body: str


class EmailSender(Protocol):
    name: str

    def send(self, email: OutboundEmail) -> str: ...


@dataclass(slots=True)
class SentEmail:
    message_id: str
    email: OutboundEmail
    sent_at: datetime


@dataclass(slots=True)
class StubEmailSender:
    """Keeps sent messages in memory instead of talking to an SMTP server."""

    name: str = "stub-email"
    outbox: list[SentEmail] = field(default_factory=list)

    def send(self, email: OutboundEmail) -> str:
        message_id = f"<{uuid.uuid4().hex}@prospect.local>"
        self.outbox.append(SentEmail(message_id=message_id, email=email, sent_at=datetime.now(timezone.utc)))
        return message_id
