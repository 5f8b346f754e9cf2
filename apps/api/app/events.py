from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any

from app.context import get_correlation_id
from app.core.events import event_bus

# Every envelope published in this process, oldest first.
published_events: list[dict[str, Any]] = []


def publish(event_type: str, account_id: uuid.UUID, payload: dict[str, Any]) -> dict[str, Any]:
    """Wraps a domain event in the standard envelope and fans it out on the bus."""
    envelope = {
        "event_id": str(uuid.uuid4()),
        "event_type": event_type,
        "occurred_at": datetime.now(timezone.utc).isoformat(),
        "account_id": str(account_id),
        "correlation_id": get_correlation_id(),
        "payload": payload,
    }
    published_events.append(envelope)
    event_bus.publish(event_type, envelope)
    return envelope
