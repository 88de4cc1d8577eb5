from __future__ import annotations

import uuid
from typing import Any

from entitlement_api.context import get_correlation_id
from entitlement_api.core.dates import utcnow
from entitlement_api.core.events import event_bus

EVENT_SOURCE = "entitlement-service"

published_events: list[dict[str, Any]] = []


def publish(envelope: dict[str, Any]) -> dict[str, Any]:
    """Stamp a domain event envelope and fan it out to in-process subscribers.

    ``published_events`` keeps every envelope for inspection by tests and
    local tooling.
    """
    envelope.setdefault("event_id", str(uuid.uuid4()))
    envelope.setdefault("source", EVENT_SOURCE)
    envelope.setdefault("occurred_at", utcnow().isoformat())
    if envelope.get("correlation_id") is None:
        envelope["correlation_id"] = get_correlation_id()

    published_events.append(envelope)
    event_type = envelope.get("event_type")
    if isinstance(event_type, str) and event_type:
        event_bus.publish(event_type, envelope)
    return envelope
