from __future__ import annotations

import uuid


class EntitlementError(Exception):
    """Base error for entitlement timeline and derivation failures."""


class EntitlementNotFoundError(EntitlementError):
    """Raised when an entitlement id does not resolve to a subscription timeline."""

    def __init__(self, entitlement_id: uuid.UUID) -> None:
        self.entitlement_id = entitlement_id
        super().__init__(f"entitlement '{entitlement_id}' not found")


class MultiplePendingTransitionsError(EntitlementError):
    """Raised when more than one cancel/change is queued for the same subscription."""

    def __init__(self, subscription_id: uuid.UUID, count: int) -> None:
        self.subscription_id = subscription_id
        self.count = count
        super().__init__(f"subscription '{subscription_id}' has {count} pending cancel/change transitions")
