from entitlement_api.business.subscription.api import router
from entitlement_api.business.subscription.errors import (
    EntitlementError,
    EntitlementNotFoundError,
    MultiplePendingTransitionsError,
)
from entitlement_api.business.subscription.models import Subscription, SubscriptionBundle, SubscriptionTransition
from entitlement_api.business.subscription.service import SubscriptionService, subscription_service

__all__ = [
    "router",
    "EntitlementError",
    "EntitlementNotFoundError",
    "MultiplePendingTransitionsError",
    "Subscription",
    "SubscriptionBundle",
    "SubscriptionTransition",
    "SubscriptionService",
    "subscription_service",
]
