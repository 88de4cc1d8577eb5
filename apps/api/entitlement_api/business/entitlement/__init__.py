from entitlement_api.business.entitlement.api import router
from entitlement_api.business.entitlement.dao import BlockingStateDao, blocking_state_dao
from entitlement_api.business.entitlement.domain import (
    BLOCKING_TYPE_SUBSCRIPTION,
    ENT_STATE_CANCELLED,
    ENTITLEMENT_SERVICE_NAME,
    BlockingState,
)
from entitlement_api.business.entitlement.engine import BlockingStateEngine, blocking_state_engine
from entitlement_api.business.entitlement.models import BlockingStateRecord
from entitlement_api.business.entitlement.notifications import process_due_notifications
from entitlement_api.business.entitlement.proxy import ProxyBlockingStateDao, proxy_blocking_state_dao
from entitlement_api.business.entitlement.service import EntitlementService, entitlement_service

__all__ = [
    "router",
    "BLOCKING_TYPE_SUBSCRIPTION",
    "ENT_STATE_CANCELLED",
    "ENTITLEMENT_SERVICE_NAME",
    "BlockingState",
    "BlockingStateDao",
    "BlockingStateEngine",
    "BlockingStateRecord",
    "EntitlementService",
    "ProxyBlockingStateDao",
    "blocking_state_dao",
    "blocking_state_engine",
    "entitlement_service",
    "process_due_notifications",
    "proxy_blocking_state_dao",
]
