from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor

from entitlement_api.api.routes import router as api_router
from entitlement_api.core.config import get_settings
from entitlement_api.core.events import InternalEvent, event_bus
from entitlement_api.logging import configure_logging
from entitlement_api.middleware.correlation_id import CorrelationIdMiddleware
from entitlement_api.middleware.request_logging import RequestLoggingMiddleware
from entitlement_api.otel import get_fastapi_server_request_hook, setup_otel


configure_logging()
logger = logging.getLogger("entitlement_api.lifecycle")


def _on_system_started(event: InternalEvent) -> None:
    logger.info("system_event", extra={"event_name": event.name})


def _on_addons_blocked(event: InternalEvent) -> None:
    logger.info(
        "entitlement.addons_blocked",
        extra={
            "event_name": event.name,
            "subscription_id": event.payload.get("subscription_id"),
            "effective_at": event.payload.get("effective_at"),
            "candidate_count": len(event.payload.get("blocked_ids") or []),
        },
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    event_bus.subscribe("system.started", _on_system_started)
    event_bus.subscribe("entitlement.addons_blocked", _on_addons_blocked)
    event_bus.publish("system.started", {"service": "entitlement-api"})
    yield


settings = get_settings()
app = FastAPI(title=settings.app_name, version=settings.app_version, lifespan=lifespan)
app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(CorrelationIdMiddleware)
app.include_router(api_router)

setup_otel("entitlement-api", settings)

if not getattr(app, "_is_instrumented_by_opentelemetry", False):
    FastAPIInstrumentor().instrument_app(app, server_request_hook=get_fastapi_server_request_hook())
