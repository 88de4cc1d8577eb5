from __future__ import annotations

import re
import uuid
from contextlib import ExitStack

from opentelemetry import trace
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from entitlement_api.context import bound_entitlement, reset_correlation_id, set_correlation_id

_CORRELATION_HEADERS = ("x-correlation-id", "x-request-id")
_MAX_CORRELATION_ID_LENGTH = 128
_ENTITLEMENT_PATH_RE = re.compile(r"^/(?:entitlements|subscriptions)/([0-9a-fA-F-]{36})(?:/|$)")


def _incoming_correlation_id(request: Request) -> str | None:
    for header in _CORRELATION_HEADERS:
        value = request.headers.get(header)
        if value and value.strip():
            return value.strip()[:_MAX_CORRELATION_ID_LENGTH]
    return None


def _entitlement_in_path(request: Request) -> uuid.UUID | None:
    match = _ENTITLEMENT_PATH_RE.match(request.url.path)
    if match is None:
        return None
    try:
        return uuid.UUID(match.group(1))
    except ValueError:
        return None


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """Binds the request's correlation id, and the entitlement it targets, for logs, spans and events."""

    async def dispatch(self, request: Request, call_next):  # type: ignore[no-untyped-def]
        correlation_id = _incoming_correlation_id(request) or str(uuid.uuid4())
        request.state.correlation_id = correlation_id
        span = trace.get_current_span()
        if span.is_recording():
            span.set_attribute("correlation_id", correlation_id)

        token = set_correlation_id(correlation_id)
        try:
            with ExitStack() as stack:
                entitlement_id = _entitlement_in_path(request)
                if entitlement_id is not None:
                    stack.enter_context(bound_entitlement(entitlement_id))
                response = await call_next(request)
        finally:
            reset_correlation_id(token)

        response.headers["x-correlation-id"] = correlation_id
        return response
