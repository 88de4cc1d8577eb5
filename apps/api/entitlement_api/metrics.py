from __future__ import annotations

import re

from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest
from starlette.requests import Request


http_requests_total = Counter(
    "http_requests_total",
    "Total HTTP requests",
    ["method", "path", "status"],
)

http_request_duration_seconds = Histogram(
    "http_request_duration_seconds",
    "HTTP request duration in seconds",
    ["method", "path"],
)

blocking_state_derivations_total = Counter(
    "blocking_state_derivations_total",
    "Add-on blocking state derivations by mode and outcome",
    ["mode", "outcome"],
)

blocking_state_derivation_duration_seconds = Histogram(
    "blocking_state_derivation_duration_seconds",
    "Add-on blocking state derivation duration in seconds",
    ["mode"],
)

blocking_states_appended_total = Counter(
    "blocking_states_appended_total",
    "Blocking states written to the store",
    ["type", "state_name"],
)

blocking_states_duplicate_total = Counter(
    "blocking_states_duplicate_total",
    "Blocking state appends skipped because the record already existed",
    ["type", "state_name"],
)

subscription_transitions_applied_total = Counter(
    "subscription_transitions_applied_total",
    "Subscription transitions applied by the notification processor",
    ["kind"],
)


_UUID_RE = re.compile(
    r"\b[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[1-5][0-9a-fA-F]{3}-[89abAB][0-9a-fA-F]{3}-[0-9a-fA-F]{12}\b"
)
_PATH_PARAM_RE = re.compile(r"\{[^{}]+\}")


def resolve_http_path_label(request: Request) -> str:
    route = request.scope.get("route")
    if route is not None:
        route_path = getattr(route, "path_format", None) or getattr(route, "path", None)
        if isinstance(route_path, str) and route_path:
            return _PATH_PARAM_RE.sub("{id}", route_path)
    return _UUID_RE.sub("{id}", request.url.path)


def observe_http_request(method: str, path: str, status: int, duration: float) -> None:
    http_requests_total.labels(method=method, path=path, status=str(status)).inc()
    http_request_duration_seconds.labels(method=method, path=path).observe(duration)


def observe_derivation(mode: str, outcome: str, duration: float) -> None:
    blocking_state_derivations_total.labels(mode=mode, outcome=outcome).inc()
    blocking_state_derivation_duration_seconds.labels(mode=mode).observe(duration)


def observe_blocking_state_append(state_type: str, state_name: str, *, appended: bool) -> None:
    if appended:
        blocking_states_appended_total.labels(type=state_type, state_name=state_name).inc()
    else:
        blocking_states_duplicate_total.labels(type=state_type, state_name=state_name).inc()


def observe_transition_applied(kind: str) -> None:
    subscription_transitions_applied_total.labels(kind=kind).inc()


def generate_metrics_payload() -> bytes:
    return generate_latest()


def metrics_content_type() -> str:
    return CONTENT_TYPE_LATEST
