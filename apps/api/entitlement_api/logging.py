from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any

from entitlement_api.context import get_correlation_id, get_entitlement_id
from entitlement_api.core.config import Settings, get_settings


_BASE_RECORD_KEYS = set(logging.makeLogRecord({}).__dict__.keys())
_CONTEXT_FIELDS = ("correlation_id", "entitlement_id")
_KNOWN_FIELDS = {
    "method",
    "path",
    "status_code",
    "duration_ms",
    "subscription_id",
    "blocked_id",
    "effective_at",
    "mode",
    "trigger",
    "candidate_count",
    "appended_count",
    "transition_count",
    "failed_count",
    "event_name",
    "error",
}
_MAX_ERROR_LENGTH = 500

_DEFAULT_RECORD_FACTORY = logging.getLogRecordFactory()


def _stamp_context(record: logging.LogRecord) -> logging.LogRecord:
    if not getattr(record, "correlation_id", None):
        record.correlation_id = get_correlation_id()
    if not getattr(record, "entitlement_id", None):
        record.entitlement_id = get_entitlement_id()
    return record


def _record_factory(*args: Any, **kwargs: Any) -> logging.LogRecord:
    return _stamp_context(_DEFAULT_RECORD_FACTORY(*args, **kwargs))


class CorrelationIdFilter(logging.Filter):
    """Stamps records created before the factory was installed."""

    def filter(self, record: logging.LogRecord) -> bool:
        _stamp_context(record)
        return True


class JsonLogFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        for key in _CONTEXT_FIELDS:
            payload[key] = getattr(record, key, None)

        fields = {
            key: value
            for key, value in record.__dict__.items()
            if key in _KNOWN_FIELDS and key not in _BASE_RECORD_KEYS
        }
        if isinstance(fields.get("error"), str):
            fields["error"] = fields["error"][:_MAX_ERROR_LENGTH]
        if record.exc_info:
            fields["exception"] = self.formatException(record.exc_info)

        payload["fields"] = fields
        return json.dumps(payload, default=str)


def configure_logging(settings: Settings | None = None) -> None:
    root_logger = logging.getLogger()
    if getattr(root_logger, "_entitlement_configured", False):
        return

    settings = settings or get_settings()
    level = getattr(logging, settings.log_level.upper(), logging.INFO)

    handler = logging.StreamHandler(stream=sys.stdout)
    handler.setLevel(level)
    handler.addFilter(CorrelationIdFilter())
    if settings.log_json:
        handler.setFormatter(JsonLogFormatter())
    else:
        handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s %(name)s [%(correlation_id)s] %(message)s")
        )

    root_logger.handlers.clear()
    root_logger.setLevel(level)
    root_logger.addHandler(handler)
    logging.setLogRecordFactory(_record_factory)
    root_logger._entitlement_configured = True  # type: ignore[attr-defined]
