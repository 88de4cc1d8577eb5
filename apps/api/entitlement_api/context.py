from __future__ import annotations

import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar, Token

correlation_id_var: ContextVar[str | None] = ContextVar("correlation_id", default=None)
entitlement_id_var: ContextVar[str | None] = ContextVar("entitlement_id", default=None)


def set_correlation_id(value: str | None) -> Token[str | None]:
    return correlation_id_var.set(value)


def reset_correlation_id(token: Token[str | None]) -> None:
    correlation_id_var.reset(token)


def get_correlation_id() -> str | None:
    return correlation_id_var.get()


def get_entitlement_id() -> str | None:
    return entitlement_id_var.get()


@contextmanager
def bound_entitlement(entitlement_id: uuid.UUID | str) -> Iterator[str]:
    """Tag every log record emitted inside the block with ``entitlement_id``."""
    value = str(entitlement_id)
    token = entitlement_id_var.set(value)
    try:
        yield value
    finally:
        entitlement_id_var.reset(token)
