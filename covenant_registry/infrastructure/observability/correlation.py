"""Request correlation ids.

The id lives in a ContextVar so it follows a request across awaits,
including background notification tasks created while handling it
(``asyncio`` copies the context into new tasks).
"""

from contextvars import ContextVar
from typing import Any
from uuid import uuid4

CORRELATION_HEADER = "X-Correlation-ID"

_correlation_id: ContextVar[str] = ContextVar("covenant_correlation_id", default="")


def generate_correlation_id() -> str:
    return str(uuid4())


def get_correlation_id() -> str:
    """Current correlation id, or an empty string outside a request."""
    return _correlation_id.get()


def set_correlation_id(correlation_id: str) -> None:
    _correlation_id.set(correlation_id)


def correlation_id_processor(
    logger: Any, method_name: str, event_dict: dict[str, Any]
) -> dict[str, Any]:
    """structlog processor adding ``correlation_id`` when one is set."""
    correlation_id = _correlation_id.get()
    if correlation_id and "correlation_id" not in event_dict:
        event_dict["correlation_id"] = correlation_id
    return event_dict
