"""Observability: structlog configuration and request correlation ids."""

from covenant_registry.infrastructure.observability.correlation import (
    CORRELATION_HEADER,
    correlation_id_processor,
    generate_correlation_id,
    get_correlation_id,
    set_correlation_id,
)
from covenant_registry.infrastructure.observability.logging import configure_structlog

__all__: list[str] = [
    "CORRELATION_HEADER",
    "configure_structlog",
    "correlation_id_processor",
    "generate_correlation_id",
    "get_correlation_id",
    "set_correlation_id",
]
