"""structlog configuration for the registry.

Production emits one JSON object per line; every other environment uses the
coloured console renderer. Both share the same processor chain, so a log
entry carries the same keys either way:

    {"timestamp": "...", "level": "info", "event": "witness_registered",
     "service": "covenant-registry", "correlation_id": "...",
     "identifier": "0x...", "sequence_number": 12}

Environment Variables:
- LOG_LEVEL: Minimum level (default: INFO)
- SERVICE_NAME: Value of the ``service`` key (default: covenant-registry)
"""

import logging
import os
from typing import Any, cast

import structlog
from structlog.typing import Processor

from covenant_registry.infrastructure.observability.correlation import (
    correlation_id_processor,
)

LOG_LEVEL_ENV = "LOG_LEVEL"
DEFAULT_LOG_LEVEL = "INFO"
DEFAULT_SERVICE_NAME = "covenant-registry"


def _resolve_level(level: str | None) -> int:
    name = (level or os.getenv(LOG_LEVEL_ENV, DEFAULT_LOG_LEVEL)).upper()
    resolved = logging.getLevelName(name)
    return resolved if isinstance(resolved, int) else logging.INFO


def _service_processor(service: str) -> Processor:
    def add_service(
        logger: Any, method_name: str, event_dict: dict[str, Any]
    ) -> dict[str, Any]:
        event_dict.setdefault("service", service)
        return event_dict

    return cast(Processor, add_service)


def configure_structlog(
    environment: str = "production", level: str | None = None
) -> None:
    """Configure structlog once at startup.

    Args:
        environment: ``production`` selects JSON output, anything else the
            console renderer.
        level: Optional level name overriding LOG_LEVEL.
    """
    service = os.getenv("SERVICE_NAME", DEFAULT_SERVICE_NAME)
    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        _service_processor(service),
        cast(Processor, correlation_id_processor),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if environment == "production":
        processors.append(structlog.processors.format_exc_info)
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=True))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(_resolve_level(level)),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )
