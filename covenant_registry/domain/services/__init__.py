"""Pure domain services: validation, readiness and milestone schedule."""

from covenant_registry.domain.services.address_validator import (
    normalize_identifier,
    validate_registration,
)
from covenant_registry.domain.services.milestone_schedule import (
    build_thresholds,
    milestone_message,
    thresholds_crossed,
)
from covenant_registry.domain.services.readiness_calculator import (
    calculate_readiness,
)

__all__: list[str] = [
    "build_thresholds",
    "calculate_readiness",
    "milestone_message",
    "normalize_identifier",
    "thresholds_crossed",
    "validate_registration",
]
