"""Domain errors for the covenant registry.

Provides specific exception classes for different failure scenarios.
All exceptions inherit from CovenantError.
"""

from covenant_registry.domain.errors.notification import NotificationDeliveryError
from covenant_registry.domain.errors.registration import (
    AllocationError,
    DuplicateWitnessError,
    InvalidFieldError,
    InvalidIdentifierError,
    MissingFieldError,
    RegistrationError,
    RegistryFullError,
    ValidationError,
    WitnessNotFoundError,
)

__all__: list[str] = [
    "AllocationError",
    "DuplicateWitnessError",
    "InvalidFieldError",
    "InvalidIdentifierError",
    "MissingFieldError",
    "NotificationDeliveryError",
    "RegistrationError",
    "RegistryFullError",
    "ValidationError",
    "WitnessNotFoundError",
]
