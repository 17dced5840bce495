"""Witness registration errors.

This module provides exception classes for registration failures. Validation
and duplicate errors are deterministic and are returned to the registrant
synchronously. Allocation errors surface only after the acceptance
transaction has exhausted its retries.

Every error knows how to describe itself as the JSON body returned by the
HTTP layer via ``to_problem_dict()``.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from covenant_registry.domain.exceptions import CovenantError


class RegistrationError(CovenantError):
    """Base error for witness registration.

    Attributes:
        error_code: Stable machine-readable name used in API responses.
        http_status: Status code the API layer maps this error to.
    """

    error_code: str = "RegistrationError"
    http_status: int = 400

    def to_problem_dict(self) -> dict[str, Any]:
        """Serialize to the registry's JSON error format.

        Returns:
            Dictionary with ``error`` and ``detail`` keys, plus any
            error-specific extensions.
        """
        return {"error": self.error_code, "detail": str(self)}


class ValidationError(RegistrationError):
    """Base for input validation failures (HTTP 400)."""

    http_status = 400


class InvalidIdentifierError(ValidationError):
    """Raised when the registrant identifier is not a well-formed address.

    Addresses are ``0x`` followed by exactly 40 hexadecimal characters,
    compared case-insensitively.

    Attributes:
        identifier: The rejected raw identifier.
    """

    error_code = "InvalidIdentifierError"

    def __init__(self, identifier: str) -> None:
        self.identifier = identifier
        super().__init__(
            f"Invalid identifier {identifier!r}: expected 0x followed by 40 hex characters"
        )

    def to_problem_dict(self) -> dict[str, Any]:
        result = super().to_problem_dict()
        result["fields"] = ["identifier"]
        return result


class MissingFieldError(ValidationError):
    """Raised when required fields are absent or blank.

    Names every missing field, never just the first one found.

    Attributes:
        fields: Names of all missing fields, in request order.
    """

    error_code = "MissingFieldError"

    def __init__(self, fields: Iterable[str]) -> None:
        self.fields = list(fields)
        super().__init__(f"Missing required fields: {', '.join(self.fields)}")

    def to_problem_dict(self) -> dict[str, Any]:
        result = super().to_problem_dict()
        result["fields"] = list(self.fields)
        return result


class InvalidFieldError(ValidationError):
    """Raised when a present field cannot be interpreted (e.g. a bad timestamp).

    Attributes:
        field: The offending field name.
        reason: Why the value was rejected.
    """

    error_code = "InvalidFieldError"

    def __init__(self, field: str, reason: str) -> None:
        self.field = field
        self.reason = reason
        super().__init__(f"Invalid value for {field}: {reason}")

    def to_problem_dict(self) -> dict[str, Any]:
        result = super().to_problem_dict()
        result["fields"] = [self.field]
        return result


class DuplicateWitnessError(RegistrationError):
    """Raised when an identifier already holds a witness record.

    Identifiers are consumed permanently: a revoked witness's identifier
    cannot be registered again. No witness number is consumed by the
    rejected attempt.

    HTTP Status: 409 Conflict

    Attributes:
        identifier: The normalized identifier.
        existing_sequence_number: Witness number held by the existing record,
            when the detecting layer knows it.
    """

    error_code = "DuplicateWitnessError"
    http_status = 409

    def __init__(
        self,
        identifier: str,
        existing_sequence_number: int | None = None,
    ) -> None:
        self.identifier = identifier
        self.existing_sequence_number = existing_sequence_number
        super().__init__(f"Identifier {identifier} is already registered as a witness")


class RegistryFullError(RegistrationError):
    """Raised when the registry has reached its configured capacity.

    HTTP Status: 409 Conflict

    Attributes:
        capacity: The configured maximum witness population.
    """

    error_code = "RegistryFullError"
    http_status = 409

    def __init__(self, capacity: int) -> None:
        self.capacity = capacity
        super().__init__(f"Witness registry is full ({capacity} witnesses)")


class AllocationError(RegistrationError):
    """Raised when the acceptance transaction kept conflicting.

    Contention is retried internally with bounded exponential backoff; this
    error surfaces only after every attempt failed. Nothing was committed.

    HTTP Status: 500 Internal Server Error

    Attributes:
        attempts: Number of attempts made.
    """

    error_code = "AllocationError"
    http_status = 500

    def __init__(self, attempts: int, reason: str = "") -> None:
        self.attempts = attempts
        self.reason = reason
        message = f"Could not allocate a witness number after {attempts} attempts"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class WitnessNotFoundError(RegistrationError):
    """Raised when no witness record exists for an identifier.

    HTTP Status: 404 Not Found
    """

    error_code = "WitnessNotFoundError"
    http_status = 404

    def __init__(self, identifier: str) -> None:
        self.identifier = identifier
        super().__init__(f"No witness registered for {identifier}")
