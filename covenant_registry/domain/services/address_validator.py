"""Registration request validation.

Pure syntactic validation and normalization of a registration request. No
side effects; the result is a WitnessApplication ready for acceptance.

Rules:
- Required fields: identifier, proofHash, signedAt. Every missing or blank
  field is reported in a single MissingFieldError.
- The identifier is ``0x`` + 40 hex characters, case-insensitive, and is
  lower-cased before anything else sees it.
- signedAt is an ISO-8601 timestamp (or datetime); naive values are UTC.

Field names in errors are the request field names, since they are returned
to the registrant as-is.
"""

from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Any

from covenant_registry.domain.errors import (
    InvalidFieldError,
    InvalidIdentifierError,
    MissingFieldError,
)
from covenant_registry.domain.models.witness import (
    NotificationPreferences,
    WitnessApplication,
    WitnessProof,
)

IDENTIFIER_PATTERN = re.compile(r"^0x[0-9a-f]{40}$", re.IGNORECASE)

REQUIRED_FIELDS: tuple[str, ...] = ("identifier", "proofHash", "signedAt")


def _blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    return False


def _clean_optional(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip()
    return value or None


def normalize_identifier(identifier: str) -> str:
    """Validate and lower-case an identifier.

    Raises:
        InvalidIdentifierError: The identifier is malformed.
    """
    candidate = identifier.strip()
    if not IDENTIFIER_PATTERN.match(candidate):
        raise InvalidIdentifierError(identifier)
    return candidate.lower()


def parse_signed_at(value: str | datetime) -> datetime:
    """Parse the caller-supplied signing time.

    Raises:
        InvalidFieldError: The value is not an ISO-8601 timestamp.
    """
    if isinstance(value, datetime):
        parsed = value
    else:
        text = value.strip()
        # fromisoformat does not accept a trailing Z before Python 3.11
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            raise InvalidFieldError("signedAt", "expected an ISO-8601 timestamp") from None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def validate_registration(
    identifier: str | None,
    proof_hash: str | None,
    signed_at: str | datetime | None,
    contact: str | None = None,
    block_ref: int | None = None,
    display_name: str | None = None,
    notification_preferences: NotificationPreferences | None = None,
) -> WitnessApplication:
    """Validate and normalize a registration request.

    Args:
        identifier: Raw registrant address.
        proof_hash: Opaque proof string (e.g. transaction hash).
        signed_at: Caller-supplied signing time.
        contact: Optional delivery address for notifications.
        block_ref: Optional numeric proof reference.
        display_name: Optional public name.
        notification_preferences: Optional opt-in flags.

    Returns:
        WitnessApplication with a normalized identifier.

    Raises:
        MissingFieldError: One or more required fields are absent or blank.
        InvalidIdentifierError: The identifier is malformed.
        InvalidFieldError: signedAt or blockRef cannot be interpreted.
    """
    supplied = {
        "identifier": identifier,
        "proofHash": proof_hash,
        "signedAt": signed_at,
    }
    missing = [name for name in REQUIRED_FIELDS if _blank(supplied[name])]
    if missing:
        raise MissingFieldError(missing)

    assert identifier is not None and proof_hash is not None and signed_at is not None

    normalized = normalize_identifier(identifier)
    signed = parse_signed_at(signed_at)

    if block_ref is not None and block_ref < 0:
        raise InvalidFieldError("blockRef", "must be non-negative")

    return WitnessApplication(
        identifier=normalized,
        proof=WitnessProof(
            proof_hash=proof_hash.strip(),
            signed_at=signed,
            block_ref=block_ref or 0,
        ),
        contact=_clean_optional(contact),
        display_name=_clean_optional(display_name),
        notification_preferences=notification_preferences or NotificationPreferences(),
    )
