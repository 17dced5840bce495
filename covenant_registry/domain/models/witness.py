"""Witness domain models.

This module defines the domain model for covenant witnesses:
- Witness: An accepted registrant holding a unique witness number
- WitnessProof: The registrant-supplied proof of commitment
- NotificationPreferences: Opt-in flags consulted only by the dispatcher
- WitnessApplication: A validated, normalized registration request

Registry Rules:
1. IDENTIFIER IS THE KEY - Normalized (lower-case) and immutable once accepted
2. NUMBERS ARE PERMANENT - Revocation never frees or reassigns a sequence number
3. NEVER DELETE - Witness records only ever transition active -> revoked
4. CONTACT IS PRIVATE - Public projections never include the contact address
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any


class WitnessStatus(str, Enum):
    """Lifecycle state of a witness record."""

    ACTIVE = "active"
    REVOKED = "revoked"


@dataclass(frozen=True)
class NotificationPreferences:
    """Opt-in flags for broadcast notifications.

    Welcome messages are always sent when a contact is present; these flags
    only gate broadcasts. They never affect allocation.
    """

    daily_auctions: bool = True
    milestones: bool = True
    emergency: bool = True

    def to_dict(self) -> dict[str, bool]:
        return {
            "daily_auctions": self.daily_auctions,
            "milestones": self.milestones,
            "emergency": self.emergency,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> NotificationPreferences:
        if not data:
            return cls()
        return cls(
            daily_auctions=bool(data.get("daily_auctions", True)),
            milestones=bool(data.get("milestones", True)),
            emergency=bool(data.get("emergency", True)),
        )


@dataclass(frozen=True)
class WitnessProof:
    """Proof-of-commitment metadata supplied by the registrant.

    Not independently verified by the registry; only its presence is
    required.

    Attributes:
        proof_hash: Opaque proof string (e.g. a transaction hash).
        signed_at: Caller-supplied signing time (timezone-aware).
        block_ref: Optional numeric reference (e.g. block number), 0 if unknown.
    """

    proof_hash: str
    signed_at: datetime
    block_ref: int = 0

    def __post_init__(self) -> None:
        if self.signed_at.tzinfo is None:
            raise ValueError("signed_at must be timezone-aware")


@dataclass(frozen=True)
class WitnessApplication:
    """A validated registration request, ready for acceptance.

    Produced by the address validator. The identifier is already
    lower-cased; blank optional strings are normalized to None.
    """

    identifier: str
    proof: WitnessProof
    contact: str | None = None
    display_name: str | None = None
    notification_preferences: NotificationPreferences = field(
        default_factory=NotificationPreferences
    )


@dataclass(frozen=True, eq=True)
class Witness:
    """A single accepted registration.

    The identifier is unique across all witnesses (active or revoked) and the
    sequence number is unique and positive. Both are fixed at acceptance.

    Attributes:
        identifier: Normalized unique key (lower-case address).
        sequence_number: 1-based witness number, assigned exactly once.
        proof: Proof-of-commitment metadata.
        contact: Private delivery address for notifications.
        display_name: Optional public name (e.g. an ENS name).
        status: Lifecycle state.
        notification_preferences: Broadcast opt-in flags.
        created_at: When the witness was accepted (UTC).
        updated_at: Last preference or status change (UTC).
    """

    identifier: str
    sequence_number: int
    proof: WitnessProof
    contact: str | None = None
    display_name: str | None = None
    status: WitnessStatus = WitnessStatus.ACTIVE
    notification_preferences: NotificationPreferences = field(
        default_factory=NotificationPreferences
    )
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def __post_init__(self) -> None:
        """Validate witness fields after initialization.

        Raises:
            ValueError: If any field validation fails.
        """
        if self.sequence_number < 1:
            raise ValueError(
                f"sequence_number must be positive, got {self.sequence_number}"
            )
        if self.identifier != self.identifier.lower():
            raise ValueError("identifier must be normalized to lower-case")

    @property
    def is_active(self) -> bool:
        return self.status == WitnessStatus.ACTIVE

    @classmethod
    def from_application(
        cls,
        application: WitnessApplication,
        sequence_number: int,
        accepted_at: datetime | None = None,
    ) -> Witness:
        """Build the witness record for an application and its reserved number."""
        now = accepted_at or datetime.now(timezone.utc)
        return cls(
            identifier=application.identifier,
            sequence_number=sequence_number,
            proof=application.proof,
            contact=application.contact,
            display_name=application.display_name,
            notification_preferences=application.notification_preferences,
            created_at=now,
            updated_at=now,
        )

    def revoke(self, at: datetime | None = None) -> Witness:
        """Return a revoked copy. The sequence number is kept."""
        return replace(
            self,
            status=WitnessStatus.REVOKED,
            updated_at=at or datetime.now(timezone.utc),
        )

    def with_preferences(
        self, preferences: NotificationPreferences, at: datetime | None = None
    ) -> Witness:
        return replace(
            self,
            notification_preferences=preferences,
            updated_at=at or datetime.now(timezone.utc),
        )

    def to_summary(self) -> dict[str, Any]:
        """Public projection of the witness.

        WARNING: Never add ``contact`` here - summaries are served to
        anonymous readers.

        Returns:
            Dictionary of public fields.
        """
        return {
            "identifier": self.identifier,
            "display_name": self.display_name,
            "sequence_number": self.sequence_number,
            "proof_hash": self.proof.proof_hash,
            "block_ref": self.proof.block_ref,
            "signed_at": self.proof.signed_at.isoformat(),
            "status": self.status.value,
            "created_at": self.created_at.isoformat(),
        }
