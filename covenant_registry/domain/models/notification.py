"""Notification domain models.

This module defines:
- NotificationKind: The discriminator for every notification
- Intents: One frozen dataclass per kind, each carrying only the fields
  that kind requires. ``NotificationIntent`` is their union.
- OutboundMessage: A single rendered message handed to a transport
- NotificationRecord: Append-only audit entry of a delivery attempt
- DispatchOutcome: What the dispatcher reports back to its caller

Delivery failure never mutates witness or milestone state; it only ever
produces a ``failed`` record.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Union
from uuid import UUID, uuid4


class NotificationKind(str, Enum):
    """Discriminated notification type."""

    WELCOME = "welcome"
    MILESTONE = "milestone"
    EMERGENCY = "emergency"
    COUNTDOWN = "countdown"
    BATCH_TEST = "batch_test"
    DAILY_AUCTION = "daily_auction"


class DeliveryStatus(str, Enum):
    """Result of a delivery attempt."""

    SENT = "sent"
    FAILED = "failed"


class UrgencyLevel(str, Enum):
    """Urgency attached to emergency and countdown notices."""

    CRITICAL = "critical"
    WARNING = "warning"
    INFO = "info"


@dataclass(frozen=True)
class WelcomeIntent:
    """Welcome a newly accepted witness. Idempotent per witness."""

    identifier: str
    kind: NotificationKind = field(default=NotificationKind.WELCOME, init=False)


@dataclass(frozen=True)
class MilestoneIntent:
    """Broadcast that a population threshold was crossed. Once per threshold."""

    threshold: int
    population: int
    message: str = ""
    kind: NotificationKind = field(default=NotificationKind.MILESTONE, init=False)


@dataclass(frozen=True)
class EmergencyIntent:
    """Immediate broadcast, always attempted."""

    urgency: UrgencyLevel
    subject: str
    message: str
    action_required: str | None = None
    deadline: datetime | None = None
    kind: NotificationKind = field(default=NotificationKind.EMERGENCY, init=False)


@dataclass(frozen=True)
class CountdownIntent:
    """Launch countdown broadcast. At most once per calendar day unless forced.

    Attributes:
        days_remaining: Override for the computed days remaining. None means
            "compute from the configured deadline".
        force: Bypass the per-day idempotency and the countdown window.
    """

    days_remaining: int | None = None
    force: bool = False
    kind: NotificationKind = field(default=NotificationKind.COUNTDOWN, init=False)


@dataclass(frozen=True)
class BatchTestIntent:
    """Send a simulated notification to an explicit recipient list.

    Operational verification only: never reads or writes witness or
    milestone state.
    """

    simulated_kind: NotificationKind
    recipients: tuple[str, ...]
    kind: NotificationKind = field(default=NotificationKind.BATCH_TEST, init=False)

    def __post_init__(self) -> None:
        if self.simulated_kind == NotificationKind.BATCH_TEST:
            raise ValueError("batch_test cannot simulate itself")


@dataclass(frozen=True)
class DailyAuctionIntent:
    """Announce a daily auction to witnesses who opted in."""

    day: int
    title: str
    end_time: datetime
    kind: NotificationKind = field(default=NotificationKind.DAILY_AUCTION, init=False)


NotificationIntent = Union[
    WelcomeIntent,
    MilestoneIntent,
    EmergencyIntent,
    CountdownIntent,
    BatchTestIntent,
    DailyAuctionIntent,
]


@dataclass(frozen=True)
class OutboundMessage:
    """One rendered message for one recipient."""

    recipient: str
    subject: str
    body: str
    kind: NotificationKind
    priority: str = "normal"
    target_identifier: str | None = None


@dataclass(frozen=True)
class NotificationRecord:
    """Append-only audit entry for a notification attempt.

    Broadcasts produce a single record with ``target_identifier=None`` and
    per-recipient counts; per-witness notifications carry the witness
    identifier.

    Attributes:
        notification_id: Unique record id.
        kind: Notification kind.
        status: ``sent`` or ``failed``.
        payload: Kind-specific data.
        target_identifier: Witness identifier, None for broadcasts.
        error: Failure detail when status is ``failed``.
        idempotency_key: Key used to suppress repeats (welcome, milestone,
            countdown), None otherwise.
        recipients_sent: Successful deliveries covered by this record.
        recipients_failed: Failed deliveries covered by this record.
        created_at: When the attempt completed (UTC).
    """

    kind: NotificationKind
    status: DeliveryStatus
    payload: dict[str, Any] = field(default_factory=dict)
    target_identifier: str | None = None
    error: str | None = None
    idempotency_key: str | None = None
    recipients_sent: int = 0
    recipients_failed: int = 0
    notification_id: UUID = field(default_factory=uuid4)
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> dict[str, Any]:
        """Serialize for API responses.

        Returns:
            Dictionary representation with string ids and ISO timestamps.
        """
        return {
            "notification_id": str(self.notification_id),
            "kind": self.kind.value,
            "status": self.status.value,
            "target_identifier": self.target_identifier,
            "payload": dict(self.payload),
            "error": self.error,
            "idempotency_key": self.idempotency_key,
            "recipients_sent": self.recipients_sent,
            "recipients_failed": self.recipients_failed,
            "created_at": self.created_at.isoformat(),
        }


@dataclass(frozen=True)
class RecipientResult:
    """Per-recipient delivery result (batch tests)."""

    recipient: str
    success: bool
    error: str | None = None


@dataclass(frozen=True)
class DispatchOutcome:
    """Report returned by the dispatcher. Never an exception.

    Attributes:
        kind: Kind that was dispatched.
        success: True when every attempted delivery succeeded (or nothing
            needed sending).
        already_sent: True when suppressed by idempotency.
        skipped: True when intentionally not sent (e.g. countdown outside
            its window, welcome for a witness without contact).
        sent: Number of successful deliveries.
        failed: Number of failed deliveries.
        error: Failure or skip reason.
        record: Audit record written for this attempt, if any.
        recipient_results: Per-recipient results (batch tests only).
    """

    kind: NotificationKind
    success: bool
    already_sent: bool = False
    skipped: bool = False
    sent: int = 0
    failed: int = 0
    error: str | None = None
    record: NotificationRecord | None = None
    recipient_results: tuple[RecipientResult, ...] = ()
