"""Notification API request/response models.

``POST /notifications`` bodies are a tagged union on ``type``; each variant
declares exactly the fields its notification kind needs.
"""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, Any, Literal, Union

from pydantic import Field

from covenant_registry.api.models.base import CamelModel, DateTimeWithZ
from covenant_registry.domain.models.notification import (
    BatchTestIntent,
    CountdownIntent,
    DailyAuctionIntent,
    DispatchOutcome,
    EmergencyIntent,
    NotificationKind,
    NotificationRecord,
    UrgencyLevel,
)

DEFAULT_TEST_RECIPIENTS = ["test@example.com"]


class WelcomeNotificationRequest(CamelModel):
    type: Literal["welcome"]
    identifier: str


class MilestoneNotificationRequest(CamelModel):
    type: Literal["milestone"]
    threshold: int = Field(..., ge=1)
    total_witnesses: int | None = Field(default=None, ge=0)
    message: str = ""


class EmergencyNotificationRequest(CamelModel):
    type: Literal["emergency"]
    urgency_level: UrgencyLevel
    subject: str = Field(..., min_length=1)
    message: str = Field(..., min_length=1)
    action_required: str | None = None
    deadline_date: datetime | None = None

    def to_intent(self) -> EmergencyIntent:
        return EmergencyIntent(
            urgency=self.urgency_level,
            subject=self.subject,
            message=self.message,
            action_required=self.action_required,
            deadline=self.deadline_date,
        )


class LaunchCountdownNotificationRequest(CamelModel):
    type: Literal["launch_countdown"]
    days_remaining: int | None = None
    force: bool = False

    def to_intent(self) -> CountdownIntent:
        return CountdownIntent(days_remaining=self.days_remaining, force=self.force)


class BatchTestNotificationRequest(CamelModel):
    type: Literal["batch_test"]
    test_type: Literal["welcome", "milestone", "emergency", "countdown", "daily_auction"]
    test_emails: list[str] = Field(
        default_factory=lambda: list(DEFAULT_TEST_RECIPIENTS), min_length=1
    )

    def to_intent(self) -> BatchTestIntent:
        return BatchTestIntent(
            simulated_kind=NotificationKind(self.test_type),
            recipients=tuple(self.test_emails),
        )


class DailyAuctionNotificationRequest(CamelModel):
    type: Literal["daily_auction"]
    day: int = Field(..., ge=1)
    title: str = Field(..., min_length=1)
    end_time: datetime

    def to_intent(self) -> DailyAuctionIntent:
        return DailyAuctionIntent(day=self.day, title=self.title, end_time=self.end_time)


NotificationRequest = Annotated[
    Union[
        WelcomeNotificationRequest,
        MilestoneNotificationRequest,
        EmergencyNotificationRequest,
        LaunchCountdownNotificationRequest,
        BatchTestNotificationRequest,
        DailyAuctionNotificationRequest,
    ],
    Field(discriminator="type"),
]


class RecipientResultModel(CamelModel):
    recipient: str
    success: bool
    error: str | None = None


class NotificationResponse(CamelModel):
    """Outcome of a notification request.

    ``success`` is False when delivery failed; registry state is never
    affected either way.
    """

    success: bool
    type: str
    message: str
    already_sent: bool = False
    skipped: bool = False
    sent: int = 0
    failed: int = 0
    error: str | None = None
    notification_id: str | None = None
    test_results: list[RecipientResultModel] | None = None

    @classmethod
    def from_outcome(
        cls, request_type: str, outcome: DispatchOutcome, message: str
    ) -> NotificationResponse:
        test_results = None
        if outcome.kind == NotificationKind.BATCH_TEST:
            test_results = [
                RecipientResultModel(
                    recipient=r.recipient, success=r.success, error=r.error
                )
                for r in outcome.recipient_results
            ]
        return cls(
            success=outcome.success,
            type=request_type,
            message=message,
            already_sent=outcome.already_sent,
            skipped=outcome.skipped,
            sent=outcome.sent,
            failed=outcome.failed,
            error=outcome.error,
            notification_id=(
                str(outcome.record.notification_id) if outcome.record else None
            ),
            test_results=test_results,
        )


class NotificationRecordModel(CamelModel):
    notification_id: str
    kind: str
    status: str
    target_identifier: str | None = None
    payload: dict[str, Any] = Field(default_factory=dict)
    error: str | None = None
    recipients_sent: int = 0
    recipients_failed: int = 0
    created_at: DateTimeWithZ

    @classmethod
    def from_record(cls, record: NotificationRecord) -> NotificationRecordModel:
        return cls(
            notification_id=str(record.notification_id),
            kind=record.kind.value,
            status=record.status.value,
            target_identifier=record.target_identifier,
            payload=dict(record.payload),
            error=record.error,
            recipients_sent=record.recipients_sent,
            recipients_failed=record.recipients_failed,
            created_at=record.created_at,
        )


class NotificationHistoryResponse(CamelModel):
    notifications: list[NotificationRecordModel]
    count: int
