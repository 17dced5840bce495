"""Notification dispatcher.

Delivers typed notification intents through a transport and records every
attempt in the append-only notification log.

Guarantees:
- ``dispatch`` never raises. Transport failures are caught, logged and
  recorded as ``failed``; the operation that triggered the notification
  proceeds regardless.
- ``submit`` schedules delivery as a background task, so a slow or failing
  transport never delays the caller.
- Welcome, milestone and countdown notifications are idempotent on a key
  (``welcome:<identifier>``, ``milestone:<threshold>``,
  ``countdown:<YYYY-MM-DD>``). The key is checked and the record appended
  under a per-key lock. A welcome is repeated until one is ``sent``;
  milestone and countdown broadcasts are attempted once per key, since a
  repeat would reach recipients who already got the message.
- Batch tests go to an explicit recipient list and never read or write
  witness or milestone state.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Awaitable, Callable, Sequence
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any

from structlog import get_logger

from covenant_registry.application.ports.notification_log import (
    NotificationLogProtocol,
)
from covenant_registry.application.ports.notification_transport import (
    NotificationTransportProtocol,
)
from covenant_registry.application.ports.witness_repository import (
    WitnessRepositoryProtocol,
)
from covenant_registry.config.covenant_config import (
    DEFAULT_COVENANT_CONFIG,
    CovenantConfig,
)
from covenant_registry.domain.errors import NotificationDeliveryError
from covenant_registry.domain.models.notification import (
    BatchTestIntent,
    CountdownIntent,
    DailyAuctionIntent,
    DeliveryStatus,
    DispatchOutcome,
    EmergencyIntent,
    MilestoneIntent,
    NotificationIntent,
    NotificationKind,
    NotificationRecord,
    OutboundMessage,
    RecipientResult,
    UrgencyLevel,
    WelcomeIntent,
)
from covenant_registry.domain.models.witness import Witness, WitnessProof
from covenant_registry.domain.services.milestone_schedule import milestone_message
from covenant_registry.domain.services.notification_messages import (
    countdown_urgency,
    render_countdown,
    render_daily_auction,
    render_emergency,
    render_milestone,
    render_welcome,
)
from covenant_registry.domain.services.readiness_calculator import days_until
from covenant_registry.infrastructure.monitoring.metrics import get_metrics_collector

logger = get_logger(__name__)

# Sample witness number used when a batch test simulates a welcome
_SAMPLE_SEQUENCE_NUMBER = 1


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def welcome_key(identifier: str) -> str:
    return f"welcome:{identifier}"


def milestone_key(threshold: int) -> str:
    return f"milestone:{threshold}"


def countdown_key(day: str) -> str:
    return f"countdown:{day}"


class NotificationDispatcher:
    """Delivers notification intents and keeps the audit log."""

    def __init__(
        self,
        witness_repository: WitnessRepositoryProtocol,
        notification_log: NotificationLogProtocol,
        transport: NotificationTransportProtocol,
        config: CovenantConfig = DEFAULT_COVENANT_CONFIG,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self._witnesses = witness_repository
        self._log = notification_log
        self._transport = transport
        self._config = config
        self._clock = clock
        self._key_locks: dict[str, asyncio.Lock] = {}
        self._key_users: dict[str, int] = {}
        self._tasks: set[asyncio.Task[DispatchOutcome]] = set()
        self._handlers: dict[
            NotificationKind, Callable[[Any], Awaitable[DispatchOutcome]]
        ] = {
            NotificationKind.WELCOME: self._dispatch_welcome,
            NotificationKind.MILESTONE: self._dispatch_milestone,
            NotificationKind.EMERGENCY: self._dispatch_emergency,
            NotificationKind.COUNTDOWN: self._dispatch_countdown,
            NotificationKind.BATCH_TEST: self._dispatch_batch_test,
            NotificationKind.DAILY_AUCTION: self._dispatch_daily_auction,
        }

    @property
    def pending(self) -> int:
        """Number of submitted dispatches still running."""
        return len(self._tasks)

    @property
    def key_locks_held(self) -> int:
        """Number of idempotency keys with a task holding or awaiting the lock."""
        return len(self._key_locks)

    async def dispatch(self, intent: NotificationIntent) -> DispatchOutcome:
        """Deliver a notification and report the outcome.

        Never raises: every failure becomes ``success=False`` with an error
        message, and a ``failed`` record where an attempt was made.
        """
        log = logger.bind(kind=intent.kind.value)
        try:
            outcome = await self._handlers[intent.kind](intent)
        except Exception as e:
            log.error(
                "notification_dispatch_failed",
                error=str(e),
                error_type=type(e).__name__,
            )
            get_metrics_collector().increment_notifications(intent.kind.value, "failed")
            return DispatchOutcome(kind=intent.kind, success=False, error=str(e))

        if outcome.already_sent:
            get_metrics_collector().increment_notifications(
                intent.kind.value, "already_sent"
            )
        log.debug(
            "notification_dispatched",
            success=outcome.success,
            already_sent=outcome.already_sent,
            skipped=outcome.skipped,
            sent=outcome.sent,
            failed=outcome.failed,
        )
        return outcome

    def submit(self, intent: NotificationIntent) -> asyncio.Task[DispatchOutcome]:
        """Schedule ``dispatch`` in the background and return immediately.

        Must be called from a running event loop.
        """
        task = asyncio.get_running_loop().create_task(self.dispatch(intent))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def drain(self) -> None:
        """Wait for every submitted dispatch to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks))

    # Kind handlers

    async def _dispatch_welcome(self, intent: WelcomeIntent) -> DispatchOutcome:
        key = welcome_key(intent.identifier)
        async with self._key_lock(key):
            if await self._log.has_sent(key):
                logger.info("welcome_already_sent", identifier=intent.identifier)
                return DispatchOutcome(
                    kind=intent.kind, success=True, already_sent=True
                )

            witness = await self._witnesses.get(intent.identifier)
            if witness is None:
                return DispatchOutcome(
                    kind=intent.kind,
                    success=False,
                    error=f"No witness registered for {intent.identifier}",
                )
            if not witness.contact:
                return DispatchOutcome(
                    kind=intent.kind,
                    success=True,
                    skipped=True,
                    error="Witness has no contact address",
                )

            subject, body = render_welcome(witness, self._config.dashboard_url)
            message = OutboundMessage(
                recipient=witness.contact,
                subject=subject,
                body=body,
                kind=intent.kind,
                priority="high",
                target_identifier=witness.identifier,
            )
            return await self._deliver_to_witness(
                message,
                payload={"sequence_number": witness.sequence_number},
                idempotency_key=key,
            )

    async def _dispatch_milestone(self, intent: MilestoneIntent) -> DispatchOutcome:
        key = milestone_key(intent.threshold)
        async with self._key_lock(key):
            # One attempt per threshold, even if some recipients failed
            if await self._log.has_attempted(key):
                return DispatchOutcome(
                    kind=intent.kind, success=True, already_sent=True
                )
            text = intent.message or milestone_message(
                intent.threshold, self._config.target_witnesses
            )
            subject, body = render_milestone(intent.threshold, intent.population, text)
            recipients = await self._witnesses.list_recipients("milestones")
            return await self._broadcast(
                intent.kind,
                recipients,
                subject,
                body,
                payload={
                    "threshold": intent.threshold,
                    "population": intent.population,
                    "message": text,
                },
                idempotency_key=key,
            )

    async def _dispatch_emergency(self, intent: EmergencyIntent) -> DispatchOutcome:
        subject, body = render_emergency(
            intent.urgency,
            intent.subject,
            intent.message,
            intent.action_required,
            intent.deadline,
        )
        recipients = await self._witnesses.list_recipients("emergency")
        return await self._broadcast(
            intent.kind,
            recipients,
            subject,
            body,
            payload={
                "urgency": intent.urgency.value,
                "subject": intent.subject,
                "action_required": intent.action_required,
                "deadline": intent.deadline.isoformat() if intent.deadline else None,
            },
            priority="high",
        )

    async def _dispatch_countdown(self, intent: CountdownIntent) -> DispatchOutcome:
        now = self._clock()
        deadline = self._config.deadline
        days = intent.days_remaining
        if days is None:
            days = days_until(deadline, now)

        if not intent.force:
            if days < 0:
                return DispatchOutcome(
                    kind=intent.kind,
                    success=True,
                    skipped=True,
                    error="Deadline has passed",
                )
            if days > self._config.countdown_window_days:
                return DispatchOutcome(
                    kind=intent.kind,
                    success=True,
                    skipped=True,
                    error=(
                        f"{days} days remaining is outside the "
                        f"{self._config.countdown_window_days} day countdown window"
                    ),
                )

        urgency = countdown_urgency(days)
        subject, body = render_countdown(days, deadline)
        payload = {"days_remaining": days, "urgency": urgency.value}
        priority = "high" if urgency == UrgencyLevel.CRITICAL else "normal"

        if intent.force:
            recipients = await self._witnesses.list_recipients()
            return await self._broadcast(
                intent.kind, recipients, subject, body, payload, priority=priority
            )

        # Calendar day of the deadline's timezone
        day = now.astimezone(deadline.tzinfo).date().isoformat()
        key = countdown_key(day)
        async with self._key_lock(key):
            if await self._log.has_attempted(key):
                return DispatchOutcome(
                    kind=intent.kind, success=True, already_sent=True
                )
            recipients = await self._witnesses.list_recipients()
            return await self._broadcast(
                intent.kind,
                recipients,
                subject,
                body,
                payload,
                idempotency_key=key,
                priority=priority,
            )

    async def _dispatch_daily_auction(
        self, intent: DailyAuctionIntent
    ) -> DispatchOutcome:
        subject, body = render_daily_auction(intent.day, intent.title, intent.end_time)
        recipients = await self._witnesses.list_recipients("daily_auctions")
        return await self._broadcast(
            intent.kind,
            recipients,
            subject,
            body,
            payload={
                "day": intent.day,
                "title": intent.title,
                "end_time": intent.end_time.isoformat(),
            },
        )

    async def _dispatch_batch_test(self, intent: BatchTestIntent) -> DispatchOutcome:
        subject, body = self._render_sample(intent.simulated_kind)
        subject = f"[TEST] {subject}"
        messages = [
            OutboundMessage(
                recipient=recipient,
                subject=subject,
                body=body,
                kind=intent.simulated_kind,
            )
            for recipient in intent.recipients
        ]
        errors = await asyncio.gather(*(self._send(m) for m in messages))
        results = tuple(
            RecipientResult(recipient=m.recipient, success=err is None, error=err)
            for m, err in zip(messages, errors)
        )
        sent = sum(1 for r in results if r.success)
        failed = len(results) - sent

        record = NotificationRecord(
            kind=intent.kind,
            status=DeliveryStatus.SENT if failed == 0 else DeliveryStatus.FAILED,
            payload={
                "simulated_kind": intent.simulated_kind.value,
                "recipients": len(results),
            },
            error=_summarize_errors(errors) if failed else None,
            recipients_sent=sent,
            recipients_failed=failed,
        )
        await self._log.append(record)
        self._count(intent.kind, sent, failed)

        logger.info(
            "batch_test_completed",
            simulated_kind=intent.simulated_kind.value,
            sent=sent,
            failed=failed,
        )
        return DispatchOutcome(
            kind=intent.kind,
            success=failed == 0,
            sent=sent,
            failed=failed,
            error=record.error,
            record=record,
            recipient_results=results,
        )

    # Delivery helpers

    @asynccontextmanager
    async def _key_lock(self, key: str) -> AsyncIterator[None]:
        """Serialize work on one idempotency key.

        The lock entry is dropped once no task holds or waits on it.
        """
        lock = self._key_locks.setdefault(key, asyncio.Lock())
        self._key_users[key] = self._key_users.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            remaining = self._key_users[key] - 1
            if remaining:
                self._key_users[key] = remaining
            else:
                del self._key_users[key]
                del self._key_locks[key]

    async def _send(self, message: OutboundMessage) -> str | None:
        """Send one message. Returns the error text, or None on success."""
        try:
            await self._transport.send(message)
        except NotificationDeliveryError as e:
            logger.warning(
                "notification_delivery_failed",
                kind=message.kind.value,
                recipient=message.recipient,
                reason=e.reason,
            )
            return e.reason
        except Exception as e:
            logger.error(
                "notification_transport_error",
                kind=message.kind.value,
                recipient=message.recipient,
                error=str(e),
                error_type=type(e).__name__,
            )
            return str(e) or type(e).__name__
        return None

    async def _deliver_to_witness(
        self,
        message: OutboundMessage,
        payload: dict[str, Any],
        idempotency_key: str | None = None,
    ) -> DispatchOutcome:
        error = await self._send(message)
        record = NotificationRecord(
            kind=message.kind,
            status=DeliveryStatus.SENT if error is None else DeliveryStatus.FAILED,
            payload=payload,
            target_identifier=message.target_identifier,
            error=error,
            idempotency_key=idempotency_key,
            recipients_sent=1 if error is None else 0,
            recipients_failed=0 if error is None else 1,
        )
        await self._log.append(record)
        self._count(message.kind, record.recipients_sent, record.recipients_failed)
        return DispatchOutcome(
            kind=message.kind,
            success=error is None,
            sent=record.recipients_sent,
            failed=record.recipients_failed,
            error=error,
            record=record,
        )

    async def _broadcast(
        self,
        kind: NotificationKind,
        recipients: Sequence[Witness],
        subject: str,
        body: str,
        payload: dict[str, Any],
        idempotency_key: str | None = None,
        priority: str = "normal",
    ) -> DispatchOutcome:
        messages = [
            OutboundMessage(
                recipient=witness.contact,
                subject=subject,
                body=body,
                kind=kind,
                priority=priority,
                target_identifier=witness.identifier,
            )
            for witness in recipients
            if witness.contact
        ]
        errors = await asyncio.gather(*(self._send(m) for m in messages))
        failed = sum(1 for err in errors if err is not None)
        sent = len(messages) - failed

        record = NotificationRecord(
            kind=kind,
            status=DeliveryStatus.SENT if failed == 0 else DeliveryStatus.FAILED,
            payload=payload,
            error=_summarize_errors(errors) if failed else None,
            idempotency_key=idempotency_key,
            recipients_sent=sent,
            recipients_failed=failed,
        )
        await self._log.append(record)
        self._count(kind, sent, failed)

        logger.info(
            "notification_broadcast",
            kind=kind.value,
            recipients=len(messages),
            sent=sent,
            failed=failed,
        )
        return DispatchOutcome(
            kind=kind,
            success=failed == 0,
            sent=sent,
            failed=failed,
            error=record.error,
            record=record,
        )

    def _render_sample(self, kind: NotificationKind) -> tuple[str, str]:
        """Sample copy for a simulated kind. Uses no registry state."""
        now = self._clock()
        if kind == NotificationKind.WELCOME:
            sample = Witness(
                identifier="0x" + "0" * 40,
                sequence_number=_SAMPLE_SEQUENCE_NUMBER,
                proof=WitnessProof(proof_hash="0x" + "0" * 64, signed_at=now),
                created_at=now,
                updated_at=now,
            )
            return render_welcome(sample, self._config.dashboard_url)
        if kind == NotificationKind.MILESTONE:
            threshold = self._config.milestones[0]
            return render_milestone(
                threshold,
                threshold,
                milestone_message(threshold, self._config.target_witnesses),
            )
        if kind == NotificationKind.COUNTDOWN:
            return render_countdown(
                max(0, days_until(self._config.deadline, now)), self._config.deadline
            )
        if kind == NotificationKind.DAILY_AUCTION:
            return render_daily_auction(1, "Test Auction", now)
        return render_emergency(
            UrgencyLevel.INFO,
            "Test Emergency Alert",
            "This is a test of the emergency notification system.",
        )

    @staticmethod
    def _count(kind: NotificationKind, sent: int, failed: int) -> None:
        metrics = get_metrics_collector()
        metrics.increment_notifications(kind.value, "sent", sent)
        metrics.increment_notifications(kind.value, "failed", failed)


def _summarize_errors(errors: Sequence[str | None]) -> str:
    distinct = sorted({err for err in errors if err is not None})
    failed = sum(1 for err in errors if err is not None)
    return f"{failed} deliveries failed: {'; '.join(distinct)}"
