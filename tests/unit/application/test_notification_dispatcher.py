"""Unit tests for NotificationDispatcher.

Tests cover:
- Welcome idempotency (sequential and concurrent)
- Failure isolation: delivery errors become failed records, never exceptions
- Broadcast preference filtering
- Countdown window and once-per-day behavior
- Batch tests never touching registry state
"""

import asyncio
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock

import pytest

from covenant_registry.application.services.notification_dispatcher import (
    NotificationDispatcher,
)
from covenant_registry.config.covenant_config import CovenantConfig
from covenant_registry.domain.models.notification import (
    BatchTestIntent,
    CountdownIntent,
    DailyAuctionIntent,
    DeliveryStatus,
    EmergencyIntent,
    MilestoneIntent,
    NotificationKind,
    UrgencyLevel,
    WelcomeIntent,
)
from covenant_registry.domain.models.witness import (
    NotificationPreferences,
    Witness,
    WitnessProof,
)
from covenant_registry.infrastructure.stubs import (
    NotificationLogStub,
    RecordingTransportStub,
    WitnessRepositoryStub,
)

SIGNED_AT = datetime(2025, 10, 1, tzinfo=timezone.utc)


async def add_witness(
    repository: WitnessRepositoryStub,
    identifier: str,
    contact: str | None,
    preferences: NotificationPreferences | None = None,
) -> Witness:
    def build(sequence_number: int) -> Witness:
        return Witness(
            identifier=identifier,
            sequence_number=sequence_number,
            proof=WitnessProof(proof_hash="0xproof", signed_at=SIGNED_AT),
            contact=contact,
            notification_preferences=preferences or NotificationPreferences(),
        )

    witness, _ = await repository.try_accept(identifier, build)
    return witness


@pytest.fixture
def dispatcher(
    witness_repository: WitnessRepositoryStub,
    notification_log: NotificationLogStub,
    transport: RecordingTransportStub,
    covenant_config: CovenantConfig,
    clock,
) -> NotificationDispatcher:
    """Create a dispatcher over in-memory stubs."""
    return NotificationDispatcher(
        witness_repository=witness_repository,
        notification_log=notification_log,
        transport=transport,
        config=covenant_config,
        clock=clock,
    )


class TestWelcome:
    """Welcome notifications."""

    @pytest.mark.asyncio
    async def test_sends_welcome_with_witness_number(
        self,
        dispatcher: NotificationDispatcher,
        witness_repository: WitnessRepositoryStub,
        transport: RecordingTransportStub,
        identifier_factory: Callable[[int], str],
    ) -> None:
        identifier = identifier_factory(1)
        await add_witness(witness_repository, identifier, "w@example.com")

        outcome = await dispatcher.dispatch(WelcomeIntent(identifier=identifier))

        assert outcome.success is True
        assert outcome.sent == 1
        assert transport.sent[0].subject == "Welcome, Covenant Witness #1"
        assert transport.sent[0].recipient == "w@example.com"

    @pytest.mark.asyncio
    async def test_second_welcome_is_already_sent(
        self,
        dispatcher: NotificationDispatcher,
        witness_repository: WitnessRepositoryStub,
        notification_log: NotificationLogStub,
        transport: RecordingTransportStub,
        identifier_factory: Callable[[int], str],
    ) -> None:
        identifier = identifier_factory(1)
        await add_witness(witness_repository, identifier, "w@example.com")

        await dispatcher.dispatch(WelcomeIntent(identifier=identifier))
        second = await dispatcher.dispatch(WelcomeIntent(identifier=identifier))

        assert second.already_sent is True
        assert second.success is True
        assert len(transport.sent) == 1
        sent_records = [
            r for r in notification_log.records if r.status == DeliveryStatus.SENT
        ]
        assert len(sent_records) == 1

    @pytest.mark.asyncio
    async def test_concurrent_welcomes_send_once(
        self,
        witness_repository: WitnessRepositoryStub,
        notification_log: NotificationLogStub,
        covenant_config: CovenantConfig,
        identifier_factory: Callable[[int], str],
    ) -> None:
        identifier = identifier_factory(1)
        await add_witness(witness_repository, identifier, "w@example.com")
        dispatcher = NotificationDispatcher(
            witness_repository,
            notification_log,
            RecordingTransportStub(delay_seconds=0.01),
            covenant_config,
        )

        outcomes = await asyncio.gather(
            *(dispatcher.dispatch(WelcomeIntent(identifier=identifier)) for _ in range(5))
        )

        assert sum(1 for o in outcomes if o.sent == 1) == 1
        assert sum(1 for o in outcomes if o.already_sent) == 4
        assert len(notification_log.records) == 1

    @pytest.mark.asyncio
    async def test_failed_welcome_can_be_retried(
        self,
        dispatcher: NotificationDispatcher,
        witness_repository: WitnessRepositoryStub,
        notification_log: NotificationLogStub,
        transport: RecordingTransportStub,
        identifier_factory: Callable[[int], str],
    ) -> None:
        """Only a sent record suppresses a repeat."""
        identifier = identifier_factory(1)
        await add_witness(witness_repository, identifier, "w@example.com")
        transport.fail_all = True

        failed = await dispatcher.dispatch(WelcomeIntent(identifier=identifier))
        transport.fail_all = False
        retried = await dispatcher.dispatch(WelcomeIntent(identifier=identifier))

        assert failed.success is False
        assert failed.record is not None
        assert failed.record.status == DeliveryStatus.FAILED
        assert retried.success is True
        assert retried.already_sent is False
        assert [r.status for r in notification_log.records] == [
            DeliveryStatus.FAILED,
            DeliveryStatus.SENT,
        ]

    @pytest.mark.asyncio
    async def test_witness_without_contact_is_skipped(
        self,
        dispatcher: NotificationDispatcher,
        witness_repository: WitnessRepositoryStub,
        notification_log: NotificationLogStub,
        identifier_factory: Callable[[int], str],
    ) -> None:
        identifier = identifier_factory(1)
        await add_witness(witness_repository, identifier, None)

        outcome = await dispatcher.dispatch(WelcomeIntent(identifier=identifier))

        assert outcome.skipped is True
        assert notification_log.records == []

    @pytest.mark.asyncio
    async def test_unknown_witness_reports_error(
        self,
        dispatcher: NotificationDispatcher,
        identifier_factory: Callable[[int], str],
    ) -> None:
        outcome = await dispatcher.dispatch(
            WelcomeIntent(identifier=identifier_factory(99))
        )

        assert outcome.success is False
        assert "No witness registered" in (outcome.error or "")


class TestFailureIsolation:
    """dispatch never raises."""

    @pytest.mark.asyncio
    async def test_unexpected_transport_error_is_recorded(
        self,
        witness_repository: WitnessRepositoryStub,
        notification_log: NotificationLogStub,
        covenant_config: CovenantConfig,
        identifier_factory: Callable[[int], str],
    ) -> None:
        identifier = identifier_factory(1)
        await add_witness(witness_repository, identifier, "w@example.com")
        broken = AsyncMock()
        broken.send.side_effect = ConnectionError("smtp unreachable")
        dispatcher = NotificationDispatcher(
            witness_repository, notification_log, broken, covenant_config
        )

        outcome = await dispatcher.dispatch(WelcomeIntent(identifier=identifier))

        assert outcome.success is False
        assert outcome.error == "smtp unreachable"
        assert notification_log.records[0].status == DeliveryStatus.FAILED

    @pytest.mark.asyncio
    async def test_storage_error_becomes_failed_outcome(
        self,
        witness_repository: WitnessRepositoryStub,
        transport: RecordingTransportStub,
        covenant_config: CovenantConfig,
        identifier_factory: Callable[[int], str],
    ) -> None:
        broken_log = AsyncMock()
        broken_log.has_sent.side_effect = RuntimeError("log unavailable")
        dispatcher = NotificationDispatcher(
            witness_repository, broken_log, transport, covenant_config
        )

        outcome = await dispatcher.dispatch(
            WelcomeIntent(identifier=identifier_factory(1))
        )

        assert outcome.success is False
        assert outcome.error == "log unavailable"

    @pytest.mark.asyncio
    async def test_partial_broadcast_failure_writes_one_failed_record(
        self,
        dispatcher: NotificationDispatcher,
        witness_repository: WitnessRepositoryStub,
        notification_log: NotificationLogStub,
        transport: RecordingTransportStub,
        identifier_factory: Callable[[int], str],
    ) -> None:
        await add_witness(witness_repository, identifier_factory(1), "a@example.com")
        await add_witness(witness_repository, identifier_factory(2), "b@example.com")
        transport.failing_recipients = {"b@example.com"}

        outcome = await dispatcher.dispatch(
            EmergencyIntent(
                urgency=UrgencyLevel.CRITICAL,
                subject="Contract paused",
                message="Registrations are paused.",
            )
        )

        assert outcome.success is False
        assert (outcome.sent, outcome.failed) == (1, 1)
        assert len(notification_log.records) == 1
        record = notification_log.records[0]
        assert record.status == DeliveryStatus.FAILED
        assert record.recipients_sent == 1
        assert transport.sent[0].subject == "COVENANT ALERT: Contract paused"


class TestBroadcasts:
    """Preference-filtered broadcasts."""

    @pytest.mark.asyncio
    async def test_milestone_respects_opt_out_and_fires_once(
        self,
        dispatcher: NotificationDispatcher,
        witness_repository: WitnessRepositoryStub,
        transport: RecordingTransportStub,
        identifier_factory: Callable[[int], str],
    ) -> None:
        await add_witness(witness_repository, identifier_factory(1), "a@example.com")
        await add_witness(
            witness_repository,
            identifier_factory(2),
            "b@example.com",
            NotificationPreferences(milestones=False),
        )
        intent = MilestoneIntent(threshold=10, population=10)

        first = await dispatcher.dispatch(intent)
        second = await dispatcher.dispatch(intent)

        assert first.sent == 1
        assert [m.recipient for m in transport.sent] == ["a@example.com"]
        assert second.already_sent is True

    @pytest.mark.asyncio
    async def test_partially_failed_milestone_is_not_resent(
        self,
        dispatcher: NotificationDispatcher,
        witness_repository: WitnessRepositoryStub,
        notification_log: NotificationLogStub,
        transport: RecordingTransportStub,
        identifier_factory: Callable[[int], str],
    ) -> None:
        """A repeat would reach recipients who already got the first send."""
        await add_witness(witness_repository, identifier_factory(1), "a@example.com")
        await add_witness(witness_repository, identifier_factory(2), "b@example.com")
        transport.failing_recipients = {"b@example.com"}
        intent = MilestoneIntent(threshold=10, population=10)

        first = await dispatcher.dispatch(intent)
        transport.failing_recipients = set()
        second = await dispatcher.dispatch(intent)

        assert (first.sent, first.failed) == (1, 1)
        assert second.already_sent is True
        assert len(transport.sent_to("a@example.com")) == 1
        assert transport.sent_to("b@example.com") == []
        assert len(notification_log.records) == 1

    @pytest.mark.asyncio
    async def test_daily_auction_goes_to_opted_in_witnesses(
        self,
        dispatcher: NotificationDispatcher,
        witness_repository: WitnessRepositoryStub,
        transport: RecordingTransportStub,
        identifier_factory: Callable[[int], str],
    ) -> None:
        await add_witness(witness_repository, identifier_factory(1), "a@example.com")
        await add_witness(
            witness_repository,
            identifier_factory(2),
            "b@example.com",
            NotificationPreferences(daily_auctions=False),
        )

        outcome = await dispatcher.dispatch(
            DailyAuctionIntent(
                day=3,
                title="Genesis Relic",
                end_time=datetime(2025, 10, 3, 20, tzinfo=timezone.utc),
            )
        )

        assert outcome.sent == 1
        assert transport.sent[0].subject == "Day 3: Genesis Relic - Auction Live"

    @pytest.mark.asyncio
    async def test_broadcast_with_no_recipients_succeeds(
        self,
        dispatcher: NotificationDispatcher,
        notification_log: NotificationLogStub,
    ) -> None:
        outcome = await dispatcher.dispatch(
            EmergencyIntent(urgency=UrgencyLevel.INFO, subject="s", message="m")
        )

        assert outcome.success is True
        assert outcome.sent == 0
        assert notification_log.records[0].status == DeliveryStatus.SENT


class TestCountdown:
    """Countdown window and per-day idempotency."""

    @pytest.mark.asyncio
    async def test_outside_window_is_skipped(
        self,
        witness_repository: WitnessRepositoryStub,
        notification_log: NotificationLogStub,
        transport: RecordingTransportStub,
        clock,
    ) -> None:
        config = CovenantConfig(deadline=clock.now + timedelta(days=45))
        dispatcher = NotificationDispatcher(
            witness_repository, notification_log, transport, config, clock
        )

        outcome = await dispatcher.dispatch(CountdownIntent())

        assert outcome.skipped is True
        assert notification_log.records == []

    @pytest.mark.asyncio
    async def test_sends_once_per_day(
        self,
        dispatcher: NotificationDispatcher,
        witness_repository: WitnessRepositoryStub,
        transport: RecordingTransportStub,
        clock,
        identifier_factory: Callable[[int], str],
    ) -> None:
        await add_witness(witness_repository, identifier_factory(1), "a@example.com")

        first = await dispatcher.dispatch(CountdownIntent())
        again = await dispatcher.dispatch(CountdownIntent())
        clock.advance(days=1)
        next_day = await dispatcher.dispatch(CountdownIntent())

        assert first.sent == 1
        assert again.already_sent is True
        assert next_day.sent == 1
        assert transport.sent[0].subject == "30 Days Until Covenant Launch"
        assert transport.sent[1].subject == "29 Days Until Covenant Launch"

    @pytest.mark.asyncio
    async def test_partially_failed_countdown_is_not_resent_same_day(
        self,
        dispatcher: NotificationDispatcher,
        witness_repository: WitnessRepositoryStub,
        transport: RecordingTransportStub,
        identifier_factory: Callable[[int], str],
    ) -> None:
        await add_witness(witness_repository, identifier_factory(1), "a@example.com")
        await add_witness(witness_repository, identifier_factory(2), "b@example.com")
        transport.failing_recipients = {"b@example.com"}

        first = await dispatcher.dispatch(CountdownIntent())
        again = await dispatcher.dispatch(CountdownIntent())

        assert first.success is False
        assert again.already_sent is True
        assert len(transport.sent_to("a@example.com")) == 1

    @pytest.mark.asyncio
    async def test_force_bypasses_window_and_idempotency(
        self,
        witness_repository: WitnessRepositoryStub,
        notification_log: NotificationLogStub,
        transport: RecordingTransportStub,
        clock,
        identifier_factory: Callable[[int], str],
    ) -> None:
        config = CovenantConfig(deadline=clock.now + timedelta(days=45))
        dispatcher = NotificationDispatcher(
            witness_repository, notification_log, transport, config, clock
        )
        await add_witness(witness_repository, identifier_factory(1), "a@example.com")

        await dispatcher.dispatch(CountdownIntent(force=True))
        await dispatcher.dispatch(CountdownIntent(force=True))

        assert len(transport.sent) == 2
        assert all(r.idempotency_key is None for r in notification_log.records)

    @pytest.mark.asyncio
    async def test_one_day_left_subject(
        self,
        dispatcher: NotificationDispatcher,
        witness_repository: WitnessRepositoryStub,
        transport: RecordingTransportStub,
        identifier_factory: Callable[[int], str],
    ) -> None:
        await add_witness(witness_repository, identifier_factory(1), "a@example.com")

        outcome = await dispatcher.dispatch(CountdownIntent(days_remaining=1))

        assert outcome.record is not None
        assert outcome.record.payload["urgency"] == "critical"
        assert transport.sent[0].subject == "TOMORROW: The Covenant Begins"
        assert transport.sent[0].priority == "high"


class TestBatchTest:
    """Operational test sends."""

    @pytest.mark.asyncio
    async def test_reports_per_recipient_results_without_registry_reads(
        self,
        notification_log: NotificationLogStub,
        covenant_config: CovenantConfig,
        clock,
    ) -> None:
        witnesses = AsyncMock()
        transport = RecordingTransportStub(failing_recipients={"bad@example.com"})
        dispatcher = NotificationDispatcher(
            witnesses, notification_log, transport, covenant_config, clock
        )

        outcome = await dispatcher.dispatch(
            BatchTestIntent(
                simulated_kind=NotificationKind.WELCOME,
                recipients=("ok@example.com", "bad@example.com"),
            )
        )

        assert [(r.recipient, r.success) for r in outcome.recipient_results] == [
            ("ok@example.com", True),
            ("bad@example.com", False),
        ]
        assert outcome.success is False
        assert transport.sent[0].subject.startswith("[TEST] Welcome")
        assert witnesses.mock_calls == []
        assert len(notification_log.records) == 1
        assert notification_log.records[0].kind == NotificationKind.BATCH_TEST

    def test_cannot_simulate_itself(self) -> None:
        with pytest.raises(ValueError):
            BatchTestIntent(
                simulated_kind=NotificationKind.BATCH_TEST, recipients=("a@b.c",)
            )


class TestSubmit:
    """Background delivery."""

    @pytest.mark.asyncio
    async def test_submit_returns_before_delivery_and_drain_waits(
        self,
        witness_repository: WitnessRepositoryStub,
        notification_log: NotificationLogStub,
        covenant_config: CovenantConfig,
        identifier_factory: Callable[[int], str],
    ) -> None:
        identifier = identifier_factory(1)
        await add_witness(witness_repository, identifier, "w@example.com")
        slow = RecordingTransportStub(delay_seconds=0.05)
        dispatcher = NotificationDispatcher(
            witness_repository, notification_log, slow, covenant_config
        )

        dispatcher.submit(WelcomeIntent(identifier=identifier))

        assert dispatcher.pending == 1
        assert slow.sent == []

        await dispatcher.drain()

        assert dispatcher.pending == 0
        assert len(slow.sent) == 1


class TestKeyLocks:
    """Per-key lock bookkeeping."""

    @pytest.mark.asyncio
    async def test_lock_entries_are_released_after_use(
        self,
        witness_repository: WitnessRepositoryStub,
        notification_log: NotificationLogStub,
        covenant_config: CovenantConfig,
        identifier_factory: Callable[[int], str],
    ) -> None:
        identifiers = [identifier_factory(i) for i in range(1, 21)]
        for identifier in identifiers:
            await add_witness(witness_repository, identifier, f"{identifier}@example.com")
        dispatcher = NotificationDispatcher(
            witness_repository,
            notification_log,
            RecordingTransportStub(delay_seconds=0.01),
            covenant_config,
        )

        tasks = [
            dispatcher.submit(WelcomeIntent(identifier=identifier))
            for identifier in identifiers
            for _ in range(2)
        ]
        await asyncio.sleep(0)
        assert dispatcher.key_locks_held == 20

        await asyncio.gather(*tasks)

        assert dispatcher.key_locks_held == 0
        sent = [r for r in notification_log.records if r.status == DeliveryStatus.SENT]
        assert len(sent) == 20
