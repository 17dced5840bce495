"""Unit tests for the SQLAlchemy persistence adapters.

Runs against a throwaway SQLite file through aiosqlite. Concurrency under
real row locks is covered by the PostgreSQL integration tests; these tests
pin down the transactional behavior of a single writer.
"""

from collections.abc import AsyncIterator, Callable
from datetime import datetime, timezone
from pathlib import Path

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from covenant_registry.bootstrap.database import (
    build_engine,
    build_session_factory,
    normalize_database_url,
)
from covenant_registry.domain.errors import (
    DuplicateWitnessError,
    RegistryFullError,
    WitnessNotFoundError,
)
from covenant_registry.domain.models.milestone import Milestone
from covenant_registry.domain.models.notification import (
    DeliveryStatus,
    NotificationKind,
    NotificationRecord,
)
from covenant_registry.domain.models.witness import (
    NotificationPreferences,
    Witness,
    WitnessProof,
    WitnessStatus,
)
from covenant_registry.infrastructure.adapters.persistence import (
    SqlMilestoneRepository,
    SqlNotificationLog,
    SqlWitnessRepository,
    create_schema,
)

SIGNED_AT = datetime(2025, 10, 1, 9, 30, tzinfo=timezone.utc)


def builder_for(identifier: str, contact: str | None = None) -> Callable[[int], Witness]:
    def build(sequence_number: int) -> Witness:
        return Witness(
            identifier=identifier,
            sequence_number=sequence_number,
            proof=WitnessProof(
                proof_hash="0xproof", signed_at=SIGNED_AT, block_ref=19_000_000
            ),
            contact=contact,
            display_name="witness.eth",
        )

    return build


@pytest.fixture
async def session_factory(tmp_path: Path) -> AsyncIterator[async_sessionmaker[AsyncSession]]:
    """Fresh SQLite database with the registry schema."""
    url = normalize_database_url(f"sqlite:///{tmp_path / 'registry.db'}")
    engine = build_engine(url)
    await create_schema(engine)
    yield build_session_factory(engine)
    await engine.dispose()


@pytest.fixture
def sql_witnesses(
    session_factory: async_sessionmaker[AsyncSession],
) -> SqlWitnessRepository:
    return SqlWitnessRepository(session_factory)


class TestSqlWitnessRepository:
    """Acceptance transaction and queries."""

    @pytest.mark.asyncio
    async def test_sequential_numbers(
        self,
        sql_witnesses: SqlWitnessRepository,
        identifier_factory: Callable[[int], str],
    ) -> None:
        for i in range(1, 4):
            identifier = identifier_factory(i)
            witness, is_new = await sql_witnesses.try_accept(
                identifier, builder_for(identifier)
            )
            assert witness.sequence_number == i
            assert is_new is True

        assert await sql_witnesses.current_sequence() == 3
        assert await sql_witnesses.count_active() == 3

    @pytest.mark.asyncio
    async def test_round_trips_witness_fields(
        self,
        sql_witnesses: SqlWitnessRepository,
        identifier_factory: Callable[[int], str],
    ) -> None:
        identifier = identifier_factory(1)
        await sql_witnesses.try_accept(
            identifier, builder_for(identifier, contact="w@example.com")
        )

        stored = await sql_witnesses.get(identifier)

        assert stored is not None
        assert stored.contact == "w@example.com"
        assert stored.display_name == "witness.eth"
        assert stored.proof.block_ref == 19_000_000
        assert stored.proof.signed_at == SIGNED_AT
        assert stored.proof.signed_at.tzinfo is not None
        assert stored.notification_preferences == NotificationPreferences()

    @pytest.mark.asyncio
    async def test_duplicate_rolls_back_counter(
        self,
        sql_witnesses: SqlWitnessRepository,
        identifier_factory: Callable[[int], str],
    ) -> None:
        identifier = identifier_factory(1)
        await sql_witnesses.try_accept(identifier, builder_for(identifier))

        with pytest.raises(DuplicateWitnessError) as exc_info:
            await sql_witnesses.try_accept(identifier, builder_for(identifier))

        assert exc_info.value.existing_sequence_number == 1
        assert await sql_witnesses.current_sequence() == 1

        other = identifier_factory(2)
        witness, _ = await sql_witnesses.try_accept(other, builder_for(other))
        assert witness.sequence_number == 2

    @pytest.mark.asyncio
    async def test_builder_failure_rolls_back_counter(
        self,
        sql_witnesses: SqlWitnessRepository,
        identifier_factory: Callable[[int], str],
    ) -> None:
        def failing_build(sequence_number: int) -> Witness:
            raise RuntimeError("could not build record")

        with pytest.raises(RuntimeError):
            await sql_witnesses.try_accept(identifier_factory(1), failing_build)

        assert await sql_witnesses.current_sequence() == 0
        identifier = identifier_factory(2)
        witness, _ = await sql_witnesses.try_accept(identifier, builder_for(identifier))
        assert witness.sequence_number == 1

    @pytest.mark.asyncio
    async def test_capacity_rolls_back_counter(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        identifier_factory: Callable[[int], str],
    ) -> None:
        repository = SqlWitnessRepository(session_factory, capacity=1)
        first = identifier_factory(1)
        await repository.try_accept(first, builder_for(first))

        second = identifier_factory(2)
        with pytest.raises(RegistryFullError):
            await repository.try_accept(second, builder_for(second))

        assert await repository.current_sequence() == 1

    @pytest.mark.asyncio
    async def test_revoke_keeps_identifier_consumed(
        self,
        sql_witnesses: SqlWitnessRepository,
        identifier_factory: Callable[[int], str],
    ) -> None:
        identifier = identifier_factory(1)
        await sql_witnesses.try_accept(identifier, builder_for(identifier))

        revoked = await sql_witnesses.revoke(identifier)

        assert revoked.status == WitnessStatus.REVOKED
        assert revoked.sequence_number == 1
        assert await sql_witnesses.count_active() == 0
        with pytest.raises(DuplicateWitnessError):
            await sql_witnesses.try_accept(identifier, builder_for(identifier))

    @pytest.mark.asyncio
    async def test_update_preferences(
        self,
        sql_witnesses: SqlWitnessRepository,
        identifier_factory: Callable[[int], str],
    ) -> None:
        identifier = identifier_factory(1)
        await sql_witnesses.try_accept(
            identifier, builder_for(identifier, contact="w@example.com")
        )

        updated = await sql_witnesses.update_preferences(
            identifier, NotificationPreferences(milestones=False)
        )

        assert updated.notification_preferences.milestones is False
        assert await sql_witnesses.list_recipients("milestones") == []
        assert len(await sql_witnesses.list_recipients("emergency")) == 1

    @pytest.mark.asyncio
    async def test_update_preferences_unknown_witness(
        self, sql_witnesses: SqlWitnessRepository
    ) -> None:
        with pytest.raises(WitnessNotFoundError):
            await sql_witnesses.update_preferences(
                "0x" + "0" * 40, NotificationPreferences()
            )

    @pytest.mark.asyncio
    async def test_list_queries_order(
        self,
        sql_witnesses: SqlWitnessRepository,
        identifier_factory: Callable[[int], str],
    ) -> None:
        for i in range(1, 5):
            identifier = identifier_factory(i)
            await sql_witnesses.try_accept(identifier, builder_for(identifier))
        await sql_witnesses.revoke(identifier_factory(4))

        page = await sql_witnesses.list_active(limit=2, offset=1)
        recent = await sql_witnesses.list_recent(2)

        assert [w.sequence_number for w in page] == [2, 3]
        assert [w.sequence_number for w in recent] == [3, 2]


class TestSqlMilestoneRepository:
    """Unique threshold key."""

    @pytest.mark.asyncio
    async def test_records_threshold_once(
        self, session_factory: async_sessionmaker[AsyncSession]
    ) -> None:
        repository = SqlMilestoneRepository(session_factory)
        fired_at = datetime(2025, 10, 5, tzinfo=timezone.utc)

        first = await repository.record_if_absent(
            Milestone(threshold=10, fired_at=fired_at, sequence_number=10)
        )
        second = await repository.record_if_absent(
            Milestone(threshold=10, fired_at=fired_at, sequence_number=11)
        )

        assert first is True
        assert second is False
        fired = await repository.list_fired()
        assert len(fired) == 1
        assert fired[0].sequence_number == 10
        assert fired[0].fired_at == fired_at


class TestSqlNotificationLog:
    """Append-only log queries."""

    @pytest.mark.asyncio
    async def test_has_sent_only_counts_sent_records(
        self, session_factory: async_sessionmaker[AsyncSession]
    ) -> None:
        log = SqlNotificationLog(session_factory)
        await log.append(
            NotificationRecord(
                kind=NotificationKind.WELCOME,
                status=DeliveryStatus.FAILED,
                idempotency_key="welcome:0xabc",
                error="mailbox full",
            )
        )

        assert await log.has_sent("welcome:0xabc") is False

        await log.append(
            NotificationRecord(
                kind=NotificationKind.WELCOME,
                status=DeliveryStatus.SENT,
                idempotency_key="welcome:0xabc",
            )
        )

        assert await log.has_sent("welcome:0xabc") is True

    @pytest.mark.asyncio
    async def test_has_attempted_counts_failed_records(
        self, session_factory: async_sessionmaker[AsyncSession]
    ) -> None:
        log = SqlNotificationLog(session_factory)

        assert await log.has_attempted("milestone:10") is False

        await log.append(
            NotificationRecord(
                kind=NotificationKind.MILESTONE,
                status=DeliveryStatus.FAILED,
                idempotency_key="milestone:10",
                recipients_sent=1,
                recipients_failed=1,
            )
        )

        assert await log.has_attempted("milestone:10") is True
        assert await log.has_sent("milestone:10") is False
        assert await log.has_attempted("milestone:25") is False

    @pytest.mark.asyncio
    async def test_list_recent_filters(
        self, session_factory: async_sessionmaker[AsyncSession]
    ) -> None:
        log = SqlNotificationLog(session_factory)
        record = NotificationRecord(
            kind=NotificationKind.WELCOME,
            status=DeliveryStatus.SENT,
            target_identifier="0xabc",
            payload={"sequence_number": 1},
            created_at=datetime(2025, 10, 1, tzinfo=timezone.utc),
        )
        await log.append(record)
        await log.append(
            NotificationRecord(
                kind=NotificationKind.EMERGENCY,
                status=DeliveryStatus.FAILED,
                recipients_failed=2,
                created_at=datetime(2025, 10, 2, tzinfo=timezone.utc),
            )
        )

        everything = await log.list_recent()
        for_witness = await log.list_recent(target_identifier="0xabc")
        failed = await log.list_recent(status=DeliveryStatus.FAILED)

        assert [r.kind for r in everything] == [
            NotificationKind.EMERGENCY,
            NotificationKind.WELCOME,
        ]
        assert for_witness == [record]
        assert failed[0].recipients_failed == 2
