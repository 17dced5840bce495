"""SQL implementation of WitnessRepositoryProtocol.

``try_accept`` is one transaction:

1. ``UPDATE covenant_sequence SET value = value + 1 ... RETURNING value``
   reserves the next number. The row lock is held until commit, so
   concurrent acceptances serialize on the counter and commit in number
   order.
2. The builder turns the reserved number into a Witness.
3. ``INSERT`` into covenant_witnesses. The unique key on ``identifier`` is
   the duplicate authority: a violation rolls the whole transaction back,
   counter included, and surfaces as DuplicateWitnessError.

Transient failures (serialization failure, deadlock, lock timeout, lost
connection, SQLite "database is locked") are retried with bounded
exponential backoff plus jitter, then reported as AllocationError.
"""

from __future__ import annotations

import asyncio
import random
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import func, insert, select, update
from sqlalchemy.engine import RowMapping
from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from structlog import get_logger

from covenant_registry.application.ports.witness_repository import WitnessBuilder
from covenant_registry.config.covenant_config import AllocationRetryConfig
from covenant_registry.domain.errors import (
    AllocationError,
    DuplicateWitnessError,
    RegistryFullError,
    WitnessNotFoundError,
)
from covenant_registry.domain.models.witness import (
    NotificationPreferences,
    Witness,
    WitnessProof,
    WitnessStatus,
)
from covenant_registry.infrastructure.adapters.persistence.schema import (
    SEQUENCE_ROW_ID,
    as_utc,
    sequence_table,
    to_utc,
    witnesses_table,
)
from covenant_registry.infrastructure.monitoring.metrics import get_metrics_collector

logger = get_logger()

# serialization_failure, deadlock_detected, lock_not_available
_TRANSIENT_SQLSTATES = frozenset({"40001", "40P01", "55P03"})

_PREFERENCE_COLUMNS = {
    "daily_auctions": witnesses_table.c.pref_daily_auctions,
    "milestones": witnesses_table.c.pref_milestones,
    "emergency": witnesses_table.c.pref_emergency,
}


def is_transient(error: DBAPIError) -> bool:
    """Whether a database error is worth retrying."""
    if error.connection_invalidated:
        return True
    if isinstance(error, OperationalError):
        return True
    orig = error.orig
    code = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    return code in _TRANSIENT_SQLSTATES


def _row_to_witness(row: RowMapping) -> Witness:
    return Witness(
        identifier=row["identifier"],
        sequence_number=row["sequence_number"],
        proof=WitnessProof(
            proof_hash=row["proof_hash"],
            signed_at=as_utc(row["signed_at"]),
            block_ref=row["block_ref"],
        ),
        contact=row["contact"],
        display_name=row["display_name"],
        status=WitnessStatus(row["status"]),
        notification_preferences=NotificationPreferences(
            daily_auctions=row["pref_daily_auctions"],
            milestones=row["pref_milestones"],
            emergency=row["pref_emergency"],
        ),
        created_at=as_utc(row["created_at"]),
        updated_at=as_utc(row["updated_at"]),
    )


def _witness_to_row(witness: Witness) -> dict[str, Any]:
    prefs = witness.notification_preferences
    return {
        "identifier": witness.identifier,
        "sequence_number": witness.sequence_number,
        "proof_hash": witness.proof.proof_hash,
        "block_ref": witness.proof.block_ref,
        "signed_at": to_utc(witness.proof.signed_at),
        "contact": witness.contact,
        "display_name": witness.display_name,
        "status": witness.status.value,
        "pref_daily_auctions": prefs.daily_auctions,
        "pref_milestones": prefs.milestones,
        "pref_emergency": prefs.emergency,
        "created_at": to_utc(witness.created_at),
        "updated_at": to_utc(witness.updated_at),
    }


class SqlWitnessRepository:
    """SQLAlchemy implementation of WitnessRepositoryProtocol."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        retry: AllocationRetryConfig | None = None,
        capacity: int | None = None,
    ) -> None:
        """Initialize the repository.

        Args:
            session_factory: SQLAlchemy async session factory.
            retry: Retry policy for the acceptance transaction.
            capacity: Optional maximum number of accepted witnesses.
        """
        self._session_factory = session_factory
        self._retry = retry or AllocationRetryConfig()
        self._capacity = capacity

    async def try_accept(
        self, identifier: str, build: WitnessBuilder
    ) -> tuple[Witness, bool]:
        log = logger.bind(identifier=identifier)
        last_error = ""

        for attempt in range(1, self._retry.max_attempts + 1):
            try:
                witness = await self._accept_once(identifier, build)
                return witness, True
            except IntegrityError as e:
                existing = await self.get(identifier)
                if existing is not None:
                    raise DuplicateWitnessError(
                        identifier,
                        existing_sequence_number=existing.sequence_number,
                    ) from None
                # Constraint other than identifier, e.g. a counter out of step
                last_error = str(e.orig)
                log.warning(
                    "witness_accept_integrity_conflict",
                    attempt=attempt,
                    error=last_error,
                )
            except DBAPIError as e:
                if not is_transient(e):
                    raise
                last_error = str(e.orig)
                log.warning(
                    "witness_accept_transient_error",
                    attempt=attempt,
                    error=last_error,
                    error_type=type(e.orig).__name__,
                )

            if attempt < self._retry.max_attempts:
                get_metrics_collector().increment_allocation_retries()
                delay = self._retry.delay_for(attempt)
                await asyncio.sleep(delay + random.uniform(0, delay / 2))

        log.error(
            "witness_accept_retries_exhausted",
            attempts=self._retry.max_attempts,
            error=last_error,
        )
        raise AllocationError(self._retry.max_attempts, last_error)

    async def _accept_once(self, identifier: str, build: WitnessBuilder) -> Witness:
        async with self._session_factory() as session:
            async with session.begin():
                result = await session.execute(
                    update(sequence_table)
                    .where(sequence_table.c.id == SEQUENCE_ROW_ID)
                    .values(value=sequence_table.c.value + 1)
                    .returning(sequence_table.c.value)
                )
                reserved = result.scalar_one()

                if self._capacity is not None and reserved > self._capacity:
                    raise RegistryFullError(self._capacity)

                witness = build(reserved)
                if witness.identifier != identifier or witness.sequence_number != reserved:
                    raise ValueError("builder returned a witness for another reservation")

                await session.execute(
                    insert(witnesses_table).values(**_witness_to_row(witness))
                )
        return witness

    async def get(self, identifier: str) -> Witness | None:
        async with self._session_factory() as session:
            result = await session.execute(
                select(witnesses_table).where(
                    witnesses_table.c.identifier == identifier
                )
            )
            row = result.mappings().first()
        return _row_to_witness(row) if row is not None else None

    async def list_active(self, limit: int = 100, offset: int = 0) -> list[Witness]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(witnesses_table)
                .where(witnesses_table.c.status == WitnessStatus.ACTIVE.value)
                .order_by(witnesses_table.c.sequence_number.asc())
                .limit(limit)
                .offset(offset)
            )
            return [_row_to_witness(row) for row in result.mappings()]

    async def count_active(self) -> int:
        async with self._session_factory() as session:
            result = await session.execute(
                select(func.count())
                .select_from(witnesses_table)
                .where(witnesses_table.c.status == WitnessStatus.ACTIVE.value)
            )
            return int(result.scalar_one())

    async def list_recent(self, limit: int = 10) -> list[Witness]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(witnesses_table)
                .where(witnesses_table.c.status == WitnessStatus.ACTIVE.value)
                .order_by(witnesses_table.c.sequence_number.desc())
                .limit(limit)
            )
            return [_row_to_witness(row) for row in result.mappings()]

    async def list_recipients(self, preference: str | None = None) -> list[Witness]:
        query = (
            select(witnesses_table)
            .where(witnesses_table.c.status == WitnessStatus.ACTIVE.value)
            .where(witnesses_table.c.contact.is_not(None))
            .where(witnesses_table.c.contact != "")
            .order_by(witnesses_table.c.sequence_number.asc())
        )
        if preference:
            query = query.where(_PREFERENCE_COLUMNS[preference].is_(True))
        async with self._session_factory() as session:
            result = await session.execute(query)
            return [_row_to_witness(row) for row in result.mappings()]

    async def update_preferences(
        self, identifier: str, preferences: NotificationPreferences
    ) -> Witness:
        now = datetime.now(timezone.utc)
        async with self._session_factory() as session:
            async with session.begin():
                result = await session.execute(
                    update(witnesses_table)
                    .where(witnesses_table.c.identifier == identifier)
                    .values(
                        pref_daily_auctions=preferences.daily_auctions,
                        pref_milestones=preferences.milestones,
                        pref_emergency=preferences.emergency,
                        updated_at=now,
                    )
                )
                if result.rowcount == 0:
                    raise WitnessNotFoundError(identifier)
        witness = await self.get(identifier)
        if witness is None:
            raise WitnessNotFoundError(identifier)
        return witness

    async def revoke(self, identifier: str) -> Witness:
        now = datetime.now(timezone.utc)
        async with self._session_factory() as session:
            async with session.begin():
                exists = await session.execute(
                    select(witnesses_table.c.status).where(
                        witnesses_table.c.identifier == identifier
                    )
                )
                if exists.scalar_one_or_none() is None:
                    raise WitnessNotFoundError(identifier)
                await session.execute(
                    update(witnesses_table)
                    .where(witnesses_table.c.identifier == identifier)
                    .where(witnesses_table.c.status == WitnessStatus.ACTIVE.value)
                    .values(status=WitnessStatus.REVOKED.value, updated_at=now)
                )
        witness = await self.get(identifier)
        if witness is None:
            raise WitnessNotFoundError(identifier)
        return witness

    async def current_sequence(self) -> int:
        async with self._session_factory() as session:
            result = await session.execute(
                select(sequence_table.c.value).where(
                    sequence_table.c.id == SEQUENCE_ROW_ID
                )
            )
            return int(result.scalar_one_or_none() or 0)
