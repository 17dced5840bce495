"""Table definitions for the witness registry.

Tables:
- covenant_witnesses: one row per accepted witness, never deleted.
  Unique ``identifier`` (primary key) and unique ``sequence_number``.
- covenant_sequence: a single counter row. Incremented only inside the
  witness acceptance transaction.
- covenant_milestones: one row per fired threshold (primary key).
- witness_notifications: append-only notification log.

Timestamps are stored in UTC. SQLite drops the offset, so readers
re-attach UTC via ``as_utc``.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    Column,
    DateTime,
    Index,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    insert,
    select,
)
from sqlalchemy.ext.asyncio import AsyncEngine
from structlog import get_logger

logger = get_logger()

SEQUENCE_ROW_ID = 1

metadata = MetaData()

witnesses_table = Table(
    "covenant_witnesses",
    metadata,
    Column("identifier", String(42), primary_key=True),
    Column("sequence_number", Integer, nullable=False, unique=True),
    Column("proof_hash", String(255), nullable=False),
    Column("block_ref", BigInteger, nullable=False, default=0),
    Column("signed_at", DateTime(timezone=True), nullable=False),
    Column("contact", String(320), nullable=True),
    Column("display_name", String(255), nullable=True),
    Column("status", String(16), nullable=False, default="active"),
    Column("pref_daily_auctions", Boolean, nullable=False, default=True),
    Column("pref_milestones", Boolean, nullable=False, default=True),
    Column("pref_emergency", Boolean, nullable=False, default=True),
    Column("created_at", DateTime(timezone=True), nullable=False),
    Column("updated_at", DateTime(timezone=True), nullable=False),
)

sequence_table = Table(
    "covenant_sequence",
    metadata,
    Column("id", Integer, primary_key=True),
    Column("value", Integer, nullable=False),
)

milestones_table = Table(
    "covenant_milestones",
    metadata,
    Column("threshold", Integer, primary_key=True),
    Column("fired_at", DateTime(timezone=True), nullable=False),
    Column("sequence_number", Integer, nullable=False),
)

notifications_table = Table(
    "witness_notifications",
    metadata,
    Column("notification_id", String(36), primary_key=True),
    Column("kind", String(32), nullable=False),
    Column("status", String(16), nullable=False),
    Column("target_identifier", String(42), nullable=True),
    Column("payload", JSON, nullable=False),
    Column("error", Text, nullable=True),
    Column("idempotency_key", String(128), nullable=True),
    Column("recipients_sent", Integer, nullable=False, default=0),
    Column("recipients_failed", Integer, nullable=False, default=0),
    Column("created_at", DateTime(timezone=True), nullable=False),
)

Index("ix_witness_notifications_key", notifications_table.c.idempotency_key)
Index("ix_witness_notifications_target", notifications_table.c.target_identifier)
Index("ix_covenant_witnesses_status", witnesses_table.c.status)


def to_utc(value: datetime) -> datetime:
    return value.astimezone(timezone.utc)


def as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


async def create_schema(engine: AsyncEngine) -> None:
    """Create all tables and seed the counter row. Idempotent."""
    async with engine.begin() as conn:
        await conn.run_sync(metadata.create_all)
        result = await conn.execute(
            select(sequence_table.c.value).where(sequence_table.c.id == SEQUENCE_ROW_ID)
        )
        if result.scalar_one_or_none() is None:
            await conn.execute(insert(sequence_table).values(id=SEQUENCE_ROW_ID, value=0))
            logger.info("sequence_counter_seeded")
    logger.info("registry_schema_ready")


async def drop_schema(engine: AsyncEngine) -> None:
    """Drop all registry tables (for testing)."""
    async with engine.begin() as conn:
        await conn.run_sync(metadata.drop_all)
