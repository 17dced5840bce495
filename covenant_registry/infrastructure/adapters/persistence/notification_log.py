"""SQL implementation of NotificationLogProtocol (append-only)."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import insert, select
from sqlalchemy.engine import RowMapping
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from covenant_registry.domain.models.notification import (
    DeliveryStatus,
    NotificationKind,
    NotificationRecord,
)
from covenant_registry.infrastructure.adapters.persistence.schema import (
    as_utc,
    notifications_table,
    to_utc,
)


def _row_to_record(row: RowMapping) -> NotificationRecord:
    return NotificationRecord(
        notification_id=UUID(row["notification_id"]),
        kind=NotificationKind(row["kind"]),
        status=DeliveryStatus(row["status"]),
        target_identifier=row["target_identifier"],
        payload=dict(row["payload"] or {}),
        error=row["error"],
        idempotency_key=row["idempotency_key"],
        recipients_sent=row["recipients_sent"],
        recipients_failed=row["recipients_failed"],
        created_at=as_utc(row["created_at"]),
    )


class SqlNotificationLog:
    """SQLAlchemy implementation of NotificationLogProtocol.

    Only inserts and selects: records are never updated or deleted.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def append(self, record: NotificationRecord) -> None:
        async with self._session_factory() as session:
            async with session.begin():
                await session.execute(
                    insert(notifications_table).values(
                        notification_id=str(record.notification_id),
                        kind=record.kind.value,
                        status=record.status.value,
                        target_identifier=record.target_identifier,
                        payload=record.payload,
                        error=record.error,
                        idempotency_key=record.idempotency_key,
                        recipients_sent=record.recipients_sent,
                        recipients_failed=record.recipients_failed,
                        created_at=to_utc(record.created_at),
                    )
                )

    async def has_sent(self, idempotency_key: str) -> bool:
        async with self._session_factory() as session:
            result = await session.execute(
                select(notifications_table.c.notification_id)
                .where(notifications_table.c.idempotency_key == idempotency_key)
                .where(notifications_table.c.status == DeliveryStatus.SENT.value)
                .limit(1)
            )
            return result.first() is not None

    async def has_attempted(self, idempotency_key: str) -> bool:
        async with self._session_factory() as session:
            result = await session.execute(
                select(notifications_table.c.notification_id)
                .where(notifications_table.c.idempotency_key == idempotency_key)
                .limit(1)
            )
            return result.first() is not None

    async def list_recent(
        self,
        target_identifier: str | None = None,
        status: DeliveryStatus | None = None,
        limit: int = 50,
    ) -> list[NotificationRecord]:
        query = select(notifications_table)
        if target_identifier is not None:
            query = query.where(
                notifications_table.c.target_identifier == target_identifier
            )
        if status is not None:
            query = query.where(notifications_table.c.status == status.value)
        query = query.order_by(notifications_table.c.created_at.desc()).limit(limit)

        async with self._session_factory() as session:
            result = await session.execute(query)
            return [_row_to_record(row) for row in result.mappings()]
