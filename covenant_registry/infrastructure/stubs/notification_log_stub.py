"""In-memory stub for NotificationLogProtocol (append-only)."""

from __future__ import annotations

from covenant_registry.domain.models.notification import (
    DeliveryStatus,
    NotificationRecord,
)


class NotificationLogStub:
    """In-memory implementation of NotificationLogProtocol."""

    def __init__(self) -> None:
        self._records: list[NotificationRecord] = []

    @property
    def records(self) -> list[NotificationRecord]:
        """All records in append order (copy)."""
        return list(self._records)

    async def append(self, record: NotificationRecord) -> None:
        self._records.append(record)

    async def has_sent(self, idempotency_key: str) -> bool:
        return any(
            r.idempotency_key == idempotency_key and r.status == DeliveryStatus.SENT
            for r in self._records
        )

    async def has_attempted(self, idempotency_key: str) -> bool:
        return any(r.idempotency_key == idempotency_key for r in self._records)

    async def list_recent(
        self,
        target_identifier: str | None = None,
        status: DeliveryStatus | None = None,
        limit: int = 50,
    ) -> list[NotificationRecord]:
        matches = [
            r
            for r in reversed(self._records)
            if (target_identifier is None or r.target_identifier == target_identifier)
            and (status is None or r.status == status)
        ]
        return matches[:limit]

    def clear(self) -> None:
        """Clear all stored data (for testing)."""
        self._records.clear()
