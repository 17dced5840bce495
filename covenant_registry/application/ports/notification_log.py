"""Notification log port (append-only audit of delivery attempts)."""

from __future__ import annotations

from abc import abstractmethod
from typing import Protocol

from covenant_registry.domain.models.notification import (
    DeliveryStatus,
    NotificationRecord,
)


class NotificationLogProtocol(Protocol):
    """Append-only store of notification records.

    Records are never updated or deleted.
    """

    @abstractmethod
    async def append(self, record: NotificationRecord) -> None:
        """Append a record."""
        ...

    @abstractmethod
    async def has_sent(self, idempotency_key: str) -> bool:
        """Whether a ``sent`` record exists for the key."""
        ...

    @abstractmethod
    async def has_attempted(self, idempotency_key: str) -> bool:
        """Whether any record, sent or failed, exists for the key."""
        ...

    @abstractmethod
    async def list_recent(
        self,
        target_identifier: str | None = None,
        status: DeliveryStatus | None = None,
        limit: int = 50,
    ) -> list[NotificationRecord]:
        """Records newest first, optionally filtered."""
        ...
