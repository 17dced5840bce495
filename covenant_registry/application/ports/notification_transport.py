"""Notification transport port (email, SMS or any other channel)."""

from __future__ import annotations

from abc import abstractmethod
from typing import Protocol

from covenant_registry.domain.models.notification import OutboundMessage


class NotificationTransportProtocol(Protocol):
    """Delivers one message to one recipient."""

    @abstractmethod
    async def send(self, message: OutboundMessage) -> None:
        """Deliver a message.

        Raises:
            NotificationDeliveryError: The message could not be delivered.
        """
        ...
