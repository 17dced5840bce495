"""Notification transport stubs.

- RecordingTransportStub: captures messages in memory, can be told to fail
  for given recipients or to be slow. Used by tests.
- LoggingTransport: writes each message to the structured log. Used in
  development when no email provider is configured.
"""

from __future__ import annotations

import asyncio

import structlog

from covenant_registry.domain.errors import NotificationDeliveryError
from covenant_registry.domain.models.notification import OutboundMessage

log = structlog.get_logger()


class RecordingTransportStub:
    """Captures outbound messages instead of delivering them."""

    def __init__(
        self,
        failing_recipients: set[str] | None = None,
        delay_seconds: float = 0.0,
    ) -> None:
        """Initialize the stub.

        Args:
            failing_recipients: Recipients whose delivery raises
                NotificationDeliveryError.
            delay_seconds: Artificial latency per send.
        """
        self.sent: list[OutboundMessage] = []
        self.failing_recipients = set(failing_recipients or ())
        self.delay_seconds = delay_seconds
        self.fail_all = False

    async def send(self, message: OutboundMessage) -> None:
        if self.delay_seconds:
            await asyncio.sleep(self.delay_seconds)
        if self.fail_all or message.recipient in self.failing_recipients:
            raise NotificationDeliveryError(message.recipient, "simulated failure")
        self.sent.append(message)

    def sent_to(self, recipient: str) -> list[OutboundMessage]:
        return [m for m in self.sent if m.recipient == recipient]

    def clear(self) -> None:
        """Clear captured messages (for testing)."""
        self.sent.clear()


class LoggingTransport:
    """Development transport: logs messages instead of emailing them."""

    async def send(self, message: OutboundMessage) -> None:
        log.info(
            "notification_logged",
            kind=message.kind.value,
            recipient=message.recipient,
            subject=message.subject,
            priority=message.priority,
        )
