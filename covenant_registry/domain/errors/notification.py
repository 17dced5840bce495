"""Notification delivery errors.

Delivery failures are always caught inside the notification dispatcher.
They are logged and recorded as ``failed`` audit entries, and never reach
the registration path.
"""

from __future__ import annotations

from covenant_registry.domain.exceptions import CovenantError


class NotificationDeliveryError(CovenantError):
    """Raised by a transport when a message could not be delivered.

    Attributes:
        recipient: Delivery address that failed.
        reason: Transport-specific failure description.
    """

    def __init__(self, recipient: str, reason: str) -> None:
        self.recipient = recipient
        self.reason = reason
        super().__init__(f"Delivery to {recipient} failed: {reason}")
