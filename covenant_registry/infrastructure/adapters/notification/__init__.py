"""Notification delivery adapters."""

from covenant_registry.infrastructure.adapters.notification.http_email_transport import (
    HttpEmailTransport,
)

__all__ = ["HttpEmailTransport"]
