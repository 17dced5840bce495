"""In-memory stubs for the covenant registry ports."""

from covenant_registry.infrastructure.stubs.milestone_repository_stub import (
    MilestoneRepositoryStub,
)
from covenant_registry.infrastructure.stubs.notification_log_stub import (
    NotificationLogStub,
)
from covenant_registry.infrastructure.stubs.notification_transport_stub import (
    LoggingTransport,
    RecordingTransportStub,
)
from covenant_registry.infrastructure.stubs.witness_repository_stub import (
    WitnessRepositoryStub,
)

__all__ = [
    "LoggingTransport",
    "MilestoneRepositoryStub",
    "NotificationLogStub",
    "RecordingTransportStub",
    "WitnessRepositoryStub",
]
