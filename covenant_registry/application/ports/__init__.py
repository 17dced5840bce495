"""Application ports (hexagonal architecture)."""

from covenant_registry.application.ports.milestone_repository import (
    MilestoneRepositoryProtocol,
)
from covenant_registry.application.ports.notification_log import (
    NotificationLogProtocol,
)
from covenant_registry.application.ports.notification_transport import (
    NotificationTransportProtocol,
)
from covenant_registry.application.ports.witness_repository import (
    WitnessBuilder,
    WitnessRepositoryProtocol,
)

__all__: list[str] = [
    "MilestoneRepositoryProtocol",
    "NotificationLogProtocol",
    "NotificationTransportProtocol",
    "WitnessBuilder",
    "WitnessRepositoryProtocol",
]
