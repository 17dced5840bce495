"""Application services for the covenant registry."""

from covenant_registry.application.services.milestone_detector import (
    MilestoneDetector,
)
from covenant_registry.application.services.notification_dispatcher import (
    NotificationDispatcher,
)
from covenant_registry.application.services.registration_service import (
    RegistrationResult,
    RegistrationService,
)
from covenant_registry.application.services.registry_stats_service import (
    RegistryStats,
    RegistryStatsService,
)

__all__ = [
    "MilestoneDetector",
    "NotificationDispatcher",
    "RegistrationResult",
    "RegistrationService",
    "RegistryStats",
    "RegistryStatsService",
]
