"""Domain models for the covenant registry."""

from covenant_registry.domain.models.milestone import Milestone
from covenant_registry.domain.models.notification import (
    BatchTestIntent,
    CountdownIntent,
    DailyAuctionIntent,
    DeliveryStatus,
    DispatchOutcome,
    EmergencyIntent,
    MilestoneIntent,
    NotificationIntent,
    NotificationKind,
    NotificationRecord,
    OutboundMessage,
    RecipientResult,
    UrgencyLevel,
    WelcomeIntent,
)
from covenant_registry.domain.models.readiness import ReadinessReport, ReadinessTier
from covenant_registry.domain.models.witness import (
    NotificationPreferences,
    Witness,
    WitnessApplication,
    WitnessProof,
    WitnessStatus,
)

__all__: list[str] = [
    "BatchTestIntent",
    "CountdownIntent",
    "DailyAuctionIntent",
    "DeliveryStatus",
    "DispatchOutcome",
    "EmergencyIntent",
    "Milestone",
    "MilestoneIntent",
    "NotificationIntent",
    "NotificationKind",
    "NotificationPreferences",
    "NotificationRecord",
    "OutboundMessage",
    "ReadinessReport",
    "ReadinessTier",
    "RecipientResult",
    "UrgencyLevel",
    "WelcomeIntent",
    "Witness",
    "WitnessApplication",
    "WitnessProof",
    "WitnessStatus",
]
