"""Launch readiness models."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any


class ReadinessTier(str, Enum):
    """Coarse status label derived from percent complete.

    ``< 50 -> CRITICAL``, ``50-74 -> WARNING``, ``75-89 -> PROGRESS``,
    ``>= 90 -> READY``.
    """

    CRITICAL = "CRITICAL"
    WARNING = "WARNING"
    PROGRESS = "PROGRESS"
    READY = "READY"


@dataclass(frozen=True)
class ReadinessReport:
    """Readiness of the covenant at a point in time.

    Attributes:
        total_witnesses: Active witness population.
        target_witnesses: Population needed for launch.
        percent_complete: ``round(100 * total / target)``, half up.
        days_remaining: Whole days until the deadline, clamped at 0 for display.
        raw_days_remaining: Unclamped value (negative once the deadline passed).
        tier: Readiness tier for ``percent_complete``.
        urgent: Deadline is at most 7 days away and the target is not met.
        launch_ready: ``percent_complete >= 100``.
        witnesses_needed: Witnesses still missing (0 when met).
        daily_rate_needed: Witnesses per day required to meet the target in
            time, 0 when met or when no days remain.
    """

    total_witnesses: int
    target_witnesses: int
    percent_complete: int
    days_remaining: int
    raw_days_remaining: int
    tier: ReadinessTier
    urgent: bool
    launch_ready: bool
    witnesses_needed: int
    daily_rate_needed: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_witnesses": self.total_witnesses,
            "target_witnesses": self.target_witnesses,
            "percent_complete": self.percent_complete,
            "days_remaining": self.days_remaining,
            "tier": self.tier.value,
            "urgent": self.urgent,
            "launch_ready": self.launch_ready,
            "witnesses_needed": self.witnesses_needed,
            "daily_rate_needed": self.daily_rate_needed,
        }
