"""Launch readiness calculation.

Pure function of (active population, target, deadline, now). Consumed by
API responses and by the countdown notification; recomputed on every read.
"""

from __future__ import annotations

import math
from datetime import datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal

from covenant_registry.domain.models.readiness import ReadinessReport, ReadinessTier

URGENT_WINDOW_DAYS = 7

_ONE_DAY = timedelta(days=1)


def percent_complete(active_count: int, target_count: int) -> int:
    """Percentage of the target reached, rounded half up."""
    if target_count <= 0:
        raise ValueError(f"target_count must be positive, got {target_count}")
    ratio = Decimal(100 * active_count) / Decimal(target_count)
    return int(ratio.quantize(Decimal(1), rounding=ROUND_HALF_UP))


def tier_for(percent: int) -> ReadinessTier:
    if percent < 50:
        return ReadinessTier.CRITICAL
    if percent < 75:
        return ReadinessTier.WARNING
    if percent < 90:
        return ReadinessTier.PROGRESS
    return ReadinessTier.READY


def days_until(deadline: datetime, now: datetime) -> int:
    """Whole days until the deadline, rounded up. Negative once passed."""
    if deadline.tzinfo is None or now.tzinfo is None:
        raise ValueError("deadline and now must be timezone-aware")
    return math.ceil((deadline - now) / _ONE_DAY)


def calculate_readiness(
    active_count: int,
    target_count: int,
    deadline: datetime,
    now: datetime,
) -> ReadinessReport:
    """Compute the readiness report.

    Args:
        active_count: Current active witness population.
        target_count: Population needed for launch.
        deadline: Timezone-aware launch deadline.
        now: Timezone-aware current time.

    Returns:
        ReadinessReport with percent, tier, countdown and urgency.

    Raises:
        ValueError: Non-positive target or naive datetimes.
    """
    if active_count < 0:
        raise ValueError(f"active_count must be non-negative, got {active_count}")

    percent = percent_complete(active_count, target_count)
    raw_days = days_until(deadline, now)
    needed = max(0, target_count - active_count)

    daily_rate = 0
    if needed > 0 and raw_days > 0:
        daily_rate = math.ceil(needed / raw_days)

    return ReadinessReport(
        total_witnesses=active_count,
        target_witnesses=target_count,
        percent_complete=percent,
        days_remaining=max(0, raw_days),
        raw_days_remaining=raw_days,
        tier=tier_for(percent),
        urgent=raw_days <= URGENT_WINDOW_DAYS and active_count < target_count,
        launch_ready=percent >= 100,
        witnesses_needed=needed,
        daily_rate_needed=daily_rate,
    )
