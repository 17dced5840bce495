"""Covenant registry configuration.

This module defines the registry's tunable values with environment variable
overrides for production deployment.

Environment Variables (Registry):
- COVENANT_TARGET_WITNESSES: Witness population needed for launch (default: 100)
- COVENANT_DEADLINE: ISO-8601 launch deadline (default: 2025-10-19T00:00:00-04:00)
- COVENANT_CAPACITY: Hard cap on accepted witnesses (default: unbounded)
- COVENANT_MILESTONES: Comma separated milestone thresholds (default: derived)
- COVENANT_COUNTDOWN_WINDOW_DAYS: Days before deadline when countdowns start (default: 30)
- COVENANT_DASHBOARD_URL: Link included in welcome messages

Environment Variables (Allocation):
- COVENANT_ALLOCATION_MAX_ATTEMPTS: Transaction attempts before AllocationError (default: 5)
- COVENANT_ALLOCATION_BACKOFF_SECONDS: First retry delay (default: 0.05)
- COVENANT_ALLOCATION_MAX_BACKOFF_SECONDS: Retry delay ceiling (default: 1.0)
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from datetime import datetime

from covenant_registry.domain.services.milestone_schedule import build_thresholds

DEFAULT_DEADLINE = datetime.fromisoformat("2025-10-19T00:00:00-04:00")


def _get_int_env(key: str, default: int) -> int:
    """Get integer environment variable with default.

    Args:
        key: Environment variable name.
        default: Default value if not set or invalid.

    Returns:
        Parsed integer value or default.
    """
    value = os.environ.get(key)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _get_float_env(key: str, default: float) -> float:
    """Get float environment variable with default.

    Args:
        key: Environment variable name.
        default: Default value if not set or invalid.

    Returns:
        Parsed float value or default.
    """
    value = os.environ.get(key)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        return default


def _get_optional_int_env(key: str) -> int | None:
    value = os.environ.get(key)
    if not value:
        return None
    try:
        return int(value)
    except ValueError:
        return None


def _get_datetime_env(key: str, default: datetime) -> datetime:
    value = os.environ.get(key)
    if not value:
        return default
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        return default
    # A deadline without an offset is meaningless for countdowns
    if parsed.tzinfo is None:
        return default
    return parsed


def _get_thresholds_env(key: str) -> tuple[int, ...] | None:
    value = os.environ.get(key)
    if not value:
        return None
    try:
        return tuple(int(part) for part in value.split(",") if part.strip())
    except ValueError:
        return None


@dataclass(frozen=True)
class AllocationRetryConfig:
    """Bounded retry policy for the witness acceptance transaction.

    Attributes:
        max_attempts: Total attempts (first try included) before giving up
            with AllocationError.
        base_backoff_seconds: Delay before the first retry. Doubles per attempt.
        max_backoff_seconds: Upper bound on any single delay.
    """

    max_attempts: int = 5
    base_backoff_seconds: float = 0.05
    max_backoff_seconds: float = 1.0

    def __post_init__(self) -> None:
        """Validate configuration values."""
        if self.max_attempts < 1:
            raise ValueError(
                f"max_attempts must be at least 1, got {self.max_attempts}"
            )
        if self.base_backoff_seconds < 0:
            raise ValueError(
                "base_backoff_seconds must be non-negative, "
                f"got {self.base_backoff_seconds}"
            )
        if self.max_backoff_seconds < self.base_backoff_seconds:
            raise ValueError(
                f"max_backoff_seconds ({self.max_backoff_seconds}) must be >= "
                f"base_backoff_seconds ({self.base_backoff_seconds})"
            )

    def delay_for(self, attempt: int) -> float:
        """Backoff before retrying after the given (1-based) failed attempt."""
        return min(
            self.max_backoff_seconds,
            self.base_backoff_seconds * (2 ** (attempt - 1)),
        )

    @classmethod
    def from_environment(cls) -> "AllocationRetryConfig":
        """Create config from environment variables with defaults."""
        return cls(
            max_attempts=_get_int_env("COVENANT_ALLOCATION_MAX_ATTEMPTS", 5),
            base_backoff_seconds=_get_float_env(
                "COVENANT_ALLOCATION_BACKOFF_SECONDS", 0.05
            ),
            max_backoff_seconds=_get_float_env(
                "COVENANT_ALLOCATION_MAX_BACKOFF_SECONDS", 1.0
            ),
        )


@dataclass(frozen=True)
class CovenantConfig:
    """Configuration for the witness registry.

    Attributes:
        target_witnesses: Population needed for launch readiness.
        deadline: Timezone-aware launch deadline used for countdowns.
        capacity: Optional hard cap on accepted witnesses. None = unbounded.
        milestones: Ascending thresholds that fire one-time broadcasts.
            Empty means "derive from target_witnesses".
        countdown_window_days: Countdown notices are only sent when the
            deadline is at most this many days away (unless forced).
        dashboard_url: Link included in welcome messages.
        allocation: Retry policy for the acceptance transaction.
    """

    target_witnesses: int = 100
    deadline: datetime = DEFAULT_DEADLINE
    capacity: int | None = None
    milestones: tuple[int, ...] = ()
    countdown_window_days: int = 30
    dashboard_url: str = "http://localhost:8000/covenant/dashboard"
    allocation: AllocationRetryConfig = field(default_factory=AllocationRetryConfig)

    def __post_init__(self) -> None:
        """Validate configuration values and derive the milestone schedule."""
        if self.target_witnesses < 1:
            raise ValueError(
                f"target_witnesses must be positive, got {self.target_witnesses}"
            )
        if self.deadline.tzinfo is None:
            raise ValueError("deadline must be timezone-aware")
        if self.capacity is not None and self.capacity < self.target_witnesses:
            raise ValueError(
                f"capacity ({self.capacity}) must be at least "
                f"target_witnesses ({self.target_witnesses})"
            )
        if self.countdown_window_days < 0:
            raise ValueError(
                "countdown_window_days must be non-negative, "
                f"got {self.countdown_window_days}"
            )

        if not self.milestones:
            object.__setattr__(
                self, "milestones", build_thresholds(self.target_witnesses)
            )
        else:
            if any(t < 1 for t in self.milestones):
                raise ValueError("milestone thresholds must be positive")
            # The target itself always fires, wherever it falls
            normalized = tuple(sorted(set(self.milestones) | {self.target_witnesses}))
            object.__setattr__(self, "milestones", normalized)

    @classmethod
    def from_environment(cls) -> "CovenantConfig":
        """Create config from environment variables with defaults.

        Returns:
            CovenantConfig with values from environment or defaults.
        """
        return cls(
            target_witnesses=_get_int_env("COVENANT_TARGET_WITNESSES", 100),
            deadline=_get_datetime_env("COVENANT_DEADLINE", DEFAULT_DEADLINE),
            capacity=_get_optional_int_env("COVENANT_CAPACITY"),
            milestones=_get_thresholds_env("COVENANT_MILESTONES") or (),
            countdown_window_days=_get_int_env("COVENANT_COUNTDOWN_WINDOW_DAYS", 30),
            dashboard_url=os.environ.get(
                "COVENANT_DASHBOARD_URL",
                "http://localhost:8000/covenant/dashboard",
            ),
            allocation=AllocationRetryConfig.from_environment(),
        )


# Default configuration instance
DEFAULT_COVENANT_CONFIG = CovenantConfig()
