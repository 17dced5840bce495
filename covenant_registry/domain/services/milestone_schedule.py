"""Milestone threshold schedule.

Thresholds are a fixed ascending tuple ending at the target population, for
example ``(10, 25, 50, 75, 100)``. The target is always included even when it
does not fall on the regular step.
"""

from __future__ import annotations

from collections.abc import Iterable

DEFAULT_FIRST_MILESTONE = 10
DEFAULT_MILESTONE_STEP = 25


def build_thresholds(
    target: int,
    first: int = DEFAULT_FIRST_MILESTONE,
    step: int = DEFAULT_MILESTONE_STEP,
) -> tuple[int, ...]:
    """Build the default milestone schedule for a target population.

    Args:
        target: Launch target. Always the last threshold.
        first: An early milestone before the first step.
        step: Regular spacing of milestones.

    Returns:
        Ascending, de-duplicated thresholds, none above ``target``.
    """
    if target < 1:
        raise ValueError(f"target must be positive, got {target}")
    if step < 1:
        raise ValueError(f"step must be positive, got {step}")

    thresholds = {target}
    if 0 < first <= target:
        thresholds.add(first)
    thresholds.update(range(step, target + 1, step))
    return tuple(sorted(thresholds))


def thresholds_crossed(
    thresholds: Iterable[int], previous: int, current: int
) -> tuple[int, ...]:
    """Thresholds inside the half-open interval ``(previous, current]``.

    Concurrent acceptances can move the observed count by more than one
    between checks, so every threshold in the interval counts as crossed,
    not only an exact match.
    """
    return tuple(t for t in sorted(thresholds) if previous < t <= current)


def milestone_message(threshold: int, target: int) -> str:
    """Default broadcast text for a threshold."""
    if threshold >= target:
        return f"Covenant launch ready: {threshold} witnesses achieved"
    if threshold * 2 == target:
        return f"Halfway to launch: {threshold} witnesses"
    if threshold == DEFAULT_FIRST_MILESTONE:
        return f"First {threshold} founding witnesses joined"
    return f"{threshold} witnesses strong"
