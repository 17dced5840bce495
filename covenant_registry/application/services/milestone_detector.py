"""Milestone detection.

Decides which population thresholds a new acceptance crossed and records
each one exactly once.

Two layers cooperate:
- An in-process watermark (highest count already examined) narrows the work
  to the interval ``(previous, new]``. Concurrent acceptances can move the
  count by more than one between checks, so every threshold inside the
  interval is considered, not only an exact match.
- ``MilestoneRepositoryProtocol.record_if_absent`` is the exactly-once
  authority. Its unique key on threshold settles races between workers and
  survives restarts, when the watermark starts again from zero.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Iterable
from datetime import datetime, timezone

from structlog import get_logger

from covenant_registry.application.ports.milestone_repository import (
    MilestoneRepositoryProtocol,
)
from covenant_registry.domain.models.milestone import Milestone
from covenant_registry.domain.services.milestone_schedule import thresholds_crossed
from covenant_registry.infrastructure.monitoring.metrics import get_metrics_collector

logger = get_logger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class MilestoneDetector:
    """Fires each milestone threshold at most once."""

    def __init__(
        self,
        repository: MilestoneRepositoryProtocol,
        thresholds: Iterable[int],
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        """Initialize the detector.

        Args:
            repository: Milestone store holding the unique threshold key.
            thresholds: Threshold schedule, in any order.
            clock: Source of the ``fired_at`` timestamp.
        """
        self._repository = repository
        self._thresholds = tuple(sorted(set(thresholds)))
        self._clock = clock
        self._lock = asyncio.Lock()
        self._previous = 0

    @property
    def thresholds(self) -> tuple[int, ...]:
        return self._thresholds

    @property
    def watermark(self) -> int:
        """Highest population count examined so far in this process."""
        return self._previous

    async def check_and_fire(self, new_count: int) -> frozenset[int]:
        """Fire every threshold newly crossed by ``new_count``.

        Args:
            new_count: Population immediately after an acceptance, i.e. the
                new witness's sequence number.

        Returns:
            Thresholds recorded by this call. Empty when nothing was crossed
            or another caller already recorded them. A threshold whose
            recording fails is logged and left for a later call; thresholds
            recorded before or after it are still returned.
        """
        async with self._lock:
            previous = self._previous
            crossed = thresholds_crossed(self._thresholds, previous, new_count)
            self._previous = max(previous, new_count)

        if not crossed:
            return frozenset()

        log = logger.bind(previous_count=previous, new_count=new_count)
        fired: set[int] = set()
        for threshold in crossed:
            milestone = Milestone(
                threshold=threshold,
                fired_at=self._clock(),
                sequence_number=new_count,
            )
            try:
                recorded = await self._repository.record_if_absent(milestone)
            except Exception as e:
                # Let a later acceptance examine this threshold again
                async with self._lock:
                    self._previous = min(self._previous, threshold - 1)
                log.error(
                    "milestone_record_failed",
                    threshold=threshold,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                continue
            if recorded:
                fired.add(threshold)
                log.info("milestone_fired", threshold=threshold)
            else:
                log.debug("milestone_already_recorded", threshold=threshold)

        if fired:
            get_metrics_collector().increment_milestones_fired(len(fired))
        return frozenset(fired)
