"""In-memory stub for MilestoneRepositoryProtocol.

Simulates the unique key on ``threshold``: the first record wins and every
later attempt for the same threshold reports False.
"""

from __future__ import annotations

from covenant_registry.domain.models.milestone import Milestone


class MilestoneRepositoryStub:
    """In-memory implementation of MilestoneRepositoryProtocol."""

    def __init__(self) -> None:
        self._milestones: dict[int, Milestone] = {}
        # Number of record_if_absent calls, for concurrency assertions
        self.record_attempts = 0
        # Thresholds whose next record attempt raises, once each
        self.failing_thresholds: set[int] = set()

    async def record_if_absent(self, milestone: Milestone) -> bool:
        self.record_attempts += 1
        if milestone.threshold in self.failing_thresholds:
            self.failing_thresholds.discard(milestone.threshold)
            raise RuntimeError(f"simulated failure recording {milestone.threshold}")
        # No await between check and insert: atomic on the event loop
        if milestone.threshold in self._milestones:
            return False
        self._milestones[milestone.threshold] = milestone
        return True

    async def list_fired(self) -> list[Milestone]:
        return [self._milestones[t] for t in sorted(self._milestones)]

    def clear(self) -> None:
        """Clear all stored data (for testing)."""
        self._milestones.clear()
        self.record_attempts = 0
        self.failing_thresholds.clear()
