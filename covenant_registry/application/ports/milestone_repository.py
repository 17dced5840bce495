"""Milestone repository port.

The repository's unique key on ``threshold`` is the exactly-once authority
for milestones, across concurrent callers, workers and restarts.
"""

from __future__ import annotations

from abc import abstractmethod
from typing import Protocol

from covenant_registry.domain.models.milestone import Milestone


class MilestoneRepositoryProtocol(Protocol):
    """Repository protocol for fired milestones."""

    @abstractmethod
    async def record_if_absent(self, milestone: Milestone) -> bool:
        """Record a milestone unless its threshold already fired.

        Returns:
            True for the single caller that recorded the threshold,
            False for everyone else.
        """
        ...

    @abstractmethod
    async def list_fired(self) -> list[Milestone]:
        """All fired milestones ordered by threshold."""
        ...
