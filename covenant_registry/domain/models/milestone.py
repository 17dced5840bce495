"""Milestone domain model.

A Milestone records that a population threshold has been crossed. There is
at most one Milestone per threshold value, ever; storage enforces this with
a unique key on ``threshold``.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class Milestone:
    """A fired population threshold.

    Attributes:
        threshold: Population value that triggered the milestone.
        fired_at: When the threshold was first crossed (UTC).
        sequence_number: Witness number of the acceptance that crossed it.
    """

    threshold: int
    fired_at: datetime
    sequence_number: int

    def __post_init__(self) -> None:
        if self.threshold < 1:
            raise ValueError(f"threshold must be positive, got {self.threshold}")
        if self.sequence_number < self.threshold:
            raise ValueError(
                f"sequence_number ({self.sequence_number}) cannot be below "
                f"threshold ({self.threshold})"
            )
        if self.fired_at.tzinfo is None:
            raise ValueError("fired_at must be timezone-aware")
