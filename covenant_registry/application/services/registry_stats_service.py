"""Registry statistics and launch readiness."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone

from covenant_registry.application.ports.witness_repository import (
    WitnessRepositoryProtocol,
)
from covenant_registry.config.covenant_config import (
    DEFAULT_COVENANT_CONFIG,
    CovenantConfig,
)
from covenant_registry.domain.models.readiness import ReadinessReport
from covenant_registry.domain.models.witness import Witness
from covenant_registry.domain.services.readiness_calculator import (
    calculate_readiness,
)
from covenant_registry.infrastructure.monitoring.metrics import get_metrics_collector

RECENT_WITNESS_LIMIT = 10


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class RegistryStats:
    """Readiness report plus the most recent witnesses."""

    readiness: ReadinessReport
    recent_witnesses: list[Witness] = field(default_factory=list)


class RegistryStatsService:
    """Computes readiness from the live active population.

    Nothing is cached: every call recounts and recomputes.
    """

    def __init__(
        self,
        witness_repository: WitnessRepositoryProtocol,
        config: CovenantConfig = DEFAULT_COVENANT_CONFIG,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self._witnesses = witness_repository
        self._config = config
        self._clock = clock

    async def get_readiness(self) -> ReadinessReport:
        active = await self._witnesses.count_active()
        get_metrics_collector().set_active_witnesses(active)
        return calculate_readiness(
            active_count=active,
            target_count=self._config.target_witnesses,
            deadline=self._config.deadline,
            now=self._clock(),
        )

    async def get_stats(self, recent_limit: int = RECENT_WITNESS_LIMIT) -> RegistryStats:
        readiness = await self.get_readiness()
        recent = await self._witnesses.list_recent(recent_limit)
        return RegistryStats(readiness=readiness, recent_witnesses=recent)
