"""SQL implementation of MilestoneRepositoryProtocol.

The primary key on ``threshold`` decides which caller records a milestone:
the insert that commits wins, every other insert violates the key.
"""

from __future__ import annotations

from sqlalchemy import insert, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from structlog import get_logger

from covenant_registry.domain.models.milestone import Milestone
from covenant_registry.infrastructure.adapters.persistence.schema import (
    as_utc,
    milestones_table,
    to_utc,
)

logger = get_logger()


class SqlMilestoneRepository:
    """SQLAlchemy implementation of MilestoneRepositoryProtocol."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def record_if_absent(self, milestone: Milestone) -> bool:
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    await session.execute(
                        insert(milestones_table).values(
                            threshold=milestone.threshold,
                            fired_at=to_utc(milestone.fired_at),
                            sequence_number=milestone.sequence_number,
                        )
                    )
        except IntegrityError:
            logger.debug("milestone_already_recorded", threshold=milestone.threshold)
            return False
        return True

    async def list_fired(self) -> list[Milestone]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(milestones_table).order_by(milestones_table.c.threshold.asc())
            )
            return [
                Milestone(
                    threshold=row["threshold"],
                    fired_at=as_utc(row["fired_at"]),
                    sequence_number=row["sequence_number"],
                )
                for row in result.mappings()
            ]
