"""SQLAlchemy persistence adapters (PostgreSQL via asyncpg, SQLite via aiosqlite)."""

from covenant_registry.infrastructure.adapters.persistence.milestone_repository import (
    SqlMilestoneRepository,
)
from covenant_registry.infrastructure.adapters.persistence.notification_log import (
    SqlNotificationLog,
)
from covenant_registry.infrastructure.adapters.persistence.schema import (
    create_schema,
    drop_schema,
    metadata,
)
from covenant_registry.infrastructure.adapters.persistence.witness_repository import (
    SqlWitnessRepository,
)

__all__ = [
    "SqlMilestoneRepository",
    "SqlNotificationLog",
    "SqlWitnessRepository",
    "create_schema",
    "drop_schema",
    "metadata",
]
