"""
Integration test configuration with testcontainers.

Provides a session-scoped PostgreSQL 16 container and a per-test session
factory over a freshly created registry schema. These tests exercise the
real row locking behind witness acceptance and milestone recording.

Usage:
    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_example(pg_session_factory) -> None:
        ...

Note: Docker must be running for these fixtures to work. Integration tests
are deselected by default; run them with ``pytest -m integration``.
"""

from collections.abc import AsyncGenerator, Generator

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from testcontainers.postgres import PostgresContainer

from covenant_registry.bootstrap.database import (
    build_engine,
    build_session_factory,
    normalize_database_url,
)
from covenant_registry.infrastructure.adapters.persistence import (
    create_schema,
    drop_schema,
)


@pytest.fixture(scope="session")
def postgres_container() -> Generator[PostgresContainer, None, None]:
    """Session-scoped PostgreSQL 16 container.

    Started once and reused across all integration tests.
    """
    with PostgresContainer("postgres:16-alpine") as postgres:
        yield postgres


@pytest.fixture(scope="session")
def postgres_async_url(postgres_container: PostgresContainer) -> str:
    """Get an asyncpg connection URL for the container.

    testcontainers returns a psycopg2 URL by default.

    Returns:
        postgresql+asyncpg:// URL string
    """
    sync_url = postgres_container.get_connection_url()
    return normalize_database_url(sync_url.replace("postgresql+psycopg2://", "postgresql://"))


@pytest.fixture
async def pg_session_factory(
    postgres_async_url: str,
) -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    """Per-test session factory over a freshly created schema."""
    engine = build_engine(postgres_async_url)
    await drop_schema(engine)
    await create_schema(engine)

    yield build_session_factory(engine)

    await drop_schema(engine)
    await engine.dispose()
