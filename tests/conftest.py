"""
Pytest configuration and shared fixtures for the covenant registry tests.

Testing Standards:
- All async tests use pytest.mark.asyncio (auto mode enabled in pyproject.toml)
- In-memory stubs stand in for storage and transports in unit tests
- Unit tests go in tests/unit/
- Integration tests go in tests/integration/ and are marked ``integration``
"""

from collections.abc import Callable, Iterator
from datetime import datetime, timedelta, timezone

import pytest

from covenant_registry.config.covenant_config import CovenantConfig
from covenant_registry.infrastructure.monitoring.metrics import reset_metrics_collector
from covenant_registry.infrastructure.stubs import (
    MilestoneRepositoryStub,
    NotificationLogStub,
    RecordingTransportStub,
    WitnessRepositoryStub,
)

# Fixed "now" for deterministic readiness and countdown assertions
NOW = datetime(2025, 10, 12, 12, 0, tzinfo=timezone.utc)


def make_identifier(n: int) -> str:
    """Deterministic, well-formed identifier for the n-th test registrant."""
    return "0x" + format(n, "040x")


class FakeClock:
    """Settable clock injected into services."""

    def __init__(self, now: datetime = NOW) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture
def anyio_backend() -> str:
    """Use asyncio as the async backend."""
    return "asyncio"


@pytest.fixture(autouse=True)
def fresh_metrics() -> Iterator[None]:
    """Give every test its own metrics registry."""
    reset_metrics_collector()
    yield
    reset_metrics_collector()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def covenant_config() -> CovenantConfig:
    """Registry config with a deadline 30 days after NOW."""
    return CovenantConfig(
        target_witnesses=100,
        deadline=NOW + timedelta(days=30),
    )


@pytest.fixture
def witness_repository() -> WitnessRepositoryStub:
    return WitnessRepositoryStub()


@pytest.fixture
def milestone_repository() -> MilestoneRepositoryStub:
    return MilestoneRepositoryStub()


@pytest.fixture
def notification_log() -> NotificationLogStub:
    return NotificationLogStub()


@pytest.fixture
def transport() -> RecordingTransportStub:
    return RecordingTransportStub()


@pytest.fixture
def identifier_factory() -> Callable[[int], str]:
    return make_identifier
