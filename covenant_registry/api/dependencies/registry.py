"""Registry API dependencies.

Dependency injection setup for the witness registry. Components are
process-wide singletons created on first use:

- DATABASE_URL set: SQLAlchemy repositories (PostgreSQL or SQLite)
- DATABASE_URL unset: in-memory stubs (single serialized writer)
- EMAIL_API_URL set: HTTP email transport, otherwise a logging transport

Tests replace components with ``app.dependency_overrides`` or by calling
the ``set_*`` helpers after ``reset_registry_dependencies()``.
"""

from __future__ import annotations

from structlog import get_logger

from covenant_registry.application.ports.milestone_repository import (
    MilestoneRepositoryProtocol,
)
from covenant_registry.application.ports.notification_log import (
    NotificationLogProtocol,
)
from covenant_registry.application.ports.notification_transport import (
    NotificationTransportProtocol,
)
from covenant_registry.application.ports.witness_repository import (
    WitnessRepositoryProtocol,
)
from covenant_registry.application.services.milestone_detector import (
    MilestoneDetector,
)
from covenant_registry.application.services.notification_dispatcher import (
    NotificationDispatcher,
)
from covenant_registry.application.services.registration_service import (
    RegistrationService,
)
from covenant_registry.application.services.registry_stats_service import (
    RegistryStatsService,
)
from covenant_registry.bootstrap.database import (
    close_database_engine,
    database_configured,
    get_engine,
    get_session_factory,
)
from covenant_registry.config.covenant_config import CovenantConfig
from covenant_registry.infrastructure.adapters.notification.http_email_transport import (
    HttpEmailTransport,
)
from covenant_registry.infrastructure.adapters.persistence import (
    SqlMilestoneRepository,
    SqlNotificationLog,
    SqlWitnessRepository,
    create_schema,
)
from covenant_registry.infrastructure.stubs import (
    LoggingTransport,
    MilestoneRepositoryStub,
    NotificationLogStub,
    WitnessRepositoryStub,
)

logger = get_logger()

_config: CovenantConfig | None = None
_witness_repository: WitnessRepositoryProtocol | None = None
_milestone_repository: MilestoneRepositoryProtocol | None = None
_notification_log: NotificationLogProtocol | None = None
_transport: NotificationTransportProtocol | None = None
_dispatcher: NotificationDispatcher | None = None
_milestone_detector: MilestoneDetector | None = None
_registration_service: RegistrationService | None = None
_stats_service: RegistryStatsService | None = None


def get_covenant_config() -> CovenantConfig:
    global _config
    if _config is None:
        _config = CovenantConfig.from_environment()
    return _config


def get_witness_repository() -> WitnessRepositoryProtocol:
    """Get the witness repository (SQL when DATABASE_URL is set, else stub)."""
    global _witness_repository
    if _witness_repository is None:
        config = get_covenant_config()
        if database_configured():
            _witness_repository = SqlWitnessRepository(
                get_session_factory(),
                retry=config.allocation,
                capacity=config.capacity,
            )
            logger.info("witness_repository_initialized", repository_type="sql")
        else:
            _witness_repository = WitnessRepositoryStub(capacity=config.capacity)
            logger.info("witness_repository_initialized", repository_type="memory")
    return _witness_repository


def get_milestone_repository() -> MilestoneRepositoryProtocol:
    global _milestone_repository
    if _milestone_repository is None:
        if database_configured():
            _milestone_repository = SqlMilestoneRepository(get_session_factory())
        else:
            _milestone_repository = MilestoneRepositoryStub()
    return _milestone_repository


def get_notification_log() -> NotificationLogProtocol:
    global _notification_log
    if _notification_log is None:
        if database_configured():
            _notification_log = SqlNotificationLog(get_session_factory())
        else:
            _notification_log = NotificationLogStub()
    return _notification_log


def get_notification_transport() -> NotificationTransportProtocol:
    """Get the notification transport (HTTP email when configured)."""
    global _transport
    if _transport is None:
        http_transport = HttpEmailTransport.from_environment()
        if http_transport is not None:
            _transport = http_transport
            logger.info("notification_transport_initialized", transport="http_email")
        else:
            _transport = LoggingTransport()
            logger.info("notification_transport_initialized", transport="logging")
    return _transport


def get_notification_dispatcher() -> NotificationDispatcher:
    global _dispatcher
    if _dispatcher is None:
        _dispatcher = NotificationDispatcher(
            witness_repository=get_witness_repository(),
            notification_log=get_notification_log(),
            transport=get_notification_transport(),
            config=get_covenant_config(),
        )
    return _dispatcher


def get_milestone_detector() -> MilestoneDetector:
    global _milestone_detector
    if _milestone_detector is None:
        _milestone_detector = MilestoneDetector(
            repository=get_milestone_repository(),
            thresholds=get_covenant_config().milestones,
        )
    return _milestone_detector


def get_registration_service() -> RegistrationService:
    global _registration_service
    if _registration_service is None:
        _registration_service = RegistrationService(
            witness_repository=get_witness_repository(),
            milestone_detector=get_milestone_detector(),
            dispatcher=get_notification_dispatcher(),
            config=get_covenant_config(),
        )
    return _registration_service


def get_registry_stats_service() -> RegistryStatsService:
    global _stats_service
    if _stats_service is None:
        _stats_service = RegistryStatsService(
            witness_repository=get_witness_repository(),
            config=get_covenant_config(),
        )
    return _stats_service


def set_covenant_config(config: CovenantConfig) -> None:
    """Set config (for testing). Call before any other getter."""
    global _config
    _config = config


def set_witness_repository(repository: WitnessRepositoryProtocol) -> None:
    global _witness_repository
    _witness_repository = repository


def set_milestone_repository(repository: MilestoneRepositoryProtocol) -> None:
    global _milestone_repository
    _milestone_repository = repository


def set_notification_log(notification_log: NotificationLogProtocol) -> None:
    global _notification_log
    _notification_log = notification_log


def set_notification_transport(transport: NotificationTransportProtocol) -> None:
    global _transport
    _transport = transport


async def startup_registry() -> None:
    """Prepare storage at application startup."""
    if database_configured():
        await create_schema(get_engine())
    get_registration_service()
    logger.info("registry_started", storage="sql" if database_configured() else "memory")


async def shutdown_registry() -> None:
    """Flush pending notifications and release the database engine."""
    if _dispatcher is not None:
        await _dispatcher.drain()
    await close_database_engine()
    logger.info("registry_stopped")


def reset_registry_dependencies() -> None:
    """Reset all singletons (for testing)."""
    global _config, _witness_repository, _milestone_repository, _notification_log
    global _transport, _dispatcher, _milestone_detector, _registration_service
    global _stats_service
    _config = None
    _witness_repository = None
    _milestone_repository = None
    _notification_log = None
    _transport = None
    _dispatcher = None
    _milestone_detector = None
    _registration_service = None
    _stats_service = None
