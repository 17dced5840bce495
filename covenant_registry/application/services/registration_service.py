"""Witness registration service.

Orchestrates a registration: validation, the atomic accept (duplicate guard
and sequence allocation in one unit), milestone detection and notification
hand-off.

Flow:
1. Validate and normalize the request (no side effects)
2. try_accept - reserve the next witness number and persist, atomically
3. Detect milestones crossed by the new population
4. Submit welcome and milestone notifications in the background
5. Return the accepted witness

Registration Rules:
- A failed registration never consumes a witness number
- The witness is returned before any notification is delivered
- Milestone or notification failures never fail an accepted registration
"""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import TYPE_CHECKING

from structlog import get_logger

from covenant_registry.config.covenant_config import (
    DEFAULT_COVENANT_CONFIG,
    CovenantConfig,
)
from covenant_registry.domain.errors import (
    RegistrationError,
    ValidationError,
    WitnessNotFoundError,
)
from covenant_registry.domain.models.notification import MilestoneIntent, WelcomeIntent
from covenant_registry.domain.models.witness import NotificationPreferences, Witness
from covenant_registry.domain.services.address_validator import (
    normalize_identifier,
    validate_registration,
)
from covenant_registry.domain.services.milestone_schedule import milestone_message
from covenant_registry.infrastructure.monitoring.metrics import get_metrics_collector

if TYPE_CHECKING:
    from covenant_registry.application.ports.witness_repository import (
        WitnessRepositoryProtocol,
    )
    from covenant_registry.application.services.milestone_detector import (
        MilestoneDetector,
    )
    from covenant_registry.application.services.notification_dispatcher import (
        NotificationDispatcher,
    )

logger = get_logger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class RegistrationResult:
    """Result of a successful registration.

    Attributes:
        witness: The accepted witness with its assigned number.
        milestones_fired: Thresholds this acceptance fired, ascending.
    """

    witness: Witness
    milestones_fired: tuple[int, ...] = ()


class RegistrationService:
    """Registers witnesses and manages their records."""

    def __init__(
        self,
        witness_repository: WitnessRepositoryProtocol,
        milestone_detector: MilestoneDetector,
        dispatcher: NotificationDispatcher | None = None,
        config: CovenantConfig = DEFAULT_COVENANT_CONFIG,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        """Initialize the registration service.

        Args:
            witness_repository: Store owning the counter and uniqueness index.
            milestone_detector: Detector evaluated after each acceptance.
            dispatcher: Optional notification dispatcher. None disables
                notifications entirely.
            config: Registry configuration.
            clock: Source of acceptance timestamps.
        """
        self._witnesses = witness_repository
        self._detector = milestone_detector
        self._dispatcher = dispatcher
        self._config = config
        self._clock = clock

    async def register(
        self,
        identifier: str | None,
        proof_hash: str | None,
        signed_at: str | datetime | None,
        contact: str | None = None,
        block_ref: int | None = None,
        display_name: str | None = None,
        notification_preferences: NotificationPreferences | None = None,
    ) -> RegistrationResult:
        """Register a witness.

        Returns:
            RegistrationResult with the accepted witness.

        Raises:
            MissingFieldError: Required fields absent (all of them listed).
            InvalidIdentifierError: Malformed identifier.
            InvalidFieldError: Unparsable signedAt or negative blockRef.
            DuplicateWitnessError: Identifier already registered.
            RegistryFullError: Configured capacity reached.
            AllocationError: Acceptance kept conflicting after retries.
        """
        metrics = get_metrics_collector()

        try:
            application = validate_registration(
                identifier=identifier,
                proof_hash=proof_hash,
                signed_at=signed_at,
                contact=contact,
                block_ref=block_ref,
                display_name=display_name,
                notification_preferences=notification_preferences,
            )
        except ValidationError as e:
            metrics.increment_registrations(e.error_code)
            logger.info(
                "Registration rejected by validation",
                error_code=e.error_code,
                detail=str(e),
            )
            raise

        log = logger.bind(identifier=application.identifier)
        log.debug("Starting witness registration")

        def build(sequence_number: int) -> Witness:
            return Witness.from_application(
                application, sequence_number, accepted_at=self._clock()
            )

        started = time.perf_counter()
        try:
            witness, _ = await self._witnesses.try_accept(
                application.identifier, build
            )
        except RegistrationError as e:
            metrics.increment_registrations(e.error_code)
            log.warning(
                "Registration rejected",
                error_code=e.error_code,
                detail=str(e),
            )
            raise

        metrics.increment_registrations("accepted")
        metrics.observe_accept_duration(time.perf_counter() - started)
        metrics.change_active_witnesses(1)
        log = log.bind(sequence_number=witness.sequence_number)
        log.info("witness_registered")

        # The witness is committed from here on; nothing below may fail it.
        fired: frozenset[int] = frozenset()
        try:
            fired = await self._detector.check_and_fire(witness.sequence_number)
        except Exception as e:
            log.error(
                "Milestone detection failed, registration still successful",
                error=str(e),
                error_type=type(e).__name__,
            )

        milestones = tuple(sorted(fired))
        if self._dispatcher is not None:
            self._dispatcher.submit(WelcomeIntent(identifier=witness.identifier))
            for threshold in milestones:
                self._dispatcher.submit(
                    MilestoneIntent(
                        threshold=threshold,
                        population=witness.sequence_number,
                        message=milestone_message(
                            threshold, self._config.target_witnesses
                        ),
                    )
                )

        if milestones:
            log.info("Registration crossed milestones", milestones=list(milestones))
        return RegistrationResult(witness=witness, milestones_fired=milestones)

    async def get_witness(self, identifier: str) -> Witness:
        """Look up a witness by (raw) identifier.

        Raises:
            InvalidIdentifierError: Malformed identifier.
            WitnessNotFoundError: No witness for the identifier.
        """
        normalized = normalize_identifier(identifier)
        witness = await self._witnesses.get(normalized)
        if witness is None:
            raise WitnessNotFoundError(normalized)
        return witness

    async def update_preferences(
        self, identifier: str, preferences: NotificationPreferences
    ) -> Witness:
        """Replace a witness's notification preferences. Contact is unchanged.

        Raises:
            InvalidIdentifierError: Malformed identifier.
            WitnessNotFoundError: No witness for the identifier.
        """
        normalized = normalize_identifier(identifier)
        witness = await self._witnesses.update_preferences(normalized, preferences)
        logger.info(
            "witness_preferences_updated",
            identifier=normalized,
            preferences=preferences.to_dict(),
        )
        return witness

    async def revoke(self, identifier: str) -> Witness:
        """Revoke a witness (administrative).

        The witness number is never reused and the identifier stays
        consumed: it cannot register again.

        Raises:
            InvalidIdentifierError: Malformed identifier.
            WitnessNotFoundError: No witness for the identifier.
        """
        normalized = normalize_identifier(identifier)
        existing = await self._witnesses.get(normalized)
        if existing is None:
            raise WitnessNotFoundError(normalized)
        if not existing.is_active:
            return existing

        witness = await self._witnesses.revoke(normalized)
        get_metrics_collector().change_active_witnesses(-1)
        logger.warning(
            "witness_revoked",
            identifier=normalized,
            sequence_number=witness.sequence_number,
        )
        return witness
