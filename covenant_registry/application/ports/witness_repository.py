"""Witness repository port.

The repository owns the two shared mutable resources of the registry: the
witness-number counter and the identifier uniqueness index. They are only
ever modified together, through ``try_accept``.

Implementations must make ``try_accept`` a single atomic unit. A
check-then-insert sequence is not acceptable: two callers can both pass the
check before either inserts. Acceptable realizations are a storage-level
unique constraint plus a counter row incremented inside the same
transaction, or a single serialized writer.
"""

from __future__ import annotations

from abc import abstractmethod
from collections.abc import Callable
from typing import Protocol

from covenant_registry.domain.models.witness import NotificationPreferences, Witness

WitnessBuilder = Callable[[int], Witness]
"""Called with the reserved witness number; returns the record to persist.

Raising inside the builder aborts the whole acceptance: nothing is stored
and the reserved number stays available for the next caller.
"""


class WitnessRepositoryProtocol(Protocol):
    """Repository protocol for witness persistence and allocation."""

    @abstractmethod
    async def try_accept(
        self, identifier: str, build: WitnessBuilder
    ) -> tuple[Witness, bool]:
        """Atomically reserve the next witness number and persist the witness.

        Guarantees:
        - Concurrent accepted calls starting from current maximum ``k`` are
          assigned exactly ``k+1 .. k+N``, in commit order.
        - Among concurrent calls for one identifier exactly one succeeds.
        - A failed call consumes no number.

        Args:
            identifier: Normalized identifier.
            build: Builder receiving the reserved number.

        Returns:
            Tuple of (persisted witness, is_new). ``is_new`` is True for
            every successful call; repeated identifiers raise instead.

        Raises:
            DuplicateWitnessError: The identifier already holds a record,
                active or revoked.
            RegistryFullError: The configured capacity is reached.
            AllocationError: Transient contention persisted after retries.
        """
        ...

    @abstractmethod
    async def get(self, identifier: str) -> Witness | None:
        """Get a witness by normalized identifier (any status)."""
        ...

    @abstractmethod
    async def list_active(self, limit: int = 100, offset: int = 0) -> list[Witness]:
        """Active witnesses ordered by witness number ascending."""
        ...

    @abstractmethod
    async def count_active(self) -> int:
        """Number of active witnesses."""
        ...

    @abstractmethod
    async def list_recent(self, limit: int = 10) -> list[Witness]:
        """Most recently accepted active witnesses, newest first."""
        ...

    @abstractmethod
    async def list_recipients(self, preference: str | None = None) -> list[Witness]:
        """Active witnesses with a contact address.

        Args:
            preference: Optional NotificationPreferences attribute name the
                witness must have enabled (e.g. ``"milestones"``).
        """
        ...

    @abstractmethod
    async def update_preferences(
        self, identifier: str, preferences: NotificationPreferences
    ) -> Witness:
        """Replace a witness's notification preferences.

        Raises:
            WitnessNotFoundError: No witness for the identifier.
        """
        ...

    @abstractmethod
    async def revoke(self, identifier: str) -> Witness:
        """Mark a witness revoked. The number and identifier stay consumed.

        Raises:
            WitnessNotFoundError: No witness for the identifier.
        """
        ...

    @abstractmethod
    async def current_sequence(self) -> int:
        """Highest witness number ever assigned (0 when empty)."""
        ...
