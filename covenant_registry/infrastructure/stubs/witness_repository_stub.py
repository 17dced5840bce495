"""In-memory stub for WitnessRepositoryProtocol.

A single serialized writer: ``try_accept`` runs the duplicate lookup,
counter increment and insert under one ``asyncio.Lock``, so the three steps
are indivisible with respect to every other caller on the event loop.

It simulates the database behavior including:
- Unique identifier across active and revoked witnesses
- Gapless counter advanced only when the insert succeeds
- Never deleting a record (revocation only flips status)

Used by default when no database URL is configured, and by unit tests.
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone

from covenant_registry.application.ports.witness_repository import WitnessBuilder
from covenant_registry.domain.errors import (
    DuplicateWitnessError,
    RegistryFullError,
    WitnessNotFoundError,
)
from covenant_registry.domain.models.witness import NotificationPreferences, Witness


class WitnessRepositoryStub:
    """In-memory implementation of WitnessRepositoryProtocol."""

    def __init__(self, capacity: int | None = None) -> None:
        """Initialize empty stub.

        Args:
            capacity: Optional maximum number of accepted witnesses.
        """
        self._capacity = capacity
        # Key: identifier, Value: Witness (active and revoked)
        self._witnesses: dict[str, Witness] = {}
        # Highest committed witness number
        self._sequence = 0
        self._write_lock = asyncio.Lock()

    async def try_accept(
        self, identifier: str, build: WitnessBuilder
    ) -> tuple[Witness, bool]:
        async with self._write_lock:
            existing = self._witnesses.get(identifier)
            if existing is not None:
                raise DuplicateWitnessError(
                    identifier,
                    existing_sequence_number=existing.sequence_number,
                )
            if self._capacity is not None and self._sequence >= self._capacity:
                raise RegistryFullError(self._capacity)

            reserved = self._sequence + 1
            # Other callers may run here; the lock keeps them out of this unit.
            await asyncio.sleep(0)
            witness = build(reserved)
            if witness.identifier != identifier or witness.sequence_number != reserved:
                raise ValueError("builder returned a witness for another reservation")

            self._witnesses[identifier] = witness
            self._sequence = reserved
            return witness, True

    async def get(self, identifier: str) -> Witness | None:
        return self._witnesses.get(identifier)

    async def list_active(self, limit: int = 100, offset: int = 0) -> list[Witness]:
        active = sorted(
            (w for w in self._witnesses.values() if w.is_active),
            key=lambda w: w.sequence_number,
        )
        return active[offset : offset + limit]

    async def count_active(self) -> int:
        return sum(1 for w in self._witnesses.values() if w.is_active)

    async def list_recent(self, limit: int = 10) -> list[Witness]:
        active = sorted(
            (w for w in self._witnesses.values() if w.is_active),
            key=lambda w: w.sequence_number,
            reverse=True,
        )
        return active[:limit]

    async def list_recipients(self, preference: str | None = None) -> list[Witness]:
        recipients = []
        for witness in sorted(self._witnesses.values(), key=lambda w: w.sequence_number):
            if not witness.is_active or not witness.contact:
                continue
            if preference and not getattr(witness.notification_preferences, preference):
                continue
            recipients.append(witness)
        return recipients

    async def update_preferences(
        self, identifier: str, preferences: NotificationPreferences
    ) -> Witness:
        async with self._write_lock:
            witness = self._witnesses.get(identifier)
            if witness is None:
                raise WitnessNotFoundError(identifier)
            updated = witness.with_preferences(preferences, datetime.now(timezone.utc))
            self._witnesses[identifier] = updated
            return updated

    async def revoke(self, identifier: str) -> Witness:
        async with self._write_lock:
            witness = self._witnesses.get(identifier)
            if witness is None:
                raise WitnessNotFoundError(identifier)
            if not witness.is_active:
                return witness
            revoked = witness.revoke(datetime.now(timezone.utc))
            self._witnesses[identifier] = revoked
            return revoked

    async def current_sequence(self) -> int:
        return self._sequence

    def clear(self) -> None:
        """Clear all stored data (for testing)."""
        self._witnesses.clear()
        self._sequence = 0
