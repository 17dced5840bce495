"""
Domain layer - Pure registry logic.

This layer contains:
- Domain models (Witness, Milestone, notification records and intents)
- Domain errors
- Pure domain services (validation, readiness, milestone schedule)

CRITICAL: This layer must NOT import from application, infrastructure, or api.
Only stdlib and typing imports are allowed.
"""

from covenant_registry.domain.exceptions import CovenantError

__all__: list[str] = ["CovenantError"]
