"""Registry configuration."""

from covenant_registry.config.covenant_config import (
    DEFAULT_COVENANT_CONFIG,
    AllocationRetryConfig,
    CovenantConfig,
)

__all__ = [
    "AllocationRetryConfig",
    "CovenantConfig",
    "DEFAULT_COVENANT_CONFIG",
]
