"""API middleware."""

from covenant_registry.api.middleware.logging_middleware import LoggingMiddleware

__all__ = ["LoggingMiddleware"]
