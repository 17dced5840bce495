"""FastAPI application entry point for the covenant witness registry.

Run with:
    uvicorn covenant_registry.api.main:app
"""

import os
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError

from covenant_registry import __version__
from covenant_registry.api.dependencies.registry import (
    shutdown_registry,
    startup_registry,
)
from covenant_registry.api.errors import request_validation_exception_handler
from covenant_registry.api.middleware.logging_middleware import LoggingMiddleware
from covenant_registry.api.routes.health import router as health_router
from covenant_registry.api.routes.metrics import router as metrics_router
from covenant_registry.api.routes.notification import router as notification_router
from covenant_registry.api.routes.witness import router as witness_router
from covenant_registry.infrastructure.observability import configure_structlog

load_dotenv()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    await startup_registry()
    yield
    await shutdown_registry()


def create_app() -> FastAPI:
    """Build the application. Configures logging from ENVIRONMENT."""
    configure_structlog(environment=os.environ.get("ENVIRONMENT", "development"))

    application = FastAPI(
        title="Covenant Witness Registry",
        description="Witness registration, milestones and launch readiness",
        version=__version__,
        lifespan=lifespan,
    )
    application.add_middleware(LoggingMiddleware)
    application.add_exception_handler(
        RequestValidationError,
        request_validation_exception_handler,  # type: ignore[arg-type]
    )

    application.include_router(health_router)
    application.include_router(metrics_router)
    application.include_router(witness_router)
    application.include_router(notification_router)
    return application


app = create_app()
