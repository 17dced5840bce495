"""Health check endpoint."""

from fastapi import APIRouter
from pydantic import BaseModel

from covenant_registry.bootstrap.database import database_configured

router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    status: str
    storage: str


@router.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    return HealthResponse(
        status="healthy",
        storage="sql" if database_configured() else "memory",
    )
