"""Witness registry API routes.

Endpoints:
- POST /witnesses: register a witness
- GET /witnesses: list active witnesses, optionally with readiness stats
- GET /witnesses/{identifier}: public summary of one witness
- PUT /witnesses/{identifier}/preferences: update notification opt-ins

Errors are returned as ``{error, detail, fields?}`` with the status code
carried by the domain error: 400 validation, 404 unknown witness,
409 duplicate or registry full, 500 allocation exhausted.
"""

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse

from covenant_registry.api.dependencies.registry import (
    get_registration_service,
    get_registry_stats_service,
    get_witness_repository,
)
from covenant_registry.api.models.witness import (
    ErrorResponse,
    NotificationPreferencesModel,
    RegisterWitnessRequest,
    RegisterWitnessResponse,
    RegistryStatsModel,
    UpdatePreferencesResponse,
    WitnessDetailModel,
    WitnessListResponse,
    WitnessSummaryModel,
)
from covenant_registry.application.ports.witness_repository import (
    WitnessRepositoryProtocol,
)
from covenant_registry.application.services.registration_service import (
    RegistrationService,
)
from covenant_registry.application.services.registry_stats_service import (
    RegistryStatsService,
)
from covenant_registry.domain.errors import RegistrationError

router = APIRouter(tags=["witnesses"])

_ERROR_RESPONSES: dict[int | str, dict] = {
    400: {"model": ErrorResponse, "description": "Invalid or incomplete request"},
    404: {"model": ErrorResponse, "description": "Witness not found"},
    409: {"model": ErrorResponse, "description": "Duplicate witness or registry full"},
    500: {"model": ErrorResponse, "description": "Witness number allocation failed"},
}


def _error_response(error: RegistrationError) -> JSONResponse:
    return JSONResponse(status_code=error.http_status, content=error.to_problem_dict())


@router.post(
    "/witnesses",
    response_model=RegisterWitnessResponse,
    responses=_ERROR_RESPONSES,
    summary="Register as a covenant witness",
)
async def register_witness(
    request: RegisterWitnessRequest,
    service: RegistrationService = Depends(get_registration_service),
) -> RegisterWitnessResponse | JSONResponse:
    """Register a witness and return its assigned witness number.

    The response is returned before any welcome or milestone notification
    is delivered.
    """
    preferences = (
        request.notification_preferences.to_domain()
        if request.notification_preferences is not None
        else None
    )
    try:
        result = await service.register(
            identifier=request.identifier,
            proof_hash=request.proof_hash,
            signed_at=request.signed_at,
            contact=request.contact,
            block_ref=request.block_ref,
            display_name=request.display_name,
            notification_preferences=preferences,
        )
    except RegistrationError as e:
        return _error_response(e)

    witness = result.witness
    return RegisterWitnessResponse(
        witness=WitnessDetailModel.from_witness(witness),
        milestones_fired=list(result.milestones_fired),
        message=f"Welcome, Covenant Witness #{witness.sequence_number}",
    )


@router.get(
    "/witnesses",
    response_model=WitnessListResponse,
    response_model_exclude_none=True,
    summary="List active witnesses",
)
async def list_witnesses(
    include_stats: bool = Query(default=False, alias="includeStats"),
    limit: int = Query(default=100, ge=1, le=1000),
    offset: int = Query(default=0, ge=0),
    repository: WitnessRepositoryProtocol = Depends(get_witness_repository),
    stats_service: RegistryStatsService = Depends(get_registry_stats_service),
) -> WitnessListResponse:
    """Page of active witnesses in witness-number order. Never includes contact."""
    witnesses = await repository.list_active(limit=limit, offset=offset)
    total = await repository.count_active()

    stats = None
    if include_stats:
        registry_stats = await stats_service.get_stats()
        stats = RegistryStatsModel.from_report(
            registry_stats.readiness, registry_stats.recent_witnesses
        )

    return WitnessListResponse(
        witnesses=[WitnessSummaryModel.from_witness(w) for w in witnesses],
        total=total,
        offset=offset,
        limit=limit,
        stats=stats,
    )


@router.get(
    "/witnesses/{identifier}",
    response_model=WitnessSummaryModel,
    responses=_ERROR_RESPONSES,
    summary="Get a witness",
)
async def get_witness(
    identifier: str,
    service: RegistrationService = Depends(get_registration_service),
) -> WitnessSummaryModel | JSONResponse:
    try:
        witness = await service.get_witness(identifier)
    except RegistrationError as e:
        return _error_response(e)
    return WitnessSummaryModel.from_witness(witness)


@router.put(
    "/witnesses/{identifier}/preferences",
    response_model=UpdatePreferencesResponse,
    responses=_ERROR_RESPONSES,
    summary="Update notification preferences",
)
async def update_preferences(
    identifier: str,
    preferences: NotificationPreferencesModel,
    service: RegistrationService = Depends(get_registration_service),
) -> UpdatePreferencesResponse | JSONResponse:
    try:
        witness = await service.update_preferences(identifier, preferences.to_domain())
    except RegistrationError as e:
        return _error_response(e)
    return UpdatePreferencesResponse(witness=WitnessDetailModel.from_witness(witness))
