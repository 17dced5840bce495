"""Notification API routes.

- POST /notifications: send a notification, body discriminated by ``type``
  (welcome, milestone, emergency, launch_countdown, batch_test,
  daily_auction). Always 200 for a known type: delivery failures are
  reported with ``success: false``, never raised, because they never
  affect registry state.
- GET /notifications: notification history, newest first.
"""

from fastapi import APIRouter, Body, Depends, Query
from fastapi.responses import JSONResponse

from covenant_registry.api.dependencies.registry import (
    get_notification_dispatcher,
    get_notification_log,
    get_witness_repository,
)
from covenant_registry.api.models.notification import (
    BatchTestNotificationRequest,
    DailyAuctionNotificationRequest,
    EmergencyNotificationRequest,
    LaunchCountdownNotificationRequest,
    MilestoneNotificationRequest,
    NotificationHistoryResponse,
    NotificationRecordModel,
    NotificationRequest,
    NotificationResponse,
    WelcomeNotificationRequest,
)
from covenant_registry.api.models.witness import ErrorResponse
from covenant_registry.application.ports.notification_log import (
    NotificationLogProtocol,
)
from covenant_registry.application.ports.witness_repository import (
    WitnessRepositoryProtocol,
)
from covenant_registry.application.services.notification_dispatcher import (
    NotificationDispatcher,
)
from covenant_registry.domain.errors import InvalidIdentifierError
from covenant_registry.domain.models.notification import (
    DeliveryStatus,
    DispatchOutcome,
    MilestoneIntent,
    NotificationIntent,
    WelcomeIntent,
)
from covenant_registry.domain.services.address_validator import normalize_identifier

router = APIRouter(tags=["notifications"])


def _describe(request_type: str, outcome: DispatchOutcome) -> str:
    if outcome.already_sent:
        return f"{request_type} notification already sent"
    if outcome.skipped:
        return f"{request_type} notification skipped: {outcome.error}"
    if outcome.sent == 0 and outcome.failed == 0 and outcome.success:
        return f"{request_type} notification had no recipients"
    return (
        f"{request_type} notification sent to {outcome.sent} recipient(s)"
        f" ({outcome.failed} failed)"
    )


@router.post(
    "/notifications",
    response_model=NotificationResponse,
    response_model_exclude_none=True,
    responses={400: {"model": ErrorResponse, "description": "Invalid request"}},
    summary="Send a notification",
)
async def send_notification(
    request: NotificationRequest = Body(...),
    dispatcher: NotificationDispatcher = Depends(get_notification_dispatcher),
    repository: WitnessRepositoryProtocol = Depends(get_witness_repository),
) -> NotificationResponse | JSONResponse:
    intent: NotificationIntent
    if isinstance(request, WelcomeNotificationRequest):
        try:
            identifier = normalize_identifier(request.identifier)
        except InvalidIdentifierError as e:
            return JSONResponse(status_code=400, content=e.to_problem_dict())
        intent = WelcomeIntent(identifier=identifier)
    elif isinstance(request, MilestoneNotificationRequest):
        population = request.total_witnesses
        if population is None:
            population = await repository.count_active()
        intent = MilestoneIntent(
            threshold=request.threshold,
            population=population,
            message=request.message,
        )
    elif isinstance(
        request,
        (
            EmergencyNotificationRequest,
            LaunchCountdownNotificationRequest,
            BatchTestNotificationRequest,
            DailyAuctionNotificationRequest,
        ),
    ):
        intent = request.to_intent()
    else:  # pragma: no cover - the discriminator rejects anything else
        return JSONResponse(
            status_code=400,
            content={"error": "UnknownNotificationType", "detail": "Unknown type"},
        )

    outcome = await dispatcher.dispatch(intent)
    return NotificationResponse.from_outcome(
        request.type, outcome, _describe(request.type, outcome)
    )


@router.get(
    "/notifications",
    response_model=NotificationHistoryResponse,
    response_model_exclude_none=True,
    summary="Notification history",
)
async def list_notifications(
    witness: str | None = Query(default=None),
    status: DeliveryStatus | None = Query(default=None),
    limit: int = Query(default=50, ge=1, le=500),
    notification_log: NotificationLogProtocol = Depends(get_notification_log),
) -> NotificationHistoryResponse:
    records = await notification_log.list_recent(
        target_identifier=witness.strip().lower() if witness else None,
        status=status,
        limit=limit,
    )
    return NotificationHistoryResponse(
        notifications=[NotificationRecordModel.from_record(r) for r in records],
        count=len(records),
    )
