"""Request validation error translation.

FastAPI reports schema violations as 422 by default; the registry reports
every malformed request as 400 with the same ``{error, detail, fields}``
body the domain errors use.
"""

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from structlog import get_logger

logger = get_logger()

_UNKNOWN_TAG_ERRORS = frozenset({"union_tag_invalid", "union_tag_not_found"})


async def request_validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    errors = exc.errors()

    for error in errors:
        if error.get("type") in _UNKNOWN_TAG_ERRORS:
            tag = (error.get("ctx") or {}).get("tag")
            detail = (
                f"Unknown notification type: {tag}"
                if tag is not None
                else "Missing notification type"
            )
            return JSONResponse(
                status_code=400,
                content={
                    "error": "UnknownNotificationType",
                    "detail": detail,
                    "fields": ["type"],
                },
            )

    fields: list[str] = []
    for error in errors:
        loc = [str(part) for part in error.get("loc", ()) if part not in ("body", "query", "path")]
        name = loc[-1] if loc else "body"
        if name not in fields:
            fields.append(name)

    detail = "; ".join(str(error.get("msg", "invalid value")) for error in errors)
    logger.info("request_validation_failed", path=request.url.path, fields=fields)
    return JSONResponse(
        status_code=400,
        content={"error": "ValidationError", "detail": detail, "fields": fields},
    )
