"""
Exception handlers rendering every failure as the error envelope:

    {"statusCode": 404, "timestamp": "...", "path": "/api/events/9", "error": "Event with ID 9 not found"}

Validation failures add an `errors` list with one message per field.
"""

from datetime import datetime, timezone
from typing import Optional

from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from eventbook.core.exceptions import AppError
from eventbook.core.logging import get_logger

logger = get_logger(__name__)


def error_response(
    request: Request,
    status_code: int,
    message: str,
    errors: Optional[list[str]] = None,
    headers: Optional[dict[str, str]] = None,
) -> JSONResponse:
    content = {
        "statusCode": status_code,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "path": request.url.path,
        "error": message,
    }
    if errors:
        content["errors"] = errors
    return JSONResponse(status_code=status_code, content=content, headers=headers)


def _field_message(error: dict) -> str:
    # Drop the "body"/"query" prefix from the location
    location = [str(part) for part in error.get("loc", ()) if part not in ("body", "query", "path")]
    message = error.get("msg", "Invalid value")
    return f"{'.'.join(location)}: {message}" if location else message


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("app_error", error=exc.message, error_type=type(exc).__name__)
    else:
        logger.warning("app_error", error=exc.message, error_type=type(exc).__name__, status_code=exc.status_code)
    return error_response(request, exc.status_code, exc.message)


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    message = exc.detail if isinstance(exc.detail, str) else str(exc.detail)
    return error_response(request, exc.status_code, message, headers=getattr(exc, "headers", None))


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = [_field_message(error) for error in exc.errors()]
    logger.warning("request_validation_failed", errors=errors)
    return error_response(request, status.HTTP_400_BAD_REQUEST, "Bad Request", errors=errors)


async def general_500_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("unhandled_exception", error=str(exc), error_type=type(exc).__name__)
    return error_response(request, status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal Server Error")


EXCEPTION_HANDLERS = {
    AppError: app_error_handler,
    StarletteHTTPException: http_exception_handler,
    RequestValidationError: validation_exception_handler,
    Exception: general_500_exception_handler,
}


def register_exception_handlers(app) -> None:
    for exception_class, handler in EXCEPTION_HANDLERS.items():
        app.add_exception_handler(exception_class, handler)
