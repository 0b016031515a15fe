"""
API Exception Handlers

Maps AnalyticsError subclasses onto HTTP status codes with a uniform body:

    {
        "error": "ErrorClassName",
        "code": "ERROR_CODE",
        "detail": "Human-readable error message",
        "details": {...}
    }
"""

from typing import Dict, Type

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
import structlog

from shop_analytics.analytics.exceptions import (
    AnalyticsError,
    DataUnavailable,
    ExportFailure,
    NotFound,
    ValidationError,
)

logger = structlog.get_logger(__name__)


ERROR_STATUS_CODES: Dict[Type[AnalyticsError], int] = {
    ValidationError: 400,
    NotFound: 404,
    ExportFailure: 500,
    DataUnavailable: 503,
    AnalyticsError: 500,
}


def get_status_code(error: AnalyticsError) -> int:
    """Status for the most specific registered class in the error's MRO"""
    for cls in type(error).__mro__:
        if cls in ERROR_STATUS_CODES:
            return ERROR_STATUS_CODES[cls]
    return 500


async def analytics_error_handler(request: Request, exc: AnalyticsError) -> JSONResponse:
    status_code = get_status_code(exc)
    log = logger.error if status_code >= 500 else logger.warning
    log(
        "Analytics request failed",
        path=request.url.path,
        method=request.method,
        status_code=status_code,
        error_code=exc.code,
        error=exc.message,
    )
    return JSONResponse(status_code=status_code, content=exc.to_dict())


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed bodies and parameters get the ValidationError body with 400"""
    errors = exc.errors()
    first = errors[0] if errors else {}
    field = ".".join(str(part) for part in first.get("loc", ()) if part != "body") or "request"
    error = ValidationError(field, jsonable_encoder(first.get("input")))
    error.details["errors"] = [
        {"loc": list(e.get("loc", ())), "msg": e.get("msg"), "type": e.get("type")} for e in errors
    ]
    return await analytics_error_handler(request, error)


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(
        "Unhandled error",
        path=request.url.path,
        method=request.method,
        error_type=type(exc).__name__,
    )
    return JSONResponse(
        status_code=500,
        content={
            "error": "InternalServerError",
            "code": "INTERNAL_ERROR",
            "detail": "An unexpected error occurred",
            "details": {},
        },
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Register the analytics error handlers on ``app``"""
    app.add_exception_handler(AnalyticsError, analytics_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
