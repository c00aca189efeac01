"""
Error Handlers

Render domain errors as {"error": {"code", "message", "details"}} with the
error's own HTTP status. Messages are passed through verbatim so the screen
can show them in its error banner.
"""

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError

from ...domain.errors import DomainError, StoreError
from ...utils.logger import get_logger, get_correlation_id

logger = get_logger(__name__)


def _headers() -> dict:
    return {"X-Correlation-Id": get_correlation_id() or ""}


async def domain_error_handler(request: Request, exc: DomainError) -> JSONResponse:
    """Expected business errors: permission, validation, not found, conflicts, store"""
    if isinstance(exc, StoreError):
        logger.error(f"Store error on {request.method} {request.url.path}: {exc.message}")
    else:
        logger.warning(
            f"Domain error: {exc.error_code} - {exc.message}",
            extra={"action": f"{request.method} {request.url.path}"}
        )
    return JSONResponse(
        status_code=exc.http_status,
        content=jsonable_encoder(exc.to_dict()),
        headers=_headers()
    )


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Request body or path did not match the schema"""
    errors = jsonable_encoder(exc.errors())
    logger.warning(f"Validation error on {request.method} {request.url.path}: {errors}")
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "error": {
                "code": "VALIDATION_ERROR",
                "message": "Request validation failed",
                "details": {"errors": errors}
            }
        },
        headers=_headers()
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Anything unexpected: full trace to the logs, generic message to the caller"""
    logger.error(f"Unexpected error: {exc}", exc_info=True)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": {
                "code": "INTERNAL_ERROR",
                "message": "An unexpected error occurred",
                "details": {}
            }
        },
        headers=_headers()
    )


def register_error_handlers(app: FastAPI) -> None:
    """Register all exception handlers with the FastAPI application"""
    app.add_exception_handler(DomainError, domain_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(Exception, general_exception_handler)
