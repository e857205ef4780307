"""
Global error handlers for the FastAPI application

Every error leaves the API as {"success": false, "message": ..., "error": CODE}.
"""

from fastapi import Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
import logging

from saleready.core.config import settings
from saleready.core.exceptions import SaleReadyError

logger = logging.getLogger(__name__)


def error_response(status_code: int, message: str, code: str, **extra) -> JSONResponse:
    content = {"success": False, "message": message, "error": code}
    content.update(extra)
    return JSONResponse(status_code=status_code, content=content)


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Handle HTTP exceptions"""
    logger.error(f"HTTP error on {request.url.path}: {exc.detail}")
    return error_response(exc.status_code, str(exc.detail), "HTTP_ERROR")


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Malformed request bodies are client errors: 400, not 422"""
    logger.error(f"Validation error on {request.url.path}: {exc.errors()}")
    return error_response(
        status.HTTP_400_BAD_REQUEST,
        "Request validation failed",
        "VALIDATION_ERROR",
        details=jsonable_errors(exc),
    )


async def saleready_error_handler(request: Request, exc: SaleReadyError):
    """Handle domain errors raised by services"""
    if exc.status_code >= 500:
        logger.error(f"{exc.code} on {request.url.path}: {exc.message}")
    else:
        logger.warning(f"{exc.code} on {request.url.path}: {exc.message}")
    extra = {"details": exc.details} if exc.details else {}
    return error_response(exc.status_code, exc.message, exc.code, **extra)


async def general_exception_handler(request: Request, exc: Exception):
    """Handle general exceptions"""
    logger.error(f"Unhandled exception on {request.url.path}: {exc}", exc_info=True)

    # Don't expose internal errors in production
    if settings.ENVIRONMENT == "production":
        message = "An internal error occurred"
    else:
        message = str(exc) or "Unknown error"

    return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, message, "INTERNAL_SERVER_ERROR")


def jsonable_errors(exc: RequestValidationError) -> list:
    return [
        {"loc": [str(part) for part in err.get("loc", ())], "msg": err.get("msg"), "type": err.get("type")}
        for err in exc.errors()
    ]
