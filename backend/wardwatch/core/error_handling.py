"""
Error responses for the alerts API.

Database failures are logged with full detail; callers only get a generic
message so SQL text and connection details never reach a response body.
"""

from typing import Optional

import structlog
from fastapi import HTTPException, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

logger = structlog.get_logger(__name__)


def sanitize_error(
    error: Exception,
    operation: str,
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
    client_message: Optional[str] = None
) -> HTTPException:
    """
    Log ``error`` and build the HTTPException to raise in its place.

    Args:
        error: The original exception
        operation: Short name of the failed operation ("List alerts", ...)
        status_code: HTTP status code to return
        client_message: Message for the caller; a generic one by default
    """
    logger.error(
        "Alert API operation failed",
        operation=operation,
        error_type=type(error).__name__,
        error=str(error),
    )
    return HTTPException(
        status_code=status_code,
        detail=client_message or f"{operation} failed. Please try again later."
    )


async def database_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    """Database errors that escaped an endpoint."""
    logger.error(
        "Database error",
        path=request.url.path,
        method=request.method,
        error_type=type(exc).__name__,
        error=str(exc),
    )
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"detail": "Database temporarily unavailable"},
    )
