"""
Global exception handlers for FastAPI.
"""

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

import structlog

from gtd_review.core.exceptions import (
    ConcurrencyConflictError,
    ConfigurationError,
    ProjectNotFoundError,
    RepositoryError,
    ReviewAlreadyCompletedError,
    ReviewSystemError,
    SessionNotFoundError,
    TaskNotFoundError,
    ValidationError,
)

log = structlog.get_logger(__name__)


def _status_for(exc: ReviewSystemError) -> int:
    if isinstance(exc, ValidationError):
        return status.HTTP_400_BAD_REQUEST
    if isinstance(exc, (SessionNotFoundError, TaskNotFoundError, ProjectNotFoundError)):
        return status.HTTP_404_NOT_FOUND
    if isinstance(exc, (ReviewAlreadyCompletedError, ConcurrencyConflictError)):
        return status.HTTP_409_CONFLICT
    if isinstance(exc, RepositoryError):
        return status.HTTP_503_SERVICE_UNAVAILABLE
    return status.HTTP_500_INTERNAL_SERVER_ERROR


def setup_exception_handlers(app: FastAPI):
    """Register custom exception handlers with the FastAPI application.

    Sets up handlers for all ReviewSystemError subclasses with appropriate
    HTTP status codes, plus handlers for configuration errors and generic exceptions.
    """

    @app.exception_handler(ReviewSystemError)
    async def review_system_error_handler(
        request: Request,
        exc: ReviewSystemError,
    ) -> JSONResponse:
        """Handle ReviewSystemError exceptions with appropriate HTTP status codes.

        404 for missing sessions/tasks, 400 for rejected input, 409 when the
        session moved on or the period's review is done, 503 when the store
        failed and the client may retry.
        """
        log_ctx = log.bind(
            path=request.url.path,
            method=request.method,
            error_type=type(exc).__name__,
        )

        status_code = _status_for(exc)

        log_ctx.warning(
            "request_error",
            message=exc.message,
            status_code=status_code,
        )

        return JSONResponse(
            status_code=status_code,
            content={
                "error": {
                    "type": type(exc).__name__,
                    "message": exc.message,
                }
            },
        )

    @app.exception_handler(ConfigurationError)
    async def configuration_error_handler(
        request: Request,
        exc: ConfigurationError,
    ) -> JSONResponse:
        """Handle configuration errors with HTTP 500 status."""
        log.error(
            "configuration_error",
            path=request.url.path,
            message=exc.message,
        )

        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "error": {
                    "type": "ConfigurationError",
                    "message": "Server configuration error",
                }
            },
        )

    @app.exception_handler(Exception)
    async def generic_exception_handler(
        request: Request,
        exc: Exception,
    ) -> JSONResponse:
        """Handle all unhandled exceptions with HTTP 500 status.

        Logs the error with full context and returns a generic body so
        internals are not leaked to the client.
        """
        log_ctx = log.bind(
            path=request.url.path,
            method=request.method,
            error_type=type(exc).__name__,
        )

        log_ctx.error(
            "unhandled_exception",
            message=str(exc),
            exc_info=exc,
        )

        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "error": {
                    "type": "InternalServerError",
                    "message": "An unexpected error occurred",
                }
            },
        )
