"""Custom exceptions and FastAPI exception handlers.

Implements RFC 7807 Problem Details for machine-readable error responses.
"""

from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError

from app.core.logging import get_logger
from app.core.problem_details import (
    ERROR_TYPES,
    ProblemDetailResponse,
    problem_response,
)

logger = get_logger(__name__)


# =============================================================================
# Exception Classes
# =============================================================================


class LupitaError(Exception):
    """Base exception for LupitaAnalytics application errors.

    All application-specific exceptions should inherit from this class.
    Each exception type maps to an RFC 7807 problem type URI.
    """

    error_type_uri: str = ERROR_TYPES["INTERNAL_ERROR"]
    # Details are only copied into the HTTP body when this is set
    expose_details: bool = False

    def __init__(
        self,
        message: str,
        code: str = "INTERNAL_ERROR",
        status_code: int = 500,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize application error.

        Args:
            message: Human-readable error message.
            code: Machine-readable error code.
            status_code: HTTP status code.
            details: Additional error context.
        """
        super().__init__(message)
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details or {}

    @property
    def title(self) -> str:
        """RFC 7807 title - short summary of problem type."""
        return self.code.replace("_", " ").title()


class NotFoundError(LupitaError):
    """Resource not found error (unknown sync run, report key, ...)."""

    error_type_uri: str = ERROR_TYPES["NOT_FOUND"]

    def __init__(
        self,
        message: str = "Resource not found",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message=message, code="NOT_FOUND", status_code=404, details=details)


class ValidationError(LupitaError):
    """Input validation error."""

    error_type_uri: str = ERROR_TYPES["VALIDATION_ERROR"]

    def __init__(
        self,
        message: str = "Validation failed",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(
            message=message, code="VALIDATION_ERROR", status_code=422, details=details
        )


class ConflictError(LupitaError):
    """Operation conflicts with existing state."""

    error_type_uri: str = ERROR_TYPES["CONFLICT"]

    def __init__(
        self,
        message: str = "Resource conflict",
        details: dict[str, Any] | None = None,
        code: str = "CONFLICT",
    ) -> None:
        super().__init__(message=message, code=code, status_code=409, details=details)


class BadRequestError(LupitaError):
    """The request is malformed or invalid."""

    error_type_uri: str = ERROR_TYPES["BAD_REQUEST"]

    def __init__(
        self,
        message: str = "Bad request",
        details: dict[str, Any] | None = None,
        code: str = "BAD_REQUEST",
    ) -> None:
        super().__init__(message=message, code=code, status_code=400, details=details)


class SpreadsheetReadError(LupitaError):
    """A spreadsheet file is missing or cannot be opened.

    Malformed rows never raise; only a file that cannot be read at all does.
    """

    error_type_uri: str = ERROR_TYPES["SPREADSHEET_UNREADABLE"]

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(
            message=message, code="SPREADSHEET_UNREADABLE", status_code=400, details=details
        )


class PortalAuthenticationError(LupitaError):
    """Login against the ZSBMS portal failed.

    Fatal for a whole sync run: the cause is almost always bad credentials
    or a change in the portal's login flow, so nothing is retried.
    """

    error_type_uri: str = ERROR_TYPES["PORTAL_AUTH_FAILED"]

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(
            message=message, code="PORTAL_AUTH_FAILED", status_code=502, details=details
        )


class ReportExportError(LupitaError):
    """A single report export failed (HTTP error or non-spreadsheet body)."""

    error_type_uri: str = ERROR_TYPES["REPORT_EXPORT_FAILED"]

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(
            message=message, code="REPORT_EXPORT_FAILED", status_code=502, details=details
        )


class SyncAlreadyRunningError(ConflictError):
    """A sync was triggered while another one is in flight."""

    error_type_uri: str = ERROR_TYPES["SYNC_BUSY"]
    expose_details = True

    def __init__(self, sync_id: int | None) -> None:
        super().__init__(
            message="A sync is already running",
            details={"sync_id": sync_id},
            code="SYNC_BUSY",
        )
        self.sync_id = sync_id


class SyncConfigurationError(BadRequestError):
    """Sync cannot start because portal credentials are not configured."""

    error_type_uri: str = ERROR_TYPES["SYNC_NOT_CONFIGURED"]

    def __init__(self, message: str = "ZSBMS credentials not configured") -> None:
        super().__init__(message=message, code="SYNC_NOT_CONFIGURED")


# =============================================================================
# Exception Handlers (RFC 7807)
# =============================================================================


async def lupita_exception_handler(
    _request: Request,
    exc: LupitaError,
) -> ProblemDetailResponse:
    """Handle LupitaError exceptions with RFC 7807 Problem Details.

    Args:
        _request: FastAPI request object.
        exc: The raised exception.

    Returns:
        RFC 7807 Problem Detail response.
    """
    log = logger.warning if exc.status_code < 500 else logger.error
    log(
        "app.error_handled",
        error=exc.message,
        error_type=type(exc).__name__,
        error_code=exc.code,
        status_code=exc.status_code,
        details=exc.details,
    )

    return problem_response(
        status=exc.status_code,
        title=exc.title,
        detail=exc.message,
        error_code=exc.code,
        extensions=exc.details if exc.expose_details else None,
    )


async def validation_exception_handler(
    request: Request,
    exc: RequestValidationError,
) -> ProblemDetailResponse:
    """Handle request validation errors with RFC 7807 Problem Details.

    Args:
        request: FastAPI request object.
        exc: Pydantic validation error.

    Returns:
        RFC 7807 Problem Detail response with field-level errors.
    """
    field_errors: list[dict[str, str]] = []
    for error in exc.errors():
        loc = error.get("loc", [])
        field_path = ".".join(str(part) for part in loc if part != "body")
        field_errors.append(
            {
                "field": field_path,
                "message": str(error.get("msg", "Validation failed")),
                "type": str(error.get("type", "unknown")),
            }
        )

    logger.warning(
        "app.validation_error",
        error_count=len(field_errors),
        path=str(request.url.path),
        fields=[e["field"] for e in field_errors],
    )

    return problem_response(
        status=422,
        title="Validation Error",
        detail=f"Request validation failed with {len(field_errors)} error(s).",
        error_code="VALIDATION_ERROR",
        errors=field_errors,
    )


async def unhandled_exception_handler(
    request: Request,
    exc: Exception,
) -> ProblemDetailResponse:
    """Handle unexpected exceptions with RFC 7807 Problem Details."""
    logger.error(
        "app.unhandled_error",
        error=str(exc),
        error_type=type(exc).__name__,
        path=str(request.url.path),
        exc_info=True,
    )

    return problem_response(
        status=500,
        title="Internal Server Error",
        detail="An unexpected error occurred. Check the server log for the request_id.",
        error_code="INTERNAL_ERROR",
    )


# =============================================================================
# Handler Registration
# =============================================================================


def register_exception_handlers(app: FastAPI) -> None:
    """Register exception handlers with FastAPI app.

    Args:
        app: FastAPI application instance.
    """
    app.add_exception_handler(LupitaError, lupita_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RequestValidationError, validation_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, unhandled_exception_handler)
