"""Engine error taxonomy and FastAPI exception handlers.

Every engine operation raises one of the WorkCropException subclasses
synchronously; nothing is retried here.  The handlers translate them
(and pydantic / SQLAlchemy errors) into one response envelope and log
them for debugging.
"""

import logging
from typing import Union

from fastapi import HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.exc import IntegrityError, OperationalError
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class WorkCropException(Exception):
    """Base exception for WorkCrop engine errors."""

    def __init__(
        self,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        error_code: str = "INTERNAL_ERROR",
        details: dict | None = None,
    ):
        self.message = message
        self.status_code = status_code
        self.error_code = error_code
        self.details = details
        super().__init__(self.message)


class ValidationError(WorkCropException):
    """Missing or malformed input.  The caller must fix it; no retry."""

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(
            message=message,
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            error_code="VALIDATION_FAILED",
            details=details,
        )


class InvalidStateError(WorkCropException):
    """Operation not legal in the current job / bid status."""

    def __init__(self, message: str, current_status: str | None = None):
        super().__init__(
            message=message,
            status_code=status.HTTP_409_CONFLICT,
            error_code="INVALID_STATE",
            details={"current_status": current_status} if current_status else None,
        )
        self.current_status = current_status


class OutOfBoundsError(WorkCropException):
    """Interval split request not contained in the target interval."""

    def __init__(self, message: str):
        super().__init__(
            message=message,
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            error_code="OUT_OF_BOUNDS",
        )


class AlreadyFinalizedError(InvalidStateError):
    """Lost the exclusive finalize race, or the job already has a winner."""

    def __init__(self, job_id: str, current_status: str | None = None):
        super().__init__(
            f"Job {job_id} has already been finalized",
            current_status=current_status,
        )
        self.error_code = "ALREADY_FINALIZED"
        self.details = {"job_id": job_id, **(self.details or {})}
        self.job_id = job_id


class ReconciliationMismatchError(WorkCropException):
    """Payment breakdown does not sum to the balance due."""

    def __init__(self, expected: float, actual: float, delta: float):
        super().__init__(
            message=(
                f"Cost breakdown totals {actual:,.2f} but balance due is "
                f"{expected:,.2f} (difference {delta:+,.2f})"
            ),
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            error_code="RECONCILIATION_MISMATCH",
            details={"expected": expected, "actual": actual, "delta": delta},
        )
        self.expected = expected
        self.actual = actual
        self.delta = delta


class ResourceNotFoundError(WorkCropException):
    """Exception for resources not found."""

    def __init__(self, resource: str, identifier: str):
        super().__init__(
            message=f"{resource} not found: {identifier}",
            status_code=status.HTTP_404_NOT_FOUND,
            error_code="RESOURCE_NOT_FOUND",
        )


def create_error_response(
    status_code: int,
    message: str,
    error_code: str = "ERROR",
    details: Union[dict, list, None] = None,
) -> JSONResponse:
    """Create standardized error response.

    Format:
    {
        "error": {
            "code": "ERROR_CODE",
            "message": "Human-readable error message",
            "details": {...}  // Optional additional details
        }
    }
    """
    content = {
        "error": {
            "code": error_code,
            "message": message,
        }
    }

    if details:
        content["error"]["details"] = details

    return JSONResponse(
        status_code=status_code,
        content=content,
    )


async def workcrop_exception_handler(
    request: Request,
    exc: WorkCropException,
) -> JSONResponse:
    """Handle engine exceptions."""
    logger.warning(
        f"WorkCrop exception: {exc.error_code} - {exc.message}",
        extra={
            "error_code": exc.error_code,
            "path": request.url.path,
            "method": request.method,
        },
    )

    return create_error_response(
        status_code=exc.status_code,
        message=exc.message,
        error_code=exc.error_code,
        details=exc.details,
    )


async def http_exception_handler(
    request: Request,
    exc: Union[HTTPException, StarletteHTTPException],
) -> JSONResponse:
    """Handle FastAPI HTTP exceptions."""
    if exc.status_code >= 500:
        logger.error(
            f"HTTP {exc.status_code}: {exc.detail}",
            extra={
                "path": request.url.path,
                "method": request.method,
            },
        )

    return create_error_response(
        status_code=exc.status_code,
        message=str(exc.detail),
        error_code=f"HTTP_{exc.status_code}",
    )


async def validation_exception_handler(
    request: Request,
    exc: Union[RequestValidationError, PydanticValidationError],
) -> JSONResponse:
    """Handle Pydantic validation errors."""
    logger.warning(
        f"Validation error on {request.url.path}",
        extra={
            "path": request.url.path,
            "method": request.method,
        },
    )

    errors = []
    for error in exc.errors():
        field = " -> ".join(str(loc) for loc in error["loc"])
        errors.append({
            "field": field,
            "message": error["msg"],
            "type": error["type"],
        })

    return create_error_response(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        message="Validation error",
        error_code="VALIDATION_ERROR",
        details={"errors": errors},
    )


# PostgreSQL reports the constraint name, SQLite the table.column list.
# First match wins, so the (job, team) pair precedes job_id alone.
CONSTRAINT_ERRORS = [
    (("uq_job_bid_team", "job_bids.job_id, job_bids.team_id"),
     "This team has already been notified of the job", "DUPLICATE_BID"),
    (("uq_job_bid_one_assigned", "job_bids.job_id"),
     "This job already has a winning bid", "ALREADY_FINALIZED"),
    (("uq_team_activity_rate", "team_activity_rates.team_id"),
     "This team already has a rate for the activity", "DUPLICATE_RATE"),
    (("payment_records_job_id", "payment_records.job_id"),
     "Payment already recorded for this job", "DUPLICATE_PAYMENT"),
    (("job_completions_job_id", "job_completions.job_id"),
     "Completion already recorded for this job", "DUPLICATE_COMPLETION"),
]


def _constraint_error(error_msg: str) -> tuple[str, str] | None:
    for markers, message, code in CONSTRAINT_ERRORS:
        if any(m in error_msg for m in markers):
            return message, code
    return None


async def database_exception_handler(
    request: Request,
    exc: IntegrityError,
) -> JSONResponse:
    """Handle database integrity errors (unique violations, foreign key, etc.)."""
    logger.error(
        f"Database integrity error on {request.url.path}: {str(exc)}",
        extra={
            "path": request.url.path,
            "method": request.method,
        },
    )

    error_msg = str(exc.orig) if hasattr(exc, "orig") else str(exc)
    known = _constraint_error(error_msg)

    if known:
        message, error_code = known
    elif "unique" in error_msg.lower():
        message = "A record with this value already exists"
        error_code = "DUPLICATE_RECORD"
    elif "foreign key" in error_msg.lower():
        message = "Referenced record does not exist"
        error_code = "FOREIGN_KEY_VIOLATION"
    elif "not null" in error_msg.lower():
        message = "Required field is missing"
        error_code = "NULL_VALUE_NOT_ALLOWED"
    else:
        message = "Database constraint violation"
        error_code = "INTEGRITY_ERROR"

    return create_error_response(
        status_code=status.HTTP_409_CONFLICT,
        message=message,
        error_code=error_code,
    )


async def operational_exception_handler(
    request: Request,
    exc: OperationalError,
) -> JSONResponse:
    """Handle database operational errors (connection issues, lock timeouts)."""
    logger.error(
        f"Database operational error on {request.url.path}: {str(exc)}",
        extra={
            "path": request.url.path,
            "method": request.method,
        },
    )

    return create_error_response(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        message="Database temporarily unavailable. Please try again.",
        error_code="DATABASE_UNAVAILABLE",
    )


async def general_exception_handler(
    request: Request,
    exc: Exception,
) -> JSONResponse:
    """Handle all other unhandled exceptions."""
    logger.error(
        f"Unhandled exception on {request.url.path}: {str(exc)}",
        extra={"path": request.url.path, "method": request.method},
        exc_info=True,
    )

    return create_error_response(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        message="An unexpected error occurred. Please try again later.",
        error_code="INTERNAL_SERVER_ERROR",
    )


def register_exception_handlers(app):
    """Register all custom exception handlers with FastAPI app."""
    app.add_exception_handler(WorkCropException, workcrop_exception_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(PydanticValidationError, validation_exception_handler)
    app.add_exception_handler(IntegrityError, database_exception_handler)
    app.add_exception_handler(OperationalError, operational_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)
