"""
Error taxonomy and HTTP mapping.

Every failure a caller can see carries a stable error code, a human-readable
message and, where useful, structured details (the identifier that failed to
resolve, a field -> message map for validation failures).
"""

from datetime import datetime
from typing import Any
from uuid import uuid4

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from porter.utils.logging import get_logger

logger = get_logger(__name__)


class ErrorDetail(BaseModel):
    """Standardized error response format."""

    code: str
    message: str
    status_code: int
    timestamp: str
    request_id: str | None = None
    details: dict[str, Any] | None = None


class ErrorResponse(BaseModel):
    """Wrapper for error responses."""

    error: ErrorDetail


class PorterError(Exception):
    """Base exception for all dispatch errors."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    error_code: str = "INTERNAL_ERROR"
    message: str = "An unexpected error occurred"

    def __init__(
        self,
        message: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.message = message or self.message
        self.details = details
        super().__init__(self.message)

    def to_response(self, request_id: str | None = None) -> ErrorResponse:
        return ErrorResponse(
            error=ErrorDetail(
                code=self.error_code,
                message=self.message,
                status_code=self.status_code,
                timestamp=datetime.utcnow().isoformat() + "Z",
                request_id=request_id,
                details=self.details,
            )
        )


class ValidationFailure(PorterError):
    """Malformed or missing input."""

    status_code = status.HTTP_400_BAD_REQUEST
    error_code = "VALIDATION_ERROR"
    message = "Invalid input data"


class UnauthenticatedError(PorterError):
    status_code = status.HTTP_401_UNAUTHORIZED
    error_code = "UNAUTHENTICATED"
    message = "Authentication required"


class ForbiddenError(PorterError):
    """Role or ownership mismatch."""

    status_code = status.HTTP_403_FORBIDDEN
    error_code = "FORBIDDEN"
    message = "You do not have permission to perform this action"


class NotFoundError(PorterError):
    """No entity matched the identifier."""

    status_code = status.HTTP_404_NOT_FOUND
    error_code = "NOT_FOUND"

    def __init__(self, kind: str, identifier: str, field: str | None = None):
        details = {"kind": kind, "identifier": identifier}
        if field:
            details["field"] = field
        super().__init__(
            message=f"{kind.capitalize()} '{identifier}' not found",
            details=details,
        )
        self.kind = kind
        self.identifier = identifier


class ConflictError(PorterError):
    """The current state does not allow the operation."""

    status_code = status.HTTP_409_CONFLICT
    error_code = "CONFLICT"
    message = "Resource conflict"


class DependencyFailure(PorterError):
    """
    A best-effort side effect failed after the primary write succeeded.

    Raised and caught inside the core only; it never reaches a caller.
    """

    error_code = "DEPENDENCY_FAILURE"
    message = "Secondary update failed"


def get_request_id(request: Request) -> str:
    return request.headers.get("X-Request-ID") or str(uuid4())


async def porter_exception_handler(request: Request, exc: PorterError) -> JSONResponse:
    """Handle all dispatch exceptions with the standard envelope."""
    request_id = get_request_id(request)
    response = exc.to_response(request_id=request_id)

    return JSONResponse(
        status_code=exc.status_code,
        content=response.model_dump(mode="json"),
        headers={"X-Request-ID": request_id},
    )


async def request_validation_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Report body/query schema errors as a field -> message map."""
    fields: dict[str, str] = {}
    for error in exc.errors():
        location = [str(part) for part in error.get("loc", ()) if part not in ("body", "query", "path")]
        fields[".".join(location) or "body"] = error.get("msg", "Invalid value")

    failure = ValidationFailure("Validation failed", details=fields)
    return await porter_exception_handler(request, failure)


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected exceptions."""
    request_id = get_request_id(request)
    logger.exception("unhandled_exception", request_id=request_id, error=str(exc))

    error = ErrorResponse(
        error=ErrorDetail(
            code="INTERNAL_ERROR",
            message="An unexpected error occurred",
            status_code=500,
            timestamp=datetime.utcnow().isoformat() + "Z",
            request_id=request_id,
        )
    )

    return JSONResponse(
        status_code=500,
        content=error.model_dump(mode="json"),
        headers={"X-Request-ID": request_id},
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Register all exception handlers with the FastAPI app."""
    app.add_exception_handler(PorterError, porter_exception_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, generic_exception_handler)
