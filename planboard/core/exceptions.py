import logging
from datetime import datetime, UTC
from typing import Optional, Dict, Any, List

from fastapi import HTTPException, Request, status
from fastapi.responses import JSONResponse
from enum import Enum
from fastapi.exceptions import RequestValidationError
from sqlalchemy.exc import DBAPIError, OperationalError

logger = logging.getLogger(__name__)


class ErrorCode(str, Enum):
    """
    Enum for error codes used in API exceptions.
    Provides a consistent set of error codes for different types of errors.
    """

    NOT_FOUND = "not_found"
    UNAUTHORIZED = "unauthorized"
    FORBIDDEN = "forbidden"
    BAD_REQUEST = "bad_request"
    CONFLICT = "conflict"
    HTTP_ERROR = "http_error"
    VALIDATION_ERROR = "validation_error"
    HIERARCHY_CYCLE = "hierarchy_cycle"
    SELF_PARENT = "self_parent"
    CROSS_PROJECT = "cross_project"
    TRANSIENT_STORE_ERROR = "transient_store_error"
    INTERNAL_SERVER_ERROR = "internal_server_error"


class APIException(HTTPException):
    """
    Base class for all API exceptions.
    Inherits from HTTPException to provide a consistent error response format.
    """

    def __init__(
        self,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        code: ErrorCode = ErrorCode.INTERNAL_SERVER_ERROR,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(status_code=status_code, detail=message)


class NotFoundException(APIException):
    """
    Exception raised when a resource is not found.
    """

    def __init__(self, resource: str, identifier: Optional[str] = None):
        message = f"{resource} not found"
        if identifier:
            message += f" (ID: {identifier})"

        super().__init__(
            message=message,
            status_code=status.HTTP_404_NOT_FOUND,
            code=ErrorCode.NOT_FOUND,
            details={"resource": resource, "identifier": identifier},
        )


class ValidationException(APIException):
    """
    Exception raised for validation errors.
    """

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        code: ErrorCode = ErrorCode.BAD_REQUEST,
        details: Optional[Dict[str, Any]] = None,
    ):
        payload = dict(details or {})
        if field:
            payload["field"] = field
        super().__init__(
            message=message,
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            code=code,
            details=payload,
        )


class SelfParentError(ValidationException):
    """A task was asked to become its own parent."""

    def __init__(self, task_id: Optional[str] = None):
        super().__init__(
            "A task cannot be its own parent",
            field="parent_id",
            code=ErrorCode.SELF_PARENT,
            details={"task_id": task_id} if task_id else None,
        )


class CrossProjectError(ValidationException):
    """A parent task or status belongs to a different project."""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message, field=field, code=ErrorCode.CROSS_PROJECT)


class CycleError(ValidationException):
    """
    Reparenting would make a task its own ancestor, or the ancestor chain
    is deeper than the configured walk limit.
    """

    def __init__(
        self,
        message: str = "Cannot create a circular reference in the task hierarchy",
        chain: Optional[List[str]] = None,
    ):
        super().__init__(
            message,
            field="parent_id",
            code=ErrorCode.HIERARCHY_CYCLE,
            details={"chain": chain} if chain else None,
        )


class AuthenticationException(APIException):
    """
    Exception raised for authentication errors.
    """

    def __init__(self, message: str = "Authentication required"):
        super().__init__(
            message=message,
            status_code=status.HTTP_401_UNAUTHORIZED,
            code=ErrorCode.UNAUTHORIZED,
        )


class ForbiddenException(APIException):
    """
    Exception raised for forbidden access.
    """

    def __init__(self, message: str = "Forbidden access"):
        super().__init__(
            message=message,
            status_code=status.HTTP_403_FORBIDDEN,
            code=ErrorCode.FORBIDDEN,
        )


class ConflictError(APIException):
    """Resource conflict exception"""

    def __init__(
        self,
        message: str,
        resource: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        payload = dict(details or {})
        if resource:
            payload["resource"] = resource
        super().__init__(
            message=message,
            status_code=status.HTTP_409_CONFLICT,
            code=ErrorCode.CONFLICT,
            details=payload,
        )


class TransientStoreError(APIException):
    """
    The datastore failed to serve the request. No retry is attempted.
    """

    def __init__(self, message: str = "The datastore is temporarily unavailable"):
        super().__init__(
            message=message,
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            code=ErrorCode.TRANSIENT_STORE_ERROR,
        )


def format_error_response(
    message: str,
    code: ErrorCode = ErrorCode.INTERNAL_SERVER_ERROR,
    details: Optional[Dict[str, Any]] = None,
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
) -> Dict[str, Any]:
    """Format standardized error response"""
    return {
        "error": True,
        "message": message,
        "code": code.value,
        "status_code": status_code,
        "timestamp": datetime.now(UTC).isoformat(),
        "details": details or {},
    }


async def api_exception_handler(request: Request, exc: APIException) -> JSONResponse:
    """
    Global exception handler for API exceptions.
    Converts APIException to a standardized JSON response.
    """
    return JSONResponse(
        status_code=exc.status_code,
        content=format_error_response(
            message=exc.message,
            code=exc.code,
            details=exc.details,
            status_code=exc.status_code,
        ),
    )


async def request_validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """
    Global exception handler for FastAPI request validation errors.
    Converts RequestValidationError to a standardized JSON response.
    """
    errors = []
    for error in exc.errors():
        field_path = [str(loc) for loc in error["loc"] if loc != "body"]
        field = ".".join(field_path) if field_path else "unknown"

        msg = error["msg"]
        error_type = error["type"]

        if error_type == "missing":
            msg = "This field is required"
        elif error_type == "string_too_short":
            msg = f"Text is too short (minimum {error.get('ctx', {}).get('min_length', 'unknown')} characters)"
        elif error_type == "string_too_long":
            msg = f"Text is too long (maximum {error.get('ctx', {}).get('max_length', 'unknown')} characters)"

        errors.append({"field": field, "message": msg, "type": error_type})

    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content=format_error_response(
            message="Validation failed",
            code=ErrorCode.VALIDATION_ERROR,
            details={"errors": errors},
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        ),
    )


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """
    Global exception handler for HTTP exceptions.
    """
    return JSONResponse(
        status_code=exc.status_code,
        content=format_error_response(
            message=str(exc.detail),
            code=ErrorCode.HTTP_ERROR,
            status_code=exc.status_code,
        ),
    )


async def store_exception_handler(request: Request, exc: DBAPIError) -> JSONResponse:
    """
    Surface datastore driver failures as TransientStoreError responses.
    """
    logger.error(f"Datastore failure on {request.method} {request.url.path}: {exc}")
    error = TransientStoreError()
    if not isinstance(exc, OperationalError):
        error.message = "The datastore rejected the request"
    return await api_exception_handler(request, error)


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Handle unexpected exceptions
    """
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=format_error_response(
            message="Internal server error",
            code=ErrorCode.INTERNAL_SERVER_ERROR,
            details={"type": type(exc).__name__},
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        ),
    )
