"""Centralized exception handling with sanitized error responses."""

import logging
import traceback
from typing import Any, Dict, Optional
from uuid import uuid4

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from bikeshare_planner.config import settings

logger = logging.getLogger("api.errors")


# =============================================================================
# Custom Exception Classes
# =============================================================================

class APIException(Exception):
    """Base exception for API errors with safe messages."""

    def __init__(
        self,
        status_code: int = 500,
        detail: str = "An error occurred",
        error_code: Optional[str] = None,
        internal_message: Optional[str] = None,
    ):
        self.status_code = status_code
        self.detail = detail  # Safe message for client
        self.error_code = error_code or "INTERNAL_ERROR"
        self.internal_message = internal_message  # Full message for logs
        super().__init__(self.detail)


class ValidationException(APIException):
    """Journey request that cannot be planned as given."""

    def __init__(self, detail: str, field: Optional[str] = None):
        super().__init__(
            status_code=422,
            detail=detail,
            error_code="VALIDATION_ERROR",
        )
        self.field = field


class StationUnavailableException(APIException):
    """No rental station with bikes near a required point."""

    def __init__(self, detail: str = "No available bike-share station nearby"):
        super().__init__(
            status_code=422,
            detail=detail,
            error_code="NO_STATION_NEARBY",
        )


class ResourceNotFoundException(APIException):
    """Resource not found or expired."""

    def __init__(self, resource: str = "Resource", resource_id: Optional[str] = None):
        detail = f"{resource} not found"
        super().__init__(
            status_code=404,
            detail=detail,
            error_code="NOT_FOUND",
            internal_message=f"{resource} {resource_id} not found" if resource_id else None,
        )


class ServiceUnavailableException(APIException):
    """External service unavailable."""

    def __init__(self, service: str = "Service", reason: Optional[str] = None):
        internal = f"{service} is unavailable"
        if reason:
            internal += f": {reason}"
        super().__init__(
            status_code=503,
            detail="Service temporarily unavailable. Please try again later.",
            error_code="SERVICE_UNAVAILABLE",
            internal_message=internal,
        )


class RoutingException(APIException):
    """Routing-specific errors."""

    def __init__(self, detail: str = "Unable to calculate route"):
        super().__init__(
            status_code=422,
            detail=detail,
            error_code="ROUTING_ERROR",
        )


# =============================================================================
# Error Response Formatting
# =============================================================================

def create_error_response(
    error_code: str,
    message: str,
    request_id: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """Build the ``{"error": {...}}`` body shared by every error response."""
    body: Dict[str, Any] = {"code": error_code, "message": message}

    if request_id:
        body["request_id"] = request_id

    # Field-level details only leave the building outside production
    if details and not settings.is_production():
        body["details"] = details

    return {"error": body}


# Fragments that mean a message leaks infrastructure details
SENSITIVE_FRAGMENTS = (
    "traceback",
    "file \"",
    "/usr/",
    "/home/",
    "site-packages",
    "select ",
    "insert ",
    "postgresql",
    "asyncpg",
    "sqlalchemy",
    "redis://",
    "password",
    "secret",
    "token",
)

MAX_MESSAGE_LENGTH = 200


def sanitize_error_message(message: str) -> str:
    """Replace messages that expose internals and cap the length of the rest."""
    lowered = message.lower()
    if any(fragment in lowered for fragment in SENSITIVE_FRAGMENTS):
        return "An internal error occurred. Please try again later."

    if len(message) > MAX_MESSAGE_LENGTH:
        return message[:MAX_MESSAGE_LENGTH] + "..."
    return message


# =============================================================================
# Exception Handlers
# =============================================================================

HTTP_ERROR_CODES = {
    400: "BAD_REQUEST",
    404: "NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
    422: "VALIDATION_ERROR",
    500: "INTERNAL_ERROR",
    502: "BAD_GATEWAY",
    503: "SERVICE_UNAVAILABLE",
}


def get_request_id(request: Request) -> str:
    """Request ID set by the logging middleware, or a fresh short one."""
    request_id = getattr(request.state, "request_id", None)
    return request_id or str(uuid4())[:8]


async def api_exception_handler(request: Request, exc: APIException) -> JSONResponse:
    """Render an :class:`APIException` with its own status and code."""
    request_id = get_request_id(request)

    log_message = f"[{request_id}] {exc.error_code}: {exc.detail}"
    if exc.internal_message:
        log_message += f" | Internal: {exc.internal_message}"

    if exc.status_code >= 500:
        logger.error(log_message)
    else:
        logger.warning(log_message)

    return JSONResponse(
        status_code=exc.status_code,
        content=create_error_response(exc.error_code, exc.detail, request_id),
    )


async def http_exception_handler(
    request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    """Render framework HTTP errors (unknown paths, wrong methods) in the same shape."""
    request_id = get_request_id(request)
    error_code = HTTP_ERROR_CODES.get(exc.status_code, "ERROR")

    detail = exc.detail if isinstance(exc.detail, str) else str(exc.detail)
    if exc.status_code >= 500:
        logger.error(f"[{request_id}] HTTP {exc.status_code}: {detail}")
        detail = sanitize_error_message(detail)
    else:
        logger.info(f"[{request_id}] HTTP {exc.status_code}: {detail}")

    return JSONResponse(
        status_code=exc.status_code,
        content=create_error_response(error_code, detail, request_id),
    )


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Request bodies that fail schema validation (bad coordinates, too many waypoints)."""
    request_id = get_request_id(request)

    field_errors = [
        {
            "field": ".".join(str(loc) for loc in error["loc"] if loc != "body"),
            "message": error["msg"],
        }
        for error in exc.errors()
    ]
    logger.info(f"[{request_id}] Validation error: {len(field_errors)} field(s)")

    return JSONResponse(
        status_code=422,
        content=create_error_response(
            "VALIDATION_ERROR",
            "Invalid request data",
            request_id,
            details={"fields": field_errors},
        ),
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Last resort: log everything, tell the client nothing."""
    request_id = get_request_id(request)

    logger.error(f"[{request_id}] Unhandled exception: {type(exc).__name__}: {exc}")
    if settings.debug:
        logger.error(traceback.format_exc())

    return JSONResponse(
        status_code=500,
        content=create_error_response(
            "INTERNAL_ERROR",
            "An unexpected error occurred. Please try again later.",
            request_id,
        ),
    )


# =============================================================================
# Register Exception Handlers
# =============================================================================

def register_exception_handlers(app: FastAPI) -> None:
    """Register all exception handlers with the FastAPI app."""
    app.add_exception_handler(APIException, api_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)
