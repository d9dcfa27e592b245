"""Core API error handling."""

from bikeshare_planner.core.exceptions import (
    APIException,
    ResourceNotFoundException,
    RoutingException,
    ServiceUnavailableException,
    StationUnavailableException,
    ValidationException,
    register_exception_handlers,
    sanitize_error_message,
)

__all__ = [
    "APIException",
    "ValidationException",
    "StationUnavailableException",
    "ResourceNotFoundException",
    "ServiceUnavailableException",
    "RoutingException",
    "register_exception_handlers",
    "sanitize_error_message",
]
