"""
Custom exceptions for the voter analytics engine.

All application-specific exceptions inherit from VoterAnalyticsError.
Each carries a machine-readable ``code`` and the HTTP-style status a
handler should answer with.
"""

from __future__ import annotations

from typing import Any, Optional

QUERY_FAILED_MESSAGE = "Failed to fetch voter data."


class VoterAnalyticsError(Exception):
    """
    Base exception for all application errors.

    Attributes:
        message: Human-readable error message
        details: Additional error details (for logs, never sent to callers)
        code: Machine-readable error code
    """

    status_code: int = 500
    default_code: str = "INTERNAL_ERROR"

    def __init__(
        self,
        message: str,
        details: Optional[dict[str, Any]] = None,
        code: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.code = code or self.default_code

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message

    @property
    def public_message(self) -> str:
        """Message that is safe to show to the caller."""
        return self.message

    def to_response(self) -> dict[str, Any]:
        """Error payload for the presentation layer."""
        return {"error": {"code": self.code, "message": self.public_message}}


class ValidationError(VoterAnalyticsError):
    """
    Malformed or disallowed filter input.

    Examples:
        - bbox with the wrong number of values
        - sub-area requested outside a County scope
        - unknown filter parameter
    """

    status_code = 400
    default_code = "INVALID_PARAMETER"

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        field_name: Optional[str] = None,
        field_value: Optional[Any] = None,
        expected: Optional[str] = None,
    ):
        details = {}
        if field_name:
            details["field_name"] = field_name
        if field_value is not None:
            details["field_value"] = str(field_value)[:100]
        if expected:
            details["expected"] = expected
        super().__init__(message, details=details, code=code)


class NotFoundError(VoterAnalyticsError):
    """
    Valid request, but the entity it names does not exist.

    Examples:
        - Unknown voter registration number
    """

    status_code = 404
    default_code = "NOT_FOUND"

    def __init__(self, message: str, entity: Optional[str] = None, key: Optional[str] = None):
        details = {}
        if entity:
            details["entity"] = entity
        if key:
            details["key"] = key
        super().__init__(message, details=details)


class QueryExecutionError(VoterAnalyticsError):
    """
    The underlying store call failed (network, timeout, bad generated SQL).

    The statement and driver error are kept in ``details`` for logging; the
    caller only ever sees a generic message.
    """

    default_code = "QUERY_FAILED"

    def __init__(
        self,
        message: str,
        statement: Optional[str] = None,
        parameter_count: Optional[int] = None,
        driver_error: Optional[str] = None,
    ):
        details = {}
        if statement:
            details["statement"] = statement
        if parameter_count is not None:
            details["parameter_count"] = parameter_count
        if driver_error:
            details["driver_error"] = driver_error
        super().__init__(message, details=details)

    @property
    def public_message(self) -> str:
        return QUERY_FAILED_MESSAGE


class ConfigurationError(VoterAnalyticsError):
    """
    Invalid or missing configuration, or a programming error in how the
    engine was wired (e.g. a non allow-listed field reached the compiler).
    """

    default_code = "CONFIGURATION_ERROR"

    def __init__(self, message: str, config_key: Optional[str] = None):
        details = {"config_key": config_key} if config_key else None
        super().__init__(message, details=details)

    @property
    def public_message(self) -> str:
        return "Internal server error."
