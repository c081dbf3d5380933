# readiness_auth/domain/exceptions.py

"""
Application error taxonomy.

Every error raised across the Auth Service boundary is a DomainException
tagged with an ErrorKind. The HTTP layer maps the kind (not the subclass)
to a status code, see shared/middleware/exception_middleware.py.
"""

from enum import Enum
from typing import Any, Dict, Optional


class ErrorKind(str, Enum):
    """Closed set of error kinds exposed by the service layer."""

    VALIDATION = "VALIDATION_ERROR"
    UNAUTHORIZED = "UNAUTHORIZED"
    CONFLICT = "CONFLICT"
    NOT_FOUND = "NOT_FOUND"
    FORBIDDEN = "FORBIDDEN"
    INTERNAL = "INTERNAL_SERVER_ERROR"


class DomainException(Exception):
    """
    Base exception for all application errors.

    Attributes:
        message: Human readable message, safe to return to clients
        kind: ErrorKind tag used by the boundary layer
        details: Optional structured details (field errors, etc.)
    """

    kind: ErrorKind = ErrorKind.INTERNAL
    default_message: str = "Internal server error"

    def __init__(
            self,
            message: Optional[str] = None,
            kind: Optional[ErrorKind] = None,
            details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message or self.default_message
        if kind is not None:
            self.kind = kind
        self.details = details or {}
        super().__init__(self.message)

    @property
    def internal_code(self) -> str:
        return self.kind.value


class ValidationError(DomainException):
    """Malformed or missing input, e.g. a weak password."""

    kind = ErrorKind.VALIDATION
    default_message = "Invalid input data"


class UnauthorizedError(DomainException):
    """Bad credentials or an invalid, expired or revoked token."""

    kind = ErrorKind.UNAUTHORIZED
    default_message = "Unauthorized"


class ConflictError(DomainException):
    """Duplicate account or identity already bound to another user."""

    kind = ErrorKind.CONFLICT
    default_message = "Resource already exists"


class NotFoundError(DomainException):
    """No such user or token."""

    kind = ErrorKind.NOT_FOUND
    default_message = "Resource not found"

    def __init__(self, resource: str = "Resource", details: Optional[Dict[str, Any]] = None):
        super().__init__(message=f"{resource} not found", details=details)


class ForbiddenError(DomainException):
    """Policy denial."""

    kind = ErrorKind.FORBIDDEN
    default_message = "Forbidden"


class InternalServerError(DomainException):
    """Unexpected failure or backing-store outage."""

    kind = ErrorKind.INTERNAL
    default_message = "Internal server error"

    def __init__(self, message: Optional[str] = None, original_error: Optional[Exception] = None):
        super().__init__(message=message)
        self.original_error = original_error
