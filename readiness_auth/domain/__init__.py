# readiness_auth/domain/__init__.py

"""
Domain components: the error taxonomy shared by every layer.
"""

from readiness_auth.domain.exceptions import (
    ErrorKind,
    DomainException,
    ValidationError,
    UnauthorizedError,
    ForbiddenError,
    NotFoundError,
    ConflictError,
    InternalServerError,
)

__all__ = [
    "ErrorKind",
    "DomainException",
    "ValidationError",
    "UnauthorizedError",
    "ForbiddenError",
    "NotFoundError",
    "ConflictError",
    "InternalServerError",
]
