# readiness_auth/application/use_cases/__init__.py

from readiness_auth.application.use_cases.auth_use_cases import AsyncAuthService, AuthResult, RefreshResult

__all__ = [
    "AsyncAuthService",
    "AuthResult",
    "RefreshResult",
]
