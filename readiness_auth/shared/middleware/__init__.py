# readiness_auth/shared/middleware/__init__.py

from readiness_auth.shared.middleware.exception_middleware import AsyncExceptionMiddleware
from readiness_auth.shared.middleware.logging_middleware import AsyncRequestLoggingMiddleware
from readiness_auth.shared.middleware.csrf_middleware import AsyncCSRFProtectionMiddleware
from readiness_auth.shared.middleware.rate_limiting_middleware import (
    AsyncRateLimiter,
    AsyncRateLimitingMiddleware,
    build_policies,
)
from readiness_auth.shared.middleware.security_headers_middleware import AsyncSecurityHeadersMiddleware

__all__ = [
    "AsyncExceptionMiddleware",
    "AsyncRequestLoggingMiddleware",
    "AsyncCSRFProtectionMiddleware",
    "AsyncRateLimiter",
    "AsyncRateLimitingMiddleware",
    "AsyncSecurityHeadersMiddleware",
    "build_policies",
]
