# readiness_auth/shared/middleware/security_headers_middleware.py

"""
Middleware for adding HTTP security headers to API responses.
"""

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from readiness_auth.shared.middleware.exception_middleware import current_settings

DOCS_PATHS = ("/docs", "/redoc", "/openapi.json")

API_CSP = (
    "default-src 'none'; "
    "frame-ancestors 'none'; "
    "base-uri 'none'"
)

PERMISSIONS_POLICY = (
    "accelerometer=(), "
    "camera=(), "
    "geolocation=(), "
    "gyroscope=(), "
    "magnetometer=(), "
    "microphone=(), "
    "payment=(), "
    "usb=()"
)


class AsyncSecurityHeadersMiddleware(BaseHTTPMiddleware):
    """
    Adds security headers to every response.

    Documentation pages keep the default CSP so Swagger UI can load its assets.
    Auth responses carry cookies and must never be cached.
    """

    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        path = request.url.path

        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        response.headers["Permissions-Policy"] = PERMISSIONS_POLICY

        if not path.startswith(DOCS_PATHS):
            response.headers["Content-Security-Policy"] = API_CSP
            response.headers["Cache-Control"] = "no-store, no-cache, must-revalidate, max-age=0"
            response.headers["Pragma"] = "no-cache"

        # Cookies are marked secure in production, so HTTPS is a given there
        if current_settings(request).is_production:
            response.headers["Strict-Transport-Security"] = "max-age=31536000; includeSubDomains"

        return response
