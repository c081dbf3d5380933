# readiness_auth/shared/middleware/csrf_middleware.py

"""
Middleware for CSRF (Cross-Site Request Forgery) protection.

Session tokens travel in cookies, so state-changing requests must come
from an allowed origin. The check uses the Origin header, falling back to
the Referer header.
"""

import logging
from typing import Optional
from fastapi import Request, status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from readiness_auth.adapters.configuration.config import Settings, settings as default_settings

logger = logging.getLogger(__name__)


class AsyncCSRFProtectionMiddleware(BaseHTTPMiddleware):
    """
    Middleware that rejects unsafe requests from foreign origins.

    Requests without Origin and Referer are rejected in production and let
    through (with a warning) elsewhere, so that API clients and tests work.
    """

    def __init__(self, app, settings: Optional[Settings] = None):
        super().__init__(app)
        self.settings = settings or default_settings

        self.allowed_origins = {origin.rstrip("/") for origin in self.settings.ALLOWED_ORIGINS}
        self.allowed_origins.add(self.settings.FRONTEND_URL.rstrip("/"))

        self.safe_methods = {"GET", "HEAD", "OPTIONS"}
        self.exempt_routes = set(self.settings.CSRF_EXEMPT_ROUTES)

        logger.debug("CSRF Middleware initialized with allowed origins: %s", self.allowed_origins)

    def _is_route_exempt(self, path: str) -> bool:
        """
        Check if a route is exempt from CSRF verification.

        Args:
            path: URL path

        Returns:
            bool: True if the route or one of its parents is exempt
        """
        for exempt_route in self.exempt_routes:
            if path == exempt_route or path.startswith(exempt_route + "/"):
                return True
        return False

    def _is_allowed_referer(self, referer: str) -> bool:
        return any(
            referer == allowed or referer.startswith(allowed + "/")
            for allowed in self.allowed_origins
        )

    def _forbidden(self, detail: str) -> JSONResponse:
        return JSONResponse(
            status_code=status.HTTP_403_FORBIDDEN,
            content={"detail": detail, "code": "FORBIDDEN", "errors": None},
        )

    def _verify_csrf_protection(self, request: Request) -> Optional[JSONResponse]:
        """
        Verify CSRF protection for a request.

        Returns:
            Optional[JSONResponse]: Error response if verification fails, None if it passes
        """
        path = request.url.path

        if request.method in self.safe_methods or self._is_route_exempt(path):
            return None

        origin = request.headers.get("Origin")
        referer = request.headers.get("Referer")

        if not origin and not referer:
            if self.settings.is_production:
                logger.warning("CSRF Protection: Request without Origin/Referer for %s rejected", path)
                return self._forbidden("Missing origin headers. Access denied.")
            logger.debug("CSRF Protection: Request without Origin/Referer for %s (allowed outside production)", path)
            return None

        if origin:
            if origin.rstrip("/") not in self.allowed_origins:
                logger.warning("CSRF Protection: Invalid Origin: %s for %s", origin, path)
                return self._forbidden("Origin not allowed. Access denied.")
            return None

        if not self._is_allowed_referer(referer):
            logger.warning("CSRF Protection: Invalid Referer: %s for %s", referer, path)
            return self._forbidden("Referer not allowed. Access denied.")

        return None

    async def dispatch(self, request: Request, call_next):
        error_response = self._verify_csrf_protection(request)
        if error_response:
            return error_response
        return await call_next(request)
