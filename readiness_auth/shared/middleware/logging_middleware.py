# readiness_auth/shared/middleware/logging_middleware.py

"""
Middleware for HTTP request logging.

Logs method, path, status and timing. Cookies, headers carrying
credentials and request bodies are never logged.
"""

import time
import uuid
import logging
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from readiness_auth.shared.middleware.exception_middleware import current_settings

logger = logging.getLogger(__name__)

SKIP_PATHS = ("/health",)


class AsyncRequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Middleware for request logging.
    Tags each request with an X-Request-ID and logs the outcome.
    """

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("x-request-id") or uuid.uuid4().hex[:16]
        request.state.request_id = request_id

        if request.url.path in SKIP_PATHS:
            response = await call_next(request)
            response.headers["X-Request-ID"] = request_id
            return response

        start_time = time.time()
        response = await call_next(request)
        process_time = time.time() - start_time

        # Limited information in production
        if current_settings(request).is_production:
            logger.info(
                "%s %s -> %s [%s]",
                request.method, request.url.path, response.status_code, request_id,
            )
        else:
            logger.info(
                "%s %s -> %s [%s] | Client: %s | Time: %.4fs",
                request.method,
                request.url.path,
                response.status_code,
                request_id,
                request.client.host if request.client else "N/A",
                process_time,
            )

        response.headers["X-Request-ID"] = request_id
        return response
