# readiness_auth/shared/middleware/exception_middleware.py

"""
Middleware for centralized exception handling.

Domain exceptions are mapped to HTTP responses through their ErrorKind;
anything else becomes a 500.
"""

import time
import logging
from typing import Any, Callable, Dict, Optional

from fastapi import Request, status
from fastapi.responses import JSONResponse
from redis.exceptions import RedisError
from sqlalchemy.exc import SQLAlchemyError
from starlette.middleware.base import BaseHTTPMiddleware

from readiness_auth.domain.exceptions import DomainException, ErrorKind
from readiness_auth.adapters.configuration.config import Settings, settings as default_settings

logger = logging.getLogger(__name__)

GENERIC_ERROR_MESSAGE = "Internal server error"


def current_settings(request: Request) -> Settings:
    """Settings of the app serving the request (see create_app), else the environment's."""
    return getattr(request.app.state, "settings", default_settings)


# Every ErrorKind must have an entry (checked at import time)
STATUS_BY_KIND: Dict[ErrorKind, int] = {
    ErrorKind.VALIDATION: status.HTTP_400_BAD_REQUEST,
    ErrorKind.UNAUTHORIZED: status.HTTP_401_UNAUTHORIZED,
    ErrorKind.FORBIDDEN: status.HTTP_403_FORBIDDEN,
    ErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.CONFLICT: status.HTTP_409_CONFLICT,
    ErrorKind.INTERNAL: status.HTTP_500_INTERNAL_SERVER_ERROR,
}

_unmapped = set(ErrorKind) - set(STATUS_BY_KIND)
if _unmapped:
    raise RuntimeError(f"ErrorKind values without an HTTP status: {sorted(k.name for k in _unmapped)}")


def error_response(status_code: int, detail: str, code: str, errors: Optional[Any] = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"detail": detail, "code": code, "errors": errors or None},
    )


def domain_exception_response(exc: DomainException, production: bool) -> JSONResponse:
    """Build the HTTP response for a DomainException from its kind."""
    detail = exc.message
    if exc.kind is ErrorKind.INTERNAL and production:
        detail = GENERIC_ERROR_MESSAGE
    return error_response(STATUS_BY_KIND[exc.kind], detail, exc.internal_code, exc.details)


class AsyncExceptionMiddleware(BaseHTTPMiddleware):
    """
    Middleware for centralized exception handling.
    Captures exceptions raised by the routes and formats the response.
    """

    async def dispatch(self, request: Request, call_next: Callable):
        start_time = time.time()
        client = request.client.host if request.client else "N/A"
        try:
            response = await call_next(request)
            process_time = time.time() - start_time
            response.headers["X-Process-Time"] = str(process_time)
            return response

        except DomainException as exc:
            log = logger.error if exc.kind is ErrorKind.INTERNAL else logger.warning
            log(
                f"Domain exception: {exc.message} | Code: {exc.internal_code} | "
                f"Path: {request.url.path}"
            )
            return domain_exception_response(exc, current_settings(request).is_production)

        except SQLAlchemyError as exc:
            logger.error(
                f"Database error: Type={type(exc).__name__} | "
                f"Path: {request.url.path} | Client: {client}"
            )
            detail = GENERIC_ERROR_MESSAGE if current_settings(request).is_production else str(exc)
            return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, detail, ErrorKind.INTERNAL.value)

        except RedisError as exc:
            logger.error(
                f"Token store error: Type={type(exc).__name__} | "
                f"Path: {request.url.path} | Client: {client}"
            )
            return error_response(
                status.HTTP_500_INTERNAL_SERVER_ERROR, GENERIC_ERROR_MESSAGE, ErrorKind.INTERNAL.value
            )

        except Exception as exc:
            logger.exception(
                f"Unhandled exception: Type={type(exc).__name__} | "
                f"Path: {request.url.path} | Client: {client}"
            )
            detail = GENERIC_ERROR_MESSAGE if current_settings(request).is_production else str(exc)
            return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, detail, ErrorKind.INTERNAL.value)
