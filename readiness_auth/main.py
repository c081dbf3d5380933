# readiness_auth/main.py

import logging
from contextlib import asynccontextmanager
from typing import Optional
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.openapi.utils import get_openapi
from fastapi.responses import RedirectResponse

from readiness_auth.adapters.configuration.config import Settings, settings as default_settings
from readiness_auth.adapters.outbound.cache.memory_store import InMemoryKeyValueStore
from readiness_auth.adapters.outbound.cache.redis_store import RedisKeyValueStore
from readiness_auth.adapters.outbound.notifications.reset_notifier import LoggingPasswordResetNotifier
from readiness_auth.adapters.outbound.persistence.database import create_tables
from readiness_auth.adapters.outbound.security.identity_providers import build_identity_verifiers
from readiness_auth.adapters.outbound.security.password_security import PasswordSecurityService
from readiness_auth.adapters.outbound.security.token_registry import TokenRegistry
from readiness_auth.adapters.outbound.security.token_service import TokenService
from readiness_auth.application.ports.outbound import IKeyValueStore
from readiness_auth.shared.middleware.exception_middleware import error_response

# ─── UNIQUE LOGGING CONFIGURATION ─────────────────────────────────────────────────
level = logging.DEBUG if default_settings.DEBUG else getattr(logging, default_settings.LOG_LEVEL, logging.INFO)
logging.basicConfig(
    level=level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s"
)
logger = logging.getLogger(__name__)


# ────────────────────────────────────────────────────────────────────────────────


async def build_kv_store(settings: Settings) -> IKeyValueStore:
    """In-memory store when requested or when no Redis URL is configured, Redis otherwise."""
    if settings.USE_MEMORY_STORE or not settings.REDIS_URL:
        if settings.is_production:
            logger.warning("Using the in-memory token registry in production; sessions will not survive restarts")
        return InMemoryKeyValueStore()

    store = RedisKeyValueStore(settings.REDIS_URL, socket_timeout=settings.REDIS_SOCKET_TIMEOUT)
    await store.ping()
    logger.info("Connected to Redis")
    return store


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Build the per-application services on startup and release them on shutdown.
    """
    settings: Settings = app.state.settings
    logger.info("Application starting up...")

    if not settings.is_production:
        await create_tables()

    store = await build_kv_store(settings)
    app.state.kv_store = store
    app.state.token_service = TokenService(TokenRegistry(store), settings)
    app.state.password_security = PasswordSecurityService(settings)
    app.state.identity_verifiers = build_identity_verifiers(settings)
    app.state.reset_notifier = LoggingPasswordResetNotifier()

    yield

    logger.info("Application shutting down...")
    await store.close()


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Report request body/query validation errors in the common error format."""
    errors = [
        {
            "field": ".".join(str(part) for part in error["loc"][1:]) or str(error["loc"][0]),
            "message": error["msg"],
        }
        for error in exc.errors()
    ]
    return error_response(status.HTTP_400_BAD_REQUEST, "Invalid input data", "VALIDATION_ERROR", errors)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or default_settings

    app = FastAPI(
        title="Readiness Auth",
        description="Cookie-based dual-token authentication and session management",
        version="1.0.0",
        debug=settings.DEBUG,
        lifespan=lifespan,
    )
    app.state.settings = settings

    app.add_exception_handler(RequestValidationError, validation_exception_handler)

    # Middlewares
    from readiness_auth.shared.middleware import (
        AsyncExceptionMiddleware,
        AsyncRequestLoggingMiddleware,
        AsyncCSRFProtectionMiddleware,
        AsyncRateLimiter,
        AsyncRateLimitingMiddleware,
        AsyncSecurityHeadersMiddleware,
        build_policies,
    )

    limiter = AsyncRateLimiter(build_policies(settings), production=settings.is_production)

    # Added innermost first
    app.add_middleware(AsyncExceptionMiddleware)
    app.add_middleware(AsyncRateLimitingMiddleware, limiter=limiter, settings=settings)
    app.add_middleware(AsyncRequestLoggingMiddleware)
    app.add_middleware(AsyncCSRFProtectionMiddleware, settings=settings)
    app.add_middleware(AsyncSecurityHeadersMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=sorted(set(settings.ALLOWED_ORIGINS) | {settings.FRONTEND_URL}),
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "X-Requested-With"],
    )
    app.state.rate_limiter = limiter

    # Routers
    from readiness_auth.adapters.inbound.api.v1.router import api_router

    app.include_router(api_router, prefix="/api")

    @app.get("/", include_in_schema=False)
    async def redirect_to_docs():
        return RedirectResponse(url="/docs")

    @app.get("/health", tags=["Health"])
    async def health():
        return {"status": "ok", "environment": settings.ENVIRONMENT}

    def custom_openapi():
        if app.openapi_schema:
            return app.openapi_schema

        openapi_schema = get_openapi(
            title=app.title,
            version=app.version,
            description=app.description,
            routes=app.routes,
        )

        # Validation errors are answered with 400, not 422
        for schema in ("HTTPValidationError", "ValidationError"):
            openapi_schema.get("components", {}).get("schemas", {}).pop(schema, None)

        for path in openapi_schema.get("paths", {}).values():
            for op in path.values():
                op.get("responses", {}).pop("422", None)

        app.openapi_schema = openapi_schema
        return openapi_schema

    app.openapi = custom_openapi

    return app


app = create_app()
