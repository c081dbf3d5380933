# readiness_auth/adapters/inbound/api/deps.py

"""
Dependencies for injection into API endpoints.

Services are assembled per application from app.state (populated in the
lifespan, see main.py) plus a request-scoped database session.
"""

import logging
from dataclasses import dataclass
from typing import Optional
from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from readiness_auth.adapters.outbound.persistence.database import get_db
from readiness_auth.adapters.outbound.security.token_service import TokenService
from readiness_auth.application.dtos.user_dto import UserOutput
from readiness_auth.application.use_cases.auth_use_cases import AsyncAuthService
from readiness_auth.domain.exceptions import ForbiddenError, NotFoundError, UnauthorizedError

logger = logging.getLogger(__name__)


########################################################################
# Service assembly
########################################################################

async def get_auth_service(
        request: Request,
        db: AsyncSession = Depends(get_db),
) -> AsyncAuthService:
    state = request.app.state
    return AsyncAuthService(
        db,
        state.token_service,
        password_security=state.password_security,
        google_verifier=state.identity_verifiers.get("google"),
        microsoft_verifier=state.identity_verifiers.get("microsoft"),
        notifier=state.reset_notifier,
        settings=state.settings,
    )


@dataclass
class ClientInfo:
    user_agent: Optional[str]
    ip_address: Optional[str]


def get_client_info(request: Request) -> ClientInfo:
    """User agent and IP recorded with each session."""
    ip_address = request.client.host if request.client else None
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded and request.app.state.settings.TRUST_PROXY_HEADERS:
        ip_address = forwarded.split(",")[-1].strip() or ip_address
    return ClientInfo(user_agent=request.headers.get("user-agent"), ip_address=ip_address)


########################################################################
# User Token Authentication
########################################################################

async def get_current_user(
        request: Request,
        auth_service: AsyncAuthService = Depends(get_auth_service),
) -> UserOutput:
    """
    Get the current user from the access token cookie.

    Args:
        request: Incoming request
        auth_service: Auth service bound to the request session

    Returns:
        Authenticated user

    Raises:
        UnauthorizedError: If the token is missing or invalid, or the user doesn't exist/is inactive
    """
    token = TokenService.get_token_from_request(request, "access")
    payload = auth_service.token_service.verify_access_token(token) if token else None
    if payload is None:
        raise UnauthorizedError("Authentication required")

    try:
        user = await auth_service.get_current_user(payload.user_id)
    except NotFoundError:
        logger.warning("Access token for unknown user %s", payload.user_id)
        raise UnauthorizedError("User not found or inactive")

    if not user.is_active:
        raise UnauthorizedError("User not found or inactive")

    request.state.user_id = str(user.id)
    return user


async def get_optional_user(
        request: Request,
        auth_service: AsyncAuthService = Depends(get_auth_service),
) -> Optional[UserOutput]:
    """Like get_current_user, but returns None instead of rejecting anonymous requests."""
    try:
        return await get_current_user(request, auth_service)
    except UnauthorizedError:
        return None


########################################################################
# Role checks
########################################################################

ADMIN_ROLE = "admin"


async def require_admin(current_user: UserOutput = Depends(get_current_user)) -> UserOutput:
    """
    Allow only administrators.

    The role is read from the stored user, so a demotion takes effect
    before the access token expires.

    Raises:
        UnauthorizedError: If the request is not authenticated
        ForbiddenError: If the user is not an administrator
    """
    if current_user.role != ADMIN_ROLE:
        logger.warning("User %s denied access to an admin route", current_user.id)
        raise ForbiddenError("Access denied. Admin privileges required.")
    return current_user
