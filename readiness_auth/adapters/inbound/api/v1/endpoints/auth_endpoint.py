# readiness_auth/adapters/inbound/api/v1/endpoints/auth_endpoint.py

import logging
from fastapi import APIRouter, Depends, Request, Response, status

from readiness_auth.adapters.inbound.api.deps import (
    ClientInfo,
    get_auth_service,
    get_client_info,
    get_current_user,
)
from readiness_auth.adapters.outbound.security.token_service import TokenService
from readiness_auth.application.dtos.auth_dto import (
    AuthResponse,
    LogoutAllResponse,
    MessageResponse,
    OAuthLoginRequest,
    PasswordResetConfirm,
    PasswordResetRequest,
    PasswordStrengthOutput,
    PasswordStrengthRequest,
    SessionListResponse,
    SessionOutput,
    TokenValidationResponse,
)
from readiness_auth.application.dtos.user_dto import UserLogin, UserOutput, UserRegister
from readiness_auth.application.use_cases.auth_use_cases import AsyncAuthService
from readiness_auth.domain.exceptions import UnauthorizedError

logger = logging.getLogger(__name__)
router = APIRouter()


def _require_refresh_token(request: Request) -> str:
    token = TokenService.get_token_from_request(request, "refresh")
    if not token:
        raise UnauthorizedError("Refresh token required")
    return token


########################################################################
# Registration and login
########################################################################

@router.post(
    "/register",
    response_model=AuthResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register User - Creates a new user and signs them in",
    description="""
    Creates a new user and sets the access and refresh token cookies.

    The password must meet the following criteria:
    - Between 8 and 128 characters
    - At least one uppercase letter
    - At least one lowercase letter
    - At least one number
    - At least one special character
    - No common patterns such as "password" or "123456"
    """,
)
async def register_user(
        user_input: UserRegister,
        response: Response,
        service: AsyncAuthService = Depends(get_auth_service),
        client: ClientInfo = Depends(get_client_info),
):
    result = await service.register_user(user_input, client.user_agent, client.ip_address)
    service.token_service.set_token_cookies(response, result.tokens)
    return AuthResponse(user=result.user)


@router.post(
    "/login",
    response_model=AuthResponse,
    summary="Login User - Email and password",
    description="Authenticates a user and sets the access and refresh token cookies.",
)
async def login_user(
        user_input: UserLogin,
        response: Response,
        service: AsyncAuthService = Depends(get_auth_service),
        client: ClientInfo = Depends(get_client_info),
):
    result = await service.login_user(user_input.email, user_input.password, client.user_agent, client.ip_address)
    service.token_service.set_token_cookies(response, result.tokens)
    return AuthResponse(user=result.user)


@router.post("/google/login", response_model=AuthResponse, summary="Login with a Google ID token")
async def login_with_google(
        payload: OAuthLoginRequest,
        response: Response,
        service: AsyncAuthService = Depends(get_auth_service),
        client: ClientInfo = Depends(get_client_info),
):
    result = await service.login_with_google(payload.credential, client.user_agent, client.ip_address)
    service.token_service.set_token_cookies(response, result.tokens)
    return AuthResponse(user=result.user)


@router.post("/microsoft/login", response_model=AuthResponse, summary="Login with a Microsoft ID token")
async def login_with_microsoft(
        payload: OAuthLoginRequest,
        response: Response,
        service: AsyncAuthService = Depends(get_auth_service),
        client: ClientInfo = Depends(get_client_info),
):
    result = await service.login_with_microsoft(payload.credential, client.user_agent, client.ip_address)
    service.token_service.set_token_cookies(response, result.tokens)
    return AuthResponse(user=result.user)


########################################################################
# Session management
########################################################################

@router.post(
    "/refresh",
    response_model=MessageResponse,
    summary="Refresh Token - Renews the access token",
    description=(
            "Issues a new access token cookie from the refresh token cookie. "
            "When refresh rotation is enabled the refresh token is replaced too."
    ),
)
async def refresh_token(
        request: Request,
        response: Response,
        service: AsyncAuthService = Depends(get_auth_service),
):
    result = await service.refresh_session(_require_refresh_token(request))
    service.token_service.set_access_cookie(response, result.access_token)
    if result.refresh_token:
        service.token_service.set_refresh_cookie(response, result.refresh_token)
    return MessageResponse(message="Token refreshed")


@router.post(
    "/rotate",
    response_model=MessageResponse,
    summary="Rotate Tokens - Replaces both tokens",
    description="Consumes the refresh token and issues a new pair in the same session.",
)
async def rotate_tokens(
        request: Request,
        response: Response,
        service: AsyncAuthService = Depends(get_auth_service),
):
    tokens = await service.rotate_session(_require_refresh_token(request))
    service.token_service.set_token_cookies(response, tokens)
    return MessageResponse(message="Tokens rotated")


@router.post(
    "/logout",
    response_model=MessageResponse,
    summary="Logout - Ends the current session",
    description="Revokes the refresh token of this session and clears the cookies.",
)
async def logout_user(
        request: Request,
        response: Response,
        service: AsyncAuthService = Depends(get_auth_service),
):
    await service.logout_session(TokenService.get_token_from_request(request, "refresh"))
    service.token_service.clear_token_cookies(response)
    return MessageResponse(message="Logged out successfully")


@router.post(
    "/logout-all",
    response_model=LogoutAllResponse,
    summary="Logout Everywhere - Ends every session of the user",
)
async def logout_all(
        response: Response,
        current_user: UserOutput = Depends(get_current_user),
        service: AsyncAuthService = Depends(get_auth_service),
):
    revoked = await service.logout_everywhere(current_user.id)
    service.token_service.clear_token_cookies(response)
    return LogoutAllResponse(message="Logged out from all devices", revoked=revoked)


@router.get("/sessions", response_model=SessionListResponse, summary="List active sessions")
async def list_sessions(
        current_user: UserOutput = Depends(get_current_user),
        service: AsyncAuthService = Depends(get_auth_service),
):
    sessions = await service.get_user_sessions(current_user.id)
    return SessionListResponse(
        sessions=[
            SessionOutput(
                session_id=s.session_id,
                created_at=s.created_at,
                last_used=s.last_used,
                user_agent=s.user_agent,
                ip_address=s.ip_address,
            )
            for s in sessions
        ]
    )


########################################################################
# Password reset and strength
########################################################################

@router.post(
    "/password-reset/request",
    response_model=MessageResponse,
    summary="Request a password reset link",
    description="Always answers the same way, whether or not the email is registered.",
)
async def request_password_reset(
        payload: PasswordResetRequest,
        service: AsyncAuthService = Depends(get_auth_service),
):
    await service.request_password_reset(payload.email)
    return MessageResponse(message="If an account exists for this email, a reset link has been sent")


@router.post("/password-reset/confirm", response_model=MessageResponse, summary="Set a new password")
async def confirm_password_reset(
        payload: PasswordResetConfirm,
        service: AsyncAuthService = Depends(get_auth_service),
):
    await service.confirm_password_reset(payload.token, payload.password)
    return MessageResponse(message="Password has been reset")


@router.get(
    "/password-reset/validate/{token}",
    response_model=TokenValidationResponse,
    summary="Check a password reset token",
)
async def validate_reset_token(
        token: str,
        service: AsyncAuthService = Depends(get_auth_service),
):
    return TokenValidationResponse(valid=await service.validate_reset_token(token))


@router.post("/password-strength", response_model=PasswordStrengthOutput, summary="Password strength meter")
async def password_strength(
        payload: PasswordStrengthRequest,
        service: AsyncAuthService = Depends(get_auth_service),
):
    meter = service.get_password_strength(payload.password)
    return PasswordStrengthOutput(score=meter.score, feedback=meter.feedback, strength=meter.strength)
