# readiness_auth/adapters/inbound/api/v1/endpoints/user_endpoint.py

import logging
from uuid import UUID
from fastapi import APIRouter, Depends

from readiness_auth.adapters.inbound.api.deps import get_auth_service, get_current_user, require_admin
from readiness_auth.application.dtos.auth_dto import LogoutAllResponse, OAuthLoginRequest
from readiness_auth.application.dtos.user_dto import UserOutput, UserSelfUpdate
from readiness_auth.application.use_cases.auth_use_cases import AsyncAuthService

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get(
    "/me",
    response_model=UserOutput,
    summary="Get My Data - Logged in user data",
    description="Returns the authenticated user, identified by the access token cookie.",
    responses={
        200: {
            "description": "Authenticated user data",
            "content": {
                "application/json": {
                    "example": {
                        "id": "3fa85f64-5717-4562-b3fc-2c963f66afa6",
                        "name": "Alice",
                        "email": "alice@example.com",
                        "role": "client",
                        "google_id": None,
                        "microsoft_id": None,
                        "password_strength": "strong",
                        "is_active": True,
                    }
                }
            }
        },
        401: {
            "description": "Not authenticated or invalid token",
            "content": {
                "application/json": {
                    "example": {"detail": "Authentication required", "code": "UNAUTHORIZED", "errors": None}
                }
            }
        },
    },
)
async def get_my_data(current_user: UserOutput = Depends(get_current_user)):
    return current_user


@router.put(
    "/me",
    response_model=UserOutput,
    summary="Update My Data - Name, email or password",
    description="Changing the password requires `current_password`. Recent passwords cannot be reused.",
)
async def update_my_data(
        update_data: UserSelfUpdate,
        current_user: UserOutput = Depends(get_current_user),
        service: AsyncAuthService = Depends(get_auth_service),
):
    return await service.update_profile(current_user.id, update_data)


@router.post("/google/connect", response_model=UserOutput, summary="Link a Google account")
async def connect_google(
        payload: OAuthLoginRequest,
        current_user: UserOutput = Depends(get_current_user),
        service: AsyncAuthService = Depends(get_auth_service),
):
    return await service.connect_google(current_user.id, payload.credential)


@router.delete("/google/disconnect", response_model=UserOutput, summary="Unlink the Google account")
async def disconnect_google(
        current_user: UserOutput = Depends(get_current_user),
        service: AsyncAuthService = Depends(get_auth_service),
):
    return await service.disconnect_google(current_user.id)


@router.post("/microsoft/connect", response_model=UserOutput, summary="Link a Microsoft account")
async def connect_microsoft(
        payload: OAuthLoginRequest,
        current_user: UserOutput = Depends(get_current_user),
        service: AsyncAuthService = Depends(get_auth_service),
):
    return await service.connect_microsoft(current_user.id, payload.credential)


@router.delete("/microsoft/disconnect", response_model=UserOutput, summary="Unlink the Microsoft account")
async def disconnect_microsoft(
        current_user: UserOutput = Depends(get_current_user),
        service: AsyncAuthService = Depends(get_auth_service),
):
    return await service.disconnect_microsoft(current_user.id)


@router.delete(
    "/{user_id}/sessions",
    response_model=LogoutAllResponse,
    summary="Revoke User Sessions - Admin only",
    description="Revokes every refresh token of the given user, signing them out on all devices.",
)
async def revoke_user_sessions(
        user_id: UUID,
        admin: UserOutput = Depends(require_admin),
        service: AsyncAuthService = Depends(get_auth_service),
):
    revoked = await service.logout_everywhere(user_id)
    logger.info("Admin %s revoked %d sessions of user %s", admin.id, revoked, user_id)
    return LogoutAllResponse(message="User sessions revoked", revoked=revoked)
