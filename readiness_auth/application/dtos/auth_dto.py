# readiness_auth/application/dtos/auth_dto.py

"""
Request and response models for the authentication endpoints.
"""

from datetime import datetime
from typing import List, Optional
from pydantic import EmailStr, Field

from readiness_auth.application.dtos.base_dto import CustomBaseModel
from readiness_auth.application.dtos.user_dto import UserOutput


class OAuthLoginRequest(CustomBaseModel):
    credential: str = Field(..., description="ID token issued by the identity provider.")


class PasswordResetRequest(CustomBaseModel):
    email: EmailStr


class PasswordResetConfirm(CustomBaseModel):
    token: str = Field(..., min_length=1)
    password: str = Field(..., max_length=256)


class PasswordStrengthRequest(CustomBaseModel):
    password: str = Field(..., max_length=256)


class AuthResponse(CustomBaseModel):
    user: UserOutput


class MessageResponse(CustomBaseModel):
    message: str


class LogoutAllResponse(CustomBaseModel):
    message: str
    revoked: int


class TokenValidationResponse(CustomBaseModel):
    valid: bool


class SessionOutput(CustomBaseModel):
    session_id: str
    created_at: datetime
    last_used: datetime
    user_agent: Optional[str] = None
    ip_address: Optional[str] = None


class SessionListResponse(CustomBaseModel):
    sessions: List[SessionOutput]


class PasswordStrengthOutput(CustomBaseModel):
    score: int
    feedback: List[str]
    strength: str
