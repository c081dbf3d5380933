# readiness_auth/application/dtos/user_dto.py

"""
User DTOs.

Pydantic models for validating and serializing user data: registration,
login, profile changes and the sanitized user view returned by the API.
"""

from uuid import UUID
from datetime import datetime
from typing import Optional
from readiness_auth.application.dtos.base_dto import CustomBaseModel
from readiness_auth.shared.utils.input_validation import InputValidator
from pydantic import ConfigDict, EmailStr, Field, field_validator


def _check_email(v: Optional[str]) -> Optional[str]:
    if v is None:
        return v
    is_valid, error_msg = InputValidator.validate_email(v)
    if not is_valid:
        raise ValueError(error_msg)
    return v.lower()


def _check_name(v: Optional[str]) -> Optional[str]:
    if v is None:
        return v
    is_valid, error_msg = InputValidator.validate_name(v)
    if not is_valid:
        raise ValueError(error_msg)
    return InputValidator.sanitize_name(v)


class UserRegister(CustomBaseModel):
    """
    Registration payload.

    Password complexity is checked by the auth service, which reports every
    failed rule at once.
    """
    name: str = Field(..., description="Display name.")
    email: EmailStr = Field(..., description="Login email. Must be unique.")
    password: str = Field(..., max_length=256, description="Plain text password.")

    normalize_email = field_validator("email")(_check_email)
    normalize_name = field_validator("name")(_check_name)


class UserLogin(CustomBaseModel):
    email: EmailStr
    password: str = Field(..., max_length=256)

    normalize_email = field_validator("email")(_check_email)


class UserSelfUpdate(CustomBaseModel):
    """
    Profile changes made by the user.

    Changing the password requires current_password.
    """
    name: Optional[str] = Field(None, description="New display name.")
    email: Optional[EmailStr] = Field(None, description="New login email. Must be unique.")
    password: Optional[str] = Field(None, max_length=256, description="New password.")
    current_password: Optional[str] = Field(None, description="Current password.")

    normalize_email = field_validator("email")(_check_email)
    normalize_name = field_validator("name")(_check_name)


class UserOutput(CustomBaseModel):
    """
    Sanitized user view.

    Never carries the password hash, password history or reset token.
    """
    id: UUID = Field(..., description="Unique user identifier.")
    name: str
    email: str
    role: str
    google_id: Optional[str] = None
    microsoft_id: Optional[str] = None
    password_strength: Optional[str] = None
    last_password_change: Optional[datetime] = None
    is_active: bool = True
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)
