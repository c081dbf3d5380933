# readiness_auth/application/ports/inbound.py

from abc import ABC, abstractmethod
from typing import List, Optional

from readiness_auth.application.dtos.user_dto import UserOutput, UserRegister, UserSelfUpdate
from readiness_auth.domain.models.user_domain_model import PasswordStrengthMeter, SessionInfo, TokenPair


class IAuthUseCase(ABC):
    """Interface for authentication and session use cases."""

    @abstractmethod
    async def register_user(self, user_input: UserRegister, user_agent: Optional[str] = None,
                            ip_address: Optional[str] = None):
        """Register a new user and open a session."""
        pass

    @abstractmethod
    async def login_user(self, email: str, password: str, user_agent: Optional[str] = None,
                         ip_address: Optional[str] = None):
        """Authenticate with email and password."""
        pass

    @abstractmethod
    async def login_with_google(self, credential: str, user_agent: Optional[str] = None,
                                ip_address: Optional[str] = None):
        """Authenticate with a Google ID token."""
        pass

    @abstractmethod
    async def login_with_microsoft(self, credential: str, user_agent: Optional[str] = None,
                                   ip_address: Optional[str] = None):
        """Authenticate with a Microsoft ID token."""
        pass

    @abstractmethod
    async def update_profile(self, user_id, update_data: UserSelfUpdate) -> UserOutput:
        """Update name, email or password."""
        pass

    @abstractmethod
    async def request_password_reset(self, email: str) -> None:
        """Send a reset link if the account exists."""
        pass

    @abstractmethod
    async def confirm_password_reset(self, token: str, new_password: str) -> None:
        """Set a new password with a reset token."""
        pass

    @abstractmethod
    async def refresh_access_token(self, refresh_token: str) -> str:
        """Mint a new access token."""
        pass

    @abstractmethod
    async def rotate_session(self, refresh_token: str) -> TokenPair:
        """Exchange a refresh token for a new pair."""
        pass

    @abstractmethod
    async def logout_session(self, refresh_token: Optional[str]) -> None:
        """Revoke one session."""
        pass

    @abstractmethod
    async def logout_everywhere(self, user_id) -> int:
        """Revoke every session of a user."""
        pass

    @abstractmethod
    async def get_user_sessions(self, user_id) -> List[SessionInfo]:
        """List active sessions."""
        pass

    @abstractmethod
    def get_password_strength(self, password: str) -> PasswordStrengthMeter:
        """Strength meter for a candidate password."""
        pass
