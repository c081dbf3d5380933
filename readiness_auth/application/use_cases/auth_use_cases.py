# readiness_auth/application/use_cases/auth_use_cases.py

"""
Service for user authentication.

This module implements the authentication use cases: registration, password
and federated login, profile changes, password reset, and the session
operations built on the TokenService (refresh, rotation, logout).
"""

import hashlib
import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import List, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from readiness_auth.adapters.configuration.config import Settings, settings as default_settings
from readiness_auth.adapters.outbound.notifications.reset_notifier import LoggingPasswordResetNotifier
from readiness_auth.adapters.outbound.persistence.models import User
from readiness_auth.adapters.outbound.persistence.repositories.team_repository import team_repository
from readiness_auth.adapters.outbound.persistence.repositories.user_repository import user_repository
from readiness_auth.adapters.outbound.security.password_security import PasswordSecurityService
from readiness_auth.adapters.outbound.security.token_service import TokenService
from readiness_auth.application.dtos.user_dto import UserOutput, UserRegister, UserSelfUpdate
from readiness_auth.application.ports.inbound import IAuthUseCase
from readiness_auth.application.ports.outbound import IIdentityVerifier, IPasswordResetNotifier
from readiness_auth.domain.exceptions import (
    ConflictError,
    DomainException,
    ForbiddenError,
    NotFoundError,
    UnauthorizedError,
    ValidationError,
)
from readiness_auth.domain.models.user_domain_model import (
    ExternalIdentity,
    PasswordHistoryEntry,
    PasswordStrengthMeter,
    SessionInfo,
    TokenPair,
    utcnow,
)

logger = logging.getLogger(__name__)

INVALID_CREDENTIALS = "Invalid email or password"
INVALID_REFRESH_TOKEN = "Invalid or expired refresh token"
INVALID_RESET_TOKEN = "Invalid or expired reset token"


@dataclass
class AuthResult:
    """A signed-in user and the token pair issued for the new session."""
    user: UserOutput
    tokens: TokenPair


@dataclass
class RefreshResult:
    """Outcome of a refresh: refresh_token is only set when it was rotated."""
    access_token: str
    refresh_token: Optional[str] = None


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _reset_token_digest(token: str) -> str:
    # Only the digest is stored, so a leaked users table cannot be replayed
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


class AsyncAuthService(IAuthUseCase):
    """
    Service for user authentication.

    Every operation that returns a user returns a sanitized UserOutput.
    Failures are raised as DomainException subclasses.
    """

    def __init__(
            self,
            db_session: AsyncSession,
            token_service: TokenService,
            password_security: Optional[PasswordSecurityService] = None,
            google_verifier: Optional[IIdentityVerifier] = None,
            microsoft_verifier: Optional[IIdentityVerifier] = None,
            notifier: Optional[IPasswordResetNotifier] = None,
            settings: Optional[Settings] = None,
    ):
        """
        Initialize the service with a database session and its collaborators.

        Args:
            db_session: Active SQLAlchemy session
            token_service: Issues and verifies token pairs
            password_security: Hashing and password rules
            google_verifier: Validates Google ID tokens
            microsoft_verifier: Validates Microsoft ID tokens
            notifier: Delivers password reset links
            settings: Application settings
        """
        self.db = db_session
        self.token_service = token_service
        self.settings = settings or token_service.settings or default_settings
        self.password_security = password_security or PasswordSecurityService(self.settings)
        self.google_verifier = google_verifier
        self.microsoft_verifier = microsoft_verifier
        self.notifier = notifier or LoggingPasswordResetNotifier()

    ####################################################################
    # Helpers
    ####################################################################

    @staticmethod
    def _to_output(user: User) -> UserOutput:
        return UserOutput.model_validate(user)

    @staticmethod
    def _parse_user_id(user_id) -> Optional[UUID]:
        if isinstance(user_id, UUID):
            return user_id
        try:
            return UUID(str(user_id))
        except (TypeError, ValueError):
            return None

    async def _get_user(self, user_id) -> User:
        parsed = self._parse_user_id(user_id)
        user = await user_repository.get(self.db, parsed) if parsed else None
        if not user:
            raise NotFoundError("User")
        return user

    @staticmethod
    def _load_history(user: User) -> List[PasswordHistoryEntry]:
        history = []
        for item in user.password_history or []:
            try:
                history.append(PasswordHistoryEntry.from_dict(item))
            except (KeyError, TypeError, ValueError):
                logger.warning("Skipping malformed password history entry for user %s", user.id)
        return history

    def _default_team_name(self, email: str) -> str:
        domain = self.settings.INTERNAL_EMAIL_DOMAIN
        if domain and email.lower().endswith(f"@{domain.lower().lstrip('@')}"):
            return self.settings.INTERNAL_TEAM_NAME
        return self.settings.DEFAULT_TEAM_NAME

    def _check_complexity(self, password: str) -> str:
        """Raise ValidationError listing every failed rule; return the strength label."""
        result = self.password_security.validate_password_complexity(password)
        if not result.is_valid:
            raise ValidationError(
                f"Password requirements not met: {', '.join(result.errors)}",
                details={"password": result.errors},
            )
        return result.strength

    async def _create_user(self, values: dict) -> User:
        """Persist a new user in the default team and claim their guest assessments."""
        team = await team_repository.get_or_create_by_name(self.db, self._default_team_name(values["email"]))
        values.setdefault("role", self.settings.DEFAULT_ROLE)
        user = await user_repository.create_with_team(self.db, obj_in=values, team=team)

        try:
            transferred = await user_repository.transfer_guest_assessments(self.db, user)
            if transferred:
                logger.info("Transferred %d guest assessments to user %s", transferred, user.id)
        except DomainException as e:
            logger.error("Guest assessment transfer failed for user %s: %s", user.id, e.message)

        return user

    async def _issue_tokens(self, user: User, user_agent: Optional[str], ip_address: Optional[str]) -> TokenPair:
        return await self.token_service.generate_token_pair(
            str(user.id),
            user.role,
            self.token_service.generate_session_id(),
            user_agent=user_agent,
            ip_address=ip_address,
        )

    ####################################################################
    # Registration and login
    ####################################################################

    async def register_user(
            self,
            user_input: UserRegister,
            user_agent: Optional[str] = None,
            ip_address: Optional[str] = None,
    ) -> AuthResult:
        """
        Register a new user and open a first session.

        Args:
            user_input: Registration data
            user_agent: Client user agent
            ip_address: Client IP address

        Returns:
            AuthResult with the new user and a token pair

        Raises:
            ConflictError: If the email is already in use
            ValidationError: If the password does not meet the complexity rules
        """
        email = user_input.email.lower()
        if await user_repository.get_by_email(self.db, email):
            logger.warning("Registration attempted with an existing email")
            raise ConflictError("A user with this email already exists")

        strength = self._check_complexity(user_input.password)
        password_hash = await self.password_security.hash_password(user_input.password)
        history = self.password_security.add_password_to_history(password_hash, [])

        user = await self._create_user({
            "name": user_input.name,
            "email": email,
            "password": password_hash,
            "password_history": [entry.to_dict() for entry in history],
            "password_strength": strength,
            "last_password_change": utcnow(),
        })
        logger.info("User %s registered", user.id)

        tokens = await self._issue_tokens(user, user_agent, ip_address)
        return AuthResult(user=self._to_output(user), tokens=tokens)

    async def login_user(
            self,
            email: str,
            password: str,
            user_agent: Optional[str] = None,
            ip_address: Optional[str] = None,
    ) -> AuthResult:
        """
        Authenticate with email and password.

        Raises:
            UnauthorizedError: Same message for unknown email, wrong password
                and inactive account
        """
        user = await user_repository.get_by_email(self.db, email)
        if not user:
            await self.password_security.verify_dummy_password(password)
            raise UnauthorizedError(INVALID_CREDENTIALS)

        if not await self.password_security.verify_password(password, user.password):
            logger.info("Failed login for user %s", user.id)
            raise UnauthorizedError(INVALID_CREDENTIALS)

        if not user.is_active:
            logger.info("Login refused for inactive user %s", user.id)
            raise UnauthorizedError(INVALID_CREDENTIALS)

        tokens = await self._issue_tokens(user, user_agent, ip_address)
        return AuthResult(user=self._to_output(user), tokens=tokens)

    async def _verify_identity(self, verifier: Optional[IIdentityVerifier], label: str,
                               credential: str) -> ExternalIdentity:
        identity = await verifier.verify(credential) if verifier else None
        if identity is None:
            raise UnauthorizedError(f"Invalid {label} token")
        return identity

    async def _login_with_identity(
            self,
            identity: ExternalIdentity,
            id_field: str,
            label: str,
            user_agent: Optional[str],
            ip_address: Optional[str],
    ) -> AuthResult:
        user = await user_repository.get_by_field(self.db, id_field, identity.subject)

        if not user:
            user = await user_repository.get_by_email(self.db, identity.email)
            if user:
                if not identity.email_verified:
                    raise UnauthorizedError(f"{label} email address is not verified")
                if getattr(user, id_field):
                    raise ConflictError(f"This email is already linked to another {label} account")
                user = await user_repository.update(self.db, db_obj=user, obj_in={id_field: identity.subject})
                logger.info("Linked %s identity to user %s", label, user.id)

        if not user:
            # Federated accounts get an unusable random password and an empty history
            password_hash = await self.password_security.hash_password(
                self.password_security.generate_secure_password()
            )
            user = await self._create_user({
                "name": identity.name or identity.email.split("@")[0],
                "email": identity.email,
                "password": password_hash,
                "password_history": [],
                id_field: identity.subject,
            })
            logger.info("User %s created from %s sign-in", user.id, label)

        if not user.is_active:
            raise UnauthorizedError("Account is disabled")

        tokens = await self._issue_tokens(user, user_agent, ip_address)
        return AuthResult(user=self._to_output(user), tokens=tokens)

    async def login_with_google(
            self,
            credential: str,
            user_agent: Optional[str] = None,
            ip_address: Optional[str] = None,
    ) -> AuthResult:
        """
        Sign in with a Google ID token, creating the account on first use.

        Raises:
            UnauthorizedError: If the Google token is invalid
        """
        identity = await self._verify_identity(self.google_verifier, "Google", credential)
        return await self._login_with_identity(identity, "google_id", "Google", user_agent, ip_address)

    async def login_with_microsoft(
            self,
            credential: str,
            user_agent: Optional[str] = None,
            ip_address: Optional[str] = None,
    ) -> AuthResult:
        """
        Sign in with a Microsoft ID token, creating the account on first use.

        Raises:
            UnauthorizedError: If the Microsoft token is invalid
        """
        identity = await self._verify_identity(self.microsoft_verifier, "Microsoft", credential)
        return await self._login_with_identity(identity, "microsoft_id", "Microsoft", user_agent, ip_address)

    ####################################################################
    # Linked identities
    ####################################################################

    async def _connect(self, user_id, verifier, id_field: str, label: str, credential: str) -> UserOutput:
        user = await self._get_user(user_id)
        identity = await self._verify_identity(verifier, label, credential)

        owner = await user_repository.get_by_field(self.db, id_field, identity.subject)
        if owner and owner.id != user.id:
            raise ConflictError(f"This {label} account is already connected to another user")

        user = await user_repository.update(self.db, db_obj=user, obj_in={id_field: identity.subject})
        logger.info("Connected %s account to user %s", label, user.id)
        return self._to_output(user)

    async def _disconnect(self, user_id, id_field: str, other_field: str, label: str) -> UserOutput:
        user = await self._get_user(user_id)
        if not getattr(user, id_field):
            raise ValidationError(f"No {label} account is connected to this user")

        # A password the user chose (history is empty for federated-only accounts) or another provider
        if not self._load_history(user) and not getattr(user, other_field):
            raise ForbiddenError(f"Cannot disconnect {label} account without a password set")

        user = await user_repository.update(self.db, db_obj=user, obj_in={id_field: None})
        logger.info("Disconnected %s account from user %s", label, user.id)
        return self._to_output(user)

    async def connect_google(self, user_id, credential: str) -> UserOutput:
        return await self._connect(user_id, self.google_verifier, "google_id", "Google", credential)

    async def connect_microsoft(self, user_id, credential: str) -> UserOutput:
        return await self._connect(user_id, self.microsoft_verifier, "microsoft_id", "Microsoft", credential)

    async def disconnect_google(self, user_id) -> UserOutput:
        return await self._disconnect(user_id, "google_id", "microsoft_id", "Google")

    async def disconnect_microsoft(self, user_id) -> UserOutput:
        return await self._disconnect(user_id, "microsoft_id", "google_id", "Microsoft")

    ####################################################################
    # Profile and passwords
    ####################################################################

    async def _password_change_values(self, user: User, new_password: str) -> dict:
        """Validate a new password against the rules and history, and build the column updates."""
        strength = self._check_complexity(new_password)

        history = self._load_history(user)
        if await self.password_security.is_password_in_history(new_password, history):
            raise ValidationError("Cannot reuse a recent password. Please choose a different password.")

        password_hash = await self.password_security.hash_password(new_password)
        history = self.password_security.add_password_to_history(password_hash, history)
        return {
            "password": password_hash,
            "password_history": [entry.to_dict() for entry in history],
            "password_strength": strength,
            "last_password_change": utcnow(),
        }

    async def update_profile(self, user_id, update_data: UserSelfUpdate) -> UserOutput:
        """
        Update the current user's profile.

        Args:
            user_id: ID of the user
            update_data: Fields to change

        Returns:
            Updated user

        Raises:
            NotFoundError: If the user doesn't exist
            ConflictError: If the new email is already in use
            ValidationError: If a password change is incomplete, too weak or reused
            UnauthorizedError: If current_password is wrong
        """
        user = await self._get_user(user_id)
        changes = update_data.model_dump()
        new_password = changes.pop("password", None)
        current_password = changes.pop("current_password", None)

        if "email" in changes:
            changes["email"] = changes["email"].lower()
            if changes["email"] != user.email:
                if await user_repository.get_by_email(self.db, changes["email"]):
                    raise ConflictError("A user with this email already exists")
            else:
                del changes["email"]

        if new_password:
            if not current_password:
                raise ValidationError("Current password is required to set a new password")
            if not await self.password_security.verify_password(current_password, user.password):
                raise UnauthorizedError("Current password is incorrect")
            changes.update(await self._password_change_values(user, new_password))

        if not changes:
            return self._to_output(user)

        user = await user_repository.update(self.db, db_obj=user, obj_in=changes)
        logger.info("Profile updated for user %s (%s)", user.id, ", ".join(sorted(changes)))
        return self._to_output(user)

    async def request_password_reset(self, email: str) -> None:
        """
        Start a password reset. Silent for unknown emails.

        The token is sent through the notifier; delivery failures are logged
        and never reported to the caller.
        """
        user = await user_repository.get_by_email(self.db, email)
        if not user or not user.is_active:
            logger.info("Password reset requested for an unknown or inactive account")
            return

        token = secrets.token_hex(32)
        expiry = utcnow() + timedelta(minutes=self.settings.PASSWORD_RESET_EXPIRE_MINUTES)
        await user_repository.update(
            self.db,
            db_obj=user,
            obj_in={"reset_token": _reset_token_digest(token), "reset_token_expiry": expiry},
        )

        try:
            sent = await self.notifier.send_password_reset(user.email, token, user.name)
        except Exception:
            logger.exception("Password reset delivery failed for user %s", user.id)
            return
        if not sent:
            logger.error("Password reset delivery failed for user %s", user.id)

    async def _get_user_by_reset_token(self, token: str) -> Optional[User]:
        if not token:
            return None
        user = await user_repository.get_by_reset_token(self.db, _reset_token_digest(token))
        if not user or not user.is_active:
            return None
        expiry = _as_utc(user.reset_token_expiry)
        if expiry is None or expiry <= utcnow():
            return None
        return user

    async def validate_reset_token(self, token: str) -> bool:
        return await self._get_user_by_reset_token(token) is not None

    async def confirm_password_reset(self, token: str, new_password: str) -> None:
        """
        Set a new password with a reset token. The token is single use.

        All of the user's refresh tokens are revoked afterwards.

        Raises:
            ValidationError: Invalid or expired token, weak or reused password
        """
        user = await self._get_user_by_reset_token(token)
        if not user:
            raise ValidationError(INVALID_RESET_TOKEN)

        changes = await self._password_change_values(user, new_password)
        changes.update({"reset_token": None, "reset_token_expiry": None})
        user = await user_repository.update(self.db, db_obj=user, obj_in=changes)
        logger.info("Password reset completed for user %s", user.id)

        await self.token_service.revoke_all_user_tokens(str(user.id))

    def get_password_strength(self, password: str) -> PasswordStrengthMeter:
        return self.password_security.get_password_strength_meter(password)

    ####################################################################
    # Sessions
    ####################################################################

    async def refresh_access_token(self, refresh_token: str) -> str:
        """
        Mint a new access token from a refresh token.

        Raises:
            UnauthorizedError: If the refresh token is invalid, expired or revoked
        """
        access_token = await self.token_service.refresh_access_token(refresh_token)
        if not access_token:
            raise UnauthorizedError(INVALID_REFRESH_TOKEN)
        return access_token

    async def rotate_session(self, refresh_token: str) -> TokenPair:
        """
        Exchange a refresh token for a new pair in the same session.

        Raises:
            UnauthorizedError: If the refresh token is invalid or was already rotated
        """
        tokens = await self.token_service.rotate_refresh_token(refresh_token)
        if not tokens:
            raise UnauthorizedError(INVALID_REFRESH_TOKEN)
        return tokens

    async def refresh_session(self, refresh_token: str) -> RefreshResult:
        """Refresh, rotating the refresh token too when ROTATE_REFRESH_ON_USE is set."""
        if self.settings.ROTATE_REFRESH_ON_USE:
            tokens = await self.rotate_session(refresh_token)
            return RefreshResult(access_token=tokens.access_token, refresh_token=tokens.refresh_token)
        return RefreshResult(access_token=await self.refresh_access_token(refresh_token))

    async def logout_session(self, refresh_token: Optional[str]) -> None:
        """Revoke the session of this refresh token. Invalid tokens are ignored."""
        if not refresh_token:
            return
        payload = await self.token_service.verify_refresh_token(refresh_token)
        if payload is None:
            return
        await self.token_service.revoke_refresh_token(payload.token_id)
        logger.info("Session %s of user %s logged out", payload.session_id, payload.user_id)

    async def logout_everywhere(self, user_id) -> int:
        return await self.token_service.revoke_all_user_tokens(str(user_id))

    async def get_user_sessions(self, user_id) -> List[SessionInfo]:
        return await self.token_service.get_user_sessions(str(user_id))

    async def get_current_user(self, user_id) -> UserOutput:
        """
        Raises:
            NotFoundError: If the user doesn't exist
        """
        return self._to_output(await self._get_user(user_id))
