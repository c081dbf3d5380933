# readiness_auth/adapters/outbound/security/token_service.py

"""
Dual-token session management.

Access tokens are short lived and verified statelessly. Refresh tokens are
long lived and only honored while their entry exists in the TokenRegistry,
which is what makes logout and revocation possible.
"""

import logging
import uuid
from datetime import timedelta
from typing import List, Optional

from jose import jwt, JWTError
from starlette.requests import Request
from starlette.responses import Response

from readiness_auth.adapters.configuration.config import Settings, settings as default_settings
from readiness_auth.adapters.outbound.security.token_registry import TokenRegistry
from readiness_auth.domain.models.user_domain_model import (
    RefreshTokenPayload,
    RegistryEntry,
    SessionInfo,
    TokenPair,
    TokenPayload,
    utcnow,
)

logger = logging.getLogger(__name__)

ACCESS_COOKIE = "access_token"
REFRESH_COOKIE = "refresh_token"


class TokenService:
    """
    Issues, verifies, rotates and revokes access/refresh token pairs.

    Verification methods return None on any token problem (bad signature,
    expired, wrong type, unknown to the registry). Errors from the backing
    key/value store are not caught.
    """

    def __init__(self, registry: TokenRegistry, settings: Optional[Settings] = None):
        self.registry = registry
        self.settings = settings or default_settings

        self.access_secret = self.settings.access_token_secret
        self.refresh_secret = self.settings.refresh_token_secret
        if not self.access_secret or not self.refresh_secret:
            raise ValueError("JWT secrets must be configured")

        self.algorithm = self.settings.ALGORITHM
        self.access_expires = timedelta(minutes=self.settings.ACCESS_TOKEN_EXPIRE_MINUTES)
        self.refresh_expires = timedelta(days=self.settings.REFRESH_TOKEN_EXPIRE_DAYS)

    @staticmethod
    def generate_session_id() -> str:
        return str(uuid.uuid4())

    ####################################################################
    # Signing
    ####################################################################

    def _encode(self, claims: dict, token_type: str, expires_delta: timedelta, secret: str) -> str:
        now = utcnow()
        payload = {
            **claims,
            "type": token_type,
            "iat": int(now.timestamp()),
            "exp": int((now + expires_delta).timestamp()),
        }
        return jwt.encode(payload, secret, algorithm=self.algorithm)

    def _decode(self, token: str, token_type: str, secret: str) -> Optional[dict]:
        if not token:
            return None
        try:
            payload = jwt.decode(token, secret, algorithms=[self.algorithm])
        except JWTError:
            return None
        if payload.get("type") != token_type:
            return None
        if not payload.get("user_id") or not payload.get("session_id"):
            return None
        return payload

    def create_access_token(self, user_id: str, role: str, session_id: str) -> str:
        return self._encode(
            {"user_id": str(user_id), "role": role, "session_id": session_id},
            "access",
            self.access_expires,
            self.access_secret,
        )

    def create_refresh_token(self, user_id: str, role: str, session_id: str, token_id: str) -> str:
        return self._encode(
            {"user_id": str(user_id), "role": role, "session_id": session_id, "token_id": token_id},
            "refresh",
            self.refresh_expires,
            self.refresh_secret,
        )

    ####################################################################
    # Token lifecycle
    ####################################################################

    async def generate_token_pair(
            self,
            user_id: str,
            role: str,
            session_id: str,
            user_agent: Optional[str] = None,
            ip_address: Optional[str] = None,
    ) -> TokenPair:
        """
        Issue a new access/refresh pair and register the refresh token.

        Args:
            user_id: Owner of the session
            role: Role claim carried by both tokens
            session_id: Logical session, kept across rotations
            user_agent: Client user agent, shown in the session list
            ip_address: Client IP, shown in the session list

        Returns:
            TokenPair with both signed tokens
        """
        user_id = str(user_id)
        token_id = str(uuid.uuid4())
        now = utcnow()

        access_token = self.create_access_token(user_id, role, session_id)
        refresh_token = self.create_refresh_token(user_id, role, session_id, token_id)

        entry = RegistryEntry(
            user_id=user_id,
            role=role,
            session_id=session_id,
            expires_at=now + self.refresh_expires,
            created_at=now,
            last_used=now,
            user_agent=user_agent,
            ip_address=ip_address,
        )
        await self.registry.save(token_id, entry, int(self.refresh_expires.total_seconds()))

        return TokenPair(access_token=access_token, refresh_token=refresh_token)

    def verify_access_token(self, token: str) -> Optional[TokenPayload]:
        """Stateless check of signature, expiry and token type."""
        payload = self._decode(token, "access", self.access_secret)
        if payload is None:
            return None
        return TokenPayload(
            user_id=str(payload["user_id"]),
            role=payload.get("role", ""),
            session_id=payload["session_id"],
        )

    async def verify_refresh_token(self, token: str) -> Optional[RefreshTokenPayload]:
        """
        Verify a refresh token against its signature and the registry.

        Stale registry entries are removed. A successful check updates the
        entry's last_used timestamp.
        """
        payload = self._decode(token, "refresh", self.refresh_secret)
        if payload is None or not payload.get("token_id"):
            return None

        token_id = payload["token_id"]
        entry = await self.registry.get(token_id)
        if entry is None:
            return None

        if entry.is_expired():
            await self.registry.delete(token_id)
            return None

        if entry.user_id != str(payload["user_id"]):
            logger.warning("Refresh token %s does not match its registry owner", token_id)
            return None

        entry.last_used = utcnow()
        await self.registry.touch(token_id, entry)

        return RefreshTokenPayload(
            user_id=str(payload["user_id"]),
            role=payload.get("role", ""),
            session_id=payload["session_id"],
            token_id=token_id,
        )

    async def refresh_access_token(self, refresh_token: str) -> Optional[str]:
        """Mint a new access token for the same session. The refresh token is kept."""
        payload = await self.verify_refresh_token(refresh_token)
        if payload is None:
            return None
        return self.create_access_token(payload.user_id, payload.role, payload.session_id)

    async def rotate_refresh_token(self, old_refresh_token: str) -> Optional[TokenPair]:
        """
        Replace a refresh token with a new pair in the same session.

        The old registry entry is consumed atomically, so when two callers
        rotate the same token only one of them receives a pair.
        """
        payload = self._decode(old_refresh_token, "refresh", self.refresh_secret)
        if payload is None or not payload.get("token_id"):
            return None

        # No touch here: re-saving the entry could resurrect it for a concurrent rotation
        entry = await self.registry.take(payload["token_id"])
        if entry is None:
            logger.info("Refresh token %s was already consumed", payload["token_id"])
            return None
        if entry.is_expired() or entry.user_id != str(payload["user_id"]):
            return None

        return await self.generate_token_pair(
            entry.user_id,
            entry.role,
            entry.session_id,
            user_agent=entry.user_agent,
            ip_address=entry.ip_address,
        )

    async def revoke_refresh_token(self, token_id: str) -> None:
        await self.registry.delete(token_id)

    async def revoke_all_user_tokens(self, user_id: str) -> int:
        """Delete every registry entry owned by the user. Returns the number removed."""
        user_id = str(user_id)
        revoked = 0
        for token_id, entry in await self.registry.scan():
            if entry.user_id == user_id:
                await self.registry.delete(token_id)
                revoked += 1
        logger.info("Revoked %d refresh tokens for user %s", revoked, user_id)
        return revoked

    async def get_user_sessions(self, user_id: str) -> List[SessionInfo]:
        """List the user's unexpired sessions, most recently used first."""
        user_id = str(user_id)
        now = utcnow()
        sessions = [
            SessionInfo(
                session_id=entry.session_id,
                created_at=entry.created_at,
                last_used=entry.last_used,
                user_agent=entry.user_agent,
                ip_address=entry.ip_address,
            )
            for _, entry in await self.registry.scan()
            if entry.user_id == user_id and not entry.is_expired(now)
        ]
        sessions.sort(key=lambda session: session.last_used, reverse=True)
        return sessions

    ####################################################################
    # Cookies
    ####################################################################

    def _cookie_options(self) -> dict:
        secure = self.settings.is_production
        return {
            "httponly": True,
            "secure": secure,
            "samesite": "strict" if secure else "lax",
            "path": "/",
        }

    def set_access_cookie(self, response: Response, access_token: str) -> None:
        response.set_cookie(
            ACCESS_COOKIE,
            access_token,
            max_age=int(self.access_expires.total_seconds()),
            **self._cookie_options(),
        )

    def set_refresh_cookie(self, response: Response, refresh_token: str) -> None:
        response.set_cookie(
            REFRESH_COOKIE,
            refresh_token,
            max_age=int(self.refresh_expires.total_seconds()),
            **self._cookie_options(),
        )

    def set_token_cookies(self, response: Response, tokens: TokenPair) -> None:
        self.set_access_cookie(response, tokens.access_token)
        self.set_refresh_cookie(response, tokens.refresh_token)

    def clear_token_cookies(self, response: Response) -> None:
        for name in (ACCESS_COOKIE, REFRESH_COOKIE):
            response.delete_cookie(name, **self._cookie_options())

    @staticmethod
    def get_token_from_request(request: Request, kind: str = "access") -> Optional[str]:
        """Read the access or refresh token cookie from the request."""
        if kind not in ("access", "refresh"):
            raise ValueError(f"Unknown token kind: {kind!r}")
        name = ACCESS_COOKIE if kind == "access" else REFRESH_COOKIE
        return request.cookies.get(name) or None

