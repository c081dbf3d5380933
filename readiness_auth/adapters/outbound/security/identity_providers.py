# readiness_auth/adapters/outbound/security/identity_providers.py

"""
ID token verification for Google and Microsoft sign-in.

Both providers publish their signing keys as a JWKS document. Keys are
fetched with httpx and cached for JWKS_CACHE_SECONDS. Any failure
(network, signature, audience, issuer) yields None.
"""

import logging
import time
from abc import abstractmethod
from typing import Any, Dict, Iterable, Optional

import httpx
from jose import jwt
from jose.exceptions import JOSEError

from readiness_auth.adapters.configuration.config import Settings, settings as default_settings
from readiness_auth.application.ports.outbound import IIdentityVerifier
from readiness_auth.domain.models.user_domain_model import ExternalIdentity

logger = logging.getLogger(__name__)

JWKS_CACHE_SECONDS = 3600
CLOCK_SKEW_SECONDS = 60

GOOGLE_JWKS_URL = "https://www.googleapis.com/oauth2/v3/certs"
GOOGLE_ISSUERS = ("accounts.google.com", "https://accounts.google.com")

MICROSOFT_METADATA_URL = "https://login.microsoftonline.com/common/v2.0/.well-known/openid-configuration"
MICROSOFT_ISSUER_PREFIX = "https://login.microsoftonline.com/"


class OIDCIdentityVerifier(IIdentityVerifier):
    """Shared JWKS handling for OpenID Connect ID tokens."""

    provider = "oidc"

    def __init__(
            self,
            client_id: Optional[str],
            *,
            timeout: float = 5.0,
            transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.client_id = client_id
        self.timeout = timeout
        self.transport = transport
        self._jwks: Optional[Dict[str, Any]] = None
        self._jwks_fetched_at = 0.0

    async def _get_json(self, url: str) -> Dict[str, Any]:
        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            response = await client.get(url, headers={"Accept": "application/json"})
            response.raise_for_status()
            return response.json()

    @abstractmethod
    async def jwks_url(self) -> str:
        """URL of the provider's JWKS document."""
        pass

    async def get_jwks(self) -> Dict[str, Any]:
        if self._jwks is None or time.monotonic() - self._jwks_fetched_at > JWKS_CACHE_SECONDS:
            self._jwks = await self._get_json(await self.jwks_url())
            self._jwks_fetched_at = time.monotonic()
        return self._jwks

    @abstractmethod
    def is_trusted_issuer(self, issuer: str) -> bool:
        pass

    def to_identity(self, claims: Dict[str, Any]) -> Optional[ExternalIdentity]:
        subject = claims.get("sub")
        email = claims.get("email")
        if not subject or not email:
            return None
        return ExternalIdentity(
            subject=str(subject),
            email=str(email).lower(),
            name=claims.get("name") or "",
            picture=claims.get("picture") or "",
            email_verified=_is_true(claims.get("email_verified")),
        )

    async def verify(self, credential: str) -> Optional[ExternalIdentity]:
        """
        Validate an ID token and extract the identity it asserts.

        Args:
            credential: Raw ID token (JWT) received from the client

        Returns:
            ExternalIdentity, or None when the token cannot be trusted
        """
        if not self.client_id:
            logger.warning("%s sign-in is not configured", self.provider)
            return None
        if not credential:
            return None

        try:
            jwks = await self.get_jwks()
            claims = jwt.decode(
                credential,
                jwks,
                algorithms=["RS256"],
                audience=self.client_id,
                options={"verify_at_hash": False, "leeway": CLOCK_SKEW_SECONDS},
            )
        except (httpx.HTTPError, ValueError) as e:
            logger.error("Could not load %s signing keys: %s", self.provider, e)
            return None
        except JOSEError as e:
            logger.info("Rejected %s ID token: %s", self.provider, e)
            return None

        if not self.is_trusted_issuer(claims.get("iss", "")):
            logger.info("Rejected %s ID token from issuer %r", self.provider, claims.get("iss"))
            return None

        return self.to_identity(claims)


class GoogleIdentityVerifier(OIDCIdentityVerifier):
    provider = "google"

    async def jwks_url(self) -> str:
        return GOOGLE_JWKS_URL

    def is_trusted_issuer(self, issuer: str) -> bool:
        return issuer in GOOGLE_ISSUERS


class MicrosoftIdentityVerifier(OIDCIdentityVerifier):
    """
    Multi-tenant Microsoft identity platform (v2.0) tokens.

    Any Azure tenant can issue a valid token, and tenant admins control the
    email and preferred_username claims. An address only counts as verified
    when the token says so (email_verified or xms_edov on the email claim)
    or when it comes from a tenant listed in trusted_tenants.
    """

    provider = "microsoft"

    def __init__(self, client_id: Optional[str], *, trusted_tenants: Iterable[str] = (), **kwargs):
        super().__init__(client_id, **kwargs)
        self.trusted_tenants = {tenant.lower() for tenant in trusted_tenants}

    async def jwks_url(self) -> str:
        metadata = await self._get_json(MICROSOFT_METADATA_URL)
        return metadata["jwks_uri"]

    def is_trusted_issuer(self, issuer: str) -> bool:
        return issuer.startswith(MICROSOFT_ISSUER_PREFIX)

    def is_trusted_tenant(self, claims: Dict[str, Any]) -> bool:
        tenant = str(claims.get("tid") or "").lower()
        return bool(tenant) and tenant in self.trusted_tenants

    def to_identity(self, claims: Dict[str, Any]) -> Optional[ExternalIdentity]:
        email = claims.get("email")
        email_verified = bool(email) and (
            _is_true(claims.get("email_verified")) or _is_true(claims.get("xms_edov"))
        )
        # Work and school accounts carry the address in preferred_username
        if not email:
            email = claims.get("preferred_username")

        subject = claims.get("oid") or claims.get("sub")
        if not subject or not email:
            return None
        return ExternalIdentity(
            subject=str(subject),
            email=str(email).lower(),
            name=claims.get("name") or "",
            picture=claims.get("picture") or "",
            email_verified=email_verified or self.is_trusted_tenant(claims),
        )


def _is_true(value: Any) -> bool:
    if isinstance(value, str):
        return value.lower() in ("true", "1")
    return value is True


def build_identity_verifiers(settings: Optional[Settings] = None) -> Dict[str, IIdentityVerifier]:
    settings = settings or default_settings
    return {
        "google": GoogleIdentityVerifier(settings.GOOGLE_CLIENT_ID, timeout=settings.OIDC_HTTP_TIMEOUT),
        "microsoft": MicrosoftIdentityVerifier(
            settings.MICROSOFT_CLIENT_ID,
            trusted_tenants=settings.MICROSOFT_TRUSTED_TENANTS,
            timeout=settings.OIDC_HTTP_TIMEOUT,
        ),
    }
