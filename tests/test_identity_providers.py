"""Tests for Google and Microsoft ID token verification against a mocked JWKS endpoint."""

import time

import httpx
import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from jose import jwk, jwt

from readiness_auth.adapters.outbound.security.identity_providers import (
    GOOGLE_JWKS_URL,
    MICROSOFT_METADATA_URL,
    GoogleIdentityVerifier,
    MicrosoftIdentityVerifier,
    OIDCIdentityVerifier,
    build_identity_verifiers,
)

CLIENT_ID = "test-client-id.apps.example.com"
MICROSOFT_JWKS_URL = "https://login.microsoftonline.com/common/discovery/v2.0/keys"


def _generate_pem_pair():
    private_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    private_pem = private_key.private_bytes(
        serialization.Encoding.PEM,
        serialization.PrivateFormat.PKCS8,
        serialization.NoEncryption(),
    ).decode()
    public_pem = private_key.public_key().public_bytes(
        serialization.Encoding.PEM,
        serialization.PublicFormat.SubjectPublicKeyInfo,
    ).decode()
    return private_pem, public_pem


@pytest.fixture(scope="module")
def signing_key():
    private_pem, public_pem = _generate_pem_pair()
    public_jwk = jwk.construct(public_pem, "RS256").to_dict()
    public_jwk["kid"] = "test-key"
    public_jwk["use"] = "sig"
    return {"private": private_pem, "jwks": {"keys": [public_jwk]}}


@pytest.fixture(scope="module")
def other_key():
    private_pem, _ = _generate_pem_pair()
    return private_pem


def make_id_token(private_pem, **overrides):
    now = int(time.time())
    claims = {
        "iss": "https://accounts.google.com",
        "aud": CLIENT_ID,
        "sub": "google-sub-1",
        "email": "Alice@Example.com",
        "email_verified": True,
        "name": "Alice",
        "iat": now,
        "exp": now + 600,
    }
    claims.update(overrides)
    return jwt.encode(claims, private_pem, algorithm="RS256", headers={"kid": "test-key"})


class JwksServer:
    """httpx handler serving provider metadata and keys, counting requests."""

    def __init__(self, jwks):
        self.jwks = jwks
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        self.requests.append(url)
        if url == GOOGLE_JWKS_URL or url == MICROSOFT_JWKS_URL:
            return httpx.Response(200, json=self.jwks)
        if url == MICROSOFT_METADATA_URL:
            return httpx.Response(200, json={"jwks_uri": MICROSOFT_JWKS_URL})
        return httpx.Response(404)


@pytest.fixture
def jwks_server(signing_key):
    return JwksServer(signing_key["jwks"])


@pytest.fixture
def google(jwks_server):
    return GoogleIdentityVerifier(CLIENT_ID, transport=httpx.MockTransport(jwks_server))


@pytest.fixture
def microsoft(jwks_server):
    return MicrosoftIdentityVerifier(CLIENT_ID, transport=httpx.MockTransport(jwks_server))


class TestGoogleIdentityVerifier:
    async def test_valid_token(self, google, signing_key):
        identity = await google.verify(make_id_token(signing_key["private"]))

        assert identity.subject == "google-sub-1"
        assert identity.email == "alice@example.com"
        assert identity.name == "Alice"
        assert identity.email_verified

    async def test_bare_issuer_is_accepted(self, google, signing_key):
        token = make_id_token(signing_key["private"], iss="accounts.google.com")

        assert await google.verify(token) is not None

    async def test_wrong_audience(self, google, signing_key):
        token = make_id_token(signing_key["private"], aud="someone-else")

        assert await google.verify(token) is None

    async def test_wrong_issuer(self, google, signing_key):
        token = make_id_token(signing_key["private"], iss="https://evil.example.com")

        assert await google.verify(token) is None

    async def test_expired_token(self, google, signing_key):
        past = int(time.time()) - 3600
        token = make_id_token(signing_key["private"], iat=past - 600, exp=past)

        assert await google.verify(token) is None

    async def test_unknown_signing_key(self, google, other_key):
        assert await google.verify(make_id_token(other_key)) is None

    async def test_missing_email(self, google, signing_key):
        assert await google.verify(make_id_token(signing_key["private"], email=None)) is None

    async def test_garbage_credential(self, google):
        assert await google.verify("not-a-token") is None
        assert await google.verify("") is None

    async def test_keys_are_cached(self, google, jwks_server, signing_key):
        await google.verify(make_id_token(signing_key["private"]))
        await google.verify(make_id_token(signing_key["private"]))

        assert jwks_server.requests == [GOOGLE_JWKS_URL]

    async def test_unreachable_key_endpoint(self, signing_key):
        def failing(request):
            return httpx.Response(503)

        verifier = GoogleIdentityVerifier(CLIENT_ID, transport=httpx.MockTransport(failing))

        assert await verifier.verify(make_id_token(signing_key["private"])) is None

    async def test_not_configured(self, signing_key):
        verifier = GoogleIdentityVerifier(None)

        assert await verifier.verify(make_id_token(signing_key["private"])) is None


def microsoft_token(private_pem, **overrides):
    claims = {
        "iss": "https://login.microsoftonline.com/tenant-id/v2.0",
        "tid": "tenant-id",
        "sub": "pairwise-sub",
        "oid": "object-id-1",
        "email": None,
        "email_verified": None,
        "preferred_username": "Bob@Contoso.com",
    }
    claims.update(overrides)
    return make_id_token(private_pem, **claims)


class TestMicrosoftIdentityVerifier:
    async def test_valid_token_uses_oid_and_preferred_username(self, microsoft, jwks_server, signing_key):
        identity = await microsoft.verify(microsoft_token(signing_key["private"]))

        assert identity.subject == "object-id-1"
        assert identity.email == "bob@contoso.com"
        assert not identity.email_verified
        assert jwks_server.requests == [MICROSOFT_METADATA_URL, MICROSOFT_JWKS_URL]

    async def test_unverified_email_claim_stays_unverified(self, microsoft, signing_key):
        token = microsoft_token(
            signing_key["private"],
            iss="https://login.microsoftonline.com/attacker-tenant/v2.0",
            tid="attacker-tenant",
            oid="attacker-oid",
            email="victim@example.com",
            email_verified=False,
        )

        identity = await microsoft.verify(token)

        assert identity.subject == "attacker-oid"
        assert identity.email == "victim@example.com"
        assert not identity.email_verified

    async def test_string_false_is_not_verified(self, microsoft, signing_key):
        token = microsoft_token(signing_key["private"], email="bob@contoso.com", email_verified="false")

        assert not (await microsoft.verify(token)).email_verified

    async def test_domain_owner_verified_email(self, microsoft, signing_key):
        token = microsoft_token(signing_key["private"], email="bob@contoso.com", xms_edov=True)

        assert (await microsoft.verify(token)).email_verified

    async def test_domain_owner_flag_does_not_cover_preferred_username(self, microsoft, signing_key):
        token = microsoft_token(signing_key["private"], xms_edov=True)

        assert not (await microsoft.verify(token)).email_verified

    async def test_trusted_tenant_is_verified(self, jwks_server, signing_key):
        verifier = MicrosoftIdentityVerifier(
            CLIENT_ID,
            trusted_tenants=["Tenant-ID"],
            transport=httpx.MockTransport(jwks_server),
        )

        trusted = await verifier.verify(microsoft_token(signing_key["private"]))
        foreign = await verifier.verify(microsoft_token(signing_key["private"], tid="other-tenant"))

        assert trusted.email_verified
        assert not foreign.email_verified

    async def test_foreign_issuer(self, microsoft, signing_key):
        token = make_id_token(signing_key["private"], iss="https://accounts.google.com", oid="x")

        assert await microsoft.verify(token) is None


def test_verifier_base_requires_provider_hooks():
    with pytest.raises(TypeError):
        OIDCIdentityVerifier(CLIENT_ID)


def test_build_identity_verifiers(settings):
    trusted = settings.model_copy(update={"MICROSOFT_TRUSTED_TENANTS": ["tenant-id"]})

    verifiers = build_identity_verifiers(trusted)

    assert isinstance(verifiers["google"], GoogleIdentityVerifier)
    assert isinstance(verifiers["microsoft"], MicrosoftIdentityVerifier)
    assert verifiers["microsoft"].trusted_tenants == {"tenant-id"}
