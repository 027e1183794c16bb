"""Unit tests for OpenIDConnectProvider

Provider HTTP traffic is served by httpx.MockTransport; no network calls.
"""

import base64
import time
from urllib.parse import parse_qs, urlsplit

import httpx
import pytest
from jose import jwt

from federated_auth.providers.openid_connect import (
    AuthenticationError,
    OpenIDConnectProvider,
    OpenIDConnectSession,
)

ISSUER = "https://idp.example.com"
DISCOVERY_URL = f"{ISSUER}/.well-known/openid-configuration"
SIGNING_SECRET = "test-signing-secret-with-enough-bytes"

DISCOVERY = {
    "issuer": ISSUER,
    "authorization_endpoint": f"{ISSUER}/authorize",
    "token_endpoint": f"{ISSUER}/token",
    "userinfo_endpoint": f"{ISSUER}/userinfo",
    "jwks_uri": f"{ISSUER}/jwks",
}

JWKS = {
    "keys": [{
        "kty": "oct",
        "alg": "HS256",
        "k": base64.urlsafe_b64encode(SIGNING_SECRET.encode()).decode().rstrip("="),
    }]
}


def make_id_token(**overrides) -> str:
    claims = {
        "iss": ISSUER,
        "aud": "client-id",
        "sub": "user-123",
        "email": "homer@example.com",
        "exp": int(time.time()) + 300,
        "iat": int(time.time()),
    }
    claims.update(overrides)
    return jwt.encode(claims, SIGNING_SECRET, algorithm="HS256")


class IdentityProviderStub:
    """Routes requests to canned discovery, token, userinfo and JWKS responses."""

    def __init__(self, token_status=200, tokens=None, userinfo=None, discovery=None):
        self.token_status = token_status
        self.tokens = tokens if tokens is not None else {
            "access_token": "access-123",
            "refresh_token": "refresh-123",
            "expires_in": 3600,
        }
        self.userinfo = userinfo if userinfo is not None else {
            "sub": "user-123",
            "email": "homer@example.com",
            "name": "Homer Simpson",
            "given_name": "Homer",
            "family_name": "Simpson",
            "picture": "https://img.example.com/homer.png",
        }
        self.discovery = discovery or DISCOVERY
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path
        if path == "/.well-known/openid-configuration":
            return httpx.Response(200, json=self.discovery)
        if path == "/token":
            return httpx.Response(self.token_status, json=self.tokens)
        if path == "/userinfo":
            if request.headers.get("Authorization") != "Bearer access-123":
                return httpx.Response(401, json={"error": "invalid_token"})
            return httpx.Response(200, json=self.userinfo)
        if path == "/jwks":
            return httpx.Response(200, json=JWKS)
        return httpx.Response(404)


def make_provider(stub: IdentityProviderStub, **kwargs) -> OpenIDConnectProvider:
    return OpenIDConnectProvider(
        client_key="client-id",
        secret="client-secret",
        callback_url="http://localhost:3000/auth/openid-connect/callback",
        discovery_url=DISCOVERY_URL,
        transport=httpx.MockTransport(stub),
        **kwargs,
    )


@pytest.mark.unit
class TestBeginAuth:

    @pytest.mark.asyncio
    async def test_auth_url_from_discovery(self):
        provider = make_provider(IdentityProviderStub())

        session = await provider.begin_auth("state-abc")

        url = urlsplit(session.get_auth_url())
        query = parse_qs(url.query)
        assert f"{url.scheme}://{url.netloc}{url.path}" == f"{ISSUER}/authorize"
        assert query["state"] == ["state-abc"]
        assert query["client_id"] == ["client-id"]
        assert query["response_type"] == ["code"]
        assert query["scope"] == ["openid email profile"]

    @pytest.mark.asyncio
    async def test_discovery_is_cached(self):
        stub = IdentityProviderStub()
        provider = make_provider(stub)

        await provider.begin_auth("a")
        await provider.begin_auth("b")

        assert len(stub.requests) == 1

    def test_openid_scope_always_requested(self):
        provider = make_provider(IdentityProviderStub(), scopes=["email"])

        assert provider.scopes == ["openid", "email"]


@pytest.mark.unit
class TestAuthorize:

    @pytest.mark.asyncio
    async def test_code_exchange_sets_tokens(self):
        stub = IdentityProviderStub()
        provider = make_provider(stub)
        session = await provider.begin_auth("state")

        token = await session.authorize(provider, {"code": ["auth-code"], "state": ["state"]})

        assert token == "access-123"
        assert session.refresh_token == "refresh-123"
        assert session.expires_at is not None
        form = parse_qs(stub.requests[-1].content.decode())
        assert form["grant_type"] == ["authorization_code"]
        assert form["code"] == ["auth-code"]
        assert form["redirect_uri"] == ["http://localhost:3000/auth/openid-connect/callback"]

    @pytest.mark.asyncio
    async def test_missing_code_raises(self):
        provider = make_provider(IdentityProviderStub())
        session = OpenIDConnectSession(auth_url=f"{ISSUER}/authorize")

        with pytest.raises(AuthenticationError, match="access_denied"):
            await session.authorize(provider, {"error": ["access_denied"]})

    @pytest.mark.asyncio
    async def test_token_endpoint_error_raises(self):
        provider = make_provider(IdentityProviderStub(token_status=400, tokens={"error": "invalid_grant"}))
        session = OpenIDConnectSession(auth_url=f"{ISSUER}/authorize")

        with pytest.raises(AuthenticationError, match="Token exchange failed: 400"):
            await session.authorize(provider, {"code": ["bad"]})


@pytest.mark.unit
class TestSessionSerialization:

    @pytest.mark.asyncio
    async def test_round_trip(self):
        """Unmarshal(marshal(s)) reproduces auth URL and token state"""
        provider = make_provider(IdentityProviderStub())
        session = await provider.begin_auth("state")
        await session.authorize(provider, {"code": ["auth-code"]})

        restored = provider.unmarshal_session(session.marshal())

        assert restored.get_auth_url() == session.get_auth_url()
        assert restored.access_token == session.access_token
        assert restored.refresh_token == session.refresh_token
        assert restored.expires_at == session.expires_at

    def test_missing_auth_url_raises(self):
        with pytest.raises(ValueError):
            OpenIDConnectSession().get_auth_url()


@pytest.mark.unit
class TestFetchUser:

    @pytest.mark.asyncio
    async def test_requires_access_token(self):
        provider = make_provider(IdentityProviderStub())

        with pytest.raises(AuthenticationError, match="without access token"):
            await provider.fetch_user(OpenIDConnectSession(auth_url="x"))

    @pytest.mark.asyncio
    async def test_user_from_userinfo(self):
        provider = make_provider(IdentityProviderStub())

        user = await provider.fetch_user(OpenIDConnectSession(auth_url="x", access_token="access-123"))

        assert user.provider == "openid-connect"
        assert user.user_id == "user-123"
        assert user.email == "homer@example.com"
        assert user.name == "Homer Simpson"
        assert user.first_name == "Homer"
        assert user.last_name == "Simpson"
        assert user.avatar_url == "https://img.example.com/homer.png"
        assert user.raw_data["sub"] == "user-123"

    @pytest.mark.asyncio
    async def test_rejected_token_raises(self):
        provider = make_provider(IdentityProviderStub())

        with pytest.raises(AuthenticationError, match="Userinfo request failed: 401"):
            await provider.fetch_user(OpenIDConnectSession(auth_url="x", access_token="expired"))

    @pytest.mark.asyncio
    async def test_null_claims_become_empty(self):
        """Claims present but null do not break the login"""
        stub = IdentityProviderStub(userinfo={
            "sub": "u1",
            "email": None,
            "name": "Ann",
            "given_name": None,
            "nickname": None,
            "preferred_username": "ann",
            "picture": None,
        })
        provider = make_provider(stub)

        user = await provider.fetch_user(OpenIDConnectSession(auth_url="x", access_token="access-123"))

        assert user.user_id == "u1"
        assert user.name == "Ann"
        assert user.email == ""
        assert user.first_name == ""
        assert user.nick_name == "ann"
        assert user.avatar_url == ""

    @pytest.mark.asyncio
    async def test_claims_from_id_token(self):
        """Without a userinfo endpoint the verified ID token claims are used"""
        discovery = {k: v for k, v in DISCOVERY.items() if k != "userinfo_endpoint"}
        provider = make_provider(IdentityProviderStub(discovery=discovery), id_token_algorithms=["HS256"])
        session = OpenIDConnectSession(auth_url="x", access_token="access-123", id_token=make_id_token())

        user = await provider.fetch_user(session)

        assert user.user_id == "user-123"
        assert user.email == "homer@example.com"
        assert user.id_token == session.id_token

    @pytest.mark.asyncio
    async def test_id_token_for_other_audience_rejected(self):
        discovery = {k: v for k, v in DISCOVERY.items() if k != "userinfo_endpoint"}
        provider = make_provider(IdentityProviderStub(discovery=discovery), id_token_algorithms=["HS256"])
        session = OpenIDConnectSession(
            auth_url="x", access_token="access-123", id_token=make_id_token(aud="someone-else")
        )

        with pytest.raises(AuthenticationError, match="Invalid ID token"):
            await provider.fetch_user(session)
