"""OpenID Connect (OIDC) provider based on auto discovery.

Supports any provider publishing .well-known/openid-configuration:
- Google
- Microsoft Azure AD / Entra ID
- Okta
- Auth0
- Keycloak

See https://openid.net/specs/openid-connect-discovery-1_0.html
"""

import json
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Mapping, Optional
from urllib.parse import urlencode

import httpx
from jose import jwt, JWTError

from federated_auth.core.auth.provider import Provider, Session, User

logger = logging.getLogger(__name__)

DEFAULT_SCOPES = ["openid", "email", "profile"]


class AuthenticationError(Exception):
    """Authentication with the OpenID Connect provider failed."""
    pass


class OpenIDConnectSession(Session):
    """Authorization URL plus the tokens obtained from the token endpoint."""

    def __init__(
        self,
        auth_url: str = "",
        access_token: str = "",
        refresh_token: str = "",
        expires_at: Optional[datetime] = None,
        id_token: str = "",
    ):
        self.auth_url = auth_url
        self.access_token = access_token
        self.refresh_token = refresh_token
        self.expires_at = expires_at
        self.id_token = id_token

    def marshal(self) -> str:
        return json.dumps({
            "AuthURL": self.auth_url,
            "AccessToken": self.access_token,
            "RefreshToken": self.refresh_token,
            "ExpiresAt": self.expires_at.isoformat() if self.expires_at else None,
            "IDToken": self.id_token,
        })

    @classmethod
    def from_json(cls, data: str) -> "OpenIDConnectSession":
        values = json.loads(data)
        expires_at = values.get("ExpiresAt")
        return cls(
            auth_url=values.get("AuthURL", ""),
            access_token=values.get("AccessToken", ""),
            refresh_token=values.get("RefreshToken", ""),
            expires_at=datetime.fromisoformat(expires_at) if expires_at else None,
            id_token=values.get("IDToken", ""),
        )

    def get_auth_url(self) -> str:
        if not self.auth_url:
            raise ValueError("an auth URL has not been set")
        return self.auth_url

    async def authorize(self, provider: "OpenIDConnectProvider", params: Mapping[str, List[str]]) -> str:
        """Exchange the authorization code from the callback for tokens."""
        code = (params.get("code") or [""])[0]
        if not code:
            error = (params.get("error") or ["missing authorization code"])[0]
            raise AuthenticationError(f"Callback carried no code: {error}")

        tokens = await provider.exchange_code(code)

        self.access_token = tokens["access_token"]
        self.refresh_token = tokens.get("refresh_token", "")
        self.id_token = tokens.get("id_token", "")
        expires_in = tokens.get("expires_in")
        if expires_in:
            self.expires_at = datetime.now(timezone.utc) + timedelta(seconds=int(expires_in))
        return self.access_token


class OpenIDConnectProvider(Provider):
    """OpenID Connect provider configured from a discovery document.

    Example Configuration:
        # Google
        OPENID_CONNECT_DISCOVERY_URL=https://accounts.google.com/.well-known/openid-configuration
        OPENID_CONNECT_KEY=xxx.apps.googleusercontent.com
        OPENID_CONNECT_SECRET=GOCSPX-xxx

        # Okta
        OPENID_CONNECT_DISCOVERY_URL=https://{domain}.okta.com/oauth2/default/.well-known/openid-configuration
    """

    def __init__(
        self,
        client_key: str,
        secret: str,
        callback_url: str,
        discovery_url: str,
        scopes: Optional[List[str]] = None,
        name: str = "openid-connect",
        id_token_algorithms: Optional[List[str]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize OIDC provider.

        Args:
            client_key: OAuth 2.0 client ID
            secret: OAuth 2.0 client secret
            callback_url: Redirect URI registered with the provider
            discovery_url: Full URL of the discovery document
            scopes: Scopes to request (default: openid email profile)
            name: Registry name
            id_token_algorithms: Accepted ID token signature algorithms (default: RS256)
            transport: Optional httpx transport (used by tests)
        """
        self.client_key = client_key
        self.secret = secret
        self.callback_url = callback_url
        self.discovery_url = discovery_url
        self.scopes = scopes or list(DEFAULT_SCOPES)
        if "openid" not in self.scopes:
            self.scopes.insert(0, "openid")
        self._name = name
        self.id_token_algorithms = id_token_algorithms or ["RS256"]
        self._transport = transport

        # Discovery endpoints (lazy-loaded)
        self._discovery: Optional[dict] = None
        self._jwks: Optional[dict] = None

    @property
    def name(self) -> str:
        return self._name

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=self._transport, timeout=10.0)

    async def _get_discovery(self) -> dict:
        """Fetch OIDC discovery document (.well-known/openid-configuration)."""
        if self._discovery is None:
            async with self._client() as client:
                response = await client.get(self.discovery_url)
                response.raise_for_status()
                self._discovery = response.json()
                logger.info(f"OIDC discovery loaded from {self.discovery_url}")
        return self._discovery

    async def _get_jwks(self) -> dict:
        """Fetch JSON Web Key Set for token validation."""
        if self._jwks is None:
            discovery = await self._get_discovery()
            jwks_uri = discovery["jwks_uri"]
            async with self._client() as client:
                response = await client.get(jwks_uri)
                response.raise_for_status()
                self._jwks = response.json()
                logger.info(f"OIDC JWKS loaded from {jwks_uri}")
        return self._jwks

    async def begin_auth(self, state: str) -> OpenIDConnectSession:
        """Build the authorization URL for a new attempt."""
        discovery = await self._get_discovery()
        params = {
            "client_id": self.client_key,
            "response_type": "code",
            "scope": " ".join(self.scopes),
            "redirect_uri": self.callback_url,
            "state": state,
        }
        return OpenIDConnectSession(auth_url=f"{discovery['authorization_endpoint']}?{urlencode(params)}")

    def unmarshal_session(self, data: str) -> OpenIDConnectSession:
        return OpenIDConnectSession.from_json(data)

    async def exchange_code(self, code: str) -> dict:
        """Exchange authorization code for tokens.

        Raises:
            AuthenticationError: If the token endpoint rejects the code
        """
        discovery = await self._get_discovery()
        data = {
            "grant_type": "authorization_code",
            "code": code,
            "redirect_uri": self.callback_url,
            "client_id": self.client_key,
            "client_secret": self.secret,
        }

        async with self._client() as client:
            response = await client.post(
                discovery["token_endpoint"],
                data=data,
                headers={"Accept": "application/json"},
            )

        if response.status_code != 200:
            logger.error(f"OIDC token exchange failed: {response.text}")
            raise AuthenticationError(f"Token exchange failed: {response.status_code}")

        tokens = response.json()
        if not tokens.get("access_token"):
            raise AuthenticationError("Token response carried no access_token")
        return tokens

    async def fetch_user(self, session: OpenIDConnectSession) -> User:
        """Resolve the user from the ID token claims and the userinfo endpoint.

        Raises:
            AuthenticationError: If the session has no access token or the claims are invalid
        """
        if not session.access_token:
            raise AuthenticationError(f"{self.name} cannot get user information without access token")

        claims: Dict[str, Any] = {}
        if session.id_token:
            try:
                claims = await self._decode_id_token(session.id_token)
            except JWTError as e:
                logger.warning(f"OIDC ID token validation failed: {e}")
                raise AuthenticationError(f"Invalid ID token: {e}") from e

        discovery = await self._get_discovery()
        userinfo_endpoint = discovery.get("userinfo_endpoint")
        if userinfo_endpoint:
            claims.update(await self._fetch_userinfo(userinfo_endpoint, session.access_token))

        if not claims.get("sub"):
            raise AuthenticationError("Provider returned no subject claim")

        return User(
            provider=self.name,
            user_id=str(claims["sub"]),
            email=claims.get("email") or "",
            name=claims.get("name") or "",
            first_name=claims.get("given_name") or "",
            last_name=claims.get("family_name") or "",
            nick_name=claims.get("nickname") or claims.get("preferred_username") or "",
            avatar_url=claims.get("picture") or "",
            location=claims.get("locale") or "",
            access_token=session.access_token,
            refresh_token=session.refresh_token,
            expires_at=session.expires_at,
            id_token=session.id_token,
            raw_data=claims,
        )

    async def _fetch_userinfo(self, endpoint: str, access_token: str) -> dict:
        async with self._client() as client:
            response = await client.get(endpoint, headers={"Authorization": f"Bearer {access_token}"})

        if response.status_code != 200:
            logger.error(f"OIDC userinfo request failed: {response.status_code}")
            raise AuthenticationError(f"Userinfo request failed: {response.status_code}")
        return response.json()

    async def _decode_id_token(self, id_token: str) -> dict:
        """Decode and validate an OIDC ID token.

        Raises:
            JWTError: If token is invalid
        """
        jwks = await self._get_jwks()
        discovery = await self._get_discovery()

        # Validates signature, expiration, issuer, audience
        return jwt.decode(
            id_token,
            jwks,
            algorithms=self.id_token_algorithms,
            issuer=discovery.get("issuer"),
            audience=self.client_key,
            options={"verify_at_hash": False},
        )
