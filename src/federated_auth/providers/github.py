"""GitHub OAuth2 provider."""

import json
import logging
from typing import List, Mapping, Optional
from urllib.parse import urlencode

import httpx

from federated_auth.core.auth.provider import Provider, Session, User

logger = logging.getLogger(__name__)

GITHUB_AUTHORIZE_URL = "https://github.com/login/oauth/authorize"
GITHUB_TOKEN_URL = "https://github.com/login/oauth/access_token"
GITHUB_USER_URL = "https://api.github.com/user"
GITHUB_EMAILS_URL = "https://api.github.com/user/emails"


class GitHubError(Exception):
    """GitHub rejected a token or API request."""
    pass


class GitHubSession(Session):
    def __init__(self, auth_url: str = "", access_token: str = ""):
        self.auth_url = auth_url
        self.access_token = access_token

    def marshal(self) -> str:
        return json.dumps({"AuthURL": self.auth_url, "AccessToken": self.access_token})

    def get_auth_url(self) -> str:
        if not self.auth_url:
            raise ValueError("an auth URL has not been set")
        return self.auth_url

    async def authorize(self, provider: "GitHubProvider", params: Mapping[str, List[str]]) -> str:
        code = (params.get("code") or [""])[0]
        if not code:
            raise GitHubError("callback carried no authorization code")
        self.access_token = await provider.exchange_code(code)
        return self.access_token


class GitHubProvider(Provider):
    """OAuth2 against github.com; user email falls back to the primary verified address."""

    def __init__(
        self,
        client_key: str,
        secret: str,
        callback_url: str,
        scopes: Optional[List[str]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.client_key = client_key
        self.secret = secret
        self.callback_url = callback_url
        self.scopes = scopes or ["read:user", "user:email"]
        self._transport = transport

    @property
    def name(self) -> str:
        return "github"

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=self._transport, timeout=10.0)

    async def begin_auth(self, state: str) -> GitHubSession:
        query = urlencode({
            "client_id": self.client_key,
            "redirect_uri": self.callback_url,
            "scope": " ".join(self.scopes),
            "state": state,
        })
        return GitHubSession(auth_url=f"{GITHUB_AUTHORIZE_URL}?{query}")

    def unmarshal_session(self, data: str) -> GitHubSession:
        values = json.loads(data)
        return GitHubSession(
            auth_url=values.get("AuthURL", ""),
            access_token=values.get("AccessToken", ""),
        )

    async def exchange_code(self, code: str) -> str:
        async with self._client() as client:
            response = await client.post(
                GITHUB_TOKEN_URL,
                data={
                    "client_id": self.client_key,
                    "client_secret": self.secret,
                    "code": code,
                    "redirect_uri": self.callback_url,
                },
                headers={"Accept": "application/json"},
            )

        if response.status_code != 200:
            logger.error(f"GitHub token exchange failed: {response.status_code}")
            raise GitHubError(f"Token exchange failed: {response.status_code}")

        # GitHub answers 200 with an error body for bad codes
        token_data = response.json()
        access_token = token_data.get("access_token")
        if not access_token:
            raise GitHubError(token_data.get("error_description", "No access token returned"))
        return access_token

    async def fetch_user(self, session: GitHubSession) -> User:
        if not session.access_token:
            raise GitHubError(f"{self.name} cannot get user information without access token")

        headers = {
            "Authorization": f"Bearer {session.access_token}",
            "Accept": "application/vnd.github+json",
        }
        async with self._client() as client:
            user_response = await client.get(GITHUB_USER_URL, headers=headers)
            if user_response.status_code != 200:
                raise GitHubError(f"GitHub API responded with a {user_response.status_code} trying to fetch user information")
            github_user = user_response.json()

            email = github_user.get("email")
            if not email:
                emails_response = await client.get(GITHUB_EMAILS_URL, headers=headers)
                if emails_response.status_code == 200:
                    primary_email = next(
                        (e for e in emails_response.json() if e.get("primary") and e.get("verified")),
                        None,
                    )
                    if primary_email:
                        email = primary_email.get("email")

        return User(
            provider=self.name,
            user_id=str(github_user.get("id", "")),
            name=github_user.get("name") or "",
            nick_name=github_user.get("login") or "",
            email=email or "",
            description=github_user.get("bio") or "",
            avatar_url=github_user.get("avatar_url") or "",
            location=github_user.get("location") or "",
            access_token=session.access_token,
            raw_data=github_user,
        )
