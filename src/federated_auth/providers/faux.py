"""Deterministic in-process provider for flow testing (no network calls)."""

import json
from typing import List, Mapping, Optional
from urllib.parse import urlencode

from federated_auth.core.auth.provider import Provider, Session, User

FAUX_AUTH_ENDPOINT = "http://example.com/auth"
FAUX_ACCESS_TOKEN = "access"


class FauxSession(Session):
    """Session for the faux provider, serialized with the same keys on every marshal."""

    def __init__(
        self,
        id: str = "",
        name: str = "",
        email: str = "",
        auth_url: str = "",
        access_token: str = "",
    ):
        self.id = id
        self.name = name
        self.email = email
        self.auth_url = auth_url
        self.access_token = access_token

    def marshal(self) -> str:
        return json.dumps({
            "ID": self.id,
            "Name": self.name,
            "Email": self.email,
            "AuthURL": self.auth_url,
            "AccessToken": self.access_token,
        })

    @classmethod
    def from_json(cls, data: str) -> "FauxSession":
        values = json.loads(data)
        if not isinstance(values, dict):
            raise ValueError("faux session must be a JSON object")
        return cls(
            id=values.get("ID", ""),
            name=values.get("Name", ""),
            email=values.get("Email", ""),
            auth_url=values.get("AuthURL", ""),
            access_token=values.get("AccessToken", ""),
        )

    def get_auth_url(self) -> str:
        return self.auth_url

    async def authorize(self, provider: Provider, params: Mapping[str, List[str]]) -> str:
        self.access_token = FAUX_ACCESS_TOKEN
        return self.access_token


class FauxProvider(Provider):
    """Provider that issues fixed tokens and echoes the session's identity."""

    def __init__(self, callback_url: str = "", client_key: str = "", name: Optional[str] = None):
        self.callback_url = callback_url
        self.client_key = client_key
        self._name = name or "faux"

    @property
    def name(self) -> str:
        return self._name

    async def begin_auth(self, state: str) -> FauxSession:
        query = urlencode({
            "client_id": self.client_key,
            "redirect_uri": self.callback_url,
            "response_type": "code",
            "state": state,
        })
        return FauxSession(id="id", auth_url=f"{FAUX_AUTH_ENDPOINT}?{query}")

    def unmarshal_session(self, data: str) -> FauxSession:
        return FauxSession.from_json(data)

    async def fetch_user(self, session: FauxSession) -> User:
        if not session.access_token:
            raise ValueError(f"{self.name} cannot get user information without access token")
        return User(
            provider=self.name,
            user_id=session.id,
            name=session.name,
            email=session.email,
            access_token=session.access_token,
        )
