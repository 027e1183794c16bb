"""Abstract provider and session contracts.

This module defines the contract that every identity provider adapter must implement.
The orchestrator only ever talks to these two interfaces; OAuth2 code exchange,
discovery-based OpenID Connect and any other protocol family stay hidden inside
the adapter's Session.authorize and Provider.fetch_user.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional

from pydantic import BaseModel, Field


class User(BaseModel):
    """Normalized user identity returned by a provider.

    Attributes:
        provider: Name of the provider that proved the identity
        user_id: Provider-issued user identifier
        name: Full name for display
        email: Email address (may be empty when the provider does not expose it)
        raw_data: Unmodified provider payload the identity was built from
    """
    provider: str
    user_id: str = ""
    name: str = ""
    email: str = ""
    first_name: str = ""
    last_name: str = ""
    nick_name: str = ""
    description: str = ""
    avatar_url: str = ""
    location: str = ""
    access_token: str = ""
    access_token_secret: str = ""
    refresh_token: str = ""
    expires_at: Optional[datetime] = None
    id_token: str = ""
    raw_data: Dict[str, Any] = Field(default_factory=dict)


class Session(ABC):
    """Opaque, provider-specific progress of one authentication attempt.

    A session is created by Provider.begin_auth, persisted between the redirect
    and the callback through marshal/unmarshal_session, and mutated by authorize.
    """

    @abstractmethod
    def marshal(self) -> str:
        """Serialize the session into a string."""

    @abstractmethod
    def get_auth_url(self) -> str:
        """Return the URL the user must visit to authenticate.

        Raises:
            ValueError: If the session carries no authorization URL
        """

    @abstractmethod
    async def authorize(self, provider: "Provider", params: Mapping[str, List[str]]) -> str:
        """Exchange the callback parameters for an access token.

        Mutates the session's token state.

        Args:
            provider: Provider the session belongs to
            params: Callback query or form parameters

        Returns:
            The access token
        """


class Provider(ABC):
    """Abstract interface for third-party identity providers.

    Providers are immutable once registered and are shared by every request,
    so implementations must keep per-attempt state in their Session objects.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Unique provider name used as the registry key."""

    @abstractmethod
    async def begin_auth(self, state: str) -> Session:
        """Start an authentication attempt bound to the given state token."""

    @abstractmethod
    def unmarshal_session(self, data: str) -> Session:
        """Restore a session previously produced by Session.marshal."""

    @abstractmethod
    async def fetch_user(self, session: Session) -> User:
        """Resolve the user identity for an authorized session.

        Raises:
            Exception: If the session holds no usable token or the provider call fails
        """
