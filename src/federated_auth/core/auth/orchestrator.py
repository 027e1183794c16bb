"""Authentication flow orchestrator.

Drives a provider through the begin -> callback -> user round-trip:

- begin_auth: resolve the provider, issue a state token, start a provider
  session and persist it (compressed) in the client's session store
- complete_user_auth: restore the stored session, validate the echoed state,
  exchange the callback for a token if needed and resolve the User
- logout: invalidate the client's session store entry

The stored entry maps provider name -> compressed serialized Session. It is
always invalidated once complete_user_auth has found it, whatever the outcome.
"""

import logging
from typing import Optional

from . import codec
from .errors import (
    AuthFlowError,
    AuthorizeFailed,
    FetchUserFailed,
    ProviderBeginAuthFailed,
    ProviderNameMissing,
    SessionInvalidationFailed,
    SessionNotFound,
    SessionUnmarshalFailed,
    StateMismatch,
)
from .provider import Provider, Session, User
from .registry import ProviderRegistry
from .request import AuthRequest
from .state import StateGuard

logger = logging.getLogger(__name__)

PROVIDER_PARAM = "provider"
# legacy routers pass the route variable through the query string
LEGACY_PROVIDER_PARAM = ":provider"


class AuthOrchestrator:
    """Provider-agnostic authentication state machine.

    Per (client, provider) pair the flow moves Idle -> AuthInitiated ->
    CallbackPending -> Authorized | Failed. Nothing is kept between requests
    except the client's session store entry.
    """

    def __init__(
        self,
        registry: ProviderRegistry,
        state_guard: Optional[StateGuard] = None,
        invalidation_grace_seconds: int = 100,
    ):
        self.registry = registry
        self.state_guard = state_guard or StateGuard()
        self.invalidation_grace_seconds = invalidation_grace_seconds

    def resolve_provider_name(self, request: AuthRequest) -> str:
        """Name of the provider this request belongs to.

        Precedence: route parameter, then query parameter, then the first
        registered provider (in name order) with a session in progress.

        Raises:
            ProviderNameMissing: If no provider can be determined
        """
        name = request.path_params.get(PROVIDER_PARAM)
        if name:
            return name

        name = request.query_value(PROVIDER_PARAM) or request.query_value(LEGACY_PROVIDER_PARAM)
        if name:
            return name

        for candidate in self.registry.list_names():
            if request.session.get(candidate):
                logger.debug(f"Provider {candidate} deduced from session in progress")
                return candidate

        raise ProviderNameMissing()

    async def begin_auth(self, request: AuthRequest) -> str:
        """Start authentication and return the URL to send the user to.

        Raises:
            ProviderNameMissing, ProviderNotRegistered, EntropyUnavailable,
            ProviderBeginAuthFailed, SessionSaveFailed
        """
        name = self.resolve_provider_name(request)
        provider = self.registry.lookup(name)
        state = self.state_guard.issue_state(request.query_value("state"))

        try:
            session = await provider.begin_auth(state)
            auth_url = session.get_auth_url()
        except AuthFlowError:
            raise
        except Exception as e:
            logger.error(f"Provider {name} failed to begin auth: {e}")
            raise ProviderBeginAuthFailed(f"{name}: {e}") from e

        await self.store_in_session(name, session.marshal(), request)
        logger.info(f"Began authentication with provider {name}")
        return auth_url

    async def complete_user_auth(self, request: AuthRequest) -> User:
        """Validate the provider callback and resolve the authenticated user.

        Raises:
            ProviderNameMissing, ProviderNotRegistered, SessionNotFound,
            SessionUnmarshalFailed, StateMismatch, AuthorizeFailed,
            FetchUserFailed, SessionSaveFailed, SessionInvalidationFailed
        """
        name = self.resolve_provider_name(request)
        provider = self.registry.lookup(name)
        value = self.get_from_session(name, request)

        failed = True
        try:
            user = await self._complete(provider, value, request)
            failed = False
            logger.info(f"Resolved user {user.user_id or user.email or '?'} via {name}")
            return user
        finally:
            await self._invalidate_after_completion(request, failed)

    async def _complete(self, provider: Provider, value: str, request: AuthRequest) -> User:
        session = self._unmarshal(provider, value)
        self._validate_state(session, request)

        try:
            # user can be found with existing session data
            return await provider.fetch_user(session)
        except Exception as e:
            logger.debug(f"No user from stored {provider.name} session, authorizing: {e}")

        try:
            await session.authorize(provider, request.callback_params())
        except Exception as e:
            logger.warning(f"Provider {provider.name} rejected authorization: {e}")
            raise AuthorizeFailed(f"{provider.name}: {e}") from e

        await self.store_in_session(provider.name, session.marshal(), request)

        try:
            return await provider.fetch_user(session)
        except Exception as e:
            logger.warning(f"Provider {provider.name} failed to fetch user: {e}")
            raise FetchUserFailed(f"{provider.name}: {e}") from e

    def _unmarshal(self, provider: Provider, value: str) -> Session:
        plain = codec.decompress(value)
        try:
            return provider.unmarshal_session(plain)
        except Exception as e:
            raise SessionUnmarshalFailed(f"{provider.name}: {e}") from e

    def _validate_state(self, session: Session, request: AuthRequest) -> None:
        try:
            auth_url = session.get_auth_url()
        except Exception as e:
            raise StateMismatch(f"could not read original authorization URL: {e}") from e
        self.state_guard.validate(auth_url, self.state_guard.extract_state(request))

    async def _invalidate_after_completion(self, request: AuthRequest, failed: bool) -> None:
        try:
            await self.logout(request)
        except SessionInvalidationFailed as e:
            if not failed:
                raise
            # keep the flow's own error visible
            logger.error(f"Session cleanup after failed callback also failed: {e}")

    async def logout(self, request: AuthRequest) -> None:
        """Invalidate the client's session entry for the authentication flow.

        Raises:
            SessionInvalidationFailed: If the store cannot be written
        """
        await request.session.invalidate(self.invalidation_grace_seconds)
        logger.info("Logout: session invalidated")

    async def store_in_session(self, key: str, value: str, request: AuthRequest) -> None:
        """Compress value, store it under key and save the session."""
        request.session.set(key, codec.compress(value))
        await request.session.save()

    def get_from_session(self, key: str, request: AuthRequest) -> str:
        """Return the compressed value stored under key.

        Raises:
            SessionNotFound: If nothing is stored under key
        """
        value = request.session.get(key)
        if not value:
            raise SessionNotFound()
        return value
