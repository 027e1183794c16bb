"""Authentication flow errors.

Every failure raised by the orchestration core derives from AuthFlowError.
Each class carries a stable error code and the HTTP status the web layer
should answer with; the routes translate them into HTTPException.
"""


class AuthFlowError(Exception):
    """Base class for authentication flow failures."""

    error = "auth_flow_error"
    status_code = 400

    def __init__(self, message: str = None):
        super().__init__(message or self.__doc__)


class ProviderNotRegistered(AuthFlowError):
    """No provider is registered under the requested name."""

    error = "provider_not_registered"

    def __init__(self, name: str):
        super().__init__(f"no provider for {name!r} exists")
        self.name = name


class ProviderNameMissing(AuthFlowError):
    """You must select a provider."""

    error = "provider_name_missing"


class ProviderAlreadyRegistered(AuthFlowError):
    """A provider with the same name is already registered."""

    error = "provider_already_registered"
    status_code = 500

    def __init__(self, name: str):
        super().__init__(f"provider {name!r} is already registered")
        self.name = name


class RegistryFrozen(AuthFlowError):
    """The provider registry no longer accepts registrations."""

    error = "registry_frozen"
    status_code = 500


class ProviderBeginAuthFailed(AuthFlowError):
    """The provider could not start an authentication attempt."""

    error = "begin_auth_failed"
    status_code = 502


class SessionNotFound(AuthFlowError):
    """Could not find a matching session for this request."""

    error = "session_not_found"


class SessionUnmarshalFailed(AuthFlowError):
    """The stored provider session could not be restored."""

    error = "session_unmarshal_failed"


class SessionCodecError(SessionUnmarshalFailed):
    """The stored provider session is corrupt and cannot be decompressed."""

    error = "session_codec_error"


class StateMismatch(AuthFlowError):
    """State token mismatch."""

    error = "state_mismatch"
    status_code = 403


class AuthorizeFailed(AuthFlowError):
    """The provider rejected the authorization callback."""

    error = "authorize_failed"
    status_code = 401


class FetchUserFailed(AuthFlowError):
    """The provider did not return user information."""

    error = "fetch_user_failed"
    status_code = 401


class SessionSaveFailed(AuthFlowError):
    """Could not save the user session."""

    error = "session_save_failed"
    status_code = 500


class SessionInvalidationFailed(AuthFlowError):
    """Could not delete user session."""

    error = "session_invalidation_failed"
    status_code = 500


class EntropyUnavailable(AuthFlowError):
    """Source of randomness unavailable."""

    error = "entropy_unavailable"
    status_code = 503
