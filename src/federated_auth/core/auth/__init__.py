"""Authentication orchestration core.

Unifies third-party identity provider flows behind one protocol:
- begin_auth: produce the authorization URL for a provider
- complete_user_auth: validate the callback and resolve the User
- logout: invalidate the client's in-progress authentication
"""

from .errors import AuthFlowError
from .orchestrator import AuthOrchestrator
from .provider import Provider, Session, User
from .registry import ProviderRegistry, get_provider_registry, use_providers
from .request import AuthRequest
from .state import StateGuard

__all__ = [
    "AuthFlowError",
    "AuthOrchestrator",
    "AuthRequest",
    "Provider",
    "ProviderRegistry",
    "Session",
    "StateGuard",
    "User",
    "get_provider_registry",
    "use_providers",
]
