"""Identity provider adapters implementing the Provider/Session contract."""

from .faux import FauxProvider, FauxSession
from .github import GitHubProvider, GitHubSession
from .openid_connect import OpenIDConnectProvider, OpenIDConnectSession

__all__ = [
    "FauxProvider",
    "FauxSession",
    "GitHubProvider",
    "GitHubSession",
    "OpenIDConnectProvider",
    "OpenIDConnectSession",
]
