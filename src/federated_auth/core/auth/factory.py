"""Authentication provider factory.

Instantiates the configured identity providers from environment configuration
and loads them into the process-wide registry at startup.
"""

import logging
from typing import List

from federated_auth.config.settings import Settings

from .provider import Provider
from .registry import ProviderRegistry, get_provider_registry

logger = logging.getLogger(__name__)


def build_providers(settings: Settings) -> List[Provider]:
    """Build every provider that has complete configuration.

    - faux: FAUX_ENABLED=true (development and tests only)
    - openid-connect: OPENID_CONNECT_KEY, OPENID_CONNECT_SECRET, OPENID_CONNECT_DISCOVERY_URL
    - github: GITHUB_KEY, GITHUB_SECRET

    Raises:
        ValueError: If a provider is only partially configured
    """
    providers: List[Provider] = []

    if settings.faux_enabled:
        from federated_auth.providers.faux import FauxProvider
        if settings.environment == "production":
            logger.warning("Faux provider enabled in production! Disable FAUX_ENABLED.")
        providers.append(FauxProvider(callback_url=settings.callback_url("faux")))

    oidc_values = [
        settings.openid_connect_key,
        settings.openid_connect_secret,
        settings.openid_connect_discovery_url,
    ]
    if any(oidc_values):
        if not all(oidc_values):
            raise ValueError(
                "OpenID Connect provider requires: OPENID_CONNECT_KEY, "
                "OPENID_CONNECT_SECRET, OPENID_CONNECT_DISCOVERY_URL"
            )
        from federated_auth.providers.openid_connect import OpenIDConnectProvider
        providers.append(OpenIDConnectProvider(
            client_key=settings.openid_connect_key,
            secret=settings.openid_connect_secret,
            callback_url=settings.callback_url("openid-connect"),
            discovery_url=settings.openid_connect_discovery_url,
            scopes=settings.openid_connect_scopes.split(),
        ))

    if settings.github_key or settings.github_secret:
        if not (settings.github_key and settings.github_secret):
            raise ValueError("GitHub provider requires: GITHUB_KEY, GITHUB_SECRET")
        from federated_auth.providers.github import GitHubProvider
        providers.append(GitHubProvider(
            client_key=settings.github_key,
            secret=settings.github_secret,
            callback_url=settings.callback_url("github"),
            scopes=settings.github_scopes.split(),
        ))

    return providers


def initialize_providers(settings: Settings) -> ProviderRegistry:
    """Register the configured providers and freeze the global registry."""
    registry = get_provider_registry()
    registry.register(*build_providers(settings))
    registry.freeze()

    if not len(registry):
        logger.warning("No auth providers configured")
    logger.info(f"Auth providers initialized: {', '.join(registry.list_names()) or 'none'}")
    return registry
