"""Provider registry.

Process-wide table from provider name to Provider. It is populated once during
startup, then frozen; request handling only ever reads it.
"""

import logging
from typing import Dict, Optional, Tuple

from .errors import ProviderAlreadyRegistered, ProviderNotRegistered, RegistryFrozen
from .provider import Provider

logger = logging.getLogger(__name__)


class ProviderRegistry:
    """Name-keyed provider table with an initialization phase and a frozen serving phase."""

    def __init__(self):
        self._providers: Dict[str, Provider] = {}
        self._frozen = False

    @property
    def frozen(self) -> bool:
        return self._frozen

    def register(self, *providers: Provider) -> None:
        """Add providers to the registry.

        Raises:
            RegistryFrozen: If the registry has already been frozen
            ProviderAlreadyRegistered: If a provider name is taken; nothing is registered
        """
        if self._frozen:
            raise RegistryFrozen("cannot register providers after the registry is frozen")

        pending: Dict[str, Provider] = {}
        for provider in providers:
            name = provider.name
            if name in self._providers or name in pending:
                raise ProviderAlreadyRegistered(name)
            pending[name] = provider

        self._providers.update(pending)
        for name in pending:
            logger.info(f"Registered auth provider: {name}")

    def freeze(self) -> None:
        """Stop accepting registrations."""
        self._frozen = True

    def lookup(self, name: str) -> Provider:
        provider = self._providers.get(name)
        if provider is None:
            raise ProviderNotRegistered(name)
        return provider

    def list_names(self) -> Tuple[str, ...]:
        """Registered provider names in sorted order."""
        return tuple(sorted(self._providers))

    def providers(self) -> Tuple[Provider, ...]:
        return tuple(self._providers[name] for name in self.list_names())

    def clear(self) -> None:
        """Drop every provider and reopen registration (for testing)."""
        self._providers = {}
        self._frozen = False

    def __contains__(self, name: str) -> bool:
        return name in self._providers

    def __len__(self) -> int:
        return len(self._providers)


# Global registry instance (initialized on first call)
_registry: Optional[ProviderRegistry] = None


def get_provider_registry() -> ProviderRegistry:
    """Get the process-wide provider registry."""
    global _registry
    if _registry is None:
        _registry = ProviderRegistry()
    return _registry


def use_providers(*providers: Provider) -> ProviderRegistry:
    """Register providers with the process-wide registry."""
    registry = get_provider_registry()
    registry.register(*providers)
    return registry


def reset_provider_registry() -> None:
    """Reset the global registry instance (for testing)."""
    global _registry
    _registry = None
