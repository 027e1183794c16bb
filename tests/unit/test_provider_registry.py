"""Unit tests for ProviderRegistry"""

import pytest

from federated_auth.core.auth.errors import (
    ProviderAlreadyRegistered,
    ProviderNotRegistered,
    RegistryFrozen,
)
from federated_auth.core.auth.registry import (
    ProviderRegistry,
    get_provider_registry,
    reset_provider_registry,
    use_providers,
)
from federated_auth.providers.faux import FauxProvider


@pytest.mark.unit
class TestRegister:
    """Test the initialization phase"""

    def test_register_and_lookup(self):
        registry = ProviderRegistry()
        provider = FauxProvider()

        registry.register(provider)

        assert registry.lookup("faux") is provider
        assert "faux" in registry

    def test_duplicate_name_rejected(self):
        """Bad input: duplicate names raise and register nothing new"""
        registry = ProviderRegistry()
        registry.register(FauxProvider())

        with pytest.raises(ProviderAlreadyRegistered):
            registry.register(FauxProvider(name="other"), FauxProvider())

        assert registry.list_names() == ("faux",)

    def test_duplicate_within_one_call_rejected(self):
        registry = ProviderRegistry()

        with pytest.raises(ProviderAlreadyRegistered):
            registry.register(FauxProvider(), FauxProvider())
        assert len(registry) == 0

    def test_register_after_freeze_rejected(self):
        registry = ProviderRegistry()
        registry.freeze()

        with pytest.raises(RegistryFrozen):
            registry.register(FauxProvider())

    def test_clear_reopens_registry(self):
        registry = ProviderRegistry()
        registry.register(FauxProvider())
        registry.freeze()

        registry.clear()

        assert len(registry) == 0
        assert not registry.frozen


@pytest.mark.unit
class TestLookup:
    """Test the serving phase"""

    def test_unknown_provider_raises(self):
        with pytest.raises(ProviderNotRegistered, match="no provider for 'github' exists"):
            ProviderRegistry().lookup("github")

    def test_names_are_sorted(self):
        """Names come back in deterministic order regardless of registration order"""
        registry = ProviderRegistry()
        registry.register(FauxProvider(name="zoom"), FauxProvider(name="amazon"), FauxProvider(name="github"))

        assert registry.list_names() == ("amazon", "github", "zoom")
        assert [p.name for p in registry.providers()] == ["amazon", "github", "zoom"]


@pytest.mark.unit
class TestGlobalRegistry:
    """Test the process-wide registry accessors"""

    def test_use_providers_registers_globally(self):
        reset_provider_registry()
        try:
            use_providers(FauxProvider())
            assert get_provider_registry().list_names() == ("faux",)
        finally:
            reset_provider_registry()

    def test_reset_gives_fresh_registry(self):
        first = get_provider_registry()
        reset_provider_registry()

        assert get_provider_registry() is not first
