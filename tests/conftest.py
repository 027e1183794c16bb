"""
Pytest configuration and fixtures for federated authentication tests.

Provides fixtures for:
- In-memory session backend and per-client session stores
- Provider registry with the faux provider
- Auth orchestrator and request builder
- HTTP client against the FastAPI application
"""

from typing import AsyncGenerator, Callable, Generator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from federated_auth.core.auth import AuthOrchestrator, AuthRequest, ProviderRegistry
from federated_auth.core.auth.registry import reset_provider_registry, use_providers
from federated_auth.infrastructure.session.backend import get_session_backend
from federated_auth.infrastructure.session.store import MemorySessionBackend, SessionStore
from federated_auth.main import app
from federated_auth.providers.faux import FauxProvider


@pytest.fixture
def memory_backend() -> Generator[MemorySessionBackend, None, None]:
    """Empty in-process session backend."""
    backend = MemorySessionBackend()
    yield backend
    backend.clear()


@pytest.fixture
def session_store(memory_backend: MemorySessionBackend) -> SessionStore:
    """Fresh session store for one client."""
    return SessionStore(memory_backend)


@pytest.fixture
def faux_provider() -> FauxProvider:
    return FauxProvider(callback_url="http://localhost:3000/auth/faux/callback", client_key="faux-key")


@pytest.fixture
def registry(faux_provider: FauxProvider) -> ProviderRegistry:
    """Frozen registry holding the faux provider."""
    registry = ProviderRegistry()
    registry.register(faux_provider)
    registry.freeze()
    return registry


@pytest.fixture
def orchestrator(registry: ProviderRegistry) -> AuthOrchestrator:
    return AuthOrchestrator(registry)


@pytest.fixture
def make_request(session_store: SessionStore) -> Callable[..., AuthRequest]:
    """Build an AuthRequest sharing the client's session store.

    Usage: make_request(path={"provider": "faux"}, query=[("state", "abc")])
    """
    def _make(method="GET", path=None, query=None, form=None, session=None) -> AuthRequest:
        return AuthRequest.from_pairs(
            session or session_store,
            method=method,
            path_params=path,
            query_items=query,
            form_items=form,
        )
    return _make


@pytest_asyncio.fixture
async def client(memory_backend: MemorySessionBackend, faux_provider: FauxProvider) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client for the app with the faux provider registered."""
    reset_provider_registry()
    use_providers(faux_provider).freeze()

    async def _backend():
        return memory_backend

    app.dependency_overrides[get_session_backend] = _backend
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
    reset_provider_registry()
