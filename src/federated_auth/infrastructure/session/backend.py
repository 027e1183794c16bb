"""Session backend selection.

SESSION_BACKEND=memory keeps sessions in-process (single instance only);
SESSION_BACKEND=redis shares them across instances.
"""

import logging
from typing import Optional

from federated_auth.config.settings import get_settings
from federated_auth.infrastructure.redis.client import get_redis_client
from federated_auth.infrastructure.session.store import (
    MemorySessionBackend,
    RedisSessionBackend,
    SessionBackend,
)

logger = logging.getLogger(__name__)

# Global backend instance (initialized on first call)
_backend: Optional[SessionBackend] = None


async def get_session_backend() -> SessionBackend:
    """Get the configured session backend.

    Raises:
        ValueError: If SESSION_BACKEND is invalid
    """
    global _backend
    if _backend is not None:
        return _backend

    mode = get_settings().session_backend.lower()
    if mode == "memory":
        _backend = MemorySessionBackend()
    elif mode == "redis":
        redis_client = await get_redis_client()
        _backend = RedisSessionBackend(redis_client.get_client())
    else:
        raise ValueError(f"Unknown SESSION_BACKEND: {mode}. Valid options: memory, redis")

    logger.info(f"Session backend initialized: {_backend.__class__.__name__}")
    return _backend


def reset_session_backend() -> None:
    """Reset the global backend instance (for testing)."""
    global _backend
    _backend = None
