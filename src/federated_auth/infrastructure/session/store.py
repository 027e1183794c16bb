"""Per-client session store.

Wraps a key-value backend behind a per-request SessionStore keyed by an opaque
session id carried in a cookie. The authentication flow keeps one entry per
client holding a mapping of provider name to compressed session blob.

Storage Schema:
- gothic:session:{session_id} -> JSON object of string values (expires after max_age)
"""

import json
import logging
import secrets
import time
from abc import ABC, abstractmethod
from typing import Dict, Iterator, Optional, Tuple

from redis.asyncio import Redis
from starlette.responses import Response

from federated_auth.core.auth.errors import SessionInvalidationFailed, SessionSaveFailed

logger = logging.getLogger(__name__)

SESSION_NAME = "_gothic_session"
DEFAULT_MAX_AGE = 86400 * 30
# if auth does not finish within this window after invalidation, the entry expires
INVALIDATION_GRACE_SECONDS = 100


class SessionBackend(ABC):
    """Storage for session values keyed by session id."""

    @abstractmethod
    async def load(self, session_id: str) -> Optional[Dict[str, str]]:
        """Return the stored values, or None if absent or expired."""

    @abstractmethod
    async def save(self, session_id: str, values: Dict[str, str], max_age: int) -> None:
        """Persist values for max_age seconds."""


class MemorySessionBackend(SessionBackend):
    """Process-local backend for development and tests.

    WARNING: Only works for single-instance deployments.
    """

    def __init__(self, clock=time.monotonic):
        self._clock = clock
        self._entries: Dict[str, Tuple[Dict[str, str], float]] = {}

    async def load(self, session_id: str) -> Optional[Dict[str, str]]:
        entry = self._entries.get(session_id)
        if entry is None:
            return None
        values, expires_at = entry
        if expires_at <= self._clock():
            del self._entries[session_id]
            return None
        return dict(values)

    async def save(self, session_id: str, values: Dict[str, str], max_age: int) -> None:
        now = self._clock()
        # abandoned sessions are never loaded again; drop them here
        expired = [sid for sid, (_, expires_at) in self._entries.items() if expires_at <= now]
        for sid in expired:
            del self._entries[sid]
        self._entries[session_id] = (dict(values), now + max_age)

    def __len__(self) -> int:
        return len(self._entries)

    def clear(self) -> None:
        self._entries.clear()


class RedisSessionBackend(SessionBackend):
    """Redis-backed sessions shared by every service instance."""

    def __init__(self, redis_client: Redis, key_prefix: str = "gothic:session:"):
        """Initialize backend

        Args:
            redis_client: Redis connection for session storage
            key_prefix: Prefix for session keys
        """
        self.redis = redis_client
        self.key_pattern = key_prefix + "{}"

    async def load(self, session_id: str) -> Optional[Dict[str, str]]:
        raw = await self.redis.get(self.key_pattern.format(session_id))
        if raw is None:
            return None
        if isinstance(raw, bytes):
            raw = raw.decode("utf-8")
        try:
            values = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning(f"Discarding unreadable session {session_id[:8]}...")
            return None
        if not isinstance(values, dict):
            return None
        return values

    async def save(self, session_id: str, values: Dict[str, str], max_age: int) -> None:
        await self.redis.set(self.key_pattern.format(session_id), json.dumps(values), ex=max_age)


class SessionStore:
    """Key-value session for one client, loaded once per request.

    Values are only persisted by save() or invalidate(); apply_cookie() then
    hands the session id back to the client.
    """

    def __init__(
        self,
        backend: SessionBackend,
        session_id: Optional[str] = None,
        values: Optional[Dict[str, str]] = None,
        *,
        cookie_name: str = SESSION_NAME,
        max_age: int = DEFAULT_MAX_AGE,
        cookie_secure: bool = False,
        cookie_samesite: str = "lax",
    ):
        self.backend = backend
        self.is_new = session_id is None
        self.session_id = session_id or secrets.token_urlsafe(32)
        self.values: Dict[str, str] = dict(values or {})
        self.cookie_name = cookie_name
        self.max_age = max_age
        self.cookie_secure = cookie_secure
        self.cookie_samesite = cookie_samesite
        self._cookie_pending = False

    @classmethod
    async def load(cls, backend: SessionBackend, session_id: Optional[str] = None, **options) -> "SessionStore":
        """Open the session named by session_id, or start a new one.

        An unknown or expired id starts an empty session under a fresh id.
        """
        if session_id:
            values = await backend.load(session_id)
            if values is not None:
                return cls(backend, session_id, values, **options)
        return cls(backend, **options)

    def get(self, key: str) -> Optional[str]:
        value = self.values.get(key)
        if isinstance(value, str):
            return value
        return None

    def set(self, key: str, value: str) -> None:
        self.values[key] = value

    def keys(self) -> Iterator[str]:
        return iter(self.values)

    async def save(self) -> None:
        """Persist the current values.

        Raises:
            SessionSaveFailed: If the backend write fails
        """
        try:
            await self.backend.save(self.session_id, self.values, self.max_age)
        except Exception as e:
            logger.error(f"Failed to save session: {e}")
            raise SessionSaveFailed() from e
        self._cookie_pending = True

    async def invalidate(self, grace_seconds: int = INVALIDATION_GRACE_SECONDS) -> None:
        """Clear every value and let the entry expire after a short grace window.

        Raises:
            SessionInvalidationFailed: If the backend write fails
        """
        self.values = {}
        self.max_age = grace_seconds
        try:
            await self.backend.save(self.session_id, self.values, self.max_age)
        except Exception as e:
            logger.error(f"Failed to invalidate session: {e}")
            raise SessionInvalidationFailed() from e
        self._cookie_pending = True

    def apply_cookie(self, response: Response) -> None:
        """Write the session cookie onto response if the session was persisted."""
        if not self._cookie_pending:
            return
        response.set_cookie(
            key=self.cookie_name,
            value=self.session_id,
            max_age=self.max_age,
            path="/",
            httponly=True,
            secure=self.cookie_secure,
            samesite=self.cookie_samesite,
        )
