"""Framework-neutral view of an incoming authentication request."""

from dataclasses import dataclass, field
from typing import Dict, List, Optional

from federated_auth.infrastructure.session.store import SessionStore


@dataclass
class AuthRequest:
    """What the orchestrator needs to know about one HTTP request.

    Attributes:
        session: Per-client session store for this request
        method: HTTP method
        path_params: Route parameters (e.g. {"provider": "github"})
        query_params: Multi-valued URL query parameters
        form_params: Multi-valued form-encoded body parameters
    """
    session: SessionStore
    method: str = "GET"
    path_params: Dict[str, str] = field(default_factory=dict)
    query_params: Dict[str, List[str]] = field(default_factory=dict)
    form_params: Dict[str, List[str]] = field(default_factory=dict)

    def query_value(self, key: str) -> str:
        values = self.query_params.get(key)
        return values[0] if values else ""

    def form_value(self, key: str) -> str:
        values = self.form_params.get(key)
        return values[0] if values else ""

    @property
    def is_form_post(self) -> bool:
        """POST without a query string; the provider answered with form_post."""
        return not self.query_params and self.method.upper() == "POST"

    def callback_params(self) -> Dict[str, List[str]]:
        """Parameters sent back by the identity provider."""
        if self.is_form_post:
            return {key: list(values) for key, values in self.form_params.items()}
        return {key: list(values) for key, values in self.query_params.items()}

    @classmethod
    def from_pairs(
        cls,
        session: SessionStore,
        method: str = "GET",
        path_params: Optional[Dict[str, str]] = None,
        query_items: Optional[List[tuple]] = None,
        form_items: Optional[List[tuple]] = None,
    ) -> "AuthRequest":
        """Build a request from (key, value) pairs as produced by multi_items()."""
        return cls(
            session=session,
            method=method,
            path_params=dict(path_params or {}),
            query_params=_group(query_items or []),
            form_params=_group(form_items or []),
        )


def _group(items: List[tuple]) -> Dict[str, List[str]]:
    grouped: Dict[str, List[str]] = {}
    for key, value in items:
        grouped.setdefault(key, []).append(value)
    return grouped
