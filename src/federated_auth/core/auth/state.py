"""CSRF state guard.

Issues the state token embedded in the authorization URL and checks the value
the identity provider echoes back on the callback, as described in
http://tools.ietf.org/html/rfc6749#section-10.12
"""

import base64
import logging
import secrets
from typing import Optional
from urllib.parse import parse_qs, urlsplit

from .errors import EntropyUnavailable, StateMismatch
from .request import AuthRequest

logger = logging.getLogger(__name__)

STATE_NONCE_BYTES = 64


class StateGuard:
    """Generates and validates anti-forgery state tokens."""

    def __init__(self, nonce_bytes: int = STATE_NONCE_BYTES):
        self.nonce_bytes = nonce_bytes

    def issue_state(self, requested_state: Optional[str] = None) -> str:
        """Return the caller's state if given, otherwise an unguessable nonce.

        Raises:
            EntropyUnavailable: If the system randomness source fails
        """
        if requested_state:
            return requested_state

        try:
            nonce = secrets.token_bytes(self.nonce_bytes)
        except (OSError, NotImplementedError) as e:
            raise EntropyUnavailable(f"source of randomness unavailable: {e}") from e
        return base64.urlsafe_b64encode(nonce).decode("ascii")

    def extract_state(self, request: AuthRequest) -> str:
        """State returned by the provider, from the query string or a form POST body."""
        if request.is_form_post:
            return request.form_value("state")
        return request.query_value("state")

    def validate(self, auth_url: str, incoming_state: str) -> None:
        """Ensure the state of the original authorization URL matches the callback's.

        Providers that put no state on the authorization URL are not checked.

        Raises:
            StateMismatch: If the states differ or the URL cannot be parsed
        """
        try:
            query = parse_qs(urlsplit(auth_url).query)
        except ValueError as e:
            logger.warning(f"Rejected callback: unparseable authorization URL: {e}")
            raise StateMismatch(f"could not read original authorization URL: {e}") from e
        original_state = query.get("state", [""])[0]
        if original_state and original_state != incoming_state:
            logger.warning("Rejected callback: state token mismatch")
            raise StateMismatch()
