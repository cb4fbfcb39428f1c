"""
Authentication gate for mutating requests.

Two credentials, checked in order:
1. Session token (X-Session-Token) - primary, for the interactive UI
2. Shared secret (X-API-Key) - fallback for headless callers

Read-only methods are never gated.
"""

import hmac
from dataclasses import dataclass
from typing import Optional, Type

from maintainer_api.core.exceptions import (
    AuthenticationFailure,
    RequestError,
    ServiceUnconfigured,
)
from maintainer_api.core.security.session_security import SessionStore

SESSION_TOKEN_HEADER = "X-Session-Token"
API_KEY_HEADER = "X-API-Key"

READ_ONLY_METHODS = frozenset({"GET", "HEAD", "OPTIONS"})


def timing_safe_equals(provided, expected) -> bool:
    """
    Compare a presented secret against the expected one in constant time.

    Length is checked first (length is not secret); equal-length inputs go
    through ``hmac.compare_digest`` so timing does not depend on where the
    first mismatch is.
    """
    if not isinstance(provided, str) or not isinstance(expected, str):
        return False

    provided_bytes = provided.encode("utf-8")
    expected_bytes = expected.encode("utf-8")
    if len(provided_bytes) != len(expected_bytes):
        return False

    return hmac.compare_digest(provided_bytes, expected_bytes)


@dataclass(frozen=True)
class AuthDecision:
    """Outcome of the gate; ``error`` is set when denied"""
    allowed: bool
    method: Optional[str] = None
    error: Optional[Type[RequestError]] = None

    @property
    def status_code(self) -> int:
        return self.error.status_code if self.error else 200


class AuthGate:
    """Decides whether a request may mutate state"""

    def __init__(self, session_store: SessionStore, api_key: Optional[str] = None):
        self.session_store = session_store
        self._api_key = api_key or None

    @property
    def api_key_configured(self) -> bool:
        return self._api_key is not None

    def authorize(
        self,
        method: str,
        session_token: Optional[str] = None,
        api_key: Optional[str] = None
    ) -> AuthDecision:
        if method.upper() in READ_ONLY_METHODS:
            return AuthDecision(allowed=True, method="read-only")

        if session_token and self.session_store.validate(session_token):
            return AuthDecision(allowed=True, method="session")

        if api_key:
            if not self.api_key_configured:
                return AuthDecision(allowed=False, error=ServiceUnconfigured)
            if timing_safe_equals(api_key, self._api_key):
                return AuthDecision(allowed=True, method="api_key")

        return AuthDecision(allowed=False, error=AuthenticationFailure)
