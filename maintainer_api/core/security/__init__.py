"""
Security module.

Centralizes the credential-related pieces of the request gate:
- Session tokens with expiry
- Timing-safe shared-secret comparison
- The authentication decision for mutating requests

Kept as a layer on top of the file handlers, not intertwined with them.
"""

from .session_security import (
    Session,
    SessionStore,
    DEFAULT_SESSION_TTL,
)
from .auth_gate import (
    AuthDecision,
    AuthGate,
    API_KEY_HEADER,
    SESSION_TOKEN_HEADER,
    READ_ONLY_METHODS,
    timing_safe_equals,
)

__all__ = [
    'Session',
    'SessionStore',
    'DEFAULT_SESSION_TTL',
    'AuthDecision',
    'AuthGate',
    'API_KEY_HEADER',
    'SESSION_TOKEN_HEADER',
    'READ_ONLY_METHODS',
    'timing_safe_equals',
]
