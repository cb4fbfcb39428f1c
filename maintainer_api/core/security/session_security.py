"""
Session security module.

In-memory session tokens for the interactive maintainer UI. Sessions live
only as long as the process: a restart (or ``reset()``) drops all of them.

Part of the security layer; the file handlers never see tokens.
"""

import secrets
import threading
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, Optional

from pydantic import BaseModel, Field

from maintainer_api.core.logging_config import get_logger

logger = get_logger(__name__)

# 32 random bytes -> 256 bits of entropy, 64 hex characters
TOKEN_BYTES = 32
DEFAULT_SESSION_TTL = timedelta(hours=24)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Session(BaseModel):
    """A single issued session token"""
    token: str = Field(default_factory=lambda: secrets.token_hex(TOKEN_BYTES))
    created_at: datetime = Field(default_factory=_utcnow)

    def is_expired(self, now: datetime, ttl: timedelta) -> bool:
        """Valid while ``now - created_at <= ttl``"""
        return now - self.created_at > ttl


class SessionStore:
    """
    Thread-safe in-memory session store.

    Design decisions:
    1. Owned explicitly and passed into the app factory, never a global
    2. Fail-secure - unknown or expired tokens are simply invalid
    3. No background sweeper - ``issue()`` sweeps and ``validate()`` deletes
       expired entries it touches, so the map stays bounded
    4. Injectable clock so expiry is testable
    """

    def __init__(
        self,
        ttl: timedelta = DEFAULT_SESSION_TTL,
        clock: Optional[Callable[[], datetime]] = None
    ):
        self.ttl = ttl
        self._clock = clock or _utcnow
        self._sessions: Dict[str, Session] = {}
        self._lock = threading.Lock()

        # Metrics for monitoring
        self._issued_count = 0
        self._validation_failures = 0
        self._expired_removed = 0

    def issue(self) -> str:
        """Create and persist a new session, returning its token"""
        with self._lock:
            now = self._clock()
            removed = self._sweep_expired(now)
            session = Session(created_at=now)
            self._sessions[session.token] = session
            self._issued_count += 1
            active = len(self._sessions)

        if removed:
            logger.info("expired_sessions_removed", count=removed)
        logger.info("session_issued", active_sessions=active)
        return session.token

    def validate(self, token: Optional[str]) -> bool:
        """True only for a known, unexpired token. Expired entries are deleted."""
        if not token or not isinstance(token, str):
            return False

        with self._lock:
            session = self._sessions.get(token)
            if session is None:
                self._validation_failures += 1
                return False

            if session.is_expired(self._clock(), self.ttl):
                del self._sessions[token]
                self._expired_removed += 1
                self._validation_failures += 1
                expired = True
            else:
                expired = False

        if expired:
            logger.warning("session_expired_and_removed")
            return False
        return True

    def reset(self) -> int:
        """Drop all sessions; returns how many were cleared"""
        with self._lock:
            count = len(self._sessions)
            self._sessions.clear()
        logger.info("sessions_cleared", count=count)
        return count

    def active_count(self) -> int:
        with self._lock:
            return len(self._sessions)

    def get_metrics(self) -> Dict[str, int]:
        """Store metrics for monitoring (never includes tokens)"""
        with self._lock:
            return {
                "active_sessions": len(self._sessions),
                "total_issued": self._issued_count,
                "validation_failures": self._validation_failures,
                "expired_removed": self._expired_removed,
            }

    def _sweep_expired(self, now: datetime) -> int:
        # Caller holds the lock
        expired = [
            token for token, session in self._sessions.items()
            if session.is_expired(now, self.ttl)
        ]
        for token in expired:
            del self._sessions[token]
        self._expired_removed += len(expired)
        return len(expired)
