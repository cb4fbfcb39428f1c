"""
Rate limiting configuration for the maintainer API
"""

from typing import Dict, Optional

from fastapi import Request
from slowapi.util import get_remote_address

from maintainer_api.services.rate_limiter import FixedWindowRateLimiter

GLOBAL_TIER = "global"
WRITE_TIER = "write"
SESSION_TIER = "session"

# Default tiers (limits notation)
RATE_LIMIT_TIERS = {
    GLOBAL_TIER: "1000/15 minutes",   # All API calls (~1 request/second sustained)
    WRITE_TIER: "30/minute",          # File mutations
    SESSION_TIER: "10/15 minutes",    # Session token issuance
}

# Custom error messages
RATE_LIMIT_MESSAGES = {
    "default": "Too many requests from this IP, please try again later.",
    GLOBAL_TIER: "Too many requests from this IP, please try again later.",
    WRITE_TIER: "Too many write requests, please slow down.",
    SESSION_TIER: "Too many session requests, please wait.",
}


def get_rate_limit_message(tier: str) -> str:
    """Get custom error message for a rate limited tier"""
    return RATE_LIMIT_MESSAGES.get(tier, RATE_LIMIT_MESSAGES["default"])


def get_client_key(request: Request) -> str:
    """
    Identify the client for rate limiting.

    The service binds to loopback and sits behind no proxy, so forwarding
    headers are ignored; they would let a caller pick its own bucket.
    """
    return get_remote_address(request)


def build_rate_limiters(
    global_limit: Optional[str] = None,
    write_limit: Optional[str] = None,
    session_limit: Optional[str] = None,
) -> Dict[str, FixedWindowRateLimiter]:
    """Create one independent limiter per tier"""
    limits_by_tier = {
        GLOBAL_TIER: global_limit or RATE_LIMIT_TIERS[GLOBAL_TIER],
        WRITE_TIER: write_limit or RATE_LIMIT_TIERS[WRITE_TIER],
        SESSION_TIER: session_limit or RATE_LIMIT_TIERS[SESSION_TIER],
    }
    return {
        tier: FixedWindowRateLimiter(
            tier,
            limit,
            message=get_rate_limit_message(tier)
        )
        for tier, limit in limits_by_tier.items()
    }
