# maintainer_api/core/exceptions.py
"""
Core exceptions - standardized error handling for the maintainer API.

Two families live here:
- ConfigurationError: fatal at startup, the process refuses to serve.
- RequestError subclasses: per-request failures. Each carries the HTTP status
  and the fixed public message that is safe to send to the caller. The
  ``message``/``details`` pair is for server-side logs only.
"""

from typing import Optional, Dict, Any, List


class MaintainerError(Exception):
    """Base exception for all maintainer API errors"""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        """
        Initialize base exception.

        Args:
            message: Human-readable error message (server-side only)
            details: Optional additional error details (server-side only)
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class ConfigurationError(MaintainerError):
    """Errors in system configuration and initialization"""

    def __init__(
        self,
        message: str,
        component: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        """
        Initialize configuration error.

        Args:
            message: Error description
            component: Component with configuration issue
            details: Additional configuration context
        """
        super().__init__(message, details)
        self.component = component

        if component:
            self.details['component'] = component


class RequestError(MaintainerError):
    """
    Per-request failure that is converted to the JSON error envelope.

    ``public_message`` is the only text that reaches the caller.
    """

    status_code: int = 500
    public_message: str = "Internal server error"

    def __init__(
        self,
        message: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None
    ):
        super().__init__(message or self.public_message, details)
        self.headers = headers or {}


class AuthenticationFailure(RequestError):
    status_code = 401
    public_message = "Unauthorized"


class ServiceUnconfigured(RequestError):
    """A caller tried key-based auth but no shared secret is configured"""
    status_code = 503
    public_message = "Service unavailable: API key authentication is not configured"


class RateLimitExceeded(RequestError):
    status_code = 429
    public_message = "Too many requests, please try again later."

    def __init__(
        self,
        tier: str,
        retry_after: int,
        public_message: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(
            f"Rate limit exceeded for tier '{tier}'",
            details,
            headers={"Retry-After": str(retry_after)}
        )
        self.tier = tier
        self.retry_after = retry_after
        if public_message:
            self.public_message = public_message
        self.details['tier'] = tier


class UnsupportedMediaType(RequestError):
    status_code = 415
    public_message = "Unsupported Media Type"


class PayloadTooLarge(RequestError):
    status_code = 413
    public_message = "Payload Too Large"


class ValidationFailure(RequestError):
    """Structural validation failed; ``outcomes`` are already sanitized"""
    status_code = 400
    public_message = "Validation failed"

    def __init__(self, outcomes: Optional[List[Any]] = None, details: Optional[Dict[str, Any]] = None):
        super().__init__("Request payload failed validation", details)
        self.outcomes = outcomes or []


class InvalidLocaleCode(RequestError):
    status_code = 400
    public_message = "Invalid locale code"


class InvalidItemId(RequestError):
    status_code = 400
    public_message = "Invalid item ID"


class FileOperationError(RequestError):
    """Reading or writing a data file failed; the public message names the operation"""
    status_code = 500

    def __init__(self, public_message: str, message: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        super().__init__(message or public_message, details)
        self.public_message = public_message


class PathTraversalAttempt(RequestError):
    status_code = 400
    public_message = "Invalid file path"

    def __init__(self, candidate: str, root: str):
        super().__init__(
            "Resolved path escapes its allowed root",
            {"candidate": candidate, "root": root}
        )


class RequestTimeout(RequestError):
    status_code = 408
    public_message = "Request timeout"


class UnhandledException(RequestError):
    status_code = 500
    public_message = "Internal server error"


# Convenience functions for creating common errors

def config_error(message: str, component: str) -> ConfigurationError:
    """Create a configuration error with component context."""
    return ConfigurationError(message, component=component)


def rate_limit_error(tier: str, retry_after: int, public_message: Optional[str] = None) -> RateLimitExceeded:
    """Create a rate limit error for a tier."""
    return RateLimitExceeded(tier, retry_after, public_message=public_message)
