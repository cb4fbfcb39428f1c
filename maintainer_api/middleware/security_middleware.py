"""
Security headers middleware for the maintainer API
"""

from typing import Callable, Dict

from fastapi import Request, Response

# No Strict-Transport-Security: the service only speaks plain HTTP on loopback
SECURITY_HEADERS: Dict[str, str] = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "strict-origin-when-cross-origin",
    "Permissions-Policy": "geolocation=(), microphone=(), camera=()",
}


class SecurityHeadersMiddleware:
    """Adds static security headers to every response"""

    def __init__(self, headers: Dict[str, str] = None):
        self.headers = dict(SECURITY_HEADERS if headers is None else headers)

    async def __call__(self, request: Request, call_next: Callable) -> Response:
        response = await call_next(request)

        for name, value in self.headers.items():
            response.headers[name] = value

        # Remove server header if present
        if "server" in response.headers:
            del response.headers["server"]

        return response
