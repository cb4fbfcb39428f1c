# maintainer_api/middleware/error_handler.py
"""
Exception handlers - every error leaves the service as the JSON envelope.

Only fixed public messages reach the caller. Library messages, rejected
values and stack traces stay in the server log.
"""

from http import HTTPStatus

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from maintainer_api.core.exceptions import RequestError, ValidationFailure
from maintainer_api.core.logging_config import get_logger
from maintainer_api.models.responses import error_response, error_response_from
from maintainer_api.services.validation_service import sanitize_errors

logger = get_logger(__name__)


def _request_log(request: Request):
    return getattr(request.state, "log", None) or logger


def get_safe_error_message(status_code: int) -> str:
    """Standard reason phrase for a status code, e.g. ``Not Found``"""
    try:
        return HTTPStatus(status_code).phrase
    except ValueError:
        return "Error"


async def request_error_handler(request: Request, exc: RequestError):
    _request_log(request).warning(
        "request_error",
        error_type=type(exc).__name__,
        status_code=exc.status_code,
        error=str(exc),
    )
    return error_response_from(exc)


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    # 404 and 405 from the router; exc.detail is not trusted
    return error_response(
        exc.status_code,
        get_safe_error_message(exc.status_code),
        headers=getattr(exc, "headers", None),
    )


async def request_validation_handler(request: Request, exc: RequestValidationError):
    _request_log(request).warning(
        "parameter_validation_failed",
        path=request.url.path,
        errors=exc.errors(),
    )
    return error_response_from(ValidationFailure(sanitize_errors(exc.errors())))


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(RequestError, request_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
