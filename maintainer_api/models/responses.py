# maintainer_api/models/responses.py
"""Response envelope shared by every non-2xx outcome"""

from enum import Enum
from typing import Dict, List, Optional

from fastapi.responses import JSONResponse
from pydantic import BaseModel

from maintainer_api.core.exceptions import RequestError


class ValidationErrorCode(str, Enum):
    """Closed vocabulary for client-facing validation errors"""
    INVALID_TYPE = "INVALID_TYPE"
    INVALID_FORMAT = "INVALID_FORMAT"
    REQUIRED_FIELD = "REQUIRED_FIELD"
    OUT_OF_RANGE = "OUT_OF_RANGE"
    TOO_SMALL = "TOO_SMALL"
    TOO_BIG = "TOO_BIG"
    INVALID_ENUM = "INVALID_ENUM"
    UNKNOWN = "UNKNOWN"


class ValidationOutcome(BaseModel):
    """One sanitized validation error: field path, safe code, generic text"""
    field: str
    code: ValidationErrorCode
    message: str


class ErrorEnvelope(BaseModel):
    success: bool = False
    error: str
    details: Optional[List[ValidationOutcome]] = None


class WriteResult(BaseModel):
    success: bool = True


class SessionResponse(BaseModel):
    success: bool = True
    token: str


def error_response(
    status_code: int,
    error: str,
    details: Optional[List[ValidationOutcome]] = None,
    headers: Optional[Dict[str, str]] = None
) -> JSONResponse:
    envelope = ErrorEnvelope(error=error, details=details)
    return JSONResponse(
        status_code=status_code,
        content=envelope.model_dump(mode="json", exclude_none=True),
        headers=headers,
    )


def error_response_from(exc: RequestError) -> JSONResponse:
    """Render a request error with its public message only"""
    details = getattr(exc, "outcomes", None) or None
    return error_response(exc.status_code, exc.public_message, details, exc.headers or None)
