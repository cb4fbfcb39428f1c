# maintainer_api/services/validation_service.py
"""
Input Validation Service.

Structural validation of request payloads with a two-channel error design:
- the full pydantic error list (including the rejected input) is logged
  server-side only
- the caller gets a sanitized list built from a closed set of codes, the
  field path and a generic message. Rejected values never appear in it.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Sequence

from pydantic import TypeAdapter, ValidationError

from maintainer_api.core.logging_config import get_logger
from maintainer_api.models.responses import ValidationErrorCode, ValidationOutcome

logger = get_logger(__name__)


@dataclass
class ValidationResult:
    """Result of payload validation: Ok(value) or Invalid(errors)"""
    valid: bool
    value: Any = None
    errors: List[ValidationOutcome] = field(default_factory=list)


# pydantic error types -> safe codes
_ERROR_CODES: Dict[str, ValidationErrorCode] = {
    "missing": ValidationErrorCode.REQUIRED_FIELD,
    "int_from_float": ValidationErrorCode.INVALID_TYPE,
    "none_required": ValidationErrorCode.INVALID_TYPE,
    "is_instance_of": ValidationErrorCode.INVALID_TYPE,
    "string_pattern_mismatch": ValidationErrorCode.INVALID_FORMAT,
    "json_invalid": ValidationErrorCode.INVALID_FORMAT,
    "json_type": ValidationErrorCode.INVALID_FORMAT,
    "url_parsing": ValidationErrorCode.INVALID_FORMAT,
    "url_syntax_violation": ValidationErrorCode.INVALID_FORMAT,
    "uuid_parsing": ValidationErrorCode.INVALID_FORMAT,
    "greater_than": ValidationErrorCode.TOO_SMALL,
    "greater_than_equal": ValidationErrorCode.TOO_SMALL,
    "too_short": ValidationErrorCode.TOO_SMALL,
    "string_too_short": ValidationErrorCode.TOO_SMALL,
    "bytes_too_short": ValidationErrorCode.TOO_SMALL,
    "less_than": ValidationErrorCode.TOO_BIG,
    "less_than_equal": ValidationErrorCode.TOO_BIG,
    "too_long": ValidationErrorCode.TOO_BIG,
    "string_too_long": ValidationErrorCode.TOO_BIG,
    "bytes_too_long": ValidationErrorCode.TOO_BIG,
    "literal_error": ValidationErrorCode.INVALID_ENUM,
    "enum": ValidationErrorCode.INVALID_ENUM,
}

_GENERIC_MESSAGES: Dict[ValidationErrorCode, str] = {
    ValidationErrorCode.INVALID_TYPE: "Field '{field}' has invalid type",
    ValidationErrorCode.INVALID_FORMAT: "Field '{field}' has invalid format",
    ValidationErrorCode.REQUIRED_FIELD: "Field '{field}' is required",
    ValidationErrorCode.TOO_SMALL: "Field '{field}' value is too small",
    ValidationErrorCode.TOO_BIG: "Field '{field}' value is too large",
    ValidationErrorCode.OUT_OF_RANGE: "Field '{field}' is out of valid range",
    ValidationErrorCode.INVALID_ENUM: "Field '{field}' has invalid value",
    ValidationErrorCode.UNKNOWN: "Field '{field}' failed validation",
}


def map_error_code(error_type: str) -> ValidationErrorCode:
    """Map a pydantic error type (e.g. ``int_parsing``) to a safe code"""
    if error_type in _ERROR_CODES:
        return _ERROR_CODES[error_type]
    if error_type.endswith("_type") or error_type.endswith("_parsing"):
        return ValidationErrorCode.INVALID_TYPE
    return ValidationErrorCode.UNKNOWN


def field_path(loc: Sequence[Any]) -> str:
    """Dotted path to the failing field, e.g. ``0.rgb.r``"""
    return ".".join(str(part) for part in loc)


def generic_message(code: ValidationErrorCode, path: str) -> str:
    return _GENERIC_MESSAGES[code].format(field=path or "this field")


def sanitize_errors(errors: Iterable[Mapping[str, Any]]) -> List[ValidationOutcome]:
    """
    Convert pydantic/FastAPI error dicts into client-safe outcomes.

    Only ``type`` and ``loc`` are read; ``input``, ``msg`` and ``ctx`` can
    carry the rejected value and are ignored.
    """
    outcomes = []
    for error in errors:
        code = map_error_code(str(error.get("type", "")))
        path = field_path(error.get("loc", ()))
        outcomes.append(
            ValidationOutcome(field=path, code=code, message=generic_message(code, path))
        )
    return outcomes


class SchemaValidator:
    """
    Validates payloads against pydantic schemas.

    Validation is strict (no type coercion): ``"5"`` is not an integer.
    Raw JSON (bytes/str) is parsed by pydantic, so malformed JSON becomes an
    INVALID_FORMAT outcome instead of an exception.
    """

    def __init__(self, strict: bool = True):
        self.strict = strict
        self.logger = logger

    def validate(self, payload: Any, schema: Any, log=None) -> ValidationResult:
        """
        Validate ``payload`` against ``schema``.

        Args:
            payload: Raw JSON (bytes/str) or an already decoded object
            schema: A pydantic model, a type, or a TypeAdapter
            log: Optional request-bound logger for the detailed error entry

        Returns:
            ValidationResult with the typed value or sanitized errors
        """
        adapter = schema if isinstance(schema, TypeAdapter) else TypeAdapter(schema)
        try:
            if isinstance(payload, (bytes, bytearray, str)):
                value = adapter.validate_json(payload, strict=self.strict)
            else:
                value = adapter.validate_python(payload, strict=self.strict)
        except ValidationError as e:
            # Full detail, including rejected input, stays server-side
            (log or self.logger).warning(
                "validation_failed",
                error_count=e.error_count(),
                errors=e.errors(include_url=False),
            )
            return ValidationResult(valid=False, errors=sanitize_errors(e.errors(include_url=False)))

        return ValidationResult(valid=True, value=value)
