# maintainer_api/middleware/content_type.py
"""Body checks for mutating requests: JSON media type and size ceiling"""

from maintainer_api.core.exceptions import PayloadTooLarge, UnsupportedMediaType
from maintainer_api.core.pipeline import CONTINUE, PipelineStage, RequestContext, StageResult, reject

BODY_METHODS = frozenset({"POST", "PUT", "PATCH", "DELETE"})
JSON_MEDIA_TYPE = "application/json"
DEFAULT_MAX_BODY_BYTES = 10 * 1024 * 1024


def media_type(content_type: str) -> str:
    """``application/json; charset=utf-8`` -> ``application/json``"""
    return content_type.split(";", 1)[0].strip().lower()


def has_body(headers) -> bool:
    """A non-empty Content-Length, or a chunked body with no length at all"""
    length = (headers.get("content-length") or "").strip()
    if length:
        return length != "0"
    return bool(headers.get("transfer-encoding"))


class ContentTypeStage(PipelineStage):
    name = "content_type"

    def __init__(self, max_body_bytes: int = DEFAULT_MAX_BODY_BYTES):
        self.max_body_bytes = max_body_bytes

    async def process(self, ctx: RequestContext) -> StageResult:
        if ctx.method.upper() not in BODY_METHODS:
            return CONTINUE

        # Enforced again on the bytes actually read, whatever the headers claim
        ctx.max_body_bytes = self.max_body_bytes

        if not has_body(ctx.headers):
            return CONTINUE

        if media_type(ctx.headers.get("content-type", "")) != JSON_MEDIA_TYPE:
            ctx.log.warning("unsupported_media_type", path=ctx.path)
            return reject(UnsupportedMediaType())

        length = (ctx.headers.get("content-length") or "").strip()
        if length.isdigit() and int(length) > self.max_body_bytes:
            ctx.log.warning("payload_too_large", path=ctx.path, content_length=int(length))
            return reject(PayloadTooLarge())

        return CONTINUE
