# maintainer_api/middleware/request_logger.py
"""
Correlation and audit logging.

Each request gets a short random id that is bound into a structlog logger;
every later log call for the request goes through that logger, so all of its
entries share ``request_id``. Completion entries are classified:

- successful mutations are audit entries
- client and server errors are warnings
- everything else is info
"""

import secrets
import time
from dataclasses import dataclass
from typing import Any

from fastapi import Response

from maintainer_api.core.logging_config import AUDIT, audit, get_logger
from maintainer_api.core.pipeline import CONTINUE, PipelineStage, RequestContext, StageResult
from maintainer_api.core.security.auth_gate import READ_ONLY_METHODS

logger = get_logger("maintainer_api.requests")

REQUEST_ID_HEADER = "X-Request-ID"


def new_request_id() -> str:
    """16 hex characters from 8 random bytes"""
    return secrets.token_hex(8)


def classify(method: str, status_code: int) -> str:
    """Log level for a finished request"""
    if status_code >= 400:
        return "warning"
    if method.upper() not in READ_ONLY_METHODS and 200 <= status_code < 300:
        return AUDIT
    return "info"


@dataclass
class CorrelationContext:
    request_id: str
    started_at: float
    log: Any

    def elapsed_ms(self) -> float:
        return round((time.perf_counter() - self.started_at) * 1000, 2)


class RequestLoggerStage(PipelineStage):
    name = "request_logger"

    def begin(self, ctx: RequestContext) -> CorrelationContext:
        request_id = new_request_id()
        log = logger.bind(request_id=request_id)
        log.info(
            "incoming_request",
            method=ctx.method,
            path=ctx.path,
            client=ctx.client_key,
            user_agent=ctx.headers.get("user-agent"),
        )
        return CorrelationContext(request_id=request_id, started_at=time.perf_counter(), log=log)

    async def process(self, ctx: RequestContext) -> StageResult:
        ctx.correlation = self.begin(ctx)
        ctx.log = ctx.correlation.log
        return CONTINUE

    def complete(self, ctx: RequestContext, response: Response) -> None:
        correlation = ctx.correlation
        response.headers[REQUEST_ID_HEADER] = correlation.request_id

        fields = {
            "method": ctx.method,
            "path": ctx.path,
            "status_code": response.status_code,
            "duration_ms": correlation.elapsed_ms(),
        }
        if ctx.auth_method:
            fields["auth"] = ctx.auth_method
        if ctx.timed_out:
            fields["timed_out"] = True

        level = classify(ctx.method, response.status_code)
        if level == AUDIT:
            audit(correlation.log, "request_completed", **fields)
        else:
            getattr(correlation.log, level)("request_completed", **fields)
