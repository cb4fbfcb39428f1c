# maintainer_api/core/pipeline.py
"""
Request pipeline - the orchestrator every inbound request passes through.

Stages run strictly in order; each one either lets the request continue or
answers it. Once a stage answers, no later stage runs and the handler is not
called. Every stage that was entered gets its ``complete`` hook afterwards,
in reverse order, whatever the outcome (answered, handled, failed or timed
out).
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, List, Mapping, Optional, Sequence, Tuple

from fastapi import Response
from pydantic import TypeAdapter

from maintainer_api.core.exceptions import PayloadTooLarge, RequestError, UnhandledException
from maintainer_api.core.logging_config import get_logger
from maintainer_api.models.responses import error_response_from

logger = get_logger(__name__)


@dataclass(frozen=True)
class RoutePolicy:
    """How a route is gated"""
    require_auth: bool = True
    rate_tiers: Tuple[str, ...] = ()
    schema: Optional[TypeAdapter] = None


# Unmatched paths and read-only routes
OPEN_POLICY = RoutePolicy(require_auth=False)


@dataclass
class RequestContext:
    """Per-request state threaded through the stages"""
    method: str
    path: str
    headers: Mapping[str, str]
    client_key: str
    route_name: Optional[str] = None
    policy: RoutePolicy = OPEN_POLICY
    read_body: Optional[Callable[[], Awaitable[bytes]]] = None

    # Filled in by the stages
    correlation: Any = None
    log: Any = logger
    rate_limits: List[Any] = field(default_factory=list)
    auth_method: Optional[str] = None
    payload: Any = None
    max_body_bytes: Optional[int] = None
    entered: List["PipelineStage"] = field(default_factory=list)
    timed_out: bool = False
    committing: bool = False

    async def body(self) -> bytes:
        """The request body, capped at ``max_body_bytes`` when a cap is set"""
        if self.read_body is None:
            return b""
        data = await self.read_body()
        if self.max_body_bytes is not None and len(data) > self.max_body_bytes:
            self.log.warning("payload_too_large", path=self.path, body_bytes=len(data))
            raise PayloadTooLarge()
        return data

    def begin_commit(self) -> bool:
        """
        Mark the start of a step that cannot be undone, such as a file write.

        Returns False once the timeout has fired; the caller must not start
        the step. After this returns True the timeout guard waits for the
        request to finish instead of answering 408.
        """
        if self.timed_out:
            return False
        self.committing = True
        return True


@dataclass(frozen=True)
class StageResult:
    """``response`` is set when the stage answers the request itself"""
    response: Optional[Response] = None

    @property
    def proceed(self) -> bool:
        return self.response is None


CONTINUE = StageResult()


def respond(response: Response) -> StageResult:
    return StageResult(response=response)


def reject(error: RequestError) -> StageResult:
    """Answer with the error envelope for ``error``"""
    return respond(error_response_from(error))


class PipelineStage(ABC):
    """One step of the request gate"""

    name: str = "stage"

    @abstractmethod
    async def process(self, ctx: RequestContext) -> StageResult:
        ...

    def complete(self, ctx: RequestContext, response: Response) -> None:
        """Called after the response is known, for every entered stage"""
        return None


@dataclass
class GateDecision:
    allowed: bool
    response: Optional[Response] = None


Endpoint = Callable[[RequestContext], Awaitable[Response]]


class Pipeline:
    """
    Runs the stage chain and the handler under the timeout guard.

    Errors never escape: ``RequestError`` becomes its own envelope, anything
    else becomes a generic 500 with the traceback logged server-side.
    """

    def __init__(self, stages: Sequence[PipelineStage], timeout_guard):
        self.stages = list(stages)
        self.timeout_guard = timeout_guard

    async def gate(self, ctx: RequestContext) -> GateDecision:
        for stage in self.stages:
            ctx.entered.append(stage)
            result = await stage.process(ctx)
            if not result.proceed:
                ctx.log.debug("request_stopped", stage=stage.name, status_code=result.response.status_code)
                return GateDecision(allowed=False, response=result.response)
        return GateDecision(allowed=True)

    async def _run(self, ctx: RequestContext, endpoint: Endpoint) -> Response:
        decision = await self.gate(ctx)
        if not decision.allowed:
            return decision.response
        return await endpoint(ctx)

    async def handle(self, ctx: RequestContext, endpoint: Endpoint) -> Response:
        try:
            response = await self.timeout_guard.bound(ctx, self._run(ctx, endpoint))
        except RequestError as e:
            ctx.log.warning(
                "request_error",
                error_type=type(e).__name__,
                status_code=e.status_code,
                error=str(e),
            )
            response = error_response_from(e)
        except Exception:
            ctx.log.exception("unhandled_exception", method=ctx.method, path=ctx.path)
            response = error_response_from(UnhandledException())

        return self._finish(ctx, response)

    def _finish(self, ctx: RequestContext, response: Response) -> Response:
        for stage in reversed(ctx.entered):
            stage.complete(ctx, response)
        return response
