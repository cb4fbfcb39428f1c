# maintainer_api/middleware/timeout.py
"""Request timeout guard - bounds the whole stage chain plus handler"""

import asyncio
from typing import Awaitable

from fastapi import Response

from maintainer_api.core.exceptions import RequestTimeout
from maintainer_api.models.responses import error_response_from

DEFAULT_TIMEOUT_SECONDS = 30.0


class TimeoutGuard:
    """
    Runs a request under a deadline.

    On expiry the request is marked timed out, the inner task is cancelled
    and a 408 envelope is returned. A request that has already started a
    file write (``ctx.begin_commit()``) is allowed to finish instead, so a
    caller never sees 408 for a write that went through.
    """

    def __init__(self, seconds: float = DEFAULT_TIMEOUT_SECONDS):
        self.seconds = seconds

    async def bound(self, ctx, awaitable: Awaitable[Response]) -> Response:
        task = asyncio.ensure_future(awaitable)
        try:
            done, _ = await asyncio.wait({task}, timeout=self.seconds)
        except asyncio.CancelledError:
            # Client went away
            task.cancel()
            raise

        if task in done:
            return task.result()

        if ctx.committing:
            ctx.log.warning(
                "request_timeout_deferred",
                method=ctx.method,
                path=ctx.path,
                timeout_seconds=self.seconds,
            )
            return await task

        ctx.timed_out = True
        task.cancel()
        await asyncio.gather(task, return_exceptions=True)
        ctx.log.warning(
            "request_timeout",
            method=ctx.method,
            path=ctx.path,
            timeout_seconds=self.seconds,
        )
        return error_response_from(RequestTimeout())
