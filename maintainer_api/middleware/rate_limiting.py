# maintainer_api/middleware/rate_limiting.py
"""Rate limit stage - global tier first, then the route's own tiers"""

from typing import Dict, Tuple

from fastapi import Response

from maintainer_api.core.exceptions import rate_limit_error
from maintainer_api.core.pipeline import CONTINUE, PipelineStage, RequestContext, StageResult, reject
from maintainer_api.core.rate_limit_config import GLOBAL_TIER
from maintainer_api.services.rate_limiter import FixedWindowRateLimiter


class RateLimitStage(PipelineStage):
    name = "rate_limit"

    def __init__(self, limiters: Dict[str, FixedWindowRateLimiter]):
        self.limiters = limiters

    def tiers_for(self, ctx: RequestContext) -> Tuple[str, ...]:
        tiers = [GLOBAL_TIER]
        tiers.extend(tier for tier in ctx.policy.rate_tiers if tier not in tiers)
        return tuple(tiers)

    async def process(self, ctx: RequestContext) -> StageResult:
        for tier in self.tiers_for(ctx):
            limiter = self.limiters[tier]
            decision = limiter.hit(ctx.client_key)
            ctx.rate_limits.append(decision)

            if not decision.allowed:
                ctx.log.warning(
                    "rate_limit_exceeded",
                    tier=tier,
                    client=ctx.client_key,
                    path=ctx.path,
                    limit=decision.limit,
                )
                return reject(rate_limit_error(tier, max(decision.reset_after, 1), limiter.message))

        return CONTINUE

    def complete(self, ctx: RequestContext, response: Response) -> None:
        # Standard RateLimit-* headers; the last tier evaluated wins
        if not ctx.rate_limits:
            return
        decision = ctx.rate_limits[-1]
        response.headers["RateLimit-Limit"] = str(decision.limit)
        response.headers["RateLimit-Remaining"] = str(decision.remaining)
        response.headers["RateLimit-Reset"] = str(decision.reset_after)
        response.headers["RateLimit-Policy"] = decision.policy
