# maintainer_api/middleware/auth.py
"""Authentication stage for routes whose policy requires it"""

from maintainer_api.core.pipeline import CONTINUE, PipelineStage, RequestContext, StageResult, reject
from maintainer_api.core.security.auth_gate import API_KEY_HEADER, SESSION_TOKEN_HEADER, AuthGate


class AuthStage(PipelineStage):
    name = "auth"

    def __init__(self, gate: AuthGate):
        self.gate = gate

    async def process(self, ctx: RequestContext) -> StageResult:
        if not ctx.policy.require_auth:
            return CONTINUE

        decision = self.gate.authorize(
            ctx.method,
            session_token=ctx.headers.get(SESSION_TOKEN_HEADER),
            api_key=ctx.headers.get(API_KEY_HEADER),
        )
        if decision.allowed:
            ctx.auth_method = decision.method
            return CONTINUE

        # Never log the presented credentials, only which ones were present
        ctx.log.warning(
            "authentication_failed",
            path=ctx.path,
            status_code=decision.status_code,
            session_token_present=SESSION_TOKEN_HEADER in ctx.headers,
            api_key_present=API_KEY_HEADER in ctx.headers,
        )
        return reject(decision.error())
