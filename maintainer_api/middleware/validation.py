# maintainer_api/middleware/validation.py
"""Schema stage - validates the JSON body against the route's schema"""

from typing import Optional

from maintainer_api.core.exceptions import ValidationFailure
from maintainer_api.core.pipeline import CONTINUE, PipelineStage, RequestContext, StageResult, reject
from maintainer_api.services.validation_service import SchemaValidator


class SchemaStage(PipelineStage):
    name = "schema"

    def __init__(self, validator: Optional[SchemaValidator] = None):
        self.validator = validator or SchemaValidator()

    async def process(self, ctx: RequestContext) -> StageResult:
        schema = ctx.policy.schema
        if schema is None:
            return CONTINUE

        body = await ctx.body()
        result = self.validator.validate(body, schema, log=ctx.log)
        if not result.valid:
            return reject(ValidationFailure(result.errors))

        ctx.payload = result.value
        return CONTINUE
