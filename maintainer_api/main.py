# maintainer_api/main.py
"""
Maintainer API - local service that reads and writes the dye data files.

Every request passes through the gateway middleware, which hands it to the
request pipeline (correlation logging, rate limits, content type, auth,
schema validation) under a timeout. Handlers only run for requests the
pipeline admits, and they read the validated payload from ``request.state``.
"""

from contextlib import asynccontextmanager
from datetime import timedelta
from typing import Dict, Iterable, Optional, Tuple

import structlog
from fastapi import APIRouter, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.routing import BaseRoute, Match

from maintainer_api.core.config import (
    Settings,
    ensure_not_production,
    get_settings,
    validate_required_settings,
)
from maintainer_api.core.exceptions import (
    FileOperationError,
    InvalidItemId,
    InvalidLocaleCode,
    RequestTimeout,
    ValidationFailure,
)
from maintainer_api.core.logging_config import audit, get_logger, setup_logging
from maintainer_api.core.pipeline import OPEN_POLICY, Pipeline, RequestContext, RoutePolicy
from maintainer_api.core.rate_limit_config import SESSION_TIER, WRITE_TIER, build_rate_limiters, get_client_key
from maintainer_api.core.security import AuthGate, SessionStore
from maintainer_api.middleware.auth import AuthStage
from maintainer_api.middleware.content_type import ContentTypeStage
from maintainer_api.middleware.error_handler import register_exception_handlers
from maintainer_api.middleware.rate_limiting import RateLimitStage
from maintainer_api.middleware.request_logger import RequestLoggerStage
from maintainer_api.middleware.security_middleware import SecurityHeadersMiddleware
from maintainer_api.middleware.timeout import TimeoutGuard
from maintainer_api.middleware.validation import SchemaStage
from maintainer_api.models.dye_models import DYE_ARRAY_ADAPTER, LOCALE_DATA_ADAPTER
from maintainer_api.models.responses import SessionResponse, WriteResult
from maintainer_api.services.file_service import FileService, validate_base_paths
from maintainer_api.services.rate_limiter import FixedWindowRateLimiter
from maintainer_api.services.validation_service import SchemaValidator

logger = get_logger(__name__)

VERSION = "1.0.0"

# Gate configuration per route name; routes not listed are read-only
ROUTE_POLICIES: Dict[str, RoutePolicy] = {
    "create_session": RoutePolicy(require_auth=False, rate_tiers=(SESSION_TIER,)),
    "write_colors": RoutePolicy(rate_tiers=(WRITE_TIER,), schema=DYE_ARRAY_ADAPTER),
    "write_locale": RoutePolicy(rate_tiers=(WRITE_TIER,), schema=LOCALE_DATA_ADAPTER),
}

# Mutating requests whose route could not be resolved still need credentials
CLOSED_POLICY = RoutePolicy(require_auth=True)

MUTATING_METHODS = frozenset({"POST", "PUT", "PATCH", "DELETE"})


def _match_routes(routes: Iterable[BaseRoute], scope) -> Tuple[Optional[str], bool]:
    """
    Walk ``routes`` (and any nested ``routes``) for the one ``scope`` reaches.

    Returns the route name on a full match, and whether some route matched
    the path with another method.
    """
    partial = False
    for route in routes:
        match, child_scope = route.matches(scope)
        if match == Match.NONE:
            continue

        nested = getattr(route, "routes", None)
        if nested is not None:
            name, nested_partial = _match_routes(nested, {**scope, **child_scope})
            if name is not None:
                return name, False
            partial = partial or nested_partial or match == Match.PARTIAL
            continue

        if match == Match.FULL:
            return getattr(route, "name", None), False
        partial = True
    return None, partial


def policy_for(route_name: Optional[str], method: str, path_matched: bool = False) -> RoutePolicy:
    """
    Gate policy for a resolved route.

    Fails closed: a mutating request that reaches no listed route is treated
    as protected. A path that exists under another method is left open so
    the router can answer 405.
    """
    if route_name in ROUTE_POLICIES:
        return ROUTE_POLICIES[route_name]
    if method.upper() in MUTATING_METHODS and not (route_name is None and path_matched):
        return CLOSED_POLICY
    return OPEN_POLICY


def resolve_route(app: FastAPI, scope) -> Tuple[Optional[str], RoutePolicy]:
    """Find the route a request will reach and its gate policy"""
    name, partial = _match_routes(app.state.api_router.routes, scope)
    return name, policy_for(name, scope["method"], path_matched=partial)


def build_pipeline(
    settings: Settings,
    session_store: SessionStore,
    rate_limiters: Dict[str, FixedWindowRateLimiter]
) -> Pipeline:
    """Stage order is fixed: logger, rate limit, content type, auth, schema"""
    return Pipeline(
        [
            RequestLoggerStage(),
            RateLimitStage(rate_limiters),
            ContentTypeStage(settings.MAX_BODY_BYTES),
            AuthStage(AuthGate(session_store, settings.api_key)),
            SchemaStage(SchemaValidator(strict=True)),
        ],
        TimeoutGuard(settings.REQUEST_TIMEOUT_SECONDS),
    )


def _request_log(request: Request):
    return getattr(request.state, "log", None) or logger


def _begin_write(request: Request) -> None:
    """No write starts once the request has timed out"""
    ctx = request.state.ctx
    if not ctx.begin_commit():
        raise RequestTimeout(details={"path": ctx.path})


def _validated_payload(request: Request):
    """The payload the schema stage produced; unvalidated input is refused"""
    payload = getattr(request.state, "payload", None)
    if payload is None:
        raise ValidationFailure(details={"reason": "no validated payload"})
    return payload


def _file_error(public_message: str, error: Exception, log, **fields) -> FileOperationError:
    log.error("file_operation_failed", error=public_message, exc_info=error, **fields)
    return FileOperationError(public_message, message=f"{type(error).__name__}: {error}")


# Failures while touching a data file (missing file, bad JSON, unexpected shape)
FILE_ERRORS = (OSError, ValueError, KeyError, TypeError)


def build_router(settings: Settings, session_store: SessionStore, files: FileService) -> APIRouter:
    router = APIRouter(prefix="/api")

    @router.get("/health", name="health")
    async def health():
        return {"status": "ok", "corePath": str(settings.core_path)}

    @router.post("/auth/session", name="create_session")
    async def create_session(request: Request):
        token = session_store.issue()
        audit(_request_log(request), "session_created")
        return JSONResponse(SessionResponse(token=token).model_dump())

    @router.get("/colors", name="read_colors")
    async def read_colors(request: Request):
        log = _request_log(request)
        try:
            data = await files.read_colors()
        except FILE_ERRORS as e:
            raise _file_error("Failed to read colors file", e, log) from e
        return JSONResponse(data)

    @router.post("/colors", name="write_colors")
    async def write_colors(request: Request):
        log = _request_log(request)
        dyes = _validated_payload(request)
        data = DYE_ARRAY_ADAPTER.dump_python(dyes, mode="json", by_alias=True, exclude_unset=True)
        _begin_write(request)
        try:
            await files.write_colors(data)
        except FILE_ERRORS as e:
            raise _file_error("Failed to write colors file", e, log) from e

        audit(log, "colors_file_written", dye_count=len(data))
        return JSONResponse(WriteResult().model_dump())

    @router.get("/locale/{code}", name="read_locale")
    async def read_locale(code: str, request: Request):
        log = _request_log(request)
        try:
            data = await files.read_locale(code, log)
        except FILE_ERRORS as e:
            raise _file_error(f"Failed to read locale file: {code}", e, log, locale=code) from e
        return JSONResponse(data)

    @router.post("/locale/{code}", name="write_locale")
    async def write_locale(code: str, request: Request):
        log = _request_log(request)
        files.locale_path(code, log)

        locale_data = _validated_payload(request)
        if locale_data.locale != code:
            raise InvalidLocaleCode(
                "Payload locale does not match the path",
                details={"path_locale": code, "payload_locale": locale_data.locale},
            )

        data = LOCALE_DATA_ADAPTER.dump_python(locale_data, mode="json", by_alias=True, exclude_unset=True)
        _begin_write(request)
        try:
            await files.write_locale(code, data, log)
        except FILE_ERRORS as e:
            raise _file_error(f"Failed to write locale file: {code}", e, log, locale=code) from e

        audit(log, "locale_file_written", locale=code, dye_names=len(data["dyeNames"]))
        return JSONResponse(WriteResult().model_dump())

    @router.get("/validate/{item_id}", name="validate_item_id")
    async def validate_item_id(item_id: str, request: Request):
        log = _request_log(request)
        try:
            parsed = int(item_id, 10)
        except ValueError:
            raise InvalidItemId(details={"item_id": item_id[:32]}) from None

        try:
            exists = await files.item_id_exists(parsed)
        except FILE_ERRORS as e:
            raise _file_error("Failed to validate item ID", e, log) from e
        return {"exists": exists}

    @router.get("/locales/labels", name="read_locale_labels")
    async def read_locale_labels(request: Request):
        log = _request_log(request)
        try:
            labels = await files.read_locale_labels(log)
        except FILE_ERRORS as e:
            raise _file_error("Failed to read locale labels", e, log) from e
        return JSONResponse(labels)

    return router


def create_app(
    settings: Optional[Settings] = None,
    session_store: Optional[SessionStore] = None,
    rate_limiters: Optional[Dict[str, FixedWindowRateLimiter]] = None
) -> FastAPI:
    """
    Build the application.

    The session store and rate limiters are owned by the caller when given,
    so tests can inspect their state.
    """
    settings = settings or get_settings()
    if session_store is None:
        session_store = SessionStore(ttl=timedelta(seconds=settings.SESSION_TTL_SECONDS))
    if rate_limiters is None:
        rate_limiters = build_rate_limiters(
            settings.RATE_LIMIT_GLOBAL,
            settings.RATE_LIMIT_WRITE,
            settings.RATE_LIMIT_SESSION,
        )
    files = FileService(settings.colors_path, settings.locales_path, settings.SUPPORTED_LOCALES)
    pipeline = build_pipeline(settings, session_store, rate_limiters)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """FastAPI lifespan event handler for startup/shutdown"""
        ensure_not_production(settings)
        if not structlog.is_configured():
            setup_logging(settings.LOG_LEVEL, settings.LOG_DIR, settings.LOG_JSON)

        logger.info("maintainer_api_starting", app=settings.APP_NAME, version=VERSION)
        # Warns only; sessions still work without a shared secret
        validate_required_settings(settings)

        # Fatal on failure: the server never starts serving
        validate_base_paths(settings.core_path, settings.colors_path, settings.locales_path)

        logger.info(
            "maintainer_api_ready",
            url=f"http://{settings.HOST}:{settings.PORT}",
            core_path=str(settings.core_path),
            colors_file=str(settings.colors_path),
            locales_dir=str(settings.locales_path),
            cors_origins=settings.CORS_ORIGINS,
            request_timeout_seconds=settings.REQUEST_TIMEOUT_SECONDS,
        )

        yield

        cleared = session_store.reset()
        logger.info("maintainer_api_stopped", sessions_cleared=cleared)

    app = FastAPI(
        title=settings.APP_NAME,
        description="Local maintainer service for the dye data files",
        version=VERSION,
        lifespan=lifespan,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )

    app.state.settings = settings
    app.state.session_store = session_store
    app.state.rate_limiters = rate_limiters
    app.state.files = files
    app.state.pipeline = pipeline

    register_exception_handlers(app)
    # Policies are resolved against this router, not the app's wrapped copy
    api_router = build_router(settings, session_store, files)
    app.state.api_router = api_router
    app.include_router(api_router)

    # Request gateway - innermost middleware, runs the pipeline
    @app.middleware("http")
    async def request_gateway(request: Request, call_next):
        route_name, policy = resolve_route(app, request.scope)
        ctx = RequestContext(
            method=request.method,
            path=request.url.path,
            headers=request.headers,
            client_key=get_client_key(request),
            route_name=route_name,
            policy=policy,
            read_body=request.body,
        )

        async def endpoint(ctx: RequestContext):
            request.state.ctx = ctx
            request.state.log = ctx.log
            request.state.payload = ctx.payload
            return await call_next(request)

        return await pipeline.handle(ctx, endpoint)

    app.middleware("http")(SecurityHeadersMiddleware())

    # CORS outermost: every preflight is answered here and never reaches the
    # gateway, so preflights carry no request id and use no rate limit budget
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "X-Session-Token", "X-API-Key"],
        expose_headers=[
            "X-Request-ID",
            "RateLimit-Limit",
            "RateLimit-Remaining",
            "RateLimit-Reset",
            "RateLimit-Policy",
            "Retry-After",
        ],
    )

    return app


app = create_app()


def run():
    """Console entry point: serve on the configured loopback address"""
    import uvicorn

    settings = get_settings()
    setup_logging(settings.LOG_LEVEL, settings.LOG_DIR, settings.LOG_JSON)

    logger.info("starting_server", host=settings.HOST, port=settings.PORT)
    uvicorn.run(
        app,
        host=settings.HOST,
        port=settings.PORT,
        log_level=settings.LOG_LEVEL.lower()
    )


# Main entry point
if __name__ == "__main__":
    run()
