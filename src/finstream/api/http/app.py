"""Application factory for the finstream users API."""

import asyncio
import time
import uuid
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger
from starlette.middleware.base import BaseHTTPMiddleware

from src.finstream.api.http.app_data import ApplicationDependencies
from src.finstream.api.http.deps import get_database_service
from src.finstream.api.http.errors import handle_exception, register_exception_handlers
from src.finstream.api.http.routers.users import router as users_router
from src.finstream.api.utils.app_startup import configure_logging
from src.finstream.core.exceptions import PersistenceError
from src.finstream.core.services import (
    DbSessionService,
    JWKSCacheInMemory,
    JwksService,
    JwtVerificationService,
)
from src.finstream.runtime.context import get_config

REQUEST_ID_HEADER = "X-Request-ID"

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "strict-origin-when-cross-origin",
}
HSTS_HEADER = ("Strict-Transport-Security", "max-age=31536000; includeSubDomains")


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        headers = dict(SECURITY_HEADERS)
        if get_config().app.environment == "production":
            headers[HSTS_HEADER[0]] = HSTS_HEADER[1]
        for name, value in headers.items():
            response.headers.setdefault(name, value)
        return response


def _client_ip(request: Request) -> str:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",", 1)[0].strip()
    return request.client.host if request.client else "unknown"


async def log_requests(request: Request, call_next):
    """Log each request once on entry and once on exit, tagged with its id.

    Exceptions that no registered handler claimed are turned into responses
    here so they are logged inside the request context.
    """
    request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
    started = time.perf_counter()

    with logger.contextualize(
        request_id=request_id,
        method=request.method,
        path=request.url.path,
        client_ip=_client_ip(request),
    ):
        logger.info("request.start")
        try:
            response = await call_next(request)
        except Exception as exc:
            response = await handle_exception(request, exc)

        elapsed_ms = round((time.perf_counter() - started) * 1000, 1)
        logger.bind(status_code=response.status_code, duration_ms=elapsed_ms).info(
            "request.end"
        )

    response.headers.setdefault(REQUEST_ID_HEADER, request_id)
    return response


def build_dependencies() -> ApplicationDependencies:
    jwks_cache = JWKSCacheInMemory()
    jwks_service = JwksService(jwks_cache)
    return ApplicationDependencies(
        jwks_cache=jwks_cache,
        jwks_service=jwks_service,
        jwt_verify_service=JwtVerificationService(jwks_service),
        database_service=DbSessionService(),
    )


async def _warm_jwks(deps: ApplicationDependencies) -> None:
    """Fetch tenant keys up front so misconfiguration surfaces at startup."""
    config = get_config()
    tenants = config.oidc.tenants
    if not tenants:
        return

    results = await asyncio.gather(
        *(deps.jwks_service.fetch_jwks(t) for t in tenants.values()),
        return_exceptions=True,
    )
    errors = [
        (name, err)
        for name, err in zip(tenants, results, strict=True)
        if isinstance(err, Exception)
    ]
    for name, err in errors:
        logger.warning("Failed to fetch JWKS for tenant {}: {}", name, err)
    if errors and config.app.environment == "production":
        raise RuntimeError(
            f"JWKS readiness check failed for tenants: {[n for n, _ in errors]}"
        )


# --- Lifecycle hooks ---
async def startup(app: FastAPI) -> None:
    configure_logging()
    config = get_config()
    logger.info("Starting up application in {} environment", config.app.environment)

    if getattr(app.state, "app_dependencies", None) is None:
        app.state.app_dependencies = build_dependencies()
    deps: ApplicationDependencies = app.state.app_dependencies

    if config.database.create_tables_on_startup:
        deps.database_service.create_all()

    await _warm_jwks(deps)


async def shutdown(app: FastAPI) -> None:
    logger.info("Shutting down application")
    deps: ApplicationDependencies | None = getattr(app.state, "app_dependencies", None)
    if deps is not None:
        deps.jwks_cache.clear_jwks_cache()
        deps.database_service.dispose()


def create_app(dependencies: ApplicationDependencies | None = None) -> FastAPI:
    """Build the API. ``dependencies`` replaces the services built at startup."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await startup(app)
        try:
            yield
        finally:
            await shutdown(app)

    config = get_config()
    production = config.app.environment == "production"

    app = FastAPI(
        title="finstream users",
        lifespan=lifespan,
        docs_url=None if production else "/docs",
        redoc_url=None if production else "/redoc",
    )
    app.state.app_dependencies = dependencies

    if production and "*" in config.app.cors.origins:
        raise RuntimeError(
            "CORS misconfigured: cannot use '*' with allow_credentials=True in production"
        )

    # innermost first, so error responses built in log_requests still get
    # security and CORS headers
    app.middleware("http")(log_requests)
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.app.cors.origins,
        allow_credentials=config.app.cors.allow_credentials,
        allow_methods=config.app.cors.allow_methods,
        allow_headers=config.app.cors.allow_headers,
    )

    register_exception_handlers(app)
    app.include_router(users_router)

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Health check endpoint."""
        return {"status": "healthy"}

    @app.get("/ready")
    def readiness(
        database_service: DbSessionService = Depends(get_database_service),
    ) -> dict[str, str]:
        """Readiness check endpoint."""
        if not database_service.health_check():
            raise PersistenceError("Database health check failed")
        return {"status": "ready"}

    return app


app = create_app()

__all__ = ["app", "create_app", "startup", "shutdown"]


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        app,
        host=get_config().app.host,
        port=get_config().app.port,
        access_log=False,  # request logging happens in middleware
    )
