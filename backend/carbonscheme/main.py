"""
FastAPI application entry point.
Configures middleware, routers, and lifecycle events.
"""

import hmac
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Header, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from prometheus_fastapi_instrumentator import Instrumentator
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from carbonscheme.core.config import get_settings
from carbonscheme.core.logging import configure_logging, get_logger
from carbonscheme.core.middleware import REQUEST_ID_HEADER, RequestContextMiddleware
from carbonscheme.db.session import close_db, get_db_session, init_db
from carbonscheme.modules.equivalency.router import router as equivalency_router
from carbonscheme.modules.factors.router import router as factors_router
from carbonscheme.modules.lca.router import router as lca_router
from carbonscheme.modules.reference.router import router as reference_router
from carbonscheme.modules.scenarios.router import router as scenarios_router
from carbonscheme.modules.schemes.router import router as schemes_router
from carbonscheme.modules.usage.router import router as usage_router

# Configure logging before anything else
configure_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan manager.

    Opens the database pool on startup and disposes of it on shutdown.
    """
    settings = get_settings()
    logger.info(
        "starting_application",
        environment=settings.environment,
        version=settings.version,
    )

    await init_db()

    yield

    await close_db()
    logger.info("application_shutdown_complete")


def create_application() -> FastAPI:
    """
    Application factory function.

    Creates and configures the FastAPI application with all middleware,
    routers, and settings applied.
    """
    settings = get_settings()

    app = FastAPI(
        title=settings.project_name,
        version=settings.version,
        openapi_url=f"{settings.api_v1_prefix}/openapi.json",
        docs_url=f"{settings.api_v1_prefix}/docs",
        redoc_url=f"{settings.api_v1_prefix}/redoc",
        lifespan=lifespan,
    )

    # ==========================================================================
    # Middleware Configuration
    # ==========================================================================

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Accept", "Origin", REQUEST_ID_HEADER],
        expose_headers=[REQUEST_ID_HEADER],
    )
    app.add_middleware(GZipMiddleware, minimum_size=1000)
    app.add_middleware(RequestContextMiddleware)

    # ==========================================================================
    # Router Registration
    # ==========================================================================

    @app.get("/health", tags=["Health"])
    async def health_check() -> dict[str, object]:
        checks: dict[str, str] = {}
        try:
            async for session in get_db_session():
                await session.execute(text("SELECT 1"))
            checks["db"] = "ok"
        except (SQLAlchemyError, RuntimeError, OSError) as exc:
            logger.warning("health_check_db_unavailable", error=str(exc))
            checks["db"] = "unavailable"

        overall = "healthy" if all(v == "ok" for v in checks.values()) else "degraded"
        return {"status": overall, "version": settings.version, "checks": checks}

    schemes_prefix = f"{settings.api_v1_prefix}/schemes"
    app.include_router(schemes_router, prefix=schemes_prefix, tags=["Schemes"])
    app.include_router(usage_router, prefix=schemes_prefix, tags=["A5 Usage"])
    app.include_router(scenarios_router, prefix=schemes_prefix, tags=["Scenarios"])
    app.include_router(lca_router, prefix=schemes_prefix, tags=["Lifecycle"])
    app.include_router(
        equivalency_router,
        prefix=f"{settings.api_v1_prefix}/equivalencies",
        tags=["Equivalencies"],
    )
    app.include_router(
        factors_router,
        prefix=f"{settings.api_v1_prefix}/factors",
        tags=["Factors"],
    )
    app.include_router(
        reference_router,
        prefix=f"{settings.api_v1_prefix}/reference",
        tags=["Reference Data"],
    )

    # Prometheus metrics endpoint
    instrumentator = Instrumentator().instrument(app)

    if settings.environment == "development" and not settings.metrics_auth_token:
        instrumentator.expose(app, endpoint="/metrics")
    else:

        @app.get("/metrics", include_in_schema=False)
        async def metrics_endpoint(
            authorization: str | None = Header(default=None),
        ) -> Response:
            if not settings.metrics_auth_token:
                return Response(status_code=404)
            if not authorization or not authorization.startswith("Bearer "):
                return Response(status_code=401)
            provided = authorization.removeprefix("Bearer ")
            if not hmac.compare_digest(provided, settings.metrics_auth_token):
                return Response(status_code=401)
            return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    return app


# Application instance
app = create_application()
