"""FastAPI application factory"""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from starlette.responses import Response

from harambee_sacco.api.middleware import MetricsMiddleware, RequestIDMiddleware
from harambee_sacco.api.v1 import auth, downloads, reports, sacco
from harambee_sacco.config import settings
from harambee_sacco.infrastructure.database.models import Base
from harambee_sacco.infrastructure.database.session import engine
from harambee_sacco.infrastructure.observability.logging import setup_logging

# Setup structured logging
setup_logging(settings.log_level)


@asynccontextmanager
async def lifespan(app: FastAPI):
    if settings.auto_create_schema:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
    yield
    await engine.dispose()


def create_app() -> FastAPI:
    """Create and configure FastAPI application"""
    app = FastAPI(
        title="Harambee SACCO",
        description="SACCO back office: members, lending, reports and data exports",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    # Add middleware (order matters: last added = first executed)
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(RequestIDMiddleware)

    # Health check endpoint
    @app.get("/health")
    def health_check():
        return {"status": "ok", "service": settings.service_name}

    # Prometheus metrics endpoint
    @app.get("/metrics")
    def metrics():
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    # Register API routers
    app.include_router(auth.router, prefix="/api", tags=["members"])
    app.include_router(sacco.router, prefix="/api", tags=["sacco"])
    app.include_router(reports.router, prefix="/api", tags=["reports"])
    app.include_router(downloads.router, prefix="/api", tags=["downloads"])

    return app


app = create_app()
