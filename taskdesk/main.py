"""Task Desk — FastAPI Application Factory."""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from taskdesk.auth.router import router as auth_router
from taskdesk.common.exceptions import register_exception_handlers
from taskdesk.common.logging_setup import configure_logging
from taskdesk.common.rate_limit import limiter
from taskdesk.config import settings
from taskdesk.database import dispose_engine
from taskdesk.tasks.router import router as tasks_router
from taskdesk.upstream.client import UpstreamClient


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Hold the shared upstream client open; release it and the DB pool on shutdown."""
    app.state.upstream = UpstreamClient.from_settings()
    yield
    await app.state.upstream.aclose()
    await dispose_engine()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    configure_logging(settings.LOG_LEVEL)

    app = FastAPI(
        title="Task Desk",
        description="Task assignment and acknowledgement gateway for the faculty portal",
        version="1.0.0",
        docs_url="/api/docs" if settings.ENVIRONMENT != "production" else None,
        redoc_url="/api/redoc" if settings.ENVIRONMENT != "production" else None,
        lifespan=lifespan,
    )

    # Exception handlers (RFC 7807)
    register_exception_handlers(app)

    # Rate limiting (slowapi)
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Health check (no auth)
    @app.get("/api/v1/health", tags=["system"])
    async def health_check():
        return {
            "status": "healthy",
            "version": "1.0.0",
            "environment": settings.ENVIRONMENT,
        }

    # Register routers
    app.include_router(auth_router, prefix="/api/v1/auth", tags=["auth"])
    app.include_router(tasks_router, prefix="/api/v1/tasks", tags=["tasks"])

    return app


app = create_app()
