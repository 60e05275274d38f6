"""
FastAPI application factory.
Run with: uvicorn docrelay.main:app
"""

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from docrelay.api.router import api_router
from docrelay.config import settings
from docrelay.dependencies import close_clients
from docrelay.models.database import close_db, init_db
from docrelay.observability.logging import setup_logging

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan: startup and shutdown."""
    setup_logging(role="api")

    if settings.SENTRY_DSN:
        import sentry_sdk
        from sentry_sdk.integrations.fastapi import FastApiIntegration
        sentry_sdk.init(
            dsn=settings.SENTRY_DSN,
            integrations=[FastApiIntegration()],
            traces_sample_rate=0.1,
        )

    await init_db()
    logger.info("relay_started", version=settings.APP_VERSION, queue_enabled=settings.USE_WORKER_QUEUE)

    yield

    await close_clients()
    await close_db()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="Document Relay",
        description="Relays PDFs from WhatsApp to a plagiarism scanner and delivers each report exactly once.",
        version=settings.APP_VERSION,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS.split(","),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    if settings.PROMETHEUS_ENABLED:
        from prometheus_client import make_asgi_app
        metrics_app = make_asgi_app()
        app.mount("/metrics", metrics_app)

    app.include_router(api_router)

    return app


# Application instance
app = create_app()
