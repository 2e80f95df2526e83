"""
Promotion Reconciliation API - Main Application.

FastAPI application exposing the reconciliation engine. On startup it builds
the Supabase-backed service and, unless disabled, starts the background
watcher; on shutdown it stops the watcher.
"""

import logging
import os
from contextlib import asynccontextmanager
from typing import Awaitable, Callable, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api import __version__
from api.routers import reconciliation
from services.reconciliation_service import ReconciliationService
from services.reconciliation_watcher import ReconciliationWatcher
from services.settings import ReconciliationSettings

logger = logging.getLogger(__name__)

ServiceFactory = Callable[[ReconciliationSettings], Awaitable[ReconciliationService]]


async def _default_service_factory(settings: ReconciliationSettings) -> ReconciliationService:
    from services.factory import build_reconciliation_service

    return await build_reconciliation_service(settings)


def create_app(
    service_factory: Optional[ServiceFactory] = None,
    settings: Optional[ReconciliationSettings] = None,
) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        service_factory: Coroutine building the ReconciliationService
            (defaults to the Supabase-backed factory)
        settings: Engine settings; read from the environment when None
    """

    factory = service_factory or _default_service_factory

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        app_settings = settings or ReconciliationSettings.from_env()
        service = await factory(app_settings)
        app.state.reconciliation = service
        app.state.watcher = None

        if app_settings.watcher_enabled:
            watcher = ReconciliationWatcher(
                service,
                interval_seconds=app_settings.interval_seconds,
                notifications=service.notifications,
            )
            watcher.start()
            app.state.watcher = watcher
        try:
            yield
        finally:
            if app.state.watcher is not None:
                await app.state.watcher.stop()

    app = FastAPI(
        title="Promotion Reconciliation API",
        description="Detects and repairs inconsistent lead-to-tenant promotions",
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    # TODO: Restrict origins to the admin console host in production
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/health", tags=["Health"])
    def health_check():
        """
        Health check endpoint.

        Returns the API status and version.
        """
        return {
            "status": "healthy",
            "version": __version__,
            "service": "promotion-reconciliation-api"
        }

    @app.get("/", tags=["Root"])
    def root():
        """
        Root endpoint with API information.
        """
        return {
            "message": "Promotion Reconciliation API",
            "version": __version__,
            "docs": "/docs",
            "health": "/health"
        }

    app.include_router(reconciliation.router, prefix="/api/v1", tags=["Reconciliation"])
    return app


logging.basicConfig(level=getattr(logging, os.getenv("LOG_LEVEL", "INFO").upper(), logging.INFO))

app = create_app()
