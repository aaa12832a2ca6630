"""
FastAPI Application

Read-only query surface over the warehouse, consumed by the visualization
client.
"""

from contextlib import asynccontextmanager
from typing import Any, Dict, Optional

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware

from datavis_warehouse.config import Settings, get_settings
from datavis_warehouse.database.connection import WarehouseStore, open_store
from datavis_warehouse.serving.api.middleware import RequestLoggingMiddleware
from datavis_warehouse.serving.api.responses import register_exception_handlers
from datavis_warehouse.serving.api.routes import (
    analytics_router,
    health_router,
    migration_router,
    query_router,
)

logger = structlog.get_logger(__name__)

ENDPOINTS = {
    "health": "GET {prefix}/health",
    "countries": "GET {prefix}/countries",
    "migration": "GET {prefix}/migration",
    "migrationByCountry": "GET {prefix}/migration/country/:name",
    "migrationByYear": "GET {prefix}/migration/year/:year",
    "migrationSummary": "GET {prefix}/migration/summary",
    "demographics": "GET {prefix}/demographics",
    "exports": "GET {prefix}/exports",
    "query": "POST {prefix}/query",
    "stats": "GET {prefix}/stats",
    "etlLogs": "GET {prefix}/etl/logs",
}


def create_app(store: Optional[WarehouseStore] = None, settings: Optional[Settings] = None) -> FastAPI:
    """
    Create and configure the API application.

    Args:
        store: Open store to serve from. When omitted, the application opens a
            read-only store on startup and closes it on shutdown.
        settings: Application settings (defaults to get_settings())
    """
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owned = None
        if app.state.store is None:
            owned = open_store(settings, read_only=True)
            app.state.store = owned
        logger.info("Starting DataVis Warehouse API", version=settings.version, environment=settings.app_env)

        yield

        logger.info("Shutting down...")
        if owned is not None:
            owned.close()
            app.state.store = None

    app = FastAPI(
        title="DataVis Data Warehouse API",
        description="Read-only query API over the migration, demographics and exports warehouse",
        version=settings.version,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )
    app.state.store = store
    app.state.settings = settings

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.security.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(GZipMiddleware, minimum_size=1000)
    app.add_middleware(RequestLoggingMiddleware)

    register_exception_handlers(app)

    prefix = settings.api_prefix
    app.include_router(health_router, prefix=prefix, tags=["Health"])
    app.include_router(migration_router, prefix=prefix, tags=["Migration"])
    app.include_router(analytics_router, prefix=prefix, tags=["Analytics"])
    app.include_router(query_router, prefix=prefix, tags=["Query"])

    @app.get("/")
    def api_info() -> Dict[str, Any]:
        """API information endpoint."""
        return {
            "success": True,
            "name": "DataVis Data Warehouse API",
            "version": settings.version,
            "endpoints": {key: value.format(prefix=prefix) for key, value in ENDPOINTS.items()},
        }

    return app


app = create_app()
