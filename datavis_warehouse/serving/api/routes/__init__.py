"""
API Routes Module
"""
from .analytics import router as analytics_router
from .health import router as health_router
from .migration import router as migration_router
from .query import router as query_router

__all__ = [
    "analytics_router",
    "health_router",
    "migration_router",
    "query_router",
]
