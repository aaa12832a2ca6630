"""
Health Check Endpoint
"""

from datetime import datetime
from typing import Any, Dict

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel

from datavis_warehouse.database.connection import WarehouseStore
from datavis_warehouse.serving.api.responses import get_store

router = APIRouter()


class HealthResponse(BaseModel):
    """Health check response"""
    success: bool
    status: str
    version: str
    environment: str
    timestamp: datetime
    database: Dict[str, Any]


@router.get("/health", response_model=HealthResponse)
def health_check(request: Request, store: WarehouseStore = Depends(get_store)) -> HealthResponse:
    """Service status with database reachability and latency."""
    settings = request.app.state.settings
    database = store.check_health()
    healthy = database.get("status") == "healthy"

    return HealthResponse(
        success=healthy,
        status="healthy" if healthy else "degraded",
        version=settings.version,
        environment=settings.app_env,
        timestamp=datetime.utcnow(),
        database=database,
    )
