"""
Response Envelope and Error Handlers

Every endpoint answers with {"success": bool, "data"?: ..., "error"?: str}.
"""

from typing import Any, Dict, Iterator

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session
from starlette.exceptions import HTTPException as StarletteHTTPException

from datavis_warehouse.database.connection import WarehouseStore
from datavis_warehouse.exceptions import StoreNotOpenError, WarehouseError

logger = structlog.get_logger(__name__)


class QueryFailed(WarehouseError):
    """A warehouse query raised a database error; rendered as HTTP 500"""


def success(data: Any = None, **extra: Any) -> Dict[str, Any]:
    """Successful envelope; extra keys sit beside data."""
    return {"success": True, **extra, "data": data}


def error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": message})


# =============================================================================
# DEPENDENCIES
# =============================================================================

def get_store(request: Request) -> WarehouseStore:
    """Store attached to the application"""
    store = getattr(request.app.state, "store", None)
    if store is None:
        raise StoreNotOpenError("Warehouse store is not open")
    return store


def get_session(request: Request) -> Iterator[Session]:
    """One read transaction per request"""
    with get_store(request).session() as session:
        yield session


# =============================================================================
# EXCEPTION HANDLERS
# =============================================================================

async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    message = "Endpoint not found" if exc.status_code == 404 else str(exc.detail)
    return error_response(exc.status_code, message)


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    problems = [
        f"{'.'.join(str(part) for part in error.get('loc', ()))}: {error.get('msg')}"
        for error in exc.errors()
    ]
    return error_response(400, "; ".join(problems) or "Invalid request")


async def warehouse_exception_handler(request: Request, exc: WarehouseError) -> JSONResponse:
    logger.error("Request failed", path=request.url.path, error=str(exc), error_type=type(exc).__name__)
    return error_response(500, str(exc))


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error("Unhandled error", path=request.url.path, error=str(exc), exc_info=True)
    return error_response(500, "Internal server error")


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(WarehouseError, warehouse_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
