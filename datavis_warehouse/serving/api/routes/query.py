"""
Ad-hoc Query Endpoint

Runs a caller-supplied SELECT against the read-only store.

The keyword check is a textual denylist, not a sandbox: it rejects any text
containing a forbidden word, including inside identifiers such as
created_at. The read-only connection is what actually prevents writes.
"""

from typing import Any, Dict, Optional

import structlog
from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from datavis_warehouse.database.connection import WarehouseStore
from datavis_warehouse.serving.api.responses import QueryFailed, get_store, success

router = APIRouter()
logger = structlog.get_logger(__name__)

FORBIDDEN_KEYWORDS = ("drop", "delete", "insert", "update", "alter", "create")


class QueryRequest(BaseModel):
    """Body of POST /query"""
    sql: Optional[str] = None


def check_query(sql: Optional[str]) -> str:
    """
    Apply the SELECT-only rule and the keyword denylist.

    Raises:
        HTTPException: 400 when the query is rejected
    """
    if not sql or not sql.strip().lower().startswith("select"):
        raise HTTPException(status_code=400, detail="Only SELECT queries are allowed")

    lowered = sql.lower()
    if any(word in lowered for word in FORBIDDEN_KEYWORDS):
        raise HTTPException(status_code=400, detail="Query contains forbidden operations")
    return sql


@router.post("/query")
def run_query(body: QueryRequest, store: WarehouseStore = Depends(get_store)) -> Dict[str, Any]:
    """Execute one SELECT and return its rows."""
    sql = check_query(body.sql)
    logger.info("Ad-hoc query", sql=sql)

    try:
        with store.session() as session:
            rows = session.execute(text(sql)).mappings().all()
    except SQLAlchemyError as e:
        raise QueryFailed(str(getattr(e, "orig", None) or e)) from e

    data = [dict(row) for row in rows]
    return success(data, count=len(data))
