"""
Analytics API Endpoints

Demographics, exports, table statistics and the ETL run log.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

import structlog
from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from datavis_warehouse.database.models import (
    AGGREGATE_TABLES,
    DIMENSION_TABLES,
    FACT_TABLES,
    Base,
    DimAgeGroup,
    DimGender,
    EtlLog,
    FactDemographics,
    FactExports,
)
from datavis_warehouse.serving.api.responses import QueryFailed, get_session, success

router = APIRouter()
logger = structlog.get_logger(__name__)

RECENT_LOGS = 50


class EtlLogEntry(BaseModel):
    """One run-log row"""
    model_config = ConfigDict(from_attributes=True)

    log_id: int
    job_name: str
    source_file: Optional[str]
    target_table: Optional[str]
    records_processed: int
    records_inserted: int
    records_updated: int
    records_failed: int
    status: str
    error_message: Optional[str]
    started_at: datetime
    completed_at: Optional[datetime]
    duration_seconds: Optional[float]


@router.get("/demographics")
def demographics(db: Session = Depends(get_session)) -> Dict[str, Any]:
    """Population by age group and gender, youngest bucket first."""
    try:
        rows = db.execute(
            select(
                DimAgeGroup.age_group_name,
                DimGender.gender_name,
                func.sum(FactDemographics.population_count).label("population"),
            )
            .join(DimAgeGroup, FactDemographics.age_group_id == DimAgeGroup.age_group_id)
            .join(DimGender, FactDemographics.gender_id == DimGender.gender_id)
            .group_by(DimAgeGroup.age_group_name, DimGender.gender_name, DimAgeGroup.min_age)
            .order_by(DimAgeGroup.min_age, DimGender.gender_name)
        ).mappings().all()
    except SQLAlchemyError as e:
        raise QueryFailed(str(e)) from e

    return success([dict(row) for row in rows])


@router.get("/exports")
def exports(db: Session = Depends(get_session)) -> Dict[str, Any]:
    """
    Flattened export categories, largest value first.

    name is the node's own label (the subcategory for child rows) and
    parent its parent category, which is what a treemap needs.
    """
    try:
        rows = db.execute(
            select(
                func.coalesce(FactExports.subcategory, FactExports.category).label("name"),
                FactExports.parent_category.label("parent"),
                FactExports.category,
                FactExports.subcategory,
                FactExports.export_value.label("value"),
            ).order_by(FactExports.export_value.desc())
        ).mappings().all()
    except SQLAlchemyError as e:
        raise QueryFailed(str(e)) from e

    return success([dict(row) for row in rows])


@router.get("/stats")
def stats(db: Session = Depends(get_session)) -> Dict[str, Any]:
    """Row counts of every dimension, fact and aggregate table."""
    counts: Dict[str, int] = {}
    try:
        for name in DIMENSION_TABLES + FACT_TABLES + AGGREGATE_TABLES:
            table = Base.metadata.tables[name]
            counts[name] = db.scalar(select(func.count()).select_from(table)) or 0
    except SQLAlchemyError as e:
        raise QueryFailed(str(e)) from e

    return success(counts, timestamp=datetime.utcnow().isoformat())


@router.get("/etl/logs")
def etl_logs(db: Session = Depends(get_session)) -> Dict[str, Any]:
    """Most recent run-log entries, newest first."""
    try:
        logs: List[EtlLog] = list(db.execute(
            select(EtlLog)
            .order_by(EtlLog.started_at.desc(), EtlLog.log_id.desc())
            .limit(RECENT_LOGS)
        ).scalars())
    except SQLAlchemyError as e:
        raise QueryFailed(str(e)) from e

    return success([EtlLogEntry.model_validate(log).model_dump() for log in logs])
