"""
Migration API Endpoints

Countries and migration series, served from the pre-computed aggregates.
"""

from typing import Any, Dict, Optional

import structlog
from fastapi import APIRouter, Depends, Query
from sqlalchemy import distinct, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from datavis_warehouse.database.models import (
    AggMigrationByCountry,
    AggMigrationYearly,
    DimCountry,
)
from datavis_warehouse.serving.api.responses import QueryFailed, get_session, success

router = APIRouter()
logger = structlog.get_logger(__name__)

DEFAULT_LIMIT = 1000
TOP_COUNTRIES = 10


def _yearly_rows():
    return (
        select(
            DimCountry.country_name,
            DimCountry.region,
            DimCountry.continent,
            AggMigrationYearly.year,
            AggMigrationYearly.total_arrivals.label("arrivals"),
            AggMigrationYearly.total_net_migration.label("net_migration"),
        )
        .join(DimCountry, AggMigrationYearly.country_id == DimCountry.country_id)
    )


@router.get("/countries")
def list_countries(db: Session = Depends(get_session)) -> Dict[str, Any]:
    """All countries, alphabetically."""
    try:
        rows = db.execute(
            select(
                DimCountry.country_id.label("id"),
                DimCountry.country_name.label("name"),
                DimCountry.region,
                DimCountry.continent,
            ).order_by(DimCountry.country_name)
        ).mappings().all()
    except SQLAlchemyError as e:
        raise QueryFailed(str(e)) from e

    return success([dict(row) for row in rows])


@router.get("/migration")
def list_migration(
    year: Optional[int] = None,
    country: Optional[str] = None,
    limit: int = Query(DEFAULT_LIMIT, ge=1),
    db: Session = Depends(get_session),
) -> Dict[str, Any]:
    """
    Yearly arrivals per country, newest year first and largest flows first
    within a year.
    """
    stmt = _yearly_rows()
    if year is not None:
        stmt = stmt.where(AggMigrationYearly.year == year)
    if country:
        stmt = stmt.where(DimCountry.country_name == country)
    stmt = stmt.order_by(AggMigrationYearly.year.desc(), AggMigrationYearly.total_arrivals.desc()).limit(limit)

    try:
        rows = db.execute(stmt).mappings().all()
    except SQLAlchemyError as e:
        raise QueryFailed(str(e)) from e

    data = [dict(row) for row in rows]
    return success(data, count=len(data))


@router.get("/migration/summary")
def migration_summary(db: Session = Depends(get_session)) -> Dict[str, Any]:
    """Global totals per year and the top countries by all-time arrivals."""
    try:
        yearly = db.execute(
            select(
                AggMigrationYearly.year,
                func.sum(AggMigrationYearly.total_arrivals).label("total_arrivals"),
                func.sum(AggMigrationYearly.total_net_migration).label("total_net_migration"),
                func.count(distinct(AggMigrationYearly.country_id)).label("countries_count"),
            )
            .group_by(AggMigrationYearly.year)
            .order_by(AggMigrationYearly.year)
        ).mappings().all()

        top_countries = db.execute(
            select(
                DimCountry.country_name,
                AggMigrationByCountry.total_arrivals,
                AggMigrationByCountry.total_net_migration,
            )
            .join(DimCountry, AggMigrationByCountry.country_id == DimCountry.country_id)
            .order_by(AggMigrationByCountry.total_arrivals.desc())
            .limit(TOP_COUNTRIES)
        ).mappings().all()
    except SQLAlchemyError as e:
        raise QueryFailed(str(e)) from e

    return success({
        "yearly": [dict(row) for row in yearly],
        "topCountries": [dict(row) for row in top_countries],
    })


@router.get("/migration/country/{name}")
def migration_by_country(name: str, db: Session = Depends(get_session)) -> Dict[str, Any]:
    """Time series for one country, oldest year first."""
    try:
        rows = db.execute(
            select(
                AggMigrationYearly.year,
                AggMigrationYearly.total_arrivals.label("arrivals"),
                AggMigrationYearly.total_net_migration.label("net_migration"),
            )
            .join(DimCountry, AggMigrationYearly.country_id == DimCountry.country_id)
            .where(DimCountry.country_name == name)
            .order_by(AggMigrationYearly.year)
        ).mappings().all()
    except SQLAlchemyError as e:
        raise QueryFailed(str(e)) from e

    return success([dict(row) for row in rows], country=name)


@router.get("/migration/year/{year}")
def migration_by_year(year: int, db: Session = Depends(get_session)) -> Dict[str, Any]:
    """Cross-section of every country for one year, largest flows first."""
    try:
        rows = db.execute(
            select(
                DimCountry.country_name,
                DimCountry.region,
                DimCountry.continent,
                AggMigrationYearly.total_arrivals.label("arrivals"),
                AggMigrationYearly.total_net_migration.label("net_migration"),
            )
            .join(DimCountry, AggMigrationYearly.country_id == DimCountry.country_id)
            .where(AggMigrationYearly.year == year)
            .order_by(AggMigrationYearly.total_arrivals.desc())
        ).mappings().all()
    except SQLAlchemyError as e:
        raise QueryFailed(str(e)) from e

    return success([dict(row) for row in rows], year=year)
