"""
Schema Manager

Drops and recreates every warehouse table and reporting view, then seeds the
static dimensions (time horizon, age groups, genders, visa types).
"""

from datetime import date
from typing import Dict, List, Optional

import structlog
from sqlalchemy import text

from datavis_warehouse.config import get_settings
from datavis_warehouse.config.settings import EtlSettings
from datavis_warehouse.database.connection import WarehouseStore
from datavis_warehouse.database.models import (
    Base,
    DimAgeGroup,
    DimGender,
    DimTime,
    DimVisaType,
)
from datavis_warehouse.transformation.reference import (
    AGE_GROUPS,
    GENDERS,
    MONTH_NAMES,
    VISA_TYPES,
)

logger = structlog.get_logger(__name__)


REPORTING_VIEWS: Dict[str, str] = {
    "vw_migration_summary": """
        CREATE VIEW vw_migration_summary AS
        SELECT
            c.country_name,
            c.region,
            c.continent,
            t.year,
            t.month,
            SUM(f.arrival_count) AS total_arrivals,
            SUM(f.departure_count) AS total_departures,
            SUM(f.net_migration) AS net_migration
        FROM fact_migration f
        JOIN dim_country c ON f.country_id = c.country_id
        JOIN dim_time t ON f.time_id = t.time_id
        GROUP BY c.country_name, c.region, c.continent, t.year, t.month
    """,
    "vw_demographics_summary": """
        CREATE VIEW vw_demographics_summary AS
        SELECT
            t.year,
            a.age_group_name,
            g.gender_name,
            SUM(f.population_count) AS total_population,
            AVG(f.percentage) AS avg_percentage
        FROM fact_demographics f
        JOIN dim_time t ON f.time_id = t.time_id
        JOIN dim_age_group a ON f.age_group_id = a.age_group_id
        JOIN dim_gender g ON f.gender_id = g.gender_id
        GROUP BY t.year, a.age_group_name, g.gender_name
    """,
}


def fiscal_year_for(year: int, month: int, start_month: int) -> int:
    """Fiscal year a calendar month belongs to, named after the year it ends in."""
    if start_month == 1:
        return year
    return year + 1 if month >= start_month else year


def build_time_rows(start_year: int, end_year: int, fiscal_start_month: int) -> List[DimTime]:
    """One DimTime row per month of every year in [start_year, end_year]."""
    rows = []
    for year in range(start_year, end_year + 1):
        for month in range(1, 13):
            rows.append(DimTime(
                full_date=date(year, month, 1),
                year=year,
                quarter=(month - 1) // 3 + 1,
                month=month,
                month_name=MONTH_NAMES[month - 1],
                fiscal_year=fiscal_year_for(year, month, fiscal_start_month),
            ))
    return rows


class SchemaManager:
    """
    Owns the warehouse table definitions.

    reset_schema() is destructive: every fact, aggregate and log row is lost
    and the full pipeline must be re-run afterwards. It is meant for
    provisioning, not for each ETL run.

    Example:
        manager = SchemaManager(store)
        manager.reset_schema()
    """

    def __init__(self, store: WarehouseStore, etl_settings: Optional[EtlSettings] = None):
        self.store = store
        self.etl_settings = etl_settings or get_settings().etl

    def drop_views(self) -> None:
        with self.store.engine.begin() as conn:
            for name in REPORTING_VIEWS:
                conn.execute(text(f"DROP VIEW IF EXISTS {name}"))

    def create_views(self) -> None:
        with self.store.engine.begin() as conn:
            for ddl in REPORTING_VIEWS.values():
                conn.execute(text(ddl))

    def reset_schema(self) -> Dict[str, int]:
        """
        Drop and recreate all tables, views and indexes, then seed the
        static dimensions.

        Returns:
            dict: Seeded row count per static dimension table
        """
        if self.store.read_only:
            raise PermissionError("Cannot reset the schema through a read-only store")

        logger.warning("Resetting warehouse schema", url=self.store.url)

        self.drop_views()
        Base.metadata.drop_all(self.store.engine)
        Base.metadata.create_all(self.store.engine)
        self.create_views()

        seeded = self.seed_static_dimensions()
        logger.info("Warehouse schema reset", tables=len(Base.metadata.tables), **seeded)
        return seeded

    def seed_static_dimensions(self) -> Dict[str, int]:
        """Populate dim_time, dim_age_group, dim_gender and dim_visa_type."""
        settings = self.etl_settings
        time_rows = build_time_rows(
            settings.time_start_year,
            settings.time_end_year,
            settings.fiscal_year_start_month,
        )
        age_rows = [
            DimAgeGroup(
                age_group_code=code,
                age_group_name=name,
                min_age=min_age,
                max_age=max_age,
                generation=generation,
            )
            for code, name, min_age, max_age, generation in AGE_GROUPS
        ]
        gender_rows = [DimGender(gender_code=code, gender_name=name) for code, name in GENDERS]
        visa_rows = [
            DimVisaType(visa_code=code, visa_name=name, visa_category=category, description=description)
            for code, name, category, description in VISA_TYPES
        ]

        with self.store.session() as session:
            session.add_all(time_rows)
            session.add_all(age_rows)
            session.add_all(gender_rows)
            session.add_all(visa_rows)

        return {
            "dim_time": len(time_rows),
            "dim_age_group": len(age_rows),
            "dim_gender": len(gender_rows),
            "dim_visa_type": len(visa_rows),
        }
