"""
Aggregation Builder

Rebuilds the migration aggregate tables from the current fact rows. There is
no incremental path: every rebuild deletes and reinserts both tables, so the
aggregates always match fact_migration exactly.
"""

from typing import Dict

import structlog
from sqlalchemy import delete, distinct, func, insert, select

from datavis_warehouse.database.connection import WarehouseStore
from datavis_warehouse.database.models import (
    AggMigrationByCountry,
    AggMigrationYearly,
    DimTime,
    FactMigration,
)

logger = structlog.get_logger(__name__)

MONTHS_PER_YEAR = 12.0


class AggregationBuilder:
    """
    Example:
        counts = AggregationBuilder(store).rebuild_aggregates()
        # {"agg_migration_yearly": 280, "agg_migration_by_country": 24}
    """

    def __init__(self, store: WarehouseStore):
        self.store = store

    def rebuild_aggregates(self) -> Dict[str, int]:
        """
        Replace both aggregate tables in one transaction.

        Returns:
            Rows written per aggregate table
        """
        yearly = (
            select(
                FactMigration.country_id,
                DimTime.year,
                func.sum(FactMigration.arrival_count),
                func.sum(FactMigration.departure_count),
                func.sum(FactMigration.net_migration),
                func.sum(FactMigration.arrival_count) / MONTHS_PER_YEAR,
            )
            .join(DimTime, FactMigration.time_id == DimTime.time_id)
            .group_by(FactMigration.country_id, DimTime.year)
        )

        by_country = (
            select(
                FactMigration.country_id,
                func.sum(FactMigration.arrival_count),
                func.sum(FactMigration.departure_count),
                func.sum(FactMigration.net_migration),
                func.min(DimTime.year),
                func.max(DimTime.year),
                func.count(distinct(DimTime.year)),
            )
            .join(DimTime, FactMigration.time_id == DimTime.time_id)
            .group_by(FactMigration.country_id)
        )

        with self.store.session() as session:
            session.execute(delete(AggMigrationYearly))
            session.execute(delete(AggMigrationByCountry))

            session.execute(
                insert(AggMigrationYearly).from_select(
                    [
                        "country_id",
                        "year",
                        "total_arrivals",
                        "total_departures",
                        "total_net_migration",
                        "avg_monthly_arrivals",
                    ],
                    yearly,
                )
            )
            session.execute(
                insert(AggMigrationByCountry).from_select(
                    [
                        "country_id",
                        "total_arrivals",
                        "total_departures",
                        "total_net_migration",
                        "first_year",
                        "last_year",
                        "years_count",
                    ],
                    by_country,
                )
            )

            counts = {
                AggMigrationYearly.__tablename__: session.scalar(
                    select(func.count()).select_from(AggMigrationYearly)
                ),
                AggMigrationByCountry.__tablename__: session.scalar(
                    select(func.count()).select_from(AggMigrationByCountry)
                ),
            }

        logger.info("Aggregates rebuilt", **counts)
        return counts
