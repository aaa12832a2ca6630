"""
Domain Loaders

One loader per domain, sharing a common algorithm:

1. Read the raw source, keep its semantic columns and validate it
   (ERROR-severity failures abort the job with SourceSchemaError).
2. In one transaction: clear the target fact table, then turn every row into
   a typed record, resolve its dimension keys and insert it.
3. Rows whose join keys fail to parse or resolve are skipped and counted as
   failed; they never abort the batch.

The country loader is the exception: it upserts dim_country instead of
replacing a fact table, and runs before the fact loaders.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Set, Type, Union

import polars as pl
import structlog
from sqlalchemy import delete

from datavis_warehouse.config.settings import EtlSettings
from datavis_warehouse.database.connection import WarehouseStore
from datavis_warehouse.database.models import (
    Base,
    FactDemographics,
    FactExports,
    FactMigration,
    country_name_key,
)
from datavis_warehouse.etl.run_log import JobStats
from datavis_warehouse.exceptions import RecordValidationError, SourceSchemaError
from datavis_warehouse.ingestion.sources import read_source, select_columns, to_records
from datavis_warehouse.quality.records import (
    DemographicsRecord,
    ExportRecord,
    MigrationRecord,
    SourceRecord,
)
from datavis_warehouse.quality.validators import (
    DataValidator,
    create_demographics_validator,
    create_exports_validator,
    create_migration_validator,
)
from datavis_warehouse.transformation.dimensions import (
    DimensionResolver,
    canonical_age_group,
    canonical_country_name,
    canonical_gender,
)

logger = structlog.get_logger(__name__)


# Accepted header variants per semantic column, after header normalization
MIGRATION_COLUMNS: Dict[str, List[str]] = {
    "country": ["country_of_residence", "country_name", "citizenship"],
    "year": ["year_ended", "period"],
    "estimate": ["value", "count"],
}

DEMOGRAPHICS_COLUMNS: Dict[str, List[str]] = {
    "direction": ["migration_direction", "passenger_type"],
    "age": ["age_group", "agegroup"],
    "sex": ["gender"],
    "year": ["year_ended", "period"],
    "estimate": ["value", "count"],
}

EXPORTS_COLUMNS: Dict[str, List[str]] = {
    "name": ["label", "category"],
    "parent": ["parent_name", "parent_category"],
    "value": ["export_value", "amount"],
}


class SourceLoader(ABC):
    """
    Base class for a job that reads one raw source.

    Subclasses declare job_name, target_table and the column aliases of
    their source, and implement create_validator() and load().
    """

    job_name: str = ""
    target_table: str = ""
    columns: Dict[str, List[str]] = {}

    def __init__(
        self,
        store: WarehouseStore,
        source_path: Union[str, Path],
        etl_settings: Optional[EtlSettings] = None,
    ):
        self.store = store
        self.source_path = Path(source_path)
        self.etl = etl_settings or EtlSettings()

    @property
    def source_name(self) -> str:
        return self.source_path.name

    @abstractmethod
    def create_validator(self) -> DataValidator:
        """Validation suite for the selected columns"""

    @abstractmethod
    def load(self, stats: JobStats) -> None:
        """Run the job, accumulating counts into stats"""

    def extract(self) -> pl.DataFrame:
        """
        Read and validate the raw source.

        Raises:
            SourceMissingError: If the file is absent
            SourceSchemaError: If an ERROR-severity check fails
        """
        raw = read_source(self.source_path)
        df = select_columns(raw, self.columns)

        result = self.create_validator().validate(df)
        if result.errors:
            raise SourceSchemaError(self.source_name, result.errors)
        return df


class CountryDimensionLoader(SourceLoader):
    """Upserts every distinct country named by the migration source"""

    job_name = "etl_countries"
    target_table = "dim_country"
    columns = {"country": MIGRATION_COLUMNS["country"]}

    def create_validator(self) -> DataValidator:
        return (
            DataValidator("countries")
            .add_required_columns_check(["country"])
            .add_not_null_check("country")
        )

    def load(self, stats: JobStats) -> None:
        df = self.extract()

        seen: Set[str] = set()
        names: List[str] = []
        for raw_name in df.get_column("country").to_list():
            name = canonical_country_name(raw_name)
            key = country_name_key(name)
            if key and key not in seen:
                seen.add(key)
                names.append(name)

        with self.store.session() as session:
            resolver = DimensionResolver(session)
            for name in names:
                resolver.resolve_country(name)
                stats.record_inserted()

        logger.info(
            "Countries upserted",
            job=self.job_name,
            countries=len(names),
            created=resolver.countries_created,
            refreshed=resolver.countries_updated,
        )


class FactLoader(SourceLoader):
    """Full-replace loader for one fact table"""

    model: Type[Base]
    record_type: Type[SourceRecord]

    def parse_records(self, df: pl.DataFrame, stats: JobStats) -> List[SourceRecord]:
        """Typed records; rows that fail validation are counted as failed."""
        records = []
        for row in to_records(df):
            try:
                records.append(self.record_type.from_row(row))
            except RecordValidationError as e:
                stats.record_failed()
                logger.debug("Row rejected", job=self.job_name, field=e.field, error=e.message)
        return records

    def prepare(self, df: pl.DataFrame, stats: JobStats) -> Iterable[Any]:
        """Units to insert, one fact row each. Defaults to one per record."""
        return self.parse_records(df, stats)

    @abstractmethod
    def build_fact(self, unit: Any, resolver: DimensionResolver, loaded_at: datetime) -> Optional[Base]:
        """Fact row for one unit, or None when a dimension key does not resolve"""

    def load(self, stats: JobStats) -> None:
        df = self.extract()
        loaded_at = datetime.utcnow()

        with self.store.session() as session:
            session.execute(delete(self.model))
            resolver = DimensionResolver(session)

            facts = []
            for unit in self.prepare(df, stats):
                fact = self.build_fact(unit, resolver, loaded_at)
                if fact is None:
                    stats.record_failed()
                    logger.debug("Dimension lookup failed", job=self.job_name, row=unit)
                    continue
                facts.append(fact)
                stats.record_inserted()

            session.add_all(facts)
            session.flush()

        logger.info(
            "Fact table replaced",
            job=self.job_name,
            table=self.target_table,
            inserted=stats.inserted,
            failed=stats.failed,
        )


class MigrationLoader(FactLoader):
    """
    Migration estimates by country and year.

    Countries are only looked up here; the country job upserts them first.
    The single estimate is used for both arrivals and net migration.
    """

    job_name = "etl_migration"
    target_table = "fact_migration"
    columns = MIGRATION_COLUMNS
    model = FactMigration
    record_type = MigrationRecord

    def create_validator(self) -> DataValidator:
        return create_migration_validator()

    def build_fact(
        self, record: MigrationRecord, resolver: DimensionResolver, loaded_at: datetime
    ) -> Optional[FactMigration]:
        country_id = resolver.lookup_country(record.country)
        time_id = resolver.lookup_time(record.year)
        if country_id is None or time_id is None:
            return None

        return FactMigration(
            country_id=country_id,
            time_id=time_id,
            arrival_count=record.estimate,
            departure_count=0,
            net_migration=record.estimate,
            source_file=self.source_name,
            load_timestamp=loaded_at,
        )


class DemographicsLoader(FactLoader):
    """
    Migration by age and sex, one direction only.

    Raw rows are grouped by (age bucket, gender, year) and summed before
    insertion, so each unit is an aggregation group, not a raw line.
    """

    job_name = "etl_demographics"
    target_table = "fact_demographics"
    columns = DEMOGRAPHICS_COLUMNS
    model = FactDemographics
    record_type = DemographicsRecord

    def create_validator(self) -> DataValidator:
        return create_demographics_validator()

    def prepare(self, df: pl.DataFrame, stats: JobStats) -> List[Dict[str, Any]]:
        direction = self.etl.demographics_direction.strip().lower()
        df = df.filter(pl.col("direction").str.strip_chars().str.to_lowercase() == direction)

        records = self.parse_records(df, stats)
        if not records:
            return []

        frame = pl.DataFrame(
            {
                "age_group": [canonical_age_group(r.age) for r in records],
                "gender": [canonical_gender(r.sex) for r in records],
                "year": [r.year for r in records],
                "estimate": [r.estimate for r in records],
            },
            schema={"age_group": pl.Utf8, "gender": pl.Utf8, "year": pl.Int64, "estimate": pl.Int64},
        )
        grouped = (
            frame.group_by(["age_group", "gender", "year"], maintain_order=True)
            .agg(pl.col("estimate").sum().alias("population_count"))
            .with_columns(
                (pl.col("population_count") * 100.0 / pl.col("population_count").sum().over("year"))
                .fill_nan(None)
                .round(2)
                .alias("percentage")
            )
        )

        logger.debug("Demographics grouped", rows=len(records), groups=grouped.height)
        return grouped.to_dicts()

    def build_fact(
        self, group: Dict[str, Any], resolver: DimensionResolver, loaded_at: datetime
    ) -> Optional[FactDemographics]:
        time_id = resolver.lookup_time(group["year"])
        age_group_id = resolver.lookup_age_group(group["age_group"])
        gender_id = resolver.lookup_gender_code(group["gender"])
        if time_id is None or age_group_id is None or gender_id is None:
            return None

        return FactDemographics(
            time_id=time_id,
            age_group_id=age_group_id,
            gender_id=gender_id,
            population_count=int(group["population_count"]),
            percentage=group["percentage"],
            source_file=self.source_name,
            load_timestamp=loaded_at,
        )


class ExportsLoader(FactLoader):
    """
    Export category tree flattened into fact_exports.

    Every row is reported against January of the configured reporting year.
    """

    job_name = "etl_exports"
    target_table = "fact_exports"
    columns = EXPORTS_COLUMNS
    model = FactExports
    record_type = ExportRecord

    def create_validator(self) -> DataValidator:
        return create_exports_validator()

    def build_fact(
        self, record: ExportRecord, resolver: DimensionResolver, loaded_at: datetime
    ) -> Optional[FactExports]:
        time_id = resolver.lookup_time(self.etl.exports_reporting_year)
        if time_id is None:
            return None

        if record.is_top_level:
            category, subcategory, parent = record.name, None, None
        else:
            category, subcategory, parent = record.parent, record.name, record.parent

        return FactExports(
            time_id=time_id,
            category=category,
            subcategory=subcategory,
            parent_category=parent,
            export_value=record.value,
            source_file=self.source_name,
            load_timestamp=loaded_at,
        )
