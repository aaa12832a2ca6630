"""
Warehouse Pipeline

Runs one full ETL cycle against an open store:

    snapshot raw inputs -> countries -> migration -> demographics -> exports
    -> rebuild aggregates

Jobs run sequentially in registry order. Each job is isolated: a missing
source skips it, any other exception fails it, and in both cases the next
job still runs. Every job writes exactly one run-log row. Aggregates are
rebuilt after every run, including runs where a fact job failed.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, List, Optional, Type, Union

import structlog
from pydantic import BaseModel, Field

from datavis_warehouse.config import Settings, get_settings
from datavis_warehouse.config.settings import EtlSettings
from datavis_warehouse.database.connection import WarehouseStore
from datavis_warehouse.database.models import JobStatus
from datavis_warehouse.etl.aggregates import AggregationBuilder
from datavis_warehouse.etl.loaders import (
    CountryDimensionLoader,
    DemographicsLoader,
    ExportsLoader,
    MigrationLoader,
    SourceLoader,
)
from datavis_warehouse.etl.run_log import JobResult, JobStats, RunLogger
from datavis_warehouse.exceptions import SourceMissingError
from datavis_warehouse.ingestion.data_lake import DataLake, default_mappings

logger = structlog.get_logger(__name__)

AGGREGATE_JOB_NAME = "build_aggregates"


class DomainKind(str, Enum):
    """Domains the pipeline loads, in dependency order"""
    COUNTRIES = "countries"
    MIGRATION = "migration"
    DEMOGRAPHICS = "demographics"
    EXPORTS = "exports"


@dataclass(frozen=True)
class JobDefinition:
    """Static description of one domain job"""
    kind: DomainKind
    loader_class: Type[SourceLoader]
    source_file: Callable[[EtlSettings], str]

    @property
    def job_name(self) -> str:
        return self.loader_class.job_name

    @property
    def target_table(self) -> str:
        return self.loader_class.target_table


JOB_REGISTRY: Dict[DomainKind, JobDefinition] = {
    DomainKind.COUNTRIES: JobDefinition(
        DomainKind.COUNTRIES, CountryDimensionLoader, lambda etl: etl.migration_file
    ),
    DomainKind.MIGRATION: JobDefinition(
        DomainKind.MIGRATION, MigrationLoader, lambda etl: etl.migration_file
    ),
    DomainKind.DEMOGRAPHICS: JobDefinition(
        DomainKind.DEMOGRAPHICS, DemographicsLoader, lambda etl: etl.demographics_file
    ),
    DomainKind.EXPORTS: JobDefinition(
        DomainKind.EXPORTS, ExportsLoader, lambda etl: etl.exports_file
    ),
}

JOB_ORDER: List[DomainKind] = [
    DomainKind.COUNTRIES,
    DomainKind.MIGRATION,
    DomainKind.DEMOGRAPHICS,
    DomainKind.EXPORTS,
]


class PipelineResult(BaseModel):
    """Outcome of one pipeline run"""
    started_at: datetime
    completed_at: Optional[datetime] = None
    duration_seconds: float = 0
    dataset_path: str
    snapshot_files: List[str] = Field(default_factory=list)
    jobs: List[JobResult] = Field(default_factory=list)
    aggregates: Optional[JobResult] = None

    @property
    def failed_jobs(self) -> List[JobResult]:
        return [job for job in self.all_jobs if job.status == JobStatus.FAILED]

    @property
    def skipped_jobs(self) -> List[JobResult]:
        return [job for job in self.jobs if job.status == JobStatus.SKIPPED]

    @property
    def all_jobs(self) -> List[JobResult]:
        return self.jobs + ([self.aggregates] if self.aggregates else [])

    @property
    def succeeded(self) -> bool:
        return not self.failed_jobs


class WarehousePipeline:
    """
    ETL pipeline orchestrator.

    Example:
        with open_store(settings) as store:
            result = WarehousePipeline(store, settings).run()
            for job in result.jobs:
                print(job.job_name, job.status, job.inserted, job.failed)
    """

    def __init__(self, store: WarehouseStore, settings: Optional[Settings] = None):
        self.store = store
        self.settings = settings or get_settings()
        self.run_logger = RunLogger(store)

    def run(
        self,
        dataset_path: Optional[Union[str, Path]] = None,
        snapshot: Optional[bool] = None,
        kinds: Optional[List[DomainKind]] = None,
    ) -> PipelineResult:
        """
        Run one ETL cycle.

        Args:
            dataset_path: Directory holding the raw inputs (defaults to settings)
            snapshot: Copy raw inputs into the data lake first (defaults to settings)
            kinds: Restrict to these domains, still in registry order

        Returns:
            PipelineResult with one JobResult per job
        """
        dataset_dir = Path(dataset_path or self.settings.data_lake.dataset_path)
        if snapshot is None:
            snapshot = self.settings.etl.snapshot_raw_inputs

        result = PipelineResult(started_at=datetime.utcnow(), dataset_path=str(dataset_dir))
        logger.info("Pipeline started", dataset=str(dataset_dir), snapshot=snapshot)

        if snapshot:
            lake = DataLake(self.settings.data_lake.raw_path)
            copied = lake.snapshot(dataset_dir, default_mappings(self.settings.etl))
            result.snapshot_files = [str(path) for path in copied]

        selected = [kind for kind in JOB_ORDER if kinds is None or kind in kinds]
        for kind in selected:
            result.jobs.append(self.run_job(kind, dataset_dir))

        result.aggregates = self.build_aggregates()

        result.completed_at = datetime.utcnow()
        result.duration_seconds = round((result.completed_at - result.started_at).total_seconds(), 3)

        logger.info(
            "Pipeline completed",
            jobs=len(result.all_jobs),
            failed=len(result.failed_jobs),
            skipped=len(result.skipped_jobs),
            duration=result.duration_seconds,
        )
        return result

    def run_job(self, kind: DomainKind, dataset_dir: Union[str, Path]) -> JobResult:
        """Run one domain job and record its outcome."""
        definition = JOB_REGISTRY[kind]
        source_file = definition.source_file(self.settings.etl)
        loader = definition.loader_class(
            self.store, Path(dataset_dir) / source_file, self.settings.etl
        )

        stats = JobStats()
        status = JobStatus.SUCCESS
        error_message = None
        logger.info("Job started", job=definition.job_name, source=source_file)

        try:
            loader.load(stats)
        except SourceMissingError as e:
            status = JobStatus.SKIPPED
            error_message = str(e)
            logger.warning("Job skipped, source missing", job=definition.job_name, path=e.path)
        except Exception as e:
            status = JobStatus.FAILED
            error_message = str(e)
            logger.error("Job failed", job=definition.job_name, error=error_message, exc_info=True)

        stats.finish()
        job = self.run_logger.record(
            definition.job_name,
            source_file,
            definition.target_table,
            stats,
            status,
            error_message,
        )

        if status == JobStatus.SUCCESS:
            logger.info(
                "Job completed",
                job=job.job_name,
                processed=job.processed,
                inserted=job.inserted,
                failed=job.failed,
                duration=job.duration_seconds,
            )
        return job

    def build_aggregates(self) -> JobResult:
        """Rebuild aggregates over whatever fact rows are loaded, and record it."""
        stats = JobStats()
        status = JobStatus.SUCCESS
        error_message = None

        try:
            counts = AggregationBuilder(self.store).rebuild_aggregates()
            stats.record_inserted(sum(counts.values()))
        except Exception as e:
            status = JobStatus.FAILED
            error_message = str(e)
            logger.error("Aggregate rebuild failed", error=error_message, exc_info=True)

        stats.finish()
        return self.run_logger.record(
            AGGREGATE_JOB_NAME,
            None,
            "agg_migration_yearly,agg_migration_by_country",
            stats,
            status,
            error_message,
        )
