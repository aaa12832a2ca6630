"""
Run Logger

Append-only audit trail of ETL job executions. Every job, whatever its
outcome, produces exactly one etl_log row; rows are never updated or deleted.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

import structlog
from pydantic import BaseModel
from sqlalchemy import select

from datavis_warehouse.database.connection import WarehouseStore
from datavis_warehouse.database.models import EtlLog, JobStatus

logger = structlog.get_logger(__name__)


@dataclass
class JobStats:
    """
    Counters for one job.

    processed == inserted + updated + failed once the job has finished;
    fact jobs never update.
    """
    processed: int = 0
    inserted: int = 0
    updated: int = 0
    failed: int = 0
    started_at: datetime = field(default_factory=datetime.utcnow)
    completed_at: Optional[datetime] = None

    def record_inserted(self, count: int = 1) -> None:
        self.processed += count
        self.inserted += count

    def record_updated(self, count: int = 1) -> None:
        self.processed += count
        self.updated += count

    def record_failed(self, count: int = 1) -> None:
        self.processed += count
        self.failed += count

    def finish(self) -> None:
        self.completed_at = datetime.utcnow()

    @property
    def duration_seconds(self) -> float:
        end = self.completed_at or datetime.utcnow()
        return round((end - self.started_at).total_seconds(), 3)


class JobResult(BaseModel):
    """Outcome of one job as returned to the caller"""
    job_name: str
    source_file: Optional[str] = None
    target_table: str
    status: JobStatus
    processed: int = 0
    inserted: int = 0
    updated: int = 0
    failed: int = 0
    error_message: Optional[str] = None
    started_at: datetime
    completed_at: Optional[datetime] = None
    duration_seconds: float = 0

    @classmethod
    def from_stats(
        cls,
        job_name: str,
        source_file: Optional[str],
        target_table: str,
        stats: JobStats,
        status: JobStatus,
        error_message: Optional[str] = None,
    ) -> "JobResult":
        return cls(
            job_name=job_name,
            source_file=source_file,
            target_table=target_table,
            status=status,
            processed=stats.processed,
            inserted=stats.inserted,
            updated=stats.updated,
            failed=stats.failed,
            error_message=error_message,
            started_at=stats.started_at,
            completed_at=stats.completed_at,
            duration_seconds=stats.duration_seconds,
        )


class RunLogger:
    """
    Persists job outcomes to etl_log.

    Each record is written in its own transaction, so a FAILED job is still
    recorded after its own transaction has rolled back.

    Example:
        run_logger = RunLogger(store)
        run_logger.record("etl_migration", "NZ_MIGRATION.csv", "fact_migration", stats, JobStatus.SUCCESS)
    """

    def __init__(self, store: WarehouseStore):
        self.store = store

    def record(
        self,
        job_name: str,
        source_file: Optional[str],
        target_table: str,
        stats: JobStats,
        status: JobStatus,
        error_message: Optional[str] = None,
    ) -> JobResult:
        """Append one audit row and return the job result it describes."""
        if stats.completed_at is None:
            stats.finish()

        result = JobResult.from_stats(job_name, source_file, target_table, stats, status, error_message)

        with self.store.session() as session:
            session.add(EtlLog(
                job_name=job_name,
                source_file=source_file,
                target_table=target_table,
                records_processed=stats.processed,
                records_inserted=stats.inserted,
                records_updated=stats.updated,
                records_failed=stats.failed,
                status=status.value,
                error_message=error_message,
                started_at=stats.started_at,
                completed_at=stats.completed_at,
                duration_seconds=stats.duration_seconds,
            ))

        logger.debug("Run logged", job=job_name, status=status.value)
        return result

    def recent(self, limit: int = 50) -> List[EtlLog]:
        """Most recent entries, newest first."""
        with self.store.session() as session:
            return list(session.execute(
                select(EtlLog)
                .order_by(EtlLog.started_at.desc(), EtlLog.log_id.desc())
                .limit(limit)
            ).scalars())
