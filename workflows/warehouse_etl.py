"""
Prefect Workflow Orchestration - Warehouse ETL

Scheduled wrapper around one WarehousePipeline run:
- Raw-input snapshot and domain loads in one task
- Job failures reported through alerts
- Pipeline-level errors fail the flow run

Requires the `orchestration` extra (prefect).
"""

from typing import Optional

from prefect import flow, get_run_logger, task

from datavis_warehouse.config import get_settings
from datavis_warehouse.config.logging import configure_logging
from datavis_warehouse.database.connection import open_store
from datavis_warehouse.etl.pipeline import WarehousePipeline


# =============================================================================
# TASKS
# =============================================================================

@task(
    name="run_warehouse_pipeline",
    description="Snapshot raw inputs, load every domain and rebuild aggregates",
    retries=1,
    retry_delay_seconds=120,
)
def run_warehouse_pipeline(dataset_path: Optional[str] = None, snapshot: Optional[bool] = None) -> dict:
    """Run one pipeline cycle against the configured warehouse"""
    logger = get_run_logger()
    settings = get_settings()

    with open_store(settings) as store:
        result = WarehousePipeline(store, settings).run(dataset_path=dataset_path, snapshot=snapshot)

    logger.info(
        f"Pipeline finished: {len(result.all_jobs)} jobs, "
        f"{len(result.failed_jobs)} failed, {len(result.skipped_jobs)} skipped"
    )
    return result.model_dump(mode="json")


@task(
    name="send_alert",
    description="Send alert notification",
)
def send_alert(alert_type: str, message: str, severity: str = "info") -> None:
    """Send alert notification"""
    logger = get_run_logger()
    logger.warning(f"[{severity.upper()}] {alert_type}: {message}")


# =============================================================================
# FLOWS
# =============================================================================

@flow(
    name="warehouse_etl",
    description="Batch ETL from the raw dataset into the DataVis warehouse",
)
def warehouse_etl(dataset_path: Optional[str] = None, snapshot: Optional[bool] = None) -> dict:
    """
    Warehouse ETL flow.

    Steps:
    1. Snapshot raw inputs into the data lake
    2. Load countries, migration, demographics and exports
    3. Rebuild aggregates
    4. Alert on failed jobs
    """
    logger = get_run_logger()
    configure_logging()

    try:
        summary = run_warehouse_pipeline(dataset_path, snapshot)
    except Exception as e:
        logger.error(f"Warehouse ETL aborted: {e}")
        send_alert("ETL Failed", f"Warehouse ETL aborted: {e}", severity="critical")
        raise

    jobs = summary["jobs"] + ([summary["aggregates"]] if summary.get("aggregates") else [])
    failed = [job for job in jobs if job["status"] == "FAILED"]
    if failed:
        names = ", ".join(job["job_name"] for job in failed)
        send_alert("ETL Jobs Failed", f"{len(failed)} job(s) failed: {names}", severity="warning")
    else:
        send_alert("ETL Complete", "Warehouse ETL completed successfully", severity="info")

    return summary


if __name__ == "__main__":
    warehouse_etl()
