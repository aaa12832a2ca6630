"""
Data Lake Snapshot

Copies the raw inputs of a run into the raw zone of the data lake under
date-stamped names, so every load can be traced back to the files it read.
"""

import shutil
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import List, Optional, Union

import structlog

from datavis_warehouse.config.settings import EtlSettings

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class LakeMapping:
    """Where one raw input lands in the raw zone"""
    source_file: str
    zone: str
    prefix: str


def default_mappings(etl: EtlSettings) -> List[LakeMapping]:
    """Raw inputs the pipeline knows about"""
    return [
        LakeMapping(etl.migration_file, "migration", "statsnz_migration"),
        LakeMapping(etl.demographics_file, "demographics", "statsnz_demographics"),
        LakeMapping(etl.gdp_file, "economic", "statsnz_gdp"),
        LakeMapping(etl.exports_file, "economic", "statsnz_exports"),
        LakeMapping(etl.geojson_file, "geographic", "world_geojson"),
    ]


class DataLake:
    """
    Raw zone of the data lake.

    Example:
        lake = DataLake("./data-lake/raw")
        copied = lake.snapshot("./dataset", default_mappings(settings.etl))
    """

    ZONES = ("migration", "demographics", "economic", "geographic")

    def __init__(self, raw_path: Union[str, Path]):
        self.raw_path = Path(raw_path)

    def _ensure_directories(self) -> None:
        for zone in self.ZONES:
            (self.raw_path / zone).mkdir(parents=True, exist_ok=True)

    def snapshot(
        self,
        dataset_dir: Union[str, Path],
        mappings: List[LakeMapping],
        run_date: Optional[datetime] = None,
    ) -> List[Path]:
        """
        Copy every present raw input into its zone.

        Missing inputs are skipped; a later job reports them.

        Returns:
            List of written snapshot paths
        """
        dataset_dir = Path(dataset_dir)
        stamp = (run_date or datetime.utcnow()).strftime("%Y%m%d")
        self._ensure_directories()

        copied = []
        for mapping in mappings:
            source = dataset_dir / mapping.source_file
            if not source.is_file():
                logger.debug("Raw input absent, not snapshotted", file=mapping.source_file)
                continue

            destination = self.raw_path / mapping.zone / f"{mapping.prefix}_{stamp}{source.suffix.lower()}"
            destination.parent.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(source, destination)
            copied.append(destination)
            logger.info("Raw input snapshotted", source=mapping.source_file, destination=str(destination))

        logger.info("Data lake updated", files=len(copied), raw_path=str(self.raw_path))
        return copied
