"""
ETL Module
"""
from .aggregates import AggregationBuilder
from .loaders import (
    CountryDimensionLoader,
    DemographicsLoader,
    ExportsLoader,
    MigrationLoader,
)
from .pipeline import JOB_REGISTRY, DomainKind, PipelineResult, WarehousePipeline
from .run_log import JobResult, JobStats, RunLogger

__all__ = [
    "AggregationBuilder",
    "CountryDimensionLoader",
    "DemographicsLoader",
    "ExportsLoader",
    "MigrationLoader",
    "JOB_REGISTRY",
    "DomainKind",
    "PipelineResult",
    "WarehousePipeline",
    "JobResult",
    "JobStats",
    "RunLogger",
]
