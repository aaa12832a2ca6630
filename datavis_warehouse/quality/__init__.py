"""
Data Quality Module
"""
from .records import DemographicsRecord, ExportRecord, MigrationRecord, parse_int, parse_number
from .validators import DataValidator, ValidationResult, ValidationSeverity, ValidationStatus

__all__ = [
    "DataValidator",
    "ValidationResult",
    "ValidationSeverity",
    "ValidationStatus",
    "DemographicsRecord",
    "ExportRecord",
    "MigrationRecord",
    "parse_int",
    "parse_number",
]
