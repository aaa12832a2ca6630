"""
Source Validation Module

Rule-based checks run on a parsed raw source before it is loaded.

ERROR-severity failures (a required column is missing) abort the job;
WARNING-severity failures (null join keys, non-numeric measures) are logged
and left to the per-row skip-and-count policy.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

import polars as pl
import structlog

logger = structlog.get_logger(__name__)

NUMERIC_PATTERN = r"^\s*-?[\d,]*\.?\d+\s*$"


class ValidationSeverity(str, Enum):
    """Severity levels for validation failures"""
    ERROR = "error"  # blocks the job
    WARNING = "warning"  # logged, rows handled individually


class ValidationStatus(str, Enum):
    """Overall validation status"""
    PASSED = "passed"
    FAILED = "failed"
    PARTIAL = "partial"


@dataclass
class ValidationCheck:
    """Single validation check result"""
    name: str
    passed: bool
    severity: ValidationSeverity
    message: str
    details: Optional[Dict[str, Any]] = None
    failed_rows: int = 0
    total_rows: int = 0


@dataclass
class ValidationResult:
    """Complete validation suite result"""
    status: ValidationStatus
    total_checks: int
    passed_checks: int
    failed_checks: int
    warning_count: int
    checks: List[ValidationCheck] = field(default_factory=list)
    started_at: datetime = field(default_factory=datetime.utcnow)
    completed_at: Optional[datetime] = None

    @property
    def errors(self) -> List[str]:
        """Messages of the failed ERROR-severity checks"""
        return [
            c.message for c in self.checks
            if not c.passed and c.severity == ValidationSeverity.ERROR
        ]


class DataValidator:
    """
    Source data validator.

    Example:
        validator = DataValidator()
        validator.add_required_columns_check(["country", "year"])
        validator.add_numeric_check("estimate")
        result = validator.validate(df)
    """

    def __init__(self, name: str = "source"):
        self.name = name
        self._checks: List[Callable[[pl.DataFrame], ValidationCheck]] = []

    def add_required_columns_check(
        self,
        columns: List[str],
        severity: ValidationSeverity = ValidationSeverity.ERROR,
    ) -> "DataValidator":
        """Add check that every listed column is present"""
        def check(df: pl.DataFrame) -> ValidationCheck:
            missing = [c for c in columns if c not in df.columns]
            return ValidationCheck(
                name="required_columns",
                passed=not missing,
                severity=severity,
                message=f"Missing columns: {', '.join(missing)}" if missing else "All required columns present",
                details={"missing": missing, "found": list(df.columns)},
                total_rows=df.height,
            )

        self._checks.append(check)
        return self

    def add_not_null_check(
        self,
        column: str,
        severity: ValidationSeverity = ValidationSeverity.WARNING,
    ) -> "DataValidator":
        """Add check for null or blank values in column"""
        def check(df: pl.DataFrame) -> ValidationCheck:
            if column not in df.columns:
                return ValidationCheck(
                    name=f"not_null_{column}",
                    passed=False,
                    severity=severity,
                    message=f"Column '{column}' not found",
                )

            blank = df.filter(
                pl.col(column).is_null() | (pl.col(column).str.strip_chars() == "")
            ).height
            passed = blank == 0

            return ValidationCheck(
                name=f"not_null_{column}",
                passed=passed,
                severity=severity,
                message=f"Column '{column}' has {blank} blank values" if not passed else f"Column '{column}' has no blank values",
                details={"null_count": blank},
                failed_rows=blank,
                total_rows=df.height,
            )

        self._checks.append(check)
        return self

    def add_numeric_check(
        self,
        column: str,
        severity: ValidationSeverity = ValidationSeverity.WARNING,
    ) -> "DataValidator":
        """Add check that non-null values parse as numbers"""
        def check(df: pl.DataFrame) -> ValidationCheck:
            if column not in df.columns:
                return ValidationCheck(
                    name=f"numeric_{column}",
                    passed=False,
                    severity=severity,
                    message=f"Column '{column}' not found",
                )

            non_numeric = df.filter(
                pl.col(column).is_not_null() & ~pl.col(column).str.contains(NUMERIC_PATTERN)
            ).height
            passed = non_numeric == 0

            return ValidationCheck(
                name=f"numeric_{column}",
                passed=passed,
                severity=severity,
                message=f"Column '{column}' has {non_numeric} non-numeric values" if not passed else f"Column '{column}' is numeric",
                details={"non_numeric_count": non_numeric},
                failed_rows=non_numeric,
                total_rows=df.height,
            )

        self._checks.append(check)
        return self

    def validate(self, df: pl.DataFrame) -> ValidationResult:
        """
        Run all registered checks.

        Args:
            df: Parsed source with canonical column names

        Returns:
            ValidationResult with all check results
        """
        started_at = datetime.utcnow()
        results = []

        for check_func in self._checks:
            result = check_func(df)
            results.append(result)

            if not result.passed:
                logger.warning(
                    f"Validation failed: {result.name}",
                    source=self.name,
                    message=result.message,
                    severity=result.severity.value,
                )

        passed_checks = sum(1 for r in results if r.passed)
        failed_checks = sum(1 for r in results if not r.passed and r.severity == ValidationSeverity.ERROR)
        warning_count = sum(1 for r in results if not r.passed and r.severity == ValidationSeverity.WARNING)

        if failed_checks > 0:
            status = ValidationStatus.FAILED
        elif warning_count > 0:
            status = ValidationStatus.PARTIAL
        else:
            status = ValidationStatus.PASSED

        logger.info(
            f"Validation complete: {status.value}",
            source=self.name,
            rows=df.height,
            passed=passed_checks,
            failed=failed_checks,
            warnings=warning_count,
        )

        return ValidationResult(
            status=status,
            total_checks=len(results),
            passed_checks=passed_checks,
            failed_checks=failed_checks,
            warning_count=warning_count,
            checks=results,
            started_at=started_at,
            completed_at=datetime.utcnow(),
        )


# Pre-built validators, one per raw source
def create_migration_validator() -> DataValidator:
    """Validator for migration estimates by country"""
    return (
        DataValidator("migration")
        .add_required_columns_check(["country", "year", "estimate"])
        .add_not_null_check("country")
        .add_numeric_check("year")
        .add_numeric_check("estimate")
    )


def create_demographics_validator() -> DataValidator:
    """Validator for migration by age and sex"""
    return (
        DataValidator("demographics")
        .add_required_columns_check(["direction", "age", "sex", "year", "estimate"])
        .add_not_null_check("age")
        .add_not_null_check("sex")
        .add_numeric_check("year")
        .add_numeric_check("estimate")
    )


def create_exports_validator() -> DataValidator:
    """Validator for the export category hierarchy"""
    return (
        DataValidator("exports")
        .add_required_columns_check(["name", "value"])
        .add_not_null_check("name")
        .add_numeric_check("value")
    )
