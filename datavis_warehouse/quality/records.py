"""
Typed Source Records

Each raw row is validated into a typed, normalized record before any
dimension lookup. Join keys are required: a row whose key is missing or
unparseable raises RecordValidationError and is counted as failed. Measures
that fail to parse default to 0 and the row is still loaded.
"""

import math
from typing import Any, Dict, Optional, Type, TypeVar

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from datavis_warehouse.exceptions import RecordValidationError

RecordT = TypeVar("RecordT", bound="SourceRecord")


def parse_number(value: Any) -> Optional[float]:
    """'1,234.5' -> 1234.5; blank or non-numeric -> None"""
    if value is None:
        return None
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        number = float(value)
    else:
        text = str(value).strip().replace(",", "")
        if not text:
            return None
        try:
            number = float(text)
        except ValueError:
            return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


def parse_int(value: Any) -> Optional[int]:
    """Integer part of a numeric value, or None"""
    number = parse_number(value)
    return int(number) if number is not None else None


def _required_text(value: Any) -> str:
    if value is None or not str(value).strip():
        raise ValueError("value is required")
    return " ".join(str(value).split())


def _optional_text(value: Any) -> Optional[str]:
    if value is None or not str(value).strip():
        return None
    return " ".join(str(value).split())


def _required_year(value: Any) -> int:
    year = parse_int(value)
    if year is None:
        raise ValueError(f"'{value}' is not a year")
    return year


class SourceRecord(BaseModel):
    """Base class for typed source rows"""

    model_config = ConfigDict(extra="ignore", frozen=True)

    @classmethod
    def from_row(cls: Type[RecordT], row: Dict[str, Any]) -> RecordT:
        """
        Validate one raw row.

        Raises:
            RecordValidationError: Naming the first offending field
        """
        try:
            return cls.model_validate(row)
        except ValidationError as e:
            error = e.errors()[0]
            field = ".".join(str(part) for part in error.get("loc", ())) or "row"
            raise RecordValidationError(field, error.get("msg", "invalid value"), row) from e


class MigrationRecord(SourceRecord):
    """One migration estimate: country x year"""

    country: str
    year: int
    estimate: int = 0

    @field_validator("country", mode="before")
    @classmethod
    def validate_country(cls, v: Any) -> str:
        return _required_text(v)

    @field_validator("year", mode="before")
    @classmethod
    def validate_year(cls, v: Any) -> int:
        return _required_year(v)

    @field_validator("estimate", mode="before")
    @classmethod
    def validate_estimate(cls, v: Any) -> int:
        return parse_int(v) or 0


class DemographicsRecord(SourceRecord):
    """One migration estimate by direction, age bracket and sex"""

    direction: Optional[str] = None
    age: str
    sex: str
    year: int
    estimate: int = 0

    @field_validator("direction", mode="before")
    @classmethod
    def validate_direction(cls, v: Any) -> Optional[str]:
        return _optional_text(v)

    @field_validator("age", "sex", mode="before")
    @classmethod
    def validate_labels(cls, v: Any) -> str:
        return _required_text(v)

    @field_validator("year", mode="before")
    @classmethod
    def validate_year(cls, v: Any) -> int:
        return _required_year(v)

    @field_validator("estimate", mode="before")
    @classmethod
    def validate_estimate(cls, v: Any) -> int:
        return parse_int(v) or 0


class ExportRecord(SourceRecord):
    """One node of the export category tree"""

    name: str
    parent: Optional[str] = None
    value: float = 0.0

    @field_validator("name", mode="before")
    @classmethod
    def validate_name(cls, v: Any) -> str:
        return _required_text(v)

    @field_validator("parent", mode="before")
    @classmethod
    def validate_parent(cls, v: Any) -> Optional[str]:
        return _optional_text(v)

    @field_validator("value", mode="before")
    @classmethod
    def validate_value(cls, v: Any) -> float:
        return parse_number(v) or 0.0

    @property
    def is_top_level(self) -> bool:
        return self.parent is None
