"""
Raw Source Readers

Reads the raw CSV/JSON files dropped by the external fetch process into
Polars DataFrames with every column as text. Header names are normalized so
that semantic columns can be matched regardless of surrounding whitespace,
case or separator style.
"""

import json
import re
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import polars as pl
import structlog

from datavis_warehouse.exceptions import SourceMissingError

logger = structlog.get_logger(__name__)

NULL_VALUES = ["", "NULL", "null", "None", "NA", "N/A", ".."]


class FileFormat(str, Enum):
    """Supported raw file formats"""
    CSV = "csv"
    JSON = "json"


def normalize_header(name: str) -> str:
    """' Country Of Residence ' -> 'country_of_residence'"""
    name = name.replace("\ufeff", "").strip().lower()
    return re.sub(r"[\s\-]+", "_", name)


def detect_format(path: Path) -> FileFormat:
    """File format from the extension; anything not JSON is read as CSV."""
    if path.suffix.lower() in (".json", ".geojson"):
        return FileFormat.JSON
    return FileFormat.CSV


def _read_csv(path: Path) -> pl.DataFrame:
    return pl.read_csv(
        path,
        infer_schema_length=0,
        null_values=NULL_VALUES,
        truncate_ragged_lines=True,
    )


def _read_json(path: Path) -> pl.DataFrame:
    with open(path, "r", encoding="utf-8") as fh:
        payload = json.load(fh)

    if isinstance(payload, dict):
        for key in ("data", "records", "rows"):
            if isinstance(payload.get(key), list):
                payload = payload[key]
                break
        else:
            raise ValueError(f"JSON source {path.name} holds no list of records")

    if not isinstance(payload, list):
        raise ValueError(f"JSON source {path.name} is not a list of records")

    records = [
        {key: (None if value is None else str(value)) for key, value in record.items()}
        for record in payload
        if isinstance(record, dict)
    ]
    if not records:
        return pl.DataFrame()
    return pl.from_dicts(records, infer_schema_length=None)


def normalize_columns(df: pl.DataFrame, source_name: str = "") -> pl.DataFrame:
    """
    Rename headers to their normalized form.

    When several raw headers normalize to the same name, the first one is
    kept and the rest are dropped.
    """
    renames: Dict[str, str] = {}
    duplicates: List[str] = []
    for col in df.columns:
        header = normalize_header(col)
        if header in renames.values():
            duplicates.append(col)
        else:
            renames[col] = header

    if duplicates:
        logger.warning("Duplicate headers dropped", file=source_name, headers=duplicates)
        df = df.drop(duplicates)
    return df.rename(renames)


def read_source(path: Union[str, Path], file_format: Optional[FileFormat] = None) -> pl.DataFrame:
    """
    Read a raw source file with normalized, text-typed columns.

    Args:
        path: File to read
        file_format: Force a format instead of detecting it from the extension

    Returns:
        pl.DataFrame: One row per raw record

    Raises:
        SourceMissingError: If the file does not exist
    """
    path = Path(path)
    if not path.is_file():
        raise SourceMissingError(str(path))

    file_format = file_format or detect_format(path)
    readers = {
        FileFormat.CSV: _read_csv,
        FileFormat.JSON: _read_json,
    }
    df = readers[file_format](path)

    if df.width:
        df = normalize_columns(df, path.name)
        df = df.with_columns(pl.all().cast(pl.Utf8))

    logger.info("Source read", file=path.name, format=file_format.value, rows=df.height)
    return df


def select_columns(df: pl.DataFrame, aliases: Dict[str, List[str]]) -> pl.DataFrame:
    """
    Keep the semantic columns of a source, renamed to their canonical names.

    The first header matching one of a column's aliases wins. Columns with no
    matching header are left out; source validation reports them.

    Args:
        df: Frame with normalized headers
        aliases: Canonical column name -> accepted header variants
    """
    selected = []
    for canonical, variants in aliases.items():
        for variant in [canonical, *variants]:
            header = normalize_header(variant)
            if header in df.columns:
                selected.append(pl.col(header).alias(canonical))
                break
    return df.select(selected) if selected else pl.DataFrame()


def to_records(df: pl.DataFrame) -> List[Dict[str, Any]]:
    """Rows as plain dicts"""
    return df.to_dicts()
