"""
Data Ingestion Module
"""
from .data_lake import DataLake, LakeMapping, default_mappings
from .sources import FileFormat, normalize_header, read_source, select_columns

__all__ = [
    "DataLake",
    "LakeMapping",
    "default_mappings",
    "FileFormat",
    "normalize_header",
    "read_source",
    "select_columns",
]
