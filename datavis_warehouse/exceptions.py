"""
Warehouse Exceptions

Error taxonomy shared by the ETL pipeline and the query surface.
"""

from typing import Any, Dict, List, Optional


class WarehouseError(Exception):
    """Base class for all warehouse errors"""


class StoreNotOpenError(WarehouseError):
    """Raised when a closed WarehouseStore is used"""


class SourceMissingError(WarehouseError):
    """An expected raw input file is absent; the job is skipped"""

    def __init__(self, path: str):
        super().__init__(f"Source file not found: {path}")
        self.path = path


class SourceSchemaError(WarehouseError):
    """A raw source failed ERROR-severity validation; the job fails"""

    def __init__(self, source: str, problems: List[str]):
        super().__init__(f"Source {source} failed validation: {'; '.join(problems)}")
        self.source = source
        self.problems = problems


class RecordValidationError(WarehouseError):
    """A single raw row could not be turned into a typed record"""

    def __init__(self, field: str, message: str, row: Optional[Dict[str, Any]] = None):
        super().__init__(f"{field}: {message}")
        self.field = field
        self.message = message
        self.row = row
