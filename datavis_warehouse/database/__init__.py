"""
Database Module
"""
from .connection import WarehouseStore, open_store
from .models import Base
from .schema import SchemaManager

__all__ = [
    "WarehouseStore",
    "open_store",
    "Base",
    "SchemaManager",
]
