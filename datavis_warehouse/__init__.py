"""
DataVis Data Warehouse

Batch ETL pipeline and star-schema warehouse for public migration,
demographics and export statistics.
"""

__version__ = "1.0.0"
