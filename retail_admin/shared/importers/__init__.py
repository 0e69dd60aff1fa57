"""
Spreadsheet import pipelines: sales master data, stores and raw materials.
"""
from .progress import BatchProgress, BulkImportResult, ImportProgress, RowImportResult

__all__ = ["BatchProgress", "BulkImportResult", "ImportProgress", "RowImportResult"]
