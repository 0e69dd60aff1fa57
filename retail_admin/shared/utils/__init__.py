"""
Shared utilities
"""
from .coercion import parse_loose_float, parse_sale_date, safe_string
from .spreadsheet import read_workbook, validate_file_for_import

__all__ = [
    "parse_loose_float",
    "parse_sale_date",
    "safe_string",
    "read_workbook",
    "validate_file_for_import",
]
