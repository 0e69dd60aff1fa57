"""
Retail admin services: spreadsheet imports, backend and forecast API clients.
"""

__version__ = "1.0.0"
