"""
Shared test doubles: in-memory workbooks, sales sheet rows and a fake backend.
"""
import io
from typing import Any, Callable, Dict, List, Optional

import pandas as pd

from retail_admin.shared.errors import BackendAPIError

XLSX_CONTENT_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

SALE_HEADER = [
    "Calendar Year/Month", "Calendar Day", "Plant", "Division", "Matl Group", "Material",
    "Qty", "MRP", "Discount", "GSV", "NSV", "Total Tax",
]


def sale_row(plant="STORE001", day="15.01.2024", qty=2, nsv="₹1,200.50"):
    """One data row of the "Sale" sheet, in SALE_HEADER order."""
    return ["01.2024", day, plant, "Apparel", "Shirts", "STYLE123", qty, 799, 50, 1598, nsv, 78.2]


def make_xlsx(sheets: Dict[str, List[List[Any]]]) -> bytes:
    """Build an xlsx from ``{sheet: [header_row, *data_rows]}``."""
    buff = io.BytesIO()
    with pd.ExcelWriter(buff, engine="openpyxl") as writer:
        for name, rows in sheets.items():
            pd.DataFrame(rows[1:], columns=rows[0]).to_excel(writer, sheet_name=name, index=False)
    return buff.getvalue()


def make_csv(rows: List[List[Any]]) -> bytes:
    return pd.DataFrame(rows[1:], columns=rows[0]).to_csv(index=False).encode("utf-8")


class FakeResource:
    """
    Records every call. ``handler(method, *args)`` may return a response or
    raise ``BackendAPIError`` to simulate a failing backend.
    """

    def __init__(self, handler: Optional[Callable[..., Any]] = None):
        self.calls: List[tuple] = []
        self.handler = handler

    def _dispatch(self, method: str, *args: Any, **kwargs: Any) -> Any:
        self.calls.append((method, args, kwargs))
        if self.handler is None:
            return {}
        return self.handler(method, *args, **kwargs)

    def list(self, **filters: Any) -> Any:
        return self._dispatch("list", **filters)

    def create(self, data: Dict[str, Any]) -> Any:
        return self._dispatch("create", data)

    def update(self, item_id: str, data: Dict[str, Any]) -> Any:
        return self._dispatch("update", item_id, data)

    def bulk_import(self, *args: Any, **kwargs: Any) -> Any:
        return self._dispatch("bulk_import", *args, **kwargs)


class FakeBackend:
    def __init__(self, **handlers: Callable[..., Any]):
        self.sales = FakeResource(handlers.get("sales"))
        self.stores = FakeResource(handlers.get("stores"))
        self.raw_materials = FakeResource(handlers.get("raw_materials"))


def api_error(message: str, status_code: int = 400) -> BackendAPIError:
    return BackendAPIError(message, status_code=status_code)
