"""
Spreadsheet IO
Read uploaded CSV / Excel workbooks into DataFrames and write xlsx exports.
"""
import io
import logging
from typing import Any, Dict, List, Optional, Sequence, Tuple

import chardet
import pandas as pd
from openpyxl.utils import get_column_letter

from retail_admin.shared.utils.coercion import is_blank

logger = logging.getLogger(__name__)

MAX_IMPORT_FILE_BYTES = 10 * 1024 * 1024

EXCEL_CONTENT_TYPES = (
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "application/vnd.ms-excel",
)
CSV_CONTENT_TYPE = "text/csv"

DEFAULT_CSV_ENCODING = "utf-8"


def _lower(name: Optional[str]) -> str:
    return (name or "").lower()


def is_csv_name(filename: str, content_type: Optional[str] = None) -> bool:
    return content_type == CSV_CONTENT_TYPE or _lower(filename).endswith(".csv")


def is_excel_name(filename: str, content_type: Optional[str] = None) -> bool:
    ct = _lower(content_type)
    return (
        "excel" in ct
        or "spreadsheet" in ct
        or _lower(filename).endswith(".xlsx")
        or _lower(filename).endswith(".xls")
    )


def validate_file_for_import(
    filename: str, size: int, content_type: Optional[str] = None
) -> Tuple[bool, Optional[str]]:
    """Size and type checks run before a file is parsed."""
    if size == 0:
        return False, "File is empty"
    if size > MAX_IMPORT_FILE_BYTES:
        return False, "File size must be less than 10MB"

    name = _lower(filename)
    is_valid_type = (
        content_type in EXCEL_CONTENT_TYPES
        or content_type == CSV_CONTENT_TYPE
        or name.endswith(".xlsx")
        or name.endswith(".xls")
        or name.endswith(".csv")
    )
    if not is_valid_type:
        return False, "Please select a valid Excel file (.xlsx, .xls) or CSV file"
    return True, None


def sniff_excel_signature(data: bytes) -> bool:
    """ZIP (xlsx), OLE2 or raw BIFF (xls) leading bytes."""
    head = data[:2]
    return head in (b"PK", b"\xd0\xcf", b"\x09\x08")


def detect_encoding(data: bytes) -> str:
    """Best guess at the text encoding of a CSV upload."""
    result = chardet.detect(data)
    return result.get("encoding") or DEFAULT_CSV_ENCODING


def _read_csv(data: bytes) -> pd.DataFrame:
    encoding = detect_encoding(data)
    logger.info("CSV encoding detected: %s", encoding)
    return pd.read_csv(
        io.BytesIO(data),
        encoding=encoding,
        header=None,
        dtype=str,
        keep_default_na=False,
    )


def read_workbook(
    data: bytes, filename: str, content_type: Optional[str] = None
) -> Dict[str, pd.DataFrame]:
    """
    Load every sheet of an upload.

    Sheets are read headerless (``header=None``) so callers decide which row
    holds the headers; a CSV becomes a single ``Sheet1``.

    Args:
        data: raw file bytes
        filename: original file name, used for format detection
        content_type: optional MIME type sent with the upload

    Returns:
        ordered mapping of sheet name -> DataFrame
    """
    if not data:
        raise ValueError("File is empty")

    if is_csv_name(filename, content_type):
        return {"Sheet1": _read_csv(data)}

    if not sniff_excel_signature(data):
        logger.warning("File signature check failed for %s, attempting to parse anyway", filename)

    sheets = pd.read_excel(io.BytesIO(data), sheet_name=None, header=None, dtype=object)
    logger.info("Workbook %s parsed: sheets=%s", filename, list(sheets.keys()))
    return sheets


def find_sheet(sheets: Dict[str, pd.DataFrame], name: str) -> Optional[str]:
    wanted = name.strip().lower()
    for sheet_name in sheets:
        if str(sheet_name).strip().lower() == wanted:
            return sheet_name
    return None


def _clean_cell(value: Any) -> Any:
    return None if is_blank(value) and not isinstance(value, str) else value


def read_sheet_rows(df: pd.DataFrame) -> List[List[Any]]:
    """Every row as a plain list, header row first; NaN cells become None."""
    rows: List[List[Any]] = []
    for values in df.itertuples(index=False, name=None):
        row = [_clean_cell(v) for v in values]
        while row and row[-1] is None:
            row.pop()
        rows.append(row)
    return rows


def read_sheet_records(df: pd.DataFrame) -> List[Dict[str, Any]]:
    """
    First row is the header; each following row becomes a dict.

    Blank cells are left out of the dict and fully blank rows are dropped.
    """
    rows = read_sheet_rows(df)
    if not rows:
        return []

    headers = ["" if h is None else str(h).strip() for h in rows[0]]
    records: List[Dict[str, Any]] = []
    for row in rows[1:]:
        record = {
            headers[i]: value
            for i, value in enumerate(row)
            if i < len(headers) and headers[i] and not is_blank(value)
        }
        if record:
            records.append(record)
    return records


def workbook_bytes(
    sheets: Dict[str, pd.DataFrame],
    column_widths: Optional[Dict[str, Sequence[int]]] = None,
) -> bytes:
    """Write DataFrames to an in-memory xlsx, one sheet per entry."""
    buff = io.BytesIO()
    with pd.ExcelWriter(buff, engine="openpyxl") as writer:
        for name, df in sheets.items():
            df.to_excel(writer, sheet_name=name, index=False)
            widths = (column_widths or {}).get(name)
            if widths:
                ws = writer.sheets[name]
                for idx, width in enumerate(widths, start=1):
                    ws.column_dimensions[get_column_letter(idx)].width = width
    buff.seek(0)
    return buff.read()
