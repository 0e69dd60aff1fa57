"""
Raw material import / export
One request per row: rows carrying an ``ID`` update that material (PATCH), the
rest are created (POST). Materials are never matched by name.
"""
import logging
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Tuple

import pandas as pd

from retail_admin.shared.errors import BackendAPIError, ImportFileError
from retail_admin.shared.importers.progress import RowImportResult, notify, percentage
from retail_admin.shared.utils.coercion import safe_string
from retail_admin.shared.utils.spreadsheet import read_sheet_records, read_workbook, workbook_bytes

logger = logging.getLogger(__name__)

RAW_MATERIAL_COLUMNS: Dict[str, str] = {
    "Name": "name",
    "Group Name": "groupName",
    "Type": "type",
    "Description": "description",
    "Brand": "brand",
    "Count/Size": "countSize",
    "Material": "material",
    "Color": "color",
    "Shade": "shade",
    "Unit": "unit",
    "MRP": "mrp",
    "HSN Code": "hsnCode",
    "GST %": "gst",
    "Article No.": "articleNo",
}
REQUIRED_FIELDS = ["name", "unit"]
SHEET_NAME = "Raw Materials"
EXPORT_PAGE_LIMIT = 100000
EXPORT_COLUMN_WIDTHS = [10, 20, 20, 15, 30, 20, 15, 20, 15, 10, 10, 10, 15, 10]


def map_raw_material_row(row: Dict[str, Any]) -> Dict[str, str]:
    """Every field goes to the backend as a trimmed string."""
    material = {field: safe_string(row.get(header)) for header, field in RAW_MATERIAL_COLUMNS.items()}
    material["image"] = "null"
    return material


def import_raw_materials(
    client: Any,
    data: bytes,
    filename: str,
    on_progress: Optional[Callable[[int], None]] = None,
    content_type: Optional[str] = None,
) -> RowImportResult:
    """
    Create or update raw materials from the first sheet of a workbook.

    Args:
        client: ``BackendClient``
        data: uploaded file bytes
        filename: original file name
        on_progress: receives the completed percentage after each row

    Returns:
        ``RowImportResult`` with success / error / skipped counts and the
        first problem encountered

    Raises:
        ImportFileError: the workbook cannot be read
    """
    try:
        sheets = read_workbook(data, filename, content_type)
    except Exception as e:
        raise ImportFileError(f"Failed to process import file: {e}") from e
    if not sheets:
        raise ImportFileError("Failed to process import file: no sheets found")

    rows = read_sheet_records(next(iter(sheets.values())))
    result = RowImportResult(total=len(rows))

    for i, row in enumerate(rows):
        material = map_raw_material_row(row)
        missing = [f for f in REQUIRED_FIELDS if not material[f]]
        if missing:
            result.skipped_count += 1
            if not result.first_error:
                result.first_error = f"Row {i + 2}: Missing required fields: {', '.join(missing)}"
            # skipped rows do not move the progress bar
            continue

        material_id = safe_string(row.get("ID"))
        try:
            if material_id:
                client.raw_materials.update(material_id, material)
            else:
                client.raw_materials.create(material)
            result.success_count += 1
        except BackendAPIError as e:
            result.error_count += 1
            logger.error("Raw material row %s failed: %s", i + 2, e.message)
            if not result.first_error:
                result.first_error = f"Row {i + 2}: {e.message or 'Unknown error'}"

        notify(on_progress, percentage(i + 1, len(rows)))

    logger.info(
        "Raw material import %s: %s ok, %s failed, %s skipped",
        filename, result.success_count, result.error_count, result.skipped_count,
    )
    return result


def export_raw_materials(client: Any) -> Tuple[str, bytes]:
    """Fetch every raw material and write it out with the import headers (plus ID)."""
    response = client.raw_materials.list(page=1, limit=EXPORT_PAGE_LIMIT)
    materials: List[Dict[str, Any]] = response.get("results") if isinstance(response, dict) else None
    if not isinstance(materials, list):
        materials = []

    columns = ["ID"] + list(RAW_MATERIAL_COLUMNS)
    rows = [
        {"ID": mat.get("id"), **{header: mat.get(field) for header, field in RAW_MATERIAL_COLUMNS.items()}}
        for mat in materials
    ]
    filename = f"raw-materials_{datetime.now().strftime('%Y-%m-%d')}.xlsx"
    return filename, workbook_bytes(
        {SHEET_NAME: pd.DataFrame(rows, columns=columns)},
        column_widths={SHEET_NAME: EXPORT_COLUMN_WIDTHS},
    )
