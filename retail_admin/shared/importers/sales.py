"""
Sales master-data import
Parse the SAP-style "Sale" sheet of an Excel export into sales records and push
them to the backend in batches.
"""
import csv
import io
import logging
import math
from typing import Any, Callable, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from retail_admin.shared.errors import BackendAPIError, ImportFileError, ImportValidationError
from retail_admin.shared.importers.progress import ImportProgress, chunked, notify, percentage
from retail_admin.shared.utils.coercion import is_blank, parse_loose_float, parse_sale_date, safe_string
from retail_admin.shared.utils.spreadsheet import find_sheet, is_excel_name, read_sheet_rows, read_workbook

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[ImportProgress], None]

SALE_SHEET_NAME = "sale"
DEFAULT_BATCH_SIZE = 50
TEMPLATE_FILENAME = "sales_import_template.csv"

# Column headers of the SAP export, matched case-insensitively
REQUIRED_SALE_COLUMNS = [
    "calendar year/month",
    "calendar day",
    "plant",
    "division",
    "matl group",
    "material",
    "qty",
    "mrp",
    "discount",
    "gsv",
    "nsv",
    "total tax",
]

ARRAY_FIELD_REQUIRED_HINT = "Array field (stores/products/items) is required"


class SalesRecord(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    plant: str
    material_code: str = Field(alias="materialCode")
    quantity: float
    mrp: float
    discount: Optional[float] = None
    gsv: float
    nsv: float
    total_tax: Optional[float] = Field(default=None, alias="totalTax")
    date: Optional[str] = None

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class TemplateColumn(BaseModel):
    header: str
    key: str
    required: bool
    description: str
    example: str


TEMPLATE_COLUMNS: List[TemplateColumn] = [
    TemplateColumn(header="Date", key="date", required=False,
                   description="Sale date (DD-MM-YYYY, YYYY-MM-DD, DD/MM/YYYY)", example="15-01-2024"),
    TemplateColumn(header="Plant", key="plant", required=True,
                   description="Store ID", example="STORE001"),
    TemplateColumn(header="Material Code", key="materialCode", required=True,
                   description="Product Style Code", example="STYLE123"),
    TemplateColumn(header="Quantity", key="quantity", required=True,
                   description="Number of items sold", example="100"),
    TemplateColumn(header="MRP", key="mrp", required=True,
                   description="Maximum Retail Price", example="150.50"),
    TemplateColumn(header="Discount", key="discount", required=False,
                   description="Discount amount", example="10"),
    TemplateColumn(header="GSV", key="gsv", required=True,
                   description="Gross Sales Value", example="135.45"),
    TemplateColumn(header="NSV", key="nsv", required=True,
                   description="Net Sales Value", example="120.40"),
    TemplateColumn(header="Total Tax", key="totalTax", required=False,
                   description="Total tax amount", example="15.05"),
]


def build_template_csv() -> str:
    """Header, example and description rows for the sales import template."""
    buff = io.StringIO()
    writer = csv.writer(buff, lineterminator="\n")
    writer.writerow([c.header for c in TEMPLATE_COLUMNS])
    writer.writerow([c.example for c in TEMPLATE_COLUMNS])
    writer.writerow([c.description for c in TEMPLATE_COLUMNS])
    return buff.getvalue()


def _resolve_columns(header_row: List[Any]) -> Dict[str, int]:
    lower_headers = [safe_string(h).lower() for h in header_row]
    col_indexes: Dict[str, int] = {}
    for col in REQUIRED_SALE_COLUMNS:
        # list.index picks the first occurrence of duplicated headers
        try:
            col_indexes[col] = lower_headers.index(col)
        except ValueError:
            raise ImportFileError(f"Missing required column: {col}") from None
    return col_indexes


def _cell(row: List[Any], idx: int) -> Any:
    return row[idx] if idx < len(row) else None


def _parse_sale_row(row: List[Any], cols: Dict[str, int]) -> SalesRecord:
    plant = safe_string(_cell(row, cols["plant"]))
    material_code = safe_string(_cell(row, cols["material"]))
    quantity = parse_loose_float(_cell(row, cols["qty"]))
    mrp = parse_loose_float(_cell(row, cols["mrp"]))
    discount = parse_loose_float(_cell(row, cols["discount"]))
    gsv = parse_loose_float(_cell(row, cols["gsv"]))
    nsv = parse_loose_float(_cell(row, cols["nsv"]))
    total_tax = parse_loose_float(_cell(row, cols["total tax"]))
    sale_date = parse_sale_date(_cell(row, cols["calendar day"]))

    if not plant or not material_code or any(math.isnan(v) for v in (quantity, mrp, gsv, nsv)):
        raise ValueError("Missing or invalid required fields")

    return SalesRecord(
        plant=plant,
        material_code=material_code,
        quantity=quantity,
        mrp=mrp,
        discount=None if math.isnan(discount) else discount,
        gsv=gsv,
        nsv=nsv,
        total_tax=None if math.isnan(total_tax) else total_tax,
        date=sale_date,
    )


def parse_sales_workbook(
    data: bytes,
    filename: str,
    content_type: Optional[str] = None,
    on_progress: Optional[ProgressCallback] = None,
) -> List[SalesRecord]:
    """
    Read sales records from the "Sale" sheet of an Excel workbook.

    Args:
        data: uploaded file bytes
        filename: original file name (.xlsx / .xls expected)
        content_type: optional MIME type of the upload
        on_progress: called once per parsed row

    Returns:
        list of validated ``SalesRecord``

    Raises:
        ImportFileError: unreadable workbook, wrong format, missing sheet / columns, or no records
        ImportValidationError: one or more rows failed; ``details`` has one entry per row
    """
    if not is_excel_name(filename, content_type):
        raise ImportFileError("Unsupported file format. Please use Excel files (.xlsx, .xls) for import.")

    try:
        sheets = read_workbook(data, filename, content_type)
    except Exception as e:
        raise ImportFileError(f"Failed to process import file: {e}") from e
    sheet_name = find_sheet(sheets, SALE_SHEET_NAME)
    if sheet_name is None:
        raise ImportFileError("'Sale' sheet not found in the Excel file")

    raw_rows = read_sheet_rows(sheets[sheet_name])
    if len(raw_rows) < 2:
        raise ImportFileError('The "Sale" sheet is empty or missing headers.')

    cols = _resolve_columns(raw_rows[0])
    total = len(raw_rows) - 1
    records: List[SalesRecord] = []
    errors: List[str] = []

    for i in range(1, len(raw_rows)):
        row = raw_rows[i]
        if not row or all(is_blank(cell) for cell in row):
            continue
        try:
            records.append(_parse_sale_row(row, cols))
        except ValueError as e:
            errors.append(f"Row {i + 1}: {str(e) or 'Invalid data'}")
            continue
        notify(on_progress, ImportProgress(
            current=i,
            total=total,
            percentage=percentage(i, total),
            status="processing",
            message=f"Processing row {i} of {total}",
        ))

    if errors:
        raise ImportValidationError("\n".join(errors), details=errors)
    if not records:
        raise ImportFileError('No valid records found in the "Sale" sheet')

    logger.info("Parsed %s sales records from %s", len(records), filename)
    return records


def _post_batch(client: Any, batch: List[Dict[str, Any]]) -> None:
    """
    Push one batch, falling back through the body shapes different backend
    versions accept: ``{"salesRecords": [...]}``, then
    ``{"stores"/"products"/"items": [...]}`` (only when the backend asks for it),
    then the bare list.
    """
    try:
        client.sales.bulk_import({"salesRecords": batch, "batchSize": len(batch)})
        return
    except BackendAPIError as e:
        logger.warning("salesRecords format rejected: %s", e.message)
        if ARRAY_FIELD_REQUIRED_HINT in (e.message or ""):
            try:
                client.sales.bulk_import({
                    "stores": batch,
                    "products": batch,
                    "items": batch,
                    "batchSize": len(batch),
                })
                return
            except BackendAPIError as e2:
                logger.warning("stores/products/items format rejected: %s", e2.message)
    client.sales.bulk_import(batch)


def bulk_import(
    client: Any,
    records: List[SalesRecord],
    batch_size: int = DEFAULT_BATCH_SIZE,
    on_progress: Optional[ProgressCallback] = None,
) -> int:
    """
    Upload sales records to ``POST /sales/bulk-import`` in batches.

    A failing batch does not stop the rest; failures are collected and raised
    together once every batch has been tried.

    Returns:
        number of records imported

    Raises:
        ImportValidationError: at least one batch failed; ``details`` lists them
    """
    total = len(records)
    processed = 0
    errors: List[str] = []

    try:
        for batch_index, batch in enumerate(chunked(records, batch_size)):
            payload = [r.to_payload() for r in batch]
            try:
                _post_batch(client, payload)
            except BackendAPIError as e:
                message = e.message or f"Batch {batch_index + 1} failed"
                logger.error("Sales batch %s failed: %s", batch_index + 1, message)
                errors.append(f"Batch {batch_index + 1}: {message}")
                continue

            processed += len(batch)
            logger.info("Imported %s/%s sales records", processed, total)
            notify(on_progress, ImportProgress(
                current=processed,
                total=total,
                percentage=percentage(processed, total),
                status="processing",
                message=f"Imported {processed} of {total} records",
            ))

        if errors:
            raise ImportValidationError("Validation failed", details=errors)

        notify(on_progress, ImportProgress(
            current=total,
            total=total,
            percentage=100,
            status="completed",
            message=f"Successfully imported {total} records",
        ))
        return processed
    except Exception as e:
        notify(on_progress, ImportProgress(
            current=0,
            total=total,
            percentage=0,
            status="failed",
            message=str(e) or "Import failed",
            errors=[str(e) or "Unknown error"],
        ))
        raise
