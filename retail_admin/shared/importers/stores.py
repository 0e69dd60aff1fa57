"""
Store master import / export
Excel or CSV store sheets -> validated store payloads -> ``POST /stores/bulk-import``
in batches, plus the downloadable import template and the stores export.
"""
import logging
import math
import os
import re
import time
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Tuple

import pandas as pd

from retail_admin.shared.errors import BackendAPIError, ImportFileError
from retail_admin.shared.importers.progress import BatchProgress, BulkImportResult, chunked, notify
from retail_admin.shared.utils.coercion import is_blank, is_non_negative_number, safe_string
from retail_admin.shared.utils.spreadsheet import (
    read_sheet_records,
    read_workbook,
    validate_file_for_import,
    workbook_bytes,
)

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[BatchProgress], None]

DEFAULT_BATCH_SIZE = 25
MAX_BATCH_SIZE = 100

# Excel header -> payload field; the camelCase field name is accepted as a header too
STORE_COLUMNS: Dict[str, str] = {
    "ID": "id",
    "Store ID": "storeId",
    "Store Name": "storeName",
    "City": "city",
    "Address Line 1": "addressLine1",
    "Address Line 2": "addressLine2",
    "Store Number": "storeNumber",
    "Pincode": "pincode",
    "Contact Person": "contactPerson",
    "Contact Email": "contactEmail",
    "Contact Phone": "contactPhone",
    "Credit Rating": "creditRating",
    "Is Active": "isActive",
    "BP Code": "bpCode",
    "Old Store Code": "oldStoreCode",
    "BP Name": "bpName",
    "Street": "street",
    "Block": "block",
    "Zip Code": "zipCode",
    "State": "state",
    "Country": "country",
    "Telephone": "telephone",
    "Internal SAP Code": "internalSapCode",
    "Internal Software Code": "internalSoftwareCode",
    "Brand Grouping": "brandGrouping",
    "Brand": "brand",
    "Hanky Norms": "hankyNorms",
    "Socks Norms": "socksNorms",
    "Towel Norms": "towelNorms",
    "Total Norms": "totalNorms",
}

OPTIONAL_STRING_FIELDS = [
    "bpCode", "oldStoreCode", "bpName", "street", "block", "zipCode", "state",
    "country", "telephone", "internalSapCode", "internalSoftwareCode",
    "brandGrouping", "brand",
]
NORM_FIELDS = {
    "hankyNorms": "Hanky norms",
    "socksNorms": "Socks norms",
    "towelNorms": "Towel norms",
    "totalNorms": "Total norms",
}

CREDIT_RATINGS = ["A+", "A", "A-", "B+", "B", "B-", "C+", "C", "C-", "D", "F"]
TRUTHY_ACTIVE = {"true", "yes", "1"}

STORE_ID_RE = re.compile(r"^[A-Z0-9]+$")
PINCODE_RE = re.compile(r"^\d+$")
EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
PHONE_RE = re.compile(r"^[\+]?[0-9\s\-\(\)]{10,15}$")


def _batch_delay() -> float:
    return float(os.getenv("IMPORT_BATCH_DELAY_SECONDS", "0.5"))


def map_store_row(row: Dict[str, Any]) -> Dict[str, Any]:
    """Pick each field from its Excel header, falling back to the camelCase key."""
    mapped: Dict[str, Any] = {}
    for header, field in STORE_COLUMNS.items():
        value = row.get(header)
        if is_blank(value):
            value = row.get(field)
        mapped[field] = None if is_blank(value) else value
    return mapped


def validate_store_data(data: Dict[str, Any]) -> Tuple[bool, List[str]]:
    errors: List[str] = []

    store_id = safe_string(data.get("storeId"))
    if not store_id:
        errors.append("Store ID is required")
    elif not STORE_ID_RE.match(store_id.upper()):
        errors.append("Store ID must contain only uppercase letters and numbers")

    if not safe_string(data.get("storeName")):
        errors.append("Store name is required")
    if not safe_string(data.get("city")):
        errors.append("City is required")
    if not safe_string(data.get("addressLine1")):
        errors.append("Address is required")
    if not safe_string(data.get("storeNumber")):
        errors.append("Store number is required")

    pincode = safe_string(data.get("pincode"))
    if not pincode:
        errors.append("Pincode is required")
    elif not PINCODE_RE.match(pincode):
        errors.append("Pincode must contain only digits")

    if not safe_string(data.get("contactPerson")):
        errors.append("Contact person is required")

    email = safe_string(data.get("contactEmail"))
    if not email:
        errors.append("Contact email is required")
    elif not EMAIL_RE.match(email):
        errors.append("Please enter a valid email address")

    phone = safe_string(data.get("contactPhone"))
    if not phone:
        errors.append("Contact phone is required")
    elif not PHONE_RE.match(re.sub(r"\s", "", phone)):
        errors.append("Please enter a valid phone number")

    if safe_string(data.get("creditRating")) not in CREDIT_RATINGS:
        errors.append("Credit rating must be one of: " + ", ".join(CREDIT_RATINGS))

    for field, label in NORM_FIELDS.items():
        value = data.get(field)
        if safe_string(value) and not is_non_negative_number(value):
            errors.append(f"{label} must be a non-negative number")

    return len(errors) == 0, errors


def parse_store_file(
    data: bytes, filename: str, content_type: Optional[str] = None
) -> Tuple[List[Dict[str, Any]], List[str]]:
    """
    Read and validate the first sheet of a store workbook.

    Returns:
        (valid mapped rows, ``"Row N: ..."`` messages for the rejected ones)

    Raises:
        ImportFileError: the file cannot be read or holds no data rows
    """
    try:
        sheets = read_workbook(data, filename, content_type)
        if not sheets:
            raise ImportFileError("No sheets found in the Excel file")
        first_sheet = next(iter(sheets))
        records = read_sheet_records(sheets[first_sheet])
        if not records:
            raise ImportFileError("No data rows found in the Excel sheet")
    except Exception as e:
        raise ImportFileError(f"Failed to parse Excel file: {e}") from e

    valid_rows: List[Dict[str, Any]] = []
    errors: List[str] = []
    for index, raw in enumerate(records):
        mapped = map_store_row(raw)
        is_valid, row_errors = validate_store_data(mapped)
        if is_valid:
            valid_rows.append(mapped)
        else:
            # +2: one for the header row, one for 1-based sheet rows
            errors.append(f"Row {index + 2}: {', '.join(row_errors)}")
    logger.info("Store file %s: %s valid rows, %s rejected", filename, len(valid_rows), len(errors))
    return valid_rows, errors


def preview_store_file(data: bytes, filename: str, content_type: Optional[str] = None) -> Dict[str, Any]:
    """Dry run of the parser, summarised for display before an import."""
    is_valid, error = validate_file_for_import(filename, len(data), content_type)
    if not is_valid:
        return {"success": False, "message": error or "File validation failed"}
    try:
        rows, errors = parse_store_file(data, filename, content_type)
    except ImportFileError as e:
        return {"success": False, "message": f"Parsing failed: {e}"}

    if errors:
        more = "..." if len(errors) > 3 else ""
        message = f"Parsed with {len(errors)} errors: {', '.join(errors[:3])}{more}"
    else:
        message = f"Successfully parsed {len(rows)} rows"
    return {
        "success": not errors,
        "message": message,
        "data": {"row_count": len(rows), "sample_row": rows[0] if rows else None, "errors": errors},
    }


def _norm(value: Any) -> float:
    try:
        number = float(safe_string(value) or "0")
    except ValueError:
        return 0.0
    return 0.0 if math.isnan(number) else number


def convert_to_create_store_data(row: Dict[str, Any]) -> Dict[str, Any]:
    """Normalise a validated row into the backend's store payload."""
    hanky = _norm(row.get("hankyNorms"))
    socks = _norm(row.get("socksNorms"))
    towel = _norm(row.get("towelNorms"))
    total = _norm(row.get("totalNorms")) or (hanky + socks + towel)

    payload: Dict[str, Any] = {
        "storeId": safe_string(row.get("storeId")).upper(),
        "storeName": safe_string(row.get("storeName")),
        "city": safe_string(row.get("city")),
        "addressLine1": safe_string(row.get("addressLine1")),
        "addressLine2": safe_string(row.get("addressLine2")),
        "storeNumber": safe_string(row.get("storeNumber")),
        "pincode": safe_string(row.get("pincode")),
        "contactPerson": safe_string(row.get("contactPerson")),
        "contactEmail": safe_string(row.get("contactEmail")).lower(),
        "contactPhone": safe_string(row.get("contactPhone")),
        "creditRating": safe_string(row.get("creditRating")),
        "isActive": safe_string(row.get("isActive")).lower() in TRUTHY_ACTIVE,
        "hankyNorms": hanky,
        "socksNorms": socks,
        "towelNorms": towel,
        "totalNorms": total,
    }
    for field in OPTIONAL_STRING_FIELDS:
        value = safe_string(row.get(field))
        if value:
            payload[field] = value

    store_pk = safe_string(row.get("id"))
    if store_pk:
        payload["id"] = store_pk
    return payload


def _failed(errors: List[str], message: str) -> BulkImportResult:
    return BulkImportResult(
        success=False,
        total_processed=0,
        success_count=0,
        error_count=len(errors),
        errors=errors,
        message=message,
    )


def process_bulk_import(
    client: Any,
    data: bytes,
    filename: str,
    on_progress: Optional[ProgressCallback] = None,
    batch_size: int = DEFAULT_BATCH_SIZE,
    max_batch_size: int = MAX_BATCH_SIZE,
    delay: Optional[float] = None,
    content_type: Optional[str] = None,
) -> BulkImportResult:
    """
    Parse, validate and upload a store workbook.

    Batches go out one after another with ``delay`` seconds between them. A
    failed batch counts all of its stores as errors and the import moves on.

    Args:
        client: ``BackendClient`` (anything exposing ``stores.bulk_import``)
        data: uploaded file bytes
        filename: original file name
        on_progress: receives a ``BatchProgress`` before each batch and once at the end
        batch_size: requested batch size, capped at ``max_batch_size``
        delay: pause between batches, defaults to ``IMPORT_BATCH_DELAY_SECONDS``

    Returns:
        ``BulkImportResult``; never raises for file or backend problems
    """
    delay = _batch_delay() if delay is None else delay
    try:
        rows, parse_errors = parse_store_file(data, filename, content_type)
        if parse_errors:
            return _failed(parse_errors, "File parsing failed. Please check the file format and data.")
        stores = [convert_to_create_store_data(row) for row in rows]
        actual_batch_size = min(batch_size, max_batch_size)
        batches = chunked(stores, actual_batch_size)

        total_processed = 0
        success_count = 0
        error_count = 0
        all_errors: List[str] = []

        for batch_index, batch in enumerate(batches):
            notify(on_progress, BatchProgress(
                current_batch=batch_index + 1,
                total_batches=len(batches),
                processed_stores=total_processed,
                total_stores=len(stores),
                success_count=success_count,
                error_count=error_count,
                errors=list(all_errors),
                is_complete=False,
            ))

            try:
                result = client.stores.bulk_import(batch, batch_size=actual_batch_size) or {}
            except BackendAPIError as e:
                total_processed += len(batch)
                error_count += len(batch)
                all_errors.append(f"Batch {batch_index + 1} failed: {e.message}")
                logger.error("Store batch %s/%s failed: %s", batch_index + 1, len(batches), e.message)
                continue

            total_processed += len(batch)
            success_count += result.get("successCount") or len(batch)
            error_count += result.get("errorCount") or 0
            if isinstance(result.get("errors"), list):
                all_errors.extend(str(err) for err in result["errors"])
            logger.info("Store batch %s/%s imported", batch_index + 1, len(batches))

            if batch_index < len(batches) - 1 and delay > 0:
                time.sleep(delay)

        notify(on_progress, BatchProgress(
            current_batch=len(batches),
            total_batches=len(batches),
            processed_stores=total_processed,
            total_stores=len(stores),
            success_count=success_count,
            error_count=error_count,
            errors=list(all_errors),
            is_complete=True,
        ))

        if error_count == 0:
            message = f"Successfully imported {success_count} stores!"
        else:
            message = f"Import completed with {success_count} successful and {error_count} failed imports."
        return BulkImportResult(
            success=error_count == 0,
            total_processed=total_processed,
            success_count=success_count,
            error_count=error_count,
            errors=all_errors,
            message=message,
        )
    except Exception as e:
        logger.exception("Bulk store import failed")
        return BulkImportResult(
            success=False,
            total_processed=0,
            success_count=0,
            error_count=1,
            errors=[str(e)],
            message=f"Import failed: {e}",
        )


SAMPLE_STORES = [
    {
        "ID": "", "Store ID": "STORE001", "Store Name": "Main Street Store", "City": "Mumbai",
        "Address Line 1": "123 Main Street", "Address Line 2": "Building A, Floor 2",
        "Store Number": "A101", "Pincode": "400001", "Contact Person": "John Doe",
        "Contact Email": "john.doe@store.com", "Contact Phone": "+91-9876543210",
        "Credit Rating": "A+", "Is Active": "true", "BP Code": "BP001",
        "Old Store Code": "OLD001", "BP Name": "Business Partner Name", "Street": "Main Street",
        "Block": "Block A", "Zip Code": "400001", "State": "Maharashtra", "Country": "India",
        "Telephone": "+91-22-12345678", "Internal SAP Code": "SAP001",
        "Internal Software Code": "SW001", "Brand Grouping": "Premium", "Brand": "Brand Name",
        "Hanky Norms": 100, "Socks Norms": 50, "Towel Norms": 25, "Total Norms": 175,
    },
    {
        "ID": "", "Store ID": "STORE002", "Store Name": "Downtown Store", "City": "Delhi",
        "Address Line 1": "456 Downtown Avenue", "Address Line 2": "Shopping Complex",
        "Store Number": "B202", "Pincode": "110001", "Contact Person": "Jane Smith",
        "Contact Email": "jane.smith@store.com", "Contact Phone": "+91-9876543211",
        "Credit Rating": "A", "Is Active": "true", "BP Code": "BP002",
        "Old Store Code": "OLD002", "BP Name": "Another Business Partner",
        "Street": "Downtown Avenue", "Block": "Block B", "Zip Code": "110001", "State": "Delhi",
        "Country": "India", "Telephone": "+91-11-12345678", "Internal SAP Code": "SAP002",
        "Internal Software Code": "SW002", "Brand Grouping": "Standard", "Brand": "Another Brand",
        "Hanky Norms": 75, "Socks Norms": 30, "Towel Norms": 15, "Total Norms": 120,
    },
]

TEMPLATE_INSTRUCTIONS = [
    "How to use this Store Import Template:",
    "1. Required fields: Store ID, Store Name, City, Address Line 1, Store Number, Pincode, "
    "Contact Person, Contact Email, Contact Phone, Credit Rating",
    "2. ID field: Leave empty for new stores, include ID for updating existing stores",
    "3. Store ID must be unique and contain only uppercase letters and numbers",
    "4. Pincode must contain only digits (can be any length)",
    "5. Contact Email must be a valid email format",
    "6. Contact Phone must be a valid phone number (10-15 digits)",
    "7. Credit Rating must be one of: " + ", ".join(CREDIT_RATINGS),
    '8. Is Active: Use "true", "yes", or "1" for active stores, "false", "no", or "0" for inactive',
    "9. All other fields are optional",
    "10. Norms fields (Hanky, Socks, Towel, Total) should be numbers (0 if not applicable)",
    "11. Total Norms will be auto-calculated if not provided",
    f"12. Maximum 1000 stores per import, processed in batches of {DEFAULT_BATCH_SIZE}-{MAX_BATCH_SIZE}",
]

EXPORT_COLUMN_WIDTHS = [
    24, 12, 25, 15, 30, 25, 15, 10, 20, 25, 15, 12, 10, 12, 15, 20,
    20, 12, 10, 15, 15, 15, 18, 20, 15, 15, 12, 12, 12, 12, 12, 12,
]

TEMPLATE_FILENAME = "store-import-template.xlsx"


def build_store_template() -> bytes:
    """xlsx with two sample stores and an Instructions sheet."""
    return workbook_bytes({
        "Stores": pd.DataFrame(SAMPLE_STORES, columns=list(STORE_COLUMNS)),
        "Instructions": pd.DataFrame({"Instructions": TEMPLATE_INSTRUCTIONS}),
    })


def _export_date(value: Any) -> str:
    if is_blank(value):
        return ""
    try:
        return pd.Timestamp(value).strftime("%d/%m/%Y")
    except (ValueError, TypeError):
        return safe_string(value)


def export_stores_workbook(stores: List[Dict[str, Any]]) -> bytes:
    """Stores sheet using the import headers, so an export can be edited and re-imported."""
    rows = []
    for store in stores:
        row: Dict[str, Any] = {}
        for header, field in STORE_COLUMNS.items():
            value = store.get(field)
            if field == "isActive":
                value = "true" if value else "false"
            elif field in NORM_FIELDS:
                value = value or 0
            elif value is None:
                value = ""
            row[header] = value
        row["Created At"] = _export_date(store.get("createdAt"))
        row["Updated At"] = _export_date(store.get("updatedAt"))
        rows.append(row)

    columns = list(STORE_COLUMNS) + ["Created At", "Updated At"]
    return workbook_bytes(
        {"Stores": pd.DataFrame(rows, columns=columns)},
        column_widths={"Stores": EXPORT_COLUMN_WIDTHS},
    )


def export_filename(prefix: str = "stores-export") -> str:
    return f"{prefix}_{datetime.now().strftime('%Y-%m-%d')}.xlsx"
