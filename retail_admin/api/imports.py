"""
Import / export API
Upload endpoints for the sales, store and raw-material spreadsheets, plus the
templates and Excel exports the admin console offers for download.
"""
import logging
from functools import lru_cache
from typing import Any, Dict, List

from fastapi import APIRouter, Depends, File, HTTPException, Query, Response, UploadFile

from retail_admin.api.backend_client import BackendClient
from retail_admin.shared.errors import BackendAPIError, ImportFileError, ImportValidationError
from retail_admin.shared.importers import raw_materials, sales, stores
from retail_admin.shared.importers.progress import BulkImportResult, ImportProgress, RowImportResult
from retail_admin.shared.utils.spreadsheet import validate_file_for_import

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1", tags=["imports"])

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


@lru_cache(maxsize=1)
def get_backend_client() -> BackendClient:
    return BackendClient()


def _attachment(content: Any, filename: str, media_type: str) -> Response:
    return Response(
        content=content,
        media_type=media_type,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


def _read_upload(file: UploadFile) -> bytes:
    data = file.file.read()
    is_valid, error = validate_file_for_import(file.filename or "", len(data), file.content_type)
    if not is_valid:
        raise HTTPException(status_code=400, detail=error)
    return data


def _file_error(e: ImportFileError) -> HTTPException:
    detail: Dict[str, Any] = {"message": str(e)}
    if isinstance(e, ImportValidationError):
        detail = {"message": e.message, "errors": e.details}
    return HTTPException(status_code=400, detail=detail)


@router.get("/imports/sales/template")
async def download_sales_template():
    return _attachment(sales.build_template_csv(), sales.TEMPLATE_FILENAME, "text/csv")


@router.post("/imports/sales/preview")
def preview_sales_import(file: UploadFile = File(...)):
    """Parse the "Sale" sheet without sending anything to the backend."""
    data = _read_upload(file)
    try:
        records = sales.parse_sales_workbook(data, file.filename or "", file.content_type)
    except ImportFileError as e:
        raise _file_error(e)
    return {
        "success": True,
        "count": len(records),
        "records": [r.to_payload() for r in records],
    }


@router.post("/imports/sales")
def import_sales(
    file: UploadFile = File(...),
    batch_size: int = Query(sales.DEFAULT_BATCH_SIZE, ge=1, le=1000),
    client: BackendClient = Depends(get_backend_client),
):
    """
    Parse the uploaded workbook and push its sales records to the backend.

    Returns:
        imported count plus every progress event emitted along the way
    """
    data = _read_upload(file)
    try:
        records = sales.parse_sales_workbook(data, file.filename or "", file.content_type)
    except ImportFileError as e:
        raise _file_error(e)

    events: List[ImportProgress] = []
    try:
        imported = sales.bulk_import(client, records, batch_size=batch_size, on_progress=events.append)
    except ImportValidationError as e:
        raise HTTPException(
            status_code=502,
            detail={"message": e.message, "errors": e.details, "progress": [p.model_dump() for p in events]},
        )
    return {"success": True, "imported": imported, "progress": [p.model_dump() for p in events]}


@router.get("/imports/stores/template")
async def download_store_template():
    return _attachment(stores.build_store_template(), stores.TEMPLATE_FILENAME, XLSX_MEDIA_TYPE)


@router.post("/imports/stores/preview")
def preview_store_import(file: UploadFile = File(...)):
    data = file.file.read()
    return stores.preview_store_file(data, file.filename or "", file.content_type)


@router.post("/imports/stores", response_model=BulkImportResult)
def import_stores(
    file: UploadFile = File(...),
    batch_size: int = Query(stores.DEFAULT_BATCH_SIZE, ge=1),
    max_batch_size: int = Query(stores.MAX_BATCH_SIZE, ge=1),
    client: BackendClient = Depends(get_backend_client),
):
    data = _read_upload(file)
    return stores.process_bulk_import(
        client,
        data,
        file.filename or "",
        batch_size=batch_size,
        max_batch_size=max_batch_size,
        content_type=file.content_type,
    )


@router.post("/imports/raw-materials", response_model=RowImportResult)
def import_raw_materials(
    file: UploadFile = File(...),
    client: BackendClient = Depends(get_backend_client),
):
    data = _read_upload(file)
    try:
        return raw_materials.import_raw_materials(client, data, file.filename or "", content_type=file.content_type)
    except ImportFileError as e:
        raise _file_error(e)


@router.get("/exports/raw-materials")
def export_raw_materials(client: BackendClient = Depends(get_backend_client)):
    try:
        filename, content = raw_materials.export_raw_materials(client)
    except BackendAPIError as e:
        raise HTTPException(status_code=502, detail=e.message)
    return _attachment(content, filename, XLSX_MEDIA_TYPE)


@router.get("/exports/stores")
def export_stores(client: BackendClient = Depends(get_backend_client)):
    try:
        response = client.stores.list(page=1, limit=100000)
    except BackendAPIError as e:
        raise HTTPException(status_code=502, detail=e.message)
    results = response.get("results", []) if isinstance(response, dict) else []
    return _attachment(stores.export_stores_workbook(results), stores.export_filename(), XLSX_MEDIA_TYPE)
