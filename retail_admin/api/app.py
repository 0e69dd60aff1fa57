"""
API Gateway
Spreadsheet import endpoints plus dashboard / replenishment passthroughs for the
retail admin console.
"""
import logging
import os
from functools import lru_cache
from pathlib import Path

from dotenv import load_dotenv
from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

project_root = Path(__file__).parent.parent

# Load environment variables before the clients read them
env_path = project_root / ".env"
if env_path.exists():
    load_dotenv(env_path)

from retail_admin.api.backend_client import BackendClient  # noqa: E402
from retail_admin.api.forecast_client import ForecastClient  # noqa: E402
from retail_admin.api.imports import get_backend_client  # noqa: E402
from retail_admin.api.imports import router as imports_router  # noqa: E402
from retail_admin.shared.errors import BackendAPIError, ImportFileError  # noqa: E402
from retail_admin.shared.utils import dashboard  # noqa: E402

logger = logging.getLogger(__name__)

app = FastAPI(
    title="Retail Admin API",
    description="Sales / store / raw-material imports and dashboard helpers",
    version="1.0.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=os.getenv("CORS_ALLOW_ORIGINS", "*").split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(imports_router)


@lru_cache(maxsize=1)
def get_forecast_client() -> ForecastClient:
    return ForecastClient()


@app.exception_handler(BackendAPIError)
async def backend_error_handler(request: Request, exc: BackendAPIError):
    logger.error("Upstream call failed for %s: %s", request.url.path, exc.message)
    return JSONResponse(
        status_code=502,
        content={"detail": exc.message, "upstream_status": exc.status_code},
    )


@app.exception_handler(ImportFileError)
async def import_file_error_handler(request: Request, exc: ImportFileError):
    return JSONResponse(status_code=400, content={"detail": str(exc)})


@app.get("/")
async def root():
    """API root"""
    return {
        "name": "Retail Admin API",
        "version": "1.0.0",
        "status": "running",
        "endpoints": {
            "health": "/health",
            "sales_template": "/api/v1/imports/sales/template",
            "sales_preview": "/api/v1/imports/sales/preview",
            "sales_import": "/api/v1/imports/sales",
            "stores_template": "/api/v1/imports/stores/template",
            "stores_preview": "/api/v1/imports/stores/preview",
            "stores_import": "/api/v1/imports/stores",
            "raw_materials_import": "/api/v1/imports/raw-materials",
            "raw_materials_export": "/api/v1/exports/raw-materials",
            "stores_export": "/api/v1/exports/stores",
            "dashboard_overview": "/api/v1/dashboard/overview",
            "replenishment_health": "/api/v1/replenishment/health",
        },
    }


@app.get("/health")
async def health():
    """Health check"""
    return {
        "status": "healthy",
        "service": "retail-admin-api",
    }


@app.get("/api/v1/dashboard/overview")
def dashboard_overview(
    client: BackendClient = Depends(get_backend_client),
):
    """
    Dashboard overview reshaped for charting: headline totals (raw and
    formatted) plus the monthly trend series.
    """
    data = client.dashboard.overview()
    if not isinstance(data, dict):
        raise HTTPException(status_code=502, detail="Unexpected dashboard payload")

    totals = dashboard.overview_totals(data.get("overview"))
    return {
        "success": True,
        "totals": totals,
        "formatted": {
            "total_nsv": dashboard.format_currency(totals["total_nsv"]),
            "total_gsv": dashboard.format_currency(totals["total_gsv"]),
            "total_orders": dashboard.format_large_number(totals["total_orders"]),
            "sales_change": dashboard.format_percentage(totals["sales_change"]),
        },
        "monthly_trends": dashboard.monthly_trends_series(data.get("monthlyTrends")),
        "store_performance": dashboard.store_performance_donut(data.get("topStores")),
        "top_stores": dashboard.top_stores_rows(data.get("topStores")),
    }


@app.get("/api/v1/replenishment/health")
def replenishment_health(client: ForecastClient = Depends(get_forecast_client)):
    """Forecast service health, reported as degraded rather than failing."""
    try:
        status = client.health()
    except BackendAPIError as e:
        return {"status": "unavailable", "error": e.message}
    return {"status": "ok", "service": status}


if __name__ == "__main__":
    import uvicorn

    port = int(os.getenv("PORT", 8000))
    logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(levelname)s - %(message)s")
    logger.info("Starting API server on port %s", port)
    uvicorn.run(app, host="0.0.0.0", port=port)
