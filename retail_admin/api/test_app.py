import io
import unittest
from unittest import mock

from fastapi.testclient import TestClient
from openpyxl import load_workbook

from conftest import (
    SALE_HEADER,
    XLSX_CONTENT_TYPE,
    FakeBackend,
    api_error,
    make_csv,
    make_xlsx,
    sale_row,
)

from retail_admin.api.app import app, get_forecast_client
from retail_admin.api.imports import get_backend_client
from retail_admin.shared.importers import stores


def store_csv(*store_ids):
    headers = list(stores.STORE_COLUMNS)
    rows = []
    for store_id in store_ids:
        row = dict(stores.SAMPLE_STORES[0], **{"Store ID": store_id})
        rows.append([row[h] for h in headers])
    return make_csv([headers] + rows)


class GatewayTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self.backend = FakeBackend()
        app.dependency_overrides[get_backend_client] = lambda: self.backend
        self.client = TestClient(app)

    def tearDown(self) -> None:
        app.dependency_overrides.clear()


class TestMeta(GatewayTestCase):
    def test_health(self) -> None:
        response = self.client.get("/health")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {"status": "healthy", "service": "retail-admin-api"})

    def test_root_lists_endpoints(self) -> None:
        endpoints = self.client.get("/").json()["endpoints"]
        self.assertEqual(endpoints["stores_import"], "/api/v1/imports/stores")


class TestSalesEndpoints(GatewayTestCase):
    def test_template_download(self) -> None:
        response = self.client.get("/api/v1/imports/sales/template")
        self.assertEqual(response.status_code, 200)
        self.assertIn("sales_import_template.csv", response.headers["content-disposition"])
        self.assertTrue(response.text.startswith("Date,Plant,Material Code"))

    def test_preview_reports_row_errors(self) -> None:
        data = make_xlsx({"Sale": [SALE_HEADER, sale_row(qty="-")]})
        response = self.client.post(
            "/api/v1/imports/sales/preview", files={"file": ("sales.xlsx", data, XLSX_CONTENT_TYPE)},
        )
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["detail"]["errors"], ["Row 2: Missing or invalid required fields"])

    def test_import_pushes_batches(self) -> None:
        data = make_xlsx({"Sale": [SALE_HEADER, sale_row(), sale_row(plant="STORE002"), sale_row(plant="STORE003")]})
        response = self.client.post(
            "/api/v1/imports/sales?batch_size=2", files={"file": ("sales.xlsx", data, XLSX_CONTENT_TYPE)},
        )
        body = response.json()
        self.assertEqual(response.status_code, 200)
        self.assertEqual(body["imported"], 3)
        self.assertEqual(body["progress"][-1]["status"], "completed")
        self.assertEqual(len(self.backend.sales.calls), 2)

    def test_import_failure_is_bad_gateway(self) -> None:
        def handler(method, body, **kwargs):
            raise api_error("Store STORE001 not found", 404)

        self.backend = FakeBackend(sales=handler)
        data = make_xlsx({"Sale": [SALE_HEADER, sale_row()]})
        response = self.client.post("/api/v1/imports/sales", files={"file": ("sales.xlsx", data, XLSX_CONTENT_TYPE)})
        self.assertEqual(response.status_code, 502)
        self.assertEqual(response.json()["detail"]["errors"], ["Batch 1: Store STORE001 not found"])

    def test_corrupt_workbook_is_bad_request(self) -> None:
        for path in ("/api/v1/imports/sales/preview", "/api/v1/imports/sales"):
            for data in (b"PK\x03\x04garbage-not-a-zip", b"hello world"):
                response = self.client.post(path, files={"file": ("sales.xlsx", data, XLSX_CONTENT_TYPE)})
                self.assertEqual(response.status_code, 400)
                self.assertTrue(response.json()["detail"]["message"].startswith("Failed to process import file"))
        self.assertEqual(self.backend.sales.calls, [])

    def test_wrong_file_type(self) -> None:
        response = self.client.post("/api/v1/imports/sales", files={"file": ("notes.txt", b"hello", "text/plain")})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()["detail"], "Please select a valid Excel file (.xlsx, .xls) or CSV file")


class TestStoreEndpoints(GatewayTestCase):
    def test_import(self) -> None:
        with mock.patch.dict("os.environ", {"IMPORT_BATCH_DELAY_SECONDS": "0"}):
            response = self.client.post(
                "/api/v1/imports/stores?batch_size=1",
                files={"file": ("stores.csv", store_csv("STORE001", "STORE002"), "text/csv")},
            )
        body = response.json()
        self.assertEqual(response.status_code, 200)
        self.assertTrue(body["success"])
        self.assertEqual(body["success_count"], 2)
        self.assertEqual(len(self.backend.stores.calls), 2)

    def test_preview(self) -> None:
        response = self.client.post(
            "/api/v1/imports/stores/preview", files={"file": ("stores.csv", store_csv("STORE001"), "text/csv")},
        )
        self.assertEqual(response.json()["data"]["row_count"], 1)

    def test_template_is_xlsx(self) -> None:
        response = self.client.get("/api/v1/imports/stores/template")
        wb = load_workbook(io.BytesIO(response.content))
        self.assertEqual(wb.sheetnames, ["Stores", "Instructions"])

    def test_export(self) -> None:
        self.backend = FakeBackend(stores=lambda method, **kw: {"results": [{"storeId": "S1", "isActive": True}]})
        response = self.client.get("/api/v1/exports/stores")
        self.assertEqual(response.status_code, 200)
        ws = load_workbook(io.BytesIO(response.content))["Stores"]
        self.assertEqual(ws["B2"].value, "S1")

    def test_export_backend_down(self) -> None:
        def handler(method, **kwargs):
            raise api_error("Network error: Unable to connect to server (refused)")

        self.backend = FakeBackend(stores=handler)
        response = self.client.get("/api/v1/exports/stores")
        self.assertEqual(response.status_code, 502)


class TestRawMaterialEndpoints(GatewayTestCase):
    def test_import(self) -> None:
        data = make_xlsx({"Sheet1": [["Name", "Unit"], ["Yarn", "kg"], ["Dye", ""]]})
        response = self.client.post(
            "/api/v1/imports/raw-materials", files={"file": ("m.xlsx", data, XLSX_CONTENT_TYPE)},
        )
        body = response.json()
        self.assertEqual(body["success_count"], 1)
        self.assertEqual(body["skipped_count"], 1)

    def test_corrupt_workbook_is_bad_request(self) -> None:
        response = self.client.post(
            "/api/v1/imports/raw-materials",
            files={"file": ("m.xlsx", b"PK\x03\x04garbage-not-a-zip", XLSX_CONTENT_TYPE)},
        )
        self.assertEqual(response.status_code, 400)
        self.assertTrue(response.json()["detail"]["message"].startswith("Failed to process import file"))

    def test_export(self) -> None:
        self.backend = FakeBackend(raw_materials=lambda method, **kw: {"results": []})
        response = self.client.get("/api/v1/exports/raw-materials")
        self.assertEqual(response.status_code, 200)
        self.assertIn("raw-materials_", response.headers["content-disposition"])


class TestDashboardEndpoints(GatewayTestCase):
    def test_overview(self) -> None:
        self.backend = mock.MagicMock()
        self.backend.dashboard.overview.return_value = {
            "overview": {"totalSales": {"totalNSV": 2_500_000, "totalGSV": 3_000_000}, "totalOrders": 1200},
            "monthlyTrends": [{"_id": {"year": 2024, "month": 1}, "totalNSV": 10}],
            "topStores": [{"storeName": "Main Street", "totalNSV": 900_000, "totalQuantity": 300}],
        }
        body = self.client.get("/api/v1/dashboard/overview").json()
        self.assertEqual(body["formatted"]["total_nsv"], "₹25.0 L")
        self.assertEqual(body["formatted"]["total_orders"], "1.2 K")
        self.assertEqual(body["monthly_trends"]["categories"], ["Jan 2024"])
        self.assertEqual(body["store_performance"]["labels"], ["Main Street"])
        self.assertEqual(body["top_stores"], [{"name": "Main Street", "nsv": "₹9.0 L", "quantity": "300"}])

    def test_overview_upstream_error(self) -> None:
        self.backend = mock.MagicMock()
        self.backend.dashboard.overview.side_effect = api_error("Unauthorized", 401)
        response = self.client.get("/api/v1/dashboard/overview")
        self.assertEqual(response.status_code, 502)
        self.assertEqual(response.json(), {"detail": "Unauthorized", "upstream_status": 401})

    def test_replenishment_health_degrades(self) -> None:
        forecast = mock.MagicMock()
        forecast.health.side_effect = api_error("Network error: Unable to connect to server (refused)")
        app.dependency_overrides[get_forecast_client] = lambda: forecast
        body = self.client.get("/api/v1/replenishment/health").json()
        self.assertEqual(body["status"], "unavailable")


if __name__ == "__main__":
    unittest.main()
