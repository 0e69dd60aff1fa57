import unittest

from conftest import SALE_HEADER, FakeBackend, api_error, make_csv, make_xlsx, sale_row

from retail_admin.shared.errors import ImportFileError, ImportValidationError
from retail_admin.shared.importers import sales
from retail_admin.shared.importers.sales import SalesRecord


def record(i: int) -> SalesRecord:
    return SalesRecord(plant=f"S{i}", material_code="M", quantity=1, mrp=1, gsv=1, nsv=1)


class TestParseSalesWorkbook(unittest.TestCase):
    def test_parses_sale_sheet(self) -> None:
        data = make_xlsx({"Summary": [["x"], [1]], "Sale": [SALE_HEADER, sale_row(), sale_row(plant="STORE002")]})
        events = []
        records = sales.parse_sales_workbook(data, "sales.xlsx", on_progress=events.append)

        self.assertEqual(len(records), 2)
        payload = records[0].to_payload()
        self.assertEqual(payload["plant"], "STORE001")
        self.assertEqual(payload["materialCode"], "STYLE123")
        self.assertEqual(payload["nsv"], 1200.5)
        self.assertEqual(payload["totalTax"], 78.2)
        self.assertEqual(payload["date"], "2024-01-15T00:00:00.000Z")
        self.assertEqual([e.percentage for e in events], [50, 100])

    def test_csv_rejected(self) -> None:
        with self.assertRaises(ImportFileError) as ctx:
            sales.parse_sales_workbook(make_csv([SALE_HEADER, sale_row()]), "sales.csv", "text/csv")
        self.assertIn("Unsupported file format", str(ctx.exception))

    def test_missing_sheet(self) -> None:
        data = make_xlsx({"Sheet1": [SALE_HEADER, sale_row()]})
        with self.assertRaises(ImportFileError) as ctx:
            sales.parse_sales_workbook(data, "sales.xlsx")
        self.assertEqual(str(ctx.exception), "'Sale' sheet not found in the Excel file")

    def test_missing_column(self) -> None:
        header = [h for h in SALE_HEADER if h != "NSV"]
        row = sale_row()[:10] + [78.2]
        with self.assertRaises(ImportFileError) as ctx:
            sales.parse_sales_workbook(make_xlsx({"Sale": [header, row]}), "sales.xlsx")
        self.assertEqual(str(ctx.exception), "Missing required column: nsv")

    def test_corrupt_workbook_is_a_file_error(self) -> None:
        for data in (b"PK\x03\x04garbage-not-a-zip", b"hello world"):
            with self.assertRaises(ImportFileError) as ctx:
                sales.parse_sales_workbook(data, "sales.xlsx")
            self.assertTrue(str(ctx.exception).startswith("Failed to process import file: "))

    def test_row_errors_are_collected(self) -> None:
        data = make_xlsx({"Sale": [SALE_HEADER, sale_row(), sale_row(qty="-"), sale_row(day="99.99.2024")]})
        with self.assertRaises(ImportValidationError) as ctx:
            sales.parse_sales_workbook(data, "sales.xlsx")
        self.assertEqual(ctx.exception.details, [
            "Row 3: Missing or invalid required fields",
            "Row 4: Invalid date format: 99.99.2024",
        ])


class TestBulkImport(unittest.TestCase):
    def test_batches_records(self) -> None:
        backend = FakeBackend()
        events = []
        imported = sales.bulk_import(backend, [record(i) for i in range(5)], batch_size=2, on_progress=events.append)

        self.assertEqual(imported, 5)
        bodies = [args[0] for _, args, _ in backend.sales.calls]
        self.assertEqual([len(b["salesRecords"]) for b in bodies], [2, 2, 1])
        self.assertEqual(bodies[0]["batchSize"], 2)
        self.assertEqual(events[-1].status, "completed")
        self.assertEqual(events[-1].percentage, 100)

    def test_falls_back_to_array_fields(self) -> None:
        def handler(method, body, **kwargs):
            if isinstance(body, dict) and "salesRecords" in body:
                raise api_error(sales.ARRAY_FIELD_REQUIRED_HINT)
            return {}

        backend = FakeBackend(sales=handler)
        sales.bulk_import(backend, [record(1)])
        second = backend.sales.calls[1][1][0]
        self.assertEqual(len(backend.sales.calls), 2)
        self.assertEqual(second["items"], second["stores"])

    def test_falls_back_to_bare_list(self) -> None:
        def handler(method, body, **kwargs):
            if isinstance(body, dict):
                raise api_error("unexpected body")
            return {}

        backend = FakeBackend(sales=handler)
        sales.bulk_import(backend, [record(1)])
        self.assertEqual(len(backend.sales.calls), 2)
        self.assertIsInstance(backend.sales.calls[1][1][0], list)

    def test_failed_batches_raise_after_all_tried(self) -> None:
        def handler(method, body, **kwargs):
            rows = body if isinstance(body, list) else body["salesRecords"]
            if rows[0]["plant"] == "S0":
                raise api_error("Store S0 not found")
            return {}

        backend = FakeBackend(sales=handler)
        events = []
        with self.assertRaises(ImportValidationError) as ctx:
            sales.bulk_import(backend, [record(0), record(1)], batch_size=1, on_progress=events.append)

        self.assertEqual(ctx.exception.details, ["Batch 1: Store S0 not found"])
        self.assertEqual(events[-1].status, "failed")
        # the second batch still went through
        self.assertEqual(backend.sales.calls[-1][1][0]["salesRecords"][0]["plant"], "S1")

    def test_raising_progress_listener_does_not_stop_import(self) -> None:
        def broken_listener(event):
            raise RuntimeError("listener down")

        backend = FakeBackend()
        with self.assertLogs("retail_admin.shared.importers.progress", level="ERROR"):
            imported = sales.bulk_import(backend, [record(i) for i in range(3)], batch_size=1, on_progress=broken_listener)
        self.assertEqual(imported, 3)
        self.assertEqual(len(backend.sales.calls), 3)

    def test_template_quotes_commas(self) -> None:
        lines = sales.build_template_csv().splitlines()
        self.assertEqual(lines[0].split(",")[:3], ["Date", "Plant", "Material Code"])
        self.assertIn('"Sale date (DD-MM-YYYY, YYYY-MM-DD, DD/MM/YYYY)"', lines[2])


if __name__ == "__main__":
    unittest.main()
