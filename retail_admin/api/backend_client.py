"""
Backend REST client
Thin JSON-over-HTTP wrapper around the business backend (``API_BASE_URL``):
stores, sales, catalog masters, analytics and dashboard endpoints.
"""
import json
import logging
import os
from typing import Any, Dict, List, Optional
from urllib import error as urlerror
from urllib import parse as urlparse
from urllib import request as urlrequest

from retail_admin.shared.errors import BackendAPIError

logger = logging.getLogger(__name__)

DEFAULT_API_BASE_URL = "http://localhost:3002/v1"


def _default_timeout() -> float:
    return float(os.getenv("API_TIMEOUT_SECONDS", "30"))


def build_query(params: Optional[Dict[str, Any]]) -> str:
    """Encode query params, dropping None / empty values. Booleans go out as true/false."""
    if not params:
        return ""
    pairs = []
    for key, value in params.items():
        if value is None or value == "":
            continue
        if isinstance(value, bool):
            value = "true" if value else "false"
        pairs.append((key, str(value)))
    return urlparse.urlencode(pairs)


def _error_message(body: str, status: int) -> str:
    try:
        data = json.loads(body) if body else {}
    except ValueError:
        data = {}
    if isinstance(data, dict) and data.get("message"):
        return str(data["message"])
    return f"HTTP error! status: {status}"


class JSONHTTPClient:
    """Shared transport for the backend and the forecast service."""

    service_name = "Backend"

    def __init__(
        self,
        base_url: str,
        token: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.timeout = timeout if timeout is not None else _default_timeout()

    def _headers(self, accept: str = "application/json") -> Dict[str, str]:
        headers = {"Content-Type": "application/json", "Accept": accept}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    def _url(self, path: str, params: Optional[Dict[str, Any]] = None) -> str:
        url = f"{self.base_url}/{path.lstrip('/')}" if path else self.base_url
        query = build_query(params)
        return f"{url}?{query}" if query else url

    def request_raw(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        body: Any = None,
        accept: str = "application/json",
    ) -> bytes:
        url = self._url(path, params)
        data = json.dumps(body).encode("utf-8") if body is not None else None
        req = urlrequest.Request(url, data=data, headers=self._headers(accept), method=method)
        logger.debug("%s %s", method, url)

        try:
            with urlrequest.urlopen(req, timeout=self.timeout) as resp:
                return resp.read()
        except urlerror.HTTPError as e:
            err_body = ""
            try:
                err_body = e.read().decode("utf-8", errors="replace")
            except OSError:
                pass
            logger.error(
                "%s API error: %s %s -> %s %s", self.service_name, method, url, e.code, err_body
            )
            raise BackendAPIError(
                _error_message(err_body, e.code), status_code=e.code, url=url, body=err_body
            ) from e
        except urlerror.URLError as e:
            logger.error("%s API unreachable: %s %s (%s)", self.service_name, method, url, e.reason)
            raise BackendAPIError(
                f"Network error: Unable to connect to server ({e.reason})", url=url
            ) from e

    def request(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        body: Any = None,
    ) -> Any:
        """
        Send one JSON request.

        Args:
            method: HTTP verb
            path: path relative to ``base_url``
            params: query parameters (None / "" are skipped)
            body: JSON-serialisable payload

        Returns:
            decoded JSON, or ``{}`` for an empty (e.g. 204) response

        Raises:
            BackendAPIError: non-2xx status, unreachable host or a non-JSON body
        """
        raw = self.request_raw(method, path, params=params, body=body)
        if not raw:
            return {}
        try:
            return json.loads(raw.decode("utf-8"))
        except ValueError as e:
            raise BackendAPIError(
                f"Invalid JSON from {self.service_name.lower()}: {e}", url=self._url(path, params)
            ) from e

    def get(self, path: str, **params: Any) -> Any:
        return self.request("GET", path, params=params)


class Resource:
    """Generic CRUD endpoint: list / get / create / update (PATCH) / delete."""

    def __init__(self, client: JSONHTTPClient, path: str):
        self.client = client
        self.path = path.strip("/")

    def _item(self, item_id: str) -> str:
        return f"{self.path}/{urlparse.quote(str(item_id), safe='')}"

    def list(self, **filters: Any) -> Dict[str, Any]:
        return self.client.request("GET", self.path, params=filters)

    def get(self, item_id: str) -> Dict[str, Any]:
        return self.client.request("GET", self._item(item_id))

    def create(self, data: Dict[str, Any]) -> Dict[str, Any]:
        return self.client.request("POST", self.path, body=data)

    def update(self, item_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        return self.client.request("PATCH", self._item(item_id), body=data)

    def delete(self, item_id: str) -> bool:
        self.client.request("DELETE", self._item(item_id))
        return True


class StoresResource(Resource):
    def bulk_import(self, stores: List[Dict[str, Any]], batch_size: Optional[int] = None) -> Dict[str, Any]:
        body: Dict[str, Any] = {"stores": stores}
        if batch_size is not None:
            body["batchSize"] = batch_size
        return self.client.request("POST", f"{self.path}/bulk-import", body=body)

    def cities(self) -> Any:
        return self.client.request("GET", f"{self.path}/cities")


class SalesResource(Resource):
    def bulk_import(self, body: Any) -> Dict[str, Any]:
        """Body shape varies by backend version, see ``shared.importers.sales``."""
        return self.client.request("POST", f"{self.path}/bulk-import", body=body)

    def bulk_delete(self, ids: List[str]) -> Dict[str, Any]:
        return self.client.request("DELETE", f"{self.path}/bulk-delete", body={"salesIds": ids})

    def export(self, format: str = "csv", **filters: Any) -> bytes:
        params = dict(filters, format=format)
        return self.client.request_raw("GET", f"{self.path}/export", params=params, accept="*/*")


class AnalyticsAPI:
    """``/analytics`` read-only endpoints."""

    def __init__(self, client: JSONHTTPClient, path: str = "analytics"):
        self.client = client
        self.path = path

    def _get(self, endpoint: str, **params: Any) -> Any:
        return self.client.get(f"{self.path}/{endpoint}", **params)

    def time_based_trends(self, **params: Any) -> Any:
        return self._get("time-based-trends", **params)

    def product_performance(self, **params: Any) -> Any:
        return self._get("product-performance", **params)

    def store_performance(self, **params: Any) -> Any:
        return self._get("store-performance", **params)

    def store_heatmap(self, **params: Any) -> Any:
        return self._get("store-heatmap", **params)

    def brand_performance(self, **params: Any) -> Any:
        return self._get("brand-performance", **params)

    def discount_impact(self, **params: Any) -> Any:
        return self._get("discount-impact", **params)

    def tax_mrp_analytics(self, **params: Any) -> Any:
        return self._get("tax-mrp-analytics", **params)

    def summary_kpis(self, **params: Any) -> Any:
        return self._get("summary-kpis", **params)

    def dashboard(self, **params: Any) -> Any:
        return self._get("dashboard", **params)

    def store_analysis(self, store_id: str, **params: Any) -> Any:
        return self._get("store-analysis", storeId=store_id, **params)

    def product_analysis(self, product_id: str, **params: Any) -> Any:
        return self._get("product-analysis", productId=product_id, **params)

    def store_forecasting(self, store_id: str, **params: Any) -> Any:
        return self._get("store-forecasting", storeId=store_id, **params)

    def product_forecasting(self, product_id: str, **params: Any) -> Any:
        return self._get("product-forecasting", productId=product_id, **params)

    def store_replenishment(self, store_id: str, **params: Any) -> Any:
        return self._get("store-replenishment", storeId=store_id, **params)

    def product_replenishment(self, product_id: str, **params: Any) -> Any:
        return self._get("product-replenishment", productId=product_id, **params)


class DashboardAPI(AnalyticsAPI):
    """``/dashboard`` read-only endpoints."""

    def __init__(self, client: JSONHTTPClient):
        super().__init__(client, path="dashboard")

    def overview(self, **params: Any) -> Any:
        return self._get("dashboard", **params)

    def sales_analytics(self, **params: Any) -> Any:
        return self._get("sales-analytics", **params)

    def category_analytics(self, **params: Any) -> Any:
        return self._get("category-analytics", **params)

    def city_performance(self) -> Any:
        return self._get("city-performance")

    def demand_forecast(self, **params: Any) -> Any:
        return self._get("demand-forecast", **params)

    def top_products(self, **params: Any) -> Any:
        return self._get("top-products", **params)

    def all_stores_performance(self) -> Any:
        return self._get("all-stores-performance")

    def all_cities_performance(self) -> Any:
        return self._get("all-cities-performance")

    def all_sales_data(self, **params: Any) -> Any:
        return self._get("all-sales-data", **params)


class BackendClient(JSONHTTPClient):
    """Entry point for every backend resource the admin console touches."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        token: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        super().__init__(
            base_url or os.getenv("API_BASE_URL", DEFAULT_API_BASE_URL),
            token=token if token is not None else os.getenv("API_TOKEN"),
            timeout=timeout,
        )
        self.stores = StoresResource(self, "stores")
        self.sales = SalesResource(self, "sales")
        self.raw_materials = Resource(self, "raw-materials")
        self.categories = Resource(self, "categories")
        self.processes = Resource(self, "processes")
        self.products = Resource(self, "products")
        self.product_attributes = Resource(self, "product-attributes")
        # the backend really does spell it "seals"
        self.sales_master = Resource(self, "seals-excel-master")
        self.analytics = AnalyticsAPI(self)
        self.dashboard = DashboardAPI(self)
