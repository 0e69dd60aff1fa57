"""
Forecast service client
Talks to the replenishment / demand-forecast microservice (``RSERVICE_BASE_URL``).
"""
import os
from typing import Any, Dict, List, Optional

from retail_admin.api.backend_client import JSONHTTPClient

DEFAULT_RSERVICE_BASE_URL = "http://localhost:8001"


class ForecastClient(JSONHTTPClient):
    """Predictions, model metadata and accuracy stats from the forecast service."""

    service_name = "Forecast"

    def __init__(
        self,
        base_url: Optional[str] = None,
        token: Optional[str] = None,
        timeout: Optional[float] = None,
    ):
        super().__init__(
            base_url or os.getenv("RSERVICE_BASE_URL", DEFAULT_RSERVICE_BASE_URL),
            token=token,
            timeout=timeout,
        )

    def health(self) -> Dict[str, Any]:
        return self.get("health")

    def model_info(self) -> Dict[str, Any]:
        return self.get("model/info")

    def generate_forecast(
        self,
        store_id: str,
        product_id: str,
        forecast_month: str,
        historical_months: Optional[int] = None,
    ) -> Dict[str, Any]:
        """
        Ask the service for a new prediction.

        Args:
            store_id: store code (the sales "plant")
            product_id: product style code
            forecast_month: target month, ``YYYY-MM``
            historical_months: how much history the model should look back on

        Returns:
            ``{"prediction_id": ..., "message": ...}``
        """
        body: Dict[str, Any] = {
            "store_id": store_id,
            "product_id": product_id,
            "forecast_month": forecast_month,
        }
        if historical_months is not None:
            body["historical_months"] = historical_months
        return self.request("POST", "predict-forecast", body=body)

    def prediction(self, prediction_id: str) -> Dict[str, Any]:
        return self.get(f"predictions/{prediction_id}")

    def predictions_by_store(self, store_id: str, limit: int = 100) -> List[Dict[str, Any]]:
        return self.get(f"predictions/store/{store_id}", limit=limit)

    def predictions_by_product(self, product_id: str, limit: int = 100) -> List[Dict[str, Any]]:
        return self.get(f"predictions/product/{product_id}", limit=limit)

    def predictions_by_store_and_product(
        self, store_id: str, product_id: str, limit: int = 100
    ) -> List[Dict[str, Any]]:
        return self.get(f"predictions/store/{store_id}/product/{product_id}", limit=limit)

    def recent_predictions(self, limit: int = 50) -> List[Dict[str, Any]]:
        return self.get("predictions/recent", limit=limit)

    def update_prediction(
        self, prediction_id: str, actual_quantity: float, accuracy: Optional[float] = None
    ) -> Dict[str, Any]:
        body: Dict[str, Any] = {"actual_quantity": actual_quantity}
        if accuracy is not None:
            body["accuracy"] = accuracy
        return self.request("PUT", f"predictions/{prediction_id}", body=body)

    def delete_prediction(self, prediction_id: str) -> Dict[str, Any]:
        return self.request("DELETE", f"predictions/{prediction_id}")

    def accuracy_statistics(self, store_id: Optional[str] = None) -> Dict[str, Any]:
        return self.get("stats/accuracy", store_id=store_id)
