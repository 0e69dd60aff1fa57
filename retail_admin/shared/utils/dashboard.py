"""
Dashboard helpers
Indian-style number formatting (K / L / CR) and chart series shaping for the
dashboard overview payloads returned by the backend.
"""
from datetime import date
from typing import Any, Dict, List, Optional

CRORE = 10_000_000
LAKH = 100_000
THOUSAND = 1_000


def _plain(num: float) -> str:
    return str(int(num)) if float(num).is_integer() else str(num)


def format_large_number(num: float) -> str:
    if num >= CRORE:
        return f"{num / CRORE:.1f} CR"
    if num >= LAKH:
        return f"{num / LAKH:.1f} L"
    if num >= THOUSAND:
        return f"{num / THOUSAND:.1f} K"
    return _plain(num)


def format_currency(amount: float) -> str:
    return "₹" + format_large_number(amount)


def format_percentage(value: float) -> str:
    return f"{value:.1f}%"


def monthly_trends_series(trends: Optional[List[Dict[str, Any]]]) -> Dict[str, List[Any]]:
    """
    Sort monthly trend buckets chronologically and split them into series.

    Each bucket looks like ``{"_id": {"year": 2024, "month": 1}, "totalNSV": ...,
    "totalQuantity": ..., "totalOrders": ...}``.
    """
    if not trends:
        return {
            "categories": [],
            "nsv_series": [0],
            "quantity_series": [0],
            "orders_series": [0],
        }

    ordered = sorted(trends, key=lambda t: (t["_id"]["year"], t["_id"]["month"]))
    return {
        "categories": [
            date(t["_id"]["year"], t["_id"]["month"], 1).strftime("%b %Y") for t in ordered
        ],
        "nsv_series": [t.get("totalNSV", 0) for t in ordered],
        "quantity_series": [t.get("totalQuantity", 0) for t in ordered],
        "orders_series": [t.get("totalOrders", 0) for t in ordered],
    }


def store_performance_donut(stores: Optional[List[Dict[str, Any]]]) -> Dict[str, List[Any]]:
    if not stores:
        return {"labels": ["No Data"], "series": [100]}
    return {
        "labels": [s.get("storeName", "") for s in stores],
        "series": [s.get("totalNSV", 0) for s in stores],
    }


def top_stores_rows(stores: Optional[List[Dict[str, Any]]]) -> List[Dict[str, str]]:
    return [
        {
            "name": s.get("storeName", ""),
            "nsv": format_currency(s.get("totalNSV", 0)),
            "quantity": format_large_number(s.get("totalQuantity", 0)),
        }
        for s in stores or []
    ]


def category_analytics_series(category_analytics: Optional[Dict[str, Any]]) -> Dict[str, List[Any]]:
    categories = (category_analytics or {}).get("categories") or []
    if not categories:
        return {"categories": ["No Data"], "nsv_series": [0], "quantity_series": [0]}
    return {
        "categories": [c.get("categoryName", "") for c in categories],
        "nsv_series": [c.get("totalNSV", 0) for c in categories],
        "quantity_series": [c.get("totalQuantity", 0) for c in categories],
    }


def demand_forecast_series(demand_forecast: Optional[Dict[str, Any]]) -> Dict[str, List[Any]]:
    forecast = (demand_forecast or {}).get("forecast") or []
    if not forecast:
        return {"categories": ["No Data"], "actual_series": [0], "forecast_series": [0]}
    actual = (demand_forecast or {}).get("actualDemand") or []
    return {
        "categories": [f.get("productName", "") for f in forecast],
        "actual_series": [a.get("actualQuantity", 0) for a in actual],
        "forecast_series": [f.get("forecastedQuantity", 0) for f in forecast],
    }


def city_performance_rows(cities: Optional[List[Dict[str, Any]]]) -> List[Dict[str, str]]:
    return [
        {
            "city": c.get("_id", ""),
            "total_nsv": format_currency(c.get("totalNSV", 0)),
            "total_quantity": format_large_number(c.get("totalQuantity", 0)),
            "total_orders": format_large_number(c.get("totalOrders", 0)),
            "store_count": format_large_number(c.get("storeCount", 0)),
            "avg_order_value": format_currency(c.get("avgOrderValue", 0)),
        }
        for c in cities or []
    ]


def overview_totals(overview: Optional[Dict[str, Any]]) -> Dict[str, float]:
    if not overview:
        return {"total_nsv": 0, "total_gsv": 0, "total_orders": 0, "sales_change": 0}
    total_sales = overview.get("totalSales") or {}
    return {
        "total_nsv": total_sales.get("totalNSV", 0),
        "total_gsv": total_sales.get("totalGSV", 0),
        "total_orders": overview.get("totalOrders", 0),
        "sales_change": overview.get("salesChange", 0),
    }


TOP_PRODUCT_COLORS = [
    "#FF6384", "#36A2EB", "#FFCE56", "#4BC0C0",
    "#9966FF", "#FF9F40", "#FF6384", "#C9CBCF",
]


def top_products_pie(top_products: Optional[Dict[str, Any]]) -> Dict[str, List[Any]]:
    products = (top_products or {}).get("products") or []
    if not products:
        return {"labels": ["No Data"], "series": [100], "colors": ["#e5e7eb"]}
    labels = [p.get("productName", "") for p in products]
    return {
        "labels": labels,
        "series": [p.get("totalNSV", 0) for p in products],
        "colors": TOP_PRODUCT_COLORS[: len(labels)],
    }
