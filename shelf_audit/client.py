"""HTTP client for the shelf audit API."""

from __future__ import annotations

from typing import Any

import httpx

from .api.schemas import (
    KPIResponse,
    ProductAnalyticsResponse,
    StoreAnalyticsResponse,
    VisitTasksResponse,
)


class ShelfAuditClient:
    def __init__(
        self,
        base_url: str = "http://localhost:8000",
        *,
        http_client: httpx.Client | None = None,
        timeout: float = 10.0,
    ) -> None:
        self.base_url = base_url
        self._http_client = http_client or httpx.Client(base_url=base_url, timeout=timeout)

    def __enter__(self) -> "ShelfAuditClient":
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        self.close()

    def close(self) -> None:
        self._http_client.close()

    def _request(self, method: str, path: str, **kwargs: Any) -> dict:
        response = self._http_client.request(method, path, **kwargs)
        response.raise_for_status()
        return response.json()

    def visit_tasks(
        self,
        visit_id: str,
        agent_id: int,
        *,
        chain: str | None = None,
        store_id: int | None = None,
        area: str | None = None,
    ) -> VisitTasksResponse:
        params: dict[str, object] = {"user_id": agent_id}
        if chain:
            params["chain"] = chain
        if store_id is not None:
            params["store_id"] = store_id
        if area:
            params["area"] = area
        payload = self._request("GET", f"/v1/visits/{visit_id}/tasks", params=params)
        return VisitTasksResponse(**payload)

    def product_analytics(
        self, *, store_id: int | None = None, chain: str | None = None
    ) -> ProductAnalyticsResponse:
        if store_id is None and not chain:
            payload = self._request("GET", "/v1/analytics/products")
        else:
            params: dict[str, object] = {}
            if store_id is not None:
                params["store_id"] = store_id
            if chain:
                params["chain"] = chain
            payload = self._request(
                "GET", "/v1/analytics/products/by-store", params=params
            )
        return ProductAnalyticsResponse(**payload)

    def store_analytics(self) -> StoreAnalyticsResponse:
        payload = self._request("GET", "/v1/analytics/stores")
        return StoreAnalyticsResponse(**payload)

    def kpis(self) -> KPIResponse:
        payload = self._request("GET", "/v1/analytics/kpis")
        return KPIResponse(**payload)


__all__ = ["ShelfAuditClient"]
