"""FastAPI surface for visit tasks and detection analytics."""

from __future__ import annotations

import logging
from typing import Callable, Optional, TypeVar

from fastapi import FastAPI, HTTPException

from .. import __version__
from ..config import constants
from ..db.store import StoreError
from ..etl.models import AggregationScope, MissingAgentError, VisitContext
from .schemas import (
    KPIResponse,
    ProductAnalyticsResponse,
    StoreAnalyticsResponse,
    VisitTasksResponse,
)
from .services import AuditService

logger = logging.getLogger(__name__)

_INTERNAL_ERROR = "internal server error"

R = TypeVar("R")


def _from_store(action: Callable[[], R], what: str) -> R:
    try:
        return action()
    except StoreError as exc:
        logger.exception("store read failed while fetching %s", what)
        raise HTTPException(status_code=500, detail=_INTERNAL_ERROR) from exc


def create_app(service: AuditService | None = None) -> FastAPI:
    audit = service or AuditService.from_settings()
    app = FastAPI(title="Shelf Audit API", version=__version__)

    @app.get("/healthz")
    def healthz() -> dict[str, str]:
        return {
            "status": "ok",
            "clickhouse": audit.settings.clickhouse_url,
            "database": audit.settings.database,
        }

    @app.get("/v1/meta/services")
    def list_services() -> dict[str, list[str]]:
        return {"services": constants.SERVICE_NAMES}

    @app.get("/v1/visits/{visit_id}/tasks", response_model=VisitTasksResponse)
    def visit_tasks(
        visit_id: str,
        user_id: Optional[int] = None,
        chain: Optional[str] = None,
        store_id: Optional[int] = None,
        area: Optional[str] = None,
    ) -> VisitTasksResponse:
        try:
            ctx = VisitContext(
                agent_id=user_id,  # type: ignore[arg-type]
                chain=chain,
                store_id=store_id,
                area=area,
            )
        except MissingAgentError as exc:
            raise HTTPException(status_code=400, detail=str(exc)) from exc
        return _from_store(lambda: audit.visit_tasks(visit_id, ctx), "visit tasks")

    @app.get("/v1/analytics/products", response_model=ProductAnalyticsResponse)
    def product_analytics() -> ProductAnalyticsResponse:
        return _from_store(
            lambda: audit.product_analytics(AggregationScope()), "product analytics"
        )

    @app.get("/v1/analytics/products/by-store", response_model=ProductAnalyticsResponse)
    def product_analytics_by_store(
        store_id: Optional[int] = None, chain: Optional[str] = None
    ) -> ProductAnalyticsResponse:
        scope = AggregationScope(store_id=store_id, chain=chain or None)
        if scope.is_global:
            raise HTTPException(status_code=400, detail="store_id or chain is required")
        return _from_store(lambda: audit.product_analytics(scope), "store analytics")

    @app.get("/v1/analytics/stores", response_model=StoreAnalyticsResponse)
    def store_analytics() -> StoreAnalyticsResponse:
        return _from_store(audit.store_analytics, "store visit analytics")

    @app.get("/v1/analytics/kpis", response_model=KPIResponse)
    async def kpis() -> KPIResponse:
        try:
            return await audit.kpis()
        except StoreError as exc:
            logger.exception("store read failed while composing KPIs")
            raise HTTPException(status_code=500, detail=_INTERNAL_ERROR) from exc

    return app


_app: FastAPI | None = None


def get_app() -> FastAPI:
    global _app
    if _app is None:
        _app = create_app()
    return _app
