"""Service layer joining the store, the resolver and the analytics core."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import asdict
from decimal import Decimal
from typing import List

from ..analytics.detections import (
    BrandGroup,
    PricedDetection,
    ProductGroup,
    aggregate,
    priciest,
    recent,
)
from ..analytics.kpis import KPISet, compose
from ..analytics.price_stats import StatSummary
from ..analytics.prices import normalize_price
from ..analytics.stores import rank_store_visits
from ..config.settings import Settings, get_settings
from ..db.clickhouse import ClickHouseClient
from ..db.store import ClickHouseStore, DataStore
from ..etl.models import (
    AggregationScope,
    DetectionRecord,
    StoreVisitStats,
    Task,
    VisitContext,
)
from ..visits.resolver import resolve
from .schemas import (
    BrandGroupSchema,
    DetectionSchema,
    KPIResponse,
    MarketCountsSchema,
    OverallStatsSchema,
    PerformanceCountsSchema,
    PriceSummarySchema,
    ProductAnalyticsResponse,
    ProductGroupSchema,
    RecentCountsSchema,
    ScopeSchema,
    StoreAnalyticsResponse,
    StoreVisitSchema,
    TaskCountsSchema,
    TaskSchema,
    TeamCountsSchema,
    VisitContextSchema,
    VisitTasksResponse,
)

logger = logging.getLogger(__name__)


def _r2(value: float) -> float:
    return round(value, 2)


def _price_schema(summary: StatSummary) -> PriceSummarySchema:
    return PriceSummarySchema(**summary.to_row())


def _task_schema(task: Task) -> TaskSchema:
    return TaskSchema(
        id=task.id,
        title=task.title,
        description=task.description,
        category=task.category.value,
        status=task.status.value,
        priority=task.priority.value,
        assigned_to=task.assigned_to.value,
        chain=task.chain.value,
        store_id=task.store_id.value,
        area=task.area.value,
        due_date=task.due_date,
        created_at=task.created_at,
        estimated_hours=task.estimated_hours,
        tags=list(task.tags),
    )


def _group_schema(group: ProductGroup) -> ProductGroupSchema:
    return ProductGroupSchema(
        name=group.name,
        brand=group.brand,
        detections=group.detections,
        avg_confidence=_r2(group.avg_confidence),
        avg_facing=_r2(group.avg_facing),
        max_facing=group.max_facing,
        last_detected_at=group.last_detected_at,
        priced_count=group.priced_count,
        price=_price_schema(group.price),
    )


def _brand_schema(brand: BrandGroup) -> BrandGroupSchema:
    return BrandGroupSchema(
        brand=brand.brand,
        detections=brand.detections,
        unique_products=brand.unique_products,
        avg_confidence=_r2(brand.avg_confidence),
    )


def _detection_schema(record: DetectionRecord, price: Decimal | None) -> DetectionSchema:
    return DetectionSchema(
        id=record.id,
        name=record.name,
        brand=record.brand,
        price_raw=record.price_raw,
        price=None if price is None else _r2(float(price)),
        facing=record.facing,
        confidence=_r2(record.confidence),
        created_at=record.created_at,
    )


def _priced_schema(entry: PricedDetection) -> DetectionSchema:
    return _detection_schema(entry.record, entry.price)


def _store_visit_schema(row: StoreVisitStats) -> StoreVisitSchema:
    payload = asdict(row)
    if row.avg_actual_hours is not None:
        payload["avg_actual_hours"] = _r2(row.avg_actual_hours)
    return StoreVisitSchema(**payload)


class AuditService:
    def __init__(self, store: DataStore, settings: Settings | None = None) -> None:
        self._store = store
        self._settings = settings or get_settings()

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "AuditService":
        cfg = settings or get_settings()
        client = ClickHouseClient.from_env(cfg.clickhouse_url, database=cfg.database)
        return cls(ClickHouseStore(client, database=cfg.database), cfg)

    @property
    def settings(self) -> Settings:
        return self._settings

    def resolve_visit_tasks(self, ctx: VisitContext) -> List[Task]:
        return resolve(self._store.open_visit_tasks(ctx.agent_id), ctx)

    def visit_tasks(self, visit_id: str, ctx: VisitContext) -> VisitTasksResponse:
        tasks = self.resolve_visit_tasks(ctx)
        logger.info(
            "visit %s: %d task(s) for agent %s", visit_id, len(tasks), ctx.agent_id
        )
        return VisitTasksResponse(
            visit_id=visit_id,
            tasks=[_task_schema(task) for task in tasks],
            context=VisitContextSchema(**asdict(ctx)),
        )

    def product_analytics(self, scope: AggregationScope) -> ProductAnalyticsResponse:
        cfg = self._settings
        markers = cfg.currency_markers
        records = self._store.recognized_detections(scope)
        result = aggregate(records, scope, markers=markers)
        overall = result.overall
        stats = OverallStatsSchema(
            total_detections=overall.total_detections,
            unique_products=overall.unique_products,
            unique_brands=overall.unique_brands,
            avg_confidence=_r2(overall.avg_confidence),
            avg_facing=_r2(overall.avg_facing),
            priced_count=overall.priced_count,
            price=_price_schema(overall.price),
        )
        newest = []
        for record in recent(records, cfg.recent_detections, scope):
            parsed = normalize_price(record.price_raw, markers)
            newest.append(_detection_schema(record, parsed.value if parsed.ok else None))
        return ProductAnalyticsResponse(
            scope=ScopeSchema(store_id=scope.store_id, chain=scope.chain),
            stats=stats,
            top_products=[_group_schema(group) for group in result.top_products(cfg.top_products)],
            top_brands=[_brand_schema(brand) for brand in result.top_brands(cfg.top_brands)],
            facing_leaders=[
                _group_schema(group) for group in result.facing_leaders(cfg.top_facing)
            ],
            priciest=[
                _priced_schema(entry)
                for entry in priciest(records, cfg.top_priciest, scope, markers=markers)
            ],
            recent=newest,
        )

    def store_analytics(self) -> StoreAnalyticsResponse:
        ranked = rank_store_visits(self._store.store_visit_stats())
        return StoreAnalyticsResponse(stores=[_store_visit_schema(row) for row in ranked])

    async def compose_kpis(self) -> KPISet:
        days = self._settings.recent_activity_days
        # Independent reads; gather fails as a whole if any of them raises.
        tasks, performance, team, market, recent_counts = await asyncio.gather(
            asyncio.to_thread(self._store.task_counts),
            asyncio.to_thread(self._store.performance_counts),
            asyncio.to_thread(self._store.team_counts),
            asyncio.to_thread(self._store.market_counts),
            asyncio.to_thread(self._store.recent_counts, days),
        )
        return compose(tasks, performance, team, market, recent_counts)

    async def kpis(self) -> KPIResponse:
        kpis = await self.compose_kpis()
        performance = kpis.performance
        market = kpis.market
        return KPIResponse(
            tasks=TaskCountsSchema(**asdict(kpis.tasks)),
            performance=PerformanceCountsSchema(
                avg_actual_hours=_r2(performance.avg_actual_hours),
                avg_estimated_hours=_r2(performance.avg_estimated_hours),
                total_hours=_r2(performance.total_hours),
                active_agents=performance.active_agents,
                chains_visited=performance.chains_visited,
                areas_covered=performance.areas_covered,
            ),
            team=TeamCountsSchema(**asdict(kpis.team)),
            market=MarketCountsSchema(
                total_stores=market.total_stores,
                areas_available=market.areas_available,
                chains_available=market.chains_available,
                avg_snacks=_r2(market.avg_snacks),
                avg_cereals=_r2(market.avg_cereals),
            ),
            recent=RecentCountsSchema(**asdict(kpis.recent)),
            completion_rate=kpis.completion_rate,
            hour_efficiency=kpis.hour_efficiency,
            market_coverage=kpis.market_coverage,
        )
