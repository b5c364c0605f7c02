"""Detection analytics and KPI composition."""

from .detections import AnalyticsResult, aggregate
from .kpis import KPISet, compose
from .price_stats import StatSummary, summarize
from .prices import PriceParse, PriceRejection, normalize_price
from .stores import build_store_visit_stats, rank_store_visits

__all__ = [
    "AnalyticsResult",
    "KPISet",
    "PriceParse",
    "PriceRejection",
    "StatSummary",
    "aggregate",
    "build_store_visit_stats",
    "compose",
    "normalize_price",
    "rank_store_visits",
    "summarize",
]
