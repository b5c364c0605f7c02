"""Aggregate recognized shelf detections into product and brand summaries."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Iterable, Optional, Sequence

from ..config import constants
from ..etl.models import AggregationScope, DetectionRecord
from .price_stats import StatSummary, summarize
from .prices import normalize_price

ProductKey = tuple[str, Optional[str]]


@dataclass(frozen=True)
class ProductGroup:
    name: str
    brand: str | None
    detections: int
    avg_confidence: float
    avg_facing: float
    max_facing: int
    last_detected_at: datetime | None
    price: StatSummary

    @property
    def key(self) -> ProductKey:
        return (self.name, self.brand)

    @property
    def priced_count(self) -> int:
        return self.price.count


@dataclass(frozen=True)
class BrandGroup:
    brand: str
    detections: int
    unique_products: int
    avg_confidence: float


@dataclass(frozen=True)
class OverallSummary:
    total_detections: int
    unique_products: int
    unique_brands: int
    avg_confidence: float
    avg_facing: float
    price: StatSummary

    @property
    def priced_count(self) -> int:
        return self.price.count


@dataclass(frozen=True)
class PricedDetection:
    record: DetectionRecord
    price: Decimal


@dataclass(frozen=True)
class AnalyticsResult:
    scope: AggregationScope
    groups: tuple[ProductGroup, ...]
    overall: OverallSummary

    def top_products(self, limit: int = constants.DEFAULT_TOP_PRODUCTS) -> list[ProductGroup]:
        return list(self.groups[: max(limit, 0)])

    def top_brands(self, limit: int = constants.DEFAULT_TOP_BRANDS) -> list[BrandGroup]:
        return rank_brands(self.groups)[: max(limit, 0)]

    def facing_leaders(self, limit: int = constants.DEFAULT_TOP_FACING) -> list[ProductGroup]:
        shelved = [group for group in self.groups if group.max_facing > 0]
        ordered = sorted(shelved, key=lambda group: group.avg_facing, reverse=True)
        return ordered[: max(limit, 0)]


def _brand_key(brand: str | None) -> str | None:
    if brand is None:
        return None
    stripped = brand.strip()
    return stripped or None


def _mean(values: Sequence[float]) -> float:
    if not values:
        return 0.0
    return sum(values) / len(values)


def _latest(values: Iterable[datetime | None]) -> datetime | None:
    present = [value for value in values if value is not None]
    return max(present) if present else None


def select_records(
    records: Iterable[DetectionRecord], scope: AggregationScope | None = None
) -> list[DetectionRecord]:
    """Recognized records inside ``scope``; no scope keeps every recognized record."""
    selected = [record for record in records if record.recognized]
    if scope is None or scope.is_global:
        return selected
    return [record for record in selected if scope.admits(record)]


def _priced(records: Iterable[DetectionRecord], markers: Sequence[str]) -> list[Decimal]:
    values: list[Decimal] = []
    for record in records:
        parsed = normalize_price(record.price_raw, markers)
        if parsed.ok and parsed.value is not None:
            values.append(parsed.value)
    return values


def _build_group(
    key: ProductKey, members: Sequence[DetectionRecord], markers: Sequence[str]
) -> ProductGroup:
    name, brand = key
    return ProductGroup(
        name=name,
        brand=brand,
        detections=len(members),
        avg_confidence=_mean([record.confidence for record in members]),
        avg_facing=_mean([float(record.facing) for record in members]),
        max_facing=max(record.facing for record in members),
        last_detected_at=_latest(record.created_at for record in members),
        price=summarize(_priced(members, markers)),
    )


def rank_groups(groups: Iterable[ProductGroup]) -> list[ProductGroup]:
    return sorted(
        groups, key=lambda group: (-group.detections, -group.avg_confidence)
    )


def rank_brands(groups: Iterable[ProductGroup]) -> list[BrandGroup]:
    detections: dict[str, int] = {}
    products: dict[str, set[str]] = {}
    confidence_sum: dict[str, float] = {}
    for group in groups:
        if group.brand is None:
            continue
        detections[group.brand] = detections.get(group.brand, 0) + group.detections
        products.setdefault(group.brand, set()).add(group.name)
        # Weight by detections so the brand mean equals the per-record mean.
        confidence_sum[group.brand] = (
            confidence_sum.get(group.brand, 0.0)
            + group.avg_confidence * group.detections
        )
    brands = [
        BrandGroup(
            brand=brand,
            detections=count,
            unique_products=len(products[brand]),
            avg_confidence=confidence_sum[brand] / count if count else 0.0,
        )
        for brand, count in detections.items()
    ]
    return sorted(brands, key=lambda entry: (-entry.detections, -entry.avg_confidence))


def aggregate(
    records: Iterable[DetectionRecord],
    scope: AggregationScope | None = None,
    markers: Sequence[str] = tuple(constants.DEFAULT_CURRENCY_MARKERS),
) -> AnalyticsResult:
    resolved_scope = scope or AggregationScope()
    selected = select_records(records, resolved_scope)
    buckets: dict[ProductKey, list[DetectionRecord]] = {}
    for record in selected:
        key = (record.name, _brand_key(record.brand))
        buckets.setdefault(key, []).append(record)
    groups = rank_groups(
        _build_group(key, members, markers) for key, members in buckets.items()
    )
    brands = {key[1] for key in buckets if key[1] is not None}
    overall = OverallSummary(
        total_detections=len(selected),
        unique_products=len(buckets),
        unique_brands=len(brands),
        avg_confidence=_mean([record.confidence for record in selected]),
        avg_facing=_mean([float(record.facing) for record in selected]),
        price=summarize(_priced(selected, markers)),
    )
    return AnalyticsResult(scope=resolved_scope, groups=tuple(groups), overall=overall)


def priciest(
    records: Iterable[DetectionRecord],
    limit: int = constants.DEFAULT_TOP_PRICIEST,
    scope: AggregationScope | None = None,
    markers: Sequence[str] = tuple(constants.DEFAULT_CURRENCY_MARKERS),
) -> list[PricedDetection]:
    priced: list[PricedDetection] = []
    for record in select_records(records, scope):
        parsed = normalize_price(record.price_raw, markers)
        if parsed.ok and parsed.value is not None:
            priced.append(PricedDetection(record=record, price=parsed.value))
    priced.sort(key=lambda entry: entry.price, reverse=True)
    return priced[: max(limit, 0)]


def recent(
    records: Iterable[DetectionRecord],
    limit: int = constants.DEFAULT_RECENT_DETECTIONS,
    scope: AggregationScope | None = None,
) -> list[DetectionRecord]:
    dated = [record for record in select_records(records, scope) if record.created_at]
    dated.sort(key=lambda record: record.created_at, reverse=True)  # type: ignore[arg-type,return-value]
    return dated[: max(limit, 0)]


__all__ = [
    "AnalyticsResult",
    "BrandGroup",
    "OverallSummary",
    "PricedDetection",
    "ProductGroup",
    "aggregate",
    "priciest",
    "rank_brands",
    "rank_groups",
    "recent",
    "select_records",
]
