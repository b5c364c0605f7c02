"""Pydantic API schemas for shelf audit workflows."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel


class VisitContextSchema(BaseModel):
    agent_id: int
    chain: Optional[str] = None
    store_id: Optional[int] = None
    area: Optional[str] = None


class TaskSchema(BaseModel):
    id: int
    title: str
    description: Optional[str] = None
    category: str
    status: str
    priority: str
    assigned_to: Optional[int] = None
    chain: Optional[str] = None
    store_id: Optional[int] = None
    area: Optional[str] = None
    due_date: Optional[datetime] = None
    created_at: Optional[datetime] = None
    estimated_hours: Optional[float] = None
    tags: List[str] = []


class VisitTasksResponse(BaseModel):
    success: bool = True
    visit_id: str
    tasks: List[TaskSchema]
    context: VisitContextSchema


class PriceSummarySchema(BaseModel):
    count: int
    avg: float
    median: float
    min: float
    max: float


class ProductGroupSchema(BaseModel):
    name: str
    brand: Optional[str] = None
    detections: int
    avg_confidence: float
    avg_facing: float
    max_facing: int
    last_detected_at: Optional[datetime] = None
    priced_count: int
    price: PriceSummarySchema


class BrandGroupSchema(BaseModel):
    brand: str
    detections: int
    unique_products: int
    avg_confidence: float


class DetectionSchema(BaseModel):
    id: int
    name: str
    brand: Optional[str] = None
    price_raw: Optional[str] = None
    price: Optional[float] = None
    facing: int
    confidence: float
    created_at: Optional[datetime] = None


class OverallStatsSchema(BaseModel):
    total_detections: int
    unique_products: int
    unique_brands: int
    avg_confidence: float
    avg_facing: float
    priced_count: int
    price: PriceSummarySchema


class ScopeSchema(BaseModel):
    store_id: Optional[int] = None
    chain: Optional[str] = None


class ProductAnalyticsResponse(BaseModel):
    success: bool = True
    scope: ScopeSchema
    stats: OverallStatsSchema
    top_products: List[ProductGroupSchema]
    top_brands: List[BrandGroupSchema]
    facing_leaders: List[ProductGroupSchema]
    priciest: List[DetectionSchema]
    recent: List[DetectionSchema]


class TaskCountsSchema(BaseModel):
    total: int
    completed: int
    pending: int
    in_progress: int
    visits: int
    reports: int
    urgent: int
    overdue: int


class PerformanceCountsSchema(BaseModel):
    avg_actual_hours: float
    avg_estimated_hours: float
    total_hours: float
    active_agents: int
    chains_visited: int
    areas_covered: int


class TeamCountsSchema(BaseModel):
    total_users: int
    agents: int
    managers: int
    teams: int


class MarketCountsSchema(BaseModel):
    total_stores: int
    areas_available: int
    chains_available: int
    avg_snacks: float
    avg_cereals: float


class RecentCountsSchema(BaseModel):
    activity: int
    completed: int
    active_agents: int


class KPIResponse(BaseModel):
    success: bool = True
    tasks: TaskCountsSchema
    performance: PerformanceCountsSchema
    team: TeamCountsSchema
    market: MarketCountsSchema
    recent: RecentCountsSchema
    completion_rate: float
    hour_efficiency: float
    market_coverage: float


class StoreVisitSchema(BaseModel):
    store_id: int
    chain: Optional[str] = None
    area: Optional[str] = None
    snacks: Optional[float] = None
    cereals: Optional[float] = None
    total_visits: int
    completed: int
    pending: int
    in_progress: int
    avg_actual_hours: Optional[float] = None
    last_visit_at: Optional[datetime] = None


class StoreAnalyticsResponse(BaseModel):
    success: bool = True
    stores: List[StoreVisitSchema]
