"""Read access to task, detection and counter rows.

The core never talks SQL directly; it consumes a :class:`DataStore`. The
ClickHouse-backed store pushes the open-task and recognition filters into the
query, while :class:`MemoryStore` evaluates the same reads over decoded rows.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Iterable, Mapping, Protocol, Sequence

from ..analytics.stores import build_store_visit_stats
from ..config import constants
from ..etl.models import (
    AggregationScope,
    DetectionRecord,
    MarketCounts,
    PerformanceCounts,
    RecentCounts,
    StoreRow,
    StoreVisitStats,
    Task,
    TaskCategory,
    TaskCounts,
    TaskPriority,
    TaskStatus,
    TeamCounts,
    UserRow,
)
from ..etl.parser import (
    parse_detections,
    parse_market_counts,
    parse_performance_counts,
    parse_recent_counts,
    parse_store_visit_stats,
    parse_task_counts,
    parse_tasks,
    parse_team_counts,
)
from .clickhouse import ClickHouseClient, ClickHouseClientError

logger = logging.getLogger(__name__)


class StoreError(RuntimeError):
    """Raised when the backing store cannot answer a read."""


class DataStore(Protocol):
    def open_visit_tasks(self, agent_id: int) -> list[Task]:
        ...

    def recognized_detections(self, scope: AggregationScope) -> list[DetectionRecord]:
        ...

    def task_counts(self) -> TaskCounts:
        ...

    def performance_counts(self) -> PerformanceCounts:
        ...

    def team_counts(self) -> TeamCounts:
        ...

    def market_counts(self) -> MarketCounts:
        ...

    def recent_counts(self, days: int = constants.DEFAULT_RECENT_ACTIVITY_DAYS) -> RecentCounts:
        ...

    def store_visit_stats(self) -> list[StoreVisitStats]:
        ...


def _quote(value: str) -> str:
    escaped = value.replace("\\", "\\\\").replace("'", "\\'")
    return f"'{escaped}'"


class ClickHouseStore:
    def __init__(self, client: ClickHouseClient, database: str = constants.DEFAULT_DATABASE) -> None:
        self._client = client
        self._database = database

    def _table(self, name: str) -> str:
        return f"{self._database}.{name}"

    def _rows(self, query: str) -> list[dict[str, object]]:
        try:
            return self._client.query_rows(query)
        except ClickHouseClientError as exc:
            raise StoreError(str(exc)) from exc

    def _single(self, query: str) -> Mapping[str, object]:
        rows = self._rows(query)
        return rows[0] if rows else {}

    def open_visit_tasks(self, agent_id: int) -> list[Task]:
        statuses = ", ".join(_quote(status) for status in constants.OPEN_TASK_STATUSES)
        query = (
            "SELECT id, title, description, category, status, priority, assigned_to,"
            " chain, store_id, area, due_date, created_at, estimated_hours,"
            " actual_hours, tags, attachments, comments, history\n"
            f"FROM {self._table('tasks')}\n"
            f"WHERE category = {_quote(constants.VISIT_CATEGORY)}\n"
            f"  AND (assigned_to = {int(agent_id)} OR assigned_to IS NULL)\n"
            f"  AND status IN ({statuses})\n"
            "FORMAT JSONEachRow"
        )
        return parse_tasks(self._rows(query))

    def recognized_detections(self, scope: AggregationScope) -> list[DetectionRecord]:
        filters = ["pd.recognized = 1"]
        if scope.store_id is not None:
            filters.append(f"uu.store_id = {int(scope.store_id)}")
        if scope.chain:
            filters.append(f"st.chain = {_quote(scope.chain)}")
        query = (
            "SELECT pd.id AS id, pd.photo_id AS photo_id, pd.name AS name,"
            " pd.brand AS brand, pd.facing AS facing, pd.price_raw AS price_raw,"
            " pd.confidence AS confidence, pd.recognized AS recognized,"
            " pd.created_at AS created_at, uu.store_id AS store_id, st.chain AS chain\n"
            f"FROM {self._table('detections')} AS pd\n"
            f"INNER JOIN {self._table('uploads')} AS uu ON pd.photo_id = uu.id\n"
            f"LEFT JOIN {self._table('stores')} AS st ON uu.store_id = st.id\n"
            f"WHERE {' AND '.join(filters)}\n"
            "SETTINGS join_use_nulls = 1\n"
            "FORMAT JSONEachRow"
        )
        return parse_detections(self._rows(query))

    def task_counts(self) -> TaskCounts:
        query = (
            "SELECT count() AS total,"
            " countIf(status = 'completed') AS completed,"
            " countIf(status = 'pending') AS pending,"
            " countIf(status = 'in_progress') AS in_progress,"
            " countIf(category = 'visit') AS visits,"
            " countIf(category = 'report') AS reports,"
            " countIf(priority = 'urgent') AS urgent,"
            " countIf(due_date < now() AND status != 'completed') AS overdue\n"
            f"FROM {self._table('tasks')}\n"
            "FORMAT JSONEachRow"
        )
        return parse_task_counts(self._single(query))

    def performance_counts(self) -> PerformanceCounts:
        query = (
            "SELECT avgOrNull(actual_hours) AS avg_actual_hours,"
            " avgOrNull(estimated_hours) AS avg_estimated_hours,"
            " sum(actual_hours) AS total_hours,"
            " uniqExact(assigned_to) AS active_agents,"
            " uniqExact(chain) AS chains_visited,"
            " uniqExact(area) AS areas_covered\n"
            f"FROM {self._table('tasks')}\n"
            "WHERE actual_hours IS NOT NULL OR estimated_hours IS NOT NULL\n"
            "FORMAT JSONEachRow"
        )
        return parse_performance_counts(self._single(query))

    def team_counts(self) -> TeamCounts:
        query = (
            "SELECT uniqExact(id) AS total_users,"
            " uniqExactIf(id, role = 'field_agent') AS agents,"
            " uniqExactIf(id, role = 'manager') AS managers,"
            " uniqExact(team_code) AS teams\n"
            f"FROM {self._table('users')}\n"
            "WHERE is_active = 1\n"
            "FORMAT JSONEachRow"
        )
        return parse_team_counts(self._single(query))

    def market_counts(self) -> MarketCounts:
        query = (
            "SELECT count() AS total_stores,"
            " uniqExact(area) AS areas_available,"
            " uniqExact(chain) AS chains_available,"
            " avgOrNull(snacks) AS avg_snacks,"
            " avgOrNull(cereals) AS avg_cereals\n"
            f"FROM {self._table('stores')}\n"
            "FORMAT JSONEachRow"
        )
        return parse_market_counts(self._single(query))

    def recent_counts(self, days: int = constants.DEFAULT_RECENT_ACTIVITY_DAYS) -> RecentCounts:
        query = (
            "SELECT count() AS activity,"
            " countIf(status = 'completed') AS completed,"
            " uniqExact(assigned_to) AS active_agents\n"
            f"FROM {self._table('tasks')}\n"
            f"WHERE created_at >= now() - INTERVAL {int(days)} DAY\n"
            "FORMAT JSONEachRow"
        )
        return parse_recent_counts(self._single(query))

    def store_visit_stats(self) -> list[StoreVisitStats]:
        query = (
            "SELECT st.id AS store_id, any(st.chain) AS chain, any(st.area) AS area,"
            " any(st.snacks) AS snacks, any(st.cereals) AS cereals,"
            " count(t.id) AS total_visits,"
            " countIf(t.status = 'completed') AS completed,"
            " countIf(t.status = 'pending') AS pending,"
            " countIf(t.status = 'in_progress') AS in_progress,"
            " avgOrNull(t.actual_hours) AS avg_actual_hours,"
            " max(t.updated_at) AS last_visit_at\n"
            f"FROM {self._table('stores')} AS st\n"
            f"LEFT JOIN {self._table('tasks')} AS t\n"
            f"  ON st.id = t.store_id AND t.category = {_quote(constants.VISIT_CATEGORY)}\n"
            "GROUP BY st.id\n"
            "ORDER BY total_visits DESC, snacks DESC\n"
            "SETTINGS join_use_nulls = 1\n"
            "FORMAT JSONEachRow"
        )
        return parse_store_visit_stats(self._rows(query))


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _mean(values: Sequence[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def _distinct(values: Iterable[object | None]) -> int:
    return len({value for value in values if value is not None})


class MemoryStore:
    """Decoded rows held in process; counters are computed on read."""

    def __init__(
        self,
        tasks: Iterable[Task] = (),
        detections: Iterable[DetectionRecord] = (),
        stores: Iterable[StoreRow] = (),
        users: Iterable[UserRow] = (),
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.tasks = list(tasks)
        self.detections = list(detections)
        self.stores = list(stores)
        self.users = list(users)
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def open_visit_tasks(self, agent_id: int) -> list[Task]:
        return [
            task
            for task in self.tasks
            if task.category is TaskCategory.VISIT
            and task.status.is_open
            and task.assigned_to.admits(agent_id)
        ]

    def recognized_detections(self, scope: AggregationScope) -> list[DetectionRecord]:
        return [
            record
            for record in self.detections
            if record.recognized and scope.admits(record)
        ]

    def task_counts(self) -> TaskCounts:
        now = _as_utc(self._clock())
        statuses = [task.status for task in self.tasks]
        return TaskCounts(
            total=len(self.tasks),
            completed=statuses.count(TaskStatus.COMPLETED),
            pending=statuses.count(TaskStatus.PENDING),
            in_progress=statuses.count(TaskStatus.IN_PROGRESS),
            visits=sum(1 for task in self.tasks if task.category is TaskCategory.VISIT),
            reports=sum(1 for task in self.tasks if task.category is TaskCategory.REPORT),
            urgent=sum(1 for task in self.tasks if task.priority is TaskPriority.URGENT),
            overdue=sum(
                1
                for task in self.tasks
                if task.due_date is not None
                and _as_utc(task.due_date) < now
                and task.status is not TaskStatus.COMPLETED
            ),
        )

    def performance_counts(self) -> PerformanceCounts:
        tracked = [
            task
            for task in self.tasks
            if task.actual_hours is not None or task.estimated_hours is not None
        ]
        actual = [task.actual_hours for task in tracked if task.actual_hours is not None]
        estimated = [
            task.estimated_hours for task in tracked if task.estimated_hours is not None
        ]
        return PerformanceCounts(
            avg_actual_hours=_mean(actual),
            avg_estimated_hours=_mean(estimated),
            total_hours=sum(actual),
            active_agents=_distinct(task.assigned_to.value for task in tracked),
            chains_visited=_distinct(task.chain.value for task in tracked),
            areas_covered=_distinct(task.area.value for task in tracked),
        )

    def team_counts(self) -> TeamCounts:
        active = [user for user in self.users if user.is_active]
        return TeamCounts(
            total_users=_distinct(user.id for user in active),
            agents=_distinct(user.id for user in active if user.role == "field_agent"),
            managers=_distinct(user.id for user in active if user.role == "manager"),
            teams=_distinct(user.team_code for user in active),
        )

    def market_counts(self) -> MarketCounts:
        snacks = [store.snacks for store in self.stores if store.snacks is not None]
        cereals = [store.cereals for store in self.stores if store.cereals is not None]
        return MarketCounts(
            total_stores=len(self.stores),
            areas_available=_distinct(store.area for store in self.stores),
            chains_available=_distinct(store.chain for store in self.stores),
            avg_snacks=_mean(snacks),
            avg_cereals=_mean(cereals),
        )

    def recent_counts(self, days: int = constants.DEFAULT_RECENT_ACTIVITY_DAYS) -> RecentCounts:
        cutoff = _as_utc(self._clock()) - timedelta(days=days)
        recent = [
            task
            for task in self.tasks
            if task.created_at is not None and _as_utc(task.created_at) >= cutoff
        ]
        return RecentCounts(
            activity=len(recent),
            completed=sum(1 for task in recent if task.status is TaskStatus.COMPLETED),
            active_agents=_distinct(task.assigned_to.value for task in recent),
        )

    def store_visit_stats(self) -> list[StoreVisitStats]:
        return build_store_visit_stats(self.stores, self.tasks)


__all__ = ["ClickHouseStore", "DataStore", "MemoryStore", "StoreError"]
