"""Per-store visit activity, ranked busiest first."""

from __future__ import annotations

from typing import Iterable

from ..etl.models import StoreRow, StoreVisitStats, Task, TaskCategory, TaskStatus


def build_store_visit_stats(
    stores: Iterable[StoreRow], tasks: Iterable[Task]
) -> list[StoreVisitStats]:
    """Join visit tasks onto stores by ``store_id``; every store yields a row."""
    visits: dict[int, list[Task]] = {}
    for task in tasks:
        if task.category is not TaskCategory.VISIT:
            continue
        store_id = task.store_id.value
        if store_id is None:
            continue
        visits.setdefault(store_id, []).append(task)

    stats: list[StoreVisitStats] = []
    for store in stores:
        members = visits.get(store.id, [])
        hours = [task.actual_hours for task in members if task.actual_hours is not None]
        touched = [task.updated_at for task in members if task.updated_at is not None]
        statuses = [task.status for task in members]
        stats.append(
            StoreVisitStats(
                store_id=store.id,
                chain=store.chain,
                area=store.area,
                snacks=store.snacks,
                cereals=store.cereals,
                total_visits=len(members),
                completed=statuses.count(TaskStatus.COMPLETED),
                pending=statuses.count(TaskStatus.PENDING),
                in_progress=statuses.count(TaskStatus.IN_PROGRESS),
                avg_actual_hours=sum(hours) / len(hours) if hours else None,
                last_visit_at=max(touched) if touched else None,
            )
        )
    return stats


def rank_store_visits(stats: Iterable[StoreVisitStats]) -> list[StoreVisitStats]:
    # Missing snack share sorts after any known share.
    return sorted(
        stats,
        key=lambda row: (
            -row.total_visits,
            row.snacks is None,
            -(row.snacks or 0.0),
        ),
    )


__all__ = ["build_store_visit_stats", "rank_store_visits"]
