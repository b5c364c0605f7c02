from __future__ import annotations

import json
import logging
import re
from datetime import datetime, timezone
from typing import Any, Iterable, Mapping

from .models import (
    DetectionRecord,
    MarketCounts,
    PerformanceCounts,
    RecentCounts,
    ScopeField,
    StoreVisitStats,
    Task,
    TaskCategory,
    TaskComment,
    TaskCounts,
    TaskHistoryEntry,
    TaskPriority,
    TaskStatus,
    TeamCounts,
    WILDCARD,
    scope_field,
)

logger = logging.getLogger(__name__)

_CATEGORY_ALIASES = {
    "visit": TaskCategory.VISIT,
    "visita": TaskCategory.VISIT,
    "report": TaskCategory.REPORT,
    "reporte": TaskCategory.REPORT,
}
_TRUE_TOKENS = {"1", "true", "yes", "y", "t"}
_INT_PATTERN = re.compile(r"^-?\d+$")


class RowDecodeError(ValueError):
    """Raised when a store row cannot be mapped onto a domain record."""


def parse_timestamp(value: object | None) -> datetime | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError:
            return None
    else:
        return None
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed


def _coerce_int(value: object | None) -> int | None:
    """Whole numbers only; ``"3.0"``, ``"2.5"`` or ``"store-7"`` decode to None."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value.is_integer() else None
    if isinstance(value, str):
        text = value.strip()
        if _INT_PATTERN.match(text):
            return int(text)
    return None


def _coerce_float(value: object | None) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str) and value.strip():
        try:
            return float(value.strip())
        except ValueError:
            return None
    return None


def _coerce_bool(value: object | None) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    if isinstance(value, str):
        return value.strip().lower() in _TRUE_TOKENS
    return False


def _optional_text(value: object | None) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def decode_json_list(value: object | None) -> list[Any]:
    """Decode a JSON-array column; anything unusable becomes an empty list."""
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return list(value)
    if isinstance(value, (str, bytes)):
        try:
            decoded = json.loads(value)
        except (TypeError, ValueError):
            return []
        return decoded if isinstance(decoded, list) else []
    return []


def _parse_comment(entry: object) -> TaskComment | None:
    if not isinstance(entry, Mapping):
        return None
    return TaskComment(
        id=str(entry.get("id") or ""),
        user_id=_coerce_int(entry.get("user_id")),
        user_name=str(entry.get("user_name") or ""),
        comment=str(entry.get("comment") or ""),
        created_at=parse_timestamp(entry.get("created_at")),
    )


def _parse_history(entry: object) -> TaskHistoryEntry | None:
    if not isinstance(entry, Mapping):
        return None
    return TaskHistoryEntry(
        id=str(entry.get("id") or ""),
        user_id=_coerce_int(entry.get("user_id")),
        user_name=str(entry.get("user_name") or ""),
        action=str(entry.get("action") or ""),
        old_value=entry.get("old_value"),
        new_value=entry.get("new_value"),
        created_at=parse_timestamp(entry.get("created_at")),
    )


def _parse_status(value: object | None) -> TaskStatus:
    try:
        return TaskStatus(str(value).strip().lower())
    except ValueError as exc:
        raise RowDecodeError(f"unknown task status {value!r}") from exc


def _parse_priority(value: object | None) -> TaskPriority:
    if value is None or value == "":
        return TaskPriority.MEDIUM
    try:
        return TaskPriority(str(value).strip().lower())
    except ValueError as exc:
        raise RowDecodeError(f"unknown task priority {value!r}") from exc


def _parse_category(value: object | None) -> TaskCategory:
    token = str(value or "").strip().lower()
    return _CATEGORY_ALIASES.get(token, TaskCategory.VISIT)


def _scope_int(row: Mapping[str, object], key: str) -> ScopeField[int]:
    raw = row.get(key)
    if raw is None or (isinstance(raw, str) and not raw.strip()):
        return WILDCARD
    value = _coerce_int(raw)
    if value is None:
        # An unreadable scope value must not widen into a wildcard.
        raise RowDecodeError(f"malformed {key} {raw!r}")
    return scope_field(value)


def parse_task(row: Mapping[str, object]) -> Task:
    task_id = _coerce_int(row.get("id"))
    if task_id is None:
        raise RowDecodeError("task row without id")
    comments = [_parse_comment(entry) for entry in decode_json_list(row.get("comments"))]
    history = [_parse_history(entry) for entry in decode_json_list(row.get("history"))]
    return Task(
        id=task_id,
        status=_parse_status(row.get("status")),
        priority=_parse_priority(row.get("priority")),
        assigned_to=_scope_int(row, "assigned_to"),
        chain=scope_field(_optional_text(row.get("chain"))),
        store_id=_scope_int(row, "store_id"),
        area=scope_field(_optional_text(row.get("area"))),
        due_date=parse_timestamp(row.get("due_date")),
        title=str(row.get("title") or ""),
        description=_optional_text(row.get("description")),
        category=_parse_category(row.get("category")),
        estimated_hours=_coerce_float(row.get("estimated_hours")),
        actual_hours=_coerce_float(row.get("actual_hours")),
        created_at=parse_timestamp(row.get("created_at")),
        updated_at=parse_timestamp(row.get("updated_at")),
        tags=tuple(str(tag) for tag in decode_json_list(row.get("tags"))),
        attachments=tuple(str(item) for item in decode_json_list(row.get("attachments"))),
        comments=tuple(entry for entry in comments if entry is not None),
        history=tuple(entry for entry in history if entry is not None),
    )


def parse_detection(row: Mapping[str, object]) -> DetectionRecord:
    record_id = _coerce_int(row.get("id"))
    if record_id is None:
        raise RowDecodeError("detection row without id")
    facing = _coerce_int(row.get("facing")) or 0
    confidence = _coerce_float(row.get("confidence")) or 0.0
    price = row.get("price_raw")
    return DetectionRecord(
        id=record_id,
        photo_id=_coerce_int(row.get("photo_id")) or 0,
        name=str(row.get("name") or "").strip(),
        brand=_optional_text(row.get("brand")),
        facing=max(facing, 0),
        price_raw=None if price is None else str(price),
        confidence=min(max(confidence, 0.0), 1.0),
        recognized=_coerce_bool(row.get("recognized")),
        created_at=parse_timestamp(row.get("created_at")),
        store_id=_coerce_int(row.get("store_id")),
        chain=_optional_text(row.get("chain")),
    )


def parse_tasks(rows: Iterable[Mapping[str, object]]) -> list[Task]:
    tasks: list[Task] = []
    for row in rows:
        try:
            tasks.append(parse_task(row))
        except RowDecodeError as exc:
            logger.warning("skipping task row id=%s: %s", row.get("id"), exc)
    return tasks


def parse_detections(rows: Iterable[Mapping[str, object]]) -> list[DetectionRecord]:
    records: list[DetectionRecord] = []
    for row in rows:
        try:
            records.append(parse_detection(row))
        except RowDecodeError as exc:
            logger.warning("skipping detection row id=%s: %s", row.get("id"), exc)
    return records


def _int(row: Mapping[str, object], key: str) -> int:
    return _coerce_int(row.get(key)) or 0


def _float(row: Mapping[str, object], key: str) -> float:
    return _coerce_float(row.get(key)) or 0.0


def parse_task_counts(row: Mapping[str, object]) -> TaskCounts:
    return TaskCounts(
        total=_int(row, "total"),
        completed=_int(row, "completed"),
        pending=_int(row, "pending"),
        in_progress=_int(row, "in_progress"),
        visits=_int(row, "visits"),
        reports=_int(row, "reports"),
        urgent=_int(row, "urgent"),
        overdue=_int(row, "overdue"),
    )


def parse_performance_counts(row: Mapping[str, object]) -> PerformanceCounts:
    return PerformanceCounts(
        avg_actual_hours=_float(row, "avg_actual_hours"),
        avg_estimated_hours=_float(row, "avg_estimated_hours"),
        total_hours=_float(row, "total_hours"),
        active_agents=_int(row, "active_agents"),
        chains_visited=_int(row, "chains_visited"),
        areas_covered=_int(row, "areas_covered"),
    )


def parse_team_counts(row: Mapping[str, object]) -> TeamCounts:
    return TeamCounts(
        total_users=_int(row, "total_users"),
        agents=_int(row, "agents"),
        managers=_int(row, "managers"),
        teams=_int(row, "teams"),
    )


def parse_market_counts(row: Mapping[str, object]) -> MarketCounts:
    return MarketCounts(
        total_stores=_int(row, "total_stores"),
        areas_available=_int(row, "areas_available"),
        chains_available=_int(row, "chains_available"),
        avg_snacks=_float(row, "avg_snacks"),
        avg_cereals=_float(row, "avg_cereals"),
    )


def parse_recent_counts(row: Mapping[str, object]) -> RecentCounts:
    return RecentCounts(
        activity=_int(row, "activity"),
        completed=_int(row, "completed"),
        active_agents=_int(row, "active_agents"),
    )


def parse_store_visit_stats(rows: Iterable[Mapping[str, object]]) -> list[StoreVisitStats]:
    stats: list[StoreVisitStats] = []
    for row in rows:
        store_id = _coerce_int(row.get("store_id"))
        if store_id is None:
            logger.warning("skipping store row without id: %r", row.get("store_id"))
            continue
        stats.append(
            StoreVisitStats(
                store_id=store_id,
                chain=_optional_text(row.get("chain")),
                area=_optional_text(row.get("area")),
                snacks=_coerce_float(row.get("snacks")),
                cereals=_coerce_float(row.get("cereals")),
                total_visits=_int(row, "total_visits"),
                completed=_int(row, "completed"),
                pending=_int(row, "pending"),
                in_progress=_int(row, "in_progress"),
                avg_actual_hours=_coerce_float(row.get("avg_actual_hours")),
                last_visit_at=parse_timestamp(row.get("last_visit_at")),
            )
        )
    return stats


__all__ = [
    "RowDecodeError",
    "decode_json_list",
    "parse_detection",
    "parse_detections",
    "parse_market_counts",
    "parse_performance_counts",
    "parse_recent_counts",
    "parse_store_visit_stats",
    "parse_task",
    "parse_task_counts",
    "parse_tasks",
    "parse_team_counts",
    "parse_timestamp",
]
