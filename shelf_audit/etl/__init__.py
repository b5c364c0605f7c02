"""Row decoding and domain records for shelf audit data."""

from .models import (
    AggregationScope,
    DetectionRecord,
    MissingAgentError,
    Task,
    TaskPriority,
    TaskStatus,
    VisitContext,
)
from .parser import RowDecodeError, parse_detections, parse_tasks

__all__ = [
    "AggregationScope",
    "DetectionRecord",
    "MissingAgentError",
    "RowDecodeError",
    "Task",
    "TaskPriority",
    "TaskStatus",
    "VisitContext",
    "parse_detections",
    "parse_tasks",
]
