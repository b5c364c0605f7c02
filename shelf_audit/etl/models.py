from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Generic, Optional, TypeVar, Union

T = TypeVar("T")


class Wildcard:
    """Scoping value left unset on a task: admits any concrete value."""

    __slots__ = ()

    def admits(self, value: object) -> bool:
        return True

    @property
    def value(self) -> None:
        return None

    def __repr__(self) -> str:
        return "WILDCARD"

    def __eq__(self, other: object) -> bool:
        return isinstance(other, Wildcard)

    def __hash__(self) -> int:
        return hash(Wildcard)


WILDCARD = Wildcard()


def _fold(text: str) -> str:
    return text.rstrip().casefold()


@dataclass(frozen=True)
class Specific(Generic[T]):
    value: T

    def admits(self, value: object) -> bool:
        # Text dimensions compare like the store's collation: case and
        # trailing blanks are ignored.
        if isinstance(self.value, str) and isinstance(value, str):
            return _fold(self.value) == _fold(value)
        return self.value == value


ScopeField = Union[Wildcard, Specific[T]]


def scope_field(value: Optional[T]) -> "ScopeField[T]":
    if value is None:
        return WILDCARD
    return Specific(value)


class TaskStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    @property
    def is_open(self) -> bool:
        return self in (TaskStatus.PENDING, TaskStatus.IN_PROGRESS)


class TaskPriority(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"

    @property
    def rank(self) -> int:
        return _PRIORITY_RANK[self]


_PRIORITY_RANK = {
    TaskPriority.LOW: 0,
    TaskPriority.MEDIUM: 1,
    TaskPriority.HIGH: 2,
    TaskPriority.URGENT: 3,
}


class TaskCategory(str, Enum):
    VISIT = "visit"
    REPORT = "report"


@dataclass(frozen=True)
class TaskComment:
    id: str
    user_id: int | None
    user_name: str
    comment: str
    created_at: datetime | None = None


@dataclass(frozen=True)
class TaskHistoryEntry:
    id: str
    user_id: int | None
    user_name: str
    action: str
    old_value: Any = None
    new_value: Any = None
    created_at: datetime | None = None


@dataclass(frozen=True)
class Task:
    id: int
    status: TaskStatus
    priority: TaskPriority = TaskPriority.MEDIUM
    assigned_to: ScopeField[int] = WILDCARD
    chain: ScopeField[str] = WILDCARD
    store_id: ScopeField[int] = WILDCARD
    area: ScopeField[str] = WILDCARD
    due_date: datetime | None = None
    title: str = ""
    description: str | None = None
    category: TaskCategory = TaskCategory.VISIT
    estimated_hours: float | None = None
    actual_hours: float | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    tags: tuple[str, ...] = ()
    attachments: tuple[str, ...] = ()
    comments: tuple[TaskComment, ...] = ()
    history: tuple[TaskHistoryEntry, ...] = ()


@dataclass(frozen=True)
class DetectionRecord:
    id: int
    photo_id: int
    name: str
    brand: str | None = None
    facing: int = 0
    price_raw: str | None = None
    confidence: float = 0.0
    recognized: bool = False
    created_at: datetime | None = None
    store_id: int | None = None
    chain: str | None = None


class MissingAgentError(ValueError):
    """Raised when a visit context is built without an agent id."""


@dataclass(frozen=True)
class VisitContext:
    agent_id: int
    chain: str | None = None
    store_id: int | None = None
    area: str | None = None

    def __post_init__(self) -> None:
        if self.agent_id is None:
            raise MissingAgentError("agent id is required to resolve visit tasks")
        # Blank hints are treated as not supplied.
        if self.chain == "":
            object.__setattr__(self, "chain", None)
        if self.area == "":
            object.__setattr__(self, "area", None)

    def supplied_dimensions(self) -> dict[str, object]:
        dims = {"chain": self.chain, "store_id": self.store_id, "area": self.area}
        return {name: value for name, value in dims.items() if value is not None}


@dataclass(frozen=True)
class AggregationScope:
    store_id: int | None = None
    chain: str | None = None

    @property
    def is_global(self) -> bool:
        return self.store_id is None and not self.chain

    def admits(self, record: DetectionRecord) -> bool:
        if self.store_id is not None and record.store_id != self.store_id:
            return False
        if self.chain and record.chain != self.chain:
            return False
        return True


@dataclass(frozen=True)
class TaskCounts:
    total: int = 0
    completed: int = 0
    pending: int = 0
    in_progress: int = 0
    visits: int = 0
    reports: int = 0
    urgent: int = 0
    overdue: int = 0


@dataclass(frozen=True)
class PerformanceCounts:
    avg_actual_hours: float = 0.0
    avg_estimated_hours: float = 0.0
    total_hours: float = 0.0
    active_agents: int = 0
    chains_visited: int = 0
    areas_covered: int = 0


@dataclass(frozen=True)
class TeamCounts:
    total_users: int = 0
    agents: int = 0
    managers: int = 0
    teams: int = 0


@dataclass(frozen=True)
class MarketCounts:
    total_stores: int = 0
    areas_available: int = 0
    chains_available: int = 0
    avg_snacks: float = 0.0
    avg_cereals: float = 0.0


@dataclass(frozen=True)
class RecentCounts:
    activity: int = 0
    completed: int = 0
    active_agents: int = 0


@dataclass(frozen=True)
class StoreRow:
    id: int
    chain: str | None = None
    area: str | None = None
    snacks: float | None = None
    cereals: float | None = None


@dataclass(frozen=True)
class UserRow:
    id: int
    role: str
    team_code: str | None = None
    is_active: bool = True


@dataclass(frozen=True)
class StoreVisitStats:
    """Visit-task counters for one store; a store without visits has zeros."""

    store_id: int
    chain: str | None = None
    area: str | None = None
    snacks: float | None = None
    cereals: float | None = None
    total_visits: int = 0
    completed: int = 0
    pending: int = 0
    in_progress: int = 0
    avg_actual_hours: float | None = None
    last_visit_at: datetime | None = None


__all__ = [
    "AggregationScope",
    "DetectionRecord",
    "MarketCounts",
    "MissingAgentError",
    "PerformanceCounts",
    "RecentCounts",
    "ScopeField",
    "Specific",
    "StoreRow",
    "StoreVisitStats",
    "Task",
    "TaskCategory",
    "TaskComment",
    "TaskCounts",
    "TaskHistoryEntry",
    "TaskPriority",
    "TaskStatus",
    "TeamCounts",
    "UserRow",
    "VisitContext",
    "WILDCARD",
    "Wildcard",
    "scope_field",
]
