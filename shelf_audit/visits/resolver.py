"""Pick the open tasks relevant to an agent's current store visit.

Tasks carry optional scoping fields (chain, store, area). An unset field is a
wildcard and matches any visit. The context supplies whichever dimensions the
caller knows; a task survives when it matches at least one supplied dimension.
Supplying nothing beyond the agent keeps every open task for that agent.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Callable, Iterable

from ..etl.models import ScopeField, Task, VisitContext

logger = logging.getLogger(__name__)

_DIMENSIONS: dict[str, Callable[[Task], ScopeField]] = {
    "chain": lambda task: task.chain,
    "store_id": lambda task: task.store_id,
    "area": lambda task: task.area,
}


def is_candidate(task: Task, ctx: VisitContext) -> bool:
    return task.status.is_open and task.assigned_to.admits(ctx.agent_id)


def matches_scope(task: Task, ctx: VisitContext) -> bool:
    supplied = ctx.supplied_dimensions()
    if not supplied:
        return True
    return any(
        _DIMENSIONS[name](task).admits(value) for name, value in supplied.items()
    )


def _order_key(task: Task) -> tuple[int, int, datetime]:
    due = task.due_date
    if due is None:
        return (-task.priority.rank, 1, datetime.min)
    if due.tzinfo is not None:
        due = due.astimezone(timezone.utc).replace(tzinfo=None)
    return (-task.priority.rank, 0, due)


def resolve(tasks: Iterable[Task], ctx: VisitContext) -> list[Task]:
    matched = [
        task for task in tasks if is_candidate(task, ctx) and matches_scope(task, ctx)
    ]
    logger.debug(
        "visit tasks resolved agent=%s dims=%s matched=%d",
        ctx.agent_id,
        sorted(ctx.supplied_dimensions()),
        len(matched),
    )
    return sorted(matched, key=_order_key)


__all__ = ["is_candidate", "matches_scope", "resolve"]
