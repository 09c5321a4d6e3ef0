"""Task ordering for the live task list."""
from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Callable, Iterable, List, Tuple, Union

from ..task_store.model import TaskPriority, TaskRecord


PRIORITY_WEIGHTS = {
    TaskPriority.HIGH: 3,
    TaskPriority.MEDIUM: 2,
    TaskPriority.LOW: 1,
}


class SortMode(str, Enum):
    """How incomplete and completed groups are ordered internally."""

    MIXED = "mixed"  # priority first, deadline as tie-breaker
    DEADLINE = "deadline"  # closest deadline first, priority ignored


def priority_weight(priority: TaskPriority) -> int:
    # Unknown values never reach here after normalize(), but weigh them as low
    return PRIORITY_WEIGHTS.get(priority, PRIORITY_WEIGHTS[TaskPriority.LOW])


def sort_key(mode: Union[SortMode, str]) -> Callable[[TaskRecord], Tuple]:
    """Return the key function used by order() for the given mode."""
    mode = SortMode(mode)

    if mode is SortMode.MIXED:
        def _mixed(task: TaskRecord) -> Tuple[bool, int, datetime]:
            return (task.completed, -priority_weight(task.priority), task.deadline)

        return _mixed

    def _deadline(task: TaskRecord) -> Tuple[bool, datetime]:
        return (task.completed, task.deadline)

    return _deadline


def order(
    records: Iterable[TaskRecord], mode: Union[SortMode, str] = SortMode.MIXED
) -> List[TaskRecord]:
    """Return tasks in display order.

    Incomplete tasks always come before completed ones. Within each group,
    ``mixed`` sorts by priority weight (descending) then deadline, and
    ``deadline`` sorts by deadline alone. Ties keep their input order.

    Raises:
        ValueError: if ``mode`` is not a known sort mode.
    """

    return sorted(records, key=sort_key(mode))
