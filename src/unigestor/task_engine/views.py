"""Derived, read-only projections of a task forest.

Nothing here mutates its input.  Projections that return a forest
(:func:`filter_and_search`, :func:`sort_siblings`, :func:`visible_tasks`)
build new child lists; the node objects they do not touch are shared.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field, replace
from datetime import date, timedelta
from enum import Enum
from typing import Any, Callable, Iterable, Optional, Union

from ..constants import GENERAL_TAB
from .model import Forest, Profile, Task, TaskStatus, UserRole, parse_status
from .tree import iter_nodes


# ---------------------------------------------------------------------------
# Flattening & counting
# ---------------------------------------------------------------------------

def flatten(forest: Forest) -> list[Task]:
    """Depth-first pre-order list of every node."""
    return list(iter_nodes(forest))


def count_by_department(forest: Forest) -> dict[str, int]:
    """Number of nodes (processes and tasks, every depth) per department."""
    return dict(Counter(node.department for node in iter_nodes(forest)))


def subtask_progress(task: Task) -> tuple[int, int]:
    """``(completed, total)`` over the direct children of *task*."""
    done = sum(1 for child in task.subtasks if child.status == TaskStatus.COMPLETED)
    return done, len(task.subtasks)


# ---------------------------------------------------------------------------
# Filtering
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class TaskFilter:
    """Combined search + equality filter.  ``None`` means "match everything"."""

    search: Optional[str] = None
    status: Optional[TaskStatus] = None
    is_specific_task: Optional[bool] = None
    assignee: Optional[str] = None
    department: Optional[str] = None

    @classmethod
    def from_params(
        cls,
        search: Optional[str] = None,
        status: Optional[str] = None,
        task_type: Optional[str] = None,
        assignee: Optional[str] = None,
        department: Optional[str] = None,
    ) -> "TaskFilter":
        """Build a filter from UI/query parameters (``Todos`` = unset)."""

        def _unset(value: Optional[str]) -> bool:
            return value is None or value == "" or value == "Todos"

        kind: Optional[bool] = None
        if not _unset(task_type):
            lowered = str(task_type).lower()
            if lowered in {"tarea", "task", "specific"}:
                kind = True
            elif lowered in {"proceso", "process", "general"}:
                kind = False
            else:
                raise ValueError(f"Unknown task type filter: {task_type}")
        status_value: Optional[TaskStatus] = None
        if not _unset(status):
            status_value = parse_status(status)
        return cls(
            search=None if _unset(search) else search,
            status=status_value,
            is_specific_task=kind,
            assignee=None if _unset(assignee) else assignee,
            department=None if _unset(department) else department,
        )

    @property
    def is_empty(self) -> bool:
        return (
            not self.search
            and self.status is None
            and self.is_specific_task is None
            and self.assignee is None
            and self.department is None
        )

    def matches(self, task: Task) -> bool:
        if self.search:
            term = self.search.lower()
            haystack = (task.title, task.description, task.assignee, task.department)
            if not any(term in (value or "").lower() for value in haystack):
                return False
        if self.status is not None and task.status != self.status:
            return False
        if self.is_specific_task is not None and task.is_specific_task != self.is_specific_task:
            return False
        if self.assignee is not None and task.assignee != self.assignee:
            return False
        if self.department is not None and task.department != self.department:
            return False
        return True

    def __call__(self, task: Task) -> bool:
        return self.matches(task)


Predicate = Union[TaskFilter, Callable[[Task], bool]]


def filter_and_search(forest: Forest, predicate: Predicate) -> Forest:
    """Keep nodes that match, or that have a matching descendant.

    A kept node carries its *filtered* children, so siblings that neither
    match nor lead to a match are pruned at every level while the ancestor
    chain of every match is preserved.
    """
    out: list[Task] = []
    for node in forest:
        children = filter_and_search(node.subtasks, predicate)
        if predicate(node) or children:
            out.append(replace(node, subtasks=children))
    return out


# ---------------------------------------------------------------------------
# Sorting
# ---------------------------------------------------------------------------

SORT_KEYS = (
    "title",
    "department",
    "description",
    "start_date",
    "end_date",
    "status",
    "assignee",
    "is_specific_task",
    "id",
)


def _sort_value(task: Task, key: str) -> Any:
    value = getattr(task, key)
    if value is None:
        return ""
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, bool):
        return int(value)
    return value


def sort_siblings(forest: Forest, key: str, direction: str = "asc") -> Forest:
    """Stable sort of every sibling list by *key*.

    Absent values sort as ``""`` (first in ascending order).  Each level is
    sorted on its own; ties keep their original relative order in both
    directions.
    """
    if key not in SORT_KEYS:
        raise ValueError(f"Cannot sort by '{key}'. Valid keys: {list(SORT_KEYS)}")
    if direction not in ("asc", "desc"):
        raise ValueError(f"direction must be 'asc' or 'desc', got '{direction}'")
    descending = direction == "desc"

    def _sort(nodes: list[Task]) -> list[Task]:
        ordered = sorted(nodes, key=lambda n: _sort_value(n, key), reverse=descending)
        return [replace(n, subtasks=_sort(n.subtasks)) if n.subtasks else n for n in ordered]

    return _sort(forest)


# ---------------------------------------------------------------------------
# KPIs
# ---------------------------------------------------------------------------

_STATUS_CHART_ORDER = (
    TaskStatus.COMPLETED,
    TaskStatus.IN_PROGRESS,
    TaskStatus.PENDING,
    TaskStatus.OVERDUE,
)


@dataclass
class KpiSummary:
    total: int = 0
    processes: int = 0
    specific_tasks: int = 0
    completed: int = 0
    efficiency_rate: int = 0
    by_status: dict[str, int] = field(default_factory=dict)
    by_department: dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "total": self.total,
            "processes": self.processes,
            "specific_tasks": self.specific_tasks,
            "completed": self.completed,
            "efficiency_rate": self.efficiency_rate,
            "by_status": dict(self.by_status),
            "by_department": dict(self.by_department),
        }


def compute_kpis(forest: Forest, departments: Iterable[str] = ()) -> KpiSummary:
    """Aggregate dashboard figures over every node of *forest*.

    ``by_department`` lists *departments* first (registry order), then any
    other department in first-seen order; zero counts are dropped.
    """
    nodes = flatten(forest)
    total = len(nodes)
    specific = sum(1 for n in nodes if n.is_specific_task)
    status_counts = Counter(n.status for n in nodes)
    completed = status_counts.get(TaskStatus.COMPLETED, 0)

    dept_counts: dict[str, int] = {name: 0 for name in departments}
    for n in nodes:
        dept_counts[n.department] = dept_counts.get(n.department, 0) + 1

    # round half up
    efficiency = (completed * 200 + total) // (2 * total) if total else 0

    return KpiSummary(
        total=total,
        processes=total - specific,
        specific_tasks=specific,
        completed=completed,
        efficiency_rate=efficiency,
        by_status={
            s.value: status_counts[s] for s in _STATUS_CHART_ORDER if status_counts.get(s, 0) > 0
        },
        by_department={name: count for name, count in dept_counts.items() if count > 0},
    )


# ---------------------------------------------------------------------------
# Calendar
# ---------------------------------------------------------------------------

def parse_ymd(value: Optional[str]) -> Optional[date]:
    """Parse ``YYYY-MM-DD`` by its integer components; ``None`` when malformed."""
    if not value:
        return None
    parts = value.split("-")
    if len(parts) != 3:
        return None
    try:
        year, month, day = (int(p) for p in parts)
        return date(year, month, day)
    except ValueError:
        return None


def tasks_on_date(forest: Forest, day: Union[date, str]) -> list[Task]:
    """Flattened tasks whose ``[start_date, end_date]`` range contains *day*.

    A missing end date means a single-day range; tasks without a start date
    are never scheduled.
    """
    target = parse_ymd(day) if isinstance(day, str) else day
    if target is None:
        raise ValueError(f"Invalid date: {day!r}")
    out: list[Task] = []
    for node in iter_nodes(forest):
        start = parse_ymd(node.start_date)
        if start is None:
            continue
        end = parse_ymd(node.end_date) or start
        if start <= target <= end:
            out.append(node)
    return out


@dataclass
class UpcomingTasks:
    """Dashboard agenda: tasks starting on *today* and within the look-ahead window."""

    today: date
    days: int
    starting_today: list[Task] = field(default_factory=list)
    upcoming: list[Task] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        def _flat(task: Task) -> dict[str, Any]:
            d = task.to_dict()
            d.pop("subtasks")
            return d

        return {
            "today": self.today.isoformat(),
            "days": self.days,
            "starting_today": [_flat(t) for t in self.starting_today],
            "upcoming": [_flat(t) for t in self.upcoming],
        }


def upcoming_tasks(forest: Forest, today: date, days: int) -> UpcomingTasks:
    """Split flattened tasks by start date relative to *today*.

    ``starting_today`` holds tasks that start on *today*; ``upcoming`` holds
    those starting after it and at most *days* days later.  Both lists are
    ordered by start date, ties in pre-order.  Tasks without a parseable start
    date are skipped.
    """
    if days < 0:
        raise ValueError(f"days must be >= 0, got {days}")
    limit = today + timedelta(days=days)
    dated: list[tuple[date, Task]] = []
    for node in iter_nodes(forest):
        start = parse_ymd(node.start_date)
        if start is not None and today <= start <= limit:
            dated.append((start, node))
    dated.sort(key=lambda pair: pair[0])

    result = UpcomingTasks(today=today, days=days)
    for start, node in dated:
        if start == today:
            result.starting_today.append(node)
        else:
            result.upcoming.append(node)
    return result


# ---------------------------------------------------------------------------
# Visibility
# ---------------------------------------------------------------------------

def visible_tasks(
    forest: Forest,
    user: Optional[Profile] = None,
    active_department: Optional[str] = None,
) -> Forest:
    """Root-level visibility for *user* and the active department tab.

    Admins see every root; coordinators see their department's roots;
    auxiliaries additionally only see roots assigned to them.
    """
    result = list(forest)
    if user is not None and user.role != UserRole.ADMIN:
        result = [t for t in result if t.department == user.department]
        if user.role == UserRole.AUXILIAR:
            result = [t for t in result if t.assignee_id == user.id]
    if active_department and active_department != GENERAL_TAB:
        result = [t for t in result if t.department == active_department]
    return result
