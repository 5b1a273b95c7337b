"""Typed mutation commands dispatched through a single :func:`apply`.

These replace "set any field to any value" calls from the web client with a
closed set of commands, so a partial update can be validated up front.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any, Optional, Union

from .model import Forest, Task, TaskStatus, is_ymd, parse_status
from .tree import STRUCTURAL_FIELDS, InvalidFieldTarget, find_and_replace, set_status, update_node


@dataclass(frozen=True)
class SetStatus:
    status: TaskStatus


@dataclass(frozen=True)
class SetTitle:
    title: str


@dataclass(frozen=True)
class SetDescription:
    description: Optional[str]


@dataclass(frozen=True)
class SetAssignee:
    assignee: Optional[str]
    assignee_id: Optional[str] = None


@dataclass(frozen=True)
class SetDates:
    start_date: Optional[str]
    end_date: Optional[str]


@dataclass(frozen=True)
class SetDepartment:
    department: str


@dataclass(frozen=True)
class SetTaskKind:
    is_specific_task: bool


@dataclass(frozen=True)
class ReplaceTask:
    task: Task


TaskMutation = Union[
    SetStatus,
    SetTitle,
    SetDescription,
    SetAssignee,
    SetDates,
    SetDepartment,
    SetTaskKind,
    ReplaceTask,
]


def apply(forest: Forest, task_id: str, mutation: TaskMutation) -> Forest:
    """Apply one mutation to the node *task_id* (no-op when absent)."""
    if isinstance(mutation, SetStatus):
        return set_status(forest, task_id, mutation.status)
    if isinstance(mutation, ReplaceTask):
        return find_and_replace(forest, task_id, mutation.task)
    if isinstance(mutation, SetTitle):
        changes: dict[str, Any] = {"title": mutation.title}
    elif isinstance(mutation, SetDescription):
        changes = {"description": mutation.description}
    elif isinstance(mutation, SetAssignee):
        changes = {"assignee": mutation.assignee, "assignee_id": mutation.assignee_id}
    elif isinstance(mutation, SetDates):
        changes = {"start_date": mutation.start_date, "end_date": mutation.end_date}
    elif isinstance(mutation, SetDepartment):
        changes = {"department": mutation.department}
    elif isinstance(mutation, SetTaskKind):
        changes = {"is_specific_task": mutation.is_specific_task}
    else:
        raise TypeError(f"Unsupported mutation: {type(mutation).__name__}")
    return update_node(forest, task_id, lambda node: replace(node, **changes))


def apply_all(forest: Forest, task_id: str, mutations: list[TaskMutation]) -> Forest:
    for mutation in mutations:
        forest = apply(forest, task_id, mutation)
    return forest


def _required_text(field_name: str, value: Any) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"'{field_name}' must be a non-empty string")
    return value


def _date_or_none(field_name: str, value: Any) -> Optional[str]:
    if value is None or value == "":
        return None
    if not is_ymd(value):
        raise ValueError(f"'{field_name}' must be YYYY-MM-DD, got '{value}'")
    return value


def mutation_from_changes(
    changes: dict[str, Any],
    current: Optional[Task] = None,
) -> list[TaskMutation]:
    """Translate a partial-update dict into mutation commands.

    ``start_date``/``end_date`` collapse into one :class:`SetDates`, and
    ``assignee``/``assignee_id`` into one :class:`SetAssignee`.  When only one
    half of such a pair is given, the other half is taken from *current*.

    Raises :class:`InvalidFieldTarget` for structural or unknown keys and
    ``ValueError`` for values the board cannot hold (blank title, non-boolean
    task kind, malformed dates, unknown status).
    """
    for key in changes:
        if key in STRUCTURAL_FIELDS:
            raise InvalidFieldTarget(key)

    out: list[TaskMutation] = []
    remaining = dict(changes)
    if "status" in remaining:
        out.append(SetStatus(parse_status(remaining.pop("status"))))
    if "title" in remaining:
        out.append(SetTitle(_required_text("title", remaining.pop("title"))))
    if "description" in remaining:
        out.append(SetDescription(remaining.pop("description")))
    if "department" in remaining:
        out.append(SetDepartment(_required_text("department", remaining.pop("department"))))
    if "is_specific_task" in remaining:
        flag = remaining.pop("is_specific_task")
        if not isinstance(flag, bool):
            raise ValueError(f"'is_specific_task' must be a boolean, got {flag!r}")
        out.append(SetTaskKind(flag))
    if "assignee" in remaining or "assignee_id" in remaining:
        out.append(SetAssignee(
            remaining.pop("assignee", current.assignee if current else None),
            remaining.pop("assignee_id", current.assignee_id if current else None),
        ))
    if "start_date" in remaining or "end_date" in remaining:
        start = current.start_date if current else None
        end = current.end_date if current else None
        if "start_date" in remaining:
            start = _date_or_none("start_date", remaining.pop("start_date"))
        if "end_date" in remaining:
            end = _date_or_none("end_date", remaining.pop("end_date"))
        out.append(SetDates(start, end))
    if remaining:
        raise InvalidFieldTarget(sorted(remaining)[0])
    return out
