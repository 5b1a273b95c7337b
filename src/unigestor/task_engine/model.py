"""Task model for the department task board.

A board is a *forest*: an ordered list of root :class:`Task` nodes, each of
which owns its ``subtasks`` and ``resources`` exclusively.  General processes
(``is_specific_task=False``) usually act as containers for specific tasks.
"""

from __future__ import annotations

import re
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from ..constants import DEFAULT_RESOURCE_CATEGORY


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class TaskStatus(str, Enum):
    """Flat status enumeration; any status may follow any other."""

    PENDING = "Pendiente"
    IN_PROGRESS = "En Proceso"
    COMPLETED = "Completado"
    OVERDUE = "Atrasado"


class ResourceType(str, Enum):
    PDF = "PDF"
    DRIVE = "DRIVE"
    LINK = "LINK"
    VIDEO = "VIDEO"
    IMAGE = "IMAGE"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

_IMAGE_SUFFIX_RE = re.compile(r"\.(jpeg|jpg|gif|png|webp)$")
_DATE_RE = re.compile(r"\d{4}-\d{2}-\d{2}")


def _generate_id(prefix: str = "task") -> str:
    """Short human-friendly ID: ``<prefix>-<8hex>``."""
    return f"{prefix}-{uuid.uuid4().hex[:8]}"


def detect_resource_type(url: str, file_name: Optional[str] = None) -> ResourceType:
    """Guess the resource type from its URL (and uploaded file name, if any)."""
    lower_url = (url or "").lower()
    lower_name = (file_name or "").lower()

    if "drive.google.com" in lower_url:
        return ResourceType.DRIVE
    if "youtube.com" in lower_url or "youtu.be" in lower_url:
        return ResourceType.VIDEO
    if lower_url.endswith(".pdf") or lower_name.endswith(".pdf") or lower_url.startswith("data:application/pdf"):
        return ResourceType.PDF
    if (
        _IMAGE_SUFFIX_RE.search(lower_url)
        or _IMAGE_SUFFIX_RE.search(lower_name)
        or lower_url.startswith("data:image")
    ):
        return ResourceType.IMAGE
    return ResourceType.LINK


def coerce_status(raw: Any, default: TaskStatus = TaskStatus.PENDING) -> TaskStatus:
    """Map a raw value (enum, value or member name) onto :class:`TaskStatus`."""
    if isinstance(raw, TaskStatus):
        return raw
    if raw is None:
        return default
    try:
        return TaskStatus(str(raw))
    except ValueError:
        pass
    try:
        return TaskStatus[str(raw).upper()]
    except KeyError:
        return default


def parse_status(raw: Any) -> TaskStatus:
    """Strict variant of :func:`coerce_status`; raises ``ValueError`` for unknown values."""
    if raw is None or raw == "":
        raise ValueError("status is required")
    status = coerce_status(raw, default=None)  # type: ignore[arg-type]
    if status is None:
        raise ValueError(f"Unknown status '{raw}'. Valid: {[s.value for s in TaskStatus]}")
    return status


def is_ymd(value: Any) -> bool:
    """True for a ``YYYY-MM-DD`` string."""
    return isinstance(value, str) and _DATE_RE.fullmatch(value) is not None


def _opt_str(value: Any) -> Optional[str]:
    if value is None or value == "":
        return None
    return str(value)


# ---------------------------------------------------------------------------
# Resource
# ---------------------------------------------------------------------------

@dataclass
class Resource:
    """A document or link attached to a task."""

    name: str
    url: str
    type: ResourceType = ResourceType.LINK
    category: str = DEFAULT_RESOURCE_CATEGORY
    id: str = field(default_factory=lambda: _generate_id("res"))

    @classmethod
    def create(
        cls,
        name: str,
        url: str,
        category: Optional[str] = None,
        file_name: Optional[str] = None,
    ) -> "Resource":
        """Build a resource, deriving its type from the URL."""
        return cls(
            name=name,
            url=url,
            type=detect_resource_type(url, file_name),
            category=category or DEFAULT_RESOURCE_CATEGORY,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "url": self.url,
            "type": self.type.value,
            "category": self.category,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Resource":
        url = str(data.get("url", ""))
        raw_type = data.get("type")
        try:
            rtype = ResourceType(str(raw_type)) if raw_type else detect_resource_type(url)
        except ValueError:
            rtype = detect_resource_type(url)
        return cls(
            id=str(data.get("id") or _generate_id("res")),
            name=str(data.get("name", "")),
            url=url,
            type=rtype,
            category=str(data.get("category") or DEFAULT_RESOURCE_CATEGORY),
        )


# ---------------------------------------------------------------------------
# Task
# ---------------------------------------------------------------------------

@dataclass
class Task:
    """A node of the task forest.

    Tree operations in :mod:`unigestor.task_engine.tree` never mutate a
    ``Task`` in place; they build modified copies along the path to the
    target node.
    """

    # Identity
    id: str = field(default_factory=_generate_id)
    department: str = ""
    title: str = ""
    description: Optional[str] = None

    # Schedule (YYYY-MM-DD)
    start_date: Optional[str] = None
    end_date: Optional[str] = None

    # Assignment
    assignee: Optional[str] = None
    assignee_id: Optional[str] = None

    # Classification
    is_specific_task: bool = False
    status: TaskStatus = TaskStatus.PENDING

    # Owned children
    subtasks: list["Task"] = field(default_factory=list)
    resources: list[Resource] = field(default_factory=list)

    @property
    def kind_label(self) -> str:
        return "Tarea" if self.is_specific_task else "Proceso"

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    @classmethod
    def validate_dict(cls, data: dict[str, Any]) -> list[str]:
        """Lightweight validation of a task dict.

        Returns a list of error strings (empty = valid).
        """
        errors: list[str] = []
        if not isinstance(data, dict):
            return ["Expected a dict"]
        title = data.get("title")
        if not isinstance(title, str) or not title.strip():
            errors.append("'title' is required and must be non-empty")
        status = data.get("status")
        if status is not None:
            valid_statuses = {e.value for e in TaskStatus}
            if isinstance(status, TaskStatus):
                status = status.value
            if status not in valid_statuses:
                errors.append(f"'status' must be one of {sorted(valid_statuses)}, got '{status}'")
        for list_field in ("subtasks", "resources"):
            val = data.get(list_field)
            if val is not None and not isinstance(val, list):
                errors.append(f"'{list_field}' must be an array")
        for date_field, alias in (("start_date", "startDate"), ("end_date", "endDate")):
            val = data.get(date_field, data.get(alias))
            if val and not is_ymd(val):
                errors.append(f"'{date_field}' must be YYYY-MM-DD, got '{val}'")
        flag = data.get("is_specific_task", data.get("isSpecificTask"))
        if flag is not None and not isinstance(flag, bool):
            errors.append(f"'is_specific_task' must be a boolean, got {flag!r}")
        return errors

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a plain dict (recursively) for YAML/JSON."""
        return {
            "id": self.id,
            "department": self.department,
            "title": self.title,
            "description": self.description,
            "start_date": self.start_date,
            "end_date": self.end_date,
            "assignee": self.assignee,
            "assignee_id": self.assignee_id,
            "is_specific_task": self.is_specific_task,
            "status": self.status.value,
            "subtasks": [child.to_dict() for child in self.subtasks],
            "resources": [res.to_dict() for res in self.resources],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Task":
        """Deserialize from a plain dict.

        Accepts the snake_case keys written by :meth:`to_dict` as well as the
        camelCase keys used by the browser client.
        """
        d = dict(data)

        def _pick(*keys: str) -> Any:
            for key in keys:
                if d.get(key) is not None:
                    return d[key]
            return None

        return cls(
            id=str(d.get("id") or _generate_id()),
            department=str(_pick("department", "department_name") or ""),
            title=str(d.get("title") or ""),
            description=_opt_str(d.get("description")),
            start_date=_opt_str(_pick("start_date", "startDate")),
            end_date=_opt_str(_pick("end_date", "endDate")),
            assignee=_opt_str(_pick("assignee", "assignee_name")),
            assignee_id=_opt_str(d.get("assignee_id")),
            is_specific_task=bool(_pick("is_specific_task", "isSpecificTask") or False),
            status=coerce_status(d.get("status")),
            subtasks=[cls.from_dict(c) for c in (d.get("subtasks") or [])],
            resources=[Resource.from_dict(r) for r in (d.get("resources") or [])],
        )


Forest = list[Task]


def forest_to_dicts(forest: Forest) -> list[dict[str, Any]]:
    return [t.to_dict() for t in forest]


def forest_from_dicts(data: list[dict[str, Any]]) -> Forest:
    return [Task.from_dict(d) for d in data]


# ---------------------------------------------------------------------------
# Users (visibility only)
# ---------------------------------------------------------------------------

class UserRole(str, Enum):
    ADMIN = "admin"
    COORDINATOR = "coordinador"
    AUXILIAR = "auxiliar"


@dataclass
class Profile:
    id: str
    full_name: str
    department: str
    role: UserRole = UserRole.AUXILIAR
    email: str = ""
