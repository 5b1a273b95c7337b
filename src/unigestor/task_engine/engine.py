"""Task engine: the stateful facade over the pure forest operations.

This is the primary entry-point for the server and CLI.  It holds the latest
forest snapshot behind a single lock, applies the pure functions from
:mod:`.tree` and :mod:`.views`, keeps the department registry and the active
department tab consistent, and persists each new snapshot in the background
after the in-memory update (optimistic, fire-and-forget).
"""

from __future__ import annotations

import threading
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path
from typing import Any, Optional, Union

from loguru import logger

from ..constants import DEFAULT_DEPARTMENTS, EVENTS_FILE, GENERAL_TAB
from ..io_utils import _append_event, _read_jsonl_tail
from . import tree, views
from .departments import DepartmentError, DepartmentRegistry
from .fixtures import seed_forest
from .model import Forest, Profile, Resource, Task, TaskStatus, parse_status
from .mutations import TaskMutation, apply as apply_mutation, apply_all, mutation_from_changes
from .store import TreeStore


@dataclass
class MutationResult:
    """Outcome of an id-addressed operation.

    ``applied`` is ``False`` when the target id did not resolve; the forest is
    then unchanged.
    """

    applied: bool
    task: Optional[Task] = None
    forest: Forest = field(default_factory=list)


class TaskEngine:
    """Own the task forest for one project.

    Parameters
    ----------
    state_dir:
        Path to the ``.unigestor/`` directory.  ``None`` keeps everything in
        memory.
    forest:
        Initial forest.  When omitted, the stored snapshot is loaded, falling
        back to the seed board.
    departments:
        Initial registry.  When omitted, the stored registry is used, falling
        back to the default departments.
    persist:
        Write a snapshot after each mutation (requires *state_dir*).
    """

    def __init__(
        self,
        state_dir: Optional[Path] = None,
        *,
        forest: Optional[Forest] = None,
        departments: Optional[list[str]] = None,
        persist: bool = True,
    ) -> None:
        self._lock = threading.RLock()
        self._state_dir = state_dir
        self.store: Optional[TreeStore] = TreeStore(state_dir) if state_dir else None
        self._events_path = state_dir / "artifacts" / EVENTS_FILE if state_dir else None

        stored_forest: Optional[Forest] = None
        stored_departments: Optional[list[str]] = None
        if forest is None and self.store is not None and self.store.exists():
            stored_forest, stored_departments = self.store.load()

        if forest is not None:
            self._forest: Forest = list(forest)
        elif stored_forest is not None:
            self._forest = stored_forest
        else:
            self._forest = seed_forest()

        self.registry = DepartmentRegistry(
            departments if departments is not None
            else stored_departments if stored_departments is not None
            else DEFAULT_DEPARTMENTS
        )
        self._active_department = GENERAL_TAB

        self._writer: Optional[ThreadPoolExecutor] = None
        self._last_write: Optional[Future] = None
        if persist and self.store is not None:
            self._writer = ThreadPoolExecutor(max_workers=1, thread_name_prefix="unigestor-store")

    # ------------------------------------------------------------------
    # Snapshot & persistence
    # ------------------------------------------------------------------

    @property
    def forest(self) -> Forest:
        with self._lock:
            return self._forest

    @property
    def departments(self) -> list[str]:
        with self._lock:
            return self.registry.names

    def _commit(self, new_forest: Forest, event_type: str, task_id: Optional[str] = None, **details: Any) -> None:
        self._forest = new_forest
        self._emit_event(event_type, task_id, **details)
        self._schedule_persist()

    def _schedule_persist(self) -> None:
        if self._writer is None or self.store is None:
            return
        future = self._writer.submit(self.store.save, self._forest, self.registry.names)
        future.add_done_callback(self._log_write_failure)
        self._last_write = future

    @staticmethod
    def _log_write_failure(future: Future) -> None:
        exc = future.exception()
        if exc is not None:
            logger.warning("Failed to persist task snapshot: {}", exc)

    def flush(self, timeout: Optional[float] = None) -> None:
        """Block until the most recent background write has finished."""
        pending = self._last_write
        if pending is not None:
            pending.exception(timeout=timeout)

    def save(self) -> None:
        """Write the current snapshot synchronously."""
        if self.store is None:
            return
        with self._lock:
            self.store.save(self._forest, self.registry.names)

    def close(self) -> None:
        if self._writer is not None:
            self._writer.shutdown(wait=True)
            self._writer = None

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    def _emit_event(self, event_type: str, task_id: Optional[str], **details: Any) -> None:
        if self._events_path is None:
            return
        payload: dict[str, Any] = {"type": event_type}
        if task_id is not None:
            payload["task_id"] = task_id
        if details:
            payload["details"] = details
        try:
            _append_event(self._events_path, payload)
        except OSError:
            logger.exception("Failed to append task event {} for {}", event_type, task_id)

    def get_recent_events(self, limit: int = 100) -> list[dict[str, Any]]:
        if self._events_path is None:
            return []
        return _read_jsonl_tail(self._events_path, limit)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_task(self, task_id: str) -> Optional[Task]:
        return tree.find(self.forest, task_id)

    def list_tasks(
        self,
        task_filter: Optional[views.Predicate] = None,
        *,
        sort_key: Optional[str] = None,
        direction: str = "asc",
        user: Optional[Profile] = None,
        department: Optional[str] = None,
    ) -> Forest:
        """Visible roots for *user*/*department*, then filtered, then sorted."""
        result = views.visible_tasks(self.forest, user, department)
        if task_filter is not None and not (isinstance(task_filter, views.TaskFilter) and task_filter.is_empty):
            result = views.filter_and_search(result, task_filter)
        if sort_key:
            result = views.sort_siblings(result, sort_key, direction)
        return result

    def flat_tasks(self) -> list[Task]:
        return views.flatten(self.forest)

    def department_counts(self) -> dict[str, int]:
        return views.count_by_department(self.forest)

    def kpis(self, *, user: Optional[Profile] = None, department: Optional[str] = None) -> views.KpiSummary:
        visible = views.visible_tasks(self.forest, user, department)
        return views.compute_kpis(visible, self.departments)

    def tasks_on_date(self, day: Union[date, str]) -> list[Task]:
        return views.tasks_on_date(self.forest, day)

    def upcoming_tasks(
        self,
        today: date,
        days: int,
        *,
        user: Optional[Profile] = None,
        department: Optional[str] = None,
    ) -> views.UpcomingTasks:
        visible = views.visible_tasks(self.forest, user, department)
        return views.upcoming_tasks(visible, today, days)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def _apply_to(self, task_id: str, op_name: str, new_forest_fn: Any, **details: Any) -> MutationResult:
        """Run an id-addressed pure op; report a miss instead of raising."""
        with self._lock:
            if not tree.contains(self._forest, task_id):
                logger.warning("Task {} not found; {} ignored", task_id, op_name)
                return MutationResult(applied=False, forest=self._forest)
            new_forest = new_forest_fn(self._forest)
            self._commit(new_forest, f"task.{op_name}", task_id, **details)
            return MutationResult(applied=True, task=tree.find(new_forest, task_id), forest=new_forest)

    def create_task(
        self,
        title: str,
        department: str,
        *,
        parent_id: Optional[str] = None,
        description: Optional[str] = None,
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
        assignee: Optional[str] = None,
        assignee_id: Optional[str] = None,
        is_specific_task: Optional[bool] = None,
        status: Union[TaskStatus, str] = TaskStatus.PENDING,
        task_id: Optional[str] = None,
    ) -> MutationResult:
        """Create a process (root) or, with *parent_id*, a child task.

        ``is_specific_task`` defaults to ``True`` for children and ``False``
        for roots.
        """
        task = Task(
            department=department,
            title=title,
            description=description,
            start_date=start_date,
            end_date=end_date,
            assignee=assignee,
            assignee_id=assignee_id,
            is_specific_task=(parent_id is not None) if is_specific_task is None else is_specific_task,
            status=parse_status(status),
        )
        if task_id:
            task.id = task_id
        return self.insert_task(task, parent_id=parent_id)

    def insert_task(self, task: Task, *, parent_id: Optional[str] = None) -> MutationResult:
        """Insert *task* with its subtree.

        Raises :class:`~.tree.DuplicateTaskId` when any id in the subtree is
        already on the board.
        """
        with self._lock:
            conflicts = tree.id_conflicts(self._forest, task)
            if conflicts:
                raise tree.DuplicateTaskId(conflicts[0])
            if parent_id is None:
                new_forest = tree.insert_root(self._forest, task)
                self._commit(new_forest, "task.created", task.id, department=task.department)
                logger.info("Created process {}: {}", task.id, task.title)
                return MutationResult(applied=True, task=task, forest=new_forest)
            result = self._apply_to(
                parent_id,
                "child_created",
                lambda f: tree.insert_child(f, parent_id, task),
                child_id=task.id,
            )
        if result.applied:
            logger.info("Created task {} under {}: {}", task.id, parent_id, task.title)
            result.task = task
        return result

    def replace_task(self, task_id: str, new_task: Task) -> MutationResult:
        """Swap a node for *new_task*; ids of the old subtree may be reused."""
        with self._lock:
            if tree.contains(self._forest, task_id):
                conflicts = tree.id_conflicts(self._forest, new_task, replacing=task_id)
                if conflicts:
                    raise tree.DuplicateTaskId(conflicts[0])
            return self._apply_to(task_id, "replaced", lambda f: tree.find_and_replace(f, task_id, new_task))

    def set_status(self, task_id: str, status: Union[TaskStatus, str]) -> MutationResult:
        new_status = parse_status(status)
        return self._apply_to(
            task_id,
            "status_changed",
            lambda f: tree.set_status(f, task_id, new_status),
            status=new_status.value,
        )

    def set_field(self, task_id: str, field_name: str, value: Any) -> MutationResult:
        """Generic setter; raises :class:`~.tree.InvalidFieldTarget` for structural fields."""
        if field_name not in tree.SETTABLE_FIELDS:
            raise tree.InvalidFieldTarget(field_name)
        return self._apply_to(
            task_id,
            "updated",
            lambda f: tree.set_field(f, task_id, field_name, value),
            fields=[field_name],
        )

    def apply(self, task_id: str, mutation: TaskMutation) -> MutationResult:
        return self._apply_to(
            task_id,
            "updated",
            lambda f: apply_mutation(f, task_id, mutation),
            mutation=type(mutation).__name__,
        )

    def update_task(self, task_id: str, changes: dict[str, Any]) -> MutationResult:
        """Apply a partial update given as a dict of field -> value."""
        with self._lock:
            current = tree.find(self._forest, task_id)
            mutations = mutation_from_changes(changes, current)
            return self._apply_to(
                task_id,
                "updated",
                lambda f: apply_all(f, task_id, mutations),
                fields=sorted(changes.keys()),
            )

    # -- resources ----------------------------------------------------------

    def add_resource(self, task_id: str, resource: Resource) -> MutationResult:
        return self._apply_to(
            task_id,
            "resource_added",
            lambda f: tree.add_resource(f, task_id, resource),
            resource_id=resource.id,
        )

    def delete_resource(self, task_id: str, resource_id: str) -> MutationResult:
        return self._apply_to(
            task_id,
            "resource_deleted",
            lambda f: tree.delete_resource(f, task_id, resource_id),
            resource_id=resource_id,
        )

    def reorder_resources(self, task_id: str, ordered: list[Resource]) -> MutationResult:
        return self._apply_to(
            task_id,
            "resources_reordered",
            lambda f: tree.reorder_resources(f, task_id, ordered),
            order=[r.id for r in ordered],
        )

    # ------------------------------------------------------------------
    # Departments
    # ------------------------------------------------------------------

    @property
    def active_department(self) -> str:
        return self._active_department

    @active_department.setter
    def active_department(self, name: Optional[str]) -> None:
        with self._lock:
            if not name or name == GENERAL_TAB:
                self._active_department = GENERAL_TAB
                return
            if name not in self.registry:
                raise DepartmentError(f"Unknown department '{name}'")
            self._active_department = name

    def add_department(self, name: str) -> str:
        with self._lock:
            added = self.registry.add(name)
            self._emit_event("department.added", None, name=added)
            self._schedule_persist()
        logger.info("Added department {}", added)
        return added

    def remove_department(self, name: str) -> None:
        """Remove *name*; raises :class:`DepartmentInUseError` while tasks use it."""
        with self._lock:
            self.registry.remove(name, self._forest)
            if self._active_department == name:
                self._active_department = GENERAL_TAB
            self._emit_event("department.removed", None, name=name)
            self._schedule_persist()
        logger.info("Removed department {}", name)

    def rename_department(self, old_name: str, new_name: str) -> Forest:
        """Rename in the registry, every task and the active tab, as one step."""
        with self._lock:
            renamed = self.registry.rename(old_name, new_name)
            new_forest = tree.rename_department(self._forest, old_name, renamed)
            if self._active_department == old_name:
                self._active_department = renamed
            self._commit(new_forest, "department.renamed", None, old=old_name, new=renamed)
        logger.info("Renamed department {} -> {}", old_name, renamed)
        return new_forest
