"""Pure, id-addressed mutations over a task forest.

Every function takes the current forest and returns a new one.  Nodes on the
path from a root to the target are rebuilt with :func:`dataclasses.replace`;
everything off that path is shared by reference with the input.

Lookups that do not resolve are *fail-soft*: the input forest object is
returned unchanged and nothing is raised.  Callers that need to know whether
an operation applied can test ``result is forest`` or call :func:`contains`
first (:class:`~unigestor.task_engine.engine.TaskEngine` does the latter and
reports it as ``MutationResult.applied``).
"""

from __future__ import annotations

from dataclasses import fields, replace
from typing import Any, Callable, Iterator, Optional

from .model import Forest, Resource, Task, TaskStatus, parse_status


STRUCTURAL_FIELDS = frozenset({"id", "subtasks", "resources"})
SETTABLE_FIELDS = frozenset(f.name for f in fields(Task)) - STRUCTURAL_FIELDS


class InvalidFieldTarget(ValueError):
    """Raised when the generic setter is asked to touch a structural or unknown field."""

    def __init__(self, field_name: str) -> None:
        self.field_name = field_name
        if field_name in STRUCTURAL_FIELDS:
            msg = f"Field '{field_name}' is structural and cannot be set directly"
        else:
            msg = f"Unknown task field '{field_name}'. Settable fields: {sorted(SETTABLE_FIELDS)}"
        super().__init__(msg)


class DuplicateTaskId(ValueError):
    """Raised when a new or replacement node reuses an id already in the forest."""

    def __init__(self, task_id: str) -> None:
        self.task_id = task_id
        super().__init__(f"Task id '{task_id}' is already in use")


# ---------------------------------------------------------------------------
# Traversal helpers
# ---------------------------------------------------------------------------

def _update_first(
    nodes: list[Task],
    task_id: str,
    fn: Callable[[Task], Task],
) -> tuple[list[Task], bool]:
    """Apply *fn* to the first node (pre-order) whose id is *task_id*."""
    for idx, node in enumerate(nodes):
        if node.id == task_id:
            out = list(nodes)
            out[idx] = fn(node)
            return out, True
        if node.subtasks:
            children, found = _update_first(node.subtasks, task_id, fn)
            if found:
                out = list(nodes)
                out[idx] = replace(node, subtasks=children)
                return out, True
    return nodes, False


def update_node(forest: Forest, task_id: str, fn: Callable[[Task], Task]) -> Forest:
    """Replace the matched node with ``fn(node)``; no-op when *task_id* is absent."""
    updated, found = _update_first(forest, task_id, fn)
    return updated if found else forest


def iter_nodes(forest: Forest) -> Iterator[Task]:
    """Yield every node depth-first, parents before children."""
    for node in forest:
        yield node
        if node.subtasks:
            yield from iter_nodes(node.subtasks)


def find(forest: Forest, task_id: str) -> Optional[Task]:
    for node in iter_nodes(forest):
        if node.id == task_id:
            return node
    return None


def contains(forest: Forest, task_id: str) -> bool:
    return find(forest, task_id) is not None


def id_conflicts(forest: Forest, new_task: Task, replacing: Optional[str] = None) -> list[str]:
    """Ids in *new_task*'s subtree that already name a node.

    With *replacing*, the subtree rooted at that id is ignored, since it is the
    one being swapped out.  Ids repeated inside *new_task* itself also count.
    """
    taken: set[str] = set()

    def _collect(nodes: list[Task]) -> None:
        for node in nodes:
            if node.id == replacing:
                continue
            taken.add(node.id)
            _collect(node.subtasks)

    _collect(forest)
    conflicts: list[str] = []
    for node in iter_nodes([new_task]):
        if node.id in taken:
            conflicts.append(node.id)
        taken.add(node.id)
    return conflicts


# ---------------------------------------------------------------------------
# Point mutations
# ---------------------------------------------------------------------------

def find_and_replace(forest: Forest, task_id: str, new_task: Task) -> Forest:
    """Swap the node *task_id* for *new_task*, keeping its position."""
    return update_node(forest, task_id, lambda _node: new_task)


def set_status(forest: Forest, task_id: str, status: TaskStatus | str) -> Forest:
    new_status = parse_status(status)
    return update_node(forest, task_id, lambda node: replace(node, status=new_status))


def set_field(forest: Forest, task_id: str, field_name: str, value: Any) -> Forest:
    """Set one non-structural attribute of the node *task_id*.

    Raises :class:`InvalidFieldTarget` for ``id``, ``subtasks``, ``resources``
    or a name that is not a task attribute; this check happens before the
    lookup, so it fires even when *task_id* is absent.
    """
    if field_name not in SETTABLE_FIELDS:
        raise InvalidFieldTarget(field_name)
    if field_name == "status":
        value = parse_status(value)
    elif field_name == "is_specific_task":
        value = bool(value)
    return update_node(forest, task_id, lambda node: replace(node, **{field_name: value}))


# ---------------------------------------------------------------------------
# Insertion
# ---------------------------------------------------------------------------

def insert_root(forest: Forest, new_task: Task) -> Forest:
    """Prepend: the newest process is shown first."""
    return [new_task, *forest]


def insert_child(forest: Forest, parent_id: str, new_task: Task) -> Forest:
    """Append *new_task* under *parent_id*.

    Children keep insertion order (oldest first), the opposite of roots.  An
    unknown *parent_id* leaves the forest unchanged and the new task is
    dropped.
    """
    return update_node(
        forest,
        parent_id,
        lambda node: replace(node, subtasks=[*node.subtasks, new_task]),
    )


# ---------------------------------------------------------------------------
# Resources
# ---------------------------------------------------------------------------

def add_resource(forest: Forest, task_id: str, resource: Resource) -> Forest:
    return update_node(
        forest,
        task_id,
        lambda node: replace(node, resources=[*node.resources, resource]),
    )


def delete_resource(forest: Forest, task_id: str, resource_id: str) -> Forest:
    return update_node(
        forest,
        task_id,
        lambda node: replace(node, resources=[r for r in node.resources if r.id != resource_id]),
    )


def reorder_resources(forest: Forest, task_id: str, ordered: list[Resource]) -> Forest:
    """Replace the resource list wholesale; *ordered* is trusted as-is."""
    new_list = list(ordered)
    return update_node(forest, task_id, lambda node: replace(node, resources=new_list))


# ---------------------------------------------------------------------------
# Departments
# ---------------------------------------------------------------------------

def rename_department(forest: Forest, old_name: str, new_name: str) -> Forest:
    """Retag every node (at any depth) whose department is *old_name*."""

    def _walk(nodes: list[Task]) -> list[Task]:
        out: list[Task] = []
        changed = False
        for node in nodes:
            children = _walk(node.subtasks) if node.subtasks else node.subtasks
            if node.department == old_name or children is not node.subtasks:
                dept = new_name if node.department == old_name else node.department
                out.append(replace(node, department=dept, subtasks=children))
                changed = True
            else:
                out.append(node)
        return out if changed else nodes

    return _walk(forest)
