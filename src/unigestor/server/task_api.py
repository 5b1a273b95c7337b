"""Task endpoints for the department board.

A FastAPI router with the tree operations: listing (filtered, sorted,
flattened), creation as root or child, full replace, partial update, status
changes and resource management.  It is mounted under ``/api/tasks`` by
:func:`~unigestor.server.api.create_app`.
"""

from __future__ import annotations

from typing import Any, Callable, Optional

from fastapi import APIRouter, Body, HTTPException, Query
from loguru import logger

from ..task_engine.engine import MutationResult, TaskEngine
from ..task_engine.model import Profile, Resource, Task, UserRole
from ..task_engine.tree import DuplicateTaskId, InvalidFieldTarget, iter_nodes
from ..task_engine.views import TaskFilter
from .models import (
    CreateTaskRequest,
    ReorderResourcesRequest,
    ResourceRequest,
    StatusRequest,
    TaskListResponse,
    TaskResponse,
)


def _viewer(
    user_id: Optional[str],
    role: Optional[str],
    user_department: Optional[str],
) -> Optional[Profile]:
    if not role:
        return None
    try:
        parsed_role = UserRole(role)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Unknown role '{role}'")
    return Profile(
        id=user_id or "",
        full_name="",
        department=user_department or "",
        role=parsed_role,
    )


def _task_or_404(result: MutationResult, task_id: str) -> TaskResponse:
    if not result.applied or result.task is None:
        raise HTTPException(status_code=404, detail=f"Task {task_id} not found")
    return TaskResponse(task=result.task.to_dict())


def create_task_router(get_engine: Callable[[], TaskEngine]) -> APIRouter:
    """Create the task API router.

    Parameters
    ----------
    get_engine:
        A callable returning the :class:`TaskEngine` for the running app.
    """
    router = APIRouter(prefix="/api/tasks", tags=["tasks"])

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @router.get("", response_model=TaskListResponse)
    async def list_tasks(
        search: Optional[str] = Query(None),
        status: Optional[str] = Query(None),
        task_type: Optional[str] = Query(None),
        assignee: Optional[str] = Query(None),
        department: Optional[str] = Query(None),
        sort_key: Optional[str] = Query(None),
        direction: str = Query("asc"),
        user_id: Optional[str] = Query(None),
        role: Optional[str] = Query(None),
        user_department: Optional[str] = Query(None),
    ) -> TaskListResponse:
        engine = get_engine()
        try:
            task_filter = TaskFilter.from_params(
                search=search,
                status=status,
                task_type=task_type,
                assignee=assignee,
            )
            tasks = engine.list_tasks(
                task_filter,
                sort_key=sort_key,
                direction=direction,
                user=_viewer(user_id, role, user_department),
                department=department or engine.active_department,
            )
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
        data = [t.to_dict() for t in tasks]
        return TaskListResponse(tasks=data, total=len(data))

    @router.get("/flat", response_model=TaskListResponse)
    async def list_flat() -> TaskListResponse:
        engine = get_engine()
        data = []
        for t in engine.flat_tasks():
            d = t.to_dict()
            d.pop("subtasks")
            data.append(d)
        return TaskListResponse(tasks=data, total=len(data))

    @router.get("/{task_id}", response_model=TaskResponse)
    async def get_task(task_id: str) -> TaskResponse:
        task = get_engine().get_task(task_id)
        if task is None:
            raise HTTPException(status_code=404, detail=f"Task {task_id} not found")
        return TaskResponse(task=task.to_dict())

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    @router.post("", response_model=TaskResponse, status_code=201)
    async def create_task(body: CreateTaskRequest) -> TaskResponse:
        engine = get_engine()
        if body.department not in engine.registry:
            raise HTTPException(status_code=400, detail=f"Unknown department '{body.department}'")
        errors = Task.validate_dict(body.model_dump())
        if errors:
            raise HTTPException(status_code=400, detail="; ".join(errors))
        try:
            result = engine.create_task(
                body.title,
                body.department,
                parent_id=body.parent_id,
                description=body.description,
                start_date=body.start_date,
                end_date=body.end_date,
                assignee=body.assignee,
                assignee_id=body.assignee_id,
                is_specific_task=body.is_specific_task,
                status=body.status,
                task_id=body.id,
            )
        except DuplicateTaskId as e:
            raise HTTPException(status_code=409, detail=str(e))
        if not result.applied:
            raise HTTPException(status_code=404, detail=f"Parent task {body.parent_id} not found")
        return TaskResponse(task=result.task.to_dict())

    @router.put("/{task_id}", response_model=TaskResponse)
    async def replace_task(task_id: str, body: dict[str, Any] = Body(...)) -> TaskResponse:
        engine = get_engine()
        if body.get("id", task_id) != task_id:
            raise HTTPException(status_code=400, detail="Task id in body does not match path")
        errors = Task.validate_dict(body)
        if errors:
            raise HTTPException(status_code=400, detail="; ".join(errors))
        if engine.get_task(task_id) is None:
            raise HTTPException(status_code=404, detail=f"Task {task_id} not found")
        new_task = Task.from_dict({**body, "id": task_id})
        for node in iter_nodes([new_task]):
            if node.department not in engine.registry:
                raise HTTPException(status_code=400, detail=f"Unknown department '{node.department}'")
        try:
            result = engine.replace_task(task_id, new_task)
        except DuplicateTaskId as e:
            raise HTTPException(status_code=409, detail=str(e))
        return _task_or_404(result, task_id)

    @router.patch("/{task_id}", response_model=TaskResponse)
    async def update_task(task_id: str, changes: dict[str, Any] = Body(...)) -> TaskResponse:
        engine = get_engine()
        if "department" in changes and changes["department"] not in engine.registry:
            raise HTTPException(status_code=400, detail=f"Unknown department '{changes['department']}'")
        try:
            result = engine.update_task(task_id, changes)
        except InvalidFieldTarget as e:
            logger.warning("Rejected update of {}: {}", task_id, e)
            raise HTTPException(status_code=400, detail=str(e))
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
        return _task_or_404(result, task_id)

    @router.post("/{task_id}/status", response_model=TaskResponse)
    async def set_status(task_id: str, body: StatusRequest) -> TaskResponse:
        try:
            result = get_engine().set_status(task_id, body.status)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
        return _task_or_404(result, task_id)

    # ------------------------------------------------------------------
    # Resources
    # ------------------------------------------------------------------

    @router.post("/{task_id}/resources", response_model=TaskResponse, status_code=201)
    async def add_resource(task_id: str, body: ResourceRequest) -> TaskResponse:
        resource = Resource.create(body.name, body.url, category=body.category, file_name=body.file_name)
        return _task_or_404(get_engine().add_resource(task_id, resource), task_id)

    @router.delete("/{task_id}/resources/{resource_id}", response_model=TaskResponse)
    async def delete_resource(task_id: str, resource_id: str) -> TaskResponse:
        return _task_or_404(get_engine().delete_resource(task_id, resource_id), task_id)

    @router.put("/{task_id}/resources", response_model=TaskResponse)
    async def reorder_resources(task_id: str, body: ReorderResourcesRequest) -> TaskResponse:
        ordered = [Resource.from_dict(r.model_dump()) for r in body.resources]
        return _task_or_404(get_engine().reorder_resources(task_id, ordered), task_id)

    return router
