"""Board-level endpoints: departments, KPIs, calendar, settings and reports."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Callable, Optional

from fastapi import APIRouter, HTTPException, Query
from loguru import logger

from ..config import AppSettings, ResourceCategory, save_settings
from ..report import EfficiencyReporter
from ..task_engine.departments import DepartmentError, DepartmentInUseError
from ..task_engine.engine import TaskEngine
from ..task_engine.views import TaskFilter, parse_ymd
from .models import (
    ActiveDepartmentRequest,
    DepartmentListResponse,
    DepartmentRequest,
    RenameDepartmentRequest,
    ReportRequest,
    ReportResponse,
    SettingsRequest,
    TaskListResponse,
)


def create_board_router(
    get_engine: Callable[[], TaskEngine],
    get_reporter: Callable[[], EfficiencyReporter],
    get_settings: Callable[[], AppSettings],
) -> APIRouter:
    router = APIRouter(prefix="/api", tags=["board"])

    # ------------------------------------------------------------------
    # Departments
    # ------------------------------------------------------------------

    def _department_listing(engine: TaskEngine) -> DepartmentListResponse:
        counts = engine.department_counts()
        return DepartmentListResponse(
            departments=engine.departments,
            counts={name: counts.get(name, 0) for name in engine.departments},
            active=engine.active_department,
        )

    @router.get("/departments", response_model=DepartmentListResponse)
    async def list_departments() -> DepartmentListResponse:
        return _department_listing(get_engine())

    @router.post("/departments", response_model=DepartmentListResponse, status_code=201)
    async def add_department(body: DepartmentRequest) -> DepartmentListResponse:
        engine = get_engine()
        try:
            engine.add_department(body.name)
        except DepartmentError as e:
            raise HTTPException(status_code=400, detail=str(e))
        return _department_listing(engine)

    @router.put("/departments/active", response_model=DepartmentListResponse)
    async def set_active_department(body: ActiveDepartmentRequest) -> DepartmentListResponse:
        engine = get_engine()
        try:
            engine.active_department = body.name
        except DepartmentError as e:
            raise HTTPException(status_code=404, detail=str(e))
        return _department_listing(engine)

    @router.delete("/departments/{name}", response_model=DepartmentListResponse)
    async def remove_department(name: str) -> DepartmentListResponse:
        engine = get_engine()
        try:
            engine.remove_department(name)
        except DepartmentInUseError as e:
            raise HTTPException(status_code=409, detail=str(e))
        except DepartmentError as e:
            raise HTTPException(status_code=404, detail=str(e))
        return _department_listing(engine)

    @router.post("/departments/{name}/rename", response_model=DepartmentListResponse)
    async def rename_department(name: str, body: RenameDepartmentRequest) -> DepartmentListResponse:
        engine = get_engine()
        if name not in engine.registry:
            raise HTTPException(status_code=404, detail=f"Unknown department '{name}'")
        try:
            engine.rename_department(name, body.new_name)
        except DepartmentError as e:
            raise HTTPException(status_code=400, detail=str(e))
        return _department_listing(engine)

    # ------------------------------------------------------------------
    # Dashboard views
    # ------------------------------------------------------------------

    @router.get("/kpis")
    async def get_kpis(department: Optional[str] = Query(None)) -> dict[str, Any]:
        engine = get_engine()
        summary = engine.kpis(department=department or engine.active_department)
        return summary.to_dict()

    @router.get("/calendar/upcoming")
    async def get_upcoming(
        today: Optional[str] = Query(None),
        days: Optional[int] = Query(None, ge=0),
        department: Optional[str] = Query(None),
    ) -> dict[str, Any]:
        """Tasks starting today and in the next ``days`` days (settings default)."""
        settings = get_settings()
        engine = get_engine()
        if today is None:
            start = settings.today()
        else:
            start = parse_ymd(today)
            if start is None:
                raise HTTPException(status_code=400, detail=f"Invalid date: {today!r}")
        agenda = engine.upcoming_tasks(
            start,
            settings.upcoming_days if days is None else days,
            department=department or engine.active_department,
        )
        return agenda.to_dict()

    @router.get("/calendar/{day}", response_model=TaskListResponse)
    async def get_calendar_day(day: str) -> TaskListResponse:
        try:
            tasks = get_engine().tasks_on_date(day)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
        data = []
        for t in tasks:
            d = t.to_dict()
            d.pop("subtasks")
            data.append(d)
        return TaskListResponse(tasks=data, total=len(data))

    @router.get("/events")
    async def get_events(limit: int = Query(100, ge=1, le=1000)) -> dict[str, Any]:
        events = get_engine().get_recent_events(limit)
        return {"events": events, "total": len(events)}

    # ------------------------------------------------------------------
    # AI report
    # ------------------------------------------------------------------

    @router.post("/reports/efficiency", response_model=ReportResponse)
    async def efficiency_report(body: ReportRequest) -> ReportResponse:
        engine = get_engine()
        department = body.department or engine.active_department
        try:
            task_filter = TaskFilter.from_params(
                search=body.search,
                status=body.status,
                task_type=body.task_type,
            )
            tasks = engine.list_tasks(task_filter, department=department)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
        logger.info("Generating efficiency report for {} ({} roots)", department, len(tasks))
        text = get_reporter().generate(department, tasks)
        return ReportResponse(department=department, report=text)

    return router


def create_settings_router(
    get_settings: Callable[[], AppSettings],
    set_settings: Callable[[AppSettings], None],
    get_project_dir: Callable[[], Optional[Path]],
) -> APIRouter:
    router = APIRouter(prefix="/api/settings", tags=["settings"])

    @router.get("")
    async def read_settings() -> dict[str, Any]:
        return get_settings().to_dict()

    @router.put("")
    async def update_settings(body: SettingsRequest) -> dict[str, Any]:
        current = get_settings()
        updated = AppSettings(
            app_name=body.app_name,
            logo_url=body.logo_url,
            time_zone=body.time_zone,
            resource_categories=[
                ResourceCategory.from_dict(c.model_dump()) for c in body.resource_categories
            ],
            departments=list(current.departments),
            upcoming_days=body.upcoming_days,
        )
        problems = updated.validate()
        if problems:
            raise HTTPException(status_code=400, detail="; ".join(problems))
        project_dir = get_project_dir()
        if project_dir is not None:
            save_settings(project_dir, updated)
        set_settings(updated)
        logger.info("Settings updated: {}", updated.app_name)
        return updated.to_dict()

    return router
