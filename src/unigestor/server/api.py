"""FastAPI web server for the UniGestor task board."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger

from ..config import AppSettings, load_settings, state_dir_for
from ..constants import TASKS_FILE
from ..report import EfficiencyReporter
from ..task_engine.engine import TaskEngine
from .board_api import create_board_router, create_settings_router
from .task_api import create_task_router


def create_app(
    project_dir: Optional[Path] = None,
    engine: Optional[TaskEngine] = None,
    settings: Optional[AppSettings] = None,
    reporter: Optional[EfficiencyReporter] = None,
    enable_cors: bool = True,
) -> FastAPI:
    """Create and configure FastAPI application.

    Args:
        project_dir: Project directory holding ``.unigestor/``. When omitted
            and no *engine* is given, the board lives in memory only.
        engine: Pre-built task engine (tests inject one).
        settings: Settings override; loaded from *project_dir* otherwise.
        reporter: Efficiency reporter; built lazily on first report.
        enable_cors: Whether to enable CORS.

    Returns:
        Configured FastAPI app.
    """
    if settings is None:
        if project_dir is not None:
            settings, err = load_settings(project_dir)
            if err:
                logger.warning("Ignoring invalid settings file: {}", err)
        else:
            settings = AppSettings()

    if engine is None:
        state_dir = state_dir_for(project_dir) if project_dir is not None else None
        has_snapshot = state_dir is not None and (state_dir / TASKS_FILE).exists()
        engine = TaskEngine(
            state_dir,
            departments=None if has_snapshot else list(settings.departments),
        )

    app = FastAPI(
        title=settings.app_name,
        description="Department task board: processes, tasks, resources and reports",
        version="1.0.0",
    )

    if enable_cors:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=["*"],
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    app.state.project_dir = project_dir
    app.state.engine = engine
    app.state.settings = settings
    app.state.reporter = reporter

    def _get_engine() -> TaskEngine:
        return app.state.engine

    def _get_reporter() -> EfficiencyReporter:
        if app.state.reporter is None:
            app.state.reporter = EfficiencyReporter()
        return app.state.reporter

    def _get_settings() -> AppSettings:
        return app.state.settings

    def _set_settings(new_settings: AppSettings) -> None:
        app.state.settings = new_settings

    @app.get("/")
    async def root():
        return {
            "name": app.state.settings.app_name,
            "version": "1.0.0",
            "status": "running",
        }

    app.include_router(create_task_router(_get_engine))
    app.include_router(create_board_router(_get_engine, _get_reporter, _get_settings))
    app.include_router(create_settings_router(_get_settings, _set_settings, lambda: app.state.project_dir))

    return app
