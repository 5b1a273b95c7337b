"""Load and save application settings from `.unigestor/config.yaml`."""

from __future__ import annotations

import os
import uuid
from dataclasses import dataclass, field
from datetime import date, datetime
from pathlib import Path
from typing import Any, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from .constants import (
    API_KEY_ENV_VARS,
    CONFIG_FILE,
    DEFAULT_APP_NAME,
    DEFAULT_DEPARTMENTS,
    DEFAULT_MODEL,
    DEFAULT_RESOURCE_CATEGORIES,
    DEFAULT_TIME_ZONE,
    DEFAULT_UPCOMING_DAYS,
    MODEL_ENV_VAR,
    STATE_DIR_NAME,
)
from .io_utils import _atomic_write_yaml, _load_data_with_error


@dataclass
class ResourceCategory:
    name: str
    id: str = field(default_factory=lambda: f"cat-{uuid.uuid4().hex[:8]}")
    owner_id: Optional[str] = None
    is_global: bool = True

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "name": self.name, "owner_id": self.owner_id, "is_global": self.is_global}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ResourceCategory":
        return cls(
            id=str(data.get("id") or f"cat-{uuid.uuid4().hex[:8]}"),
            name=str(data.get("name", "")),
            owner_id=data.get("owner_id"),
            is_global=bool(data.get("is_global", True)),
        )


def _default_categories() -> list[ResourceCategory]:
    return [ResourceCategory(id=cid, name=name) for cid, name in DEFAULT_RESOURCE_CATEGORIES]


@dataclass
class AppSettings:
    """Process-wide settings; changed only through an explicit save."""

    app_name: str = DEFAULT_APP_NAME
    logo_url: str = ""
    time_zone: str = DEFAULT_TIME_ZONE
    resource_categories: list[ResourceCategory] = field(default_factory=_default_categories)
    departments: list[str] = field(default_factory=lambda: list(DEFAULT_DEPARTMENTS))
    upcoming_days: int = DEFAULT_UPCOMING_DAYS

    @property
    def category_names(self) -> list[str]:
        return [c.name for c in self.resource_categories]

    def today(self) -> date:
        """Current calendar date in the configured time zone."""
        return datetime.now(ZoneInfo(self.time_zone)).date()

    def validate(self) -> list[str]:
        errors: list[str] = []
        if not self.app_name.strip():
            errors.append("'app_name' must be non-empty")
        try:
            ZoneInfo(self.time_zone)
        except (ZoneInfoNotFoundError, ValueError):
            errors.append(f"'time_zone' is not a known IANA zone: '{self.time_zone}'")
        if self.upcoming_days < 0:
            errors.append("'upcoming_days' must be a non-negative integer")
        names = [c.name.strip() for c in self.resource_categories]
        if any(not n for n in names):
            errors.append("resource category names must be non-empty")
        return errors

    def to_dict(self) -> dict[str, Any]:
        return {
            "app_name": self.app_name,
            "logo_url": self.logo_url,
            "time_zone": self.time_zone,
            "resource_categories": [c.to_dict() for c in self.resource_categories],
            "departments": list(self.departments),
            "upcoming_days": self.upcoming_days,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AppSettings":
        defaults = cls()
        raw_categories = data.get("resource_categories")
        categories = (
            [ResourceCategory.from_dict(c) for c in raw_categories if isinstance(c, dict)]
            if isinstance(raw_categories, list)
            else defaults.resource_categories
        )
        raw_departments = data.get("departments")
        departments = (
            [str(d) for d in raw_departments]
            if isinstance(raw_departments, list)
            else defaults.departments
        )
        return cls(
            app_name=str(data.get("app_name") or defaults.app_name),
            logo_url=str(data.get("logo_url") or ""),
            time_zone=str(data.get("time_zone") or defaults.time_zone),
            resource_categories=categories,
            departments=departments,
            upcoming_days=int(data.get("upcoming_days", defaults.upcoming_days)),
        )


def state_dir_for(project_dir: Path) -> Path:
    return project_dir.resolve() / STATE_DIR_NAME


def load_settings(project_dir: Path) -> tuple[AppSettings, str | None]:
    """Load the optional settings file.

    Args:
        project_dir: Project root directory.

    Returns:
        A tuple of `(settings, error_message)`. A missing file yields defaults
        and no error; an unreadable or invalid file yields defaults and the
        error text.
    """
    path = state_dir_for(project_dir) / CONFIG_FILE
    data, err = _load_data_with_error(path, {})
    if err:
        return AppSettings(), err
    try:
        settings = AppSettings.from_dict(data)
    except (TypeError, ValueError) as exc:
        return AppSettings(), f"{path.name}: {exc}"
    problems = settings.validate()
    if problems:
        return AppSettings(), f"{path.name}: " + "; ".join(problems)
    return settings, None


def save_settings(project_dir: Path, settings: AppSettings) -> Path:
    """Validate and write *settings*; raises ``ValueError`` when invalid."""
    problems = settings.validate()
    if problems:
        raise ValueError("; ".join(problems))
    path = state_dir_for(project_dir) / CONFIG_FILE
    _atomic_write_yaml(path, settings.to_dict())
    return path


def get_api_key() -> Optional[str]:
    for name in API_KEY_ENV_VARS:
        value = os.environ.get(name)
        if value:
            return value
    return None


def get_model_name() -> str:
    return os.environ.get(MODEL_ENV_VAR) or DEFAULT_MODEL
