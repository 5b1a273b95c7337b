"""Pydantic request / response models for the board API."""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, Field


class CreateTaskRequest(BaseModel):
    title: str = Field(min_length=1)
    department: str
    parent_id: Optional[str] = None
    description: Optional[str] = None
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    assignee: Optional[str] = None
    assignee_id: Optional[str] = None
    is_specific_task: Optional[bool] = None
    status: str = "Pendiente"
    id: Optional[str] = None


class StatusRequest(BaseModel):
    status: str


class ResourceRequest(BaseModel):
    name: str = Field(min_length=1)
    url: str = Field(min_length=1)
    category: Optional[str] = None
    file_name: Optional[str] = None


class ResourceModel(BaseModel):
    id: str
    name: str
    url: str
    type: Optional[str] = None
    category: Optional[str] = None


class ReorderResourcesRequest(BaseModel):
    resources: list[ResourceModel]


class DepartmentRequest(BaseModel):
    name: str


class RenameDepartmentRequest(BaseModel):
    new_name: str


class ActiveDepartmentRequest(BaseModel):
    name: Optional[str] = None


class ResourceCategoryModel(BaseModel):
    id: Optional[str] = None
    name: str
    owner_id: Optional[str] = None
    is_global: bool = True


class SettingsRequest(BaseModel):
    app_name: str
    logo_url: str = ""
    time_zone: str
    resource_categories: list[ResourceCategoryModel] = Field(default_factory=list)
    upcoming_days: int = 7


class ReportRequest(BaseModel):
    department: Optional[str] = None
    search: Optional[str] = None
    status: Optional[str] = None
    task_type: Optional[str] = None


class TaskResponse(BaseModel):
    """Standard wrapper for task responses."""
    task: dict[str, Any]


class TaskListResponse(BaseModel):
    tasks: list[dict[str, Any]]
    total: int


class DepartmentListResponse(BaseModel):
    departments: list[str]
    counts: dict[str, int]
    active: str


class ReportResponse(BaseModel):
    department: str
    report: str
