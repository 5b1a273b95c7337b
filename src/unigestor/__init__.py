"""Provide the public `unigestor` package exports."""

from __future__ import annotations

from .task_engine.engine import MutationResult, TaskEngine

__all__ = ["MutationResult", "TaskEngine"]
