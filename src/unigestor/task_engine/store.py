"""File-based snapshot store for the task forest.

The whole forest (and the department registry) is written to a single YAML
file (``tasks.yaml``) inside the project's ``.unigestor/`` directory.  Reads
and writes take an exclusive file lock; writes go to a temp file that is
then renamed over the target.
"""

from __future__ import annotations

import os
import tempfile
from pathlib import Path
from typing import Any, Optional

import yaml

from ..constants import TASKS_FILE, TASKS_LOCK_FILE
from ..io_utils import FileLock
from .model import Forest, forest_from_dicts, forest_to_dicts

STORE_VERSION = 1


def _load_raw(path: Path) -> Optional[dict[str, Any]]:
    """Load the raw payload from *path*, returning ``None`` if missing or unusable."""
    if not path.exists():
        return None
    data = yaml.safe_load(path.read_text(encoding="utf-8"))
    if not isinstance(data, dict) or not isinstance(data.get("tasks"), list):
        return None
    return data


def _save_raw(path: Path, payload: dict[str, Any]) -> None:
    """Atomically write *payload* to *path* (write-tmp-then-rename)."""
    parent = path.parent
    parent.mkdir(parents=True, exist_ok=True)
    fd, tmp = tempfile.mkstemp(dir=str(parent), suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            yaml.safe_dump(payload, fh, default_flow_style=False, sort_keys=False, allow_unicode=True)
        os.replace(tmp, path)
    except BaseException:
        Path(tmp).unlink(missing_ok=True)
        raise


class TreeStore:
    """File-backed store for forest snapshots.

    Parameters
    ----------
    state_dir:
        Path to the ``.unigestor/`` directory for the project.
    """

    def __init__(self, state_dir: Path) -> None:
        self._state_dir = state_dir
        self._store_path = state_dir / TASKS_FILE
        self._lock = FileLock(state_dir / TASKS_LOCK_FILE)

    @property
    def path(self) -> Path:
        return self._store_path

    def exists(self) -> bool:
        return self._store_path.exists()

    def load(self) -> tuple[Forest, Optional[list[str]]]:
        """Return ``(forest, departments)``; ``([], None)`` when nothing is stored."""
        with self._lock:
            raw = _load_raw(self._store_path)
        if raw is None:
            return [], None
        departments = raw.get("departments")
        return (
            forest_from_dicts(raw["tasks"]),
            [str(d) for d in departments] if isinstance(departments, list) else None,
        )

    def save(self, forest: Forest, departments: Optional[list[str]] = None) -> None:
        payload: dict[str, Any] = {"version": STORE_VERSION}
        if departments is not None:
            payload["departments"] = list(departments)
        payload["tasks"] = forest_to_dicts(forest)
        with self._lock:
            _save_raw(self._store_path, payload)
