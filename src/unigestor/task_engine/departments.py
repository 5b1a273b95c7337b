"""Ordered registry of department names."""

from __future__ import annotations

from typing import Iterable, Iterator

from .model import Forest
from .views import count_by_department


class DepartmentError(ValueError):
    pass


class DepartmentInUseError(DepartmentError):
    """Raised when removing a department that tasks still reference."""

    def __init__(self, name: str, count: int) -> None:
        self.name = name
        self.count = count
        super().__init__(f"Department '{name}' is referenced by {count} task(s) and cannot be removed")


class DepartmentRegistry:
    def __init__(self, names: Iterable[str] = ()) -> None:
        self._names: list[str] = []
        for name in names:
            clean = str(name).strip()
            if clean and clean not in self._names:
                self._names.append(clean)

    @property
    def names(self) -> list[str]:
        return list(self._names)

    def __contains__(self, name: object) -> bool:
        return name in self._names

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._names))

    def __len__(self) -> int:
        return len(self._names)

    def add(self, name: str) -> str:
        clean = (name or "").strip()
        if not clean:
            raise DepartmentError("Department name must be non-empty")
        if clean in self._names:
            raise DepartmentError(f"Department '{clean}' already exists")
        self._names.append(clean)
        return clean

    def remove(self, name: str, forest: Forest) -> None:
        """Drop *name* unless any task in *forest* (at any depth) uses it."""
        if name not in self._names:
            raise DepartmentError(f"Unknown department '{name}'")
        count = count_by_department(forest).get(name, 0)
        if count > 0:
            raise DepartmentInUseError(name, count)
        self._names.remove(name)

    def rename(self, old_name: str, new_name: str) -> str:
        """Rename in place, keeping the entry's position.

        Only the registry changes; callers retag tasks with
        :func:`~unigestor.task_engine.tree.rename_department`.
        """
        clean = (new_name or "").strip()
        if old_name not in self._names:
            raise DepartmentError(f"Unknown department '{old_name}'")
        if not clean:
            raise DepartmentError("Department name must be non-empty")
        if clean != old_name and clean in self._names:
            raise DepartmentError(f"Department '{clean}' already exists")
        self._names[self._names.index(old_name)] = clean
        return clean
