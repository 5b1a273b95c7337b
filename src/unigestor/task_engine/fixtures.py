"""Seed board used when a project has no stored snapshot yet.

Dates cover the Dec 2025 - Mar 2026 cycle.
"""

from __future__ import annotations

from typing import Any

from .model import Forest, Task, TaskStatus

_CYCLE = {"start_date": "2025-12-01", "end_date": "2026-03-24"}

_SCHOOL = "Control Escolar"
_PUBLICITY = "Publicidad"
_FINANCE = "Finanzas"
_TUTORING = "Tutoría y Bienestar"


def _node(
    id: str,
    department: str,
    title: str,
    status: TaskStatus,
    *,
    specific: bool = False,
    dated: bool = True,
    subtasks: list[Task] | None = None,
    **extra: Any,
) -> Task:
    dates = dict(_CYCLE) if dated else {}
    dates.update({k: v for k, v in extra.items() if k in ("start_date", "end_date")})
    return Task(
        id=id,
        department=department,
        title=title,
        status=status,
        is_specific_task=specific,
        subtasks=list(subtasks or []),
        **dates,
    )


def seed_forest() -> Forest:
    """Return a fresh copy of the seed board."""
    return [
        _node("ce-1", _SCHOOL, "Altas e ingresos", TaskStatus.COMPLETED),
        _node("ce-2", _SCHOOL, "Reinscripciones", TaskStatus.IN_PROGRESS, dated=False),
        _node("ce-3", _SCHOOL, "Solicitud, expedición y entrega de constancias", TaskStatus.IN_PROGRESS),
        _node(
            "ce-9", _SCHOOL, "Servicio social General", TaskStatus.IN_PROGRESS,
            subtasks=[
                _node("ce-9-1", _SCHOOL, "Servicio social (Art. 55)", TaskStatus.IN_PROGRESS, specific=True),
                _node("ce-13", _SCHOOL, "Servicio social (Art. 52)", TaskStatus.IN_PROGRESS, specific=True),
                _node("ce-14", _SCHOOL, "Servicio social (Art. 91)", TaskStatus.IN_PROGRESS, specific=True),
            ],
        ),
        _node("ce-4", _SCHOOL, "Elaboración y entrega de credenciales", TaskStatus.PENDING, dated=False),
        _node(
            "ce-11", _SCHOOL, "Elaboración de reportes y estadísticas", TaskStatus.COMPLETED, dated=False,
            subtasks=[
                _node("ce-12", _SCHOOL, "Reportes de inspección y vigilancia", TaskStatus.COMPLETED,
                      specific=True, dated=False),
            ],
        ),
        _node(
            "pub-1", _PUBLICITY, "Captación de prospectos vía redes sociales", TaskStatus.IN_PROGRESS,
            subtasks=[
                _node("pub-2", _PUBLICITY, "Revisión de campañas activas", TaskStatus.IN_PROGRESS,
                      specific=True, dated=False),
                _node("pub-3", _PUBLICITY, "Reporte de mensajes por día (Matutino/Vespertino)",
                      TaskStatus.PENDING, specific=True, dated=False),
            ],
        ),
        _node(
            "pub-15", _PUBLICITY, "Estudio de mercado", TaskStatus.PENDING,
            subtasks=[
                _node("pub-16", _PUBLICITY, "Entrega Estudio Mercado 1", TaskStatus.COMPLETED,
                      specific=True, start_date="2026-01-15", end_date="2026-01-15"),
                _node("pub-17", _PUBLICITY, "Entrega Estudio Mercado 2", TaskStatus.PENDING,
                      specific=True, start_date="2026-03-15", end_date="2026-03-15"),
            ],
        ),
        _node("fin-1", _FINANCE, "Registro y control de pagos diarios", TaskStatus.IN_PROGRESS),
        _node(
            "fin-4", _FINANCE, "Conciliaciones bancarias", TaskStatus.IN_PROGRESS,
            subtasks=[
                _node("fin-5", _FINANCE, "Reporte Conciliaciones (Rectoría)", TaskStatus.IN_PROGRESS,
                      specific=True, dated=False),
            ],
        ),
        _node("fin-6", _FINANCE, "Recuperación de cartera vencida", TaskStatus.OVERDUE),
        _node(
            "tut-3", _TUTORING, "Talleres", TaskStatus.IN_PROGRESS,
            subtasks=[
                _node("tut-4", _TUTORING, "Futbol (Miércoles 11:00)", TaskStatus.IN_PROGRESS,
                      specific=True, dated=False),
                _node("tut-5", _TUTORING, "Basquetball (Viernes 11:00)", TaskStatus.IN_PROGRESS,
                      specific=True, dated=False),
                _node("tut-6", _TUTORING, "Música (Viernes 15:00-17:00)", TaskStatus.IN_PROGRESS,
                      specific=True, dated=False),
            ],
        ),
    ]
