"""AI efficiency report: prompt rendering and the summarizer client."""

from __future__ import annotations

from typing import Any, Optional, Protocol

import httpx
from loguru import logger

from .config import get_api_key, get_model_name
from .constants import GENERAL_TAB
from .task_engine.model import Task

GEMINI_ENDPOINT = "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"

EMPTY_REPORT_MESSAGE = "No se pudo generar el reporte."
FAILED_REPORT_MESSAGE = "Ocurrió un error al contactar al servicio de IA. Por favor intente más tarde."

_PROMPT_TEMPLATE = """
Actúa como un analista de eficiencia operativa experto para una universidad.
Analiza los siguientes datos de procesos y tareas para el área: {department}.
La estructura muestra Procesos Generales y sus Tareas Específicas indentadas.

Datos:
{summary}

Genera un reporte estratégico, breve y profesional (formato markdown) que incluya:
1. **Resumen Ejecutivo**: Estado actual del cumplimiento de procesos generales.
2. **Análisis de Cuellos de Botella**: Identifica si tareas específicas retrasadas están bloqueando procesos generales.
3. **Recomendaciones Tácticas**: 3 acciones concretas para mejorar la eficiencia y el cumplimiento de fechas en los sub-procesos.

Mantén el tono directivo y enfocado a resultados.
"""


class SummarizerError(RuntimeError):
    pass


class Summarizer(Protocol):
    def summarize(self, prompt: str) -> str: ...


def _format_line(task: Task, depth: int) -> str:
    indent = "  " * depth
    kind = "[Tarea Específica]" if task.is_specific_task else "[Proceso General]"
    owner = f"[Resp: {task.assignee}]" if task.assignee else ""
    return (
        f"{indent}- {task.title} ({task.start_date or 'N/A'} a {task.end_date or 'N/A'}): "
        f"{task.status.value} {kind} {owner}"
    )


def format_tasks_for_prompt(tasks: list[Task], depth: int = 0) -> str:
    """Render *tasks* one line per node, children indented two spaces per level."""
    lines: list[str] = []
    for task in tasks:
        lines.append(_format_line(task, depth))
        if task.subtasks:
            lines.append(format_tasks_for_prompt(task.subtasks, depth + 1))
    return "\n".join(lines)


def build_efficiency_prompt(department: Optional[str], tasks: list[Task]) -> str:
    area = "GENERAL" if not department or department == GENERAL_TAB else department
    return _PROMPT_TEMPLATE.format(department=area, summary=format_tasks_for_prompt(tasks))


class GeminiSummarizer:
    """Minimal client for the Gemini ``generateContent`` REST endpoint."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        timeout: float = 60.0,
        client: Optional[httpx.Client] = None,
    ) -> None:
        self.api_key = api_key if api_key is not None else get_api_key()
        self.model = model or get_model_name()
        self.timeout = timeout
        self._client = client

    def summarize(self, prompt: str) -> str:
        if not self.api_key:
            raise SummarizerError("No API key configured (set GEMINI_API_KEY)")
        url = GEMINI_ENDPOINT.format(model=self.model)
        body = {"contents": [{"parts": [{"text": prompt}]}]}
        headers = {"x-goog-api-key": self.api_key}
        try:
            if self._client is not None:
                resp = self._client.post(url, json=body, headers=headers, timeout=self.timeout)
            else:
                resp = httpx.post(url, json=body, headers=headers, timeout=self.timeout)
            resp.raise_for_status()
            payload = resp.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise SummarizerError(f"Gemini request failed: {exc}") from exc
        return _extract_text(payload)


def _extract_text(payload: Any) -> str:
    if not isinstance(payload, dict):
        return ""
    candidates = payload.get("candidates") or []
    if not candidates:
        return ""
    parts = ((candidates[0] or {}).get("content") or {}).get("parts") or []
    return "".join(str(p.get("text", "")) for p in parts if isinstance(p, dict))


class EfficiencyReporter:
    """Turn a (filtered) task forest into a free-text efficiency analysis."""

    def __init__(self, summarizer: Optional[Summarizer] = None) -> None:
        self.summarizer: Summarizer = summarizer or GeminiSummarizer()

    def generate(self, department: Optional[str], tasks: list[Task]) -> str:
        prompt = build_efficiency_prompt(department, tasks)
        try:
            text = self.summarizer.summarize(prompt)
        except SummarizerError as exc:
            logger.error("Efficiency report failed: {}", exc)
            return FAILED_REPORT_MESSAGE
        return text or EMPTY_REPORT_MESSAGE
