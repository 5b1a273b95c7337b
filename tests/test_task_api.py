"""Tests for the board HTTP API (server/task_api.py, server/board_api.py)."""

from __future__ import annotations

from datetime import date
from pathlib import Path

import pytest
from httpx import ASGITransport, AsyncClient

from unigestor.config import AppSettings
from unigestor.report import EfficiencyReporter
from unigestor.server.api import create_app
from unigestor.task_engine.engine import TaskEngine
from unigestor.task_engine.model import Task, TaskStatus


class _StubSummarizer:
    def __init__(self) -> None:
        self.prompts: list[str] = []

    def summarize(self, prompt: str) -> str:
        self.prompts.append(prompt)
        return "## Reporte de prueba"


def _board() -> list[Task]:
    return [
        Task(
            id="p1",
            department="Finanzas",
            title="Conciliaciones",
            start_date="2026-01-10",
            end_date="2026-01-20",
            subtasks=[
                Task(id="t1", department="Finanzas", title="Reporte bancos", is_specific_task=True,
                     assignee="Rosa", assignee_id="u1"),
            ],
        ),
        Task(id="p2", department="Publicidad", title="Campaña", status=TaskStatus.COMPLETED),
    ]


@pytest.fixture
def summarizer() -> _StubSummarizer:
    return _StubSummarizer()


@pytest.fixture
def app(tmp_path: Path, summarizer: _StubSummarizer):
    """Create a test app over an in-memory engine and a temp project directory."""
    project_dir = tmp_path / "campus"
    project_dir.mkdir()
    engine = TaskEngine(forest=_board(), departments=["Finanzas", "Publicidad", "Vinculación"])
    return create_app(
        project_dir=project_dir,
        engine=engine,
        reporter=EfficiencyReporter(summarizer),
        enable_cors=False,
    )


@pytest.fixture
async def client(app):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


@pytest.mark.anyio
class TestTaskReads:
    async def test_list(self, client: AsyncClient) -> None:
        resp = await client.get("/api/tasks")
        assert resp.status_code == 200
        data = resp.json()
        assert data["total"] == 2
        assert [t["id"] for t in data["tasks"]] == ["p1", "p2"]
        assert data["tasks"][0]["subtasks"][0]["id"] == "t1"

    async def test_list_search_keeps_parent(self, client: AsyncClient) -> None:
        resp = await client.get("/api/tasks", params={"search": "bancos"})
        data = resp.json()
        assert [t["id"] for t in data["tasks"]] == ["p1"]
        assert [t["id"] for t in data["tasks"][0]["subtasks"]] == ["t1"]

    async def test_list_by_department_and_sort(self, client: AsyncClient) -> None:
        resp = await client.get("/api/tasks", params={"department": "Publicidad"})
        assert [t["id"] for t in resp.json()["tasks"]] == ["p2"]
        resp = await client.get("/api/tasks", params={"sort_key": "title", "direction": "asc"})
        assert [t["id"] for t in resp.json()["tasks"]] == ["p2", "p1"]

    async def test_list_as_auxiliar(self, client: AsyncClient) -> None:
        resp = await client.get(
            "/api/tasks",
            params={"user_id": "u9", "role": "auxiliar", "user_department": "Finanzas"},
        )
        assert resp.json()["tasks"] == []

    async def test_list_bad_params(self, client: AsyncClient) -> None:
        assert (await client.get("/api/tasks", params={"status": "Hecho"})).status_code == 400
        assert (await client.get("/api/tasks", params={"sort_key": "nope"})).status_code == 400
        assert (await client.get("/api/tasks", params={"role": "root"})).status_code == 400

    async def test_flat(self, client: AsyncClient) -> None:
        resp = await client.get("/api/tasks/flat")
        data = resp.json()
        assert [t["id"] for t in data["tasks"]] == ["p1", "t1", "p2"]
        assert "subtasks" not in data["tasks"][0]

    async def test_get_and_404(self, client: AsyncClient) -> None:
        resp = await client.get("/api/tasks/t1")
        assert resp.status_code == 200
        assert resp.json()["task"]["assignee"] == "Rosa"
        assert (await client.get("/api/tasks/ghost")).status_code == 404


@pytest.mark.anyio
class TestTaskWrites:
    async def test_create_root(self, client: AsyncClient) -> None:
        resp = await client.post("/api/tasks", json={"title": "Ferias", "department": "Vinculación"})
        assert resp.status_code == 201
        task = resp.json()["task"]
        assert task["is_specific_task"] is False
        listing = (await client.get("/api/tasks")).json()
        assert listing["tasks"][0]["id"] == task["id"]

    async def test_create_child(self, client: AsyncClient) -> None:
        resp = await client.post("/api/tasks", json={
            "title": "Reporte caja",
            "department": "Finanzas",
            "parent_id": "p1",
            "id": "t2",
        })
        assert resp.status_code == 201
        assert resp.json()["task"]["is_specific_task"] is True
        parent = (await client.get("/api/tasks/p1")).json()["task"]
        assert [t["id"] for t in parent["subtasks"]] == ["t1", "t2"]

    async def test_create_errors(self, client: AsyncClient) -> None:
        resp = await client.post("/api/tasks", json={"title": "x", "department": "Marte"})
        assert resp.status_code == 400
        resp = await client.post("/api/tasks", json={"title": "x", "department": "Finanzas", "parent_id": "ghost"})
        assert resp.status_code == 404
        resp = await client.post("/api/tasks", json={"title": "", "department": "Finanzas"})
        assert resp.status_code == 422
        resp = await client.post("/api/tasks", json={"title": "x", "department": "Finanzas", "status": "Hecho"})
        assert resp.status_code == 400

    async def test_set_status(self, client: AsyncClient) -> None:
        resp = await client.post("/api/tasks/t1/status", json={"status": "Completado"})
        assert resp.status_code == 200
        assert resp.json()["task"]["status"] == "Completado"
        parent = (await client.get("/api/tasks/p1")).json()["task"]
        assert parent["status"] == "Pendiente"

    async def test_set_status_errors(self, client: AsyncClient) -> None:
        assert (await client.post("/api/tasks/ghost/status", json={"status": "Completado"})).status_code == 404
        assert (await client.post("/api/tasks/t1/status", json={"status": "Hecho"})).status_code == 400

    async def test_patch(self, client: AsyncClient) -> None:
        resp = await client.patch("/api/tasks/p1", json={"title": "Conciliaciones 2026", "end_date": "2026-01-31"})
        assert resp.status_code == 200
        task = resp.json()["task"]
        assert task["title"] == "Conciliaciones 2026"
        assert task["start_date"] == "2026-01-10"
        assert task["end_date"] == "2026-01-31"

    async def test_patch_rejects_structural_field(self, client: AsyncClient) -> None:
        resp = await client.patch("/api/tasks/p1", json={"subtasks": []})
        assert resp.status_code == 400
        assert "structural" in resp.json()["detail"]
        assert (await client.patch("/api/tasks/ghost", json={"title": "x"})).status_code == 404

    async def test_put_replace(self, client: AsyncClient) -> None:
        body = {"id": "p2", "title": "Campaña 2026", "department": "Publicidad", "status": "En Proceso"}
        resp = await client.put("/api/tasks/p2", json=body)
        assert resp.status_code == 200
        assert resp.json()["task"]["status"] == "En Proceso"
        resp = await client.put("/api/tasks/p2", json={**body, "id": "other"})
        assert resp.status_code == 400
        resp = await client.put("/api/tasks/ghost", json={"title": "x"})
        assert resp.status_code == 404

    async def test_create_with_taken_id_conflicts(self, client: AsyncClient) -> None:
        resp = await client.post("/api/tasks", json={"title": "Otra", "department": "Finanzas", "id": "p1"})
        assert resp.status_code == 409
        resp = await client.post("/api/tasks", json={
            "title": "Copia", "department": "Finanzas", "parent_id": "p2", "id": "t1",
        })
        assert resp.status_code == 409
        assert (await client.get("/api/tasks/p1")).json()["task"]["title"] == "Conciliaciones"
        assert (await client.get("/api/tasks/p2")).json()["task"]["subtasks"] == []
        assert (await client.get("/api/tasks/flat")).json()["total"] == 3

    async def test_put_subtask_id_owned_elsewhere_conflicts(self, client: AsyncClient) -> None:
        body = {
            "id": "p2",
            "title": "Campaña",
            "department": "Publicidad",
            "subtasks": [{"id": "t1", "title": "Robada", "department": "Publicidad"}],
        }
        resp = await client.put("/api/tasks/p2", json=body)
        assert resp.status_code == 409
        assert (await client.get("/api/tasks/t1")).json()["task"]["title"] == "Reporte bancos"

    async def test_put_unknown_department(self, client: AsyncClient) -> None:
        body = {"id": "p2", "title": "Campaña", "department": "Marte"}
        assert (await client.put("/api/tasks/p2", json=body)).status_code == 400
        body = {
            "id": "p2",
            "title": "Campaña",
            "department": "Publicidad",
            "subtasks": [{"id": "s1", "title": "Volantes", "department": "Marte"}],
        }
        assert (await client.put("/api/tasks/p2", json=body)).status_code == 400
        assert (await client.get("/api/tasks/p2")).json()["task"]["subtasks"] == []

    @pytest.mark.parametrize("changes", [
        {"department": "Marte"},
        {"title": ""},
        {"title": None},
        {"start_date": "mañana"},
        {"is_specific_task": "false"},
    ])
    async def test_patch_rejects_bad_values(self, client: AsyncClient, changes: dict) -> None:
        resp = await client.patch("/api/tasks/p1", json=changes)
        assert resp.status_code == 400
        task = (await client.get("/api/tasks/p1")).json()["task"]
        assert task["department"] == "Finanzas"
        assert task["title"] == "Conciliaciones"
        assert task["start_date"] == "2026-01-10"
        assert task["is_specific_task"] is False

    async def test_resources(self, client: AsyncClient) -> None:
        resp = await client.post("/api/tasks/t1/resources", json={
            "name": "Estado de cuenta",
            "url": "https://drive.google.com/file/d/1",
            "category": "Evidencias",
        })
        assert resp.status_code == 201
        first = resp.json()["task"]["resources"][0]
        assert first["type"] == "DRIVE"

        resp = await client.post("/api/tasks/t1/resources", json={"name": "Guía", "url": "https://x.mx/g.pdf"})
        second = resp.json()["task"]["resources"][1]
        assert second["type"] == "PDF"
        assert second["category"] == "Otros"

        resp = await client.put("/api/tasks/t1/resources", json={"resources": [second, first]})
        assert [r["id"] for r in resp.json()["task"]["resources"]] == [second["id"], first["id"]]

        resp = await client.delete(f"/api/tasks/t1/resources/{second['id']}")
        assert [r["id"] for r in resp.json()["task"]["resources"]] == [first["id"]]

        assert (await client.delete("/api/tasks/ghost/resources/r1")).status_code == 404


@pytest.mark.anyio
class TestBoard:
    async def test_departments(self, client: AsyncClient) -> None:
        data = (await client.get("/api/departments")).json()
        assert data["departments"] == ["Finanzas", "Publicidad", "Vinculación"]
        assert data["counts"] == {"Finanzas": 2, "Publicidad": 1, "Vinculación": 0}
        assert data["active"] == "General"

    async def test_add_remove_department(self, client: AsyncClient) -> None:
        resp = await client.post("/api/departments", json={"name": "Calidad"})
        assert resp.status_code == 201
        assert "Calidad" in resp.json()["departments"]
        assert (await client.post("/api/departments", json={"name": "Calidad"})).status_code == 400
        resp = await client.delete("/api/departments/Calidad")
        assert resp.status_code == 200
        assert "Calidad" not in resp.json()["departments"]
        assert (await client.delete("/api/departments/Calidad")).status_code == 404

    async def test_remove_in_use_conflict(self, client: AsyncClient) -> None:
        resp = await client.delete("/api/departments/Finanzas")
        assert resp.status_code == 409

    async def test_rename_department(self, client: AsyncClient) -> None:
        resp = await client.post("/api/departments/Finanzas/rename", json={"new_name": "Tesorería"})
        assert resp.status_code == 200
        assert resp.json()["departments"][0] == "Tesorería"
        task = (await client.get("/api/tasks/t1")).json()["task"]
        assert task["department"] == "Tesorería"
        assert (await client.post("/api/departments/Nada/rename", json={"new_name": "X"})).status_code == 404

    async def test_active_department(self, client: AsyncClient) -> None:
        resp = await client.put("/api/departments/active", json={"name": "Publicidad"})
        assert resp.json()["active"] == "Publicidad"
        listing = (await client.get("/api/tasks")).json()
        assert [t["id"] for t in listing["tasks"]] == ["p2"]
        assert (await client.put("/api/departments/active", json={"name": "Marte"})).status_code == 404

    async def test_kpis(self, client: AsyncClient) -> None:
        data = (await client.get("/api/kpis")).json()
        assert data["total"] == 3
        assert data["completed"] == 1
        assert data["efficiency_rate"] == 33
        assert data["by_department"] == {"Finanzas": 2, "Publicidad": 1}

    async def test_calendar(self, client: AsyncClient) -> None:
        data = (await client.get("/api/calendar/2026-01-15")).json()
        assert [t["id"] for t in data["tasks"]] == ["p1"]
        assert (await client.get("/api/calendar/ayer")).status_code == 400

    async def test_upcoming(self, client: AsyncClient, app) -> None:
        resp = await client.get("/api/calendar/upcoming", params={"today": "2026-01-05", "days": 7})
        assert resp.status_code == 200
        data = resp.json()
        assert data["today"] == "2026-01-05"
        assert data["starting_today"] == []
        assert [t["id"] for t in data["upcoming"]] == ["p1"]
        assert "subtasks" not in data["upcoming"][0]

        data = (await client.get("/api/calendar/upcoming", params={"today": "2026-01-05", "days": 3})).json()
        assert data["upcoming"] == []

        app.state.settings.upcoming_days = 2
        data = (await client.get("/api/calendar/upcoming", params={"today": "2026-01-08"})).json()
        assert data["days"] == 2
        assert [t["id"] for t in data["upcoming"]] == ["p1"]

        params = {"today": "2026-01-10", "department": "Publicidad"}
        assert (await client.get("/api/calendar/upcoming", params=params)).json()["starting_today"] == []
        assert (await client.get("/api/calendar/upcoming", params={"today": "ayer"})).status_code == 400

    async def test_upcoming_defaults_to_local_today(self, client: AsyncClient, monkeypatch) -> None:
        monkeypatch.setattr(AppSettings, "today", lambda self: date(2026, 1, 10))
        data = (await client.get("/api/calendar/upcoming")).json()
        assert data["today"] == "2026-01-10"
        assert data["days"] == 7
        assert [t["id"] for t in data["starting_today"]] == ["p1"]

    async def test_settings(self, client: AsyncClient, app) -> None:
        data = (await client.get("/api/settings")).json()
        assert data["app_name"] == "UniGestor AI"
        body = {
            "app_name": "Campus Norte",
            "time_zone": "America/Monterrey",
            "resource_categories": [{"id": "c1", "name": "Actas"}],
        }
        resp = await client.put("/api/settings", json=body)
        assert resp.status_code == 200
        assert resp.json()["resource_categories"][0]["name"] == "Actas"
        assert (app.state.project_dir / ".unigestor" / "config.yaml").exists()
        bad = await client.put("/api/settings", json={**body, "time_zone": "Mars/Olympus"})
        assert bad.status_code == 400

    async def test_efficiency_report(self, client: AsyncClient, summarizer: _StubSummarizer) -> None:
        resp = await client.post("/api/reports/efficiency", json={"department": "Finanzas"})
        assert resp.status_code == 200
        assert resp.json() == {"department": "Finanzas", "report": "## Reporte de prueba"}
        assert "Conciliaciones" in summarizer.prompts[0]
        assert "Campaña" not in summarizer.prompts[0]

    async def test_events(self, client: AsyncClient) -> None:
        data = (await client.get("/api/events")).json()
        assert data == {"events": [], "total": 0}

    async def test_root(self, client: AsyncClient) -> None:
        data = (await client.get("/")).json()
        assert data["status"] == "running"
