from __future__ import annotations

import argparse
import io
import json
import sys
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.markup import escape
from rich.table import Table
from rich.tree import Tree

from .config import load_settings, state_dir_for
from .constants import TASKS_FILE
from .report import EfficiencyReporter, build_efficiency_prompt
from .task_engine.departments import DepartmentError
from .task_engine.engine import TaskEngine
from .task_engine.model import Task, TaskStatus
from .task_engine.views import TaskFilter, subtask_progress

_STATUS_STYLE = {
    TaskStatus.COMPLETED: "green",
    TaskStatus.IN_PROGRESS: "cyan",
    TaskStatus.PENDING: "yellow",
    TaskStatus.OVERDUE: "red",
}


def _resolve_project_dir(project_dir: Optional[str]) -> Path:
    return Path(project_dir).expanduser().resolve() if project_dir else Path.cwd().resolve()


def _engine(project_dir: Optional[str]) -> TaskEngine:
    root = _resolve_project_dir(project_dir)
    state_dir = state_dir_for(root)
    if (state_dir / TASKS_FILE).exists():
        return TaskEngine(state_dir, persist=False)
    settings, err = load_settings(root)
    if err:
        sys.stderr.write(f"Ignoring invalid settings: {err}\n")
    return TaskEngine(state_dir, departments=list(settings.departments), persist=False)


def _task_label(task: Task) -> str:
    style = _STATUS_STYLE.get(task.status, "white")
    label = (
        f"[bold]{escape(task.title)}[/bold] [dim]{task.kind_label} {task.id}[/dim] "
        f"[{style}]{task.status.value}[/{style}]"
    )
    if task.subtasks:
        done, total = subtask_progress(task)
        label += f" [dim]{done}/{total}[/dim]"
    if task.assignee:
        label += f" [magenta]@{escape(task.assignee)}[/magenta]"
    return label


def render_forest(forest: list[Task], title: str) -> str:
    console = Console(file=io.StringIO(), record=True, width=120)
    tree = Tree(f"[bold]{escape(title)}[/bold]")

    def add_children(parent: Tree, nodes: list[Task]) -> None:
        for node in nodes:
            branch = parent.add(_task_label(node))
            add_children(branch, node.subtasks)

    add_children(tree, forest)
    console.print(tree)
    return console.export_text()


def _tree(args: argparse.Namespace) -> int:
    engine = _engine(args.project_dir)
    try:
        task_filter = TaskFilter.from_params(
            search=args.search,
            status=args.status,
            task_type=args.task_type,
            assignee=args.assignee,
        )
        tasks = engine.list_tasks(
            task_filter,
            sort_key=args.sort,
            direction=args.direction,
            department=args.department,
        )
    except ValueError as exc:
        sys.stderr.write(str(exc) + '\n')
        return 1
    if args.json:
        sys.stdout.write(json.dumps({'tasks': [t.to_dict() for t in tasks]}, indent=2, ensure_ascii=False) + '\n')
        return 0
    sys.stdout.write(render_forest(tasks, args.department or 'General'))
    return 0


def _kpi(args: argparse.Namespace) -> int:
    engine = _engine(args.project_dir)
    summary = engine.kpis(department=args.department)
    if args.json:
        sys.stdout.write(json.dumps(summary.to_dict(), indent=2, ensure_ascii=False) + '\n')
        return 0
    console = Console(file=io.StringIO(), record=True, width=100)
    table = Table(title=f"KPIs: {args.department or 'General'}", show_header=True)
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")
    table.add_row("Total", str(summary.total))
    table.add_row("Procesos", str(summary.processes))
    table.add_row("Tareas", str(summary.specific_tasks))
    table.add_row("Completado", str(summary.completed))
    table.add_row("Eficiencia", f"{summary.efficiency_rate}%")
    for status, count in summary.by_status.items():
        table.add_row(f"  {status}", str(count))
    console.print(table)
    sys.stdout.write(console.export_text())
    return 0


def _report(args: argparse.Namespace) -> int:
    engine = _engine(args.project_dir)
    tasks = engine.list_tasks(department=args.department)
    if args.dry_run:
        sys.stdout.write(build_efficiency_prompt(args.department, tasks) + '\n')
        return 0
    sys.stdout.write(EfficiencyReporter().generate(args.department, tasks) + '\n')
    return 0


def _department_list(args: argparse.Namespace) -> int:
    engine = _engine(args.project_dir)
    counts = engine.department_counts()
    payload = {'departments': [{'name': name, 'count': counts.get(name, 0)} for name in engine.departments]}
    sys.stdout.write(json.dumps(payload, indent=2, ensure_ascii=False) + '\n')
    return 0


def _department_add(args: argparse.Namespace) -> int:
    engine = _engine(args.project_dir)
    try:
        name = engine.add_department(args.name)
    except DepartmentError as exc:
        sys.stderr.write(str(exc) + '\n')
        return 1
    engine.save()
    sys.stdout.write(json.dumps({'added': name}, ensure_ascii=False) + '\n')
    return 0


def _department_remove(args: argparse.Namespace) -> int:
    engine = _engine(args.project_dir)
    try:
        engine.remove_department(args.name)
    except DepartmentError as exc:
        sys.stderr.write(str(exc) + '\n')
        return 1
    engine.save()
    sys.stdout.write(json.dumps({'removed': args.name}, ensure_ascii=False) + '\n')
    return 0


def _department_rename(args: argparse.Namespace) -> int:
    engine = _engine(args.project_dir)
    try:
        engine.rename_department(args.old_name, args.new_name)
    except DepartmentError as exc:
        sys.stderr.write(str(exc) + '\n')
        return 1
    engine.save()
    sys.stdout.write(json.dumps({'renamed': args.old_name, 'to': args.new_name.strip()}, ensure_ascii=False) + '\n')
    return 0


def _server(args: argparse.Namespace) -> int:
    import uvicorn

    from .server import create_app

    app = create_app(project_dir=_resolve_project_dir(args.project_dir))
    try:
        uvicorn.run(app, host=args.host, port=args.port)
    finally:
        app.state.engine.close()
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='UniGestor task board CLI')
    parser.add_argument('--project-dir', default=None, help='Target project directory (default: current working directory)')
    subparsers = parser.add_subparsers(dest='command')

    server = subparsers.add_parser('server', help='Start the web server')
    server.add_argument('--host', default='127.0.0.1')
    server.add_argument('--port', default=8000, type=int)
    server.set_defaults(func=_server)

    tree = subparsers.add_parser('tree', help='Show the task forest')
    tree.add_argument('--search', default=None)
    tree.add_argument('--status', default=None)
    tree.add_argument('--task-type', default=None, choices=['tarea', 'proceso'])
    tree.add_argument('--assignee', default=None)
    tree.add_argument('--department', default=None)
    tree.add_argument('--sort', default=None)
    tree.add_argument('--direction', default='asc', choices=['asc', 'desc'])
    tree.add_argument('--json', action='store_true')
    tree.set_defaults(func=_tree)

    kpi = subparsers.add_parser('kpi', help='Show dashboard KPIs')
    kpi.add_argument('--department', default=None)
    kpi.add_argument('--json', action='store_true')
    kpi.set_defaults(func=_kpi)

    report = subparsers.add_parser('report', help='Generate the AI efficiency report')
    report.add_argument('--department', default=None)
    report.add_argument('--dry-run', action='store_true', help='Print the prompt instead of calling the AI service')
    report.set_defaults(func=_report)

    department = subparsers.add_parser('department', help='Manage departments')
    dept_sub = department.add_subparsers(dest='department_command')
    dlist = dept_sub.add_parser('list', help='List departments with task counts')
    dlist.set_defaults(func=_department_list)
    dadd = dept_sub.add_parser('add', help='Add a department')
    dadd.add_argument('name')
    dadd.set_defaults(func=_department_add)
    dremove = dept_sub.add_parser('remove', help='Remove an unused department')
    dremove.add_argument('name')
    dremove.set_defaults(func=_department_remove)
    drename = dept_sub.add_parser('rename', help='Rename a department everywhere')
    drename.add_argument('old_name')
    drename.add_argument('new_name')
    drename.set_defaults(func=_department_rename)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    handler = getattr(args, 'func', None)
    if handler is None:
        parser.print_help()
        return 1
    return int(handler(args) or 0)


if __name__ == '__main__':
    raise SystemExit(main())
