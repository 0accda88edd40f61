from __future__ import annotations

import argparse
import asyncio
from datetime import date
from pathlib import Path
from typing import Awaitable, Callable

from .config import configure_logging, get_settings, is_valid_user_id
from .db import user_db_path
from .errors import TaskClockError
from .exporting import export_tasks_csv, export_time_entries_csv
from .models import TASK_PRIORITIES, TASK_STATUSES, Task, parse_day
from .reporting import format_duration, generate_weekly_report
from .users import Workspace, open_workspace


def parse_user(value: str) -> str:
    text = value.strip()
    if not is_valid_user_id(text):
        raise argparse.ArgumentTypeError(f"invalid user id: {value}")
    return text


def parse_date_arg(value: str) -> str:
    try:
        return parse_day(value).isoformat()
    except ValueError as exc:
        raise argparse.ArgumentTypeError(f"invalid date: {value}, use YYYY-MM-DD") from exc


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="taskclock",
        description="TaskClock: hierarchical tasks, pausable time tracking and daily logs",
    )
    parser.add_argument("--data-dir", default=None, help="data directory (default: TASKCLOCK_DATA_DIR or taskclock/data)")
    parser.add_argument("--user", type=parse_user, default=None, help="user id whose store to use")
    parser.add_argument("--log-level", default=None, help="logging level (default: TASKCLOCK_LOG_LEVEL or INFO)")

    subparsers = parser.add_subparsers(dest="command", required=True)

    serve_parser = subparsers.add_parser("serve", help="run the HTTP API")
    serve_parser.add_argument("--host", default=None, help="bind address")
    serve_parser.add_argument("--port", type=int, default=None, help="bind port")

    add_parser = subparsers.add_parser("add", help="create a task")
    add_parser.add_argument("title", help="task title")
    add_parser.add_argument("--parent", default=None, help="parent task id")
    add_parser.add_argument("--description", default="", help="task description")
    add_parser.add_argument("--category", default="general", help="category id")
    add_parser.add_argument("--priority", choices=TASK_PRIORITIES, default="medium", help="priority")
    add_parser.add_argument("--deadline", type=parse_date_arg, default=None, help="deadline YYYY-MM-DD")
    add_parser.add_argument("--estimate", type=int, default=None, help="estimated minutes")
    add_parser.add_argument("--tags", default="", help="comma separated tags")

    tasks_parser = subparsers.add_parser("tasks", help="show the task tree")
    tasks_parser.add_argument("--status", choices=TASK_STATUSES, default=None, help="only tasks with this status")
    tasks_parser.add_argument("--category", default=None, help="only tasks in this category")

    start_parser = subparsers.add_parser("start", help="start tracking a task")
    start_parser.add_argument("task_id")
    start_parser.add_argument("--description", default="", help="what this interval is about")

    for name, help_text in (
        ("pause", "pause the tracked task"),
        ("resume", "resume a paused task"),
        ("stop", "stop tracking a task"),
    ):
        sub = subparsers.add_parser(name, help=help_text)
        sub.add_argument("task_id")

    subparsers.add_parser("status", help="show open intervals")

    log_parser = subparsers.add_parser("log", help="show a daily log")
    log_parser.add_argument("--date", type=parse_date_arg, default=None, help="day YYYY-MM-DD (default: today)")
    log_parser.add_argument("--notes", default=None, help="replace the day's notes")

    report_parser = subparsers.add_parser("report", help="write a weekly Markdown report")
    report_parser.add_argument("--year", type=int, default=None, help="ISO year")
    report_parser.add_argument("--week", type=int, default=None, help="ISO week")
    report_parser.add_argument("--out-dir", default=None, help="output directory (default: next to the store)")

    export_parser = subparsers.add_parser("export", help="export CSV files")
    export_parser.add_argument("--out-dir", default=None, help="output directory (default: next to the store)")
    export_parser.add_argument("--tasks", action="store_true", help="also export tasks.csv")

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    settings = get_settings()
    configure_logging(args.log_level or settings.log_level)
    data_dir = Path(args.data_dir).expanduser() if args.data_dir else settings.data_dir
    user_id = args.user or settings.default_user

    if args.command == "serve":
        return _handle_serve(args, data_dir, user_id)

    handlers: dict[str, Callable[[argparse.Namespace, Workspace], Awaitable[int]]] = {
        "add": _handle_add,
        "tasks": _handle_tasks,
        "start": _handle_start,
        "pause": _handle_pause,
        "resume": _handle_resume,
        "stop": _handle_stop,
        "status": _handle_status,
        "log": _handle_log,
        "report": _handle_report,
        "export": _handle_export,
    }
    handler = handlers.get(args.command)
    if handler is None:
        parser.print_help()
        return 2

    try:
        return asyncio.run(_run(handler, args, data_dir, user_id))
    except TaskClockError as exc:
        print(f"error: {exc}")
        return 1
    except ValueError as exc:
        print(f"error: {exc}")
        return 2


async def _run(
    handler: Callable[[argparse.Namespace, Workspace], Awaitable[int]],
    args: argparse.Namespace,
    data_dir: Path,
    user_id: str,
) -> int:
    settings = get_settings()
    workspace = await open_workspace(
        user_db_path(data_dir, user_id),
        tick_seconds=settings.tick_seconds,
        journal_mode=settings.journal_mode,
        user_id=user_id,
    )
    return await handler(args, workspace)


def _handle_serve(args: argparse.Namespace, data_dir: Path, user_id: str) -> int:
    import uvicorn

    from .api.app import create_app

    settings = get_settings()
    app = create_app(data_dir=data_dir, default_user=user_id, settings=settings, dev_url=settings.dev_url)
    uvicorn.run(
        app,
        host=args.host or settings.host,
        port=args.port or settings.port,
        log_level=(args.log_level or settings.log_level).lower(),
    )
    return 0


async def _handle_add(args: argparse.Namespace, workspace: Workspace) -> int:
    task = await workspace.service.create_task(
        title=args.title,
        description=args.description,
        parent_id=args.parent,
        category=args.category,
        priority=args.priority,
        deadline=args.deadline,
        estimated_time=args.estimate,
        tags=args.tags,
    )
    print(f"created {task.id}  {task.title}")
    return 0


async def _handle_tasks(args: argparse.Namespace, workspace: Workspace) -> int:
    service = workspace.service
    today = service.today()
    if args.status or args.category:
        items = await service.get_all_tasks()
        if args.status:
            items = [task for task in items if task.status == args.status]
        if args.category:
            items = [task for task in items if task.category == args.category]
        if not items:
            print("No matching tasks.")
            return 0
        for task in items:
            print(_task_line(task, today, 0))
        return 0

    roots = await service.get_hierarchy()
    if not roots:
        print("No tasks yet.")
        return 0
    for root in roots:
        _print_tree(root, today, 0)
    return 0


async def _handle_start(args: argparse.Namespace, workspace: Workspace) -> int:
    interval = await workspace.service.start_tracking(args.task_id, args.description)
    print(f"tracking {interval.task_id} since {interval.start_time.astimezone().strftime('%H:%M:%S')}")
    return 0


async def _handle_pause(args: argparse.Namespace, workspace: Workspace) -> int:
    interval = await workspace.service.pause_tracking(args.task_id)
    if interval is None:
        print(f"{args.task_id} is not being tracked.")
        return 1
    print(f"paused {args.task_id} at {format_duration(interval.current_duration(workspace.service.clock.now()))}")
    return 0


async def _handle_resume(args: argparse.Namespace, workspace: Workspace) -> int:
    interval = await workspace.service.resume_tracking(args.task_id)
    if interval is None:
        print(f"{args.task_id} is not paused.")
        return 1
    print(f"resumed {args.task_id}")
    return 0


async def _handle_stop(args: argparse.Namespace, workspace: Workspace) -> int:
    interval = await workspace.service.stop_tracking(args.task_id)
    if interval is None:
        print(f"{args.task_id} has no open interval.")
        return 1
    print(f"stopped {args.task_id}: {format_duration(interval.duration)}")
    return 0


async def _handle_status(args: argparse.Namespace, workspace: Workspace) -> int:
    entries = workspace.service.get_active_time_entries()
    if not entries:
        print("Nothing is being tracked.")
        return 0

    now = workspace.service.clock.now()
    for item in entries:
        task = await workspace.db.get_task(item.task_id)
        title = task.title if task is not None else "-"
        print(
            f"{item.state.value:<6} | {format_duration(item.current_duration(now))} | "
            f"{item.task_id} | {title}"
        )
    return 0


async def _handle_log(args: argparse.Namespace, workspace: Workspace) -> int:
    day = args.date or workspace.daily.today()
    if args.notes is not None:
        log = await workspace.service.update_daily_notes(day, args.notes)
    else:
        log = await workspace.service.get_daily_log(day)

    print(f"[{log.date}]")
    print(f"Time tracked: {format_duration(log.total_time)}")
    print(f"Productivity score: {log.productivity_score}")
    print(f"Completed: {len(log.tasks_completed)}")
    for item in log.tasks_completed:
        print(f"  - {item.get('title') or item.get('id')}")
    print(f"Worked on: {len(log.tasks_worked_on)}")
    for item in log.tasks_worked_on:
        print(f"  - {item.get('title') or item.get('id')}: {format_duration(int(item.get('time_spent', 0)))}")
    if log.notes:
        print(f"Notes: {log.notes}")
    return 0


async def _handle_report(args: argparse.Namespace, workspace: Workspace) -> int:
    out_dir = Path(args.out_dir) if args.out_dir else workspace.db.db_path.parent / "out"
    report_path = await generate_weekly_report(
        db=workspace.db,
        out_dir=out_dir,
        year=args.year,
        week=args.week,
    )
    print(f"Report written: {report_path}")
    return 0


async def _handle_export(args: argparse.Namespace, workspace: Workspace) -> int:
    out_dir = Path(args.out_dir) if args.out_dir else workspace.db.db_path.parent / "out"
    csv_path = await export_time_entries_csv(workspace.db, out_dir)
    print(f"CSV exported: {csv_path}")
    if args.tasks:
        tasks_path = await export_tasks_csv(workspace.db, out_dir, workspace.service.today())
        print(f"CSV exported: {tasks_path}")
    return 0


def _print_tree(task: Task, today: date, depth: int) -> None:
    print(_task_line(task, today, depth))
    for child in task.children:
        _print_tree(child, today, depth + 1)


def _task_line(task: Task, today: date, depth: int) -> str:
    marker = {"todo": "[ ]", "in_progress": "[~]", "completed": "[x]"}.get(task.status, "[?]")
    deadline = ""
    if task.deadline:
        deadline = f" | due {task.deadline}" + (" (overdue)" if task.is_overdue(today) else "")
    return (
        f"{'  ' * depth}{marker} {task.title} | {format_duration(task.actual_time)} | "
        f"{task.category} | {task.id}{deadline}"
    )
