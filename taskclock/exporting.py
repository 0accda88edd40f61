from __future__ import annotations

import csv
from datetime import date
from pathlib import Path

from .db import TaskClockDB


async def export_time_entries_csv(db: TaskClockDB, out_dir: Path) -> Path:
    out_path = Path(out_dir)
    out_path.mkdir(parents=True, exist_ok=True)
    csv_path = out_path / "time-entries.csv"

    intervals = await db.list_all_intervals()
    tasks = {task.id: task for task in await db.list_all_tasks()}

    with csv_path.open("w", encoding="utf-8", newline="") as fp:
        writer = csv.writer(fp)
        writer.writerow(
            [
                "id",
                "task_id",
                "task_title",
                "category",
                "parent_id",
                "date",
                "start_time",
                "end_time",
                "duration_min",
                "paused_min",
                "description",
            ]
        )
        for item in intervals:
            task = tasks.get(item.task_id)
            writer.writerow(
                [
                    item.id,
                    item.task_id,
                    task.title if task else "",
                    task.category if task else "",
                    (task.parent_id or "") if task else "",
                    item.date,
                    item.start_time.isoformat(),
                    item.end_time.isoformat() if item.end_time else "",
                    item.duration,
                    item.paused_duration,
                    item.description,
                ]
            )

    return csv_path


async def export_tasks_csv(db: TaskClockDB, out_dir: Path, today: date) -> Path:
    out_path = Path(out_dir)
    out_path.mkdir(parents=True, exist_ok=True)
    csv_path = out_path / "tasks.csv"

    tasks = await db.list_all_tasks()

    with csv_path.open("w", encoding="utf-8", newline="") as fp:
        writer = csv.writer(fp)
        writer.writerow(
            [
                "id",
                "title",
                "parent_id",
                "category",
                "priority",
                "status",
                "estimated_min",
                "actual_min",
                "deadline",
                "is_overdue",
                "tags",
                "created_at",
                "completed_at",
            ]
        )
        for task in tasks:
            writer.writerow(
                [
                    task.id,
                    task.title,
                    task.parent_id or "",
                    task.category,
                    task.priority,
                    task.status,
                    "" if task.estimated_time is None else task.estimated_time,
                    task.actual_time,
                    task.deadline or "",
                    1 if task.is_overdue(today) else 0,
                    ",".join(task.tags),
                    task.created_at.isoformat() if task.created_at else "",
                    task.completed_at.isoformat() if task.completed_at else "",
                ]
            )

    return csv_path
