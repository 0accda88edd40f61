from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from pathlib import Path

from .db import TaskClockDB
from .models import DailyLog, Task, parse_day


@dataclass(frozen=True)
class DayPoint:
    date: str
    time: int
    tasks: int
    score: int


@dataclass(frozen=True)
class ProductivityStats:
    start: str
    end: str
    total_time: int
    tasks_completed: int
    days: list[DayPoint] = field(default_factory=list)
    category_breakdown: dict[str, int] = field(default_factory=dict)

    @property
    def average_productivity(self) -> float:
        if not self.days:
            return 0.0
        return sum(point.score for point in self.days) / len(self.days)


def format_duration(minutes: int) -> str:
    total = max(0, int(minutes))
    hours, mins = divmod(total, 60)
    if hours > 0:
        return f"{hours}h {mins:02d}m"
    return f"{mins}m"


async def build_productivity_stats(db: TaskClockDB, start: str, end: str) -> ProductivityStats:
    first = parse_day(start).isoformat()
    last = parse_day(end).isoformat()
    logs = await db.list_daily_logs(first, last)
    tasks = {task.id: task for task in await db.list_all_tasks()}
    return _collect_stats(first, last, logs, tasks)


async def build_time_trends(db: TaskClockDB, days: int, today: date) -> dict[str, object]:
    span = max(1, int(days))
    start = (today - timedelta(days=span - 1)).isoformat()
    stats = await build_productivity_stats(db, start, today.isoformat())
    return {
        "start": stats.start,
        "end": stats.end,
        "time_by_day": [{"date": p.date, "time": p.time, "tasks": p.tasks} for p in stats.days],
        "productivity_scores": [{"date": p.date, "score": p.score} for p in stats.days],
        "category_breakdown": stats.category_breakdown,
        "total_time": stats.total_time,
        "total_tasks": stats.tasks_completed,
        "average_time_per_day": stats.total_time / span,
        "average_tasks_per_day": stats.tasks_completed / span,
    }


async def build_summary(
    db: TaskClockDB,
    today_log: DailyLog,
    all_tasks: list[Task],
    active_count: int,
    today: date,
) -> dict[str, object]:
    week = await build_productivity_stats(db, (today - timedelta(days=7)).isoformat(), today.isoformat())
    return {
        "today": {
            "time": today_log.total_time,
            "tasks_completed": len(today_log.tasks_completed),
            "tasks_worked_on": len(today_log.tasks_worked_on),
            "productivity_score": today_log.productivity_score,
        },
        "week": {
            "total_time": week.total_time,
            "tasks_completed": week.tasks_completed,
            "average_productivity": week.average_productivity,
            "category_breakdown": week.category_breakdown,
        },
        "overall": {
            "total_tasks": len(all_tasks),
            "completed_tasks": sum(1 for task in all_tasks if task.status == "completed"),
            "in_progress_tasks": sum(1 for task in all_tasks if task.status == "in_progress"),
            "active_tracking": active_count,
        },
    }


async def generate_weekly_report(
    db: TaskClockDB,
    out_dir: Path,
    year: int | None = None,
    week: int | None = None,
    now: datetime | None = None,
) -> Path:
    ref = now or datetime.now().astimezone()
    iso = ref.isocalendar()
    target_year = int(year or iso.year)
    target_week = int(week or iso.week)

    week_start = date.fromisocalendar(target_year, target_week, 1)
    week_end = week_start + timedelta(days=6)
    stats = await build_productivity_stats(db, week_start.isoformat(), week_end.isoformat())
    intervals = [
        item
        for item in await db.list_intervals_between_dates(week_start.isoformat(), week_end.isoformat())
        if item.is_closed
    ]
    tasks = {task.id: task for task in await db.list_all_tasks()}

    task_totals: dict[str, int] = {}
    for item in intervals:
        task = tasks.get(item.task_id)
        name = task.title if task is not None and task.title.strip() else "(deleted task)"
        task_totals[name] = task_totals.get(name, 0) + item.duration

    lines: list[str] = []
    lines.append(f"# TaskClock weekly report {target_year}-W{target_week:02d}")
    lines.append("")
    lines.append(f"- Period: {week_start.isoformat()} to {week_end.isoformat()}")
    lines.append(f"- Generated: {ref.strftime('%Y-%m-%d %H:%M:%S %Z')}")
    lines.append("")

    lines.append("## Overview")
    lines.append(f"- Time tracked: {format_duration(stats.total_time)}")
    lines.append(f"- Tasks completed: {stats.tasks_completed}")
    lines.append(f"- Intervals: {len(intervals)}")
    lines.append(f"- Average productivity score: {stats.average_productivity:.1f}")
    lines.append("")

    lines.append("## Tasks")
    if task_totals:
        lines.append("| Task | Time |")
        lines.append("| --- | --- |")
        for name, minutes in sorted(task_totals.items(), key=lambda x: x[1], reverse=True):
            lines.append(f"| {name} | {format_duration(minutes)} |")
    else:
        lines.append("No time tracked this week.")
    lines.append("")

    lines.append("## Categories")
    if stats.category_breakdown:
        lines.append("| Category | Time |")
        lines.append("| --- | --- |")
        for name, minutes in sorted(stats.category_breakdown.items(), key=lambda x: x[1], reverse=True):
            lines.append(f"| {name} | {format_duration(minutes)} |")
    else:
        lines.append("No category data this week.")
    lines.append("")

    lines.append("## Daily")
    if stats.days:
        lines.append("| Date | Time | Completed | Score |")
        lines.append("| --- | --- | --- | --- |")
        for point in stats.days:
            lines.append(f"| {point.date} | {format_duration(point.time)} | {point.tasks} | {point.score} |")
    else:
        lines.append("No daily logs this week.")
    lines.append("")

    out_dir = Path(out_dir)
    out_dir.mkdir(parents=True, exist_ok=True)
    report_path = out_dir / f"week-{target_year}-{target_week:02d}.md"
    report_path.write_text("\n".join(lines), encoding="utf-8")
    return report_path


def _collect_stats(start: str, end: str, logs: list[DailyLog], tasks: dict[str, Task]) -> ProductivityStats:
    total_time = 0
    tasks_completed = 0
    days: list[DayPoint] = []
    categories: dict[str, int] = {}

    for log in logs:
        total_time += log.total_time
        tasks_completed += len(log.tasks_completed)
        days.append(
            DayPoint(
                date=log.date,
                time=log.total_time,
                tasks=len(log.tasks_completed),
                score=log.productivity_score,
            )
        )
        for worked in log.tasks_worked_on:
            task = tasks.get(worked.get("id", ""))
            if task is None:
                continue
            category = task.category or "general"
            categories[category] = categories.get(category, 0) + int(worked.get("time_spent", 0))

    return ProductivityStats(
        start=start,
        end=end,
        total_time=total_time,
        tasks_completed=tasks_completed,
        days=days,
        category_breakdown=categories,
    )
