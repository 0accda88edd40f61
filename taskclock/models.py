from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, Iterable

from .intervals import new_id


TASK_STATUSES = ("todo", "in_progress", "completed")
TASK_PRIORITIES = ("low", "medium", "high")
DUE_SOON_DAYS = 7


def normalize_tags(raw: str | Iterable[str]) -> list[str]:
    if isinstance(raw, str):
        pieces = raw.split(",")
    else:
        pieces = list(raw)

    clean: list[str] = []
    seen: set[str] = set()
    for piece in pieces:
        tag = str(piece).strip().lower()
        if not tag or tag in seen:
            continue
        seen.add(tag)
        clean.append(tag)
    return clean


def parse_day(text: str) -> date:
    try:
        return date.fromisoformat(text.strip())
    except ValueError as exc:
        raise ValueError(f"invalid date: {text!r}, expected YYYY-MM-DD") from exc


@dataclass
class Task:
    title: str
    id: str = field(default_factory=new_id)
    description: str = ""
    parent_id: str | None = None
    category: str = "general"
    priority: str = "medium"
    status: str = "todo"
    estimated_time: int | None = None
    actual_time: int = 0
    deadline: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    completed_at: datetime | None = None
    tags: list[str] = field(default_factory=list)
    children: list["Task"] = field(default_factory=list)

    @property
    def is_completed(self) -> bool:
        return self.status == "completed"

    def progress(self) -> int:
        if not self.children:
            return 100 if self.is_completed else 0
        done = sum(1 for child in self.children if child.is_completed)
        return int(done * 100 / len(self.children) + 0.5)

    def own_time(self) -> int:
        """Minutes tracked on this task itself, excluding what its children propagated up."""
        return max(0, self.actual_time - sum(child.actual_time for child in self.children))

    def days_until_deadline(self, today: date) -> int | None:
        if not self.deadline:
            return None
        return (parse_day(self.deadline) - today).days

    def is_overdue(self, today: date) -> bool:
        days = self.days_until_deadline(today)
        return days is not None and days < 0 and not self.is_completed

    def is_due_soon(self, today: date, days: int = DUE_SOON_DAYS) -> bool:
        remaining = self.days_until_deadline(today)
        return remaining is not None and 0 <= remaining <= days

    def walk(self) -> Iterable["Task"]:
        yield self
        for child in self.children:
            yield from child.walk()

    def to_dict(self, today: date) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "parent_id": self.parent_id,
            "category": self.category,
            "priority": self.priority,
            "status": self.status,
            "estimated_time": self.estimated_time,
            "actual_time": self.actual_time,
            "deadline": self.deadline,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
            "completed_at": self.completed_at,
            "tags": list(self.tags),
            "children": [child.to_dict(today) for child in self.children],
            "progress": self.progress(),
            "own_time": self.own_time(),
            "days_until_deadline": self.days_until_deadline(today),
            "is_overdue": self.is_overdue(today),
            "is_due_soon": self.is_due_soon(today),
        }


@dataclass
class Category:
    name: str
    id: str = field(default_factory=new_id)
    color: str = "#3b82f6"
    description: str = ""
    is_default: bool = False
    created_at: datetime | None = None
    updated_at: datetime | None = None


DEFAULT_CATEGORIES: tuple[Category, ...] = (
    Category(
        id="literature",
        name="Literature Review",
        color="#8b5cf6",
        description="Reading papers, books, and research materials",
        is_default=True,
    ),
    Category(
        id="writing",
        name="Writing",
        color="#06b6d4",
        description="Writing chapters, sections, and documentation",
        is_default=True,
    ),
    Category(
        id="research",
        name="Research",
        color="#10b981",
        description="Active research, experiments, and data collection",
        is_default=True,
    ),
    Category(
        id="analysis",
        name="Analysis",
        color="#f59e0b",
        description="Data analysis, processing, and interpretation",
        is_default=True,
    ),
    Category(
        id="methodology",
        name="Methodology",
        color="#ef4444",
        description="Research design, planning, and methodology work",
        is_default=True,
    ),
    Category(
        id="general",
        name="General",
        color="#6b7280",
        description="General tasks and miscellaneous work",
        is_default=True,
    ),
)


@dataclass
class DailyLog:
    """Per-day rollup. The productivity score is derived on every read."""

    date: str
    id: str = field(default_factory=new_id)
    total_time: int = 0
    tasks_completed: list[dict[str, Any]] = field(default_factory=list)
    tasks_worked_on: list[dict[str, Any]] = field(default_factory=list)
    notes: str = ""
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def add_completed_task(self, task_id: str, title: str) -> bool:
        if any(item["id"] == task_id for item in self.tasks_completed):
            return False
        self.tasks_completed.append({"id": task_id, "title": title})
        return True

    def add_worked_on_task(self, task_id: str, title: str, minutes: int) -> None:
        for item in self.tasks_worked_on:
            if item["id"] == task_id:
                item["time_spent"] = int(item.get("time_spent", 0)) + minutes
                return
        self.tasks_worked_on.append({"id": task_id, "title": title, "time_spent": minutes})

    def add_time(self, minutes: int) -> None:
        self.total_time += minutes

    @property
    def productivity_score(self) -> int:
        completed_weight = len(self.tasks_completed) * 10
        time_weight = min(self.total_time / 60, 8) * 5
        return int(completed_weight + time_weight + 0.5)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "date": self.date,
            "total_time": self.total_time,
            "tasks_completed": [dict(item) for item in self.tasks_completed],
            "tasks_worked_on": [dict(item) for item in self.tasks_worked_on],
            "notes": self.notes,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
            "productivity_score": self.productivity_score,
        }
