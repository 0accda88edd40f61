from __future__ import annotations

from dataclasses import asdict
from datetime import date, datetime
from typing import Literal

from pydantic import BaseModel, Field

from ..intervals import TimeInterval
from ..models import Category, DailyLog, Task


Priority = Literal["low", "medium", "high"]
Status = Literal["todo", "in_progress", "completed"]


class TaskOut(BaseModel):
    id: str
    title: str
    description: str
    parent_id: str | None = None
    category: str
    priority: str
    status: str
    estimated_time: int | None = None
    actual_time: int
    own_time: int
    progress: int
    deadline: str | None = None
    days_until_deadline: int | None = None
    is_overdue: bool
    is_due_soon: bool
    tags: list[str] = Field(default_factory=list)
    created_at: datetime | None = None
    updated_at: datetime | None = None
    completed_at: datetime | None = None
    children: list[TaskOut] = Field(default_factory=list)


TaskOut.model_rebuild()


class TaskCreate(BaseModel):
    title: str = Field(min_length=1)
    description: str = ""
    parent_id: str | None = None
    category: str = "general"
    priority: Priority = "medium"
    status: Status = "todo"
    estimated_time: int | None = Field(default=None, ge=0)
    deadline: str | None = None
    tags: list[str] = Field(default_factory=list)


class TaskUpdate(BaseModel):
    title: str | None = Field(default=None, min_length=1)
    description: str | None = None
    parent_id: str | None = None
    category: str | None = None
    priority: Priority | None = None
    status: Status | None = None
    estimated_time: int | None = Field(default=None, ge=0)
    actual_time: int | None = Field(default=None, ge=0)
    deadline: str | None = None
    tags: list[str] | None = None


class IntervalOut(BaseModel):
    id: str
    task_id: str
    start_time: datetime
    end_time: datetime | None = None
    duration: int
    description: str
    date: str
    is_paused: bool
    paused_duration: int
    state: str
    is_active: bool
    created_at: datetime | None = None
    updated_at: datetime | None = None


class StartTrackingRequest(BaseModel):
    description: str = ""


class ActiveOut(BaseModel):
    active_task_id: str | None = None
    entries: list[IntervalOut] = Field(default_factory=list)


class DailyLogOut(BaseModel):
    id: str
    date: str
    total_time: int
    tasks_completed: list[dict[str, object]] = Field(default_factory=list)
    tasks_worked_on: list[dict[str, object]] = Field(default_factory=list)
    notes: str
    productivity_score: int
    created_at: datetime | None = None
    updated_at: datetime | None = None


class NotesUpdate(BaseModel):
    notes: str = ""


class DayPointOut(BaseModel):
    date: str
    time: int
    tasks: int
    score: int


class ProductivityOut(BaseModel):
    start: str
    end: str
    total_time: int
    tasks_completed: int
    average_productivity: float
    days: list[DayPointOut] = Field(default_factory=list)
    category_breakdown: dict[str, int] = Field(default_factory=dict)


class DeadlinesOut(BaseModel):
    overdue: list[TaskOut] = Field(default_factory=list)
    due_tomorrow: list[TaskOut] = Field(default_factory=list)
    due_this_week: list[TaskOut] = Field(default_factory=list)


class CategoryOut(BaseModel):
    id: str
    name: str
    color: str
    description: str
    is_default: bool
    created_at: datetime | None = None
    updated_at: datetime | None = None


class CategoryCreate(BaseModel):
    name: str = Field(min_length=1)
    color: str = "#3b82f6"
    description: str = ""


class CategoryUpdate(BaseModel):
    name: str | None = None
    color: str | None = None
    description: str | None = None


class FileResult(BaseModel):
    path: str


class ExportResult(BaseModel):
    path: str
    tasks_path: str | None = None


class HealthOut(BaseModel):
    status: str = Field(default="ok")


class MetaOut(BaseModel):
    app: str
    version: str
    user_id: str
    data_dir: str
    db_path: str
    platform: str


def task_out(task: Task, today: date) -> TaskOut:
    return TaskOut(**task.to_dict(today))


def interval_out(interval: TimeInterval, now: datetime | None = None) -> IntervalOut:
    return IntervalOut(**interval.to_dict(now))


def log_out(log: DailyLog) -> DailyLogOut:
    return DailyLogOut(**log.to_dict())


def category_out(category: Category) -> CategoryOut:
    return CategoryOut(**asdict(category))
