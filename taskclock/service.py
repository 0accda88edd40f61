from __future__ import annotations

from dataclasses import replace
from datetime import date, timedelta
import logging
import sqlite3
from typing import Any, Mapping

from .clock import Clock
from .daily import DailyAggregate
from .db import TaskClockDB
from .errors import CategoryError, CategoryNotFoundError, InvalidParentError, TaskNotFoundError
from .intervals import TimeInterval
from .ledger import TaskTimeLedger
from .models import TASK_PRIORITIES, TASK_STATUSES, Category, DailyLog, Task, normalize_tags, parse_day
from .tracker import TrackingCoordinator


logger = logging.getLogger(__name__)

_EDITABLE_FIELDS = (
    "title",
    "description",
    "parent_id",
    "category",
    "priority",
    "status",
    "estimated_time",
    "actual_time",
    "deadline",
    "tags",
)


def _clean_task_fields(values: Mapping[str, Any]) -> dict[str, Any]:
    clean: dict[str, Any] = {}
    for key in _EDITABLE_FIELDS:
        if key not in values:
            continue
        value = values[key]
        if key == "title":
            value = str(value or "").strip()
            if not value:
                raise ValueError("title must not be empty")
        elif key == "description":
            value = str(value or "")
        elif key == "parent_id":
            value = str(value).strip() or None if value is not None else None
        elif key == "category":
            value = str(value or "").strip() or "general"
        elif key == "priority":
            if value not in TASK_PRIORITIES:
                raise ValueError(f"priority must be one of {', '.join(TASK_PRIORITIES)}")
        elif key == "status":
            if value not in TASK_STATUSES:
                raise ValueError(f"status must be one of {', '.join(TASK_STATUSES)}")
        elif key in {"estimated_time", "actual_time"}:
            if value is not None:
                value = int(value)
                if value < 0:
                    raise ValueError(f"{key} must be >= 0")
            elif key == "actual_time":
                value = 0
        elif key == "deadline":
            value = parse_day(str(value)).isoformat() if value else None
        elif key == "tags":
            value = normalize_tags(value or [])
        clean[key] = value
    return clean


class TaskService:
    """Task lifecycle on top of the tracking core.

    This is the only caller of the coordinator: it checks that tasks exist,
    keeps the parent links a tree, and turns status changes and deletions
    into ledger, aggregate and coordinator calls.
    """

    def __init__(
        self,
        db: TaskClockDB,
        ledger: TaskTimeLedger,
        daily: DailyAggregate,
        tracker: TrackingCoordinator,
        clock: Clock,
    ) -> None:
        self.db = db
        self.ledger = ledger
        self.daily = daily
        self.tracker = tracker
        self.clock = clock
        self.tracker.add_observer(self.handle_time_update)

    def today(self) -> date:
        return self.clock.now().date()

    # Tasks

    async def create_task(self, **values: Any) -> Task:
        fields = _clean_task_fields(values)
        if "title" not in fields:
            raise ValueError("title must not be empty")

        now = self.clock.now()
        task = Task(**fields, created_at=now, updated_at=now)
        if task.parent_id is not None:
            await self._check_parent(task.id, task.parent_id)
        if task.is_completed:
            task.completed_at = now

        await self.db.insert_task(task)
        logger.info("created task %s (%s)", task.id, task.title)
        if task.is_completed:
            await self.daily.record_completion(self.daily.today(), task.id, task.title)
        return task

    async def update_task(self, task_id: str, updates: Mapping[str, Any]) -> Task:
        fields = _clean_task_fields(updates)
        newly_completed = False

        async with self.ledger.lock(task_id):
            existing = await self.db.get_task(task_id)
            if existing is None:
                raise TaskNotFoundError(task_id)

            if "parent_id" in fields and fields["parent_id"] != existing.parent_id and fields["parent_id"]:
                await self._check_parent(task_id, fields["parent_id"])

            now = self.clock.now()
            task = replace(existing, **fields, updated_at=now)
            if task.is_completed and not existing.is_completed:
                task.completed_at = now
                newly_completed = True
            elif not task.is_completed:
                task.completed_at = None

            await self.db.update_task(task)

        if newly_completed:
            await self.daily.record_completion(self.daily.today(), task.id, task.title)
            logger.info("task %s completed", task.id)

        refreshed = await self.get_task(task_id)
        return refreshed if refreshed is not None else task

    async def get_task(self, task_id: str) -> Task | None:
        _, by_id = await self._load_tree()
        return by_id.get(task_id)

    async def get_tasks(self, parent_id: str | None = None) -> list[Task]:
        roots, by_id = await self._load_tree()
        if parent_id is None:
            return roots
        parent = by_id.get(parent_id)
        return list(parent.children) if parent is not None else []

    async def get_hierarchy(self) -> list[Task]:
        roots, _ = await self._load_tree()
        return roots

    async def get_all_tasks(self) -> list[Task]:
        roots, _ = await self._load_tree()
        return [task for root in roots for task in root.walk()]

    async def get_tasks_by_category(self, category: str) -> list[Task]:
        return [task for task in await self.get_all_tasks() if task.category == category]

    async def get_tasks_by_status(self, status: str) -> list[Task]:
        return [task for task in await self.get_all_tasks() if task.status == status]

    async def delete_task(self, task_id: str) -> bool:
        task = await self.get_task(task_id)
        if task is None:
            return False

        subtree = [item.id for item in task.walk()]
        removed = await self.tracker.stop_and_delete(subtree)
        logger.info("deleted task %s and %d descendant(s)", task_id, max(0, removed - 1))
        return True

    # Tracking

    async def start_tracking(self, task_id: str, description: str = "") -> TimeInterval:
        return await self.tracker.start(task_id, description)

    async def pause_tracking(self, task_id: str) -> TimeInterval | None:
        return await self.tracker.pause(task_id)

    async def resume_tracking(self, task_id: str) -> TimeInterval | None:
        return await self.tracker.resume(task_id)

    async def stop_tracking(self, task_id: str) -> TimeInterval | None:
        return await self.tracker.stop(task_id)

    def get_active_time_entries(self) -> list[TimeInterval]:
        return self.tracker.get_all_active()

    def get_active_task_id(self) -> str | None:
        return self.tracker.get_active_task_id()

    async def get_time_entries_by_task(self, task_id: str) -> list[TimeInterval]:
        return await self.db.list_intervals_by_task(task_id)

    def handle_time_update(self, task_id: str, minutes: int) -> None:
        logger.debug("task %s has been worked on for %d minutes", task_id, minutes)

    # Daily logs

    async def get_daily_log(self, day: str) -> DailyLog:
        return await self.daily.get_or_create(day)

    async def update_daily_notes(self, day: str, notes: str) -> DailyLog:
        return await self.daily.set_notes(day, notes)

    async def get_daily_logs(self, start: str, end: str) -> list[DailyLog]:
        return await self.daily.get_range(start, end)

    # Deadlines

    async def get_overdue_tasks(self) -> list[Task]:
        today = self.today()
        return [task for task in await self.get_all_tasks() if task.is_overdue(today)]

    async def get_tasks_due_tomorrow(self) -> list[Task]:
        tomorrow = self.today() + timedelta(days=1)
        return [
            task
            for task in await self.get_all_tasks()
            if task.deadline == tomorrow.isoformat() and not task.is_completed
        ]

    async def get_tasks_due_this_week(self) -> list[Task]:
        today = self.today()
        return [
            task
            for task in await self.get_all_tasks()
            if not task.is_completed and task.is_due_soon(today)
        ]

    # Categories

    async def get_categories(self) -> list[Category]:
        return await self.db.list_categories()

    async def get_category(self, category_id: str) -> Category | None:
        return await self.db.get_category(category_id)

    async def create_category(self, name: str, color: str = "#3b82f6", description: str = "") -> Category:
        clean_name = name.strip()
        if not clean_name:
            raise CategoryError("category name is required")
        now = self.clock.now()
        category = Category(
            name=clean_name,
            color=color or "#3b82f6",
            description=description or "",
            created_at=now,
            updated_at=now,
        )
        try:
            await self.db.insert_category(category)
        except sqlite3.IntegrityError as exc:
            raise CategoryError(f"category name already exists: {clean_name}") from exc
        return category

    async def update_category(self, category_id: str, updates: Mapping[str, Any]) -> Category:
        existing = await self.db.get_category(category_id)
        if existing is None:
            raise CategoryNotFoundError(category_id)
        if existing.is_default:
            raise CategoryError("default categories cannot be changed")

        fields = {key: updates[key] for key in ("name", "color", "description") if updates.get(key) is not None}
        if "name" in fields and not str(fields["name"]).strip():
            raise CategoryError("category name is required")
        category = replace(existing, **fields, updated_at=self.clock.now())
        try:
            await self.db.update_category(category)
        except sqlite3.IntegrityError as exc:
            raise CategoryError(f"category name already exists: {category.name}") from exc
        return category

    async def delete_category(self, category_id: str) -> None:
        existing = await self.db.get_category(category_id)
        if existing is None:
            raise CategoryNotFoundError(category_id)
        if existing.is_default:
            raise CategoryError("default categories cannot be deleted")
        if await self.db.count_tasks_in_category(category_id) > 0:
            raise CategoryError("cannot delete category that is used by tasks")
        await self.db.delete_category(category_id)

    # Helpers

    async def _check_parent(self, task_id: str, parent_id: str) -> None:
        if parent_id == task_id:
            raise InvalidParentError("a task cannot be its own parent")
        current: str | None = parent_id
        seen: set[str] = set()
        while current:
            if current == task_id:
                raise InvalidParentError(f"moving {task_id} under {parent_id} would create a cycle")
            if current in seen:
                break
            seen.add(current)
            parent = await self.db.get_task(current)
            if parent is None:
                if current == parent_id:
                    raise TaskNotFoundError(current)
                break
            current = parent.parent_id

    async def _load_tree(self) -> tuple[list[Task], dict[str, Task]]:
        tasks = await self.db.list_all_tasks()
        by_id = {task.id: task for task in tasks}
        roots: list[Task] = []
        for task in tasks:
            parent = by_id.get(task.parent_id) if task.parent_id else None
            if parent is None:
                roots.append(task)
            else:
                parent.children.append(task)
        return roots, by_id
