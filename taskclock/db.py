from __future__ import annotations

from contextlib import asynccontextmanager
from dataclasses import replace
from datetime import datetime, timezone
import json
from pathlib import Path
import sqlite3
from typing import Any, AsyncIterator, Iterable

import aiosqlite

from .intervals import TimeInterval
from .models import DEFAULT_CATEGORIES, Category, DailyLog, Task


def _to_utc_text(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    value = value.astimezone(timezone.utc)
    return value.strftime("%Y-%m-%dT%H:%M:%S")


def _from_utc_text(text: str) -> datetime:
    return datetime.strptime(text, "%Y-%m-%dT%H:%M:%S").replace(tzinfo=timezone.utc)


def _opt_to_text(value: datetime | None) -> str | None:
    return _to_utc_text(value) if value is not None else None


def _opt_from_text(text: str | None) -> datetime | None:
    return _from_utc_text(text) if text else None


def _load_json_list(text: str | None) -> list[Any]:
    if not text:
        return []
    value = json.loads(text)
    return value if isinstance(value, list) else []


_TASK_COLUMNS = (
    "id, title, description, parent_id, category, priority, status, estimated_time, "
    "actual_time, deadline, created_at, updated_at, completed_at, tags"
)
_INTERVAL_COLUMNS = (
    "id, task_id, start_time, end_time, duration, description, date, is_paused, "
    "paused_seconds, paused_at, created_at, updated_at"
)
_LOG_COLUMNS = "id, date, total_time, tasks_completed, tasks_worked_on, notes, created_at, updated_at"
_CATEGORY_COLUMNS = "id, name, color, description, is_default, created_at, updated_at"


class TaskClockDB:
    """Async SQLite store for tasks, time intervals, daily logs and categories.

    Every public method opens its own connection, so one instance can be
    shared by concurrent coroutines.
    """

    def __init__(self, db_path: Path, journal_mode: str = "MEMORY") -> None:
        self.db_path = Path(db_path)
        self.journal_mode = (journal_mode or "MEMORY").strip().upper() or "MEMORY"
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

    @asynccontextmanager
    async def _connect(self) -> AsyncIterator[aiosqlite.Connection]:
        async with aiosqlite.connect(self.db_path) as conn:
            conn.row_factory = aiosqlite.Row
            await self._apply_journal_mode(conn)
            await conn.execute("PRAGMA synchronous=NORMAL")
            yield conn

    async def _apply_journal_mode(self, conn: aiosqlite.Connection) -> None:
        try:
            await conn.execute(f"PRAGMA journal_mode={self.journal_mode}")
        except sqlite3.OperationalError:
            await conn.execute("PRAGMA journal_mode=MEMORY")

    async def init_schema(self) -> None:
        async with self._connect() as conn:
            await conn.executescript(
                """
                CREATE TABLE IF NOT EXISTS tasks (
                    id TEXT PRIMARY KEY,
                    title TEXT NOT NULL,
                    description TEXT NOT NULL DEFAULT '',
                    parent_id TEXT,
                    category TEXT NOT NULL DEFAULT 'general',
                    priority TEXT NOT NULL DEFAULT 'medium',
                    status TEXT NOT NULL DEFAULT 'todo'
                        CHECK (status IN ('todo', 'in_progress', 'completed')),
                    estimated_time INTEGER,
                    actual_time INTEGER NOT NULL DEFAULT 0 CHECK (actual_time >= 0),
                    deadline TEXT,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL,
                    completed_at TEXT,
                    tags TEXT NOT NULL DEFAULT '[]',
                    FOREIGN KEY (parent_id) REFERENCES tasks (id)
                );

                CREATE INDEX IF NOT EXISTS idx_tasks_parent_id ON tasks(parent_id);

                CREATE TABLE IF NOT EXISTS time_entries (
                    id TEXT PRIMARY KEY,
                    task_id TEXT NOT NULL,
                    start_time TEXT NOT NULL,
                    end_time TEXT,
                    duration INTEGER NOT NULL DEFAULT 0 CHECK (duration >= 0),
                    description TEXT NOT NULL DEFAULT '',
                    date TEXT NOT NULL,
                    is_paused INTEGER NOT NULL DEFAULT 0 CHECK (is_paused IN (0, 1)),
                    paused_seconds INTEGER NOT NULL DEFAULT 0 CHECK (paused_seconds >= 0),
                    paused_at TEXT,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL,
                    FOREIGN KEY (task_id) REFERENCES tasks (id)
                );

                CREATE INDEX IF NOT EXISTS idx_time_entries_task_id ON time_entries(task_id);
                CREATE INDEX IF NOT EXISTS idx_time_entries_date ON time_entries(date);
                CREATE INDEX IF NOT EXISTS idx_time_entries_open ON time_entries(end_time);

                CREATE TABLE IF NOT EXISTS daily_logs (
                    id TEXT PRIMARY KEY,
                    date TEXT NOT NULL UNIQUE,
                    total_time INTEGER NOT NULL DEFAULT 0,
                    tasks_completed TEXT NOT NULL DEFAULT '[]',
                    tasks_worked_on TEXT NOT NULL DEFAULT '[]',
                    notes TEXT NOT NULL DEFAULT '',
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                );

                CREATE TABLE IF NOT EXISTS categories (
                    id TEXT PRIMARY KEY,
                    name TEXT NOT NULL UNIQUE,
                    color TEXT NOT NULL DEFAULT '#3b82f6',
                    description TEXT NOT NULL DEFAULT '',
                    is_default INTEGER NOT NULL DEFAULT 0 CHECK (is_default IN (0, 1)),
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                );
                """
            )
            await conn.commit()

    # Tasks

    async def insert_task(self, task: Task) -> None:
        async with self._connect() as conn:
            await conn.execute(
                f"INSERT INTO tasks ({_TASK_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                self._task_params(task),
            )
            await conn.commit()

    async def update_task(self, task: Task) -> bool:
        params = self._task_params(task)
        async with self._connect() as conn:
            cur = await conn.execute(
                """
                UPDATE tasks SET
                    title = ?, description = ?, parent_id = ?, category = ?, priority = ?,
                    status = ?, estimated_time = ?, actual_time = ?, deadline = ?,
                    created_at = ?, updated_at = ?, completed_at = ?, tags = ?
                WHERE id = ?
                """,
                (*params[1:], params[0]),
            )
            await conn.commit()
            return cur.rowcount > 0

    async def set_actual_time(self, task_id: str, minutes: int, updated_at: datetime) -> bool:
        async with self._connect() as conn:
            updated = await self._write_actual_time(conn, task_id, minutes, updated_at)
            await conn.commit()
            return updated

    async def get_task(self, task_id: str) -> Task | None:
        rows = await self._fetch(f"SELECT {_TASK_COLUMNS} FROM tasks WHERE id = ?", [task_id])
        return self._row_to_task(rows[0]) if rows else None

    async def task_exists(self, task_id: str) -> bool:
        rows = await self._fetch("SELECT 1 FROM tasks WHERE id = ?", [task_id])
        return bool(rows)

    async def list_tasks(self, parent_id: str | None = None) -> list[Task]:
        if parent_id:
            query = f"SELECT {_TASK_COLUMNS} FROM tasks WHERE parent_id = ? ORDER BY created_at, rowid"
            params: list[object] = [parent_id]
        else:
            query = f"SELECT {_TASK_COLUMNS} FROM tasks WHERE parent_id IS NULL ORDER BY created_at, rowid"
            params = []
        return [self._row_to_task(row) for row in await self._fetch(query, params)]

    async def list_all_tasks(self) -> list[Task]:
        rows = await self._fetch(f"SELECT {_TASK_COLUMNS} FROM tasks ORDER BY created_at, rowid", [])
        return [self._row_to_task(row) for row in rows]

    async def count_tasks_in_category(self, category: str) -> int:
        rows = await self._fetch("SELECT COUNT(*) AS n FROM tasks WHERE category = ?", [category])
        return int(rows[0]["n"])

    async def delete_tasks(self, task_ids: Iterable[str]) -> int:
        ids = list(task_ids)
        if not ids:
            return 0
        marks = ", ".join("?" for _ in ids)
        async with self._connect() as conn:
            await conn.execute(f"DELETE FROM time_entries WHERE task_id IN ({marks})", ids)
            cur = await conn.execute(f"DELETE FROM tasks WHERE id IN ({marks})", ids)
            await conn.commit()
            return cur.rowcount

    # Time intervals

    async def insert_interval(self, interval: TimeInterval) -> None:
        async with self._connect() as conn:
            await self._write_new_interval(conn, interval)
            await conn.commit()

    async def update_interval(self, interval: TimeInterval) -> bool:
        async with self._connect() as conn:
            updated = await self._write_interval(conn, interval)
            await conn.commit()
            return updated

    async def commit_stop(
        self,
        interval: TimeInterval,
        task_times: Iterable[tuple[str, int]],
        log: DailyLog,
        updated_at: datetime,
    ) -> None:
        """Persist a stopped interval with its effects as one transaction.

        Writes the closed interval row, the new ``actual_time`` of each task in
        ``task_times`` and the day's log. Either all of it is committed or, on
        any error, none of it.
        """
        async with self._connect() as conn:
            try:
                if not await self._write_interval(conn, interval):
                    await self._write_new_interval(conn, interval)
                for task_id, minutes in task_times:
                    await self._write_actual_time(conn, task_id, minutes, updated_at)
                await self._write_daily_log(conn, log)
                await conn.commit()
            except Exception:
                await conn.rollback()
                raise

    async def get_interval(self, interval_id: str) -> TimeInterval | None:
        rows = await self._fetch(f"SELECT {_INTERVAL_COLUMNS} FROM time_entries WHERE id = ?", [interval_id])
        return self._row_to_interval(rows[0]) if rows else None

    async def get_open_interval(self, task_id: str) -> TimeInterval | None:
        rows = await self._fetch(
            f"SELECT {_INTERVAL_COLUMNS} FROM time_entries "
            "WHERE task_id = ? AND end_time IS NULL "
            "ORDER BY start_time DESC, rowid DESC LIMIT 1",
            [task_id],
        )
        return self._row_to_interval(rows[0]) if rows else None

    async def list_open_intervals(self) -> list[TimeInterval]:
        rows = await self._fetch(
            f"SELECT {_INTERVAL_COLUMNS} FROM time_entries WHERE end_time IS NULL ORDER BY start_time DESC",
            [],
        )
        return [self._row_to_interval(row) for row in rows]

    async def list_intervals_by_task(self, task_id: str) -> list[TimeInterval]:
        rows = await self._fetch(
            f"SELECT {_INTERVAL_COLUMNS} FROM time_entries WHERE task_id = ? ORDER BY start_time DESC",
            [task_id],
        )
        return [self._row_to_interval(row) for row in rows]

    async def list_intervals_between_dates(self, start: str, end: str) -> list[TimeInterval]:
        rows = await self._fetch(
            f"SELECT {_INTERVAL_COLUMNS} FROM time_entries "
            "WHERE date >= ? AND date <= ? ORDER BY start_time ASC",
            [start, end],
        )
        return [self._row_to_interval(row) for row in rows]

    async def list_all_intervals(self) -> list[TimeInterval]:
        rows = await self._fetch(f"SELECT {_INTERVAL_COLUMNS} FROM time_entries ORDER BY start_time ASC", [])
        return [self._row_to_interval(row) for row in rows]

    # Daily logs

    async def get_daily_log(self, day: str) -> DailyLog | None:
        rows = await self._fetch(f"SELECT {_LOG_COLUMNS} FROM daily_logs WHERE date = ?", [day])
        return self._row_to_log(rows[0]) if rows else None

    async def list_daily_logs(self, start: str, end: str) -> list[DailyLog]:
        rows = await self._fetch(
            f"SELECT {_LOG_COLUMNS} FROM daily_logs WHERE date >= ? AND date <= ? ORDER BY date ASC",
            [start, end],
        )
        return [self._row_to_log(row) for row in rows]

    async def save_daily_log(self, log: DailyLog) -> None:
        async with self._connect() as conn:
            await self._write_daily_log(conn, log)
            await conn.commit()

    # Categories

    async def seed_default_categories(self, now: datetime) -> int:
        rows = await self._fetch("SELECT COUNT(*) AS n FROM categories", [])
        if int(rows[0]["n"]) > 0:
            return 0
        for item in DEFAULT_CATEGORIES:
            await self.insert_category(replace(item, created_at=now, updated_at=now))
        return len(DEFAULT_CATEGORIES)

    async def insert_category(self, category: Category) -> None:
        now = category.created_at or datetime.now(timezone.utc)
        async with self._connect() as conn:
            await conn.execute(
                f"INSERT INTO categories ({_CATEGORY_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?)",
                (
                    category.id,
                    category.name.strip(),
                    category.color,
                    category.description,
                    1 if category.is_default else 0,
                    _to_utc_text(now),
                    _to_utc_text(category.updated_at or now),
                ),
            )
            await conn.commit()

    async def update_category(self, category: Category) -> bool:
        async with self._connect() as conn:
            cur = await conn.execute(
                """
                UPDATE categories SET name = ?, color = ?, description = ?, updated_at = ?
                WHERE id = ? AND is_default = 0
                """,
                (
                    category.name.strip(),
                    category.color,
                    category.description,
                    _to_utc_text(category.updated_at or datetime.now(timezone.utc)),
                    category.id,
                ),
            )
            await conn.commit()
            return cur.rowcount > 0

    async def delete_category(self, category_id: str) -> bool:
        async with self._connect() as conn:
            cur = await conn.execute("DELETE FROM categories WHERE id = ? AND is_default = 0", (category_id,))
            await conn.commit()
            return cur.rowcount > 0

    async def get_category(self, category_id: str) -> Category | None:
        rows = await self._fetch(f"SELECT {_CATEGORY_COLUMNS} FROM categories WHERE id = ?", [category_id])
        return self._row_to_category(rows[0]) if rows else None

    async def list_categories(self) -> list[Category]:
        rows = await self._fetch(
            f"SELECT {_CATEGORY_COLUMNS} FROM categories ORDER BY is_default DESC, name ASC", []
        )
        return [self._row_to_category(row) for row in rows]

    # Statements shared by single writes and transactions

    async def _write_actual_time(
        self, conn: aiosqlite.Connection, task_id: str, minutes: int, updated_at: datetime
    ) -> bool:
        cur = await conn.execute(
            "UPDATE tasks SET actual_time = ?, updated_at = ? WHERE id = ?",
            (int(max(0, minutes)), _to_utc_text(updated_at), task_id),
        )
        return cur.rowcount > 0

    async def _write_new_interval(self, conn: aiosqlite.Connection, interval: TimeInterval) -> None:
        await conn.execute(
            f"INSERT INTO time_entries ({_INTERVAL_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
            self._interval_params(interval),
        )

    async def _write_interval(self, conn: aiosqlite.Connection, interval: TimeInterval) -> bool:
        cur = await conn.execute(
            """
            UPDATE time_entries SET
                end_time = ?, duration = ?, description = ?, is_paused = ?,
                paused_seconds = ?, paused_at = ?, updated_at = ?
            WHERE id = ?
            """,
            (
                _opt_to_text(interval.end_time),
                int(max(0, interval.duration)),
                interval.description,
                1 if interval.is_paused else 0,
                int(max(0, interval.paused_seconds)),
                _opt_to_text(interval.paused_at),
                _to_utc_text(interval.updated_at or interval.start_time),
                interval.id,
            ),
        )
        return cur.rowcount > 0

    async def _write_daily_log(self, conn: aiosqlite.Connection, log: DailyLog) -> None:
        created = log.created_at or datetime.now(timezone.utc)
        updated = log.updated_at or created
        await conn.execute(
            f"""
            INSERT INTO daily_logs ({_LOG_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(date) DO UPDATE SET
                total_time = excluded.total_time,
                tasks_completed = excluded.tasks_completed,
                tasks_worked_on = excluded.tasks_worked_on,
                notes = excluded.notes,
                updated_at = excluded.updated_at
            """,
            (
                log.id,
                log.date,
                int(log.total_time),
                json.dumps(log.tasks_completed, ensure_ascii=False),
                json.dumps(log.tasks_worked_on, ensure_ascii=False),
                log.notes or "",
                _to_utc_text(created),
                _to_utc_text(updated),
            ),
        )

    # Row helpers

    async def _fetch(self, query: str, params: list[object]) -> list[aiosqlite.Row]:
        async with self._connect() as conn:
            async with conn.execute(query, params) as cur:
                return list(await cur.fetchall())

    @staticmethod
    def _task_params(task: Task) -> tuple[object, ...]:
        created = task.created_at or datetime.now(timezone.utc)
        return (
            task.id,
            task.title.strip(),
            task.description or "",
            task.parent_id,
            task.category or "general",
            task.priority,
            task.status,
            task.estimated_time,
            int(max(0, task.actual_time)),
            task.deadline,
            _to_utc_text(created),
            _to_utc_text(task.updated_at or created),
            _opt_to_text(task.completed_at),
            json.dumps(task.tags, ensure_ascii=False),
        )

    @staticmethod
    def _interval_params(interval: TimeInterval) -> tuple[object, ...]:
        return (
            interval.id,
            interval.task_id,
            _to_utc_text(interval.start_time),
            _opt_to_text(interval.end_time),
            int(max(0, interval.duration)),
            interval.description,
            interval.date,
            1 if interval.is_paused else 0,
            int(max(0, interval.paused_seconds)),
            _opt_to_text(interval.paused_at),
            _to_utc_text(interval.created_at or interval.start_time),
            _to_utc_text(interval.updated_at or interval.start_time),
        )

    @staticmethod
    def _row_to_task(row: aiosqlite.Row) -> Task:
        return Task(
            id=row["id"],
            title=row["title"],
            description=row["description"] or "",
            parent_id=row["parent_id"],
            category=row["category"] or "general",
            priority=row["priority"] or "medium",
            status=row["status"] or "todo",
            estimated_time=row["estimated_time"],
            actual_time=int(row["actual_time"] or 0),
            deadline=row["deadline"],
            created_at=_from_utc_text(row["created_at"]),
            updated_at=_from_utc_text(row["updated_at"]),
            completed_at=_opt_from_text(row["completed_at"]),
            tags=[str(tag) for tag in _load_json_list(row["tags"])],
        )

    @staticmethod
    def _row_to_interval(row: aiosqlite.Row) -> TimeInterval:
        return TimeInterval(
            id=row["id"],
            task_id=row["task_id"],
            start_time=_from_utc_text(row["start_time"]),
            end_time=_opt_from_text(row["end_time"]),
            duration=int(row["duration"] or 0),
            description=row["description"] or "",
            date=row["date"],
            is_paused=bool(row["is_paused"]),
            paused_seconds=int(row["paused_seconds"] or 0),
            paused_at=_opt_from_text(row["paused_at"]),
            created_at=_from_utc_text(row["created_at"]),
            updated_at=_from_utc_text(row["updated_at"]),
        )

    @staticmethod
    def _row_to_log(row: aiosqlite.Row) -> DailyLog:
        return DailyLog(
            id=row["id"],
            date=row["date"],
            total_time=int(row["total_time"] or 0),
            tasks_completed=_load_json_list(row["tasks_completed"]),
            tasks_worked_on=_load_json_list(row["tasks_worked_on"]),
            notes=row["notes"] or "",
            created_at=_from_utc_text(row["created_at"]),
            updated_at=_from_utc_text(row["updated_at"]),
        )

    @staticmethod
    def _row_to_category(row: aiosqlite.Row) -> Category:
        return Category(
            id=row["id"],
            name=row["name"],
            color=row["color"],
            description=row["description"] or "",
            is_default=bool(row["is_default"]),
            created_at=_from_utc_text(row["created_at"]),
            updated_at=_from_utc_text(row["updated_at"]),
        )


def user_db_path(data_dir: Path, user_id: str) -> Path:
    return Path(data_dir) / "users" / user_id / "taskclock.sqlite"
