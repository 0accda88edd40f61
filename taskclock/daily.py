from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import timedelta
import logging
from typing import AsyncIterator

from .clock import Clock
from .db import TaskClockDB
from .locks import KeyedLocks
from .models import DailyLog, parse_day


logger = logging.getLogger(__name__)


class DailyAggregate:
    """Per-day rollup of completed and worked-on tasks.

    Rows are created lazily. Each read-modify-write holds the lock for its
    date, so concurrent updates to one day are applied in order.
    """

    def __init__(self, db: TaskClockDB, clock: Clock) -> None:
        self.db = db
        self.clock = clock
        self._locks = KeyedLocks()

    def today(self) -> str:
        return self.clock.now().date().isoformat()

    async def get_or_create(self, day: str) -> DailyLog:
        key = parse_day(day).isoformat()
        async with self._locks.hold(key):
            return await self._load_or_create(key)

    async def record_time_worked(self, day: str, task_id: str, title: str, minutes: int) -> DailyLog:
        key = parse_day(day).isoformat()
        async with self._locks.hold(key):
            log = await self._load_or_create(key)
            log.add_worked_on_task(task_id, title, minutes)
            log.add_time(minutes)
            log.updated_at = self.clock.now()
            await self.db.save_daily_log(log)
        return log

    @asynccontextmanager
    async def hold(self, day: str) -> AsyncIterator[DailyLog]:
        """Lock ``day`` and yield its log, loaded or new, without writing it."""
        key = parse_day(day).isoformat()
        async with self._locks.hold(key):
            log = await self.db.get_daily_log(key)
            if log is None:
                now = self.clock.now()
                log = DailyLog(date=key, created_at=now, updated_at=now)
            yield log

    async def record_completion(self, day: str, task_id: str, title: str) -> DailyLog:
        key = parse_day(day).isoformat()
        async with self._locks.hold(key):
            log = await self._load_or_create(key)
            if log.add_completed_task(task_id, title):
                log.updated_at = self.clock.now()
                await self.db.save_daily_log(log)
            else:
                logger.debug("task %s already recorded complete on %s", task_id, key)
        return log

    async def set_notes(self, day: str, text: str) -> DailyLog:
        key = parse_day(day).isoformat()
        async with self._locks.hold(key):
            log = await self._load_or_create(key)
            if log.notes != text:
                log.notes = text
                log.updated_at = self.clock.now()
                await self.db.save_daily_log(log)
        return log

    async def get_range(self, start: str, end: str) -> list[DailyLog]:
        """Logs for every day from ``start`` to ``end`` inclusive, stored or not.

        Days without a stored row come back as empty logs and are not written.
        """
        first = parse_day(start)
        last = parse_day(end)
        if last < first:
            return []
        stored = {log.date: log for log in await self.db.list_daily_logs(first.isoformat(), last.isoformat())}
        logs: list[DailyLog] = []
        for offset in range((last - first).days + 1):
            key = (first + timedelta(days=offset)).isoformat()
            logs.append(stored.get(key) or DailyLog(date=key))
        return logs

    async def _load_or_create(self, key: str) -> DailyLog:
        log = await self.db.get_daily_log(key)
        if log is not None:
            return log
        now = self.clock.now()
        log = DailyLog(date=key, created_at=now, updated_at=now)
        await self.db.save_daily_log(log)
        return log
