from __future__ import annotations

from contextlib import AsyncExitStack, asynccontextmanager
import logging
from typing import AsyncIterator

from .clock import Clock
from .db import TaskClockDB
from .locks import KeyedLocks
from .models import Task


logger = logging.getLogger(__name__)


class TaskTimeLedger:
    """Cumulative minutes per task, propagated up the parent chain.

    Every read-modify-write of a task's ``actual_time`` happens while holding
    that task's lock. Anything else that rewrites a task row must take the
    same lock through ``lock()``.
    """

    def __init__(self, db: TaskClockDB, clock: Clock, locks: KeyedLocks | None = None) -> None:
        self.db = db
        self.clock = clock
        self._locks = locks or KeyedLocks()

    @asynccontextmanager
    async def lock(self, task_id: str) -> AsyncIterator[None]:
        async with self._locks.hold(task_id):
            yield

    async def apply_delta(self, task_id: str, minutes: int) -> list[str]:
        """Add ``minutes`` to the task and each of its ancestors, once each.

        Returns the ids that were updated, starting with ``task_id``.
        A missing task ends the walk; a repeated id means the parent links
        form a cycle, which is logged and ends the walk too.
        """
        updated: list[str] = []
        visited: set[str] = set()
        current: str | None = task_id

        while current:
            if current in visited:
                logger.warning("parent chain of task %s loops back to %s; propagation stopped", task_id, current)
                break
            visited.add(current)

            async with self._locks.hold(current):
                task = await self.db.get_task(current)
                if task is None:
                    break
                await self.db.set_actual_time(current, task.actual_time + minutes, self.clock.now())
                parent_id = task.parent_id

            updated.append(current)
            current = parent_id

        if updated:
            logger.debug("applied %s min to %s", minutes, " -> ".join(updated))
        return updated

    @asynccontextmanager
    async def hold_chain(self, task_id: str) -> AsyncIterator[list[Task]]:
        """Lock the task and each of its ancestors, yielding them in that order.

        Locks are taken child first, the same order ``apply_delta`` walks in.
        The chain stops at a missing task or at a repeated id. Nothing is
        written; callers persist the new times while the locks are held.
        """
        chain: list[Task] = []
        visited: set[str] = set()
        current: str | None = task_id
        async with AsyncExitStack() as stack:
            while current and current not in visited:
                visited.add(current)
                await stack.enter_async_context(self._locks.hold(current))
                task = await self.db.get_task(current)
                if task is None:
                    break
                chain.append(task)
                current = task.parent_id
            if current and current in visited:
                logger.warning("parent chain of task %s loops back to %s; propagation stopped", task_id, current)
            yield chain

    async def set_time(self, task_id: str, minutes: int) -> bool:
        async with self._locks.hold(task_id):
            return await self.db.set_actual_time(task_id, max(0, int(minutes)), self.clock.now())
