"""Tracking coordinator: the per-user time-tracking state machine.

At most one task per coordinator is Active or Paused. Starting a task
force-stops whatever else is open, including open rows left in the store
by a previous process. Stopping commits the closed interval, the ledger
times and the daily aggregate in one transaction, then notifies observers.
Live state only changes after its persistence step has succeeded.
"""

from __future__ import annotations

import asyncio
from datetime import datetime
import inspect
import logging
from typing import Awaitable, Callable, Union

from .clock import Clock
from .daily import DailyAggregate
from .db import TaskClockDB
from .errors import TaskNotFoundError
from .intervals import IntervalState, TimeInterval
from .ledger import TaskTimeLedger


logger = logging.getLogger(__name__)

TimeUpdateCallback = Callable[[str, int], Union[None, Awaitable[None]]]
TaskExistsCheck = Callable[[str], Awaitable[bool]]


class TrackingCoordinator:
    def __init__(
        self,
        db: TaskClockDB,
        ledger: TaskTimeLedger,
        daily: DailyAggregate,
        clock: Clock,
        tick_seconds: float = 60.0,
        task_exists: TaskExistsCheck | None = None,
    ) -> None:
        self.db = db
        self.ledger = ledger
        self.daily = daily
        self.clock = clock
        self.tick_seconds = tick_seconds
        self._task_exists = task_exists or db.task_exists
        self._live: dict[str, TimeInterval] = {}
        self._tickers: dict[str, asyncio.Task[None]] = {}
        self._observers: list[TimeUpdateCallback] = []
        self._lock = asyncio.Lock()

    # Observers

    def add_observer(self, callback: TimeUpdateCallback) -> None:
        if callback not in self._observers:
            self._observers.append(callback)

    def remove_observer(self, callback: TimeUpdateCallback) -> None:
        self._observers = [item for item in self._observers if item != callback]

    # Transitions

    async def restore(self) -> list[TimeInterval]:
        """Load open intervals left in the store into live state."""
        async with self._lock:
            restored: list[TimeInterval] = []
            for interval in await self.db.list_open_intervals():
                if interval.task_id in self._live:
                    continue
                self._live[interval.task_id] = interval
                if interval.is_active:
                    self._start_ticker(interval.task_id)
                restored.append(interval.copy())
            if restored:
                logger.info("restored %d open interval(s) from %s", len(restored), self.db.db_path)
            return restored

    async def start(self, task_id: str, description: str = "") -> TimeInterval:
        async with self._lock:
            if not await self._task_exists(task_id):
                raise TaskNotFoundError(task_id)
            await self._stop_all_locked()
            interval = TimeInterval.open(task_id, self._now(), description)
            await self.db.insert_interval(interval)
            self._live[task_id] = interval
            self._start_ticker(task_id)
            logger.info("started interval %s on task %s", interval.id, task_id)
            return interval.copy()

    async def pause(self, task_id: str) -> TimeInterval | None:
        async with self._lock:
            interval = self._live.get(task_id)
            if interval is None or interval.state is not IntervalState.ACTIVE:
                return None
            paused = interval.copy()
            paused.pause(self._now())
            await self.db.update_interval(paused)
            self._live[task_id] = paused
            self._cancel_ticker(task_id)
            return paused.copy()

    async def resume(self, task_id: str) -> TimeInterval | None:
        async with self._lock:
            interval = self._live.get(task_id)
            if interval is None or interval.state is not IntervalState.PAUSED:
                return None
            resumed = interval.copy()
            resumed.resume(self._now())
            await self.db.update_interval(resumed)
            self._live[task_id] = resumed
            self._start_ticker(task_id)
            return resumed.copy()

    async def stop(self, task_id: str) -> TimeInterval | None:
        async with self._lock:
            return await self._stop_locked(task_id)

    async def stop_and_delete(self, task_ids: list[str]) -> int:
        """Stop any open interval on ``task_ids``, then delete those tasks.

        Both happen under the coordinator lock, so no interval can be started
        on one of the tasks in between. Returns the number of deleted tasks.
        """
        async with self._lock:
            for task_id in task_ids:
                await self._stop_locked(task_id)
            return await self.db.delete_tasks(task_ids)

    async def shutdown(self) -> list[TimeInterval]:
        """Force-stop every open interval. Failures are logged and skipped."""
        stopped: list[TimeInterval] = []
        async with self._lock:
            task_ids = list(self._live)
            try:
                for interval in await self.db.list_open_intervals():
                    if interval.task_id not in task_ids:
                        task_ids.append(interval.task_id)
            except Exception:
                logger.exception("could not list open intervals in %s during shutdown", self.db.db_path)

            for task_id in task_ids:
                try:
                    closed = await self._stop_locked(task_id)
                except Exception:
                    logger.exception("force-stop of task %s failed during shutdown", task_id)
                    continue
                if closed is not None:
                    stopped.append(closed)

            for task_id in list(self._tickers):
                self._cancel_ticker(task_id)

        if stopped:
            logger.info("shutdown force-stopped %d interval(s)", len(stopped))
        return stopped

    # Queries

    def get_active(self, task_id: str) -> TimeInterval | None:
        interval = self._live.get(task_id)
        return interval.copy() if interval is not None else None

    def get_all_active(self) -> list[TimeInterval]:
        items = sorted(self._live.values(), key=lambda item: item.start_time)
        return [item.copy() for item in items]

    def get_active_task_id(self) -> str | None:
        for task_id, interval in self._live.items():
            if interval.is_active:
                return task_id
        return None

    def is_tracking(self, task_id: str) -> bool:
        interval = self._live.get(task_id)
        return interval is not None and interval.is_active

    def is_paused(self, task_id: str) -> bool:
        interval = self._live.get(task_id)
        return interval is not None and interval.state is IntervalState.PAUSED

    def is_live(self, task_id: str) -> bool:
        return task_id in self._live

    def current_duration(self, task_id: str) -> int:
        interval = self._live.get(task_id)
        return interval.current_duration(self._now()) if interval is not None else 0

    # Internals

    async def _stop_all_locked(self) -> None:
        for task_id in list(self._live):
            await self._stop_locked(task_id)
        for interval in await self.db.list_open_intervals():
            logger.info("force-stopping stale open interval %s on task %s", interval.id, interval.task_id)
            await self._close(interval)

    async def _stop_locked(self, task_id: str) -> TimeInterval | None:
        interval = self._live.get(task_id)
        if interval is None:
            interval = await self.db.get_open_interval(task_id)
            if interval is None:
                return None
            logger.info("recovered open interval %s on task %s from the store", interval.id, task_id)
        return await self._close(interval)

    async def _close(self, interval: TimeInterval) -> TimeInterval:
        task_id = interval.task_id
        closed = interval.copy()
        closed.stop(self._now())

        async with self.ledger.hold_chain(task_id) as chain, self.daily.hold(closed.date) as log:
            title = chain[0].title if chain else ""
            log.add_worked_on_task(task_id, title, closed.duration)
            log.add_time(closed.duration)
            log.updated_at = self.clock.now()
            await self.db.commit_stop(
                closed,
                [(task.id, task.actual_time + closed.duration) for task in chain],
                log,
                self.clock.now(),
            )

        live = self._live.get(task_id)
        if live is not None and live.id == closed.id:
            del self._live[task_id]
            self._cancel_ticker(task_id)

        logger.info("stopped interval %s on task %s after %d min", closed.id, task_id, closed.duration)
        await self._notify(task_id, closed.duration)
        return closed.copy()

    async def _notify(self, task_id: str, minutes: int) -> None:
        for callback in list(self._observers):
            try:
                result = callback(task_id, minutes)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception("time update observer failed for task %s", task_id)

    def _start_ticker(self, task_id: str) -> None:
        self._cancel_ticker(task_id)
        self._tickers[task_id] = asyncio.create_task(self._tick(task_id), name=f"taskclock-tick-{task_id}")

    def _cancel_ticker(self, task_id: str) -> None:
        ticker = self._tickers.pop(task_id, None)
        if ticker is None or ticker.done() or ticker is asyncio.current_task():
            return
        ticker.cancel()

    async def _tick(self, task_id: str) -> None:
        while True:
            await self.clock.sleep(self.tick_seconds)
            interval = self._live.get(task_id)
            if interval is None or not interval.is_active:
                return
            await self._notify(task_id, interval.current_duration(self._now()))

    def _now(self) -> datetime:
        return self.clock.now().replace(microsecond=0)
