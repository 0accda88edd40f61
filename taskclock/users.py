from __future__ import annotations

import asyncio
from dataclasses import dataclass
import logging
from pathlib import Path

from .clock import Clock, RealClock
from .config import is_valid_user_id
from .daily import DailyAggregate
from .db import TaskClockDB, user_db_path
from .ledger import TaskTimeLedger
from .service import TaskService
from .tracker import TrackingCoordinator


logger = logging.getLogger(__name__)


@dataclass
class Workspace:
    """Everything one user's requests touch: store, ledger, aggregate, coordinator, service."""

    user_id: str
    db: TaskClockDB
    ledger: TaskTimeLedger
    daily: DailyAggregate
    tracker: TrackingCoordinator
    service: TaskService


async def open_workspace(
    db_path: Path,
    clock: Clock | None = None,
    tick_seconds: float = 60.0,
    journal_mode: str = "MEMORY",
    user_id: str = "default",
    restore: bool = True,
) -> Workspace:
    clock = clock or RealClock()
    db = TaskClockDB(db_path, journal_mode=journal_mode)
    await db.init_schema()
    await db.seed_default_categories(clock.now())

    ledger = TaskTimeLedger(db, clock)
    daily = DailyAggregate(db, clock)
    tracker = TrackingCoordinator(db, ledger, daily, clock, tick_seconds=tick_seconds)
    service = TaskService(db, ledger, daily, tracker, clock)
    if restore:
        await tracker.restore()
    return Workspace(user_id=user_id, db=db, ledger=ledger, daily=daily, tracker=tracker, service=service)


class WorkspaceRegistry:
    """Lazily opened workspaces, one per user id, each with its own SQLite file."""

    def __init__(
        self,
        data_dir: Path,
        clock: Clock | None = None,
        tick_seconds: float = 60.0,
        journal_mode: str = "MEMORY",
    ) -> None:
        self.data_dir = Path(data_dir)
        self.clock = clock or RealClock()
        self.tick_seconds = tick_seconds
        self.journal_mode = journal_mode
        self._workspaces: dict[str, Workspace] = {}
        self._lock = asyncio.Lock()

    def db_path_for(self, user_id: str) -> Path:
        return user_db_path(self.data_dir, user_id)

    async def get(self, user_id: str) -> Workspace:
        if not is_valid_user_id(user_id):
            raise ValueError(f"invalid user id: {user_id!r}")

        workspace = self._workspaces.get(user_id)
        if workspace is not None:
            return workspace

        async with self._lock:
            workspace = self._workspaces.get(user_id)
            if workspace is None:
                workspace = await open_workspace(
                    self.db_path_for(user_id),
                    clock=self.clock,
                    tick_seconds=self.tick_seconds,
                    journal_mode=self.journal_mode,
                    user_id=user_id,
                )
                self._workspaces[user_id] = workspace
                logger.info("opened workspace for user %s", user_id)
            return workspace

    def loaded_users(self) -> list[str]:
        return sorted(self._workspaces)

    async def shutdown(self) -> int:
        stopped = 0
        async with self._lock:
            for user_id, workspace in list(self._workspaces.items()):
                closed = await workspace.tracker.shutdown()
                stopped += len(closed)
                logger.info("closed workspace for user %s", user_id)
            self._workspaces.clear()
        return stopped
