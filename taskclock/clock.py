from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Protocol


class Clock(Protocol):
    def now(self) -> datetime:
        ...

    async def sleep(self, seconds: float) -> None:
        ...


class RealClock:
    def now(self) -> datetime:
        return datetime.now().astimezone()

    async def sleep(self, seconds: float) -> None:
        await asyncio.sleep(max(0.0, seconds))


class FakeClock:
    """Virtual clock for tests.

    Time only moves when ``advance`` is called. Pending ``sleep`` calls wake
    once the virtual time has passed their deadline.
    """

    def __init__(self, start: datetime | None = None) -> None:
        base = start or datetime(2026, 1, 1, tzinfo=timezone.utc)
        if base.tzinfo is None:
            base = base.replace(tzinfo=timezone.utc)
        self._current = base
        self._sleepers: list[tuple[datetime, asyncio.Future[None]]] = []

    def now(self) -> datetime:
        return self._current

    def set(self, value: datetime) -> None:
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        self._current = value
        self._wake()

    def advance(self, seconds: float = 0.0, minutes: float = 0.0) -> None:
        self._current += timedelta(seconds=max(0.0, seconds), minutes=max(0.0, minutes))
        self._wake()

    async def sleep(self, seconds: float) -> None:
        deadline = self._current + timedelta(seconds=max(0.0, seconds))
        future: asyncio.Future[None] = asyncio.get_running_loop().create_future()
        self._sleepers.append((deadline, future))
        try:
            await future
        finally:
            self._sleepers = [item for item in self._sleepers if item[1] is not future]

    @property
    def pending_sleepers(self) -> int:
        return len(self._sleepers)

    def _wake(self) -> None:
        for deadline, future in list(self._sleepers):
            if deadline <= self._current and not future.done():
                future.set_result(None)
