"""TimeInterval: one continuous, possibly paused, span of work on a task.

An interval is in exactly one of three states:

* ``active``: open and accumulating time;
* ``paused``: open, with accrual frozen since ``paused_at``;
* ``closed``: ``end_time`` is set and ``duration`` is final.

Durations are whole minutes. The wall-clock span and the paused total are
each rounded half-up to minutes before the paused minutes are subtracted,
and the result is floored at zero.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Any
import uuid


class IntervalState(str, Enum):
    ACTIVE = "active"
    PAUSED = "paused"
    CLOSED = "closed"


def new_id() -> str:
    return uuid.uuid4().hex


def seconds_to_minutes(seconds: float) -> int:
    if seconds <= 0:
        return 0
    return int(seconds / 60 + 0.5)


def minutes_between(start: datetime, end: datetime) -> int:
    return seconds_to_minutes((end - start).total_seconds())


@dataclass
class TimeInterval:
    task_id: str
    start_time: datetime
    id: str = field(default_factory=new_id)
    description: str = ""
    date: str = ""
    end_time: datetime | None = None
    duration: int = 0
    is_paused: bool = False
    paused_seconds: int = 0
    paused_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def __post_init__(self) -> None:
        if not self.date:
            self.date = self.start_time.date().isoformat()
        if self.created_at is None:
            self.created_at = self.start_time
        if self.updated_at is None:
            self.updated_at = self.created_at

    @classmethod
    def open(cls, task_id: str, now: datetime, description: str = "") -> "TimeInterval":
        return cls(task_id=task_id, start_time=now, description=(description or "").strip())

    @property
    def state(self) -> IntervalState:
        if self.end_time is not None:
            return IntervalState.CLOSED
        if self.is_paused:
            return IntervalState.PAUSED
        return IntervalState.ACTIVE

    @property
    def is_active(self) -> bool:
        return self.state is IntervalState.ACTIVE

    @property
    def is_closed(self) -> bool:
        return self.end_time is not None

    @property
    def paused_duration(self) -> int:
        return seconds_to_minutes(self.paused_seconds)

    def copy(self) -> "TimeInterval":
        return replace(self)

    def pause(self, now: datetime) -> bool:
        if self.state is not IntervalState.ACTIVE:
            return False
        self.is_paused = True
        self.paused_at = max(now, self.start_time)
        self.updated_at = now
        return True

    def resume(self, now: datetime) -> bool:
        if self.state is not IntervalState.PAUSED:
            return False
        self.paused_seconds = self._paused_seconds_until(now)
        self.is_paused = False
        self.paused_at = None
        self.updated_at = now
        return True

    def stop(self, now: datetime) -> bool:
        if self.is_closed:
            return False
        end = max(now, self.start_time)
        self.paused_seconds = self._paused_seconds_until(end)
        self.is_paused = False
        self.paused_at = None
        self.end_time = end
        self.duration = self._duration_at(end, self.paused_seconds)
        self.updated_at = now
        return True

    def current_duration(self, now: datetime) -> int:
        if self.end_time is not None:
            return self.duration
        end = max(now, self.start_time)
        return self._duration_at(end, self._paused_seconds_until(end))

    def to_dict(self, now: datetime | None = None) -> dict[str, Any]:
        duration = self.duration
        if self.end_time is None and now is not None:
            duration = self.current_duration(now)
        return {
            "id": self.id,
            "task_id": self.task_id,
            "start_time": self.start_time,
            "end_time": self.end_time,
            "duration": duration,
            "description": self.description,
            "date": self.date,
            "is_paused": self.is_paused,
            "paused_duration": self.paused_duration,
            "state": self.state.value,
            "is_active": self.is_active,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    def _paused_seconds_until(self, end: datetime) -> int:
        total = self.paused_seconds
        if self.is_paused and self.paused_at is not None:
            total += int(max(0.0, (end - self.paused_at).total_seconds()))
        span = int(max(0.0, (end - self.start_time).total_seconds()))
        return max(0, min(total, span))

    def _duration_at(self, end: datetime, paused_seconds: int) -> int:
        return max(0, minutes_between(self.start_time, end) - seconds_to_minutes(paused_seconds))
