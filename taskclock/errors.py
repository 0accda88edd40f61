from __future__ import annotations


class TaskClockError(Exception):
    """Base class for domain errors."""


class TaskNotFoundError(TaskClockError, LookupError):
    def __init__(self, task_id: str) -> None:
        super().__init__(f"task not found: {task_id}")
        self.task_id = task_id


class InvalidParentError(TaskClockError, ValueError):
    """Raised when a parent assignment would break the task tree."""


class CategoryError(TaskClockError, ValueError):
    pass


class CategoryNotFoundError(TaskClockError, LookupError):
    def __init__(self, category_id: str) -> None:
        super().__init__(f"category not found: {category_id}")
        self.category_id = category_id
