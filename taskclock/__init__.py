"""TaskClock: hierarchical tasks with pausable time tracking and daily logs."""

from .cli import main

__version__ = "0.1.0"

__all__ = ["main", "__version__"]
