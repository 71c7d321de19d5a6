"""LabValet Triggers: one-shot scheduled tasks."""

from .models import ScheduledTask
from .scheduler import TaskScheduler
from .store import TaskStore

__all__ = [
    "ScheduledTask",
    "TaskScheduler",
    "TaskStore",
]
