"""TaskStore: scheduled task persistence with atomic writes and backup."""

import logging
import os
from pathlib import Path
from typing import Dict, List, Optional

from ..storage import atomic_write_json, read_json
from .models import ScheduledTask

logger = logging.getLogger(__name__)

STORE_VERSION = 1


class TaskStore:
    """Scheduled tasks kept in memory and, when a path is given, in one JSON file.

    Writes use a temp file + rename with a .bak copy of the previous file.
    """

    def __init__(self, store_path: Optional[str] = None):
        self._store_path = Path(os.path.expanduser(store_path)) if store_path else None
        self._tasks: Dict[str, ScheduledTask] = {}

    @property
    def store_path(self) -> Optional[Path]:
        return self._store_path

    async def load(self) -> None:
        """Load tasks from disk. Starts empty if there is no file."""
        self._tasks = {}
        if self._store_path is None:
            return
        try:
            data = read_json(self._store_path)
        except Exception as e:
            logger.error(f"Failed to load task store from {self._store_path}: {e}")
            return
        if data is None:
            logger.info(f"Task store not found at {self._store_path}, starting empty")
            return

        version = data.get("version", 1)
        if version != STORE_VERSION:
            logger.warning(f"Task store version mismatch: expected {STORE_VERSION}, got {version}")
        for task_dict in data.get("tasks", []):
            try:
                task = ScheduledTask.from_dict(task_dict)
                self._tasks[task.id] = task
            except (KeyError, ValueError) as e:
                logger.warning(f"Skipping invalid task entry: {e}")
        logger.info(f"Loaded {len(self._tasks)} scheduled tasks from {self._store_path}")

    async def save(self) -> None:
        """Persist tasks (no-op for a memory-only store)."""
        if self._store_path is None:
            return
        atomic_write_json(self._store_path, {
            "version": STORE_VERSION,
            "tasks": [task.to_dict() for task in self._tasks.values()],
        })

    def get(self, task_id: str) -> Optional[ScheduledTask]:
        return self._tasks.get(task_id)

    def list(self, conversation_id: Optional[str] = None) -> List[ScheduledTask]:
        """Tasks ordered by trigger time, optionally for one conversation."""
        tasks = list(self._tasks.values())
        if conversation_id:
            tasks = [t for t in tasks if t.conversation_id == conversation_id]
        tasks.sort(key=lambda t: t.trigger_time)
        return tasks

    def add(self, task: ScheduledTask) -> None:
        self._tasks[task.id] = task

    def remove(self, task_id: str) -> bool:
        return self._tasks.pop(task_id, None) is not None

    def __len__(self) -> int:
        return len(self._tasks)
