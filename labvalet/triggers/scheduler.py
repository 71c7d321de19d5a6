"""LabValet TaskScheduler: fires one-shot scheduled tasks into their conversations."""

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Awaitable, Callable, List, Optional, Set
from zoneinfo import ZoneInfo

from ..constants import DEFAULT_TIMEZONE
from .models import ScheduledTask
from .store import TaskStore

logger = logging.getLogger(__name__)

TaskCallback = Callable[[ScheduledTask], Awaitable[Any]]


class TaskScheduler:
    """
    Polls the task store and fires due tasks.

    A due task is removed from the store (and the store saved) before the
    callback runs, so a task never fires twice, even across a crash. Each
    callback runs in its own task: a slow conversation never holds up the
    tasks of another conversation or the next evaluation tick.

    Args:
        store: TaskStore holding pending tasks
        callback: Async callable invoked with each fired task
        check_interval: Seconds between evaluation loop iterations (default 10)
        timezone_name: Timezone for naive trigger times
    """

    def __init__(
        self,
        store: TaskStore,
        callback: Optional[TaskCallback] = None,
        check_interval: float = 10,
        timezone_name: str = DEFAULT_TIMEZONE,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self._store = store
        self._callback = callback
        self._check_interval = check_interval
        self._timezone_name = timezone_name
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._running = False
        self._loop_task: Optional[asyncio.Task] = None
        self._lock = asyncio.Lock()
        self._inflight: Set[asyncio.Task] = set()

    @property
    def store(self) -> TaskStore:
        return self._store

    def set_callback(self, callback: TaskCallback) -> None:
        self._callback = callback

    # ------------------------------------------------------------------
    # Task CRUD
    # ------------------------------------------------------------------

    async def schedule(
        self,
        conversation_id: str,
        description: str,
        trigger_time: Optional[datetime] = None,
        delay_seconds: Optional[float] = None,
        metadata: Optional[dict] = None,
    ) -> ScheduledTask:
        """Create a task firing at ``trigger_time`` or after ``delay_seconds``."""
        if not description or not description.strip():
            raise ValueError("description must not be empty")
        if trigger_time is None and delay_seconds is None:
            raise ValueError("Either trigger_time or delay_seconds is required")
        if trigger_time is None:
            if delay_seconds < 0:
                raise ValueError("delay_seconds must not be negative")
            trigger_time = self._clock() + timedelta(seconds=delay_seconds)
        elif trigger_time.tzinfo is None:
            trigger_time = trigger_time.replace(tzinfo=ZoneInfo(self._timezone_name))

        task = ScheduledTask(
            conversation_id=conversation_id,
            trigger_time=trigger_time,
            description=description.strip(),
            metadata=metadata or {},
        )
        async with self._lock:
            self._store.add(task)
            await self._store.save()
        logger.info(
            f"Scheduled task {task.id} for {conversation_id} at {task.trigger_time.isoformat()}: "
            f"{task.description}"
        )
        return task

    async def cancel(self, task_id: str) -> bool:
        async with self._lock:
            removed = self._store.remove(task_id)
            if removed:
                await self._store.save()
        if removed:
            logger.info(f"Cancelled scheduled task {task_id}")
        return removed

    def get_task(self, task_id: str) -> Optional[ScheduledTask]:
        return self._store.get(task_id)

    def list_tasks(self, conversation_id: Optional[str] = None) -> List[ScheduledTask]:
        return self._store.list(conversation_id)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Load the store and start the evaluation loop."""
        if self._running:
            return
        await self._store.load()
        self._running = True
        self._loop_task = asyncio.create_task(self._evaluation_loop())
        logger.info(f"TaskScheduler started with {len(self._store)} pending tasks")

    async def stop(self) -> None:
        self._running = False
        if self._loop_task:
            self._loop_task.cancel()
            try:
                await self._loop_task
            except asyncio.CancelledError:
                pass
            self._loop_task = None
        for task in list(self._inflight):
            task.cancel()
        await self.wait_idle()
        logger.info("TaskScheduler stopped")

    # ------------------------------------------------------------------
    # Evaluation loop
    # ------------------------------------------------------------------

    async def _evaluation_loop(self) -> None:
        while self._running:
            try:
                await self.run_due()
            except Exception as e:
                logger.error(f"Task evaluation error: {e}", exc_info=True)
            await asyncio.sleep(self._check_interval)

    async def run_due(self, now: Optional[datetime] = None) -> List[ScheduledTask]:
        """
        Fire every task due at ``now``. Returns the fired tasks.

        Callbacks are dispatched, not awaited; use ``wait_idle()`` to wait
        for them.
        """
        now = now or self._clock()
        async with self._lock:
            due = [task for task in self._store.list() if task.is_due(now)]
            if not due:
                return []
            for task in due:
                self._store.remove(task.id)
            await self._store.save()

        for task in due:
            fire = asyncio.create_task(self._fire(task))
            self._inflight.add(fire)
            fire.add_done_callback(self._inflight.discard)
        return due

    async def wait_idle(self) -> None:
        """Wait until every dispatched callback has finished."""
        while self._inflight:
            await asyncio.wait(set(self._inflight))

    async def _fire(self, task: ScheduledTask) -> None:
        if self._callback is None:
            logger.error(f"No callback configured; scheduled task {task.id} dropped")
            return
        try:
            await self._callback(task)
            logger.info(f"Scheduled task {task.id} fired into {task.conversation_id}")
        except Exception as e:
            logger.error(f"Scheduled task {task.id} failed: {e}", exc_info=True)
