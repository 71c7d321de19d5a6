"""Tests for one-shot scheduled tasks"""

import asyncio
import json
from datetime import datetime, timedelta, timezone

import pytest

from labvalet.triggers import ScheduledTask, TaskScheduler, TaskStore


NOW = datetime(2025, 11, 21, 12, 0, tzinfo=timezone.utc)


class FiredTasks:

    def __init__(self, fail=False):
        self.tasks = []
        self.fail = fail

    async def __call__(self, task):
        self.tasks.append(task)
        if self.fail:
            raise RuntimeError("agent unavailable")


def make_scheduler(store_path=None, callback=None):
    store = TaskStore(store_path=str(store_path) if store_path else None)
    return TaskScheduler(store, callback=callback, clock=lambda: NOW, timezone_name="America/Los_Angeles")


class TestScheduledTask:

    def test_naive_time_rejected(self):
        with pytest.raises(ValueError):
            ScheduledTask(conversation_id="c1", trigger_time=datetime(2025, 11, 21), description="x")

    def test_normalized_to_utc_and_round_trip(self):
        local = datetime(2025, 11, 21, 9, 0, tzinfo=timezone(timedelta(hours=-8)))
        task = ScheduledTask(conversation_id="c1", trigger_time=local, description="remind me")

        assert task.trigger_time == datetime(2025, 11, 21, 17, 0, tzinfo=timezone.utc)
        restored = ScheduledTask.from_dict(task.to_dict())
        assert restored.id == task.id
        assert restored.trigger_time == task.trigger_time


class TestSchedule:

    async def test_delay(self):
        scheduler = make_scheduler()
        task = await scheduler.schedule("c1", "  check Lab 15  ", delay_seconds=90)

        assert task.trigger_time == NOW + timedelta(seconds=90)
        assert task.description == "check Lab 15"
        assert scheduler.get_task(task.id) is task

    async def test_naive_trigger_time_uses_scheduler_timezone(self):
        scheduler = make_scheduler()
        task = await scheduler.schedule("c1", "remind me", trigger_time=datetime(2025, 11, 21, 23, 0))
        assert task.trigger_time == datetime(2025, 11, 22, 7, 0, tzinfo=timezone.utc)

    @pytest.mark.parametrize("kwargs", [
        {"description": "", "delay_seconds": 10},
        {"description": "x"},
        {"description": "x", "delay_seconds": -1},
    ])
    async def test_invalid(self, kwargs):
        with pytest.raises(ValueError):
            await make_scheduler().schedule("c1", **kwargs)

    async def test_list_sorted_and_filtered(self):
        scheduler = make_scheduler()
        late = await scheduler.schedule("c1", "late", delay_seconds=300)
        early = await scheduler.schedule("c1", "early", delay_seconds=60)
        other = await scheduler.schedule("c2", "other", delay_seconds=10)

        assert scheduler.list_tasks("c1") == [early, late]
        assert scheduler.list_tasks() == [other, early, late]

    async def test_cancel(self):
        scheduler = make_scheduler()
        task = await scheduler.schedule("c1", "x", delay_seconds=10)
        assert await scheduler.cancel(task.id) is True
        assert await scheduler.cancel(task.id) is False
        assert scheduler.list_tasks() == []


class TestRunDue:

    async def test_fires_due_tasks_once(self):
        fired = FiredTasks()
        scheduler = make_scheduler(callback=fired)
        due = await scheduler.schedule("c1", "now", delay_seconds=0)
        later = await scheduler.schedule("c1", "later", delay_seconds=3600)

        assert await scheduler.run_due() == [due]
        assert await scheduler.run_due() == []
        await scheduler.wait_idle()
        assert fired.tasks == [due]
        assert scheduler.list_tasks() == [later]

        assert await scheduler.run_due(NOW + timedelta(hours=2)) == [later]
        await scheduler.wait_idle()
        assert fired.tasks == [due, later]

    async def test_callback_failure_does_not_refire(self):
        fired = FiredTasks(fail=True)
        scheduler = make_scheduler(callback=fired)
        await scheduler.schedule("c1", "x", delay_seconds=0)

        await scheduler.run_due()
        await scheduler.wait_idle()
        await scheduler.run_due()
        await scheduler.wait_idle()

        assert len(fired.tasks) == 1
        assert scheduler.list_tasks() == []

    async def test_slow_conversation_does_not_block_others(self):
        release = asyncio.Event()
        fired = []

        async def callback(task):
            fired.append(task.conversation_id)
            if task.conversation_id == "slow":
                await release.wait()

        scheduler = make_scheduler(callback=callback)
        await scheduler.schedule("slow", "long round", delay_seconds=0)
        await scheduler.schedule("fast", "quick round", delay_seconds=0)

        await asyncio.wait_for(scheduler.run_due(), timeout=1)
        for _ in range(5):
            await asyncio.sleep(0)

        assert sorted(fired) == ["fast", "slow"]
        release.set()
        await asyncio.wait_for(scheduler.wait_idle(), timeout=1)

    async def test_stop_cancels_running_callbacks(self):
        async def callback(task):
            await asyncio.Event().wait()

        scheduler = make_scheduler(callback=callback)
        await scheduler.schedule("c1", "x", delay_seconds=0)
        await scheduler.run_due()

        await asyncio.wait_for(scheduler.stop(), timeout=1)

    async def test_evaluation_loop(self, tmp_path):
        fired = FiredTasks()
        store = TaskStore(str(tmp_path / "tasks.json"))
        scheduler = TaskScheduler(store, callback=fired, check_interval=0.01)

        await scheduler.start()
        try:
            task = await scheduler.schedule("c1", "soon", delay_seconds=0)
            for _ in range(100):
                if fired.tasks:
                    break
                await asyncio.sleep(0.01)
        finally:
            await scheduler.stop()

        assert fired.tasks == [task]


class TestTaskStore:

    async def test_persistence(self, tmp_path):
        path = tmp_path / "tasks.json"
        scheduler = make_scheduler(store_path=path)
        task = await scheduler.schedule("c1", "remind me", delay_seconds=60)

        data = json.loads(path.read_text())
        assert data["version"] == 1
        assert data["tasks"][0]["id"] == task.id

        reloaded = TaskStore(str(path))
        await reloaded.load()
        assert reloaded.get(task.id).trigger_time == task.trigger_time

    async def test_due_tasks_removed_from_disk_before_firing(self, tmp_path):
        path = tmp_path / "tasks.json"
        seen = []

        async def callback(task):
            seen.append(json.loads(path.read_text())["tasks"])

        scheduler = make_scheduler(store_path=path, callback=callback)
        await scheduler.schedule("c1", "x", delay_seconds=0)
        await scheduler.run_due()
        await scheduler.wait_idle()

        assert seen == [[]]

    async def test_invalid_entries_skipped(self, tmp_path):
        path = tmp_path / "tasks.json"
        good = ScheduledTask(conversation_id="c1", trigger_time=NOW, description="ok")
        path.write_text(json.dumps({"version": 1, "tasks": [{"id": "broken"}, good.to_dict()]}))

        store = TaskStore(str(path))
        await store.load()

        assert [t.id for t in store.list()] == [good.id]

    async def test_missing_file(self, tmp_path):
        store = TaskStore(str(tmp_path / "nope.json"))
        await store.load()
        assert len(store) == 0
