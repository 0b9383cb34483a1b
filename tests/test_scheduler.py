"""
并发受限调度器测试

runner 使用简单的协程函数代替重试控制器，记录并发峰值与启动顺序。
"""
import asyncio

import pytest

from browser_engine.errors import QueueFullError
from browser_engine.models import Task, TaskOutcome
from browser_engine.scheduler import Scheduler


class RecordingRunner:
    """记录启动顺序与同时运行数的 runner"""

    def __init__(self, delay: float = 0.02, fail_ids=()) -> None:
        self.delay = delay
        self.fail_ids = set(fail_ids)
        self.active = 0
        self.peak = 0
        self.started = []
        self.finished = []

    async def __call__(self, task: Task) -> TaskOutcome:
        self.active += 1
        self.peak = max(self.peak, self.active)
        self.started.append(task.task_id)
        try:
            await asyncio.sleep(self.delay)
            if task.task_id in self.fail_ids:
                raise RuntimeError(f"runner failed for {task.task_id}")
            self.finished.append(task.task_id)
            return TaskOutcome(task_id=task.task_id, ok=True, attempts=1)
        finally:
            self.active -= 1


def _tasks(count):
    return [Task(url=f"https://example.com/{i}", task_id=f"task-{i}") for i in range(count)]


class TestScheduler:
    """测试异步队列与并发上限"""

    @pytest.mark.asyncio
    async def test_concurrency_limit(self):
        runner = RecordingRunner()
        scheduler = Scheduler(runner, max_concurrency=2)

        for task in _tasks(5):
            scheduler.enqueue(task)
        assert scheduler.running_count == 2
        assert scheduler.queued_count == 3

        await scheduler.join()

        assert runner.peak == 2
        assert len(runner.finished) == 5
        assert scheduler.running_count == 0
        assert scheduler.queued_count == 0

    @pytest.mark.asyncio
    async def test_dispatch_in_submission_order(self):
        runner = RecordingRunner()
        scheduler = Scheduler(runner, max_concurrency=1)
        tasks = _tasks(4)

        for task in tasks:
            scheduler.enqueue(task)
        await scheduler.join()

        assert runner.started == [task.task_id for task in tasks]

    @pytest.mark.asyncio
    async def test_queue_full(self):
        runner = RecordingRunner(delay=0.05)
        scheduler = Scheduler(runner, max_concurrency=1, max_queue_size=1)
        first, second, third = _tasks(3)

        scheduler.enqueue(first)
        scheduler.enqueue(second)
        with pytest.raises(QueueFullError):
            scheduler.enqueue(third)

        await scheduler.join()
        assert runner.finished == [first.task_id, second.task_id]

    @pytest.mark.asyncio
    async def test_worker_failure_releases_slot(self):
        runner = RecordingRunner(fail_ids=["task-0"])
        scheduler = Scheduler(runner, max_concurrency=1)

        for task in _tasks(3):
            scheduler.enqueue(task)
        await scheduler.join()

        assert runner.finished == ["task-1", "task-2"]
        assert scheduler.running_count == 0

    @pytest.mark.asyncio
    async def test_run_now_bypasses_queue(self):
        runner = RecordingRunner()
        scheduler = Scheduler(runner, max_concurrency=1)
        task = Task(url="https://example.com")

        outcome = await scheduler.run_now(task)

        assert outcome.ok is True
        assert outcome.task_id == task.task_id
        assert scheduler.queued_count == 0

    @pytest.mark.asyncio
    async def test_running_sync_job_is_counted(self):
        runner = RecordingRunner(delay=0.05)
        scheduler = Scheduler(runner, max_concurrency=2)

        sync_job = asyncio.create_task(scheduler.run_now(Task(url="https://example.com")))
        await asyncio.sleep(0)
        assert scheduler.running_count == 1

        await sync_job
        assert scheduler.running_count == 0

    @pytest.mark.asyncio
    async def test_queued_task_waits_for_running_sync_job(self):
        runner = RecordingRunner(delay=0.05)
        scheduler = Scheduler(runner, max_concurrency=1)
        sync_task, queued_task = _tasks(2)

        sync_job = asyncio.create_task(scheduler.run_now(sync_task))
        await asyncio.sleep(0)
        scheduler.enqueue(queued_task)
        assert scheduler.running_count == 1
        assert scheduler.queued_count == 1

        await sync_job
        await scheduler.join()

        assert runner.peak == 1
        assert runner.started == [sync_task.task_id, queued_task.task_id]
        assert scheduler.running_count == 0

    @pytest.mark.asyncio
    async def test_shutdown_rejects_new_work(self):
        runner = RecordingRunner()
        scheduler = Scheduler(runner, max_concurrency=2)
        for task in _tasks(2):
            scheduler.enqueue(task)

        await scheduler.shutdown()

        assert scheduler.closed is True
        assert len(runner.finished) == 2
        with pytest.raises(QueueFullError):
            scheduler.enqueue(Task(url="https://example.com"))

    @pytest.mark.asyncio
    async def test_join_when_idle_returns_immediately(self):
        scheduler = Scheduler(RecordingRunner(), max_concurrency=1)
        await asyncio.wait_for(scheduler.join(), timeout=1)

    def test_invalid_concurrency(self):
        with pytest.raises(ValueError):
            Scheduler(RecordingRunner(), max_concurrency=0)
