"""
任务引擎 - Submit → Schedule → Retry → Attempt → Sink

核心编排器，串联 scheduler → retry controller → executor → result sink，
并保存本进程内所有任务的状态，供查询接口使用。每个进程构造一次。
"""
from typing import Any, Dict, List, Optional, Union

from loguru import logger

from config import settings

from .artifacts import ArtifactStore, LocalArtifactStore
from .errors import InvalidJobError, QueueFullError
from .executors.base import BaseExecutor
from .models import ExecutionPolicy, JobRequest, Submission, Task, TaskOutcome, TaskRecord, TaskStatus
from .retry import RetryController
from .scheduler import Scheduler
from .sink import ResultSink
from .storage.base import TaskStore


class TaskEngine:
    """
    任务引擎

    使用方式：
        engine = TaskEngine()
        outcome = await engine.submit({"url": "https://example.com", "actions": []})
        submission = await engine.submit({"url": "https://example.com", "async": True})
        record = engine.get_task(submission.task_id)
    """

    def __init__(
        self,
        *,
        executor: Optional[BaseExecutor] = None,
        task_store: Optional[TaskStore] = None,
        artifact_store: Optional[ArtifactStore] = None,
        policy: Optional[ExecutionPolicy] = None,
        max_concurrency: Optional[int] = None,
        max_queue_size: Optional[int] = None,
        retry_controller: Optional[RetryController] = None,
    ) -> None:
        self.default_policy = policy or ExecutionPolicy.from_settings(settings)
        self.artifact_store = artifact_store or LocalArtifactStore(
            settings.output_dir, settings.artifact_public_base_url
        )
        self.sink = ResultSink(task_store)
        if executor is None:
            from .executors.playwright_executor import PlaywrightExecutor

            executor = PlaywrightExecutor(artifact_store=self.artifact_store)
        self.retry = retry_controller or RetryController(executor, self.sink)
        self.scheduler = Scheduler(
            self._execute,
            max_concurrency=max_concurrency or settings.worker_concurrency,
            max_queue_size=settings.max_queue_size if max_queue_size is None else max_queue_size,
        )
        self._tasks: Dict[str, Task] = {}

    @property
    def task_store(self) -> Optional[TaskStore]:
        return self.sink.store

    @property
    def running_count(self) -> int:
        return self.scheduler.running_count

    @property
    def queued_count(self) -> int:
        return self.scheduler.queued_count

    async def submit(self, job: Union[JobRequest, Dict[str, Any]]) -> Union[Submission, TaskOutcome]:
        """
        提交任务

        Args:
            job: JobRequest 或原始请求体 {url, actions?, policy?, async?}

        Returns:
            异步模式返回 Submission；同步模式返回 TaskOutcome

        Raises:
            InvalidJobError: 请求不合法
            QueueFullError: 异步队列已满
        """
        if not isinstance(job, JobRequest):
            job = JobRequest.from_dict(job, default_wait_ms=settings.default_wait_ms)
        if not job.url:
            raise InvalidJobError("url is required")

        task = Task(
            url=job.url,
            actions=job.actions,
            policy=self.default_policy.merge(job.policy_overrides),
        )
        logger.info(
            f"🚀 [TaskEngine] 提交 {task.task_id}: url={task.url}, actions={len(task.actions)}, "
            f"async={job.run_async}"
        )

        if job.run_async:
            # 先落库再入队，worker 汇报结果时记录已存在
            self.scheduler.check_capacity()
            self._tasks[task.task_id] = task
            await self.sink.record_submission(task, TaskStatus.PENDING)
            try:
                self.scheduler.enqueue(task)
            except QueueFullError:
                del self._tasks[task.task_id]
                raise
            return Submission(task_id=task.task_id, queued=True)

        self._tasks[task.task_id] = task
        await self.sink.record_submission(task, TaskStatus.RUNNING)
        return await self.scheduler.run_now(task)

    def get_task(self, task_id: str) -> Optional[TaskRecord]:
        """查询本进程内任务的当前快照"""
        task = self._tasks.get(task_id)
        return task.snapshot() if task else None

    async def query_task(self, task_id: str) -> Optional[Dict[str, Any]]:
        """先查内存，再查持久化层"""
        record = self.get_task(task_id)
        if record is not None:
            return record.to_dict()
        if self.task_store is None:
            return None
        stored = await self.task_store.get_task(task_id)
        if stored and stored.get("screenshotPath"):
            stored["screenshotUrl"] = await self.task_store.get_public_url(stored["screenshotPath"])
        return stored

    async def list_recent_tasks(self, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        limit = limit or settings.recent_tasks_limit
        if self.task_store is not None:
            return await self.task_store.list_recent_tasks(limit)
        records = sorted(
            (task.snapshot() for task in self._tasks.values()),
            key=lambda record: record.created_at,
            reverse=True,
        )
        return [record.to_dict() for record in records[:limit]]

    async def read_artifact(self, task_id: str) -> Optional[bytes]:
        """读取已完成任务的截图"""
        record = self.get_task(task_id)
        if record is None or not record.status.is_terminal or not record.artifact_path:
            return None
        return await self.artifact_store.read_artifact(record.artifact_path)

    async def join(self) -> None:
        await self.scheduler.join()

    async def shutdown(self) -> None:
        await self.scheduler.shutdown()
        if self.task_store is not None:
            await self.task_store.close()

    async def _execute(self, task: Task) -> TaskOutcome:
        return await self.retry.run_task(task, task.policy)
