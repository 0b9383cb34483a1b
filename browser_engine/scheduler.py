"""
并发受限调度器 - FIFO 队列 + 固定大小 worker 池

- 同步模式：直接执行并等待结果，不经过队列，也不受 max_concurrency 限制
  （与异步任务重叠时同时运行数可能超过上限）；运行中的同步任务计入
  running_count，并占用名额，推迟排队任务的派发
- 异步模式：任务进入 FIFO 队列，最多 max_concurrency 个 worker 同时执行；
  一个 worker 完成后立即释放名额并派发下一个排队任务

派发顺序与提交顺序一致，完成顺序不保证。
"""
import asyncio
from collections import deque
from typing import Awaitable, Callable, Deque, Set

from loguru import logger

from .errors import QueueFullError
from .models import Task, TaskOutcome

TaskRunner = Callable[[Task], Awaitable[TaskOutcome]]


class Scheduler:
    """
    调度器

    使用方式：
        scheduler = Scheduler(runner, max_concurrency=2)
        scheduler.enqueue(task)          # 异步
        outcome = await scheduler.run_now(task)  # 同步
        await scheduler.join()

    Args:
        runner: 执行单个任务的协程函数（通常是重试控制器）
        max_concurrency: 同时执行的最大任务数
        max_queue_size: 队列上限，0 表示不限制
    """

    def __init__(self, runner: TaskRunner, *, max_concurrency: int = 2, max_queue_size: int = 0) -> None:
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be >= 1")
        self._runner = runner
        self.max_concurrency = max_concurrency
        self.max_queue_size = max(0, max_queue_size)
        self._queue: Deque[Task] = deque()
        self._running = 0
        self._running_sync = 0
        self._workers: Set[asyncio.Task] = set()
        self._idle = asyncio.Event()
        self._idle.set()
        self._closed = False

    @property
    def running_count(self) -> int:
        return self._running + self._running_sync

    @property
    def queued_count(self) -> int:
        return len(self._queue)

    @property
    def closed(self) -> bool:
        return self._closed

    async def run_now(self, task: Task) -> TaskOutcome:
        """同步执行：调用方等待重试控制器返回"""
        self._running_sync += 1
        try:
            return await self._runner(task)
        finally:
            self._running_sync -= 1
            self._dispatch()

    def check_capacity(self) -> None:
        """
        检查是否还能接收异步任务

        Raises:
            QueueFullError: 调度器已关闭或队列已满
        """
        if self._closed:
            raise QueueFullError("scheduler is shutting down")
        if self.max_queue_size and len(self._queue) >= self.max_queue_size:
            raise QueueFullError(f"queue is full ({self.max_queue_size} tasks waiting)")

    def enqueue(self, task: Task) -> None:
        """
        异步提交：追加到队列尾部并尝试派发

        Raises:
            QueueFullError: 调度器已关闭或队列已满
        """
        self.check_capacity()
        self._queue.append(task)
        self._idle.clear()
        logger.info(f"📥 [Scheduler] 入队 {task.task_id} (queued={len(self._queue)}, running={self.running_count})")
        self._dispatch()

    def _dispatch(self) -> None:
        # 不含 await：在事件循环中检查与计数是原子的
        loop = asyncio.get_running_loop()
        while self.running_count < self.max_concurrency and self._queue:
            task = self._queue.popleft()
            self._running += 1
            worker = loop.create_task(self._work(task), name=f"worker-{task.task_id}")
            self._workers.add(worker)
            worker.add_done_callback(self._workers.discard)

    async def _work(self, task: Task) -> None:
        logger.info(f"⚙️ [Scheduler] 处理 {task.task_id}")
        try:
            outcome = await self._runner(task)
            logger.info(f"🏁 [Scheduler] 完成 {task.task_id}: ok={outcome.ok}")
        except Exception as e:
            logger.exception(f"❌ [Scheduler] worker 异常 {task.task_id}: {e}")
        finally:
            self._running -= 1
            self._dispatch()
            if self._running == 0 and not self._queue:
                self._idle.set()

    async def join(self) -> None:
        """等待队列清空且所有 worker 完成"""
        await self._idle.wait()

    async def shutdown(self) -> None:
        """停止接收新任务，并等待已提交的任务完成"""
        self._closed = True
        await self.join()
        logger.info("🛑 [Scheduler] 已停止")
