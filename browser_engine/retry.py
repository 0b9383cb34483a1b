"""
重试控制器 - 有界重试 + 固定退避

attempt = 0；当 attempt <= max_retries 时循环：
- 成功：汇报结果，立即返回（不再尝试）
- 失败：若还有预算，等待固定退避后进入下一次尝试；否则汇报错误并返回失败

每次重试都是全新的尝试；所有尝试的日志按顺序拼接，不丢弃任何条目。
"""
import asyncio
import time
from dataclasses import replace
from typing import Awaitable, Callable, Optional

from loguru import logger

from .executors.base import BaseExecutor
from .models import AttemptResult, ExecutionPolicy, Task, TaskOutcome
from .sink import ResultSink
from .trace import ExecutionLog


class RetryController:
    """
    重试控制器

    Args:
        executor: 单次尝试执行器
        sink: 结果汇报器
        sleep: 退避等待函数（测试时可替换）
    """

    def __init__(
        self,
        executor: BaseExecutor,
        sink: Optional[ResultSink] = None,
        *,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.executor = executor
        self.sink = sink or ResultSink()
        self._sleep = sleep

    async def run_task(self, task: Task, policy: Optional[ExecutionPolicy] = None) -> TaskOutcome:
        """
        执行任务直到成功或重试预算耗尽

        Args:
            task: 处于 pending 状态的任务
            policy: 执行策略，默认使用任务自带的策略

        Returns:
            TaskOutcome: 最终结果（包含所有尝试的日志）
        """
        policy = policy or task.policy
        task.mark_running()

        log = ExecutionLog(task.task_id)
        total = policy.total_attempts
        attempt = 0
        result: Optional[AttemptResult] = None

        while attempt <= policy.max_retries:
            started = time.monotonic()
            log.info(f"Starting attempt {attempt + 1}/{total}", attempt=attempt + 1)
            task.record_progress(log.entries())
            result = await self.executor.run(task, policy, attempt)
            log.extend(result.logs)
            task.record_progress(log.entries())

            if result.ok:
                elapsed = int((time.monotonic() - started) * 1000)
                log.info(f"Completed in {elapsed}ms", attempt=attempt + 1)
                logger.info(f"✅ [RetryController] {task.task_id} 第 {attempt + 1}/{total} 次尝试成功")
                return await self._finish(
                    task,
                    TaskOutcome(
                        task_id=task.task_id,
                        ok=True,
                        artifact_path=result.artifact_path,
                        attempts=attempt + 1,
                    ),
                    log,
                )

            logger.warning(
                f"❌ [RetryController] {task.task_id} 第 {attempt + 1}/{total} 次尝试失败: {result.error}"
            )
            if attempt < policy.max_retries:
                log.info(
                    f"Retrying in {policy.retry_backoff_ms}ms (attempt {attempt + 1})",
                    attempt=attempt + 1,
                )
                await self._sleep(policy.retry_backoff_ms / 1000)
            attempt += 1

        return await self._finish(
            task,
            TaskOutcome(
                task_id=task.task_id,
                ok=False,
                error=result.error if result else "no attempt was made",
                attempts=attempt,
            ),
            log,
        )

    async def _finish(self, task: Task, outcome: TaskOutcome, log: ExecutionLog) -> TaskOutcome:
        outcome = replace(outcome, logs=log.entries())
        artifact_url = await self.sink.publish(outcome, log)
        outcome = replace(outcome, logs=log.entries(), artifact_url=artifact_url)
        task.finish(outcome)
        return outcome
