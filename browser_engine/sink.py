"""
结果汇报 - 尽力而为地把任务结果同步到持久化层

任何失败（网络错误、存储不可用）都只记录 warning，
永远不会改变返回给调用方的任务成功/失败判断。
"""
from pathlib import Path
from typing import Optional

from loguru import logger

from .errors import SinkError
from .models import Task, TaskOutcome, TaskStatus
from .storage.base import TaskStore
from .trace import ExecutionLog


class ResultSink:
    """
    结果汇报器

    Args:
        store: 持久化协作方；为 None 时只保留内存结果
    """

    def __init__(self, store: Optional[TaskStore] = None) -> None:
        self.store = store

    @property
    def enabled(self) -> bool:
        return self.store is not None

    async def record_submission(self, task: Task, status: TaskStatus) -> bool:
        """提交时写入任务记录"""
        if self.store is None:
            return False
        record = task.to_record()
        record["status"] = status.value
        try:
            await self.store.insert_task(record)
            return True
        except Exception as e:
            logger.warning(f"⚠️ [ResultSink] 写入任务记录失败 {task.task_id}: {e}")
            return False

    async def publish(self, outcome: TaskOutcome, log: Optional[ExecutionLog] = None) -> Optional[str]:
        """
        同步任务最终状态、日志和截图引用

        Args:
            outcome: 任务结果（尚未附带公开 URL）
            log: 任务日志，失败时在其中追加 warning

        Returns:
            Optional[str]: 截图的公开 URL（不可用时为 None）
        """
        if self.store is None:
            logger.debug(f"💾 [ResultSink] 未配置持久化，跳过 {outcome.task_id}")
            return None

        key = Path(outcome.artifact_path).name if outcome.artifact_path else None
        status = TaskStatus.DONE if outcome.ok else TaskStatus.ERROR
        try:
            await self.store.update_task(
                outcome.task_id,
                status=status.value,
                logs=[entry.to_dict() for entry in outcome.logs],
                artifact_ref=key,
                error=outcome.error,
                attempts=outcome.attempts,
            )
            public_url = await self.store.get_public_url(key) if key else None
        except Exception as e:
            failure = SinkError(f"{type(e).__name__}: {e}")
            logger.warning(f"⚠️ [ResultSink] 结果同步失败 {outcome.task_id}: {failure}")
            if log is not None:
                log.warning("Failed to upload screenshot or update task", error=str(failure))
            return None

        logger.info(f"💾 [ResultSink] 已同步 {outcome.task_id}: status={status.value}")
        return public_url
