"""
执行器抽象基类
"""
import asyncio
from abc import ABC, abstractmethod

from loguru import logger

from ..errors import NavigationError, SessionError
from ..models import AttemptResult, ExecutionPolicy, Task
from ..trace import ExecutionLog


class BaseExecutor(ABC):
    """执行器抽象基类"""

    async def run(self, task: Task, policy: ExecutionPolicy, attempt: int = 0) -> AttemptResult:
        """
        模板方法：整体超时 → execute → 错误收敛

        子类只需实现 execute()。无论 execute 以何种方式退出，
        这里都返回 AttemptResult，不会向上抛出（取消除外）。

        Args:
            task: 要执行的任务
            policy: 本次执行策略
            attempt: 第几次尝试（从 0 开始）

        Returns:
            AttemptResult: 成功（截图路径 + 日志）或失败（错误描述 + 日志）
        """
        log = ExecutionLog(task.task_id, attempt=attempt + 1)
        try:
            if policy.attempt_timeout_ms:
                artifact = await asyncio.wait_for(
                    self.execute(task, policy, log),
                    timeout=policy.attempt_timeout_ms / 1000,
                )
            else:
                artifact = await self.execute(task, policy, log)
        except asyncio.TimeoutError as e:
            if policy.attempt_timeout_ms:
                error = f"SessionError: attempt timed out after {policy.attempt_timeout_ms}ms"
            else:
                error = f"SessionError: unexpected timeout: {e}"
            logger.warning(f"⏱️ [Executor] {task.task_id} {error}")
        except NavigationError as e:
            error = f"NavigationError: {e}"
            logger.warning(f"❌ [Executor] {task.task_id} 导航失败: {e}")
        except SessionError as e:
            error = f"SessionError: {e}"
            logger.error(f"❌ [Executor] {task.task_id} 会话失败: {e}")
        except Exception as e:
            error = f"SessionError: unexpected {type(e).__name__}: {e}"
            logger.exception(f"❌ [Executor] {task.task_id} 执行异常: {e}")
        else:
            return AttemptResult.success(artifact, log.entries())

        log.error(error)
        return AttemptResult.failure(error, log.entries())

    @abstractmethod
    async def execute(self, task: Task, policy: ExecutionPolicy, log: ExecutionLog) -> str:
        """子类实现具体执行逻辑，返回产物路径"""
        ...
