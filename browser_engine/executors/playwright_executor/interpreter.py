"""
动作解释器 - 在已打开的页面上执行单个动作

每个动作产生一对日志：action-start，然后 action-done 或 action-error。
单个动作失败只记录，不中断后续动作（部分完成仍能得到截图和轨迹）。
"""
import asyncio
import time
from typing import Any

from loguru import logger
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeout

from ...errors import ActionError
from ...models import (
    Action,
    ClickAction,
    EvalAction,
    FillAction,
    LogKind,
    UnknownAction,
    WaitAction,
)
from ...trace import ExecutionLog


class ActionInterpreter:
    """
    动作解释器

    Args:
        action_timeout_ms: 单个动作的超时时间
    """

    def __init__(self, action_timeout_ms: int = 8000) -> None:
        self.action_timeout_ms = action_timeout_ms

    async def perform(self, page: Any, action: Action, index: int, log: ExecutionLog) -> bool:
        """
        执行一个动作并记录日志

        Args:
            page: Playwright Page
            action: 要执行的动作
            index: 动作下标
            log: 当前尝试的日志

        Returns:
            bool: 动作是否成功（未知动作视为成功跳过）
        """
        described = action.to_dict()
        started = time.monotonic()
        log.append(LogKind.ACTION_START, f"start {action.type.value}", index=index, action=described)

        try:
            await self._dispatch(page, action, index, log)
        except ActionError as e:
            logger.warning(f"⚠️ [Interpreter] 动作 {index} ({action.type.value}) 失败: {e}")
            log.append(
                LogKind.ACTION_ERROR,
                str(e),
                index=index,
                action=described,
                error=e.reason,
            )
            return False

        log.append(
            LogKind.ACTION_DONE,
            index=index,
            action=described,
            duration_ms=int((time.monotonic() - started) * 1000),
        )
        return True

    async def _dispatch(self, page: Any, action: Action, index: int, log: ExecutionLog) -> None:
        if isinstance(action, UnknownAction):
            log.warning(
                action.reason or f"unknown action type {action.type_name}",
                index=index,
                action=action.to_dict(),
            )
            return

        if isinstance(action, WaitAction):
            await asyncio.sleep(action.duration_ms / 1000)
            return

        try:
            if isinstance(action, ClickAction):
                await page.click(action.selector, timeout=self.action_timeout_ms)
            elif isinstance(action, FillAction):
                await page.fill(action.selector, action.value, timeout=self.action_timeout_ms)
            elif isinstance(action, EvalAction):
                result = await asyncio.wait_for(
                    page.evaluate(action.script),
                    timeout=self.action_timeout_ms / 1000,
                )
                if result is not None:
                    log.append(LogKind.EVAL_RESULT, index=index, result=result)
            else:
                raise ActionError(f"unsupported action {action!r}", index=index)
        except PlaywrightTimeout as e:
            raise ActionError(
                f"ActionTimeout: {action.type.value} not actionable within {self.action_timeout_ms}ms: {e}",
                index=index,
                reason="timeout",
            ) from e
        except asyncio.TimeoutError as e:
            raise ActionError(
                f"ActionTimeout: script did not finish within {self.action_timeout_ms}ms",
                index=index,
                reason="timeout",
            ) from e
        except PlaywrightError as e:
            reason = "script" if isinstance(action, EvalAction) else _classify(e)
            raise ActionError(str(e), index=index, reason=reason) from e
        except ActionError:
            raise
        except Exception as e:
            raise ActionError(f"{type(e).__name__}: {e}", index=index) from e


def _classify(error: Exception) -> str:
    text = str(error).lower()
    if "no element" in text or "not found" in text or "waiting for selector" in text:
        return "not-found"
    return "failed"
