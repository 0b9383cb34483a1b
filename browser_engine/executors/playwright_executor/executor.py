"""
Playwright 执行器 - 单次尝试

一次尝试的完整流程：
1. 启动全新的隔离浏览器会话
2. 订阅 console / pageerror，按发生顺序写入日志
3. 导航到目标 URL（等待 load，受 navigation_timeout_ms 限制），失败则本次尝试失败
4. 依序执行所有动作（单个动作失败不会中断）
5. 整页截图，写入产物存储
6. 任何退出路径上都关闭会话
"""
from typing import Any, Optional

from loguru import logger
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeout

from config import settings

from ...artifacts import ArtifactStore, LocalArtifactStore, artifact_key
from ...errors import NavigationError
from ...models import ExecutionPolicy, LogKind, Task
from ...trace import ExecutionLog
from ..base import BaseExecutor
from .browser_manager import BrowserManager
from .interpreter import ActionInterpreter


class PlaywrightExecutor(BaseExecutor):
    """
    Playwright Web 自动化执行器

    Args:
        browser_manager: 会话工厂，默认每次启动新的 Chromium
        artifact_store: 截图存储，默认写入 settings.output_dir
    """

    def __init__(
        self,
        browser_manager: Optional[BrowserManager] = None,
        artifact_store: Optional[ArtifactStore] = None,
    ) -> None:
        self.browser_manager = browser_manager or BrowserManager()
        self.artifact_store = artifact_store or LocalArtifactStore(settings.output_dir)

    async def execute(self, task: Task, policy: ExecutionPolicy, log: ExecutionLog) -> str:
        """
        执行一次尝试

        Returns:
            str: 截图的 locator

        Raises:
            NavigationError: 导航超时或失败
            SessionError: 浏览器会话启动失败
        """
        logger.info(f"🚀 [PlaywrightExecutor] 开始尝试 {log.attempt}: {task.task_id} -> {task.url}")

        async with self.browser_manager.session(log) as session:
            page = session.page
            _subscribe(page, log)

            log.append(LogKind.NAVIGATION, f"goto {task.url}")
            await self._navigate(page, task.url, policy)

            interpreter = ActionInterpreter(policy.action_timeout_ms)
            for index, action in enumerate(task.actions):
                await interpreter.perform(page, action, index, log)

            image = await page.screenshot(full_page=True)
            locator = await self.artifact_store.write_artifact(artifact_key(task.task_id), image)

        logger.info(f"✅ [PlaywrightExecutor] 尝试完成: {task.task_id} -> {locator}")
        return locator

    @staticmethod
    async def _navigate(page: Any, url: str, policy: ExecutionPolicy) -> None:
        try:
            await page.goto(url, wait_until="load", timeout=policy.navigation_timeout_ms)
        except PlaywrightTimeout as e:
            raise NavigationError(
                f"navigation to {url} timed out after {policy.navigation_timeout_ms}ms"
            ) from e
        except PlaywrightError as e:
            raise NavigationError(f"navigation to {url} failed: {e}") from e


def _subscribe(page: Any, log: ExecutionLog) -> None:
    """把页面侧的 console / pageerror 事件接到日志上"""
    page.on("console", lambda message: log.append(LogKind.CONSOLE, message.text))
    page.on("pageerror", lambda error: log.append(LogKind.PAGE_ERROR, str(error)))
