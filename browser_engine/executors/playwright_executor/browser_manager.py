"""
浏览器生命周期管理 - 每次尝试一个全新的隔离会话

每个会话 = 新的 Playwright 实例 + 新浏览器 + 新上下文 + 新页面，
不在尝试或任务之间复用。关闭是尽力而为的：失败只记录 warning。
"""
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Dict, List, Optional

from loguru import logger
from playwright.async_api import async_playwright

from config import settings

from ...errors import SessionError
from ...trace import ExecutionLog

DEFAULT_LAUNCH_ARGS: List[str] = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-gpu",
    "--disable-dev-shm-usage",
    "--disable-extensions",
    "--disable-background-networking",
    "--disable-sync",
    "--no-first-run",
]

DEFAULT_VIEWPORT: Dict[str, int] = {"width": 1280, "height": 720}


@dataclass
class BrowserSession:
    """
    一个打开的浏览器会话

    close() 可以安全地多次调用，真正的关闭只发生一次。
    """
    playwright: Any = None
    browser: Any = None
    context: Any = None
    page: Any = None
    closed: bool = field(default=False, init=False)

    async def close(self, log: Optional[ExecutionLog] = None) -> None:
        if self.closed:
            return
        self.closed = True

        # 关闭浏览器会连带关闭其上下文和页面；即使被取消也要停止 playwright
        try:
            if self.browser is not None:
                try:
                    await self.browser.close()
                except Exception as e:
                    self._report_close_failure("browser", e, log)
        finally:
            if self.playwright is not None:
                try:
                    await self.playwright.stop()
                except Exception as e:
                    self._report_close_failure("playwright", e, log)

    @staticmethod
    def _report_close_failure(name: str, error: Exception, log: Optional[ExecutionLog]) -> None:
        logger.warning(f"⚠️ [BrowserManager] 关闭 {name} 失败: {error}")
        if log is not None:
            log.warning(f"failed to close {name}", error=str(error))


class BrowserManager:
    """
    Playwright 会话工厂

    使用方式：
        async with browser_manager.session(log) as session:
            await session.page.goto(url)
    """

    def __init__(
        self,
        *,
        headless: Optional[bool] = None,
        launch_args: Optional[List[str]] = None,
        viewport: Optional[Dict[str, int]] = None,
    ) -> None:
        self.headless = settings.browser_headless if headless is None else headless
        self.launch_args = list(launch_args) if launch_args is not None else list(DEFAULT_LAUNCH_ARGS)
        self.viewport = dict(viewport or DEFAULT_VIEWPORT)

    async def open_session(self) -> BrowserSession:
        """
        启动一个全新的浏览器会话

        Returns:
            BrowserSession: 已打开页面的会话

        Raises:
            SessionError: 任一环节启动失败（已启动的部分会被关闭）
        """
        session = BrowserSession()
        try:
            logger.info("🌐 [BrowserManager] 启动 Chromium 浏览器")
            session.playwright = await async_playwright().start()
            session.browser = await session.playwright.chromium.launch(
                headless=self.headless,
                args=self.launch_args,
            )
            session.context = await session.browser.new_context(viewport=self.viewport)
            session.page = await session.context.new_page()
        except Exception as e:
            logger.error(f"❌ [BrowserManager] 启动失败: {e}")
            await session.close()
            raise SessionError(f"failed to start browser session: {e}") from e
        except BaseException:
            # 启动途中被取消（整体超时）：关闭已启动的部分后继续传播
            logger.warning("⚠️ [BrowserManager] 启动被取消，关闭已启动的部分")
            await session.close()
            raise
        return session

    @asynccontextmanager
    async def session(self, log: Optional[ExecutionLog] = None) -> AsyncIterator[BrowserSession]:
        """打开会话，并保证在任何退出路径上恰好关闭一次"""
        opened = await self.open_session()
        try:
            yield opened
        finally:
            await opened.close(log)
            logger.info("🌐 [BrowserManager] 浏览器会话已关闭")
