"""
动作解释器测试

使用 FakePage 代替真实页面，验证每个动作的日志对与失败分类。
"""
import pytest
from playwright.async_api import Error as PlaywrightError

from browser_engine.executors.playwright_executor import ActionInterpreter
from browser_engine.models import (
    ClickAction,
    EvalAction,
    FillAction,
    LogKind,
    UnknownAction,
    WaitAction,
)
from browser_engine.trace import ExecutionLog
from fakes import FakePage


class TestActionInterpreter:
    """测试单个动作的执行与日志"""

    @pytest.mark.asyncio
    async def test_click_success(self):
        page = FakePage()
        log = ExecutionLog("task-1")
        ok = await ActionInterpreter(500).perform(page, ClickAction("#go"), 0, log)

        assert ok is True
        assert log.kinds() == [LogKind.ACTION_START, LogKind.ACTION_DONE]
        assert page.calls == [("click", "#go", 500)]
        done = log.entries()[-1]
        assert done.index == 0
        assert done.duration_ms is not None and done.duration_ms >= 0

    @pytest.mark.asyncio
    async def test_click_missing_element_times_out(self):
        page = FakePage(missing=["#missing"])
        log = ExecutionLog("task-1")
        ok = await ActionInterpreter(200).perform(page, ClickAction("#missing"), 3, log)

        assert ok is False
        assert log.kinds() == [LogKind.ACTION_START, LogKind.ACTION_ERROR]
        error = log.entries()[-1]
        assert error.index == 3
        assert error.error == "timeout"
        assert "200ms" in error.message

    @pytest.mark.asyncio
    async def test_fill_with_empty_value(self):
        page = FakePage()
        log = ExecutionLog("task-1")
        ok = await ActionInterpreter(500).perform(page, FillAction("#q"), 0, log)

        assert ok is True
        assert page.calls == [("fill", "#q", "", 500)]

    @pytest.mark.asyncio
    async def test_wait_never_fails(self):
        page = FakePage()
        log = ExecutionLog("task-1")
        ok = await ActionInterpreter(500).perform(page, WaitAction(10), 1, log)

        assert ok is True
        assert log.kinds() == [LogKind.ACTION_START, LogKind.ACTION_DONE]
        assert page.calls == []
        assert log.entries()[-1].duration_ms >= 0

    @pytest.mark.asyncio
    async def test_eval_records_result(self):
        page = FakePage(eval_results={"() => document.title": "Example Domain"})
        log = ExecutionLog("task-1")
        ok = await ActionInterpreter(500).perform(page, EvalAction("() => document.title"), 0, log)

        assert ok is True
        assert log.kinds() == [LogKind.ACTION_START, LogKind.EVAL_RESULT, LogKind.ACTION_DONE]
        assert log.entries()[1].result == "Example Domain"

    @pytest.mark.asyncio
    async def test_eval_without_result_has_no_result_entry(self):
        page = FakePage()
        log = ExecutionLog("task-1")
        await ActionInterpreter(500).perform(page, EvalAction("() => {}"), 0, log)

        assert log.kinds() == [LogKind.ACTION_START, LogKind.ACTION_DONE]

    @pytest.mark.asyncio
    async def test_eval_script_error(self):
        page = FakePage(eval_error=PlaywrightError("ReferenceError: foo is not defined"))
        log = ExecutionLog("task-1")
        ok = await ActionInterpreter(500).perform(page, EvalAction("foo()"), 0, log)

        assert ok is False
        error = log.entries()[-1]
        assert error.kind == LogKind.ACTION_ERROR
        assert error.error == "script"
        assert "foo is not defined" in error.message

    @pytest.mark.asyncio
    async def test_eval_timeout(self):
        page = FakePage(eval_delay=0.5)
        log = ExecutionLog("task-1")
        ok = await ActionInterpreter(20).perform(page, EvalAction("() => new Promise(() => {})"), 0, log)

        assert ok is False
        assert log.entries()[-1].error == "timeout"

    @pytest.mark.asyncio
    async def test_unknown_action_is_skipped_with_warning(self):
        page = FakePage()
        log = ExecutionLog("task-1")
        action = UnknownAction("hover", reason="unknown action type hover", payload={"type": "hover"})
        ok = await ActionInterpreter(500).perform(page, action, 2, log)

        assert ok is True
        assert log.kinds() == [LogKind.ACTION_START, LogKind.WARNING, LogKind.ACTION_DONE]
        assert log.entries()[1].message == "unknown action type hover"
        assert page.calls == []

    @pytest.mark.asyncio
    async def test_unexpected_error_is_action_error(self):
        class BrokenPage(FakePage):
            async def click(self, selector, timeout=None):
                raise RuntimeError("detached")

        log = ExecutionLog("task-1")
        ok = await ActionInterpreter(500).perform(BrokenPage(), ClickAction("#go"), 0, log)

        assert ok is False
        error = log.entries()[-1]
        assert error.error == "failed"
        assert "RuntimeError" in error.message
