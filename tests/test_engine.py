"""
任务引擎集成测试

引擎使用 ScriptedExecutor，不启动真实浏览器。
"""
import pytest

from browser_engine import TaskEngine
from browser_engine.errors import InvalidJobError, QueueFullError
from browser_engine.models import Submission, TaskOutcome, TaskStatus
from browser_engine.storage import SqlTaskStore
from fakes import PNG_BYTES, ScriptedExecutor


def _engine(artifact_store, policy, script=("ok",), **kwargs):
    executor = ScriptedExecutor(script, artifact_store, delay=kwargs.pop("delay", 0.0))
    return TaskEngine(
        executor=executor,
        artifact_store=artifact_store,
        policy=policy,
        max_concurrency=kwargs.pop("max_concurrency", 2),
        **kwargs,
    )


# ============================================================
# 提交
# ============================================================

class TestSubmit:
    """测试同步与异步提交"""

    @pytest.mark.asyncio
    async def test_sync_submit_returns_outcome(self, artifact_store, fast_policy):
        engine = _engine(artifact_store, fast_policy)

        outcome = await engine.submit({"url": "https://example.com"})

        assert isinstance(outcome, TaskOutcome)
        assert outcome.ok is True
        record = engine.get_task(outcome.task_id)
        assert record.status == TaskStatus.DONE
        assert record.artifact_path == outcome.artifact_path

    @pytest.mark.asyncio
    async def test_async_submit_returns_task_id(self, artifact_store, fast_policy):
        engine = _engine(artifact_store, fast_policy)

        submission = await engine.submit({"url": "https://example.com", "async": True})

        assert isinstance(submission, Submission)
        assert engine.get_task(submission.task_id).status in (TaskStatus.PENDING, TaskStatus.RUNNING)

        await engine.join()

        record = engine.get_task(submission.task_id)
        assert record.status == TaskStatus.DONE
        assert record.attempts == 1

    @pytest.mark.asyncio
    async def test_terminal_query_is_idempotent(self, artifact_store, fast_policy):
        engine = _engine(artifact_store, fast_policy, script=("nav",))
        submission = await engine.submit({"url": "https://example.com", "async": True})
        await engine.join()

        first = await engine.query_task(submission.task_id)
        second = await engine.query_task(submission.task_id)

        assert first == second
        assert first["status"] == "error"
        assert first["error"].startswith("NavigationError:")
        assert first["attempts"] == 2

    @pytest.mark.asyncio
    async def test_invalid_job(self, artifact_store, fast_policy):
        engine = _engine(artifact_store, fast_policy)

        with pytest.raises(InvalidJobError):
            await engine.submit({"actions": []})
        with pytest.raises(InvalidJobError):
            await engine.submit({"url": "https://example.com", "policy": {"maxRetries": -1}})

    @pytest.mark.asyncio
    async def test_policy_override(self, artifact_store, fast_policy):
        engine = _engine(artifact_store, fast_policy, script=("nav",))

        outcome = await engine.submit({"url": "https://example.com", "policy": {"maxRetries": 0}})

        assert outcome.ok is False
        assert outcome.attempts == 1
        assert engine.retry.executor.calls == 1

    @pytest.mark.asyncio
    async def test_queue_full_removes_task(self, artifact_store, fast_policy):
        engine = _engine(artifact_store, fast_policy, delay=0.05, max_concurrency=1, max_queue_size=1)

        await engine.submit({"url": "https://example.com/1", "async": True})
        await engine.submit({"url": "https://example.com/2", "async": True})
        with pytest.raises(QueueFullError):
            await engine.submit({"url": "https://example.com/3", "async": True})

        await engine.join()
        assert len(await engine.list_recent_tasks()) == 2

    @pytest.mark.asyncio
    async def test_unknown_task(self, artifact_store, fast_policy):
        engine = _engine(artifact_store, fast_policy)

        assert engine.get_task("missing") is None
        assert await engine.query_task("missing") is None


# ============================================================
# 查询与截图
# ============================================================

class TestQueries:
    """测试列表与截图读取"""

    @pytest.mark.asyncio
    async def test_list_recent_newest_first(self, artifact_store, fast_policy):
        engine = _engine(artifact_store, fast_policy)
        ids = []
        for i in range(3):
            outcome = await engine.submit({"url": f"https://example.com/{i}"})
            ids.append(outcome.task_id)
            # 保证 created_at 不同
            engine._tasks[outcome.task_id].created_at += i

        tasks = await engine.list_recent_tasks(limit=2)

        assert [task["id"] for task in tasks] == [ids[2], ids[1]]

    @pytest.mark.asyncio
    async def test_read_artifact(self, artifact_store, fast_policy):
        engine = _engine(artifact_store, fast_policy)
        outcome = await engine.submit({"url": "https://example.com"})

        assert await engine.read_artifact(outcome.task_id) == PNG_BYTES

    @pytest.mark.asyncio
    async def test_read_artifact_of_failed_task(self, artifact_store, fast_policy):
        engine = _engine(artifact_store, fast_policy, script=("nav",))
        outcome = await engine.submit({"url": "https://example.com"})

        assert await engine.read_artifact(outcome.task_id) is None

    @pytest.mark.asyncio
    async def test_shutdown_waits_for_queue(self, artifact_store, fast_policy):
        engine = _engine(artifact_store, fast_policy, delay=0.02)
        submissions = [
            await engine.submit({"url": f"https://example.com/{i}", "async": True})
            for i in range(3)
        ]

        await engine.shutdown()

        assert all(engine.get_task(s.task_id).status.is_terminal for s in submissions)


# ============================================================
# 持久化
# ============================================================

class TestPersistence:
    """测试与 SQL 存储的集成"""

    @pytest.mark.asyncio
    async def test_results_are_persisted(self, tmp_path, artifact_store, fast_policy):
        store = SqlTaskStore(f"sqlite:///{tmp_path / 'tasks.db'}", artifact_store=artifact_store)
        await store.init()
        engine = _engine(artifact_store, fast_policy, task_store=store)

        submission = await engine.submit({
            "url": "https://example.com",
            "actions": [{"type": "wait", "ms": 10}],
            "async": True,
        })
        await engine.join()

        stored = await store.get_task(submission.task_id)
        assert stored["status"] == "done"
        assert stored["actions"] == [{"type": "wait", "ms": 10}]
        assert stored["screenshotPath"] == f"screenshot-{submission.task_id}.png"
        assert stored["logs"]

        record = engine.get_task(submission.task_id)
        assert record.artifact_url == f"https://cdn.example.com/shots/screenshot-{submission.task_id}.png"

        listed = await engine.list_recent_tasks()
        assert [task["id"] for task in listed] == [submission.task_id]

        await engine.shutdown()
