"""
浏览器任务引擎 - 有界并发的浏览器自动化任务执行

提交任务（url + 有序动作 + 可选策略）后：
调度器排队/派发 → 重试控制器驱动 1..N 次尝试 → 每次尝试启动全新浏览器会话，
导航、依序执行动作、整页截图 → 结果（成功/失败 + 执行日志 + 截图）返回调用方，
并尽力同步到持久化层。
"""
from .engine import TaskEngine
from .errors import (
    ActionError,
    EngineError,
    InvalidJobError,
    NavigationError,
    QueueFullError,
    SessionError,
    SinkError,
)
from .models import (
    ActionType,
    ExecutionPolicy,
    JobRequest,
    LogEntry,
    LogKind,
    Submission,
    Task,
    TaskOutcome,
    TaskRecord,
    TaskStatus,
)

__all__ = [
    "TaskEngine",
    "ActionType",
    "ExecutionPolicy",
    "JobRequest",
    "LogEntry",
    "LogKind",
    "Submission",
    "Task",
    "TaskOutcome",
    "TaskRecord",
    "TaskStatus",
    "EngineError",
    "ActionError",
    "InvalidJobError",
    "NavigationError",
    "QueueFullError",
    "SessionError",
    "SinkError",
]
