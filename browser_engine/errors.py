"""
异常定义 - 任务引擎错误分类

- NavigationError：导航超时或网络失败，单次尝试致命，可触发重试
- ActionError：单个动作失败，非致命，记录后继续下一个动作
- SessionError：浏览器会话启动失败，单次尝试致命
- SinkError：结果持久化失败，永不影响任务结果
"""
from typing import Optional


class EngineError(Exception):
    """任务引擎异常基类"""


class NavigationError(EngineError):
    """导航失败（超时 / 网络错误）"""


class ActionError(EngineError):
    """
    单个动作执行失败

    Attributes:
        index: 动作在序列中的下标
        reason: timeout / not-found / script / failed
    """

    def __init__(self, message: str, *, index: Optional[int] = None, reason: str = "failed") -> None:
        super().__init__(message)
        self.index = index
        self.reason = reason


class SessionError(EngineError):
    """浏览器会话启动失败或尝试内的意外异常"""


class SinkError(EngineError):
    """持久化 / 上传失败"""


class InvalidJobError(EngineError, ValueError):
    """提交的任务参数无效"""


class QueueFullError(EngineError):
    """异步队列已满，拒绝提交"""


class InvalidTransitionError(EngineError):
    """非法的任务状态迁移"""
