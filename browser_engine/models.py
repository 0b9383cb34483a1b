"""
Task / Action / Log 数据模型

定义任务引擎的核心数据结构，包括：
- Action：动作变体（click / fill / wait / eval / unknown）
- ExecutionPolicy：导航、动作、整体尝试的超时与重试策略
- LogEntry：执行轨迹中的单条日志
- Task / TaskRecord：任务及其不可变快照
- AttemptResult / TaskOutcome：单次尝试结果与任务最终结果
- JobRequest / Submission：提交入参与异步回执
"""
import math
import time
import uuid
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple, Union

from .errors import InvalidJobError, InvalidTransitionError


def now_ms() -> int:
    """当前时间戳（毫秒）"""
    return int(time.time() * 1000)


# ============================================================
# Action 变体
# ============================================================

class ActionType(str, Enum):
    """动作类型"""
    CLICK = "click"
    FILL = "fill"
    WAIT = "wait"
    EVAL = "eval"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class ClickAction:
    """点击 selector 匹配的元素"""
    selector: str
    type = ActionType.CLICK

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.type.value, "selector": self.selector}


@dataclass(frozen=True)
class FillAction:
    """把 selector 匹配的输入框设置为 value"""
    selector: str
    value: str = ""
    type = ActionType.FILL

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.type.value, "selector": self.selector, "value": self.value}


@dataclass(frozen=True)
class WaitAction:
    """纯延时，永不失败"""
    duration_ms: int
    type = ActionType.WAIT

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.type.value, "ms": self.duration_ms}


@dataclass(frozen=True)
class EvalAction:
    """在页面上下文中执行脚本"""
    script: str
    type = ActionType.EVAL

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.type.value, "script": self.script}


@dataclass(frozen=True)
class UnknownAction:
    """
    无法识别的动作

    执行时仅记录 warning，不会中断任务。

    Attributes:
        type_name: 原始 type 字段
        reason: 无法识别的原因
        payload: 原始动作内容
    """
    type_name: str
    reason: str = ""
    payload: Dict[str, Any] = field(default_factory=dict, hash=False, compare=False)
    type = ActionType.UNKNOWN

    def to_dict(self) -> Dict[str, Any]:
        return dict(self.payload) or {"type": self.type_name}


Action = Union[ClickAction, FillAction, WaitAction, EvalAction, UnknownAction]

_ACTION_CLASSES = (ClickAction, FillAction, WaitAction, EvalAction, UnknownAction)


def parse_action(data: Any, default_wait_ms: int = 1000) -> Action:
    """
    将提交的原始动作解析为 Action 变体

    缺少必需字段的 click / fill / eval 与未知类型一样被解析为 UnknownAction。

    Args:
        data: 原始动作（dict）或已构造的 Action
        default_wait_ms: wait 未给出时长时使用的默认值

    Returns:
        Action: 解析后的动作
    """
    if isinstance(data, _ACTION_CLASSES):
        return data
    if not isinstance(data, Mapping):
        return UnknownAction(
            type_name=type(data).__name__,
            reason="action must be an object",
            payload={"value": repr(data)},
        )

    kind = data.get("type")
    selector = data.get("selector")

    if kind == ActionType.CLICK.value and selector:
        return ClickAction(selector=str(selector))

    if kind == ActionType.FILL.value and selector:
        value = data.get("value")
        return FillAction(selector=str(selector), value="" if value is None else str(value))

    if kind == ActionType.WAIT.value:
        raw = data.get("ms", data.get("durationMs"))
        return WaitAction(duration_ms=_coerce_wait(raw, default_wait_ms))

    if kind == ActionType.EVAL.value and data.get("script"):
        return EvalAction(script=str(data["script"]))

    if kind in (ActionType.CLICK.value, ActionType.FILL.value):
        reason = "missing selector"
    elif kind == ActionType.EVAL.value:
        reason = "missing script"
    else:
        reason = f"unknown action type {kind}"
    return UnknownAction(type_name=str(kind), reason=reason, payload=dict(data))


def parse_actions(items: Sequence[Any], default_wait_ms: int = 1000) -> Tuple[Action, ...]:
    return tuple(parse_action(item, default_wait_ms) for item in items)


def _coerce_wait(raw: Any, default: int) -> int:
    if raw is None or isinstance(raw, bool):
        return default
    try:
        value = int(raw)
    except (TypeError, ValueError):
        return default
    return value if value >= 0 else default


# ============================================================
# 执行策略
# ============================================================

# 提交时允许的策略字段 -> ExecutionPolicy 属性名
_POLICY_KEYS: Dict[str, str] = {
    "navigationTimeoutMs": "navigation_timeout_ms",
    "navigationTimeout": "navigation_timeout_ms",
    "navigation_timeout_ms": "navigation_timeout_ms",
    "actionTimeoutMs": "action_timeout_ms",
    "actionTimeout": "action_timeout_ms",
    "action_timeout_ms": "action_timeout_ms",
    "maxRetries": "max_retries",
    "retries": "max_retries",
    "max_retries": "max_retries",
    "retryBackoffMs": "retry_backoff_ms",
    "retry_backoff_ms": "retry_backoff_ms",
    "attemptTimeoutMs": "attempt_timeout_ms",
    "attempt_timeout_ms": "attempt_timeout_ms",
}


@dataclass(frozen=True)
class ExecutionPolicy:
    """
    执行策略

    Attributes:
        navigation_timeout_ms: 到达 load 状态的最长时间
        action_timeout_ms: 单个动作的最长时间
        max_retries: 首次失败后的额外尝试次数
        retry_backoff_ms: 两次尝试之间的固定等待
        attempt_timeout_ms: 单次尝试的整体超时（None 表示不限制）
    """
    navigation_timeout_ms: int = 30000
    action_timeout_ms: int = 8000
    max_retries: int = 1
    retry_backoff_ms: int = 1000
    attempt_timeout_ms: Optional[int] = None

    @classmethod
    def from_settings(cls, cfg: Any) -> "ExecutionPolicy":
        return cls(
            navigation_timeout_ms=cfg.navigation_timeout_ms,
            action_timeout_ms=cfg.action_timeout_ms,
            max_retries=cfg.max_retries,
            retry_backoff_ms=cfg.retry_backoff_ms,
            attempt_timeout_ms=cfg.attempt_timeout_ms,
        )

    @property
    def total_attempts(self) -> int:
        return self.max_retries + 1

    def merge(self, overrides: Optional[Mapping[str, Any]]) -> "ExecutionPolicy":
        """
        合并单个任务的策略覆盖项

        Raises:
            InvalidJobError: 未知字段或取值非法
        """
        if not overrides:
            return self
        if not isinstance(overrides, Mapping):
            raise InvalidJobError("policy must be an object")

        changes: Dict[str, Any] = {}
        for key, value in overrides.items():
            name = _POLICY_KEYS.get(key)
            if name is None:
                raise InvalidJobError(f"unknown policy option: {key}")
            if value is None:
                continue
            changes[name] = _coerce_policy_value(key, name, value)
        return replace(self, **changes)

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "navigationTimeoutMs": self.navigation_timeout_ms,
            "actionTimeoutMs": self.action_timeout_ms,
            "maxRetries": self.max_retries,
            "retryBackoffMs": self.retry_backoff_ms,
        }
        if self.attempt_timeout_ms is not None:
            data["attemptTimeoutMs"] = self.attempt_timeout_ms
        return data


def _coerce_policy_value(key: str, name: str, value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise InvalidJobError(f"policy option {key} must be an integer")
    # JSON 允许 Infinity / NaN
    if isinstance(value, float) and (not math.isfinite(value) or not value.is_integer()):
        raise InvalidJobError(f"policy option {key} must be an integer")
    number = int(value)
    if name in ("max_retries", "retry_backoff_ms"):
        if number < 0:
            raise InvalidJobError(f"policy option {key} must be >= 0")
    elif number <= 0:
        raise InvalidJobError(f"policy option {key} must be > 0")
    return number


# ============================================================
# 执行日志
# ============================================================

class LogKind(str, Enum):
    """日志类型"""
    INFO = "info"
    NAVIGATION = "navigation"
    ACTION_START = "action-start"
    ACTION_DONE = "action-done"
    ACTION_ERROR = "action-error"
    EVAL_RESULT = "eval-result"
    CONSOLE = "console"
    PAGE_ERROR = "page-error"
    WARNING = "warning"
    ERROR = "error"


# LogEntry 可选字段 -> 对外字段名
_LOG_FIELDS = (
    ("index", "index"),
    ("action", "action"),
    ("duration_ms", "duration"),
    ("result", "result"),
    ("attempt", "attempt"),
    ("error", "error"),
)


@dataclass(frozen=True)
class LogEntry:
    """执行轨迹中的单条日志，只追加不修改"""
    kind: LogKind
    ts: int
    message: str = ""
    index: Optional[int] = None
    action: Optional[Dict[str, Any]] = field(default=None, hash=False)
    duration_ms: Optional[int] = None
    result: Any = field(default=None, hash=False)
    attempt: Optional[int] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"type": self.kind.value, "ts": self.ts}
        if self.message:
            data["message"] = self.message
        for attr, key in _LOG_FIELDS:
            value = getattr(self, attr)
            if value is not None:
                data[key] = value
        return data


# ============================================================
# 任务与结果
# ============================================================

class TaskStatus(str, Enum):
    """任务状态"""
    PENDING = "pending"
    RUNNING = "running"
    DONE = "done"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self in (TaskStatus.DONE, TaskStatus.ERROR)


@dataclass(frozen=True)
class AttemptResult:
    """单次尝试的结果，由重试控制器立即消费"""
    ok: bool
    logs: Tuple[LogEntry, ...] = ()
    artifact_path: Optional[str] = None
    error: Optional[str] = None

    @classmethod
    def success(cls, artifact_path: str, logs: Sequence[LogEntry]) -> "AttemptResult":
        return cls(ok=True, logs=tuple(logs), artifact_path=artifact_path)

    @classmethod
    def failure(cls, error: str, logs: Sequence[LogEntry]) -> "AttemptResult":
        return cls(ok=False, logs=tuple(logs), error=error)


@dataclass(frozen=True)
class TaskOutcome:
    """任务最终结果（所有尝试的日志按顺序拼接）"""
    task_id: str
    ok: bool
    logs: Tuple[LogEntry, ...] = ()
    artifact_path: Optional[str] = None
    artifact_url: Optional[str] = None
    error: Optional[str] = None
    attempts: int = 0

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "ok": self.ok,
            "taskId": self.task_id,
            "logs": [entry.to_dict() for entry in self.logs],
            "attempts": self.attempts,
        }
        if self.error is not None:
            data["error"] = self.error
        if self.artifact_path is not None:
            data["screenshotPath"] = self.artifact_path
        if self.artifact_url is not None:
            data["screenshotUrl"] = self.artifact_url
        return data


@dataclass(frozen=True)
class TaskRecord:
    """任务的不可变快照，供查询接口和结果汇报使用"""
    task_id: str
    url: str
    actions: Tuple[Action, ...]
    status: TaskStatus
    logs: Tuple[LogEntry, ...]
    artifact_path: Optional[str]
    artifact_url: Optional[str]
    error: Optional[str]
    attempts: int
    created_at: int
    updated_at: int

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "id": self.task_id,
            "url": self.url,
            "actions": [action.to_dict() for action in self.actions],
            "status": self.status.value,
            "logs": [entry.to_dict() for entry in self.logs],
            "attempts": self.attempts,
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }
        if self.status.is_terminal:
            data["screenshotPath"] = self.artifact_path
            data["screenshotUrl"] = self.artifact_url
            data["error"] = self.error
        return data


@dataclass
class Task:
    """
    任务

    状态只能单调迁移：pending → running → done | error。
    进入终态后快照被缓存，之后的查询返回完全相同的数据。
    """
    url: str
    actions: Tuple[Action, ...] = ()
    policy: ExecutionPolicy = field(default_factory=ExecutionPolicy)
    task_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    status: TaskStatus = TaskStatus.PENDING
    logs: List[LogEntry] = field(default_factory=list)
    artifact_path: Optional[str] = None
    artifact_url: Optional[str] = None
    error: Optional[str] = None
    attempts: int = 0
    created_at: int = field(default_factory=now_ms)
    updated_at: int = field(default_factory=now_ms)
    _snapshot: Optional[TaskRecord] = field(default=None, init=False, repr=False, compare=False)

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    def mark_running(self) -> None:
        if self.status != TaskStatus.PENDING:
            raise InvalidTransitionError(
                f"task {self.task_id}: cannot start from status {self.status.value}"
            )
        self.status = TaskStatus.RUNNING
        self.updated_at = now_ms()

    def record_progress(self, logs: Sequence[LogEntry]) -> None:
        """运行中同步已完成尝试的日志，供查询接口查看进度"""
        if self.status != TaskStatus.RUNNING:
            raise InvalidTransitionError(
                f"task {self.task_id}: cannot record progress in status {self.status.value}"
            )
        self.logs = list(logs)
        self.updated_at = now_ms()

    def finish(self, outcome: TaskOutcome) -> None:
        if self.status != TaskStatus.RUNNING:
            raise InvalidTransitionError(
                f"task {self.task_id}: cannot finish from status {self.status.value}"
            )
        self.status = TaskStatus.DONE if outcome.ok else TaskStatus.ERROR
        self.logs = list(outcome.logs)
        self.artifact_path = outcome.artifact_path
        self.artifact_url = outcome.artifact_url
        self.error = outcome.error
        self.attempts = outcome.attempts
        self.updated_at = now_ms()

    def snapshot(self) -> TaskRecord:
        if self._snapshot is not None:
            return self._snapshot
        record = TaskRecord(
            task_id=self.task_id,
            url=self.url,
            actions=tuple(self.actions),
            status=self.status,
            logs=tuple(self.logs),
            artifact_path=self.artifact_path,
            artifact_url=self.artifact_url,
            error=self.error,
            attempts=self.attempts,
            created_at=self.created_at,
            updated_at=self.updated_at,
        )
        if self.is_terminal:
            self._snapshot = record
        return record

    def to_record(self) -> Dict[str, Any]:
        """提交时写入持久化层的记录"""
        return {
            "id": self.task_id,
            "url": self.url,
            "actions": [action.to_dict() for action in self.actions],
            "status": self.status.value,
        }


# ============================================================
# 提交入参
# ============================================================

@dataclass(frozen=True)
class JobRequest:
    """一次任务提交：url + 有序动作 + 可选策略覆盖 + 是否异步"""
    url: str
    actions: Tuple[Action, ...] = ()
    policy_overrides: Dict[str, Any] = field(default_factory=dict, hash=False)
    run_async: bool = False

    @classmethod
    def from_dict(cls, payload: Any, *, default_wait_ms: int = 1000) -> "JobRequest":
        """
        解析提交的 JSON 请求体

        Raises:
            InvalidJobError: 请求体不合法
        """
        if not isinstance(payload, Mapping):
            raise InvalidJobError("request body must be a JSON object")

        url = payload.get("url")
        if not url or not isinstance(url, str) or not url.strip():
            raise InvalidJobError("url is required")

        actions = payload.get("actions")
        if actions is None:
            actions = []
        if not isinstance(actions, (list, tuple)):
            raise InvalidJobError("actions must be a list")

        policy = payload.get("policy")
        if policy is None:
            policy = {}
        if not isinstance(policy, Mapping):
            raise InvalidJobError("policy must be an object")

        return cls(
            url=url.strip(),
            actions=parse_actions(actions, default_wait_ms),
            policy_overrides=dict(policy),
            run_async=bool(payload.get("async", False)),
        )


@dataclass(frozen=True)
class Submission:
    """异步提交回执"""
    task_id: str
    queued: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return {"ok": True, "taskId": self.task_id, "queued": self.queued}
