"""
执行轨迹 - 有序日志追加器

每次尝试拥有独立的 ExecutionLog；页面 console / pageerror 回调与动作日志
都写入同一个追加器，因此条目顺序即真实发生顺序。
"""
from typing import Any, Callable, Iterable, Iterator, List, Optional, Tuple

from loguru import logger

from .models import LogEntry, LogKind, now_ms


class ExecutionLog:
    """
    只追加的执行日志

    使用方式：
        log = ExecutionLog(task_id)
        log.info("Starting attempt 1/2")
        log.append(LogKind.NAVIGATION, message="goto https://example.com")
    """

    def __init__(
        self,
        task_id: str = "",
        *,
        attempt: Optional[int] = None,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self.task_id = task_id
        self.attempt = attempt
        self._clock = clock
        self._entries: List[LogEntry] = []

    def append(self, kind: LogKind, message: str = "", **fields: Any) -> LogEntry:
        if self.attempt is not None:
            fields.setdefault("attempt", self.attempt)
        entry = LogEntry(kind=kind, ts=self._clock(), message=message, **fields)
        self._entries.append(entry)
        logger.debug(f"🧾 [Trace:{self.task_id[:8]}] {kind.value} {message}".rstrip())
        return entry

    def info(self, message: str, **fields: Any) -> LogEntry:
        return self.append(LogKind.INFO, message, **fields)

    def warning(self, message: str, **fields: Any) -> LogEntry:
        return self.append(LogKind.WARNING, message, **fields)

    def error(self, message: str, **fields: Any) -> LogEntry:
        return self.append(LogKind.ERROR, message, **fields)

    def extend(self, entries: Iterable[LogEntry]) -> None:
        self._entries.extend(entries)

    def entries(self) -> Tuple[LogEntry, ...]:
        return tuple(self._entries)

    def kinds(self) -> List[LogKind]:
        return [entry.kind for entry in self._entries]

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[LogEntry]:
        return iter(list(self._entries))
