"""
持久化协作方约定

所有调用都是尽力而为的；调用方（ResultSink）负责捕获异常。
"""
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional


class TaskStore(ABC):
    """任务记录存储抽象基类"""

    @abstractmethod
    async def insert_task(self, record: Dict[str, Any]) -> None:
        """写入新提交的任务（id / url / actions / status）"""

    @abstractmethod
    async def update_task(
        self,
        task_id: str,
        *,
        status: str,
        logs: List[Dict[str, Any]],
        artifact_ref: Optional[str] = None,
        error: Optional[str] = None,
        attempts: Optional[int] = None,
    ) -> bool:
        """更新任务状态 / 日志 / 截图引用，返回是否找到该任务"""

    @abstractmethod
    async def get_task(self, task_id: str) -> Optional[Dict[str, Any]]:
        ...

    @abstractmethod
    async def list_recent_tasks(self, limit: int = 50) -> List[Dict[str, Any]]:
        ...

    @abstractmethod
    async def get_public_url(self, artifact_key: str) -> Optional[str]:
        ...

    async def init(self) -> None:
        """初始化（建表等），默认无操作"""

    async def close(self) -> None:
        """释放连接，默认无操作"""
