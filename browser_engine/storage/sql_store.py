"""
Async task store using SQLAlchemy 2.0
基于 SQLAlchemy 异步引擎的任务记录存储
"""
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Dict, List, Optional

from loguru import logger
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from ..artifacts import ArtifactStore
from .base import TaskStore
from .models import AgentTask, Base


def get_async_database_url(url: str) -> str:
    """将同步数据库URL转换为异步URL"""
    if url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+asyncpg://", 1)
    elif url.startswith("postgres://"):
        return url.replace("postgres://", "postgresql+asyncpg://", 1)
    elif url.startswith("mysql://"):
        return url.replace("mysql://", "mysql+aiomysql://", 1)
    elif url.startswith("sqlite:///"):
        return url.replace("sqlite:///", "sqlite+aiosqlite:///", 1)
    return url


class SqlTaskStore(TaskStore):
    """
    SQLAlchemy 任务存储

    Args:
        database_url: 数据库 URL（同步写法会自动转换为异步驱动）
        artifact_store: 用于生成截图公开 URL
        echo: 是否输出 SQL
    """

    def __init__(
        self,
        database_url: str,
        *,
        artifact_store: Optional[ArtifactStore] = None,
        echo: bool = False,
    ) -> None:
        self._artifact_store = artifact_store
        self._engine = create_async_engine(
            get_async_database_url(database_url),
            poolclass=NullPool,  # 异步场景推荐
            echo=echo,
        )
        self._sessions = async_sessionmaker(
            bind=self._engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )

    async def init(self) -> None:
        """异步初始化数据库表"""
        async with self._engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("🗄️ [SqlTaskStore] 数据表已就绪")

    async def close(self) -> None:
        await self._engine.dispose()

    @asynccontextmanager
    async def _session(self) -> AsyncGenerator[AsyncSession, None]:
        async with self._sessions() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    async def insert_task(self, record: Dict[str, Any]) -> None:
        async with self._session() as session:
            session.add(
                AgentTask(
                    id=record["id"],
                    url=record["url"],
                    actions=record.get("actions") or [],
                    status=record.get("status", "pending"),
                    logs=record.get("logs") or [],
                )
            )

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
        async with self._session() as session:
            row = await session.get(AgentTask, task_id)
            if row is None:
                logger.warning(f"⚠️ [SqlTaskStore] 任务不存在: {task_id}")
                return False
            row.status = status
            row.logs = logs
            row.error = error
            if artifact_ref is not None:
                row.screenshot_path = artifact_ref
            if attempts is not None:
                row.attempts = attempts
            return True

    async def get_task(self, task_id: str) -> Optional[Dict[str, Any]]:
        async with self._session() as session:
            row = await session.get(AgentTask, task_id)
            return row.to_dict() if row else None

    async def list_recent_tasks(self, limit: int = 50) -> List[Dict[str, Any]]:
        async with self._session() as session:
            result = await session.execute(
                select(AgentTask).order_by(AgentTask.created_at.desc()).limit(limit)
            )
            return [row.to_dict() for row in result.scalars().all()]

    async def get_public_url(self, artifact_key: str) -> Optional[str]:
        if self._artifact_store is None:
            return None
        return self._artifact_store.public_url(artifact_key)
