"""
截图产物存储

ArtifactStore 约定：
- write_artifact(key, data) -> locator
- read_artifact(locator) -> bytes
- public_url(key) -> 可公开访问的 URL（未配置时为 None）

默认实现 LocalArtifactStore 写入本地目录。
"""
import asyncio
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional, Union

from loguru import logger


def artifact_key(task_id: str) -> str:
    """任务截图的存储 key"""
    return f"screenshot-{task_id}.png"


class ArtifactStore(ABC):
    """产物存储抽象基类"""

    @abstractmethod
    async def write_artifact(self, key: str, data: bytes) -> str:
        ...

    @abstractmethod
    async def read_artifact(self, locator: str) -> bytes:
        ...

    def public_url(self, key: str) -> Optional[str]:
        return None


class LocalArtifactStore(ArtifactStore):
    """
    本地文件系统产物存储

    Args:
        root: 存放目录，不存在时自动创建
        public_base_url: 对外访问前缀，例如 https://cdn.example.com/screenshots
    """

    def __init__(self, root: Union[str, Path], public_base_url: Optional[str] = None) -> None:
        self.root = Path(root)
        self.public_base_url = public_base_url.rstrip("/") if public_base_url else None

    async def write_artifact(self, key: str, data: bytes) -> str:
        path = self._resolve(key)
        await asyncio.to_thread(self._write, path, data)
        logger.debug(f"📸 [ArtifactStore] 写入 {path} ({len(data)} bytes)")
        return str(path)

    async def read_artifact(self, locator: str) -> bytes:
        path = Path(locator)
        if not path.is_absolute() and path.parent == Path("."):
            path = self._resolve(locator)
        return await asyncio.to_thread(path.read_bytes)

    def public_url(self, key: str) -> Optional[str]:
        if not self.public_base_url:
            return None
        return f"{self.public_base_url}/{Path(key).name}"

    def _resolve(self, key: str) -> Path:
        # key 只允许是文件名，防止写出存储目录
        name = Path(key).name
        if not name or name != key:
            raise ValueError(f"invalid artifact key: {key!r}")
        return self.root / name

    @staticmethod
    def _write(path: Path, data: bytes) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
