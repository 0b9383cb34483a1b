"""
Test configuration
"""
import os
import sys
from pathlib import Path

import pytest

# 项目根目录与 tests 目录加入 sys.path
root_path = Path(__file__).parent.parent
sys.path.insert(0, str(root_path))
sys.path.insert(0, str(Path(__file__).parent))

# 测试环境不使用数据库，也不写默认输出目录
os.environ.setdefault("DATABASE_URL", "")
os.environ.setdefault("BROWSER_HEADLESS", "true")


@pytest.fixture
def artifact_store(tmp_path):
    """写入临时目录的本地截图存储"""
    from browser_engine.artifacts import LocalArtifactStore
    return LocalArtifactStore(tmp_path / "output", public_base_url="https://cdn.example.com/shots")


@pytest.fixture
def fast_policy():
    """测试用策略：短超时、无退避"""
    from browser_engine.models import ExecutionPolicy
    return ExecutionPolicy(
        navigation_timeout_ms=1000,
        action_timeout_ms=200,
        max_retries=1,
        retry_backoff_ms=0,
    )
