"""
Agent Server Launcher - 浏览器任务引擎启动器
==========================================

启动 HTTP 服务，接收浏览器自动化任务并在有界并发下执行。

使用方法:
  python main.py                          # 使用 .env / 环境变量中的配置启动
  python main.py --port 9000              # 指定端口
  python main.py --concurrency 4          # 指定最大并发 worker 数
  python main.py --log-file logs/agent.log
"""
import argparse
import sys
from typing import Optional

from aiohttp import web
from loguru import logger

from browser_engine import TaskEngine
from browser_engine.artifacts import LocalArtifactStore
from browser_engine.server import create_app
from browser_engine.storage import SqlTaskStore
from config import settings


def setup_logging(level: str, log_file: Optional[str] = None) -> None:
    """配置日志"""
    logger.remove()
    logger.add(
        sys.stderr,
        format="<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | <level>{message}</level>",
        level=level,
    )
    if log_file:
        logger.add(
            log_file,
            rotation="1 day",
            retention="7 days",
            level=level,
            format="{time:YYYY-MM-DD HH:mm:ss} | {level} | {name}:{function}:{line} - {message}",
        )


async def build_engine(concurrency: Optional[int] = None) -> TaskEngine:
    """按配置构造任务引擎；配置了 DATABASE_URL 时启用持久化"""
    artifact_store = LocalArtifactStore(settings.output_dir, settings.artifact_public_base_url)

    task_store = None
    if settings.database_url:
        task_store = SqlTaskStore(
            settings.database_url,
            artifact_store=artifact_store,
            echo=settings.sql_echo,
        )
        try:
            await task_store.init()
        except Exception as e:
            # 持久化不可用时退化为仅内存结果
            logger.warning(f"⚠️ 数据库初始化失败，仅保留内存结果: {e}")
            await task_store.close()
            task_store = None

    return TaskEngine(
        task_store=task_store,
        artifact_store=artifact_store,
        max_concurrency=concurrency,
    )


def main() -> None:
    """启动服务器"""
    parser = argparse.ArgumentParser(description="Agent Server - 浏览器任务引擎")
    parser.add_argument("--host", type=str, default=settings.server_host, help="监听地址")
    parser.add_argument("--port", type=int, default=settings.server_port, help="监听端口")
    parser.add_argument("--concurrency", type=int, default=None, help="最大并发 worker 数")
    parser.add_argument("--log-file", type=str, default=None, help="额外写入的日志文件")
    args = parser.parse_args()

    setup_logging(settings.log_level, args.log_file)

    async def make_app() -> web.Application:
        engine = await build_engine(args.concurrency)
        return create_app(engine)

    logger.info(f"🚀 [agent server] listening on http://{args.host}:{args.port}")
    logger.info("📖 API Documentation:")
    logger.info("   - POST /run                      - 提交任务（同步 / 异步）")
    logger.info("   - GET  /tasks                    - 最近的任务")
    logger.info("   - GET  /tasks/{id}               - 任务详情")
    logger.info("   - GET  /tasks/{id}/screenshot    - 任务截图")
    logger.info("   - GET  /health                   - 健康检查")

    web.run_app(make_app(), host=args.host, port=args.port, access_log=None)


if __name__ == "__main__":
    main()
