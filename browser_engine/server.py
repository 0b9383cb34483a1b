"""
基于 aiohttp 的任务提交 / 查询 HTTP 服务

## API 端点

GET  /                          - 服务状态
GET  /health                    - 健康检查（含 running / queued 计数）
POST /run                       - 提交任务
     Body: {
         "url": "https://example.com",
         "actions": [{"type": "click", "selector": "#go"}, {"type": "wait", "ms": 500}],
         "policy": {"navigationTimeoutMs": 30000, "actionTimeoutMs": 8000, "maxRetries": 1},
         "async": false
     }
GET  /tasks?limit=50            - 最近的任务
GET  /tasks/{task_id}           - 单个任务的状态、日志、截图引用
GET  /tasks/{task_id}/screenshot - 已结束任务的截图（PNG）

## 测试命令

curl -X POST http://localhost:8787/run -H "Content-Type: application/json" -d '{"url": "https://example.com"}' | jq
curl -X POST http://localhost:8787/run -H "Content-Type: application/json" -d '{"url": "https://example.com", "async": true}' | jq
curl http://localhost:8787/tasks | jq
"""
import base64
import json

from aiohttp import web
from loguru import logger

from .engine import TaskEngine
from .errors import InvalidJobError, QueueFullError
from .models import Submission

ENGINE_KEY = web.AppKey("engine", TaskEngine)


def safe_json_response(data, status=200):
    return web.json_response(
        data,
        status=status,
        dumps=lambda x: json.dumps(x, ensure_ascii=False, default=str)
    )


async def health_handler(request: web.Request) -> web.Response:
    """健康检查"""
    engine = request.app[ENGINE_KEY]
    return safe_json_response({
        "ok": True,
        "msg": "Agent server running",
        "running": engine.running_count,
        "queued": engine.queued_count,
        "maxConcurrency": engine.scheduler.max_concurrency,
    })


async def run_handler(request: web.Request) -> web.Response:
    """提交任务（同步或异步）"""
    engine = request.app[ENGINE_KEY]
    try:
        data = await request.json()
    except json.JSONDecodeError:
        return safe_json_response({"ok": False, "error": "Invalid JSON"}, status=400)

    try:
        result = await engine.submit(data)
    except InvalidJobError as e:
        return safe_json_response({"ok": False, "error": str(e)}, status=400)
    except QueueFullError as e:
        return safe_json_response({"ok": False, "error": str(e)}, status=503)

    if isinstance(result, Submission):
        return safe_json_response(result.to_dict())

    body = result.to_dict()
    if not result.ok:
        return safe_json_response(body, status=500)

    image = await engine.read_artifact(result.task_id)
    if image is not None:
        body["screenshot"] = "data:image/png;base64," + base64.b64encode(image).decode("ascii")
    return safe_json_response(body)


async def list_tasks_handler(request: web.Request) -> web.Response:
    """最近的任务列表"""
    engine = request.app[ENGINE_KEY]
    raw_limit = request.query.get("limit", "")
    limit = int(raw_limit) if raw_limit.isdigit() and int(raw_limit) > 0 else None
    try:
        tasks = await engine.list_recent_tasks(limit)
    except Exception as e:
        logger.error(f"❌ [Server] 查询任务列表失败: {e}")
        return safe_json_response({"ok": False, "error": str(e)}, status=500)
    return safe_json_response({"ok": True, "tasks": tasks})


async def get_task_handler(request: web.Request) -> web.Response:
    """单个任务详情"""
    engine = request.app[ENGINE_KEY]
    task_id = request.match_info["task_id"]
    try:
        task = await engine.query_task(task_id)
    except Exception as e:
        logger.error(f"❌ [Server] 查询任务失败 {task_id}: {e}")
        return safe_json_response({"ok": False, "error": str(e)}, status=500)
    if task is None:
        return safe_json_response({"ok": False, "error": f"task {task_id} not found"}, status=404)
    return safe_json_response({"ok": True, "task": task})


async def screenshot_handler(request: web.Request) -> web.Response:
    """已结束任务的截图"""
    engine = request.app[ENGINE_KEY]
    task_id = request.match_info["task_id"]
    try:
        image = await engine.read_artifact(task_id)
    except OSError as e:
        logger.warning(f"⚠️ [Server] 读取截图失败 {task_id}: {e}")
        image = None
    if image is None:
        return safe_json_response({"ok": False, "error": "screenshot not available"}, status=404)
    return web.Response(body=image, content_type="image/png")


# ==================== 应用初始化 ====================

def create_app(engine: TaskEngine) -> web.Application:
    """创建 aiohttp 应用"""
    app = web.Application(client_max_size=10 * 1024 * 1024)
    app[ENGINE_KEY] = engine

    app.router.add_get("/", health_handler)
    app.router.add_get("/health", health_handler)
    app.router.add_post("/run", run_handler)
    app.router.add_get("/tasks", list_tasks_handler)
    app.router.add_get("/tasks/{task_id}", get_task_handler)
    app.router.add_get("/tasks/{task_id}/screenshot", screenshot_handler)

    app.on_cleanup.append(cleanup_on_shutdown)
    return app


async def cleanup_on_shutdown(app: web.Application) -> None:
    """应用关闭时等待队列清空并释放存储连接"""
    await app[ENGINE_KEY].shutdown()
