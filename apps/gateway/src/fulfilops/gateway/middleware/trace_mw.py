"""TraceMiddleware -- 为任务/活动操作绑定日志上下文

从路径 /tasks/{task_id}/...、/events/{event_id}/... 与
/tasks/guesstimate-orders/{go_id} 中提取记录 ID，
绑定到 structlog contextvars，使完成、级联、取消等日志都带上同一个 task_id。
"""

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

# /tasks 下的集合型子路由，不是任务 ID
_TASK_COLLECTIONS = {
    "standard-batches",
    "clothing-orders",
    "minicard-orders",
    "guesstimate-orders",
}


def extract_trace_context(path: str) -> dict[str, str]:
    """从请求路径提取 task_id / event_id / go_id"""
    parts = [p for p in path.split("/") if p]
    context: dict[str, str] = {}
    for i, part in enumerate(parts[:-1]):
        value = parts[i + 1]
        if part == "tasks" and value not in _TASK_COLLECTIONS:
            context["task_id"] = value
        elif part == "standard-batches":
            context["task_id"] = value
        elif part in ("events", "clothing-orders"):
            context["event_id"] = value
        elif part == "guesstimate-orders":
            context["go_id"] = value
    return context


class TraceMiddleware(BaseHTTPMiddleware):
    """任务级追踪中间件"""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        context = extract_trace_context(request.url.path)
        if context:
            structlog.contextvars.bind_contextvars(**context)
        return await call_next(request)
