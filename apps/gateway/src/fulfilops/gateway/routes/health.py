"""健康检查路由

GET /health: Liveness 检查，永远返回 200。
GET /ready: Readiness 检查，探测记录存储连通性（SQLite / Airtable）。
"""

import structlog
from fastapi import APIRouter, Request
from fulfilops.core.exceptions import FulfilOpsError
from starlette.responses import JSONResponse

log = structlog.get_logger()

router = APIRouter()


@router.get("/health")
async def health():
    """Liveness 检查 -- 永远返回 200"""
    return {"status": "ok"}


@router.get("/ready")
async def ready(request: Request):
    """Readiness 检查 -- 记录存储可达时返回 200，否则 503

    检查项：
    1. record_store: 一次最小读取（经过超时保护）
    2. event_cache: 当前缓存条目数（仅供观察）
    """
    checks: dict = {}
    all_ok = True

    try:
        await request.app.state.store_group.record_store.ping()
        checks["record_store"] = "ok"
    except FulfilOpsError as e:
        log.warning("readiness_check_failed", error=e.message)
        checks["record_store"] = f"error: {e.message}"
        all_ok = False

    event_cache = getattr(request.app.state, "event_cache", None)
    checks["event_cache_entries"] = len(event_cache) if event_cache is not None else 0

    return JSONResponse(
        status_code=200 if all_ok else 503,
        content={
            "status": "ready" if all_ok else "not_ready",
            "backend": getattr(request.app.state, "store_backend", "sqlite"),
            "checks": checks,
        },
    )
