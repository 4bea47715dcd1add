"""FastAPI 应用主文件

app 创建 + lifespan 管理：记录存储打开/关闭 + 服务装配 + 路由注册。
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fulfilops.core.config import get_store_backend

from .bootstrap import Services, open_store_group
from .errors import register_exception_handlers
from .middleware.logging_config import setup_logfire, setup_logging
from .middleware.logging_mw import LoggingMiddleware
from .middleware.trace_mw import TraceMiddleware
from .routes import (
    batches,
    cancel,
    clothing,
    cron,
    events,
    health,
    minicard,
    supplier_orders,
    tasks,
)

log = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """应用生命周期管理：启动时打开记录存储并装配服务，关闭时释放连接"""
    backend = get_store_backend()
    store_group = await open_store_group(backend)
    Services(store_group).install(app.state)
    app.state.store_backend = backend
    log.info("gateway_started", backend=backend)

    yield

    if getattr(app.state, "store_group", None) is not None:
        await app.state.store_group.close()
    log.info("gateway_stopped")


def create_app() -> FastAPI:
    """创建 FastAPI 应用实例"""
    app = FastAPI(
        title="FulfilOps Gateway",
        version="0.1.0",
        description="学校活动履约任务编排 API",
        lifespan=lifespan,
    )

    # 注册中间件（顺序：先 Trace 后 Logging，Logging 在最外层）
    app.add_middleware(TraceMiddleware)
    app.add_middleware(LoggingMiddleware)

    setup_logging()
    setup_logfire()

    register_exception_handlers(app)

    # 集合型子路由必须先于 /tasks/{task_id} 注册
    app.include_router(batches.router, tags=["batches"])
    app.include_router(clothing.router, tags=["clothing"])
    app.include_router(minicard.router, tags=["minicard"])
    app.include_router(supplier_orders.router, tags=["supplier-orders"])
    app.include_router(tasks.router, tags=["tasks"])
    app.include_router(cancel.router, tags=["cancel"])
    app.include_router(events.router, tags=["events"])
    app.include_router(cron.router, tags=["cron"])
    app.include_router(health.router, tags=["health"])

    return app


# 默认 app 实例（uvicorn 入口）
app = create_app()
