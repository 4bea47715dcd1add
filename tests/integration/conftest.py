"""集成测试共享 fixture -- 经由真实 lifespan 启动的完整应用"""

import os
from collections.abc import AsyncGenerator
from datetime import date
from pathlib import Path

import pytest_asyncio
from httpx import ASGITransport, AsyncClient

TODAY = date(2026, 2, 9)


@pytest_asyncio.fixture
async def integration_app(tmp_path: Path):
    """集成测试用 FastAPI app（SQLite 后端，业务日期固定为 2026-02-09）"""
    os.environ["FULFILOPS_DB_PATH"] = str(tmp_path / "sqlite" / "integration.db")
    os.environ["FULFILOPS_STORE_BACKEND"] = "sqlite"
    os.environ["FULFILOPS_CRON_SECRET"] = "integration-secret"
    os.environ["LOGFIRE_SEND_TO_LOGFIRE"] = "false"

    from fulfilops.gateway.main import create_app, lifespan

    app = create_app()
    async with lifespan(app):
        app.state.clock = lambda: TODAY
        yield app

    for key in [
        "FULFILOPS_DB_PATH",
        "FULFILOPS_STORE_BACKEND",
        "FULFILOPS_CRON_SECRET",
        "LOGFIRE_SEND_TO_LOGFIRE",
    ]:
        os.environ.pop(key, None)


@pytest_asyncio.fixture
async def seed_store(integration_app):
    """未包装的 SQLite 存储，用于写入活动和订单"""
    return integration_app.state.store_group.raw_store


@pytest_asyncio.fixture
async def client(integration_app) -> AsyncGenerator[AsyncClient, None]:
    async with AsyncClient(
        transport=ASGITransport(app=integration_app),
        base_url="http://test",
    ) as ac:
        yield ac
