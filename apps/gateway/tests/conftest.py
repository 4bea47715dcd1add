"""apps/gateway 测试配置 -- 服务装配 + FastAPI AsyncClient fixture

测试日期固定为 2026-02-09（周一），上一个 ISO 周为 2026-02-02 ~ 2026-02-08（STD-2026-W06）。
"""

import os
from collections.abc import AsyncGenerator
from datetime import date
from pathlib import Path

import pytest_asyncio
from fulfilops.core.store import StoreGroup, create_store_group
from httpx import ASGITransport, AsyncClient

TODAY = date(2026, 2, 9)
CRON_SECRET = "test-cron-secret"
ADMIN_HEADERS = {"X-Admin-Email": "admin@example.com"}


@pytest_asyncio.fixture
async def store_group(tmp_path: Path) -> AsyncGenerator[StoreGroup, None]:
    """临时 SQLite 记录存储"""
    group = await create_store_group(str(tmp_path / "sqlite" / "test.db"))
    yield group
    await group.close()


@pytest_asyncio.fixture
async def raw_store(store_group: StoreGroup):
    """未包装的 SQLite 存储，用于写入订单/活动测试数据"""
    return store_group.raw_store


@pytest_asyncio.fixture
async def services(store_group: StoreGroup):
    """固定日期的服务装配"""
    from fulfilops.gateway.bootstrap import Services

    return Services(store_group, clock=lambda: TODAY)


@pytest_asyncio.fixture
async def seeded_week(raw_store, make_event, make_order, variants):
    """两个活动 + 上周两笔标准服装订单（O1 / O2）"""
    await raw_store.upsert_event(make_event("E1", "2026-03-20", "Grundschule Nord"))
    await raw_store.upsert_event(make_event("E2", "2026-03-27", "Grundschule Süd"))
    await raw_store.upsert_order(
        make_order("O1", "2026-02-03", [(variants["std_tshirt_98"], 1)], total=49.99, event_id="E1")
    )
    await raw_store.upsert_order(
        make_order("O2", "2026-02-05", [(variants["std_hoodie_128"], 2)], total=25.00, event_id="E2")
    )
    return raw_store


@pytest_asyncio.fixture
async def app(services):
    """创建测试用 FastAPI app 实例（绕过 lifespan，手动挂载服务）"""
    os.environ["FULFILOPS_CRON_SECRET"] = CRON_SECRET
    os.environ["LOGFIRE_SEND_TO_LOGFIRE"] = "false"

    from fulfilops.gateway.main import create_app

    application = create_app()
    services.install(application.state)
    application.state.store_backend = "sqlite"
    yield application

    for key in ["FULFILOPS_CRON_SECRET", "LOGFIRE_SEND_TO_LOGFIRE"]:
        os.environ.pop(key, None)


@pytest_asyncio.fixture
async def client(app) -> AsyncGenerator[AsyncClient, None]:
    """提供 httpx AsyncClient 用于测试"""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac
