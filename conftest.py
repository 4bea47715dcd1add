"""全局 pytest 配置 -- 临时 SQLite 数据库 + 订单/活动构造 fixture"""

from collections.abc import AsyncGenerator, Callable
from datetime import date
from pathlib import Path

import aiosqlite
import pytest
import pytest_asyncio
from fulfilops.core.models import Event, LineItem, Order

# 常用商品变体 ID
STD_TSHIRT_98 = "53328491512154"
STD_HOODIE_128 = "53325998981466"
PERS_TSHIRT_98 = "53328502194522"
PERS_HOODIE_128 = "53328494821722"


@pytest_asyncio.fixture
async def tmp_db_path(tmp_path: Path) -> Path:
    """提供临时 SQLite 数据库路径"""
    return tmp_path / "test.db"


@pytest_asyncio.fixture
async def db_conn(tmp_db_path: Path) -> AsyncGenerator[aiosqlite.Connection, None]:
    """提供已初始化的临时 SQLite 数据库连接"""
    from fulfilops.core.store.sqlite_init import init_db

    conn = await aiosqlite.connect(str(tmp_db_path))
    await init_db(conn)
    yield conn
    await conn.close()


@pytest.fixture
def variants() -> dict[str, str]:
    """测试用商品变体 ID"""
    return {
        "std_tshirt_98": STD_TSHIRT_98,
        "std_hoodie_128": STD_HOODIE_128,
        "pers_tshirt_98": PERS_TSHIRT_98,
        "pers_hoodie_128": PERS_HOODIE_128,
    }


@pytest.fixture
def make_order() -> Callable[..., Order]:
    """订单构造器：items 为 [(variant_id, quantity), ...]"""

    def _make(
        order_id: str,
        order_date: date | str,
        items: list[tuple[str, int]],
        total: float = 0.0,
        event_id: str | None = None,
    ) -> Order:
        return Order(
            id=order_id,
            order_number=f"#{order_id}",
            order_date=order_date,
            total_amount=total,
            line_items=[LineItem(variant_id=v, quantity=q) for v, q in items],
            event_id=event_id,
        )

    return _make


@pytest.fixture
def make_event() -> Callable[..., Event]:
    """活动构造器"""

    def _make(event_id: str, event_date: date | str, school_name: str = "") -> Event:
        return Event(
            id=event_id,
            event_id=f"EVT-{event_id}",
            school_name=school_name or f"School {event_id}",
            event_date=event_date,
            event_type="concert",
        )

    return _make
