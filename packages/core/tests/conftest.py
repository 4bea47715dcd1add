"""packages/core 测试配置 -- 核心层 fixture"""

from collections.abc import Callable
from datetime import date

import aiosqlite
import pytest
import pytest_asyncio
from fulfilops.core.models import CompletionType, TaskDraft, TaskType
from fulfilops.core.store import SqliteRecordStore


@pytest_asyncio.fixture
async def core_store(db_conn: aiosqlite.Connection) -> SqliteRecordStore:
    """基于临时数据库的 SQLite 记录存储"""
    return SqliteRecordStore(db_conn)


@pytest.fixture
def make_draft() -> Callable[..., TaskDraft]:
    """任务草稿构造器，默认是活动 E1 的 flyer1 纸品任务"""

    def _make(**overrides) -> TaskDraft:
        fields = {
            "template_id": "flyer1",
            "task_type": TaskType.PAPER_ORDER,
            "task_name": "Order Flyer 1",
            "completion_type": CompletionType.MONETARY,
            "timeline_offset": -42,
            "deadline": date(2026, 3, 1),
            "event_id": "E1",
        }
        fields.update(overrides)
        return TaskDraft(**fields)

    return _make
