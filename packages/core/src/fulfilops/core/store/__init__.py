"""FulfilOps Core Store -- 记录存储适配器

提供工厂函数创建 SQLite 记录存储，以及超时/错误归一化包装器。
"""

from pathlib import Path

import aiosqlite

from .guarded import GuardedRecordStore
from .protocols import RecordStore
from .sqlite_init import init_db
from .sqlite_store import SqliteRecordStore


class StoreGroup:
    """Store 实例组 -- 持有底层连接与对外暴露的（带保护的）记录存储"""

    def __init__(
        self,
        record_store: RecordStore,
        conn: aiosqlite.Connection | None = None,
        timeout_s: float = 10,
    ) -> None:
        self.conn = conn
        self.raw_store = record_store
        self.record_store = GuardedRecordStore(record_store, timeout_s=timeout_s)

    async def close(self) -> None:
        """关闭底层连接（SQLite）或 HTTP 客户端（远程适配器）"""
        if self.conn is not None:
            await self.conn.close()
        closer = getattr(self.raw_store, "aclose", None)
        if closer is not None:
            await closer()


async def create_store_group(db_path: str, timeout_s: float = 10) -> StoreGroup:
    """创建 SQLite Store 实例组

    Args:
        db_path: SQLite 数据库文件路径
        timeout_s: 单次存储调用超时（秒）

    Returns:
        StoreGroup 实例
    """
    # 确保数据库目录存在
    db_dir = Path(db_path).parent
    db_dir.mkdir(parents=True, exist_ok=True)

    conn = await aiosqlite.connect(db_path)
    conn.row_factory = aiosqlite.Row
    await init_db(conn)

    return StoreGroup(SqliteRecordStore(conn), conn=conn, timeout_s=timeout_s)


__all__ = [
    "StoreGroup",
    "create_store_group",
    "RecordStore",
    "GuardedRecordStore",
    "SqliteRecordStore",
    "init_db",
]
