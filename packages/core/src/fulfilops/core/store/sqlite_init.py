"""SQLite 数据库初始化 -- 本地记录存储

PRAGMA 配置 + 四张表 DDL + 索引创建。
使用 aiosqlite 异步操作。
"""

import aiosqlite

# events 表 DDL（学校活动，只读输入）
_EVENTS_DDL = """
CREATE TABLE IF NOT EXISTS events (
    id          TEXT PRIMARY KEY,
    event_id    TEXT NOT NULL DEFAULT '',
    school_name TEXT NOT NULL DEFAULT '',
    event_date  TEXT NOT NULL,
    event_type  TEXT NOT NULL DEFAULT ''
);
"""

_EVENTS_INDEXES = [
    "CREATE INDEX IF NOT EXISTS idx_events_event_date ON events(event_date);",
]

# orders 表 DDL（电商订单，只读输入）
_ORDERS_DDL = """
CREATE TABLE IF NOT EXISTS orders (
    id           TEXT PRIMARY KEY,
    order_number TEXT NOT NULL DEFAULT '',
    order_date   TEXT NOT NULL,
    total_amount REAL NOT NULL DEFAULT 0,
    line_items   TEXT NOT NULL DEFAULT '[]',
    event_id     TEXT
);
"""

_ORDERS_INDEXES = [
    "CREATE INDEX IF NOT EXISTS idx_orders_order_date ON orders(order_date);",
    "CREATE INDEX IF NOT EXISTS idx_orders_event_id ON orders(event_id);",
]

# tasks 表 DDL（seq 用于生成 TSK-0001 形式的展示编号）
_TASKS_DDL = """
CREATE TABLE IF NOT EXISTS tasks (
    seq              INTEGER PRIMARY KEY AUTOINCREMENT,
    id               TEXT NOT NULL UNIQUE,
    template_id      TEXT NOT NULL,
    task_type        TEXT NOT NULL,
    task_name        TEXT NOT NULL DEFAULT '',
    description      TEXT NOT NULL DEFAULT '',
    completion_type  TEXT NOT NULL,
    timeline_offset  INTEGER NOT NULL DEFAULT 0,
    deadline         TEXT NOT NULL,
    status           TEXT NOT NULL DEFAULT 'pending',
    event_id         TEXT,
    event_ids        TEXT NOT NULL DEFAULT '[]',
    batch_id         TEXT,
    week_start       TEXT,
    week_end         TEXT,
    order_ids        TEXT NOT NULL DEFAULT '[]',
    parent_task_id   TEXT,
    go_id            TEXT,
    shipping_task_id TEXT,
    completed_at     TEXT,
    completed_by     TEXT,
    completion_data  TEXT,
    created_at       TEXT NOT NULL,

    FOREIGN KEY (parent_task_id) REFERENCES tasks(id)
);
"""

_TASKS_INDEXES = [
    "CREATE INDEX IF NOT EXISTS idx_tasks_status ON tasks(status);",
    "CREATE INDEX IF NOT EXISTS idx_tasks_event_id ON tasks(event_id);",
    "CREATE INDEX IF NOT EXISTS idx_tasks_type_status ON tasks(task_type, status);",
    "CREATE INDEX IF NOT EXISTS idx_tasks_parent ON tasks(parent_task_id);",
    # 周批次唯一约束（仅对未取消的批次任务生效；发货子任务共享 batch_id，排除在外）
    (
        "CREATE UNIQUE INDEX IF NOT EXISTS idx_tasks_active_batch_id "
        "ON tasks(batch_id) WHERE batch_id IS NOT NULL "
        "AND status != 'cancelled' AND task_type = 'standard_clothing_order';"
    ),
]

# supplier_orders 表 DDL（GuesstimateOrder）
_SUPPLIER_ORDERS_DDL = """
CREATE TABLE IF NOT EXISTS supplier_orders (
    seq            INTEGER PRIMARY KEY AUTOINCREMENT,
    id             TEXT NOT NULL UNIQUE,
    source_task_id TEXT NOT NULL,
    event_id       TEXT,
    event_ids      TEXT NOT NULL DEFAULT '[]',
    order_ids      TEXT NOT NULL DEFAULT '[]',
    order_date     TEXT NOT NULL,
    order_amount   REAL NOT NULL DEFAULT 0,
    contains       TEXT NOT NULL DEFAULT '[]',
    date_completed TEXT,
    created_at     TEXT NOT NULL,

    FOREIGN KEY (source_task_id) REFERENCES tasks(id)
);
"""

_SUPPLIER_ORDERS_INDEXES = [
    "CREATE INDEX IF NOT EXISTS idx_supplier_orders_source ON supplier_orders(source_task_id);",
]


async def init_db(conn: aiosqlite.Connection) -> None:
    """初始化数据库：设置 PRAGMA + 创建表 + 创建索引

    Args:
        conn: aiosqlite 数据库连接
    """
    # 设置 PRAGMA
    await conn.execute("PRAGMA journal_mode = WAL;")
    await conn.execute("PRAGMA foreign_keys = ON;")
    await conn.execute("PRAGMA busy_timeout = 5000;")

    # 创建表
    await conn.execute(_EVENTS_DDL)
    await conn.execute(_ORDERS_DDL)
    await conn.execute(_TASKS_DDL)
    await conn.execute(_SUPPLIER_ORDERS_DDL)

    # 创建索引
    for idx_sql in (
        _EVENTS_INDEXES + _ORDERS_INDEXES + _TASKS_INDEXES + _SUPPLIER_ORDERS_INDEXES
    ):
        await conn.execute(idx_sql)

    await conn.commit()


async def verify_wal_mode(conn: aiosqlite.Connection) -> bool:
    """验证 WAL 模式是否生效

    Returns:
        True 如果 WAL 模式已启用
    """
    cursor = await conn.execute("PRAGMA journal_mode;")
    row = await cursor.fetchone()
    return row is not None and row[0].lower() == "wal"
