"""配置常量模块 -- 可通过环境变量覆盖

包含数据库路径、记录存储后端、时区、Cron 密钥以及履约时间线相关的可配置常量。
"""

import os
from pathlib import Path
from zoneinfo import ZoneInfo


def _get_base_dir() -> Path:
    """获取项目 data 基础目录"""
    return Path(os.environ.get("FULFILOPS_DATA_DIR", "data"))


def get_db_path() -> str:
    """获取 SQLite 数据库路径"""
    return os.environ.get(
        "FULFILOPS_DB_PATH",
        str(_get_base_dir() / "sqlite" / "fulfilops.db"),
    )


def get_store_backend() -> str:
    """获取记录存储后端（sqlite / airtable）"""
    return os.environ.get("FULFILOPS_STORE_BACKEND", "sqlite").lower()


def get_timezone() -> ZoneInfo:
    """获取业务时区（用于计算"今天"）"""
    return ZoneInfo(os.environ.get("FULFILOPS_TIMEZONE", "Europe/Berlin"))


def get_cron_secret() -> str | None:
    """获取 Cron 入口共享密钥，未配置时返回 None"""
    return os.environ.get("FULFILOPS_CRON_SECRET") or None


# 单次记录存储调用超时（秒）
STORE_TIMEOUT_S: float = float(os.environ.get("FULFILOPS_STORE_TIMEOUT_S", "10"))

# 发货任务相对父任务的偏移天数
SHIPPING_OFFSET_DAYS: int = int(os.environ.get("FULFILOPS_SHIPPING_OFFSET_DAYS", "3"))

# 个性化服装下单日 = 活动日期 - 18 天
CLOTHING_ORDER_DAY_OFFSET: int = 18

# 服装订单可见窗口：活动日期在 [今天 - 7, 今天 + 21] 之间
CLOTHING_VISIBILITY_WINDOW_DAYS: int = 21
CLOTHING_OVERDUE_LOOKBACK_DAYS: int = 7

# 活动信息缓存 TTL（秒）
EVENT_CACHE_TTL_S: int = int(os.environ.get("FULFILOPS_EVENT_CACHE_TTL_S", "300"))

# 迷你卡订单可见窗口：活动日期在 [今天 - 30, 今天 + 30] 之间
MINICARD_VISIBILITY_WINDOW_DAYS: int = 30
# 迷你卡下单截止日 = 活动日期 + 1 天
MINICARD_DEADLINE_OFFSET_DAYS: int = 1
