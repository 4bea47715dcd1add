"""EventCache -- 活动信息的进程内 TTL 缓存

由应用 lifespan 创建并注入到各服务，不使用模块级全局状态。
只缓存只读的活动信息（学校名称、活动日期），任务与订单始终直接读取存储。
"""

import time
from collections.abc import Awaitable, Callable

import structlog

from .models.order import Event

log = structlog.get_logger()


class EventCache:
    """活动信息缓存"""

    def __init__(self, ttl_s: float = 300) -> None:
        self._ttl_s = ttl_s
        self._entries: dict[str, tuple[float, Event | None]] = {}
        self.hits = 0
        self.misses = 0

    async def get(
        self,
        event_id: str,
        loader: Callable[[str], Awaitable[Event | None]],
    ) -> Event | None:
        """读取活动，未命中或过期时通过 loader 加载

        Args:
            event_id: 活动记录 ID
            loader: 加载函数（通常为 RecordStore.get_event）
        """
        entry = self._entries.get(event_id)
        now = time.monotonic()
        if entry is not None and entry[0] > now:
            self.hits += 1
            return entry[1]

        self.misses += 1
        event = await loader(event_id)
        self._entries[event_id] = (now + self._ttl_s, event)
        return event

    def invalidate(self, event_id: str | None = None) -> None:
        """失效单个活动或全部缓存"""
        if event_id is None:
            count = len(self._entries)
            self._entries.clear()
            log.debug("event_cache_cleared", count=count)
        else:
            self._entries.pop(event_id, None)

    def __len__(self) -> int:
        return len(self._entries)
