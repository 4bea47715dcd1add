"""服务装配 -- 记录存储后端选择与服务实例创建

HTTP 应用的 lifespan 与 CLI 共用同一套装配逻辑。
所有服务共享同一个带超时保护的记录存储、模板注册表和 EventCache。
"""

from collections.abc import Callable
from datetime import date

import structlog
from fulfilops.airtable import create_airtable_store
from fulfilops.core.cache import EventCache
from fulfilops.core.config import (
    EVENT_CACHE_TTL_S,
    SHIPPING_OFFSET_DAYS,
    STORE_TIMEOUT_S,
    get_db_path,
    get_store_backend,
)
from fulfilops.core.deadline import local_today
from fulfilops.core.store import StoreGroup, create_store_group
from fulfilops.core.templates import TemplateRegistry

from .services.batch_builder import BatchBuilder
from .services.cascade import CascadeService
from .services.clothing_orders import ClothingOrderService
from .services.lifecycle import TaskLifecycleManager
from .services.minicard_orders import MinicardOrderService
from .services.provisioning import EventProvisioner
from .services.supplier_orders import SupplierOrderService
from .services.task_query import TaskQueryService

log = structlog.get_logger()


async def open_store_group(backend: str | None = None) -> StoreGroup:
    """按配置打开记录存储

    Args:
        backend: sqlite / airtable，None 时读取 FULFILOPS_STORE_BACKEND

    Raises:
        ValueError: 未知的存储后端
    """
    backend = backend or get_store_backend()
    if backend == "sqlite":
        db_path = get_db_path()
        store_group = await create_store_group(db_path, timeout_s=STORE_TIMEOUT_S)
        log.info("record_store_opened", backend=backend, db_path=db_path)
    elif backend == "airtable":
        store_group = StoreGroup(create_airtable_store(), timeout_s=STORE_TIMEOUT_S)
        log.info("record_store_opened", backend=backend)
    else:
        raise ValueError(f"Unknown store backend: {backend}")
    return store_group


class Services:
    """一次装配出的全部服务实例"""

    def __init__(
        self,
        store_group: StoreGroup,
        templates: TemplateRegistry | None = None,
        event_cache: EventCache | None = None,
        clock: Callable[[], date] = local_today,
    ) -> None:
        record_store = store_group.record_store
        self.store_group = store_group
        self.templates = templates or TemplateRegistry(shipping_offset_days=SHIPPING_OFFSET_DAYS)
        self.event_cache = event_cache or EventCache(ttl_s=EVENT_CACHE_TTL_S)
        self.clock = clock

        self.cascade = CascadeService(record_store, self.templates, clock=clock)
        self.lifecycle = TaskLifecycleManager(record_store, self.cascade)
        self.batch_builder = BatchBuilder(
            record_store, self.templates, self.event_cache, lifecycle=self.lifecycle
        )
        self.clothing_orders = ClothingOrderService(
            record_store, self.templates, self.event_cache, self.lifecycle
        )
        self.minicard_orders = MinicardOrderService(record_store)
        self.supplier_orders = SupplierOrderService(record_store, self.event_cache)
        self.provisioner = EventProvisioner(record_store, self.templates, self.event_cache)
        self.task_query = TaskQueryService(record_store, self.event_cache)

    def install(self, state) -> None:
        """把服务实例挂到 app.state 上"""
        state.store_group = self.store_group
        state.templates = self.templates
        state.event_cache = self.event_cache
        state.clock = self.clock
        state.cascade = self.cascade
        state.lifecycle = self.lifecycle
        state.batch_builder = self.batch_builder
        state.clothing_orders = self.clothing_orders
        state.minicard_orders = self.minicard_orders
        state.supplier_orders = self.supplier_orders
        state.provisioner = self.provisioner
        state.task_query = self.task_query
