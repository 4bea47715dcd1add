"""SupplierOrderService -- GuesstimateOrder 到货跟踪

GuesstimateOrder 创建后只有 date_completed（到货日期）可写，且只能写一次。
待到货列表供发货前确认库存；到货后对应发货任务的 stock_arrived 变为 True。
"""

from datetime import date
from typing import Literal

import structlog
from fulfilops.core.cache import EventCache
from fulfilops.core.exceptions import InvalidStateError, NotFoundError
from fulfilops.core.models import GuesstimateOrder, IncomingSupplierOrder
from fulfilops.core.store import RecordStore

log = structlog.get_logger()

SupplierOrderStatus = Literal["pending", "completed", "all"]


class SupplierOrderService:
    """供应商订单到货服务"""

    def __init__(self, record_store: RecordStore, event_cache: EventCache) -> None:
        self._store = record_store
        self._event_cache = event_cache

    async def list_supplier_orders(
        self, status: SupplierOrderStatus = "pending"
    ) -> list[IncomingSupplierOrder]:
        """按到货状态列出 GuesstimateOrder，按下单日期排序

        Args:
            status: pending 待到货 / completed 已到货 / all 全部
        """
        completed = {"pending": False, "completed": True}.get(status)
        orders = await self._store.find_supplier_orders(completed=completed)
        views = [await self._to_view(o) for o in orders]
        views.sort(key=lambda v: (v.order_date, v.go_id))
        return views

    async def mark_received(
        self,
        record_id: str,
        actor: str,
        received_on: date,
    ) -> IncomingSupplierOrder:
        """记录到货日期

        Raises:
            NotFoundError: GuesstimateOrder 不存在
            InvalidStateError: 已记录过到货
        """
        current = await self._store.get_supplier_order(record_id)
        if current is None:
            raise NotFoundError("GO", record_id)
        if current.date_completed is not None:
            raise InvalidStateError(
                f"Supplier order {current.go_id} already received on {current.date_completed}"
            )

        updated = await self._store.update_supplier_order(record_id, received_on)
        log.info(
            "supplier_order_received",
            go_id=updated.go_id,
            record_id=updated.id,
            source_task_id=updated.source_task_id,
            date_completed=received_on.isoformat(),
            actor=actor,
        )
        return await self._to_view(updated)

    async def _to_view(self, order: GuesstimateOrder) -> IncomingSupplierOrder:
        names: list[str] = []
        event_date: date | None = None
        for ref in [order.event_id] if order.event_id else order.event_ids:
            event = await self._event_cache.get(ref, self._store.get_event)
            if event is None:
                continue
            if event.school_name and event.school_name not in names:
                names.append(event.school_name)
            if event_date is None or event.event_date < event_date:
                event_date = event.event_date

        source = await self._store.get_task(order.source_task_id)
        return IncomingSupplierOrder(
            **order.model_dump(),
            school_name=", ".join(names),
            event_date=event_date,
            source_task_type=source.task_type.value if source else None,
        )
