"""CascadeService -- 任务完成后的级联：GuesstimateOrder + 发货任务

级联由三次独立的记录写入组成（供应商订单、回链 go_id、发货任务 + 回链），
任何一步失败后任务仍保持 completed，重新执行 cascade() 会从断点继续：

1. task.go_id 已存在 -> 复用，不再创建
2. 存在 source_task_id 指向本任务的 GuesstimateOrder（创建后回链前崩溃）-> 认领并回链
3. 否则按 task.order_ids 重新聚合后创建，再回链
发货任务同理：shipping_task_id -> 未取消的子发货任务 -> 新建。
"""

from collections.abc import Callable
from datetime import date, timedelta

import structlog
from fulfilops.core.aggregation import aggregate
from fulfilops.core.catalog import resolve_personalized, resolve_standard, supplier_items
from fulfilops.core.deadline import local_today
from fulfilops.core.models import (
    GuesstimateOrder,
    SupplierOrderDraft,
    SupplierOrderItem,
    Task,
    TaskDraft,
    TaskStatus,
    TaskType,
)
from fulfilops.core.store import RecordStore
from fulfilops.core.templates import TaskTemplate, TemplateRegistry
from pydantic import BaseModel

log = structlog.get_logger()


class CascadeResult(BaseModel):
    """级联执行结果"""

    go_id: str | None = None
    go_display_id: str | None = None
    shipping_task_id: str | None = None
    created_go: bool = False
    created_shipping: bool = False


class CascadeService:
    """完成级联服务"""

    def __init__(
        self,
        record_store: RecordStore,
        templates: TemplateRegistry,
        clock: Callable[[], date] = local_today,
    ) -> None:
        self._store = record_store
        self._templates = templates
        self._clock = clock

    def is_incomplete(self, task: Task) -> bool:
        """任务已完成但缺少模板要求的 GuesstimateOrder 或发货任务"""
        if task.status != TaskStatus.COMPLETED:
            return False
        template = self._templates.get(task.template_id)
        if template is None:
            return False
        if template.creates_go_id and not task.go_id:
            return True
        return template.creates_shipping and not task.shipping_task_id

    async def cascade(self, task: Task) -> CascadeResult:
        """对已完成任务执行（或续做）级联，可重复调用"""
        result = CascadeResult(go_id=task.go_id, shipping_task_id=task.shipping_task_id)
        template = self._templates.get(task.template_id)
        if template is None:
            return result

        supplier_order: GuesstimateOrder | None = None
        if template.creates_go_id:
            supplier_order, created = await self._ensure_supplier_order(task)
            result.created_go = created
            if supplier_order is not None:
                result.go_id = supplier_order.id
                result.go_display_id = supplier_order.go_id

        if template.creates_shipping and (result.go_id or not template.creates_go_id):
            shipping_task_id, created = await self._ensure_shipping_task(
                task, template, result.go_id
            )
            result.shipping_task_id = shipping_task_id
            result.created_shipping = created

        log.info(
            "cascade_finished",
            task_id=task.id,
            go_id=result.go_id,
            shipping_task_id=result.shipping_task_id,
            created_go=result.created_go,
            created_shipping=result.created_shipping,
        )
        return result

    async def _ensure_supplier_order(self, task: Task) -> tuple[GuesstimateOrder | None, bool]:
        """保证任务恰好关联一个 GuesstimateOrder

        Returns:
            (GuesstimateOrder, 是否本次新建)
        """
        if task.go_id:
            existing = await self._store.get_supplier_order(task.go_id)
            if existing is None:
                # 已回链但记录读取不到：不重复创建，保持单一 go_id
                log.warning("linked_supplier_order_missing", task_id=task.id, go_id=task.go_id)
            return existing, False

        created = False
        orphans = await self._store.find_supplier_orders_by_task(task.id)
        if orphans:
            supplier_order = orphans[0]
            log.warning(
                "supplier_order_adopted",
                task_id=task.id,
                go_id=supplier_order.id,
                orphan_count=len(orphans),
            )
        else:
            supplier_order = await self._store.create_supplier_order(
                SupplierOrderDraft(
                    source_task_id=task.id,
                    event_id=task.event_id,
                    event_ids=task.event_ids,
                    order_ids=task.order_ids,
                    order_date=self._clock(),
                    order_amount=(
                        task.completion_data.amount
                        if task.completion_data and task.completion_data.amount is not None
                        else 0.0
                    ),
                    contains=await self._supplier_items(task),
                )
            )
            created = True
            log.info(
                "supplier_order_created",
                task_id=task.id,
                go_id=supplier_order.id,
                go_display_id=supplier_order.go_id,
                item_count=len(supplier_order.contains),
            )

        await self._store.update_task(task.id, {"go_id": supplier_order.id})
        return supplier_order, created

    async def _supplier_items(self, task: Task) -> list[SupplierOrderItem]:
        """按任务类型从源订单重新聚合供应商订单明细（不使用缓存的聚合结果）"""
        if task.task_type == TaskType.STANDARD_CLOTHING_ORDER:
            resolver, standard = resolve_standard, True
        elif task.task_type == TaskType.CLOTHING_ORDER:
            resolver, standard = resolve_personalized, False
        else:
            return []
        orders = await self._store.get_orders_by_ids(task.order_ids)
        aggregated = aggregate(orders, resolver)
        return supplier_items(aggregated.aggregated_items, standard=standard)

    async def _ensure_shipping_task(
        self,
        task: Task,
        template: TaskTemplate,
        go_id: str | None,
    ) -> tuple[str, bool]:
        """保证任务恰好关联一个发货任务

        Returns:
            (发货任务 ID, 是否本次新建)
        """
        if task.shipping_task_id:
            return task.shipping_task_id, False

        created = False
        children = await self._store.find_tasks(
            task_type=TaskType.SHIPPING,
            parent_task_id=task.id,
        )
        active = [c for c in children if c.status != TaskStatus.CANCELLED]
        if active:
            shipping = active[0]
            log.warning("shipping_task_adopted", task_id=task.id, shipping_task_id=shipping.id)
        else:
            shipping_template = self._templates.shipping_for(template)
            offset = self._templates.shipping_offset_days
            shipping = await self._store.create_task(
                TaskDraft(
                    template_id=shipping_template.id,
                    task_type=TaskType.SHIPPING,
                    task_name=shipping_template.name,
                    description=shipping_template.description,
                    completion_type=shipping_template.completion_type,
                    timeline_offset=task.timeline_offset + offset,
                    deadline=task.deadline + timedelta(days=offset),
                    event_id=task.event_id,
                    event_ids=task.event_ids,
                    batch_id=task.batch_id,
                    week_start=task.week_start,
                    week_end=task.week_end,
                    parent_task_id=task.id,
                    go_id=go_id,
                )
            )
            created = True
            log.info(
                "shipping_task_created",
                task_id=task.id,
                shipping_task_id=shipping.id,
                deadline=shipping.deadline.isoformat(),
            )

        await self._store.update_task(task.id, {"shipping_task_id": shipping.id})
        return shipping.id, created
