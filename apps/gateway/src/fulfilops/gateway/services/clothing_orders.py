"""单活动个性化服装下单

可见窗口：活动日期在 [今天 - 7, 今天 + 21]。每个活动汇总尚未被未取消服装任务覆盖、
且含个性化服装的订单；下单日 = 活动日期 - 18 天。
完成时优先使用活动已有的 pending 服装任务，旧活动没有预生成任务时按模板补建。
"""

from datetime import date, timedelta

import structlog
from fulfilops.core.aggregation import aggregate, has_items
from fulfilops.core.cache import EventCache
from fulfilops.core.catalog import resolve_personalized
from fulfilops.core.config import (
    CLOTHING_ORDER_DAY_OFFSET,
    CLOTHING_OVERDUE_LOOKBACK_DAYS,
    CLOTHING_VISIBILITY_WINDOW_DAYS,
)
from fulfilops.core.exceptions import NotFoundError, ValidationError
from fulfilops.core.models import (
    ClothingOrderEvent,
    CompletionData,
    Event,
    Order,
    Task,
    TaskStatus,
    TaskType,
)
from fulfilops.core.store import RecordStore
from fulfilops.core.templates import CLOTHING_TEMPLATE_ID, TemplateRegistry

from .lifecycle import CompletionResult, TaskLifecycleManager
from .provisioning import build_event_task_draft

log = structlog.get_logger()


class ClothingOrderService:
    """个性化服装下单服务"""

    def __init__(
        self,
        record_store: RecordStore,
        templates: TemplateRegistry,
        event_cache: EventCache,
        lifecycle: TaskLifecycleManager,
    ) -> None:
        self._store = record_store
        self._templates = templates
        self._event_cache = event_cache
        self._lifecycle = lifecycle

    async def get_pending_clothing_orders(self, today: date) -> list[ClothingOrderEvent]:
        """窗口内各活动待下单的服装汇总（逾期优先，其次按剩余天数）"""
        events = await self._store.list_events_between(
            today - timedelta(days=CLOTHING_OVERDUE_LOOKBACK_DAYS),
            today + timedelta(days=CLOTHING_VISIBILITY_WINDOW_DAYS),
        )
        views: list[ClothingOrderEvent] = []
        for event in events:
            tasks = await self._store.find_tasks(
                task_type=TaskType.CLOTHING_ORDER,
                event_id=event.id,
            )
            eligible = await self._eligible_orders(event, tasks)
            if not eligible:
                continue

            result = aggregate(eligible, resolve_personalized)
            order_day = event.event_date - timedelta(days=CLOTHING_ORDER_DAY_OFFSET)
            days_left = (order_day - today).days
            pending = next((t for t in tasks if t.status == TaskStatus.PENDING), None)
            views.append(
                ClothingOrderEvent(
                    **result.model_dump(),
                    event_id=event.id,
                    event_display_id=event.event_id,
                    school_name=event.school_name,
                    event_date=event.event_date,
                    days_until_order_day=days_left,
                    is_overdue=days_left < 0,
                    task_id=pending.id if pending else None,
                )
            )

        views.sort(key=lambda v: (not v.is_overdue, v.days_until_order_day))
        return views

    async def complete_clothing_order(
        self,
        event_id: str,
        amount: float | None,
        notes: str | None,
        order_ids: list[str] | None,
        actor: str,
    ) -> CompletionResult:
        """完成活动的服装下单

        Args:
            event_id: 活动记录 ID
            amount: 供应商订单金额
            notes: 备注
            order_ids: 覆盖的订单，None 时取当前所有待下单订单
            actor: 操作人

        Raises:
            NotFoundError: 活动不存在
            ValidationError: 没有可下单的订单
        """
        event = await self._event_cache.get(event_id, self._store.get_event)
        if event is None:
            raise NotFoundError("Event", event_id)

        tasks = await self._store.find_tasks(
            task_type=TaskType.CLOTHING_ORDER,
            event_id=event.id,
        )
        if order_ids is None:
            order_ids = [o.id for o in await self._eligible_orders(event, tasks)]
        if not order_ids:
            raise ValidationError(
                f"No pending clothing orders for event {event.id}",
                details={"order_ids": "empty"},
            )

        task = next(
            (
                t
                for t in tasks
                if t.status == TaskStatus.PENDING and t.template_id == CLOTHING_TEMPLATE_ID
            ),
            None,
        )
        if task is None:
            task = await self._create_clothing_task(event)

        return await self._lifecycle.complete_task(
            task.id,
            CompletionData(amount=amount, notes=notes),
            order_ids,
            actor,
        )

    async def _eligible_orders(self, event: Event, tasks: list[Task]) -> list[Order]:
        covered: set[str] = set()
        for task in tasks:
            if task.status != TaskStatus.CANCELLED:
                covered.update(task.order_ids)
        orders = await self._store.get_orders_for_event(event.id)
        return [
            o for o in orders if o.id not in covered and has_items(o, resolve_personalized)
        ]

    async def _create_clothing_task(self, event: Event) -> Task:
        template = self._templates.get(CLOTHING_TEMPLATE_ID)
        if template is None:
            raise NotFoundError("Template", CLOTHING_TEMPLATE_ID)
        task = await self._store.create_task(build_event_task_draft(template, event))
        log.info("clothing_task_created_on_demand", event_id=event.id, task_id=task.id)
        return task
