"""单活动迷你卡下单视图

只看有 pending 迷你卡任务、且活动日期在 [今天 - 30, 今天 + 30] 的活动。
每个活动汇总含迷你卡的订单：迷你卡总数、订单数，以及按同单其他商品分组的组合明细。
下单截止日 = 活动日期 + 1 天。
"""

from datetime import date, timedelta

import structlog
from fulfilops.core.catalog import is_minicard, product_category
from fulfilops.core.config import MINICARD_DEADLINE_OFFSET_DAYS, MINICARD_VISIBILITY_WINDOW_DAYS
from fulfilops.core.models import (
    MinicardOrderEvent,
    Order,
    ProductCombination,
    TaskStatus,
)
from fulfilops.core.store import RecordStore
from fulfilops.core.templates import MINICARD_TEMPLATE_ID

log = structlog.get_logger()


def combination_label(order: Order) -> str:
    """订单的商品组合标签，如 "Minicard + Hoodie + T-Shirt" """
    categories = {
        category
        for item in order.line_items
        if (category := product_category(item.title)) is not None
    }
    if not categories:
        return "Minicard only"
    return "Minicard + " + " + ".join(sorted(categories))


def summarize_combinations(orders: list[Order]) -> tuple[int, list[ProductCombination]]:
    """统计迷你卡总数与组合明细（按订单数降序）"""
    total = 0
    combinations: dict[str, ProductCombination] = {}
    for order in orders:
        qty = sum(item.quantity for item in order.line_items if is_minicard(item.title))
        total += qty
        label = combination_label(order)
        entry = combinations.setdefault(label, ProductCombination(label=label))
        entry.order_count += 1
        entry.minicard_qty += qty
    ranked = sorted(combinations.values(), key=lambda c: (-c.order_count, c.label))
    return total, ranked


class MinicardOrderService:
    """迷你卡下单视图服务"""

    def __init__(self, record_store: RecordStore) -> None:
        self._store = record_store

    async def get_pending_minicard_orders(self, today: date) -> list[MinicardOrderEvent]:
        """窗口内各活动待下单的迷你卡汇总（逾期优先，其次按剩余天数）"""
        pending = await self._store.find_tasks(
            template_id=MINICARD_TEMPLATE_ID,
            status=TaskStatus.PENDING,
        )
        task_by_event: dict[str, str] = {}
        for task in pending:
            if task.event_id:
                task_by_event.setdefault(task.event_id, task.id)
        if not task_by_event:
            return []

        events = await self._store.list_events_between(
            today - timedelta(days=MINICARD_VISIBILITY_WINDOW_DAYS),
            today + timedelta(days=MINICARD_VISIBILITY_WINDOW_DAYS),
        )
        views: list[MinicardOrderEvent] = []
        for event in events:
            task_id = task_by_event.get(event.id)
            if task_id is None:
                continue
            orders = [
                o
                for o in await self._store.get_orders_for_event(event.id)
                if any(is_minicard(item.title) for item in o.line_items)
            ]
            if not orders:
                continue

            deadline = event.event_date + timedelta(days=MINICARD_DEADLINE_OFFSET_DAYS)
            days_until_due = (deadline - today).days
            total, combinations = summarize_combinations(orders)
            views.append(
                MinicardOrderEvent(
                    event_id=event.id,
                    event_display_id=event.event_id,
                    school_name=event.school_name,
                    event_date=event.event_date,
                    deadline=deadline,
                    days_until_due=days_until_due,
                    is_overdue=days_until_due < 0,
                    total_minicard_count=total,
                    total_orders=len(orders),
                    order_ids=[o.id for o in orders],
                    combinations=combinations,
                    task_id=task_id,
                )
            )

        views.sort(key=lambda v: (not v.is_overdue, v.days_until_due))
        log.debug("minicard_orders_listed", events=len(views))
        return views
