"""TaskQueryService -- 任务列表与详情视图

列表按 (紧急度分值, 任务类型优先级, 活动日期) 排序，附带各类型计数。
搜索不区分大小写，匹配展示编号、模板 ID、任务名称和订单 ID。
"""

from datetime import date

from fulfilops.core.cache import EventCache
from fulfilops.core.deadline import compute_urgency, urgency_sort_key
from fulfilops.core.exceptions import NotFoundError
from fulfilops.core.models import Task, TaskStatus, TaskType, TaskView
from fulfilops.core.store import RecordStore
from pydantic import BaseModel


class TaskListResult(BaseModel):
    """任务列表结果"""

    tasks: list[TaskView]
    counts: dict[str, int]


def matches_search(task: Task, search: str) -> bool:
    """大小写不敏感的任务搜索"""
    needle = search.strip().lower()
    if not needle:
        return True
    haystack = [task.task_id, task.template_id, task.task_name, *task.order_ids]
    return any(needle in value.lower() for value in haystack)


class TaskQueryService:
    """任务查询服务"""

    def __init__(self, record_store: RecordStore, event_cache: EventCache) -> None:
        self._store = record_store
        self._event_cache = event_cache

    async def list_tasks(
        self,
        today: date,
        status: TaskStatus | None = TaskStatus.PENDING,
        task_type: TaskType | None = None,
        search: str | None = None,
    ) -> TaskListResult:
        """查询任务列表

        Args:
            today: 参考日期（业务时区下的今天）
            status: 状态过滤，None 表示全部
            task_type: 类型过滤，None 表示全部类型
            search: 搜索关键字
        """
        tasks = await self._store.find_tasks(status=status)
        if search:
            tasks = [t for t in tasks if matches_search(t, search)]

        counts: dict[str, int] = {"all": len(tasks)}
        for kind in TaskType:
            counts[kind.value] = 0
        for task in tasks:
            counts[task.task_type.value] += 1

        if task_type is not None:
            tasks = [t for t in tasks if t.task_type == task_type]

        views = [await self.to_view(t, today) for t in tasks]
        views.sort(
            key=lambda v: (
                *urgency_sort_key(v.urgency_score, v.task_type),
                v.event_date or date.max,
            )
        )
        return TaskListResult(tasks=views, counts=counts)

    async def get_task_view(self, task_id: str, today: date) -> TaskView:
        """单个任务详情

        Raises:
            NotFoundError: 任务不存在
        """
        task = await self._store.get_task(task_id)
        if task is None:
            raise NotFoundError("Task", task_id)
        return await self.to_view(task, today)

    async def to_view(self, task: Task, today: date) -> TaskView:
        """任务 -> 视图（补充活动信息、GO 展示编号、到货状态与紧急度）"""
        urgency = compute_urgency(task.deadline, today, task.status)

        school_name = ""
        event_date: date | None = None
        event_refs = [task.event_id] if task.event_id else task.event_ids
        names: list[str] = []
        for ref in event_refs:
            event = await self._event_cache.get(ref, self._store.get_event)
            if event is None:
                continue
            if event.school_name and event.school_name not in names:
                names.append(event.school_name)
            if event_date is None or event.event_date < event_date:
                event_date = event.event_date
        school_name = ", ".join(names)

        go_display_id = None
        stock_arrived = None
        if task.go_id:
            supplier_order = await self._store.get_supplier_order(task.go_id)
            if supplier_order is not None:
                go_display_id = supplier_order.go_id
                if task.task_type == TaskType.SHIPPING:
                    stock_arrived = supplier_order.date_completed is not None

        return TaskView(
            **task.model_dump(),
            school_name=school_name,
            event_date=event_date,
            go_display_id=go_display_id,
            stock_arrived=stock_arrived,
            days_until_due=urgency.days_until_due,
            is_overdue=urgency.is_overdue,
            urgency_score=urgency.urgency_score,
        )
