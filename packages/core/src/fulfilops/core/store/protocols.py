"""Store Protocol 接口定义 -- 记录存储适配器契约

引擎只依赖本接口与类型化模型；字段名 / 字段 ID 映射完全封装在各适配器内部。
每次写入对单条记录原子；跨记录没有事务保证。
"""

from datetime import date
from typing import Any, Protocol

from ..models.enums import TaskStatus, TaskType
from ..models.order import Event, Order
from ..models.supplier_order import GuesstimateOrder, SupplierOrderDraft
from ..models.task import Task, TaskDraft


class RecordStore(Protocol):
    """记录存储接口"""

    # 订单 / 活动（只读）

    async def get_orders_in_date_range(self, start: date, end: date) -> list[Order]:
        """查询 order_date 落在 [start, end] 的订单"""
        ...

    async def get_orders_for_event(self, event_id: str) -> list[Order]:
        """查询某活动的全部订单"""
        ...

    async def get_orders_by_ids(self, order_ids: list[str]) -> list[Order]:
        """按 ID 批量查询订单（忽略不存在的 ID）"""
        ...

    async def get_event(self, event_id: str) -> Event | None:
        """按记录 ID 查询活动"""
        ...

    async def list_events_between(self, start: date, end: date) -> list[Event]:
        """查询 event_date 落在 [start, end] 的活动"""
        ...

    # 任务

    async def create_task(self, draft: TaskDraft) -> Task:
        """创建任务记录，返回带存储 ID 的 Task"""
        ...

    async def get_task(self, task_id: str) -> Task | None:
        """按记录 ID 查询任务"""
        ...

    async def update_task(
        self,
        task_id: str,
        fields: dict[str, Any],
        expected_status: TaskStatus | None = None,
    ) -> Task:
        """单条记录更新；expected_status 不匹配时抛出 TaskStatusConflictError"""
        ...

    async def find_tasks(
        self,
        *,
        task_type: TaskType | None = None,
        status: TaskStatus | None = None,
        event_id: str | None = None,
        template_id: str | None = None,
        parent_task_id: str | None = None,
    ) -> list[Task]:
        """按条件查询任务（条件之间为 AND）"""
        ...

    async def find_tasks_by_batch_id(self, batch_id: str) -> list[Task]:
        """查询某周批次 ID 的全部任务（含已取消）"""
        ...

    # 供应商订单

    async def create_supplier_order(self, draft: SupplierOrderDraft) -> GuesstimateOrder:
        """创建 GuesstimateOrder"""
        ...

    async def get_supplier_order(self, record_id: str) -> GuesstimateOrder | None:
        """按记录 ID 查询 GuesstimateOrder"""
        ...

    async def find_supplier_orders_by_task(self, task_id: str) -> list[GuesstimateOrder]:
        """查询由某任务发起的 GuesstimateOrder"""
        ...

    async def find_supplier_orders(
        self, *, completed: bool | None = None
    ) -> list[GuesstimateOrder]:
        """查询 GuesstimateOrder；completed=False 只返回尚未到货的，None 表示全部"""
        ...

    async def update_supplier_order(
        self, record_id: str, date_completed: date
    ) -> GuesstimateOrder:
        """写入供应商完成日期（到货），这是创建后唯一可变的字段

        Raises:
            NotFoundError: 记录不存在
            InvalidStateError: 已写入过 date_completed
        """
        ...

    async def ping(self) -> None:
        """连通性检查，失败时抛出异常"""
        ...
