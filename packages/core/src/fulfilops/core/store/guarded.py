"""GuardedRecordStore -- 为每次记录存储调用加超时与错误归一化

- 每次调用由 asyncio.wait_for 限时（超时秒数由调用方配置）
- 超时 -> UpstreamError(unknown_outcome=True)：写入是否生效未知，需重读判断
- 其他适配器异常 -> UpstreamError(operation)
- 引擎自身的领域异常（NotFoundError / TaskStatusConflictError 等）原样透传
"""

import asyncio
import time
from collections.abc import Awaitable
from datetime import date
from typing import Any, TypeVar

import structlog

from ..exceptions import FulfilOpsError, UpstreamError
from ..models.enums import TaskStatus, TaskType
from ..models.order import Event, Order
from ..models.supplier_order import GuesstimateOrder, SupplierOrderDraft
from ..models.task import Task, TaskDraft
from .protocols import RecordStore

log = structlog.get_logger()

T = TypeVar("T")


class GuardedRecordStore:
    """RecordStore 包装器：超时 + 错误归一化"""

    def __init__(self, inner: RecordStore, timeout_s: float = 10) -> None:
        """
        Args:
            inner: 实际的记录存储适配器
            timeout_s: 单次调用超时（秒）
        """
        self._inner = inner
        self._timeout_s = timeout_s

    @property
    def inner(self) -> RecordStore:
        return self._inner

    async def _call(self, operation: str, awaitable: Awaitable[T]) -> T:
        start_time = time.monotonic()
        try:
            return await asyncio.wait_for(awaitable, timeout=self._timeout_s)
        except FulfilOpsError:
            raise
        except TimeoutError as e:
            duration_ms = int((time.monotonic() - start_time) * 1000)
            log.error(
                "record_store_timeout",
                operation=operation,
                timeout_s=self._timeout_s,
                duration_ms=duration_ms,
            )
            raise UpstreamError(
                operation,
                reason=f"timed out after {self._timeout_s}s",
                unknown_outcome=True,
            ) from e
        except Exception as e:
            duration_ms = int((time.monotonic() - start_time) * 1000)
            log.error(
                "record_store_call_failed",
                operation=operation,
                error=str(e),
                error_type=type(e).__name__,
                duration_ms=duration_ms,
            )
            raise UpstreamError(operation, reason=str(e)) from e

    async def get_orders_in_date_range(self, start: date, end: date) -> list[Order]:
        return await self._call(
            "get_orders_in_date_range", self._inner.get_orders_in_date_range(start, end)
        )

    async def get_orders_for_event(self, event_id: str) -> list[Order]:
        return await self._call(
            "get_orders_for_event", self._inner.get_orders_for_event(event_id)
        )

    async def get_orders_by_ids(self, order_ids: list[str]) -> list[Order]:
        return await self._call("get_orders_by_ids", self._inner.get_orders_by_ids(order_ids))

    async def get_event(self, event_id: str) -> Event | None:
        return await self._call("get_event", self._inner.get_event(event_id))

    async def list_events_between(self, start: date, end: date) -> list[Event]:
        return await self._call(
            "list_events_between", self._inner.list_events_between(start, end)
        )

    async def create_task(self, draft: TaskDraft) -> Task:
        return await self._call("create_task", self._inner.create_task(draft))

    async def get_task(self, task_id: str) -> Task | None:
        return await self._call("get_task", self._inner.get_task(task_id))

    async def update_task(
        self,
        task_id: str,
        fields: dict[str, Any],
        expected_status: TaskStatus | None = None,
    ) -> Task:
        return await self._call(
            "update_task", self._inner.update_task(task_id, fields, expected_status)
        )

    async def find_tasks(
        self,
        *,
        task_type: TaskType | None = None,
        status: TaskStatus | None = None,
        event_id: str | None = None,
        template_id: str | None = None,
        parent_task_id: str | None = None,
    ) -> list[Task]:
        return await self._call(
            "find_tasks",
            self._inner.find_tasks(
                task_type=task_type,
                status=status,
                event_id=event_id,
                template_id=template_id,
                parent_task_id=parent_task_id,
            ),
        )

    async def find_tasks_by_batch_id(self, batch_id: str) -> list[Task]:
        return await self._call(
            "find_tasks_by_batch_id", self._inner.find_tasks_by_batch_id(batch_id)
        )

    async def create_supplier_order(self, draft: SupplierOrderDraft) -> GuesstimateOrder:
        return await self._call("create_supplier_order", self._inner.create_supplier_order(draft))

    async def get_supplier_order(self, record_id: str) -> GuesstimateOrder | None:
        return await self._call("get_supplier_order", self._inner.get_supplier_order(record_id))

    async def find_supplier_orders_by_task(self, task_id: str) -> list[GuesstimateOrder]:
        return await self._call(
            "find_supplier_orders_by_task", self._inner.find_supplier_orders_by_task(task_id)
        )

    async def find_supplier_orders(
        self, *, completed: bool | None = None
    ) -> list[GuesstimateOrder]:
        return await self._call(
            "find_supplier_orders", self._inner.find_supplier_orders(completed=completed)
        )

    async def update_supplier_order(
        self, record_id: str, date_completed: date
    ) -> GuesstimateOrder:
        return await self._call(
            "update_supplier_order",
            self._inner.update_supplier_order(record_id, date_completed),
        )

    async def ping(self) -> None:
        await self._call("ping", self._inner.ping())
