"""BatchBuilder -- 每周标准服装跨活动批次

每周一由 Cron 触发，处理上一个完整 ISO 周（周一 ~ 周日）：
1. 计算 batch_id；已存在未取消的同 ID 批次任务 -> 直接返回（从其 order_ids 重新聚合）
2. 查询该周订单，排除已被未取消批次覆盖的订单，只保留含标准服装的订单
3. 聚合、收集活动与学校名称
4. dry-run 不写入；否则一次写入创建 pending 批次任务（含 batch_id / 周区间 / event_ids / order_ids）
已取消的批次任务视为终态：其订单重新可用，同一周可再生成新批次。
"""

from datetime import date
from typing import Literal

import structlog
from fulfilops.core.aggregation import aggregate, has_items
from fulfilops.core.cache import EventCache
from fulfilops.core.catalog import resolve_standard
from fulfilops.core.deadline import get_week_range, iso_week_batch_id, to_date
from fulfilops.core.exceptions import DuplicateBatchError, NotFoundError, UpstreamError
from fulfilops.core.models import (
    CompletionData,
    Order,
    StandardClothingBatch,
    Task,
    TaskDraft,
    TaskStatus,
    TaskType,
)
from fulfilops.core.store import RecordStore
from fulfilops.core.templates import STANDARD_BATCH_TEMPLATE_ID, TemplateRegistry
from pydantic import BaseModel

from .lifecycle import CompletionResult, TaskLifecycleManager

log = structlog.get_logger()


class BatchRunResult(BaseModel):
    """一次批次任务执行的结果"""

    status: Literal["skipped", "created", "exists", "dry-run"]
    batch_id: str
    week_start: date
    week_end: date
    batch: StandardClothingBatch | None = None
    task_id: str | None = None


class BatchBuilder:
    """周批次构建服务"""

    def __init__(
        self,
        record_store: RecordStore,
        templates: TemplateRegistry,
        event_cache: EventCache,
        lifecycle: TaskLifecycleManager | None = None,
    ) -> None:
        self._store = record_store
        self._templates = templates
        self._event_cache = event_cache
        self._lifecycle = lifecycle

    @staticmethod
    def get_week_range(reference_date: date) -> tuple[date, date]:
        """参考日期的上一个完整 ISO 周"""
        return get_week_range(reference_date)

    async def run(self, reference_date: date, dry_run: bool = False) -> BatchRunResult:
        """执行一次周批次构建

        Args:
            reference_date: 运行日期（业务时区下的今天）
            dry_run: True 时只计算不写入
        """
        week_start, week_end = self.get_week_range(reference_date)
        batch_id = iso_week_batch_id(week_start)
        log.info(
            "batch_job_started",
            batch_id=batch_id,
            week_start=week_start.isoformat(),
            week_end=week_end.isoformat(),
            dry_run=dry_run,
        )

        batch = await self.find_standard_orders_for_week(week_start, week_end)
        if batch is None:
            log.info("batch_job_skipped", batch_id=batch_id, reason="no_orders")
            return BatchRunResult(
                status="skipped",
                batch_id=batch_id,
                week_start=week_start,
                week_end=week_end,
            )

        if dry_run:
            # 预览始终不写入；批次已存在时 batch.task_id 指向现有任务
            log.info(
                "batch_job_dry_run",
                batch_id=batch_id,
                total_orders=batch.total_orders,
                existing_task_id=batch.task_id,
            )
            status = "dry-run"
        elif batch.task_id is not None:
            log.info("batch_job_exists", batch_id=batch_id, task_id=batch.task_id)
            status = "exists"
        else:
            task, created = await self.create_batch_task(batch, reference_date)
            batch = batch.model_copy(update={"task_id": task.id})
            status = "created" if created else "exists"

        return BatchRunResult(
            status=status,
            batch_id=batch_id,
            week_start=week_start,
            week_end=week_end,
            batch=batch,
            task_id=batch.task_id,
        )

    async def find_standard_orders_for_week(
        self,
        week_start: date,
        week_end: date,
    ) -> StandardClothingBatch | None:
        """计算某周的标准服装批次，无符合条件的订单时返回 None"""
        batch_id = iso_week_batch_id(week_start)
        existing = await self._active_batch_task(batch_id)
        if existing is not None:
            return await self._batch_from_task(existing)

        orders = await self._store.get_orders_in_date_range(week_start, week_end)
        batched = await self._batched_order_ids()
        eligible = [
            o for o in orders if o.id not in batched and has_items(o, resolve_standard)
        ]
        log.debug(
            "batch_orders_filtered",
            batch_id=batch_id,
            week_orders=len(orders),
            already_batched=len(batched),
            eligible=len(eligible),
        )
        if not eligible:
            return None
        return await self._build_batch(batch_id, week_start, week_end, eligible)

    async def create_batch_task(
        self,
        batch: StandardClothingBatch,
        today: date,
    ) -> tuple[Task, bool]:
        """为批次创建 pending 任务

        并发重复创建被存储拒绝（DuplicateBatchError）或超时结果未知时，回查已存在的批次任务。

        Returns:
            (批次任务, 是否本次新建)
        """
        template = self._templates.get(STANDARD_BATCH_TEMPLATE_ID)
        if template is None:
            raise NotFoundError("Template", STANDARD_BATCH_TEMPLATE_ID)

        draft = TaskDraft(
            template_id=template.id,
            task_type=TaskType.STANDARD_CLOTHING_ORDER,
            task_name=f"Standard Clothing Batch {batch.batch_id}",
            description=(
                f"Weekly batch: {batch.total_orders} orders from "
                f"{len(batch.event_record_ids)} schools "
                f"({batch.week_start.isoformat()} to {batch.week_end.isoformat()})"
            ),
            completion_type=template.completion_type,
            timeline_offset=template.timeline_offset,
            deadline=to_date(today),
            batch_id=batch.batch_id,
            week_start=batch.week_start,
            week_end=batch.week_end,
            event_ids=batch.event_record_ids,
            order_ids=batch.order_ids,
        )
        try:
            task = await self._store.create_task(draft)
        except DuplicateBatchError:
            existing = await self._active_batch_task(batch.batch_id)
            if existing is None:
                raise
            log.warning("batch_task_duplicate_resolved", batch_id=batch.batch_id, task_id=existing.id)
            return existing, False
        except UpstreamError as e:
            if not e.unknown_outcome:
                raise
            existing = await self._active_batch_task(batch.batch_id)
            if existing is None:
                raise
            log.warning("batch_task_create_outcome_recovered", batch_id=batch.batch_id)
            return existing, True

        log.info(
            "batch_task_created",
            batch_id=batch.batch_id,
            task_id=task.id,
            total_orders=batch.total_orders,
            total_revenue=batch.total_revenue,
            event_count=len(batch.event_record_ids),
        )
        return task, True

    async def list_pending_batches(self) -> list[StandardClothingBatch]:
        """待完成的批次（从源订单重新聚合）"""
        tasks = await self._store.find_tasks(
            task_type=TaskType.STANDARD_CLOTHING_ORDER,
            status=TaskStatus.PENDING,
        )
        batches = [await self._batch_from_task(t) for t in tasks if t.batch_id]
        return sorted(batches, key=lambda b: b.week_start)

    async def complete_standard_batch(
        self,
        task_id: str,
        amount: float | None,
        notes: str | None,
        actor: str,
    ) -> CompletionResult:
        """完成批次任务（触发 GuesstimateOrder + 发货任务级联）"""
        if self._lifecycle is None:
            raise RuntimeError("BatchBuilder was created without a lifecycle manager")
        task = await self._store.get_task(task_id)
        if task is None or task.task_type != TaskType.STANDARD_CLOTHING_ORDER:
            raise NotFoundError("Batch", task_id)
        return await self._lifecycle.complete_task(
            task_id,
            CompletionData(amount=amount, notes=notes),
            None,
            actor,
        )

    async def _active_batch_task(self, batch_id: str) -> Task | None:
        tasks = await self._store.find_tasks_by_batch_id(batch_id)
        for task in tasks:
            if (
                task.task_type == TaskType.STANDARD_CLOTHING_ORDER
                and task.status != TaskStatus.CANCELLED
            ):
                return task
        return None

    async def _batched_order_ids(self) -> set[str]:
        """已被未取消批次任务覆盖的订单"""
        tasks = await self._store.find_tasks(task_type=TaskType.STANDARD_CLOTHING_ORDER)
        batched: set[str] = set()
        for task in tasks:
            if task.status != TaskStatus.CANCELLED:
                batched.update(task.order_ids)
        return batched

    async def _batch_from_task(self, task: Task) -> StandardClothingBatch:
        orders = await self._store.get_orders_by_ids(task.order_ids)
        week_start = task.week_start or task.deadline
        week_end = task.week_end or task.deadline
        batch = await self._build_batch(task.batch_id or "", week_start, week_end, orders)
        if task.event_ids:
            batch.event_record_ids = task.event_ids
            batch.event_names = await self._event_names(task.event_ids)
        return batch.model_copy(update={"task_id": task.id})

    async def _build_batch(
        self,
        batch_id: str,
        week_start: date,
        week_end: date,
        orders: list[Order],
    ) -> StandardClothingBatch:
        result = aggregate(orders, resolve_standard)
        event_ids = list(dict.fromkeys(o.event_id for o in orders if o.event_id))
        return StandardClothingBatch(
            **result.model_dump(),
            batch_id=batch_id,
            week_start=week_start,
            week_end=week_end,
            event_record_ids=event_ids,
            event_names=await self._event_names(event_ids),
        )

    async def _event_names(self, event_ids: list[str]) -> list[str]:
        names: list[str] = []
        for event_id in event_ids:
            event = await self._event_cache.get(event_id, self._store.get_event)
            if event is not None and event.school_name and event.school_name not in names:
                names.append(event.school_name)
        return names
