"""TaskLifecycleManager -- 任务状态机：完成 / 取消 / 级联修复

完成流程：
1. 校验：任务存在、状态为 pending、completion_data 匹配 completion_type、订单未被重复覆盖
2. 单次条件更新（expected_status=pending）写入 status / completed_at / completed_by /
   completion_data / order_ids，并发的第二次完成会被存储拒绝
3. 同步执行级联；级联失败时任务保持 completed，可通过 repair_cascade 续做
"""

import math
from datetime import UTC, datetime

import structlog
from fulfilops.core.exceptions import (
    InvalidStateError,
    NotFoundError,
    UpstreamError,
    ValidationError,
)
from fulfilops.core.models import (
    CompletionData,
    CompletionType,
    Task,
    TaskStatus,
    TaskType,
    validate_transition,
)
from fulfilops.core.store import RecordStore
from pydantic import BaseModel

from .cascade import CascadeResult, CascadeService

log = structlog.get_logger()


class CompletionResult(BaseModel):
    """完成结果"""

    task: Task
    cascade: CascadeResult


class RepairSummary(BaseModel):
    """批量修复结果"""

    repaired: dict[str, CascadeResult] = {}
    failed: list[str] = []


def validate_completion_data(completion_type: CompletionType, data: CompletionData) -> None:
    """校验完成数据与完成方式是否匹配

    Raises:
        ValidationError: 金额缺失/非有限数/为负、未勾选确认
    """
    if completion_type == CompletionType.MONETARY:
        if data.amount is None:
            raise ValidationError(
                "amount is required for monetary tasks",
                details={"amount": "required"},
            )
        if not math.isfinite(data.amount):
            raise ValidationError(
                "amount must be a finite number",
                details={"amount": "must be finite"},
            )
        if data.amount < 0:
            raise ValidationError(
                "amount must not be negative",
                details={"amount": "must be >= 0"},
            )
    elif completion_type == CompletionType.CHECKBOX:
        if data.confirmed is not True:
            raise ValidationError(
                "confirmed must be true for checkbox tasks",
                details={"confirmed": "required"},
            )


class TaskLifecycleManager:
    """任务生命周期管理"""

    def __init__(self, record_store: RecordStore, cascade: CascadeService) -> None:
        self._store = record_store
        self._cascade = cascade

    async def _get_task(self, task_id: str) -> Task:
        task = await self._store.get_task(task_id)
        if task is None:
            raise NotFoundError("Task", task_id)
        return task

    def _reject_transition(self, task: Task, target: TaskStatus) -> None:
        if validate_transition(task.status, target):
            return
        raise InvalidStateError(
            f"Cannot transition task {task.task_id} from {task.status} to {target}",
            task_id=task.id,
            current_status=task.status.value,
            cascade_incomplete=self._cascade.is_incomplete(task),
        )

    async def complete_task(
        self,
        task_id: str,
        completion_data: CompletionData,
        order_ids: list[str] | None,
        actor: str,
    ) -> CompletionResult:
        """完成任务并执行级联

        Args:
            task_id: 任务记录 ID
            completion_data: 完成数据
            order_ids: 本次覆盖的订单（None 时保留任务已有的 order_ids）
            actor: 操作人（管理员邮箱）

        Raises:
            NotFoundError: 任务不存在
            InvalidStateError: 任务不在 pending 状态
            ValidationError: 完成数据无效 / 订单已被其他任务覆盖
            UpstreamError: 存储调用失败（任务可能已完成，需走修复路径）
        """
        if not actor or not actor.strip():
            raise ValidationError("actor is required", details={"actor": "required"})

        task = await self._get_task(task_id)
        self._reject_transition(task, TaskStatus.COMPLETED)
        validate_completion_data(task.completion_type, completion_data)

        covered = list(dict.fromkeys(order_ids)) if order_ids is not None else task.order_ids
        if covered:
            await self._check_order_exclusivity(task, covered)

        updated = await self._store.update_task(
            task.id,
            {
                "status": TaskStatus.COMPLETED,
                "completed_at": datetime.now(UTC),
                "completed_by": actor.strip(),
                "completion_data": completion_data,
                "order_ids": covered,
            },
            expected_status=TaskStatus.PENDING,
        )
        log.info(
            "task_completed",
            task_id=updated.id,
            template_id=updated.template_id,
            task_type=updated.task_type.value,
            actor=actor,
            order_count=len(covered),
        )

        result = await self._cascade.cascade(updated)
        refreshed = await self._get_task(task.id)
        return CompletionResult(task=refreshed, cascade=result)

    async def cancel_task(self, task_id: str, actor: str, reason: str = "") -> Task:
        """取消 pending 任务（终态任务拒绝）"""
        task = await self._get_task(task_id)
        self._reject_transition(task, TaskStatus.CANCELLED)
        updated = await self._store.update_task(
            task.id,
            {"status": TaskStatus.CANCELLED},
            expected_status=TaskStatus.PENDING,
        )
        log.info(
            "task_cancelled",
            task_id=updated.id,
            template_id=updated.template_id,
            actor=actor,
            reason=reason,
        )
        return updated

    async def repair_cascade(self, task_id: str) -> CascadeResult:
        """对已完成任务续做缺失的级联步骤（幂等）"""
        task = await self._get_task(task_id)
        if task.status != TaskStatus.COMPLETED:
            raise InvalidStateError(
                f"Cascade repair requires a completed task, {task.task_id} is {task.status}",
                task_id=task.id,
                current_status=task.status.value,
            )
        log.info("cascade_repair_started", task_id=task.id)
        return await self._cascade.cascade(task)

    async def find_incomplete_cascades(self) -> list[Task]:
        """扫描级联未完成的已完成任务"""
        completed = await self._store.find_tasks(status=TaskStatus.COMPLETED)
        return [t for t in completed if self._cascade.is_incomplete(t)]

    async def repair_all(self) -> RepairSummary:
        """修复所有级联未完成的任务；单个任务的存储失败不阻断其余任务"""
        summary = RepairSummary()
        for task in await self.find_incomplete_cascades():
            try:
                summary.repaired[task.id] = await self._cascade.cascade(task)
            except UpstreamError as e:
                log.error("cascade_repair_failed", task_id=task.id, error=str(e))
                summary.failed.append(task.id)
        log.info(
            "cascade_repair_sweep_finished",
            repaired=len(summary.repaired),
            failed=len(summary.failed),
        )
        return summary

    async def _check_order_exclusivity(self, task: Task, order_ids: list[str]) -> None:
        """同类型、同活动（或同为周批次）的未取消任务不得重复覆盖订单"""
        if task.task_type == TaskType.STANDARD_CLOTHING_ORDER:
            siblings = await self._store.find_tasks(task_type=task.task_type)
        else:
            siblings = await self._store.find_tasks(task_type=task.task_type, event_id=task.event_id)

        requested = set(order_ids)
        for other in siblings:
            if other.id == task.id or other.status == TaskStatus.CANCELLED:
                continue
            overlap = requested.intersection(other.order_ids)
            if overlap:
                raise ValidationError(
                    f"Orders already covered by task {other.task_id}",
                    details={"order_ids": sorted(overlap)},
                )
