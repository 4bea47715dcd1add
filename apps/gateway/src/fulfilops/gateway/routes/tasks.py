"""任务路由（管理员）

GET /tasks?status=&type=&search=: 按紧急度排序的任务列表 + 各类型计数
GET /tasks/{task_id}: 任务详情
POST /tasks/{task_id}/complete: 完成任务并执行级联
POST /tasks/{task_id}/repair-cascade: 续做已完成任务缺失的级联步骤
"""

from fastapi import APIRouter, Depends, Query
from fulfilops.core.exceptions import ValidationError
from fulfilops.core.models import CompletionData, TaskStatus, TaskType
from pydantic import BaseModel, Field

from ..deps import get_actor, get_lifecycle, get_task_query, get_today
from ..services.lifecycle import CompletionResult, TaskLifecycleManager
from ..services.task_query import TaskQueryService

router = APIRouter(dependencies=[Depends(get_actor)])


class CompleteTaskRequest(BaseModel):
    """完成任务请求体"""

    amount: float | None = Field(
        default=None, allow_inf_nan=False, description="金额（monetary 任务必填）"
    )
    notes: str | None = None
    invoice_url: str | None = None
    confirmed: bool | None = Field(default=None, description="勾选确认（checkbox 任务必填）")
    order_ids: list[str] | None = Field(default=None, description="本次覆盖的订单 ID")


class CompleteTaskResponse(BaseModel):
    """完成任务响应"""

    task_id: str
    display_id: str
    status: str
    go_id: str | None = None
    go_display_id: str | None = None
    shipping_task_id: str | None = None


def completion_response(result: CompletionResult) -> CompleteTaskResponse:
    return CompleteTaskResponse(
        task_id=result.task.id,
        display_id=result.task.task_id,
        status=result.task.status.value,
        go_id=result.cascade.go_id,
        go_display_id=result.cascade.go_display_id,
        shipping_task_id=result.cascade.shipping_task_id,
    )


def _parse_filter(value: str | None, enum_cls, name: str):
    if value is None or value == "all":
        return None
    try:
        return enum_cls(value)
    except ValueError:
        raise ValidationError(
            f"Unknown {name}: {value}",
            details={name: [m.value for m in enum_cls]},
        ) from None


@router.get("/tasks")
async def list_tasks(
    status: str | None = Query(default="pending", description="pending/completed/cancelled/all"),
    type: str | None = Query(default=None, description="任务类型或 all"),
    search: str | None = Query(default=None),
    query: TaskQueryService = Depends(get_task_query),
    today=Depends(get_today),
):
    """任务列表：按 (紧急度, 类型优先级, 活动日期) 排序"""
    result = await query.list_tasks(
        today,
        status=_parse_filter(status, TaskStatus, "status"),
        task_type=_parse_filter(type, TaskType, "type"),
        search=search,
    )
    return result.model_dump(mode="json")


@router.get("/tasks/{task_id}")
async def get_task(
    task_id: str,
    query: TaskQueryService = Depends(get_task_query),
    today=Depends(get_today),
):
    """任务详情"""
    view = await query.get_task_view(task_id, today)
    return view.model_dump(mode="json")


@router.post("/tasks/{task_id}/complete", response_model=CompleteTaskResponse)
async def complete_task(
    task_id: str,
    body: CompleteTaskRequest,
    actor: str = Depends(get_actor),
    lifecycle: TaskLifecycleManager = Depends(get_lifecycle),
):
    """完成任务；级联失败时返回 500，任务保持 completed，可调用 repair-cascade"""
    result = await lifecycle.complete_task(
        task_id,
        CompletionData(
            amount=body.amount,
            invoice_url=body.invoice_url,
            confirmed=body.confirmed,
            notes=body.notes,
        ),
        body.order_ids,
        actor,
    )
    return completion_response(result)


@router.post("/tasks/{task_id}/repair-cascade")
async def repair_cascade(
    task_id: str,
    lifecycle: TaskLifecycleManager = Depends(get_lifecycle),
):
    """续做缺失的 GuesstimateOrder / 发货任务（幂等）"""
    result = await lifecycle.repair_cascade(task_id)
    return {"task_id": task_id, **result.model_dump(mode="json")}
