"""周标准服装批次路由（管理员）

GET /tasks/standard-batches: 待完成的批次（从源订单重新聚合）
POST /tasks/standard-batches/{batch_task_id}/complete: 完成批次并触发级联

必须在 tasks 路由之前注册，避免被 /tasks/{task_id} 匹配。
"""

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from ..deps import get_actor, get_batch_builder
from ..services.batch_builder import BatchBuilder
from .tasks import CompleteTaskResponse, completion_response

router = APIRouter(dependencies=[Depends(get_actor)])


class CompleteBatchRequest(BaseModel):
    """完成批次请求体"""

    amount: float = Field(ge=0, allow_inf_nan=False, description="供应商订单金额")
    notes: str | None = None


@router.get("/tasks/standard-batches")
async def list_standard_batches(builder: BatchBuilder = Depends(get_batch_builder)):
    batches = await builder.list_pending_batches()
    return {"batches": [b.model_dump(mode="json") for b in batches]}


@router.post(
    "/tasks/standard-batches/{batch_task_id}/complete",
    response_model=CompleteTaskResponse,
)
async def complete_standard_batch(
    batch_task_id: str,
    body: CompleteBatchRequest,
    actor: str = Depends(get_actor),
    builder: BatchBuilder = Depends(get_batch_builder),
):
    result = await builder.complete_standard_batch(
        batch_task_id, body.amount, body.notes, actor
    )
    return completion_response(result)
