"""任务取消路由

POST /tasks/{task_id}/cancel: 取消 pending 任务。
- 200: 取消成功
- 404: 任务不存在
- 400: 任务已在终态（INVALID_STATE）
"""

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from ..deps import get_actor, get_lifecycle
from ..services.lifecycle import TaskLifecycleManager

router = APIRouter()


class CancelRequest(BaseModel):
    """取消请求体（可选）"""

    reason: str = ""


class CancelResponse(BaseModel):
    """取消成功响应"""

    task_id: str
    display_id: str
    status: str


@router.post("/tasks/{task_id}/cancel", response_model=CancelResponse)
async def cancel_task(
    task_id: str,
    body: CancelRequest | None = None,
    actor: str = Depends(get_actor),
    lifecycle: TaskLifecycleManager = Depends(get_lifecycle),
):
    """取消 pending 任务；已取消的周批次会释放其订单，下次运行可重新成批"""
    task = await lifecycle.cancel_task(task_id, actor, reason=body.reason if body else "")
    return CancelResponse(
        task_id=task.id,
        display_id=task.task_id,
        status=task.status.value,
    )
