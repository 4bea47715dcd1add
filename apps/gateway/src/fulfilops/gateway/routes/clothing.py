"""单活动个性化服装下单路由（管理员）

GET /tasks/clothing-orders: 可见窗口内各活动待下单汇总
POST /tasks/clothing-orders/{event_id}/complete: 下单并完成活动服装任务
"""

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from ..deps import get_actor, get_clothing_orders, get_today
from ..services.clothing_orders import ClothingOrderService
from .tasks import CompleteTaskResponse, completion_response

router = APIRouter(dependencies=[Depends(get_actor)])


class CompleteClothingRequest(BaseModel):
    """服装下单请求体"""

    amount: float = Field(ge=0, allow_inf_nan=False, description="供应商订单金额")
    notes: str | None = None
    order_ids: list[str] | None = Field(
        default=None,
        description="覆盖的订单 ID，缺省时取该活动全部待下单订单",
    )


@router.get("/tasks/clothing-orders")
async def list_clothing_orders(
    service: ClothingOrderService = Depends(get_clothing_orders),
    today=Depends(get_today),
):
    events = await service.get_pending_clothing_orders(today)
    return {"events": [e.model_dump(mode="json") for e in events]}


@router.post(
    "/tasks/clothing-orders/{event_id}/complete",
    response_model=CompleteTaskResponse,
)
async def complete_clothing_order(
    event_id: str,
    body: CompleteClothingRequest,
    actor: str = Depends(get_actor),
    service: ClothingOrderService = Depends(get_clothing_orders),
):
    result = await service.complete_clothing_order(
        event_id, body.amount, body.notes, body.order_ids, actor
    )
    return completion_response(result)
