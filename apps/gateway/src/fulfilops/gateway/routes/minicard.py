"""单活动迷你卡下单视图路由（管理员）

GET /tasks/minicard-orders: 有 pending 迷你卡任务的活动及其迷你卡订单汇总

完成迷你卡任务走通用的 POST /tasks/{task_id}/complete。
"""

from fastapi import APIRouter, Depends

from ..deps import get_actor, get_minicard_orders, get_today
from ..services.minicard_orders import MinicardOrderService

router = APIRouter(dependencies=[Depends(get_actor)])


@router.get("/tasks/minicard-orders")
async def list_minicard_orders(
    service: MinicardOrderService = Depends(get_minicard_orders),
    today=Depends(get_today),
):
    events = await service.get_pending_minicard_orders(today)
    return {"events": [e.model_dump(mode="json") for e in events]}
