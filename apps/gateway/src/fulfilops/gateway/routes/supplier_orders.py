"""GuesstimateOrder 到货路由（管理员）

GET /tasks/guesstimate-orders?status=pending|completed|all: 按到货状态列出供应商订单
PATCH /tasks/guesstimate-orders/{go_id}: 记录到货日期（只能记录一次）
"""

from datetime import date

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from ..deps import get_actor, get_supplier_orders, get_today
from ..services.supplier_orders import SupplierOrderService, SupplierOrderStatus

router = APIRouter(dependencies=[Depends(get_actor)])


class MarkReceivedRequest(BaseModel):
    """到货请求体"""

    date_completed: date | None = Field(default=None, description="到货日期，缺省为今天")


@router.get("/tasks/guesstimate-orders")
async def list_supplier_orders(
    status: SupplierOrderStatus = Query(default="pending"),
    service: SupplierOrderService = Depends(get_supplier_orders),
):
    orders = await service.list_supplier_orders(status)
    return {"orders": [o.model_dump(mode="json") for o in orders]}


@router.patch("/tasks/guesstimate-orders/{go_id}")
async def mark_supplier_order_received(
    go_id: str,
    body: MarkReceivedRequest | None = None,
    actor: str = Depends(get_actor),
    service: SupplierOrderService = Depends(get_supplier_orders),
    today=Depends(get_today),
):
    """标记供应商订单已到货；已到货时返回 400 INVALID_STATE"""
    received_on = body.date_completed if body and body.date_completed else today
    order = await service.mark_received(go_id, actor, received_on)
    return order.model_dump(mode="json")
