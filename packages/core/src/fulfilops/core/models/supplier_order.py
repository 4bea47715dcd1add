"""GuesstimateOrder 模型 -- 面向供应商的订单记录

每个需要供应商订单的已完成任务恰好创建一条，之后除 date_completed 外不可变。
source_task_id 用于级联幂等：崩溃后重试时可认领已创建但未回链的订单。
"""

from datetime import date, datetime

from pydantic import BaseModel, Field


class SupplierOrderItem(BaseModel):
    """供应商订单行"""

    sku: str = Field(description="供应商 SKU，如 std-tshirt-98/104")
    name: str = Field(description="展示名称")
    quantity: int = Field(ge=0, description="数量")


class SupplierOrderDraft(BaseModel):
    """待创建的 GuesstimateOrder"""

    source_task_id: str = Field(description="发起该订单的任务 ID")
    event_id: str | None = Field(default=None, description="所属活动（跨活动批次为空）")
    event_ids: list[str] = Field(default_factory=list, description="跨活动批次的活动集合")
    order_ids: list[str] = Field(default_factory=list, description="覆盖的源订单 ID")
    order_date: date = Field(description="下单日期")
    order_amount: float = Field(default=0.0, ge=0, description="订单金额")
    contains: list[SupplierOrderItem] = Field(default_factory=list, description="订单明细")


class GuesstimateOrder(SupplierOrderDraft):
    """GuesstimateOrder 数据模型"""

    id: str = Field(description="存储记录 ID")
    go_id: str = Field(description="展示编号，如 GO-0001")
    date_completed: date | None = Field(default=None, description="供应商完成日期")
    created_at: datetime = Field(description="创建时间")
