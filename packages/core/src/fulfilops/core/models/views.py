"""聚合视图模型 -- 读取时重新计算，从不持久化"""

from datetime import date

from pydantic import BaseModel, Field

from .supplier_order import GuesstimateOrder
from .task import Task


class AggregateResult(BaseModel):
    """订单聚合结果"""

    total_orders: int = Field(default=0, description="去重后的订单数")
    total_revenue: float = Field(default=0.0, description="订单总额之和（保留两位小数）")
    aggregated_items: dict[str, dict[str, int]] = Field(
        default_factory=dict,
        description="按品类/尺码汇总的数量，只包含非零品类",
    )
    order_ids: list[str] = Field(default_factory=list, description="参与聚合的订单 ID")


class Urgency(BaseModel):
    """任务紧急度"""

    days_until_due: int
    is_overdue: bool
    urgency_score: int


class ClothingOrderEvent(AggregateResult):
    """单个活动的待下单个性化服装聚合"""

    event_id: str = Field(description="活动记录 ID")
    event_display_id: str = Field(default="", description="活动展示编号")
    school_name: str = Field(default="")
    event_date: date
    days_until_order_day: int
    is_overdue: bool
    task_id: str | None = Field(default=None, description="该活动待完成的服装任务 ID")


class ProductCombination(BaseModel):
    """迷你卡订单的商品组合（如 "Minicard + Hoodie"）"""

    label: str
    order_count: int = 0
    minicard_qty: int = 0


class MinicardOrderEvent(BaseModel):
    """单个活动待下单的迷你卡汇总"""

    event_id: str = Field(description="活动记录 ID")
    event_display_id: str = Field(default="", description="活动展示编号")
    school_name: str = Field(default="")
    event_date: date
    deadline: date = Field(description="下单截止日 = 活动日期 + 1 天")
    days_until_due: int
    is_overdue: bool
    total_minicard_count: int = 0
    total_orders: int = 0
    order_ids: list[str] = Field(default_factory=list)
    combinations: list[ProductCombination] = Field(default_factory=list)
    task_id: str = Field(description="活动待完成的迷你卡任务 ID")


class StandardClothingBatch(AggregateResult):
    """跨活动的周标准服装批次"""

    batch_id: str = Field(description="批次 ID，如 STD-2026-W06")
    week_start: date
    week_end: date
    event_record_ids: list[str] = Field(default_factory=list)
    event_names: list[str] = Field(default_factory=list)
    task_id: str | None = Field(default=None, description="已创建的批次任务 ID")


class TaskView(Task):
    """任务列表项：任务 + 活动信息 + 紧急度"""

    school_name: str = ""
    event_date: date | None = None
    go_display_id: str | None = None
    stock_arrived: bool | None = Field(
        default=None, description="发货任务：关联 GO 的货品是否已到"
    )
    days_until_due: int
    is_overdue: bool
    urgency_score: int


class IncomingSupplierOrder(GuesstimateOrder):
    """待到货 / 已到货的供应商订单，附带活动信息"""

    school_name: str = ""
    event_date: date | None = None
    source_task_type: str | None = Field(default=None, description="发起任务的类型")
