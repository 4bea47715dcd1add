"""Order / Event 模型 -- 电商订单与学校活动（只读输入）"""

from datetime import date

from pydantic import AliasChoices, BaseModel, Field


class LineItem(BaseModel):
    """订单行项目"""

    variant_id: str = Field(description="商品变体 ID（可带 gid 前缀）")
    quantity: int = Field(default=1, ge=0, description="数量")
    total: float = Field(default=0.0, description="行金额")
    title: str = Field(
        default="",
        validation_alias=AliasChoices("title", "product_title"),
        description="商品标题（电商原始字段为 product_title）",
    )


class Order(BaseModel):
    """电商订单"""

    id: str = Field(description="存储记录 ID")
    order_number: str = Field(default="", description="订单号")
    order_date: date = Field(description="下单日期")
    total_amount: float = Field(default=0.0, description="订单总额")
    line_items: list[LineItem] = Field(default_factory=list, description="行项目")
    event_id: str | None = Field(default=None, description="解析后的活动记录 ID")


class Event(BaseModel):
    """学校活动"""

    id: str = Field(description="存储记录 ID")
    event_id: str = Field(default="", description="活动展示编号")
    school_name: str = Field(default="", description="学校名称")
    event_date: date = Field(description="活动日期")
    event_type: str = Field(default="", description="活动类型")
