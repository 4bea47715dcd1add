"""Task Domain Model -- 截止日期驱动的履约工作单元

Task 由模板生成（活动开通、周批次、服装订单、级联发货），
只能通过生命周期管理器与级联服务修改，永不删除。
"""

from datetime import date, datetime

from pydantic import BaseModel, Field, model_validator

from .enums import CompletionType, TaskStatus, TaskType


class CompletionData(BaseModel):
    """完成数据，按 completion_type 校验后写入"""

    amount: float | None = Field(default=None, description="实际花费金额")
    invoice_url: str | None = Field(default=None, description="发票链接")
    confirmed: bool | None = Field(default=None, description="勾选确认")
    notes: str | None = Field(default=None, description="备注")


class TaskDraft(BaseModel):
    """待创建的 Task（id / 展示编号 / created_at 由存储分配）"""

    template_id: str = Field(description="生成该任务的模板 ID")
    task_type: TaskType = Field(description="任务类型")
    task_name: str = Field(description="任务名称")
    description: str = Field(default="", description="任务描述")
    completion_type: CompletionType = Field(description="完成方式")
    timeline_offset: int = Field(description="相对活动日期的偏移天数（可为负）")
    deadline: date = Field(description="截止日期，创建时计算后不可修改")
    status: TaskStatus = Field(default=TaskStatus.PENDING, description="当前状态")
    event_id: str | None = Field(default=None, description="所属活动记录 ID")
    event_ids: list[str] = Field(default_factory=list, description="跨活动批次的活动记录 ID 集合")
    batch_id: str | None = Field(default=None, description="周批次 ID，如 STD-2026-W06")
    week_start: date | None = Field(default=None, description="批次周起始日（周一）")
    week_end: date | None = Field(default=None, description="批次周结束日（周日）")
    order_ids: list[str] = Field(default_factory=list, description="覆盖的源订单 ID")
    parent_task_id: str | None = Field(default=None, description="父任务 ID（仅发货任务）")
    go_id: str | None = Field(default=None, description="关联的 GuesstimateOrder 记录 ID")

    @model_validator(mode="after")
    def _check_event_ownership(self) -> "TaskDraft":
        # 除跨活动周批次（及其发货任务）外，每个任务必须归属一个活动
        if self.event_id is None and self.batch_id is None:
            raise ValueError("event_id is required for tasks outside a standard batch")
        return self


class Task(TaskDraft):
    """Task 数据模型"""

    id: str = Field(description="存储记录 ID")
    task_id: str = Field(description="展示编号，如 TSK-0001")
    created_at: datetime = Field(description="创建时间")
    completed_at: datetime | None = Field(default=None, description="完成时间")
    completed_by: str | None = Field(default=None, description="完成人")
    completion_data: CompletionData | None = Field(default=None, description="完成数据")
    shipping_task_id: str | None = Field(default=None, description="级联创建的发货任务 ID")


# update_task 允许写入的字段（deadline / timeline_offset 等创建后不可变）
UPDATABLE_TASK_FIELDS: frozenset[str] = frozenset(
    {
        "status",
        "completed_at",
        "completed_by",
        "completion_data",
        "order_ids",
        "go_id",
        "shipping_task_id",
    }
)
