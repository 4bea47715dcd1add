"""TemplateRegistry -- 任务模板注册表

模板决定任务类型、完成方式、时间线偏移，以及完成后是否级联创建
GuesstimateOrder（creates_go_id）和发货任务（creates_shipping）。
发货任务模板按父模板动态生成：template_id = "shipping_<父模板 ID>"。
"""

import structlog
from pydantic import BaseModel, Field

from .models.enums import CompletionType, TaskType

log = structlog.get_logger()

SHIPPING_TEMPLATE_PREFIX = "shipping_"
CLOTHING_TEMPLATE_ID = "order_schul_shirts"
STANDARD_BATCH_TEMPLATE_ID = "order_standard_shirts"
MINICARD_TEMPLATE_ID = "minicard"


class TaskTemplate(BaseModel):
    """单个任务模板"""

    id: str = Field(description="模板 ID")
    name: str = Field(description="任务名称")
    description: str = Field(default="", description="任务描述")
    task_type: TaskType = Field(description="任务类型")
    completion_type: CompletionType = Field(description="完成方式")
    timeline_offset: int = Field(default=0, description="相对活动日期的偏移天数")
    creates_go_id: bool = Field(default=False, description="完成后创建 GuesstimateOrder")
    creates_shipping: bool = Field(default=False, description="完成后创建发货任务")
    per_event: bool = Field(default=True, description="活动开通时自动生成")


def _get_default_templates() -> list[TaskTemplate]:
    """默认模板配置"""
    return [
        TaskTemplate(
            id="poster_letter",
            name="Order Poster & Letter",
            description="Print and order posters and parent letters",
            task_type=TaskType.PAPER_ORDER,
            completion_type=CompletionType.SUBMIT_ONLY,
            timeline_offset=-58,
            creates_go_id=True,
            creates_shipping=True,
        ),
        TaskTemplate(
            id="flyer1",
            name="Order Flyer 1",
            description="Order first round of flyers",
            task_type=TaskType.PAPER_ORDER,
            completion_type=CompletionType.MONETARY,
            timeline_offset=-42,
            creates_go_id=True,
            creates_shipping=True,
        ),
        TaskTemplate(
            id="flyer2",
            name="Order Flyer 2",
            description="Order second round of flyers",
            task_type=TaskType.PAPER_ORDER,
            completion_type=CompletionType.MONETARY,
            timeline_offset=-22,
            creates_go_id=True,
            creates_shipping=True,
        ),
        TaskTemplate(
            id="flyer3",
            name="Order Flyer 3",
            description="Order third round of flyers",
            task_type=TaskType.PAPER_ORDER,
            completion_type=CompletionType.MONETARY,
            timeline_offset=-14,
            creates_go_id=True,
            creates_shipping=True,
        ),
        TaskTemplate(
            id=MINICARD_TEMPLATE_ID,
            name="Order Minicards",
            description="Order minicards after the event",
            task_type=TaskType.PAPER_ORDER,
            completion_type=CompletionType.MONETARY,
            timeline_offset=1,
            creates_go_id=True,
            creates_shipping=False,
        ),
        TaskTemplate(
            id=CLOTHING_TEMPLATE_ID,
            name="Order School T-Shirts & Hoodies",
            description="Order personalized clothing for the school",
            task_type=TaskType.CLOTHING_ORDER,
            completion_type=CompletionType.MONETARY,
            timeline_offset=-18,
            creates_go_id=True,
            creates_shipping=True,
        ),
        TaskTemplate(
            id="cd_master",
            name="Create CD Master",
            description="Prepare and approve the CD master",
            task_type=TaskType.CD_MASTER,
            completion_type=CompletionType.CHECKBOX,
            timeline_offset=3,
        ),
        TaskTemplate(
            id="cd_production",
            name="Order CD Production",
            description="Order CD pressing from the supplier",
            task_type=TaskType.CD_PRODUCTION,
            completion_type=CompletionType.MONETARY,
            timeline_offset=7,
            creates_go_id=True,
            creates_shipping=True,
        ),
        TaskTemplate(
            id=STANDARD_BATCH_TEMPLATE_ID,
            name="Standard Clothing Batch",
            description="Weekly batch of standard clothing orders",
            task_type=TaskType.STANDARD_CLOTHING_ORDER,
            completion_type=CompletionType.MONETARY,
            timeline_offset=0,
            creates_go_id=True,
            creates_shipping=True,
            per_event=False,
        ),
    ]


def shipping_template_for(parent: TaskTemplate, offset_days: int) -> TaskTemplate:
    """根据父模板生成发货任务模板"""
    return TaskTemplate(
        id=f"{SHIPPING_TEMPLATE_PREFIX}{parent.id}",
        name="Ship Order To School",
        description=f"Confirm shipment of materials to school - {parent.name}",
        task_type=TaskType.SHIPPING,
        completion_type=CompletionType.CHECKBOX,
        timeline_offset=parent.timeline_offset + offset_days,
        per_event=False,
    )


class TemplateRegistry:
    """模板注册表 -- 启动时加载，运行期间不变"""

    def __init__(
        self,
        templates: list[TaskTemplate] | None = None,
        shipping_offset_days: int = 3,
    ) -> None:
        """初始化注册表

        Args:
            templates: 模板列表，None 时使用默认配置
            shipping_offset_days: 发货任务相对父任务的偏移天数
        """
        template_list = templates if templates is not None else _get_default_templates()
        self._templates: dict[str, TaskTemplate] = {t.id: t for t in template_list}
        self.shipping_offset_days = shipping_offset_days

    def get(self, template_id: str) -> TaskTemplate | None:
        """按 ID 查询模板，支持 shipping_<父模板> 形式的动态发货模板"""
        if template_id in self._templates:
            return self._templates[template_id]
        if template_id.startswith(SHIPPING_TEMPLATE_PREFIX):
            parent = self._templates.get(template_id[len(SHIPPING_TEMPLATE_PREFIX):])
            if parent is not None:
                return shipping_template_for(parent, self.shipping_offset_days)
        log.warning("unknown_task_template", template_id=template_id)
        return None

    def shipping_for(self, parent: TaskTemplate) -> TaskTemplate:
        """父模板对应的发货模板"""
        return shipping_template_for(parent, self.shipping_offset_days)

    def event_templates(self) -> list[TaskTemplate]:
        """活动开通时需要生成的模板（按时间线排序）"""
        return sorted(
            (t for t in self._templates.values() if t.per_event),
            key=lambda t: t.timeline_offset,
        )

    def list_all(self) -> list[TaskTemplate]:
        """列出所有已注册模板（按 ID 排序）"""
        return sorted(self._templates.values(), key=lambda t: t.id)
