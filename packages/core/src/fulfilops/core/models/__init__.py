"""FulfilOps Core Domain Models -- 公共类型导出

所有公共模型类型从此入口导入。
"""

from .enums import (
    GO_REQUIRED_TYPES,
    TASK_TYPE_PRIORITY,
    TERMINAL_STATES,
    VALID_TRANSITIONS,
    CompletionType,
    TaskStatus,
    TaskType,
    type_priority,
    validate_transition,
)
from .order import Event, LineItem, Order
from .supplier_order import GuesstimateOrder, SupplierOrderDraft, SupplierOrderItem
from .task import UPDATABLE_TASK_FIELDS, CompletionData, Task, TaskDraft
from .views import (
    AggregateResult,
    ClothingOrderEvent,
    IncomingSupplierOrder,
    MinicardOrderEvent,
    ProductCombination,
    StandardClothingBatch,
    TaskView,
    Urgency,
)

__all__ = [
    # 枚举
    "TaskStatus",
    "TaskType",
    "CompletionType",
    "TASK_TYPE_PRIORITY",
    "GO_REQUIRED_TYPES",
    "type_priority",
    # 状态机
    "VALID_TRANSITIONS",
    "TERMINAL_STATES",
    "validate_transition",
    # Task
    "Task",
    "TaskDraft",
    "CompletionData",
    "UPDATABLE_TASK_FIELDS",
    # 订单 / 活动
    "Order",
    "LineItem",
    "Event",
    # 供应商订单
    "GuesstimateOrder",
    "SupplierOrderDraft",
    "SupplierOrderItem",
    # 视图
    "AggregateResult",
    "ClothingOrderEvent",
    "IncomingSupplierOrder",
    "MinicardOrderEvent",
    "ProductCombination",
    "StandardClothingBatch",
    "TaskView",
    "Urgency",
]
