"""枚举定义 -- 任务状态机、任务类型、完成方式

包含 TaskStatus 状态机、TaskType、CompletionType 枚举，
以及 VALID_TRANSITIONS 合法流转映射、TERMINAL_STATES 终态集合和任务类型优先级。
"""

from enum import StrEnum


class TaskStatus(StrEnum):
    """Task 状态机：pending 为初始态，completed / cancelled 为终态"""

    PENDING = "pending"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


# 合法状态流转
VALID_TRANSITIONS: dict[TaskStatus, set[TaskStatus]] = {
    TaskStatus.PENDING: {TaskStatus.COMPLETED, TaskStatus.CANCELLED},
    # 终态不可再流转
    TaskStatus.COMPLETED: set(),
    TaskStatus.CANCELLED: set(),
}

TERMINAL_STATES: set[TaskStatus] = {
    TaskStatus.COMPLETED,
    TaskStatus.CANCELLED,
}


class TaskType(StrEnum):
    """任务类型"""

    PAPER_ORDER = "paper_order"
    CLOTHING_ORDER = "clothing_order"
    STANDARD_CLOTHING_ORDER = "standard_clothing_order"
    CD_MASTER = "cd_master"
    CD_PRODUCTION = "cd_production"
    SHIPPING = "shipping"


class CompletionType(StrEnum):
    """任务完成方式"""

    # 需要填写金额
    MONETARY = "monetary"
    # 需要勾选确认
    CHECKBOX = "checkbox"
    # 直接提交
    SUBMIT_ONLY = "submit_only"


# 同一紧急度下的排序优先级（越靠前越优先）
TASK_TYPE_PRIORITY: list[TaskType] = [
    TaskType.SHIPPING,
    TaskType.CLOTHING_ORDER,
    TaskType.STANDARD_CLOTHING_ORDER,
    TaskType.PAPER_ORDER,
    TaskType.CD_MASTER,
    TaskType.CD_PRODUCTION,
]

# 完成后必须带有 go_id 的任务类型
GO_REQUIRED_TYPES: set[TaskType] = {
    TaskType.PAPER_ORDER,
    TaskType.CLOTHING_ORDER,
    TaskType.STANDARD_CLOTHING_ORDER,
}


def validate_transition(from_status: TaskStatus, to_status: TaskStatus) -> bool:
    """验证状态流转是否合法

    Args:
        from_status: 当前状态
        to_status: 目标状态

    Returns:
        True 如果流转合法，否则 False
    """
    allowed = VALID_TRANSITIONS.get(from_status, set())
    return to_status in allowed


def type_priority(task_type: TaskType | str) -> int:
    """任务类型排序权重，未知类型排在最后"""
    try:
        return TASK_TYPE_PRIORITY.index(TaskType(task_type))
    except ValueError:
        return len(TASK_TYPE_PRIORITY)
