"""截止日期与紧急度计算 -- 纯函数，无副作用

- compute_deadline: 活动日期 + 时间线偏移
- compute_urgency: 距截止天数、是否逾期、紧急度分值（越小越紧急）
- get_week_range / iso_week_batch_id: 周批次的 ISO 周区间与批次 ID
"""

from datetime import date, datetime, timedelta
from zoneinfo import ZoneInfo

from .config import get_timezone
from .exceptions import ValidationError
from .models.enums import TaskStatus, TaskType, type_priority
from .models.views import Urgency

# 逾期任务的分值偏移，保证所有逾期任务排在未逾期任务之前
OVERDUE_SCORE_OFFSET = 1000


def to_date(value: date | datetime | str, field: str = "date") -> date:
    """将 date / datetime / ISO 字符串统一为 date

    Raises:
        ValidationError: 无法解析的日期
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return datetime.fromisoformat(value.strip()).date()
        except ValueError:
            pass
    raise ValidationError(f"Invalid {field}: {value!r}", details={field: "not a valid date"})


def local_today(tz: ZoneInfo | None = None) -> date:
    """业务时区下的今天"""
    return datetime.now(tz or get_timezone()).date()


def compute_deadline(event_date: date | datetime | str, timeline_offset: int) -> date:
    """截止日期 = 活动日期 + 偏移天数"""
    return to_date(event_date, "event_date") + timedelta(days=timeline_offset)


def compute_urgency(
    deadline: date | datetime | str,
    today: date | datetime | str,
    status: TaskStatus | str = TaskStatus.PENDING,
) -> Urgency:
    """计算任务紧急度

    Args:
        deadline: 截止日期
        today: 参考日期（业务时区下的今天）
        status: 任务状态，仅 pending 任务会被判为逾期

    Returns:
        Urgency：days_until_due 按自然日取整；逾期任务分值为 days_until_due - 1000
    """
    days_until_due = (to_date(deadline, "deadline") - to_date(today, "today")).days
    is_overdue = TaskStatus(status) == TaskStatus.PENDING and days_until_due < 0
    score = days_until_due - OVERDUE_SCORE_OFFSET if is_overdue else days_until_due
    return Urgency(
        days_until_due=days_until_due,
        is_overdue=is_overdue,
        urgency_score=score,
    )


def urgency_sort_key(urgency_score: int, task_type: TaskType | str) -> tuple[int, int]:
    """排序键：先按紧急度分值，再按任务类型优先级"""
    return (urgency_score, type_priority(task_type))


def get_week_range(reference: date | datetime | str) -> tuple[date, date]:
    """参考日期所在周的上一个完整 ISO 周（周一 ~ 周日）

    例如参考日期 2026-02-09（周一）返回 (2026-02-02, 2026-02-08)。
    """
    ref = to_date(reference, "reference_date")
    this_monday = ref - timedelta(days=ref.weekday())
    start = this_monday - timedelta(days=7)
    return start, start + timedelta(days=6)


def iso_week_batch_id(week_start: date) -> str:
    """周批次 ID：STD-<ISO 年>-W<两位周数>"""
    iso_year, iso_week, _ = week_start.isocalendar()
    return f"STD-{iso_year}-W{iso_week:02d}"
