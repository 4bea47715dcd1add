"""活动任务开通 -- 为单个活动按模板生成 pending 任务

每个按活动生成的模板（纸品、服装、CD）对应一个任务，截止日期 = 活动日期 + 偏移。
已存在未取消任务的模板会被跳过，重复调用不会产生重复任务。
"""

from datetime import date

import structlog
from fulfilops.core.cache import EventCache
from fulfilops.core.deadline import compute_deadline
from fulfilops.core.exceptions import NotFoundError
from fulfilops.core.models import Event, Task, TaskDraft, TaskStatus
from fulfilops.core.store import RecordStore
from fulfilops.core.templates import TaskTemplate, TemplateRegistry
from pydantic import BaseModel

log = structlog.get_logger()


class ProvisioningResult(BaseModel):
    """开通结果"""

    event_id: str
    created: list[Task] = []
    skipped_templates: list[str] = []


def build_event_task_draft(template: TaskTemplate, event: Event) -> TaskDraft:
    """按模板为活动构造任务草稿"""
    return TaskDraft(
        template_id=template.id,
        task_type=template.task_type,
        task_name=template.name,
        description=template.description,
        completion_type=template.completion_type,
        timeline_offset=template.timeline_offset,
        deadline=compute_deadline(event.event_date, template.timeline_offset),
        event_id=event.id,
    )


class EventProvisioner:
    """活动任务开通服务"""

    def __init__(
        self,
        record_store: RecordStore,
        templates: TemplateRegistry,
        event_cache: EventCache,
    ) -> None:
        self._store = record_store
        self._templates = templates
        self._event_cache = event_cache

    async def generate_tasks_for_event(
        self,
        event_id: str,
        today: date | None = None,
    ) -> ProvisioningResult:
        """为活动生成缺失的模板任务

        Args:
            event_id: 活动记录 ID
            today: 参考日期，仅用于日志中标记已过期的截止日期

        Raises:
            NotFoundError: 活动不存在
        """
        # 开通前强制重新读取活动，避免使用过期的活动日期
        self._event_cache.invalidate(event_id)
        event = await self._event_cache.get(event_id, self._store.get_event)
        if event is None:
            raise NotFoundError("Event", event_id)

        existing = await self._store.find_tasks(event_id=event.id)
        active_templates = {t.template_id for t in existing if t.status != TaskStatus.CANCELLED}

        result = ProvisioningResult(event_id=event.id)
        for template in self._templates.event_templates():
            if template.id in active_templates:
                result.skipped_templates.append(template.id)
                continue
            task = await self._store.create_task(build_event_task_draft(template, event))
            result.created.append(task)
            if today is not None and task.deadline < today:
                log.warning(
                    "event_task_created_past_deadline",
                    event_id=event.id,
                    template_id=template.id,
                    deadline=task.deadline.isoformat(),
                )

        log.info(
            "event_tasks_provisioned",
            event_id=event.id,
            created=len(result.created),
            skipped=len(result.skipped_templates),
        )
        return result
