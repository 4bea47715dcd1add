"""活动任务开通路由（管理员）

POST /events/{event_id}/tasks: 按模板为活动生成缺失的任务（幂等）
- 201: 本次新建了任务
- 200: 所有模板任务均已存在
"""

from fastapi import APIRouter, Depends
from starlette.responses import JSONResponse

from ..deps import get_actor, get_provisioner, get_today
from ..services.provisioning import EventProvisioner

router = APIRouter(dependencies=[Depends(get_actor)])


@router.post("/events/{event_id}/tasks")
async def provision_event_tasks(
    event_id: str,
    provisioner: EventProvisioner = Depends(get_provisioner),
    today=Depends(get_today),
):
    result = await provisioner.generate_tasks_for_event(event_id, today)
    return JSONResponse(
        status_code=201 if result.created else 200,
        content={
            "event_id": result.event_id,
            "created": [
                {"task_id": t.id, "display_id": t.task_id, "template_id": t.template_id}
                for t in result.created
            ],
            "skipped_templates": result.skipped_templates,
        },
    )
