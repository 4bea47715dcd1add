"""TaskQueryService 测试

测试内容：
1. 默认只列出 pending 任务，逾期任务排在最前
2. 类型计数在类型过滤之前统计
3. 搜索匹配展示编号 / 模板 ID / 任务名称（不区分大小写）
4. 视图补充学校名称、活动日期、GO 展示编号
"""

from datetime import date

import pytest
from fulfilops.core.exceptions import NotFoundError
from fulfilops.core.models import CompletionData, TaskStatus, TaskType
from fulfilops.gateway.services.task_query import matches_search

TODAY = date(2026, 2, 9)
ACTOR = "admin@example.com"


class TestListTasks:
    async def test_default_pending_sorted_by_urgency(self, services, seeded_week):
        await services.provisioner.generate_tasks_for_event("E1", TODAY)

        result = await services.task_query.list_tasks(TODAY)

        assert len(result.tasks) == 8
        first = result.tasks[0]
        assert first.template_id == "poster_letter"
        assert first.is_overdue is True
        assert first.days_until_due == -19
        assert first.urgency_score == -1019
        scores = [t.urgency_score for t in result.tasks]
        assert scores == sorted(scores)

    async def test_counts_ignore_type_filter(self, services, seeded_week):
        await services.provisioner.generate_tasks_for_event("E1", TODAY)

        result = await services.task_query.list_tasks(TODAY, task_type=TaskType.PAPER_ORDER)

        assert {t.task_type for t in result.tasks} == {TaskType.PAPER_ORDER}
        assert len(result.tasks) == 5
        assert result.counts["all"] == 8
        assert result.counts["paper_order"] == 5
        assert result.counts["clothing_order"] == 1
        assert result.counts["cd_master"] == 1
        assert result.counts["cd_production"] == 1
        assert result.counts["shipping"] == 0
        assert result.counts["standard_clothing_order"] == 0

    async def test_status_filter(self, services, seeded_week):
        provisioned = await services.provisioner.generate_tasks_for_event("E1", TODAY)
        flyer = next(t for t in provisioned.created if t.template_id == "flyer1")
        await services.lifecycle.complete_task(flyer.id, CompletionData(amount=12), None, ACTOR)

        completed = await services.task_query.list_tasks(TODAY, status=TaskStatus.COMPLETED)
        assert [t.id for t in completed.tasks] == [flyer.id]

        pending = await services.task_query.list_tasks(TODAY)
        # flyer1 已完成，新增一个发货任务
        assert pending.counts["all"] == 8
        assert pending.counts["shipping"] == 1

        everything = await services.task_query.list_tasks(TODAY, status=None)
        assert everything.counts["all"] == 9

    async def test_search(self, services, seeded_week):
        await services.provisioner.generate_tasks_for_event("E1", TODAY)

        result = await services.task_query.list_tasks(TODAY, search="FLYER")
        assert sorted(t.template_id for t in result.tasks) == ["flyer1", "flyer2", "flyer3"]
        assert result.counts["all"] == 3


class TestTaskView:
    async def test_event_details(self, services, seeded_week):
        provisioned = await services.provisioner.generate_tasks_for_event("E1", TODAY)
        flyer = next(t for t in provisioned.created if t.template_id == "flyer1")
        await services.lifecycle.complete_task(flyer.id, CompletionData(amount=12), None, ACTOR)

        view = await services.task_query.get_task_view(flyer.id, TODAY)

        assert view.school_name == "Grundschule Nord"
        assert view.event_date == date(2026, 3, 20)
        assert view.go_display_id.startswith("GO-")
        # 已完成任务不判为逾期
        assert view.is_overdue is False

    async def test_batch_view_joins_schools(self, services, seeded_week):
        run = await services.batch_builder.run(TODAY)
        view = await services.task_query.get_task_view(run.task_id, TODAY)

        assert view.school_name == "Grundschule Nord, Grundschule Süd"
        assert view.event_date == date(2026, 3, 20)
        assert view.days_until_due == 0

    async def test_missing_task(self, services):
        with pytest.raises(NotFoundError):
            await services.task_query.get_task_view("missing", TODAY)


class TestMatchesSearch:
    async def test_matches_order_ids(self, services, seeded_week):
        run = await services.batch_builder.run(TODAY)
        task = await services.store_group.record_store.get_task(run.task_id)
        assert matches_search(task, "o2")
        assert matches_search(task, "std-2026")
        assert matches_search(task, "  ")
        assert not matches_search(task, "hoodie")
