"""AirtableRecordStore 单元测试

测试内容：
1. 订单解析：行项目 JSON、日期区间客户端过滤、无法解析的订单跳过
2. 订单活动归属：直接关联优先，否则经班级回溯
3. 任务创建/读取：逗号分隔 ID、自动编号 -> TSK-0001
4. 条件更新：先读后写，状态不符时不发送 PATCH
5. 周批次先查后建
6. GuesstimateOrder 读写；到货日期先读后写，已到货不再 PATCH
7. 字段 ID 映射
"""

import json
from datetime import date

import pytest
from fulfilops.airtable import AirtableRecordStore, AirtableSchema, TableSchema
from fulfilops.core.exceptions import (
    DuplicateBatchError,
    InvalidStateError,
    NotFoundError,
    TaskStatusConflictError,
)
from fulfilops.core.models import (
    CompletionData,
    CompletionType,
    SupplierOrderDraft,
    SupplierOrderItem,
    TaskDraft,
    TaskStatus,
    TaskType,
)


def _line_items(variant_id: str, qty: int) -> str:
    return json.dumps([{"variant_id": variant_id, "quantity": qty}])


def _batch_draft() -> TaskDraft:
    return TaskDraft(
        template_id="order_standard_shirts",
        task_type=TaskType.STANDARD_CLOTHING_ORDER,
        task_name="Standard Clothing Batch STD-2026-W06",
        completion_type=CompletionType.MONETARY,
        timeline_offset=0,
        deadline=date(2026, 2, 9),
        batch_id="STD-2026-W06",
        week_start=date(2026, 2, 2),
        week_end=date(2026, 2, 8),
        event_ids=["recE1", "recE2"],
        order_ids=["recO1", "recO2"],
    )


class TestOrders:
    """订单读取"""

    async def test_date_range_filters_client_side(self, airtable_store, fake_airtable, variants):
        fake_airtable.add(
            "Orders",
            {
                "order_number": "1001",
                "order_date": "2026-02-03",
                "total_amount": 49.99,
                "line_items": _line_items(variants["std_tshirt_98"], 1),
                "event_id": ["recE1"],
            },
            record_id="recO1",
        )
        fake_airtable.add("Orders", {"order_date": "2026-02-10", "line_items": "[]"})

        orders = await airtable_store.get_orders_in_date_range(date(2026, 2, 2), date(2026, 2, 8))

        assert [o.id for o in orders] == ["recO1"]
        assert orders[0].event_id == "recE1"
        assert orders[0].total_amount == 49.99
        assert orders[0].line_items[0].quantity == 1
        assert "IS_AFTER({order_date}, '2026-02-01')" in fake_airtable.formulas[0]
        assert "IS_BEFORE({order_date}, '2026-02-09')" in fake_airtable.formulas[0]

    async def test_unparseable_order_skipped(self, airtable_store, fake_airtable):
        fake_airtable.add("Orders", {"order_date": "2026-02-03", "line_items": "{broken"})
        fake_airtable.add("Orders", {"order_date": "garbage", "line_items": "[]"})
        fake_airtable.add("Orders", {"order_date": "2026-02-04"}, record_id="recOK")

        orders = await airtable_store.get_orders_in_date_range(date(2026, 2, 2), date(2026, 2, 8))
        assert [o.id for o in orders] == ["recOK"]

    async def test_event_resolved_through_class(self, airtable_store, fake_airtable):
        fake_airtable.add("Classes", {"event_id": ["recE9"]}, record_id="recC1")
        fake_airtable.add(
            "Orders",
            {"order_date": "2026-02-03", "class_id": ["recC1"], "event_record_ids": ["recE9"]},
            record_id="recO1",
        )

        orders = await airtable_store.get_orders_for_event("recE9")
        assert [o.event_id for o in orders] == ["recE9"]
        assert "ARRAYJOIN({event_record_ids})" in fake_airtable.formulas[0]

    async def test_orders_by_ids_formula(self, airtable_store, fake_airtable):
        fake_airtable.add("Orders", {"order_date": "2026-02-03"}, record_id="recO1")
        await airtable_store.get_orders_by_ids(["recO1", "recO1", "recO2"])
        assert fake_airtable.formulas == [
            "OR(RECORD_ID() = 'recO1', RECORD_ID() = 'recO2')"
        ]


class TestEvents:
    async def test_get_event(self, airtable_store, fake_airtable):
        fake_airtable.add(
            "Events",
            {"event_id": "EVT-7", "school_name": "Grundschule Nord", "event_date": "2026-03-10"},
            record_id="recE1",
        )
        event = await airtable_store.get_event("recE1")
        assert event.school_name == "Grundschule Nord"
        assert event.event_date == date(2026, 3, 10)
        assert await airtable_store.get_event("recMissing") is None

    async def test_events_without_date_ignored(self, airtable_store, fake_airtable):
        fake_airtable.add("Events", {"school_name": "No date"})
        fake_airtable.add("Events", {"event_date": "2026-03-10"}, record_id="recE1")
        events = await airtable_store.list_events_between(date(2026, 3, 1), date(2026, 3, 31))
        assert [e.id for e in events] == ["recE1"]


class TestTasks:
    """任务读写"""

    async def test_create_batch_task(self, airtable_store, fake_airtable):
        task = await airtable_store.create_task(_batch_draft())

        assert task.task_id == "TSK-0001"
        assert task.event_ids == ["recE1", "recE2"]
        assert task.order_ids == ["recO1", "recO2"]
        assert task.week_start == date(2026, 2, 2)
        stored = fake_airtable.tables["Tasks"][task.id]["fields"]
        assert stored["order_ids"] == "recO1,recO2"
        assert "event_id" not in stored

    async def test_duplicate_batch_rejected(self, airtable_store):
        await airtable_store.create_task(_batch_draft())
        with pytest.raises(DuplicateBatchError):
            await airtable_store.create_task(_batch_draft())

    async def test_cancelled_batch_does_not_block(self, airtable_store):
        first = await airtable_store.create_task(_batch_draft())
        await airtable_store.update_task(first.id, {"status": TaskStatus.CANCELLED})
        second = await airtable_store.create_task(_batch_draft())
        assert second.id != first.id

    async def test_conditional_update(self, airtable_store, fake_airtable):
        task = await airtable_store.create_task(_batch_draft())
        updated = await airtable_store.update_task(
            task.id,
            {
                "status": TaskStatus.COMPLETED,
                "completed_by": "admin@example.com",
                "completion_data": CompletionData(amount=80.0, notes="ok"),
            },
            expected_status=TaskStatus.PENDING,
        )
        assert updated.status == TaskStatus.COMPLETED
        assert updated.completion_data.amount == 80.0

        patches_before = sum(1 for r in fake_airtable.requests if r.method == "PATCH")
        with pytest.raises(TaskStatusConflictError):
            await airtable_store.update_task(
                task.id,
                {"status": TaskStatus.COMPLETED},
                expected_status=TaskStatus.PENDING,
            )
        patches_after = sum(1 for r in fake_airtable.requests if r.method == "PATCH")
        assert patches_after == patches_before

    async def test_find_tasks_formula(self, airtable_store, fake_airtable):
        await airtable_store.find_tasks(task_type=TaskType.SHIPPING, parent_task_id="recT1")
        assert fake_airtable.formulas[-1] == (
            "AND({task_type} = 'shipping', {parent_task_id} = 'recT1')"
        )


class TestSupplierOrders:
    async def test_create_and_find(self, airtable_store, fake_airtable):
        created = await airtable_store.create_supplier_order(
            SupplierOrderDraft(
                source_task_id="recT1",
                event_ids=["recE1"],
                order_ids=["recO1"],
                order_date=date(2026, 2, 9),
                order_amount=120.0,
                contains=[SupplierOrderItem(sku="std-hoodie-128", name="Standard Hoodie (128)", quantity=2)],
            )
        )
        assert created.go_id == "GO-0001"
        assert created.contains[0].sku == "std-hoodie-128"

        found = await airtable_store.find_supplier_orders_by_task("recT1")
        assert [o.id for o in found] == [created.id]
        assert "{source_task_id} = 'recT1'" in fake_airtable.formulas[-1]

    async def test_mark_received(self, airtable_store, fake_airtable):
        pending_id = fake_airtable.add(
            "GuesstimateOrders",
            {"go_id": 1, "source_task_id": "recT1", "order_date": "2026-02-09", "order_amount": 40},
        )
        done_id = fake_airtable.add(
            "GuesstimateOrders",
            {
                "go_id": 2,
                "source_task_id": "recT2",
                "order_date": "2026-02-09",
                "order_amount": 60,
                "date_completed": "2026-02-11",
            },
        )

        pending = await airtable_store.find_supplier_orders(completed=False)
        assert [o.id for o in pending] == [pending_id]
        assert fake_airtable.formulas[-1] == "{date_completed} = BLANK()"
        completed = await airtable_store.find_supplier_orders(completed=True)
        assert [o.id for o in completed] == [done_id]

        received = await airtable_store.update_supplier_order(pending_id, date(2026, 2, 12))
        assert received.date_completed == date(2026, 2, 12)
        patch = [r for r in fake_airtable.requests if r.method == "PATCH"][-1]
        assert json.loads(patch.content)["fields"] == {"date_completed": "2026-02-12"}

        patches_before = sum(1 for r in fake_airtable.requests if r.method == "PATCH")
        with pytest.raises(InvalidStateError):
            await airtable_store.update_supplier_order(pending_id, date(2026, 2, 13))
        patches_after = sum(1 for r in fake_airtable.requests if r.method == "PATCH")
        assert patches_after == patches_before

    async def test_mark_missing_order(self, airtable_store):
        with pytest.raises(NotFoundError) as exc_info:
            await airtable_store.update_supplier_order("recMISSING", date(2026, 2, 12))
        assert exc_info.value.code == "GO_NOT_FOUND"


class TestFieldIdMapping:
    async def test_field_ids_used_in_requests_and_responses(self, airtable_client, fake_airtable):
        schema = AirtableSchema(
            events=TableSchema(
                table="tblEvents",
                fields={"school_name": "fldSchool", "event_date": "fldDate"},
            )
        )
        store = AirtableRecordStore(airtable_client, schema)
        fake_airtable.add(
            "tblEvents",
            {"fldSchool": "Grundschule Süd", "fldDate": "2026-03-12", "fldIgnored": 1},
            record_id="recE1",
        )
        await store.list_events_between(date(2026, 3, 1), date(2026, 3, 31))
        event = await store.get_event("recE1")
        assert event.school_name == "Grundschule Süd"
        assert "{fldDate}" in fake_airtable.formulas[-1]
