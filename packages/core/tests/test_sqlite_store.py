"""SQLite 记录存储单元测试

测试内容：
1. 订单/活动读写与日期区间查询
2. 任务创建：ULID 记录 ID + TSK-0001 展示编号
3. 条件更新：expected_status 不匹配时抛 TaskStatusConflictError
4. 不可更新字段被拒绝（deadline 创建后不可变）
5. 周批次唯一性：未取消的同 batch_id 任务只能有一个
6. GuesstimateOrder 创建与按来源任务查询；到货日期只能写一次
7. 写入后读回缺失 -> UpstreamError
"""

from datetime import UTC, date, datetime

import pytest
from fulfilops.core.exceptions import (
    DuplicateBatchError,
    InvalidStateError,
    NotFoundError,
    TaskStatusConflictError,
    UpstreamError,
    ValidationError,
)
from fulfilops.core.models import (
    CompletionData,
    CompletionType,
    SupplierOrderDraft,
    SupplierOrderItem,
    TaskStatus,
    TaskType,
)
from fulfilops.core.store import SqliteRecordStore
from fulfilops.core.store.sqlite_init import verify_wal_mode


def _batch_draft(make_draft, batch_id: str = "STD-2026-W06"):
    return make_draft(
        template_id="order_standard_shirts",
        task_type=TaskType.STANDARD_CLOTHING_ORDER,
        task_name=f"Standard Clothing Batch {batch_id}",
        timeline_offset=0,
        deadline=date(2026, 2, 9),
        event_id=None,
        event_ids=["E1"],
        batch_id=batch_id,
        week_start=date(2026, 2, 2),
        week_end=date(2026, 2, 8),
        order_ids=["O1"],
    )


def _supplier_draft(task_id: str) -> SupplierOrderDraft:
    return SupplierOrderDraft(
        source_task_id=task_id,
        event_id="E1",
        order_ids=["O1"],
        order_date=date(2026, 2, 9),
        order_amount=40.0,
        contains=[SupplierOrderItem(sku="hoodie-128", name="Hoodie (128)", quantity=1)],
    )

class TestOrdersAndEvents:
    """订单与活动"""

    async def test_orders_in_date_range_inclusive(self, core_store, make_order, variants):
        for order_id, day in (("A", "2026-02-01"), ("B", "2026-02-02"), ("C", "2026-02-08"), ("D", "2026-02-09")):
            await core_store.upsert_order(
                make_order(order_id, day, [(variants["std_tshirt_98"], 1)])
            )
        orders = await core_store.get_orders_in_date_range(date(2026, 2, 2), date(2026, 2, 8))
        assert [o.id for o in orders] == ["B", "C"]
        assert orders[0].line_items[0].variant_id == variants["std_tshirt_98"]

    async def test_orders_for_event_and_by_ids(self, core_store, make_order):
        await core_store.upsert_order(make_order("A", "2026-02-01", [], event_id="E1"))
        await core_store.upsert_order(make_order("B", "2026-02-01", [], event_id="E2"))
        assert [o.id for o in await core_store.get_orders_for_event("E1")] == ["A"]
        assert [o.id for o in await core_store.get_orders_by_ids(["A", "B", "X"])] == ["A", "B"]
        assert await core_store.get_orders_by_ids([]) == []

    async def test_events(self, core_store, make_event):
        await core_store.upsert_event(make_event("E1", "2026-03-10", "Grundschule Nord"))
        await core_store.upsert_event(make_event("E2", "2026-05-01"))
        event = await core_store.get_event("E1")
        assert event.school_name == "Grundschule Nord"
        between = await core_store.list_events_between(date(2026, 3, 1), date(2026, 3, 31))
        assert [e.id for e in between] == ["E1"]
        assert await core_store.get_event("missing") is None


class TestTaskWrites:
    """任务创建与更新"""

    async def test_create_assigns_ids(self, core_store, make_draft):
        first = await core_store.create_task(make_draft())
        second = await core_store.create_task(make_draft(template_id="flyer2"))
        assert len(first.id) == 26
        assert first.task_id == "TSK-0001"
        assert second.task_id == "TSK-0002"
        assert first.status == TaskStatus.PENDING
        assert first.deadline == date(2026, 3, 1)

    async def test_conditional_update(self, core_store, make_draft):
        task = await core_store.create_task(make_draft())
        updated = await core_store.update_task(
            task.id,
            {
                "status": TaskStatus.COMPLETED,
                "completed_at": datetime(2026, 2, 9, 10, 0, tzinfo=UTC),
                "completed_by": "admin@example.com",
                "completion_data": CompletionData(amount=12.5),
                "order_ids": ["O1", "O2"],
            },
            expected_status=TaskStatus.PENDING,
        )
        assert updated.status == TaskStatus.COMPLETED
        assert updated.completion_data.amount == 12.5
        assert updated.order_ids == ["O1", "O2"]
        assert updated.completed_by == "admin@example.com"

        with pytest.raises(TaskStatusConflictError) as exc_info:
            await core_store.update_task(
                task.id,
                {"status": TaskStatus.COMPLETED},
                expected_status=TaskStatus.PENDING,
            )
        assert exc_info.value.current_status == "completed"

    async def test_immutable_fields_rejected(self, core_store, make_draft):
        task = await core_store.create_task(make_draft())
        with pytest.raises(ValidationError):
            await core_store.update_task(task.id, {"deadline": date(2026, 4, 1)})
        assert (await core_store.get_task(task.id)).deadline == date(2026, 3, 1)

    async def test_update_missing_task(self, core_store):
        with pytest.raises(NotFoundError):
            await core_store.update_task("missing", {"go_id": "x"})

    async def test_find_tasks_filters(self, core_store, make_draft):
        a = await core_store.create_task(make_draft())
        await core_store.create_task(make_draft(event_id="E2"))
        await core_store.create_task(
            make_draft(
                template_id="cd_master",
                task_type=TaskType.CD_MASTER,
                completion_type=CompletionType.CHECKBOX,
            )
        )
        found = await core_store.find_tasks(task_type=TaskType.PAPER_ORDER, event_id="E1")
        assert [t.id for t in found] == [a.id]
        assert len(await core_store.find_tasks(event_id="E1")) == 2
        assert len(await core_store.find_tasks()) == 3


class TestBatchUniqueness:
    """周批次唯一性"""

    async def test_duplicate_active_batch_rejected(self, core_store, make_draft):
        await core_store.create_task(_batch_draft(make_draft))
        with pytest.raises(DuplicateBatchError):
            await core_store.create_task(_batch_draft(make_draft))
        assert len(await core_store.find_tasks_by_batch_id("STD-2026-W06")) == 1

    async def test_cancelled_batch_allows_new_one(self, core_store, make_draft):
        first = await core_store.create_task(_batch_draft(make_draft))
        await core_store.update_task(first.id, {"status": TaskStatus.CANCELLED})
        second = await core_store.create_task(_batch_draft(make_draft))
        assert second.id != first.id
        tasks = await core_store.find_tasks_by_batch_id("STD-2026-W06")
        assert [t.status for t in tasks] == [TaskStatus.CANCELLED, TaskStatus.PENDING]

    async def test_shipping_task_may_share_batch_id(self, core_store, make_draft):
        parent = await core_store.create_task(_batch_draft(make_draft))
        shipping = await core_store.create_task(
            make_draft(
                template_id="shipping_order_standard_shirts",
                task_type=TaskType.SHIPPING,
                completion_type=CompletionType.CHECKBOX,
                event_id=None,
                batch_id="STD-2026-W06",
                parent_task_id=parent.id,
            )
        )
        assert shipping.batch_id == "STD-2026-W06"


class TestSupplierOrders:
    """GuesstimateOrder"""

    async def test_create_and_find_by_task(self, core_store):
        draft = SupplierOrderDraft(
            source_task_id="T1",
            event_id="E1",
            order_ids=["O1"],
            order_date=date(2026, 2, 9),
            order_amount=99.5,
            contains=[SupplierOrderItem(sku="tshirt-98/104", name="T-Shirt (98/104)", quantity=3)],
        )
        created = await core_store.create_supplier_order(draft)
        assert created.go_id == "GO-0001"
        assert created.contains[0].quantity == 3

        fetched = await core_store.get_supplier_order(created.id)
        assert fetched == created
        assert [o.id for o in await core_store.find_supplier_orders_by_task("T1")] == [created.id]
        assert await core_store.find_supplier_orders_by_task("T2") == []

    async def test_mark_received_once(self, core_store):
        created = await core_store.create_supplier_order(_supplier_draft("T1"))
        other = await core_store.create_supplier_order(_supplier_draft("T2"))

        received = await core_store.update_supplier_order(created.id, date(2026, 2, 12))
        assert received.date_completed == date(2026, 2, 12)
        assert received.order_amount == created.order_amount

        with pytest.raises(InvalidStateError):
            await core_store.update_supplier_order(created.id, date(2026, 2, 13))
        assert (await core_store.get_supplier_order(created.id)).date_completed == date(2026, 2, 12)

        assert [o.id for o in await core_store.find_supplier_orders(completed=False)] == [other.id]
        assert [o.id for o in await core_store.find_supplier_orders(completed=True)] == [
            created.id
        ]
        assert len(await core_store.find_supplier_orders()) == 2

    async def test_mark_missing_order(self, core_store):
        with pytest.raises(NotFoundError) as exc_info:
            await core_store.update_supplier_order("missing", date(2026, 2, 12))
        assert exc_info.value.code == "GO_NOT_FOUND"


class _VanishingStore(SqliteRecordStore):
    """写入成功但读回为空（模拟外部删除）"""

    async def get_task(self, task_id):
        return None

    async def get_supplier_order(self, record_id):
        return None


class TestReadBack:
    async def test_task_missing_after_insert(self, db_conn, make_draft):
        store = _VanishingStore(db_conn)
        with pytest.raises(UpstreamError) as exc_info:
            await store.create_task(make_draft())
        assert exc_info.value.operation == "create_task"

    async def test_supplier_order_missing_after_insert(self, db_conn):
        store = _VanishingStore(db_conn)
        with pytest.raises(UpstreamError) as exc_info:
            await store.create_supplier_order(_supplier_draft("T1"))
        assert exc_info.value.operation == "create_supplier_order"


class TestDatabase:
    async def test_wal_mode_and_ping(self, core_store, db_conn):
        assert await verify_wal_mode(db_conn) is True
        await core_store.ping()
