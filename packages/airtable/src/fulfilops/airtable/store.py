"""AirtableRecordStore -- RecordStore 的 Airtable 实现

字段映射全部封装在 AirtableSchema 中，引擎只看到类型化模型。

限制（Airtable 不提供事务与条件写）：
- update_task 的 expected_status 为"先读后写"检查，不是原子 CAS
- 周批次唯一性为"先查后建"，并发创建仍可能产生重复，由批次构建器回查兜底
"""

import json
from datetime import UTC, date, datetime, timedelta
from typing import Any

import structlog
from fulfilops.core.deadline import to_date
from fulfilops.core.exceptions import (
    DuplicateBatchError,
    InvalidStateError,
    NotFoundError,
    TaskStatusConflictError,
    ValidationError,
)
from fulfilops.core.models import (
    UPDATABLE_TASK_FIELDS,
    CompletionData,
    Event,
    GuesstimateOrder,
    LineItem,
    Order,
    SupplierOrderDraft,
    SupplierOrderItem,
    Task,
    TaskDraft,
    TaskStatus,
    TaskType,
)

from .client import AirtableClient
from .schema import AirtableSchema

log = structlog.get_logger()

# OR(RECORD_ID() = ...) 公式单次最多包含的 ID 数
_ID_CHUNK_SIZE = 50


def _quote(value: str) -> str:
    """公式字符串字面量转义"""
    escaped = str(value).replace("\\", "\\\\").replace("'", "\\'")
    return f"'{escaped}'"


def _split_ids(value: Any) -> list[str]:
    """逗号分隔文本 / 列表 -> ID 列表"""
    if not value:
        return []
    if isinstance(value, list):
        return [str(v) for v in value if v]
    return [part.strip() for part in str(value).split(",") if part.strip()]


def _first_link(value: Any) -> str | None:
    """关联字段（列表）或文本 -> 第一个记录 ID"""
    if isinstance(value, list):
        return str(value[0]) if value else None
    return str(value) if value else None


def _display_id(value: Any, prefix: str, fallback: str) -> str:
    """自动编号字段 -> 展示编号"""
    if isinstance(value, int | float):
        return f"{prefix}-{int(value):04d}"
    return str(value) if value else fallback


def _opt_date(value: Any) -> date | None:
    return to_date(value) if value else None


class AirtableRecordStore:
    """RecordStore 的 Airtable 实现"""

    def __init__(self, client: AirtableClient, schema: AirtableSchema | None = None) -> None:
        self._client = client
        self._schema = schema or AirtableSchema()

    async def aclose(self) -> None:
        await self._client.aclose()

    def _f(self, table: str, name: str) -> str:
        """公式中的字段引用"""
        return "{" + self._schema.table(table).field(name) + "}"

    async def _list(self, table: str, formula: str | None = None, **kwargs: Any) -> list[dict]:
        return await self._client.list_records(self._schema.table(table).table, formula, **kwargs)

    def _date_range_formula(self, table: str, field: str, start: date, end: date) -> str:
        # IS_AFTER / IS_BEFORE 为开区间，边界各扩一天
        ref = self._f(table, field)
        return (
            f"AND(IS_AFTER({ref}, '{(start - timedelta(days=1)).isoformat()}'), "
            f"IS_BEFORE({ref}, '{(end + timedelta(days=1)).isoformat()}'))"
        )

    # ============================================================
    # 订单 / 活动
    # ============================================================

    async def get_orders_in_date_range(self, start: date, end: date) -> list[Order]:
        formula = self._date_range_formula("orders", "order_date", start, end)
        records = await self._list("orders", formula)
        orders = await self._records_to_orders(records)
        return [o for o in orders if start <= o.order_date <= end]

    async def get_orders_for_event(self, event_id: str) -> list[Order]:
        formula = f"FIND({_quote(event_id)}, ARRAYJOIN({self._f('orders', 'event_record_ids')}))"
        records = await self._list("orders", formula)
        orders = await self._records_to_orders(records)
        return [o for o in orders if o.event_id == event_id]

    async def get_orders_by_ids(self, order_ids: list[str]) -> list[Order]:
        records: list[dict] = []
        unique_ids = list(dict.fromkeys(order_ids))
        for i in range(0, len(unique_ids), _ID_CHUNK_SIZE):
            chunk = unique_ids[i : i + _ID_CHUNK_SIZE]
            formula = "OR(" + ", ".join(f"RECORD_ID() = {_quote(rid)}" for rid in chunk) + ")"
            records.extend(await self._list("orders", formula))
        return await self._records_to_orders(records)

    async def get_event(self, event_id: str) -> Event | None:
        record = await self._client.get_record(self._schema.events.table, event_id)
        if record is None:
            return None
        return self._record_to_event(record)

    async def list_events_between(self, start: date, end: date) -> list[Event]:
        formula = self._date_range_formula("events", "event_date", start, end)
        records = await self._list("events", formula)
        events: list[Event] = []
        for record in records:
            event = self._record_to_event(record)
            if event is not None and start <= event.event_date <= end:
                events.append(event)
        return sorted(events, key=lambda e: (e.event_date, e.id))

    async def _records_to_orders(self, records: list[dict]) -> list[Order]:
        """记录 -> Order；活动优先取订单直接关联，否则经班级回溯"""
        class_events: dict[str, str | None] = {}
        orders: list[Order] = []
        for record in records:
            fields = self._schema.to_logical("orders", record.get("fields", {}))
            try:
                raw_items = fields.get("line_items") or "[]"
                items = json.loads(raw_items) if isinstance(raw_items, str) else raw_items
                line_items = [LineItem(**item) for item in items]
                order_date = to_date(fields.get("order_date"), "order_date")
            except (ValueError, TypeError, ValidationError) as e:
                log.warning("order_record_unparseable", order_id=record.get("id"), error=str(e))
                continue

            event_id = _first_link(fields.get("event_id"))
            class_id = _first_link(fields.get("class_id"))
            if event_id is None and class_id:
                if class_id not in class_events:
                    class_events[class_id] = await self._class_event(class_id)
                event_id = class_events[class_id]

            orders.append(
                Order(
                    id=record["id"],
                    order_number=str(fields.get("order_number") or ""),
                    order_date=order_date,
                    total_amount=float(fields.get("total_amount") or 0),
                    line_items=line_items,
                    event_id=event_id,
                )
            )
        return orders

    async def _class_event(self, class_id: str) -> str | None:
        record = await self._client.get_record(self._schema.classes.table, class_id)
        if record is None:
            return None
        fields = self._schema.to_logical("classes", record.get("fields", {}))
        return _first_link(fields.get("event_id"))

    def _record_to_event(self, record: dict) -> Event | None:
        fields = self._schema.to_logical("events", record.get("fields", {}))
        if not fields.get("event_date"):
            log.warning("event_record_without_date", event_id=record.get("id"))
            return None
        return Event(
            id=record["id"],
            event_id=str(fields.get("event_id") or ""),
            school_name=str(fields.get("school_name") or ""),
            event_date=to_date(fields["event_date"], "event_date"),
            event_type=str(fields.get("event_type") or ""),
        )

    # ============================================================
    # 任务
    # ============================================================

    async def create_task(self, draft: TaskDraft) -> Task:
        if draft.batch_id and draft.task_type == TaskType.STANDARD_CLOTHING_ORDER:
            existing = await self.find_tasks_by_batch_id(draft.batch_id)
            if any(
                t.task_type == TaskType.STANDARD_CLOTHING_ORDER
                and t.status != TaskStatus.CANCELLED
                for t in existing
            ):
                raise DuplicateBatchError(draft.batch_id)

        logical: dict[str, Any] = {
            "template_id": draft.template_id,
            "task_type": draft.task_type.value,
            "task_name": draft.task_name,
            "description": draft.description,
            "completion_type": draft.completion_type.value,
            "timeline_offset": draft.timeline_offset,
            "deadline": draft.deadline.isoformat(),
            "status": draft.status.value,
            "event_id": draft.event_id,
            "event_ids": ",".join(draft.event_ids) or None,
            "batch_id": draft.batch_id,
            "week_start": draft.week_start.isoformat() if draft.week_start else None,
            "week_end": draft.week_end.isoformat() if draft.week_end else None,
            "order_ids": ",".join(draft.order_ids) or None,
            "parent_task_id": draft.parent_task_id,
            "go_id": draft.go_id,
            "created_at": datetime.now(UTC).isoformat(),
        }
        logical = {k: v for k, v in logical.items() if v is not None}
        record = await self._client.create_record(
            self._schema.tasks.table, self._schema.to_raw("tasks", logical)
        )
        return self._record_to_task(record)

    async def get_task(self, task_id: str) -> Task | None:
        record = await self._client.get_record(self._schema.tasks.table, task_id)
        if record is None:
            return None
        return self._record_to_task(record)

    async def update_task(
        self,
        task_id: str,
        fields: dict[str, Any],
        expected_status: TaskStatus | None = None,
    ) -> Task:
        unknown = set(fields) - UPDATABLE_TASK_FIELDS
        if unknown:
            raise ValidationError(
                f"Task fields are not updatable: {', '.join(sorted(unknown))}",
                details={name: "immutable" for name in unknown},
            )

        current = await self.get_task(task_id)
        if current is None:
            raise NotFoundError("Task", task_id)
        if expected_status is not None and current.status != TaskStatus(expected_status):
            raise TaskStatusConflictError(
                task_id, TaskStatus(expected_status).value, current.status.value
            )
        if not fields:
            return current

        logical = {name: self._to_field_value(name, value) for name, value in fields.items()}
        record = await self._client.update_record(
            self._schema.tasks.table, task_id, self._schema.to_raw("tasks", logical)
        )
        return self._record_to_task(record)

    async def find_tasks(
        self,
        *,
        task_type: TaskType | None = None,
        status: TaskStatus | None = None,
        event_id: str | None = None,
        template_id: str | None = None,
        parent_task_id: str | None = None,
    ) -> list[Task]:
        conditions = [
            f"{self._f('tasks', name)} = {_quote(str(value))}"
            for name, value in (
                ("task_type", task_type),
                ("status", status),
                ("event_id", event_id),
                ("template_id", template_id),
                ("parent_task_id", parent_task_id),
            )
            if value is not None
        ]
        formula = None
        if len(conditions) == 1:
            formula = conditions[0]
        elif conditions:
            formula = "AND(" + ", ".join(conditions) + ")"
        records = await self._list("tasks", formula)
        tasks = [self._record_to_task(r) for r in records]
        return sorted(tasks, key=lambda t: t.created_at)

    async def find_tasks_by_batch_id(self, batch_id: str) -> list[Task]:
        records = await self._list("tasks", f"{self._f('tasks', 'batch_id')} = {_quote(batch_id)}")
        tasks = [self._record_to_task(r) for r in records]
        return sorted(tasks, key=lambda t: t.created_at)

    @staticmethod
    def _to_field_value(name: str, value: Any) -> Any:
        if value is None:
            return None
        if name == "status":
            return TaskStatus(value).value
        if name == "completed_at":
            return value.isoformat() if isinstance(value, datetime) else str(value)
        if name == "completion_data":
            if isinstance(value, CompletionData):
                return value.model_dump_json(exclude_none=True)
            return json.dumps(value)
        if name == "order_ids":
            return ",".join(value)
        return value

    def _record_to_task(self, record: dict) -> Task:
        fields = self._schema.to_logical("tasks", record.get("fields", {}))
        raw_completion = fields.get("completion_data")
        completion_data = None
        if raw_completion:
            payload = (
                json.loads(raw_completion) if isinstance(raw_completion, str) else raw_completion
            )
            completion_data = CompletionData(**payload)
        created_at = fields.get("created_at") or record.get("createdTime")
        return Task(
            id=record["id"],
            task_id=_display_id(fields.get("task_id"), "TSK", record["id"]),
            template_id=fields.get("template_id", ""),
            task_type=fields["task_type"],
            task_name=fields.get("task_name", ""),
            description=fields.get("description", ""),
            completion_type=fields["completion_type"],
            timeline_offset=int(fields.get("timeline_offset") or 0),
            deadline=to_date(fields["deadline"], "deadline"),
            status=fields.get("status") or TaskStatus.PENDING,
            event_id=_first_link(fields.get("event_id")),
            event_ids=_split_ids(fields.get("event_ids")),
            batch_id=fields.get("batch_id") or None,
            week_start=_opt_date(fields.get("week_start")),
            week_end=_opt_date(fields.get("week_end")),
            order_ids=_split_ids(fields.get("order_ids")),
            parent_task_id=_first_link(fields.get("parent_task_id")),
            go_id=_first_link(fields.get("go_id")),
            shipping_task_id=_first_link(fields.get("shipping_task_id")),
            completed_at=(
                datetime.fromisoformat(fields["completed_at"].replace("Z", "+00:00"))
                if fields.get("completed_at")
                else None
            ),
            completed_by=fields.get("completed_by") or None,
            completion_data=completion_data,
            created_at=(
                datetime.fromisoformat(created_at.replace("Z", "+00:00"))
                if created_at
                else datetime.now(UTC)
            ),
        )

    # ============================================================
    # 供应商订单
    # ============================================================

    async def create_supplier_order(self, draft: SupplierOrderDraft) -> GuesstimateOrder:
        logical: dict[str, Any] = {
            "source_task_id": draft.source_task_id,
            "event_id": draft.event_id,
            "event_ids": ",".join(draft.event_ids) or None,
            "order_ids": ",".join(draft.order_ids) or None,
            "order_date": draft.order_date.isoformat(),
            "order_amount": draft.order_amount,
            "contains": json.dumps([item.model_dump() for item in draft.contains]),
            "created_at": datetime.now(UTC).isoformat(),
        }
        logical = {k: v for k, v in logical.items() if v is not None}
        record = await self._client.create_record(
            self._schema.supplier_orders.table,
            self._schema.to_raw("supplier_orders", logical),
        )
        return self._record_to_supplier_order(record)

    async def get_supplier_order(self, record_id: str) -> GuesstimateOrder | None:
        record = await self._client.get_record(self._schema.supplier_orders.table, record_id)
        if record is None:
            return None
        return self._record_to_supplier_order(record)

    async def find_supplier_orders_by_task(self, task_id: str) -> list[GuesstimateOrder]:
        formula = f"{self._f('supplier_orders', 'source_task_id')} = {_quote(task_id)}"
        records = await self._list("supplier_orders", formula)
        return [self._record_to_supplier_order(r) for r in records]

    async def find_supplier_orders(
        self, *, completed: bool | None = None
    ) -> list[GuesstimateOrder]:
        formula = None
        if completed is not None:
            ref = self._f("supplier_orders", "date_completed")
            formula = f"{ref} != BLANK()" if completed else f"{ref} = BLANK()"
        records = await self._list("supplier_orders", formula)
        orders = [self._record_to_supplier_order(r) for r in records]
        if completed is not None:
            orders = [o for o in orders if (o.date_completed is not None) == completed]
        return sorted(orders, key=lambda o: o.created_at)

    async def update_supplier_order(
        self, record_id: str, date_completed: date
    ) -> GuesstimateOrder:
        # 先读后写，不是原子条件写
        current = await self.get_supplier_order(record_id)
        if current is None:
            raise NotFoundError("GO", record_id)
        if current.date_completed is not None:
            raise InvalidStateError(
                f"Supplier order {current.go_id} already received on {current.date_completed}"
            )
        record = await self._client.update_record(
            self._schema.supplier_orders.table,
            record_id,
            self._schema.to_raw("supplier_orders", {"date_completed": date_completed.isoformat()}),
        )
        return self._record_to_supplier_order(record)

    async def ping(self) -> None:
        await self._list("tasks", max_records=1)

    def _record_to_supplier_order(self, record: dict) -> GuesstimateOrder:
        fields = self._schema.to_logical("supplier_orders", record.get("fields", {}))
        raw_contains = fields.get("contains") or "[]"
        contains = json.loads(raw_contains) if isinstance(raw_contains, str) else raw_contains
        created_at = fields.get("created_at") or record.get("createdTime")
        return GuesstimateOrder(
            id=record["id"],
            go_id=_display_id(fields.get("go_id"), "GO", record["id"]),
            source_task_id=_first_link(fields.get("source_task_id")) or "",
            event_id=_first_link(fields.get("event_id")),
            event_ids=_split_ids(fields.get("event_ids")),
            order_ids=_split_ids(fields.get("order_ids")),
            order_date=to_date(fields["order_date"], "order_date"),
            order_amount=float(fields.get("order_amount") or 0),
            contains=[SupplierOrderItem(**item) for item in contains],
            date_completed=_opt_date(fields.get("date_completed")),
            created_at=(
                datetime.fromisoformat(created_at.replace("Z", "+00:00"))
                if created_at
                else datetime.now(UTC)
            ),
        )
