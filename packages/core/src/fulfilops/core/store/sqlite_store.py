"""RecordStore SQLite 实现 -- 本地开发 / 测试 / 单机部署

- 记录 ID 为 ULID，展示编号由自增 seq 生成（TSK-0001 / GO-0001）
- update_task 通过 WHERE status = ? 实现条件更新，防止并发重复完成
- 周批次唯一性由 idx_tasks_active_batch_id 部分唯一索引保证
"""

import json
from datetime import UTC, date, datetime
from typing import Any

import aiosqlite
import structlog
from ulid import ULID

from ..exceptions import (
    DuplicateBatchError,
    InvalidStateError,
    NotFoundError,
    TaskStatusConflictError,
    UpstreamError,
    ValidationError,
)
from ..models.enums import TaskStatus, TaskType
from ..models.order import Event, LineItem, Order
from ..models.supplier_order import (
    GuesstimateOrder,
    SupplierOrderDraft,
    SupplierOrderItem,
)
from ..models.task import UPDATABLE_TASK_FIELDS, CompletionData, Task, TaskDraft

log = structlog.get_logger()


def _json_list(value: str | None) -> list:
    return json.loads(value) if value else []


def _opt_date(value: str | None) -> date | None:
    return date.fromisoformat(value) if value else None


class SqliteRecordStore:
    """RecordStore 的 SQLite 实现"""

    def __init__(self, conn: aiosqlite.Connection) -> None:
        self._conn = conn
        self._conn.row_factory = aiosqlite.Row

    # ============================================================
    # 订单 / 活动
    # ============================================================

    async def upsert_event(self, event: Event) -> None:
        """写入或覆盖活动记录（由外部数据同步调用）"""
        await self._conn.execute(
            """
            INSERT OR REPLACE INTO events (id, event_id, school_name, event_date, event_type)
            VALUES (?, ?, ?, ?, ?)
            """,
            (
                event.id,
                event.event_id,
                event.school_name,
                event.event_date.isoformat(),
                event.event_type,
            ),
        )
        await self._conn.commit()

    async def upsert_order(self, order: Order) -> None:
        """写入或覆盖订单记录（由电商订单同步调用）"""
        await self._conn.execute(
            """
            INSERT OR REPLACE INTO orders (id, order_number, order_date, total_amount,
                                           line_items, event_id)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (
                order.id,
                order.order_number,
                order.order_date.isoformat(),
                order.total_amount,
                json.dumps([item.model_dump() for item in order.line_items]),
                order.event_id,
            ),
        )
        await self._conn.commit()

    async def get_orders_in_date_range(self, start: date, end: date) -> list[Order]:
        """查询 order_date 落在 [start, end] 的订单"""
        cursor = await self._conn.execute(
            "SELECT * FROM orders WHERE order_date BETWEEN ? AND ? ORDER BY order_date, id",
            (start.isoformat(), end.isoformat()),
        )
        return self._rows_to_orders(await cursor.fetchall())

    async def get_orders_for_event(self, event_id: str) -> list[Order]:
        """查询某活动的全部订单"""
        cursor = await self._conn.execute(
            "SELECT * FROM orders WHERE event_id = ? ORDER BY order_date, id",
            (event_id,),
        )
        return self._rows_to_orders(await cursor.fetchall())

    async def get_orders_by_ids(self, order_ids: list[str]) -> list[Order]:
        """按 ID 批量查询订单"""
        if not order_ids:
            return []
        placeholders = ",".join("?" for _ in order_ids)
        cursor = await self._conn.execute(
            f"SELECT * FROM orders WHERE id IN ({placeholders}) ORDER BY order_date, id",
            tuple(order_ids),
        )
        return self._rows_to_orders(await cursor.fetchall())

    async def get_event(self, event_id: str) -> Event | None:
        """按记录 ID 查询活动"""
        cursor = await self._conn.execute("SELECT * FROM events WHERE id = ?", (event_id,))
        row = await cursor.fetchone()
        if row is None:
            return None
        return self._row_to_event(row)

    async def list_events_between(self, start: date, end: date) -> list[Event]:
        """查询 event_date 落在 [start, end] 的活动"""
        cursor = await self._conn.execute(
            "SELECT * FROM events WHERE event_date BETWEEN ? AND ? ORDER BY event_date, id",
            (start.isoformat(), end.isoformat()),
        )
        rows = await cursor.fetchall()
        return [self._row_to_event(row) for row in rows]

    # ============================================================
    # 任务
    # ============================================================

    async def create_task(self, draft: TaskDraft) -> Task:
        """创建任务记录

        Raises:
            DuplicateBatchError: 同一 batch_id 已存在未取消的批次任务
        """
        record_id = str(ULID())
        try:
            await self._conn.execute(
                """
                INSERT INTO tasks (id, template_id, task_type, task_name, description,
                                   completion_type, timeline_offset, deadline, status,
                                   event_id, event_ids, batch_id, week_start, week_end,
                                   order_ids, parent_task_id, go_id, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    record_id,
                    draft.template_id,
                    draft.task_type.value,
                    draft.task_name,
                    draft.description,
                    draft.completion_type.value,
                    draft.timeline_offset,
                    draft.deadline.isoformat(),
                    draft.status.value,
                    draft.event_id,
                    json.dumps(draft.event_ids),
                    draft.batch_id,
                    draft.week_start.isoformat() if draft.week_start else None,
                    draft.week_end.isoformat() if draft.week_end else None,
                    json.dumps(draft.order_ids),
                    draft.parent_task_id,
                    draft.go_id,
                    datetime.now(UTC).isoformat(),
                ),
            )
            await self._conn.commit()
        except aiosqlite.IntegrityError as e:
            await self._conn.rollback()
            if draft.batch_id and "batch_id" in str(e):
                raise DuplicateBatchError(draft.batch_id) from e
            raise
        except Exception:
            await self._conn.rollback()
            raise

        task = await self.get_task(record_id)
        if task is None:
            raise UpstreamError("create_task", reason=f"task {record_id} missing after insert")
        return task

    async def get_task(self, task_id: str) -> Task | None:
        """按记录 ID 查询任务"""
        cursor = await self._conn.execute("SELECT * FROM tasks WHERE id = ?", (task_id,))
        row = await cursor.fetchone()
        if row is None:
            return None
        return self._row_to_task(row)

    async def update_task(
        self,
        task_id: str,
        fields: dict[str, Any],
        expected_status: TaskStatus | None = None,
    ) -> Task:
        """单条记录更新

        Raises:
            ValidationError: 包含不可更新的字段
            NotFoundError: 任务不存在
            TaskStatusConflictError: 当前状态与 expected_status 不一致
        """
        unknown = set(fields) - UPDATABLE_TASK_FIELDS
        if unknown:
            raise ValidationError(
                f"Task fields are not updatable: {', '.join(sorted(unknown))}",
                details={name: "immutable" for name in unknown},
            )
        if not fields:
            task = await self.get_task(task_id)
            if task is None:
                raise NotFoundError("Task", task_id)
            return task

        assignments = ", ".join(f"{name} = ?" for name in fields)
        params: list[Any] = [self._to_column(name, value) for name, value in fields.items()]
        sql = f"UPDATE tasks SET {assignments} WHERE id = ?"
        params.append(task_id)
        if expected_status is not None:
            sql += " AND status = ?"
            params.append(TaskStatus(expected_status).value)

        try:
            cursor = await self._conn.execute(sql, tuple(params))
            updated = cursor.rowcount
            await self._conn.commit()
        except Exception:
            await self._conn.rollback()
            raise

        task = await self.get_task(task_id)
        if task is None:
            raise NotFoundError("Task", task_id)
        if updated == 0 and expected_status is not None:
            raise TaskStatusConflictError(
                task_id, TaskStatus(expected_status).value, task.status.value
            )
        return task

    async def find_tasks(
        self,
        *,
        task_type: TaskType | None = None,
        status: TaskStatus | None = None,
        event_id: str | None = None,
        template_id: str | None = None,
        parent_task_id: str | None = None,
    ) -> list[Task]:
        """按条件查询任务，按创建顺序返回"""
        conditions: list[str] = []
        params: list[str] = []
        for column, value in (
            ("task_type", task_type),
            ("status", status),
            ("event_id", event_id),
            ("template_id", template_id),
            ("parent_task_id", parent_task_id),
        ):
            if value is not None:
                conditions.append(f"{column} = ?")
                params.append(str(value))
        where = f" WHERE {' AND '.join(conditions)}" if conditions else ""
        cursor = await self._conn.execute(f"SELECT * FROM tasks{where} ORDER BY seq", tuple(params))
        rows = await cursor.fetchall()
        return [self._row_to_task(row) for row in rows]

    async def find_tasks_by_batch_id(self, batch_id: str) -> list[Task]:
        """查询某周批次 ID 的全部任务"""
        cursor = await self._conn.execute(
            "SELECT * FROM tasks WHERE batch_id = ? ORDER BY seq",
            (batch_id,),
        )
        rows = await cursor.fetchall()
        return [self._row_to_task(row) for row in rows]

    # ============================================================
    # 供应商订单
    # ============================================================

    async def create_supplier_order(self, draft: SupplierOrderDraft) -> GuesstimateOrder:
        """创建 GuesstimateOrder"""
        record_id = str(ULID())
        try:
            await self._conn.execute(
                """
                INSERT INTO supplier_orders (id, source_task_id, event_id, event_ids, order_ids,
                                             order_date, order_amount, contains, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    record_id,
                    draft.source_task_id,
                    draft.event_id,
                    json.dumps(draft.event_ids),
                    json.dumps(draft.order_ids),
                    draft.order_date.isoformat(),
                    draft.order_amount,
                    json.dumps([item.model_dump() for item in draft.contains]),
                    datetime.now(UTC).isoformat(),
                ),
            )
            await self._conn.commit()
        except Exception:
            await self._conn.rollback()
            raise

        order = await self.get_supplier_order(record_id)
        if order is None:
            raise UpstreamError(
                "create_supplier_order",
                reason=f"supplier order {record_id} missing after insert",
            )
        return order

    async def get_supplier_order(self, record_id: str) -> GuesstimateOrder | None:
        """按记录 ID 查询 GuesstimateOrder"""
        cursor = await self._conn.execute(
            "SELECT * FROM supplier_orders WHERE id = ?",
            (record_id,),
        )
        row = await cursor.fetchone()
        if row is None:
            return None
        return self._row_to_supplier_order(row)

    async def find_supplier_orders_by_task(self, task_id: str) -> list[GuesstimateOrder]:
        """查询由某任务发起的 GuesstimateOrder"""
        cursor = await self._conn.execute(
            "SELECT * FROM supplier_orders WHERE source_task_id = ? ORDER BY seq",
            (task_id,),
        )
        rows = await cursor.fetchall()
        return [self._row_to_supplier_order(row) for row in rows]

    async def find_supplier_orders(
        self, *, completed: bool | None = None
    ) -> list[GuesstimateOrder]:
        """按到货状态查询 GuesstimateOrder，按创建顺序返回"""
        where = ""
        if completed is True:
            where = " WHERE date_completed IS NOT NULL"
        elif completed is False:
            where = " WHERE date_completed IS NULL"
        cursor = await self._conn.execute(f"SELECT * FROM supplier_orders{where} ORDER BY seq")
        rows = await cursor.fetchall()
        return [self._row_to_supplier_order(row) for row in rows]

    async def update_supplier_order(
        self, record_id: str, date_completed: date
    ) -> GuesstimateOrder:
        """写入到货日期；WHERE date_completed IS NULL 保证只能写一次

        Raises:
            NotFoundError: 记录不存在
            InvalidStateError: 已写入过 date_completed
        """
        try:
            cursor = await self._conn.execute(
                "UPDATE supplier_orders SET date_completed = ? "
                "WHERE id = ? AND date_completed IS NULL",
                (date_completed.isoformat(), record_id),
            )
            updated = cursor.rowcount
            await self._conn.commit()
        except Exception:
            await self._conn.rollback()
            raise

        order = await self.get_supplier_order(record_id)
        if order is None:
            raise NotFoundError("GO", record_id)
        if updated == 0:
            raise InvalidStateError(
                f"Supplier order {order.go_id} already received on {order.date_completed}"
            )
        return order

    async def ping(self) -> None:
        """连通性检查"""
        cursor = await self._conn.execute("SELECT 1")
        await cursor.fetchone()

    # ============================================================
    # 行转换
    # ============================================================

    @staticmethod
    def _to_column(name: str, value: Any) -> Any:
        """将更新字段值序列化为列值"""
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
            return json.dumps(list(value))
        return value

    @staticmethod
    def _row_to_task(row: aiosqlite.Row) -> Task:
        """将数据库行转换为 Task 模型"""
        completion_data = row["completion_data"]
        return Task(
            id=row["id"],
            task_id=f"TSK-{row['seq']:04d}",
            template_id=row["template_id"],
            task_type=row["task_type"],
            task_name=row["task_name"],
            description=row["description"],
            completion_type=row["completion_type"],
            timeline_offset=row["timeline_offset"],
            deadline=date.fromisoformat(row["deadline"]),
            status=row["status"],
            event_id=row["event_id"],
            event_ids=_json_list(row["event_ids"]),
            batch_id=row["batch_id"],
            week_start=_opt_date(row["week_start"]),
            week_end=_opt_date(row["week_end"]),
            order_ids=_json_list(row["order_ids"]),
            parent_task_id=row["parent_task_id"],
            go_id=row["go_id"],
            shipping_task_id=row["shipping_task_id"],
            completed_at=(
                datetime.fromisoformat(row["completed_at"]) if row["completed_at"] else None
            ),
            completed_by=row["completed_by"],
            completion_data=(
                CompletionData(**json.loads(completion_data)) if completion_data else None
            ),
            created_at=datetime.fromisoformat(row["created_at"]),
        )

    @staticmethod
    def _row_to_event(row: aiosqlite.Row) -> Event:
        """将数据库行转换为 Event 模型"""
        return Event(
            id=row["id"],
            event_id=row["event_id"],
            school_name=row["school_name"],
            event_date=date.fromisoformat(row["event_date"]),
            event_type=row["event_type"],
        )

    @staticmethod
    def _rows_to_orders(rows: list[aiosqlite.Row]) -> list[Order]:
        """将数据库行转换为 Order 列表，行项目无法解析的订单跳过"""
        orders: list[Order] = []
        for row in rows:
            try:
                line_items = [LineItem(**item) for item in json.loads(row["line_items"])]
            except (ValueError, TypeError) as e:
                log.warning("order_line_items_unparseable", order_id=row["id"], error=str(e))
                continue
            orders.append(
                Order(
                    id=row["id"],
                    order_number=row["order_number"],
                    order_date=date.fromisoformat(row["order_date"]),
                    total_amount=row["total_amount"],
                    line_items=line_items,
                    event_id=row["event_id"],
                )
            )
        return orders

    @staticmethod
    def _row_to_supplier_order(row: aiosqlite.Row) -> GuesstimateOrder:
        """将数据库行转换为 GuesstimateOrder 模型"""
        return GuesstimateOrder(
            id=row["id"],
            go_id=f"GO-{row['seq']:04d}",
            source_task_id=row["source_task_id"],
            event_id=row["event_id"],
            event_ids=_json_list(row["event_ids"]),
            order_ids=_json_list(row["order_ids"]),
            order_date=date.fromisoformat(row["order_date"]),
            order_amount=row["order_amount"],
            contains=[SupplierOrderItem(**item) for item in _json_list(row["contains"])],
            date_completed=_opt_date(row["date_completed"]),
            created_at=datetime.fromisoformat(row["created_at"]),
        )
