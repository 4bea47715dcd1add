"""AirtableSchema -- 逻辑字段名到 Airtable 表/字段 ID 的映射

引擎只使用逻辑字段名；实际的表 ID / 字段 ID 在此集中配置，
可通过 JSON 文件覆盖（FULFILOPS_AIRTABLE_SCHEMA）。未覆盖的字段使用逻辑名本身。

约定：
- 任务 / 供应商订单中的记录引用（event_id、parent_task_id、go_id 等）以文本存储记录 ID，
  order_ids / event_ids 以逗号分隔文本存储
- orders.event_record_ids 为 Airtable 公式/lookup 字段，返回关联活动的 RECORD_ID()，仅用于筛选
"""

import json
from pathlib import Path

from pydantic import BaseModel, Field

from .exceptions import AirtableSchemaError

ORDERS_FIELDS = [
    "order_number",
    "order_date",
    "total_amount",
    "line_items",
    "event_id",
    "event_record_ids",
    "class_id",
]
EVENTS_FIELDS = ["event_id", "school_name", "event_date", "event_type"]
CLASSES_FIELDS = ["event_id"]
TASKS_FIELDS = [
    "task_id",
    "template_id",
    "task_type",
    "task_name",
    "description",
    "completion_type",
    "timeline_offset",
    "deadline",
    "status",
    "event_id",
    "event_ids",
    "batch_id",
    "week_start",
    "week_end",
    "order_ids",
    "parent_task_id",
    "go_id",
    "shipping_task_id",
    "completed_at",
    "completed_by",
    "completion_data",
    "created_at",
]
SUPPLIER_ORDERS_FIELDS = [
    "go_id",
    "source_task_id",
    "event_id",
    "event_ids",
    "order_ids",
    "order_date",
    "order_amount",
    "contains",
    "date_completed",
    "created_at",
]

_TABLE_FIELDS: dict[str, list[str]] = {
    "orders": ORDERS_FIELDS,
    "events": EVENTS_FIELDS,
    "classes": CLASSES_FIELDS,
    "tasks": TASKS_FIELDS,
    "supplier_orders": SUPPLIER_ORDERS_FIELDS,
}


class TableSchema(BaseModel):
    """单张表的映射"""

    table: str = Field(description="表 ID 或表名")
    fields: dict[str, str] = Field(default_factory=dict, description="逻辑字段名 -> 字段 ID")

    def field(self, name: str) -> str:
        return self.fields.get(name, name)

    def reverse(self) -> dict[str, str]:
        """字段 ID -> 逻辑字段名"""
        return {field_id: name for name, field_id in self.fields.items()}


class AirtableSchema(BaseModel):
    """整个 base 的映射"""

    use_field_ids: bool = Field(default=False, description="请求/响应以字段 ID 为键")
    orders: TableSchema = Field(default_factory=lambda: TableSchema(table="Orders"))
    events: TableSchema = Field(default_factory=lambda: TableSchema(table="Events"))
    classes: TableSchema = Field(default_factory=lambda: TableSchema(table="Classes"))
    tasks: TableSchema = Field(default_factory=lambda: TableSchema(table="Tasks"))
    supplier_orders: TableSchema = Field(
        default_factory=lambda: TableSchema(table="GuesstimateOrders")
    )

    def table(self, name: str) -> TableSchema:
        return getattr(self, name)

    def to_logical(self, name: str, raw_fields: dict) -> dict:
        """将 Airtable 返回的字段字典转换为逻辑字段名"""
        schema = self.table(name)
        reverse = schema.reverse()
        known = set(_TABLE_FIELDS[name])
        result: dict = {}
        for key, value in raw_fields.items():
            logical = reverse.get(key, key)
            if logical in known:
                result[logical] = value
        return result

    def to_raw(self, name: str, logical_fields: dict) -> dict:
        """将逻辑字段字典转换为 Airtable 字段名/ID"""
        schema = self.table(name)
        return {schema.field(key): value for key, value in logical_fields.items()}


def load_airtable_schema(path: str | None) -> AirtableSchema:
    """加载映射配置

    Args:
        path: JSON 文件路径，None 时返回默认映射

    Raises:
        AirtableSchemaError: 文件不存在或格式无效
    """
    if not path:
        return AirtableSchema()
    schema_file = Path(path)
    if not schema_file.exists():
        raise AirtableSchemaError(f"Airtable schema file not found: {path}")
    try:
        schema = AirtableSchema.model_validate(json.loads(schema_file.read_text(encoding="utf-8")))
    except ValueError as e:
        raise AirtableSchemaError(f"Invalid Airtable schema file {path}: {e}") from e

    for table_name, logical_names in _TABLE_FIELDS.items():
        unknown = set(schema.table(table_name).fields) - set(logical_names)
        if unknown:
            raise AirtableSchemaError(
                f"Unknown fields for table {table_name}: {', '.join(sorted(unknown))}"
            )
    return schema
