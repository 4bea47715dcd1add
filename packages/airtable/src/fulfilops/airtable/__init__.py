"""FulfilOps Airtable -- Airtable 记录存储适配器

packages/airtable 的公开接口导出。
"""

from .client import AirtableClient

# 配置
from .config import AirtableConfig, load_airtable_config

# 异常
from .exceptions import AirtableError, AirtableSchemaError, AirtableUnreachableError
from .schema import AirtableSchema, TableSchema, load_airtable_schema
from .store import AirtableRecordStore


def create_airtable_store(config: AirtableConfig | None = None) -> AirtableRecordStore:
    """根据配置创建 Airtable 记录存储"""
    config = config or load_airtable_config()
    schema = load_airtable_schema(config.schema_path)
    client = AirtableClient(
        base_id=config.base_id,
        api_key=config.api_key.get_secret_value(),
        api_url=config.api_url,
        timeout_s=config.timeout_s,
        use_field_ids=schema.use_field_ids,
    )
    return AirtableRecordStore(client, schema)


__all__ = [
    "AirtableClient",
    "AirtableConfig",
    "load_airtable_config",
    "AirtableSchema",
    "TableSchema",
    "load_airtable_schema",
    "AirtableRecordStore",
    "create_airtable_store",
    "AirtableError",
    "AirtableUnreachableError",
    "AirtableSchemaError",
]
