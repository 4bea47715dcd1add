"""AirtableConfig -- Airtable 记录存储配置加载

从环境变量加载配置，不硬编码 base / 表 / 字段 ID。
"""

import os

import structlog
from pydantic import BaseModel, Field, SecretStr

log = structlog.get_logger()


class AirtableConfig(BaseModel):
    """Airtable 适配器配置 -- 从环境变量加载

    环境变量:
        AIRTABLE_API_URL: API 地址（默认 https://api.airtable.com）
        AIRTABLE_API_KEY: 个人访问令牌
        AIRTABLE_BASE_ID: base ID
        FULFILOPS_AIRTABLE_TIMEOUT_S: HTTP 超时（秒，默认 30）
        FULFILOPS_AIRTABLE_SCHEMA: 表/字段映射 JSON 文件路径（可选）
    """

    api_url: str = Field(
        default="https://api.airtable.com",
        description="Airtable API 基础 URL",
    )
    api_key: SecretStr = Field(
        default=SecretStr(""),
        description="Airtable 个人访问令牌",
    )
    base_id: str = Field(default="", description="Airtable base ID")
    timeout_s: int = Field(
        default=30,
        ge=1,
        description="HTTP 请求超时（秒）",
    )
    schema_path: str | None = Field(
        default=None,
        description="表/字段映射 JSON 文件路径，None 时使用逻辑字段名",
    )


def load_airtable_config() -> AirtableConfig:
    """从环境变量加载 Airtable 配置

    Returns:
        AirtableConfig 实例
    """
    kwargs: dict = {}

    if val := os.environ.get("AIRTABLE_API_URL"):
        kwargs["api_url"] = val

    if val := os.environ.get("AIRTABLE_API_KEY"):
        kwargs["api_key"] = SecretStr(val)

    if val := os.environ.get("AIRTABLE_BASE_ID"):
        kwargs["base_id"] = val

    if val := os.environ.get("FULFILOPS_AIRTABLE_SCHEMA"):
        kwargs["schema_path"] = val

    if val := os.environ.get("FULFILOPS_AIRTABLE_TIMEOUT_S"):
        try:
            kwargs["timeout_s"] = int(val)
        except ValueError:
            log.warning(
                "invalid_timeout_config",
                env_var="FULFILOPS_AIRTABLE_TIMEOUT_S",
                value=val,
                fallback=30,
            )
            # 使用默认值，不阻塞启动

    return AirtableConfig(**kwargs)
