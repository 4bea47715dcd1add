"""Airtable 适配器异常体系

GuardedRecordStore 会将这些异常统一转换为 UpstreamError。
"""


class AirtableError(Exception):
    """Airtable 适配器基础异常"""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        recoverable: bool = False,
    ) -> None:
        """
        Args:
            message: 错误描述
            status_code: HTTP 状态码（如有）
            recoverable: 是否可通过重试恢复（限流、5xx）
        """
        super().__init__(message)
        self.status_code = status_code
        self.recoverable = recoverable


class AirtableUnreachableError(AirtableError):
    """Airtable API 不可达（连接失败、超时、DNS 解析失败等）"""

    def __init__(self, api_url: str, original_error: Exception) -> None:
        """
        Args:
            api_url: 尝试连接的 API 地址
            original_error: 原始异常
        """
        super().__init__(
            f"Airtable API 不可达: {api_url} -- {original_error}",
            recoverable=True,
        )
        self.api_url = api_url
        self.original_error = original_error


class AirtableSchemaError(AirtableError):
    """表/字段映射配置缺失或无效"""
