"""AirtableClient -- Airtable REST API 调用封装

基于 httpx.AsyncClient：分页列表、单条读取、创建、PATCH 更新。
连接类错误抛出 AirtableUnreachableError，HTTP 错误抛出 AirtableError。
"""

import time
from typing import Any

import httpx
import structlog

from .exceptions import AirtableError, AirtableUnreachableError

log = structlog.get_logger()

# Airtable 单页最大记录数
PAGE_SIZE = 100

# 连接类异常类型集合
_CONNECTION_ERROR_TYPES = (
    ConnectionError,
    OSError,
    httpx.TransportError,
)


class AirtableClient:
    """Airtable REST 客户端"""

    def __init__(
        self,
        base_id: str,
        api_key: str = "",
        api_url: str = "https://api.airtable.com",
        timeout_s: int = 30,
        use_field_ids: bool = False,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """初始化客户端

        Args:
            base_id: Airtable base ID
            api_key: 个人访问令牌
            api_url: API 基础 URL
            timeout_s: 请求超时（秒）
            use_field_ids: 响应中以字段 ID 作为键（returnFieldsByFieldId）
            transport: 自定义 httpx transport（测试时注入 MockTransport）
        """
        self._api_url = api_url.rstrip("/")
        self._use_field_ids = use_field_ids
        self._http = httpx.AsyncClient(
            base_url=f"{self._api_url}/v0/{base_id}",
            headers={"Authorization": f"Bearer {api_key}"},
            timeout=timeout_s,
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._http.aclose()

    async def list_records(
        self,
        table: str,
        formula: str | None = None,
        max_records: int | None = None,
    ) -> list[dict[str, Any]]:
        """分页读取记录

        Args:
            table: 表 ID 或表名
            formula: filterByFormula 表达式
            max_records: 最多返回的记录数
        """
        params: dict[str, Any] = {"pageSize": PAGE_SIZE}
        if formula:
            params["filterByFormula"] = formula
        if max_records is not None:
            params["maxRecords"] = max_records
        if self._use_field_ids:
            params["returnFieldsByFieldId"] = "true"

        records: list[dict[str, Any]] = []
        while True:
            data = await self._request("GET", f"/{table}", params=params)
            records.extend(data.get("records", []))
            offset = data.get("offset")
            if not offset:
                break
            params["offset"] = offset
        return records

    async def get_record(self, table: str, record_id: str) -> dict[str, Any] | None:
        """读取单条记录，不存在时返回 None"""
        params = {"returnFieldsByFieldId": "true"} if self._use_field_ids else None
        try:
            return await self._request("GET", f"/{table}/{record_id}", params=params)
        except AirtableError as e:
            if e.status_code == 404:
                return None
            raise

    async def create_record(self, table: str, fields: dict[str, Any]) -> dict[str, Any]:
        """创建单条记录"""
        payload: dict[str, Any] = {"fields": fields, "typecast": True}
        if self._use_field_ids:
            payload["returnFieldsByFieldId"] = True
        return await self._request("POST", f"/{table}", json=payload)

    async def update_record(
        self,
        table: str,
        record_id: str,
        fields: dict[str, Any],
    ) -> dict[str, Any]:
        """PATCH 更新单条记录（只写入给定字段）"""
        payload: dict[str, Any] = {"fields": fields, "typecast": True}
        if self._use_field_ids:
            payload["returnFieldsByFieldId"] = True
        return await self._request("PATCH", f"/{table}/{record_id}", json=payload)

    async def _request(self, method: str, path: str, **kwargs: Any) -> dict[str, Any]:
        start_time = time.monotonic()
        try:
            response = await self._http.request(method, path, **kwargs)
        except _CONNECTION_ERROR_TYPES as e:
            duration_ms = int((time.monotonic() - start_time) * 1000)
            log.error(
                "airtable_request_unreachable",
                method=method,
                path=path,
                error=str(e),
                error_type=type(e).__name__,
                duration_ms=duration_ms,
            )
            raise AirtableUnreachableError(api_url=self._api_url, original_error=e) from e

        duration_ms = int((time.monotonic() - start_time) * 1000)
        if response.status_code >= 400:
            message = _error_message(response)
            log.warning(
                "airtable_request_failed",
                method=method,
                path=path,
                status_code=response.status_code,
                error=message,
                duration_ms=duration_ms,
            )
            raise AirtableError(
                f"Airtable {method} {path} failed: {response.status_code} {message}",
                status_code=response.status_code,
                recoverable=response.status_code == 429 or response.status_code >= 500,
            )

        log.debug(
            "airtable_request_completed",
            method=method,
            path=path,
            status_code=response.status_code,
            duration_ms=duration_ms,
        )
        return response.json()


def _error_message(response: httpx.Response) -> str:
    """提取 Airtable 错误描述"""
    try:
        error = response.json().get("error")
    except ValueError:
        return response.text[:200]
    if isinstance(error, dict):
        return error.get("message") or error.get("type") or ""
    return str(error or "")
