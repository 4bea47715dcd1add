"""Airtable 包测试 fixtures -- 基于 httpx.MockTransport 的内存版 Airtable"""

import json
from typing import Any

import httpx
import pytest
import pytest_asyncio
from fulfilops.airtable import AirtableClient, AirtableRecordStore, AirtableSchema


class FakeAirtable:
    """内存版 Airtable REST API

    - GET 列表忽略 filterByFormula（只记录下来供断言），按 page_size 分页
    - POST 分配 recN 记录 ID，Tasks / GuesstimateOrders 自动编号写入 task_id / go_id
    - PATCH 合并字段
    """

    def __init__(self, page_size: int = 100) -> None:
        self.tables: dict[str, dict[str, dict[str, Any]]] = {}
        self.requests: list[httpx.Request] = []
        self.formulas: list[str] = []
        self.page_size = page_size
        self.fail_status: int | None = None
        self._next_id = 0
        self._autonumber: dict[str, int] = {}

    def add(self, table: str, fields: dict[str, Any], record_id: str | None = None) -> str:
        self._next_id += 1
        record_id = record_id or f"rec{self._next_id:04d}"
        self.tables.setdefault(table, {})[record_id] = {
            "id": record_id,
            "createdTime": f"2026-02-09T10:00:{self._next_id % 60:02d}.000Z",
            "fields": dict(fields),
        }
        return record_id

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.fail_status is not None:
            return httpx.Response(self.fail_status, json={"error": {"type": "FAILED"}})

        parts = request.url.path.split("/")
        # /v0/{base}/{table}[/{record}]
        table = parts[3]
        record_id = parts[4] if len(parts) > 4 else None
        records = self.tables.setdefault(table, {})

        if request.method == "GET" and record_id is None:
            formula = request.url.params.get("filterByFormula")
            if formula:
                self.formulas.append(formula)
            ordered = list(records.values())
            start = int(request.url.params.get("offset", "0"))
            page = ordered[start : start + self.page_size]
            body: dict[str, Any] = {"records": page}
            if start + self.page_size < len(ordered):
                body["offset"] = str(start + self.page_size)
            return httpx.Response(200, json=body)

        if request.method == "GET":
            if record_id not in records:
                return httpx.Response(404, json={"error": "NOT_FOUND"})
            return httpx.Response(200, json=records[record_id])

        payload = json.loads(request.content)
        if request.method == "POST":
            fields = dict(payload["fields"])
            counter_field = {"Tasks": "task_id", "GuesstimateOrders": "go_id"}.get(table)
            if counter_field:
                self._autonumber[table] = self._autonumber.get(table, 0) + 1
                fields[counter_field] = self._autonumber[table]
            new_id = self.add(table, fields)
            return httpx.Response(200, json=records[new_id])

        if request.method == "PATCH":
            if record_id not in records:
                return httpx.Response(404, json={"error": "NOT_FOUND"})
            records[record_id]["fields"].update(payload["fields"])
            return httpx.Response(200, json=records[record_id])

        return httpx.Response(405)


@pytest.fixture
def fake_airtable() -> FakeAirtable:
    return FakeAirtable()


@pytest_asyncio.fixture
async def airtable_client(fake_airtable: FakeAirtable):
    client = AirtableClient(
        base_id="appTEST",
        api_key="pat-secret",
        transport=httpx.MockTransport(fake_airtable.handler),
    )
    yield client
    await client.aclose()


@pytest_asyncio.fixture
async def airtable_store(airtable_client: AirtableClient) -> AirtableRecordStore:
    return AirtableRecordStore(airtable_client, AirtableSchema())
